# notesearch/snapshot.py
"""
On-disk index snapshot.

    [MAGIC "NIDX"] [u32 version] [u32 min_token_length]
    [u64 note_count] [u64 last_note_id]
    [u32 n_terms] [u32 body_crc32]
    body, one group per term in sorted order:
        [u32 len_term][term utf-8][u32 df]
        [u32 doc_bytes][VarByte note-id gaps]
        [u32 freq_bytes][VarByte freqs]

note_count/last_note_id say which prefix of the note log the snapshot was
built from; min_token_length records the tokenizer setting the postings
were produced with. A snapshot is only a cache: if it is missing, stale,
built with other tokenizer settings, or fails any check here, the index is
rebuilt from the log instead.
"""

from __future__ import annotations

import logging
import os
import struct
import zlib
from dataclasses import dataclass
from typing import Tuple

from notesearch.codec import VarByteCodec
from notesearch.errors import CorruptIndexError
from notesearch.index import PostingTable
from notesearch.paths import SNAPSHOT_MAGIC, SNAPSHOT_VERSION

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<4sIIQQII")
_U32 = struct.Struct("<I")


@dataclass(frozen=True)
class SnapshotHeader:
    version: int
    min_token_length: int
    note_count: int
    last_note_id: int
    n_terms: int
    body_crc: int


def _encode_body(table: PostingTable) -> bytes:
    out = bytearray()
    for term in sorted(table):
        ids, freqs = table[term]
        term_b = term.encode("utf-8")
        doc_b = VarByteCodec.encode_ids(ids)
        freq_b = VarByteCodec.encode_freqs(freqs)
        out += _U32.pack(len(term_b))
        out += term_b
        out += _U32.pack(len(ids))
        out += _U32.pack(len(doc_b))
        out += doc_b
        out += _U32.pack(len(freq_b))
        out += freq_b
    return bytes(out)


class _BodyReader:
    __slots__ = ("view", "pos")

    def __init__(self, data: bytes):
        self.view = memoryview(data)
        self.pos = 0

    def u32(self) -> int:
        return _U32.unpack(self.take(4))[0]

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.view):
            raise EOFError("Truncated snapshot body")
        chunk = self.view[self.pos:self.pos + n].tobytes()
        self.pos += n
        return chunk

    def done(self) -> bool:
        return self.pos == len(self.view)


def write_snapshot(path: str, table: PostingTable, note_count: int, last_note_id: int,
                   min_token_length: int) -> int:
    """
    Atomically write a snapshot: temp file, fsync, rename over the old one.
    Returns the number of bytes written. OSError propagates to the caller.
    """
    body = _encode_body(table)
    header = _HEADER.pack(SNAPSHOT_MAGIC, SNAPSHOT_VERSION, min_token_length,
                          note_count, last_note_id, len(table), zlib.crc32(body))
    tmp = path + ".tmp"
    with open(tmp, "wb") as f:
        f.write(header)
        f.write(body)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)
    size = len(header) + len(body)
    logger.info("Snapshot written: %d terms, %d notes, %d bytes to %s",
                len(table), note_count, size, path)
    return size


def read_header(path: str) -> SnapshotHeader:
    """
    Read and check only the fixed header.
    Raises FileNotFoundError if there is no snapshot, CorruptIndexError if the
    header is short, has the wrong magic, or an unknown version.
    """
    with open(path, "rb") as f:
        raw = f.read(_HEADER.size)
    if len(raw) != _HEADER.size:
        raise CorruptIndexError(f"{path}: truncated snapshot header")
    magic, version, min_len, note_count, last_id, n_terms, crc = _HEADER.unpack(raw)
    if magic != SNAPSHOT_MAGIC:
        raise CorruptIndexError(f"{path}: bad magic {magic!r}, expected {SNAPSHOT_MAGIC!r}")
    if version != SNAPSHOT_VERSION:
        raise CorruptIndexError(f"{path}: snapshot version {version}, expected {SNAPSHOT_VERSION}")
    return SnapshotHeader(version, min_len, note_count, last_id, n_terms, crc)


def read_snapshot(path: str) -> Tuple[SnapshotHeader, PostingTable]:
    """
    Load a full snapshot into a posting table.
    Raises FileNotFoundError if missing and CorruptIndexError on any damage.
    """
    header = read_header(path)
    with open(path, "rb") as f:
        f.seek(_HEADER.size)
        body = f.read()
    if zlib.crc32(body) != header.body_crc:
        raise CorruptIndexError(f"{path}: snapshot checksum mismatch")

    table: PostingTable = {}
    r = _BodyReader(body)
    try:
        for _ in range(header.n_terms):
            term = r.take(r.u32()).decode("utf-8")
            df = r.u32()
            ids = VarByteCodec.decode_ids(r.take(r.u32()))
            freqs = VarByteCodec.decode_freqs(r.take(r.u32()))
            if len(ids) != df or len(freqs) != df:
                raise ValueError(f"term {term!r}: df={df} but read {len(ids)} ids, {len(freqs)} freqs")
            table[term] = (ids, freqs)
    except (EOFError, ValueError, UnicodeDecodeError) as exc:
        raise CorruptIndexError(f"{path}: {exc}") from exc
    if not r.done():
        raise CorruptIndexError(f"{path}: trailing bytes after {header.n_terms} terms")
    logger.info("Snapshot loaded: %d terms, %d notes from %s", len(table), header.note_count, path)
    return header, table
