# notesearch/notelog.py
"""
Binary format of the append-only note log.

    [MAGIC "NLOG"] [u32 version]
    then one record per note:
    [u64 id] [f64 created_at] [u32 term_count] [u32 length] [u32 header_crc32]
    [content utf-8] [u32 crc32]

header_crc covers the fixed 24-byte header, so a damaged length field is
caught before it is used to read the content. The trailing crc covers the
header and the content bytes. Records are only ever appended; a record cut
short by a crash is detected on open and dropped.
"""

from __future__ import annotations

import io
import struct
import zlib
from dataclasses import dataclass
from typing import Iterator, Tuple

from notesearch.paths import LOG_MAGIC, LOG_VERSION

_FILE_HEADER = struct.Struct("<4sI")
_REC_HEADER = struct.Struct("<QdII")
_CRC = struct.Struct("<I")

FILE_HEADER_SIZE = _FILE_HEADER.size
RECORD_HEADER_SIZE = _REC_HEADER.size + _CRC.size


class TornRecordError(EOFError):
    """A record runs past the end of the file (interrupted append)."""


class BadRecordError(ValueError):
    """A record whose header or content checksum does not match."""


@dataclass(frozen=True)
class Note:
    id: int
    content: str
    created_at: float
    term_count: int = 0


def encode_file_header() -> bytes:
    return _FILE_HEADER.pack(LOG_MAGIC, LOG_VERSION)


def check_file_header(data: bytes, path: str = "<log>") -> None:
    if len(data) != FILE_HEADER_SIZE:
        raise TornRecordError(f"{path}: truncated file header")
    magic, version = _FILE_HEADER.unpack(data)
    if magic != LOG_MAGIC:
        raise ValueError(f"{path}: bad magic {magic!r}, expected {LOG_MAGIC!r}")
    if version != LOG_VERSION:
        raise ValueError(f"{path}: unsupported log version {version}")


def encode_record(note: Note) -> bytes:
    body = note.content.encode("utf-8")
    head = _REC_HEADER.pack(note.id, note.created_at, note.term_count, len(body))
    crc = zlib.crc32(body, zlib.crc32(head))
    return head + _CRC.pack(zlib.crc32(head)) + body + _CRC.pack(crc)


def read_record(f: io.BufferedReader) -> Note | None:
    """
    Read one record at the current position.
    Returns None on a clean EOF (nothing left at a record boundary).
    """
    raw = f.read(RECORD_HEADER_SIZE)
    if not raw:
        return None
    if len(raw) != RECORD_HEADER_SIZE:
        raise TornRecordError("Truncated record header")
    head = raw[:_REC_HEADER.size]
    if _CRC.unpack(raw[_REC_HEADER.size:])[0] != zlib.crc32(head):
        raise BadRecordError("Record header checksum mismatch")
    # length is trusted only from here on
    note_id, created_at, term_count, length = _REC_HEADER.unpack(head)
    body = f.read(length)
    if len(body) != length:
        raise TornRecordError(f"Truncated content for note {note_id}")
    tail = f.read(_CRC.size)
    if len(tail) != _CRC.size:
        raise TornRecordError(f"Truncated checksum for note {note_id}")
    if _CRC.unpack(tail)[0] != zlib.crc32(body, zlib.crc32(head)):
        raise BadRecordError(f"Checksum mismatch for note {note_id}")
    return Note(note_id, body.decode("utf-8"), created_at, term_count)


def iter_records(f: io.BufferedReader, end: int | None = None) -> Iterator[Tuple[int, Note]]:
    """
    Yield (offset, note) from the current position of f.
    Stops at a clean EOF, or once `end` bytes have been consumed, so readers
    never look past the last committed record.
    """
    while end is None or f.tell() < end:
        offset = f.tell()
        note = read_record(f)
        if note is None:
            return
        yield offset, note
