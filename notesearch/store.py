# notesearch/store.py
"""
Durable, append-only note store.

Notes live in a single log file (format in notesearch/notelog.py). The store
keeps a small in-memory directory:
    note id -> byte offset of its record
    note id -> term count (document length used by ranking)
and serves get() by seeking straight to the record.

Concurrency:
    add() calls are serialized by a writer lock, so ids come out gap-free in
    arrival order. A record becomes visible to get()/scan() only after it has
    been written and fsynced; readers see the store either before or after an
    add, never half way.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Iterator, Optional

from notesearch.errors import NotFoundError, StorageIOError
from notesearch.notelog import (
    FILE_HEADER_SIZE,
    BadRecordError,
    Note,
    TornRecordError,
    check_file_header,
    encode_file_header,
    encode_record,
    iter_records,
    read_record,
)
from notesearch.tokenizer import Tokenizer

logger = logging.getLogger(__name__)


class NoteStore:
    def __init__(self, path: str, tokenizer: Optional[Tokenizer] = None, fsync: bool = True):
        self.path = path
        self.tokenizer = tokenizer or Tokenizer()
        self.fsync = fsync

        self._write_lock = threading.Lock()
        self._read_lock = threading.Lock()
        self._offsets: dict[int, int] = {}
        self._term_counts: dict[int, int] = {}
        self._last_id = 0
        self._committed = 0  # bytes of the log that hold complete, synced records
        self._broken = False
        self._writer = None
        self._reader = None

        self._open()

    # ------------------------------------------------------------------
    # open / recovery
    # ------------------------------------------------------------------
    def _open(self):
        try:
            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            if not os.path.exists(self.path) or os.path.getsize(self.path) < FILE_HEADER_SIZE:
                self._create()
            else:
                self._recover()
            self._writer = open(self.path, "ab", buffering=0)
            self._reader = open(self.path, "rb", buffering=0)
        except OSError as exc:
            raise StorageIOError("could not open note log", self.path) from exc
        logger.info("Note log opened: %d notes, %d bytes from %s",
                    self._last_id, self._committed, self.path)

    def _create(self):
        with open(self.path, "wb") as f:
            f.write(encode_file_header())
            f.flush()
            os.fsync(f.fileno())
        self._committed = FILE_HEADER_SIZE

    def _recover(self):
        """
        Rebuild the in-memory directory by reading the whole log.
        A torn record at the tail (crash during append) is truncated away;
        anything wrong before the tail means the log is damaged and is reported.
        """
        size = os.path.getsize(self.path)
        good = FILE_HEADER_SIZE
        with open(self.path, "rb") as f:
            try:
                check_file_header(f.read(FILE_HEADER_SIZE), self.path)
            except ValueError as exc:
                raise StorageIOError(str(exc), self.path) from exc

            try:
                for offset, note in iter_records(f):
                    if note.id != self._last_id + 1:
                        raise StorageIOError(
                            f"note log out of sequence: expected id {self._last_id + 1}, "
                            f"found {note.id} at offset {offset}", self.path)
                    self._offsets[note.id] = offset
                    self._term_counts[note.id] = note.term_count
                    self._last_id = note.id
                    good = f.tell()
            except TornRecordError as exc:
                logger.warning("Dropping torn record at offset %d: %s", good, exc)
            except BadRecordError as exc:
                if f.tell() < size:
                    raise StorageIOError(f"corrupt record at offset {good}: {exc}", self.path) from exc
                logger.warning("Dropping damaged tail record at offset %d: %s", good, exc)

        if good < size:
            with open(self.path, "r+b") as f:
                f.truncate(good)
                f.flush()
                os.fsync(f.fileno())
            logger.warning("Truncated note log from %d to %d bytes", size, good)
        self._committed = good

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def add(self, content: str, terms: Optional[list[str]] = None) -> int:
        """
        Append a note and return its id (first id is 1).
        `terms` may be passed when the caller already tokenized the content.

        Raises StorageIOError if the record could not be made durable; in that
        case the id is not consumed and the next add reuses it.
        """
        if not isinstance(content, str):
            raise TypeError(f"note content must be str, got {type(content).__name__}")
        if terms is None:
            terms = self.tokenizer.tokenize(content)

        with self._write_lock:
            if self._writer is None:
                raise StorageIOError("note store is closed", self.path)
            if self._broken:
                raise StorageIOError("note log is in an unknown state after a failed rollback", self.path)

            note = Note(self._last_id + 1, content, time.time(), len(terms))
            record = encode_record(note)
            offset = self._committed
            try:
                self._write_all(record)
                if self.fsync:
                    os.fsync(self._writer.fileno())
            except OSError as exc:
                self._rollback(offset)
                raise StorageIOError(f"could not append note {note.id}", self.path) from exc

            # publish: directory entries first, then the committed size
            self._offsets[note.id] = offset
            self._term_counts[note.id] = note.term_count
            self._committed = offset + len(record)
            self._last_id = note.id
            return note.id

    def _write_all(self, data: bytes):
        view = memoryview(data)
        while view:
            n = self._writer.write(view)
            view = view[n:]

    def _rollback(self, offset: int):
        try:
            os.ftruncate(self._writer.fileno(), offset)
        except OSError:
            self._broken = True
            logger.exception("Could not roll back partial append at offset %d", offset)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def get(self, note_id: int) -> Note:
        offset = self._offsets.get(note_id)
        if offset is None:
            raise NotFoundError(note_id)
        with self._read_lock:
            if self._reader is None:
                raise StorageIOError("note store is closed", self.path)
            try:
                self._reader.seek(offset)
                note = read_record(self._reader)
            except (OSError, EOFError, ValueError) as exc:
                raise StorageIOError(f"could not read note {note_id}", self.path) from exc
        if note is None or note.id != note_id:
            raise StorageIOError(f"note {note_id} is not where the directory says", self.path)
        return note

    def scan(self) -> Iterator[Note]:
        """
        Iterate every committed note in id order.
        Each call starts a fresh pass; notes added after the call are not included.
        """
        return self._scan(self._committed)

    def _scan(self, end: int) -> Iterator[Note]:
        try:
            with open(self.path, "rb") as f:
                f.seek(FILE_HEADER_SIZE)
                for _, note in iter_records(f, end):
                    yield note
        except (OSError, EOFError, ValueError) as exc:
            raise StorageIOError("could not scan note log", self.path) from exc

    def term_count(self, note_id: int) -> int:
        try:
            return self._term_counts[note_id]
        except KeyError:
            raise NotFoundError(note_id) from None

    def __contains__(self, note_id) -> bool:
        return note_id in self._offsets

    def __len__(self) -> int:
        return self._last_id

    @property
    def last_id(self) -> int:
        return self._last_id

    @property
    def committed_size(self) -> int:
        return self._committed

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def close(self):
        with self._write_lock, self._read_lock:
            for f in (self._writer, self._reader):
                if f is not None:
                    f.close()
            self._writer = None
            self._reader = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
