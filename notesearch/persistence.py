# notesearch/persistence.py
"""
Persistence manager: owns the data directory, opens the note log, brings the
index up to date at startup, and writes index snapshots in the background.

The note log is the only thing that must never be lost; every add is fsynced
by NoteStore before it returns. The snapshot is a cache that lets startup
skip a full rebuild. It may lag behind the log: a snapshot whose note count or
last id does not match the log, or that was built with a different
min_token_length, is ignored and the index is rebuilt.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Optional, Tuple

from notesearch import paths
from notesearch.config import EngineConfig
from notesearch.errors import CorruptIndexError, NoteSearchError
from notesearch.index import InvertedIndex
from notesearch.snapshot import read_header, read_snapshot, write_snapshot
from notesearch.store import NoteStore
from notesearch.tokenizer import Tokenizer

logger = logging.getLogger(__name__)


class PersistenceManager:
    def __init__(self, config: EngineConfig, tokenizer: Tokenizer):
        self.config = config
        self.tokenizer = tokenizer
        self.log_path = paths.log_path(config.data_dir)
        self.snapshot_path = paths.snapshot_path(config.data_dir)

        self.store: Optional[NoteStore] = None
        self.index: Optional[InvertedIndex] = None
        self.loaded_from_snapshot = False
        self.snapshots_written = 0

        self._snapshot_lock = threading.Lock()
        self._snapshot_mark: Optional[Tuple[int, int]] = None  # (note_count, last_id) on disk
        self._dirty = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # startup
    # ------------------------------------------------------------------
    def open(self) -> Tuple[NoteStore, InvertedIndex]:
        self.store = NoteStore(self.log_path, self.tokenizer, fsync=self.config.fsync)
        self.index = InvertedIndex(self.tokenizer)
        self.loaded_from_snapshot = self.recover()
        if self.config.snapshot_enabled:
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="notesearch-snapshot", daemon=True)
            self._thread.start()
        return self.store, self.index

    def recover(self) -> bool:
        """
        Load the snapshot if it matches the log, otherwise rebuild.
        Returns True when the snapshot was used.
        """
        t0 = time.perf_counter()
        try:
            header = read_header(self.snapshot_path)
            if header.min_token_length != self.tokenizer.min_length:
                raise CorruptIndexError(
                    f"snapshot built with min_token_length={header.min_token_length}, "
                    f"tokenizer uses {self.tokenizer.min_length}")
            if header.note_count != len(self.store) or header.last_note_id != self.store.last_id:
                raise CorruptIndexError(
                    f"snapshot covers {header.note_count} notes (last id {header.last_note_id}), "
                    f"log has {len(self.store)} (last id {self.store.last_id})")
            header, table = read_snapshot(self.snapshot_path)
        except FileNotFoundError:
            logger.info("No index snapshot at %s, rebuilding from log", self.snapshot_path)
        except (CorruptIndexError, OSError) as exc:
            logger.warning("Index snapshot unusable (%s), rebuilding from log", exc)
        else:
            self.index.restore(table, header.note_count, header.last_note_id)
            self._snapshot_mark = (header.note_count, header.last_note_id)
            logger.info("Index restored from snapshot in %.3fs", time.perf_counter() - t0)
            return True

        self.rebuild()
        return False

    def rebuild(self):
        """Rebuild the index from the full note log, then schedule a fresh snapshot."""
        t0 = time.perf_counter()
        self.index.rebuild(self.store.scan())
        with self._snapshot_lock:
            self._snapshot_mark = None
        logger.info("Index rebuilt: %d terms from %d notes in %.3fs",
                    len(self.index), self.index.note_count, time.perf_counter() - t0)
        self.schedule_snapshot()

    # ------------------------------------------------------------------
    # snapshots
    # ------------------------------------------------------------------
    def schedule_snapshot(self):
        if self.config.snapshot_enabled:
            self._dirty.set()

    def write_snapshot(self, force: bool = False) -> bool:
        """
        Write the current index to disk unless the snapshot on disk already
        covers the same notes. Returns True if a file was written.
        """
        with self._snapshot_lock:
            table, note_count, last_id = self.index.export()
            if not force and self._snapshot_mark == (note_count, last_id):
                return False
            try:
                write_snapshot(self.snapshot_path, table, note_count, last_id,
                               self.tokenizer.min_length)
            except OSError:
                try:
                    os.remove(self.snapshot_path + ".tmp")
                except OSError:
                    pass
                raise
            self._snapshot_mark = (note_count, last_id)
            self.snapshots_written += 1
            return True

    def _run(self):
        while True:
            self._dirty.wait()
            if self._stop.is_set():
                return
            # let a burst of adds settle into one snapshot
            if self._stop.wait(self.config.snapshot_delay):
                return
            self._dirty.clear()
            try:
                self.write_snapshot()
            except (OSError, NoteSearchError, ValueError):
                logger.exception("Background snapshot failed; will retry after the next add")

    # ------------------------------------------------------------------
    # shutdown
    # ------------------------------------------------------------------
    def close(self):
        if self._thread is not None:
            self._stop.set()
            self._dirty.set()
            self._thread.join()
            self._thread = None
        if self.index is not None and self.config.snapshot_enabled:
            try:
                self.write_snapshot()
            except OSError:
                logger.exception("Final snapshot failed; the index will be rebuilt on next open")
        if self.store is not None:
            self.store.close()
