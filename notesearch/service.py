# notesearch/service.py
"""
The boundary the presentation layer talks to.

    add_note(content)    -> {"id": int}
    search_notes(query)  -> [{"id": int, "content": str, "score": float}, ...]
    get_notes()          -> [{"id": int, "content": str, "created_at": float}, ...]

Everything is wired explicitly here: one Tokenizer shared by indexing and
querying, a NoteStore and InvertedIndex opened by the PersistenceManager, and
a QueryEngine over both. No module-level state.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from notesearch.config import EngineConfig
from notesearch.errors import CorruptIndexError, StorageIOError
from notesearch.index import InvertedIndex
from notesearch.persistence import PersistenceManager
from notesearch.ranker import QueryEngine
from notesearch.store import NoteStore
from notesearch.tokenizer import Tokenizer

logger = logging.getLogger(__name__)


class NotesService:
    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.from_env()
        self.tokenizer = Tokenizer(self.config.min_token_length)
        self.persistence = PersistenceManager(self.config, self.tokenizer)
        self.store: Optional[NoteStore] = None
        self.index: Optional[InvertedIndex] = None
        self.engine: Optional[QueryEngine] = None
        # store append + index update happen as one step, in id order
        self._write_lock = threading.Lock()

    def open(self) -> "NotesService":
        if self.engine is None:
            self.store, self.index = self.persistence.open()
            self.engine = QueryEngine(self.index, self.store, self.tokenizer)
            logger.info("Notes service ready: %d notes, %d terms (data dir %s)",
                        len(self.store), len(self.index), self.config.data_dir)
        return self

    def close(self):
        if self.engine is None:
            return
        with self._write_lock:
            self.persistence.close()
            self.engine = None
            self.index = None
            self.store = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _require_open(self):
        if self.engine is None:
            raise StorageIOError("notes service is not open", self.config.data_dir)

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    def add_note(self, content: str) -> dict:
        """
        Store a note durably and index it. Returns {"id": note_id}.
        Raises StorageIOError if the note could not be written; nothing is
        indexed in that case.
        """
        if not isinstance(content, str):
            raise TypeError(f"note content must be str, got {type(content).__name__}")
        self._require_open()
        terms = self.tokenizer.tokenize(content)
        with self._write_lock:
            note_id = self.store.add(content, terms)
            self.index.index_note(note_id, terms)
        self.persistence.schedule_snapshot()
        logger.debug("add_note: id=%d, %d terms", note_id, len(terms))
        return {"id": note_id}

    def search_notes(self, query: str, limit: Optional[int] = None) -> list[dict]:
        """
        Ranked matches for `query`, best first. [] when nothing matches or
        the query has no searchable terms.
        """
        self._require_open()
        if limit is None:
            limit = self.config.search_limit
        try:
            hits = self.engine.search(query, limit)
        except CorruptIndexError as exc:
            logger.warning("Index inconsistent with note log (%s), rebuilding", exc)
            self.rebuild_index()
            hits = self.engine.search(query, limit)

        results = []
        for note_id, score in hits:
            note = self.store.get(note_id)
            results.append({"id": note.id, "content": note.content, "score": score})
        logger.debug("search_notes: %r -> %d results", query, len(results))
        return results

    def get_notes(self) -> list[dict]:
        """All notes in id order."""
        self._require_open()
        return [{"id": n.id, "content": n.content, "created_at": n.created_at}
                for n in self.store.scan()]

    def get_note(self, note_id: int) -> dict:
        """Raises NotFoundError for an unknown id."""
        self._require_open()
        n = self.store.get(note_id)
        return {"id": n.id, "content": n.content, "created_at": n.created_at}

    def rebuild_index(self):
        """Throw away the in-memory index and rebuild it from the note log."""
        self._require_open()
        with self._write_lock:
            self.persistence.rebuild()

    def stats(self) -> dict:
        self._require_open()
        return {
            "notes": len(self.store),
            "terms": len(self.index),
            "log_bytes": self.store.committed_size,
            "loaded_from_snapshot": self.persistence.loaded_from_snapshot,
            "snapshots_written": self.persistence.snapshots_written,
        }
