"""
notesearch/index.py

In-memory inverted index over the note log:

    term -> ([note_id, ...], [tf, ...])     # parallel lists, ascending note_id

The index only ever holds note ids, never content, and is a pure function of
the notes fed into it: rebuild(store.scan()) gives the same table as
index_note() called for each note in the same order.
"""

from __future__ import annotations

import bisect
import threading
from collections import Counter
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from notesearch.locks import ReadWriteLock
from notesearch.notelog import Note
from notesearch.tokenizer import Tokenizer

PostingTable = Dict[str, Tuple[List[int], List[int]]]


class Posting(NamedTuple):
    note_id: int
    frequency: int


def _insert_into(table: PostingTable, note_id: int, term: str, frequency: int):
    ids, freqs = table.setdefault(term, ([], []))
    if not ids or note_id >= ids[-1]:
        ids.append(note_id)
        freqs.append(frequency)
        return
    # out-of-order insert: keep the list sorted
    i = bisect.bisect_right(ids, note_id)
    ids.insert(i, note_id)
    freqs.insert(i, frequency)


class InvertedIndex:
    """
    Inverted index with per-posting term frequency.

    Readers (postings_for, export) run concurrently. Writers (insert,
    index_note, rebuild, restore) are serialized; rebuild builds the new table
    on the side and swaps it in, so a search never sees a half-built index.

    Duplicate (note_id, term) inserts are not detected: the caller feeds each
    note exactly once.
    """

    def __init__(self, tokenizer: Optional[Tokenizer] = None):
        self.tokenizer = tokenizer or Tokenizer()
        self._table: PostingTable = {}
        self._note_count = 0
        self._last_note_id = 0
        self._rw = ReadWriteLock()
        self._writers = threading.Lock()

    # --- writes ---
    def insert(self, note_id: int, term: str, frequency: int):
        with self._writers, self._rw.write():
            _insert_into(self._table, note_id, term, frequency)

    def index_note(self, note_id: int, terms: Iterable[str]):
        """Add one note's terms (raw, with repeats) as postings."""
        counts = Counter(terms)
        with self._writers, self._rw.write():
            for term, tf in counts.items():
                _insert_into(self._table, note_id, term, tf)
            self._note_count += 1
            self._last_note_id = max(self._last_note_id, note_id)

    def rebuild(self, notes: Iterable[Note]):
        """
        Replace the whole index with one built from `notes`, in order.
        If iterating `notes` fails, the previous index stays in place.
        """
        with self._writers:
            table: PostingTable = {}
            count = 0
            last = 0
            for note in notes:
                for term, tf in Counter(self.tokenizer.tokenize(note.content)).items():
                    _insert_into(table, note.id, term, tf)
                count += 1
                last = max(last, note.id)
            with self._rw.write():
                self._table = table
                self._note_count = count
                self._last_note_id = last

    def restore(self, table: PostingTable, note_count: int, last_note_id: int):
        """Install a table loaded from a snapshot."""
        with self._writers, self._rw.write():
            self._table = table
            self._note_count = note_count
            self._last_note_id = last_note_id

    def clear(self):
        self.restore({}, 0, 0)

    # --- reads ---
    def postings_for(self, term: str) -> List[Posting]:
        """Postings of `term` ascending by note id; [] if unknown."""
        with self._rw.read():
            entry = self._table.get(term)
            if entry is None:
                return []
            return [Posting(d, f) for d, f in zip(*entry)]

    def document_frequency(self, term: str) -> int:
        with self._rw.read():
            entry = self._table.get(term)
            return len(entry[0]) if entry else 0

    def terms(self) -> List[str]:
        with self._rw.read():
            return sorted(self._table)

    def export(self) -> Tuple[PostingTable, int, int]:
        """
        Consistent copy of (table, note_count, last_note_id) for snapshotting
        and comparisons.
        """
        with self._rw.read():
            table = {t: (list(ids), list(freqs)) for t, (ids, freqs) in self._table.items()}
            return table, self._note_count, self._last_note_id

    @property
    def note_count(self) -> int:
        return self._note_count

    @property
    def last_note_id(self) -> int:
        return self._last_note_id

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, term) -> bool:
        return term in self._table
