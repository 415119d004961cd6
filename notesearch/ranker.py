# notesearch/ranker.py
import heapq
import math
from collections import defaultdict
from typing import List, Tuple

from notesearch.errors import CorruptIndexError, NotFoundError
from notesearch.index import InvertedIndex
from notesearch.store import NoteStore
from notesearch.tokenizer import Tokenizer


def length_normalized_tf(tf: int, doc_length: int) -> float:
    """Single-term contribution: tf damped by the log of the note's length."""
    return tf / (1.0 + math.log(1.0 + doc_length))


class QueryEngine:
    """
    Ranks notes for a free-text query.

    score(note) = sum over distinct query terms t present in the note of
                  tf(t, note) / (1 + ln(1 + length(note)))

    where length(note) is the note's term count. Results are ordered by score
    descending, then by note id descending, so newer notes win ties.

    The index, store and tokenizer are passed in; the tokenizer must be the
    one the index was built with.
    """

    def __init__(self, index: InvertedIndex, store: NoteStore, tokenizer: Tokenizer):
        self.index = index
        self.store = store
        self.tokenizer = tokenizer

    def score(self, query: str) -> dict[int, float]:
        """
        Scores for every note matching at least one query term.
        Raises CorruptIndexError if a posting points at a note the store does not have.
        """
        scores: defaultdict[int, float] = defaultdict(float)
        # repeated query terms count once
        for term in dict.fromkeys(self.tokenizer.tokenize(query)):
            for note_id, tf in self.index.postings_for(term):
                try:
                    dl = self.store.term_count(note_id)
                except NotFoundError:
                    raise CorruptIndexError(
                        f"index references note {note_id} for term {term!r}, "
                        f"but the log holds {len(self.store)} notes") from None
                scores[note_id] += length_normalized_tf(tf, dl)
        return scores

    def search(self, query: str, limit: int = 10) -> List[Tuple[int, float]]:
        """
        Top `limit` (note_id, score) pairs, best first.
        Empty or unmatched queries give [].
        """
        if limit <= 0:
            return []
        scores = self.score(query)
        if not scores:
            return []
        return heapq.nsmallest(limit, scores.items(), key=lambda x: (-x[1], -x[0]))
