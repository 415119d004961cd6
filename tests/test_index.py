# tests/test_index.py
import threading

import pytest

from notesearch.index import InvertedIndex, Posting
from notesearch.notelog import Note
from notesearch.tokenizer import Tokenizer

NOTES = [
    Note(1, "coffee has caffeine and caffeine gives energy", 0.0),
    Note(2, "Paris is the capital of France", 0.0),
    Note(3, "photosynthesis turns light into chemical energy", 0.0),
    Note(4, "the Great Wall of China is very long", 0.0),
    Note(5, "", 0.0),
    Note(6, "machine learning learns from data; learning never stops", 0.0),
]


def build_incremental(notes, tokenizer=None):
    tokenizer = tokenizer or Tokenizer()
    idx = InvertedIndex(tokenizer)
    for n in notes:
        idx.index_note(n.id, tokenizer.tokenize(n.content))
    return idx


def test_unknown_term_has_no_postings():
    idx = InvertedIndex()
    assert idx.postings_for("nothing") == []
    assert idx.document_frequency("nothing") == 0


def test_insert_appends_in_id_order():
    idx = InvertedIndex()
    idx.insert(1, "tea", 2)
    idx.insert(4, "tea", 1)
    idx.insert(9, "tea", 3)
    assert idx.postings_for("tea") == [Posting(1, 2), Posting(4, 1), Posting(9, 3)]


def test_out_of_order_insert_stays_sorted():
    idx = InvertedIndex()
    for nid in (5, 2, 8, 1):
        idx.insert(nid, "tea", nid * 10)
    assert [p.note_id for p in idx.postings_for("tea")] == [1, 2, 5, 8]
    assert [p.frequency for p in idx.postings_for("tea")] == [10, 20, 50, 80]


def test_duplicates_are_not_detected():
    idx = InvertedIndex()
    idx.insert(3, "tea", 1)
    idx.insert(3, "tea", 1)
    assert idx.postings_for("tea") == [Posting(3, 1), Posting(3, 1)]


def test_index_note_counts_frequencies():
    idx = build_incremental(NOTES)
    assert idx.postings_for("caffeine") == [Posting(1, 2)]
    assert idx.postings_for("energy") == [Posting(1, 1), Posting(3, 1)]
    assert idx.postings_for("learning") == [Posting(6, 2)]
    assert idx.note_count == len(NOTES)
    assert idx.last_note_id == 6


def test_postings_are_copies():
    idx = build_incremental(NOTES)
    got = idx.postings_for("energy")
    got.append(Posting(99, 1))
    assert idx.postings_for("energy") == [Posting(1, 1), Posting(3, 1)]


def test_rebuild_matches_incremental():
    """rebuild(notes) must give exactly the table incremental indexing gives."""
    inc = build_incremental(NOTES)
    reb = InvertedIndex(Tokenizer())
    reb.insert(77, "stale", 1)  # wiped by rebuild
    reb.rebuild(iter(NOTES))
    assert reb.export() == inc.export()
    assert "stale" not in reb


def test_rebuild_failure_keeps_previous_index():
    idx = build_incremental(NOTES[:2])
    before = idx.export()

    def broken():
        yield NOTES[2]
        raise OSError("disk went away")

    with pytest.raises(OSError):
        idx.rebuild(broken())
    assert idx.export() == before


def test_rebuild_respects_tokenizer_min_length():
    idx = InvertedIndex(Tokenizer(min_length=4))
    idx.rebuild([Note(1, "the cat sat upon a mat", 0.0)])
    assert idx.terms() == ["upon"]


def test_restore_and_clear():
    src = build_incremental(NOTES)
    table, count, last = src.export()
    dst = InvertedIndex()
    dst.restore(table, count, last)
    assert dst.export() == src.export()
    dst.clear()
    assert len(dst) == 0 and dst.note_count == 0 and dst.last_note_id == 0


def test_readers_never_see_partial_rebuild():
    """While rebuilds swap tables, every read sees either the old or the new posting list."""
    small = [Note(i, "shared word", 0.0) for i in range(1, 4)]
    large = [Note(i, "shared word", 0.0) for i in range(1, 201)]
    idx = InvertedIndex()
    idx.rebuild(small)
    seen = set()
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            seen.add(len(idx.postings_for("shared")))

    t = threading.Thread(target=reader)
    t.start()
    for _ in range(20):
        idx.rebuild(large)
        idx.rebuild(small)
    stop.set()
    t.join()
    assert seen <= {3, 200}
