# tests/test_ranker.py
import math

import pytest

from notesearch.errors import CorruptIndexError
from notesearch.index import InvertedIndex
from notesearch.ranker import QueryEngine, length_normalized_tf
from notesearch.store import NoteStore
from notesearch.tokenizer import Tokenizer

TOY = [
    "Paris is the capital of France",                              # 1
    "The Great Wall of China is visible across northern China",    # 2
    "Photosynthesis converts light energy into chemical energy",   # 3
    "Coffee contains caffeine which gives you energy",             # 4
    "Machine learning is a field of artificial intelligence",      # 5
    "The human brain has billions of neurons",                     # 6
]


@pytest.fixture
def engine(tmp_path):
    tokenizer = Tokenizer()
    store = NoteStore(str(tmp_path / "notes.log"), tokenizer, fsync=False)
    index = InvertedIndex(tokenizer)
    for text in TOY:
        terms = tokenizer.tokenize(text)
        index.index_note(store.add(text, terms), terms)
    yield QueryEngine(index, store, tokenizer)
    store.close()


def test_formula():
    assert length_normalized_tf(2, 3) == pytest.approx(2 / (1 + math.log(4)))
    assert length_normalized_tf(1, 0) == pytest.approx(1.0)


def test_scores_match_formula(engine):
    # note 3 has 7 terms, "energy" twice
    res = dict(engine.search("energy", limit=10))
    assert res[3] == pytest.approx(2 / (1 + math.log(1 + 7)))
    # note 4 has 7 terms, "energy" once
    assert res[4] == pytest.approx(1 / (1 + math.log(1 + 7)))


def test_relevant_doc_highest(engine):
    pairs = [
        ("capital france", 1),
        ("great wall china", 2),
        ("coffee caffeine", 4),
        ("machine learning", 5),
        ("human brain neurons", 6),
        ("energy", 3),
    ]
    for query, expected in pairs:
        top = engine.search(query, limit=3)[0][0]
        assert top == expected, f"{query}: expected {expected}, got {top}"


def test_multi_term_scores_add_up(engine):
    both = dict(engine.search("coffee caffeine"))[4]
    one = dict(engine.search("coffee"))[4]
    assert both == pytest.approx(2 * one)


def test_repeated_query_terms_count_once(engine):
    assert engine.search("coffee coffee coffee") == engine.search("coffee")


def test_case_insensitive(engine):
    assert engine.search("COFFEE") == engine.search("coffee")


def test_union_of_terms(engine):
    ids = {d for d, _ in engine.search("paris neurons")}
    assert ids == {1, 6}


def test_limit(engine):
    assert len(engine.search("the of is", limit=2)) == 2
    assert engine.search("energy", limit=0) == []
    assert engine.search("energy", limit=-5) == []


def test_empty_query(engine):
    assert engine.search("") == []
    assert engine.search("   ?! ") == []
    assert engine.search("a") == []  # below min token length


def test_no_match_returns_empty(engine):
    assert engine.search("zzzznotfound") == []
    assert engine.search("quantum entanglement") == []


def test_ties_newest_first(tmp_path):
    tokenizer = Tokenizer()
    store = NoteStore(str(tmp_path / "t.log"), tokenizer, fsync=False)
    index = InvertedIndex(tokenizer)
    for text in ["hello world", "hello there", "unrelated words", "hello again"]:
        terms = tokenizer.tokenize(text)
        index.index_note(store.add(text, terms), terms)
    qe = QueryEngine(index, store, tokenizer)
    res = qe.search("hello")
    assert [d for d, _ in res] == [4, 2, 1]
    assert res[0][1] == res[1][1] == res[2][1]
    assert [d for d, _ in qe.search("hello", limit=2)] == [4, 2]
    store.close()


def test_dangling_posting_is_corruption(engine):
    engine.index.insert(500, "energy", 1)
    with pytest.raises(CorruptIndexError):
        engine.search("energy")
