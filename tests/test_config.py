# tests/test_config.py
from notesearch.config import EngineConfig


def test_defaults():
    cfg = EngineConfig()
    assert cfg.min_token_length == 2
    assert cfg.search_limit == 10
    assert cfg.snapshot_enabled is True


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("NOTESEARCH_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("NOTESEARCH_MIN_TOKEN_LENGTH", "3")
    monkeypatch.setenv("NOTESEARCH_SEARCH_LIMIT", "25")
    cfg = EngineConfig.from_env()
    assert cfg.data_dir == str(tmp_path)
    assert cfg.min_token_length == 3
    assert cfg.search_limit == 25


def test_overrides_win_and_none_is_ignored(monkeypatch):
    monkeypatch.setenv("NOTESEARCH_SEARCH_LIMIT", "25")
    cfg = EngineConfig.from_env(search_limit=5, data_dir=None)
    assert cfg.search_limit == 5
    assert cfg.data_dir  # env or default, not None
