# notesearch/config.py

import os
from dataclasses import dataclass, replace

from notesearch.paths import DATA_DIR


@dataclass(frozen=True)
class EngineConfig:
    """
    Runtime knobs for a NotesService.

    data_dir          directory holding notes.log and index.snap
    min_token_length  tokens shorter than this are dropped (query and index alike)
    search_limit      default number of results for search_notes()
    snapshot_enabled  write index snapshots in the background
    snapshot_delay    seconds to wait after an add before snapshotting, so bursts
                      of adds produce one snapshot
    fsync             fsync the log after every append (turn off only in tests)
    """
    data_dir: str = DATA_DIR
    min_token_length: int = 2
    search_limit: int = 10
    snapshot_enabled: bool = True
    snapshot_delay: float = 0.5
    fsync: bool = True

    @classmethod
    def from_env(cls, **overrides) -> "EngineConfig":
        cfg = cls(
            data_dir=os.environ.get("NOTESEARCH_DATA_DIR", DATA_DIR),
            min_token_length=int(os.environ.get("NOTESEARCH_MIN_TOKEN_LENGTH", 2)),
            search_limit=int(os.environ.get("NOTESEARCH_SEARCH_LIMIT", 10)),
            snapshot_delay=float(os.environ.get("NOTESEARCH_SNAPSHOT_DELAY", 0.5)),
        )
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(cfg, **overrides)
