# notesearch/paths.py

import os

# --- Base data directory ---
DATA_DIR = "data"

# --- Append-only note log (source of truth) ---
LOG_NAME = "notes.log"
LOG_MAGIC = b"NLOG"
LOG_VERSION = 2

# --- Index snapshot (derived, rebuildable cache) ---
SNAPSHOT_NAME = "index.snap"
SNAPSHOT_MAGIC = b"NIDX"
SNAPSHOT_VERSION = 2


def log_path(data_dir: str = DATA_DIR) -> str:
    return os.path.join(data_dir, LOG_NAME)


def snapshot_path(data_dir: str = DATA_DIR) -> str:
    return os.path.join(data_dir, SNAPSHOT_NAME)
