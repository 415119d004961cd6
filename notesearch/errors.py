# notesearch/errors.py
"""
Failure taxonomy for the note store and search engine.

    StorageIOError    durable write/read failed; fatal to the call that hit it
    NotFoundError     unknown note id; the caller decides what to do
    CorruptIndexError snapshot or in-memory index disagrees with the note log;
                      recovered by rebuilding the index from the log
"""


class NoteSearchError(Exception):
    """Base class for every error raised by notesearch."""


class StorageIOError(NoteSearchError):
    def __init__(self, message: str, path: str | None = None):
        super().__init__(message if path is None else f"{message} ({path})")
        self.path = path


class NotFoundError(NoteSearchError, KeyError):
    def __init__(self, note_id: int):
        super().__init__(note_id)
        self.note_id = note_id

    def __str__(self):
        return f"note {self.note_id} not found"


class CorruptIndexError(NoteSearchError):
    pass
