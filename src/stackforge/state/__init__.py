"""State store: persisted record of what has been provisioned."""

from .models import StateEntry, StateDocument
from .store import StateStore, MemoryStateStore, FileStateStore

__all__ = [
    "StateEntry",
    "StateDocument",
    "StateStore",
    "MemoryStateStore",
    "FileStateStore",
]
