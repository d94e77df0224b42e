"""State store implementations: in-memory and JSON file."""

import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import ValidationError
from .models import StateEntry, StateDocument, STATE_FORMAT_VERSION
from ..ingest.models import ResourceRef
from ..utils.errors import StateStoreError
from ..utils.logging import get_logger

logger = get_logger("state.store")


class StateStore(ABC):
    """
    Persisted record of last-known resource identifiers and fingerprints.

    Every write is keyed by a unique (kind, name) identity. Implementations
    must be safe to call from several executor worker threads at once.
    """

    @abstractmethod
    def load(self) -> List[StateEntry]:
        """Return every state entry, sorted by ref key."""
        pass

    @abstractmethod
    def upsert(self, entry: StateEntry) -> None:
        """Insert or replace the entry for entry.ref."""
        pass

    @abstractmethod
    def remove(self, ref: ResourceRef) -> None:
        """Remove the entry for ref (no-op if absent)."""
        pass

    def get(self, ref: ResourceRef) -> Optional[StateEntry]:
        """Return the entry for ref, if any."""
        for entry in self.load():
            if entry.ref == ref:
                return entry
        return None


class MemoryStateStore(StateStore):
    """State kept in process memory; used for tests and dry runs."""

    def __init__(self, entries: Optional[List[StateEntry]] = None):
        self._lock = threading.Lock()
        self._entries: Dict[str, StateEntry] = {}
        for entry in entries or []:
            self._entries[entry.ref.key] = entry

    def load(self) -> List[StateEntry]:
        with self._lock:
            return [self._entries[key].model_copy(deep=True) for key in sorted(self._entries)]

    def get(self, ref: ResourceRef) -> Optional[StateEntry]:
        with self._lock:
            entry = self._entries.get(ref.key)
            return entry.model_copy(deep=True) if entry else None

    def upsert(self, entry: StateEntry) -> None:
        with self._lock:
            self._entries[entry.ref.key] = entry.model_copy(deep=True)

    def remove(self, ref: ResourceRef) -> None:
        with self._lock:
            self._entries.pop(ref.key, None)


class FileStateStore(StateStore):
    """
    State persisted as a JSON document.

    The whole document is rewritten on each upsert/remove through a temporary
    file and os.replace, so a crash never leaves a half-written state file.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._document: Optional[StateDocument] = None

    def load(self) -> List[StateEntry]:
        with self._lock:
            self._document = self._read()
            return [entry.model_copy(deep=True) for entry in self._document.resources]

    def get(self, ref: ResourceRef) -> Optional[StateEntry]:
        with self._lock:
            document = self._current()
            for entry in document.resources:
                if entry.ref == ref:
                    return entry.model_copy(deep=True)
            return None

    def upsert(self, entry: StateEntry) -> None:
        with self._lock:
            document = self._current()
            entries = {existing.ref.key: existing for existing in document.resources}
            entries[entry.ref.key] = entry.model_copy(deep=True)
            self._write(document, entries)
            logger.debug(f"State upserted: {entry.ref.key} ({entry.remote_id})")

    def remove(self, ref: ResourceRef) -> None:
        with self._lock:
            document = self._current()
            entries = {existing.ref.key: existing for existing in document.resources}
            if entries.pop(ref.key, None) is None:
                return
            self._write(document, entries)
            logger.debug(f"State removed: {ref.key}")

    def _current(self) -> StateDocument:
        if self._document is None:
            self._document = self._read()
        return self._document

    def _read(self) -> StateDocument:
        if not self.path.exists():
            return StateDocument()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateStoreError(f"State file {self.path} is not valid JSON: {e}")
        except OSError as e:
            raise StateStoreError(f"Cannot read state file {self.path}: {e}")

        try:
            document = StateDocument(**data)
        except (ValidationError, TypeError) as e:
            raise StateStoreError(f"State file {self.path} has an invalid structure: {e}")

        if document.version > STATE_FORMAT_VERSION:
            raise StateStoreError(
                f"State file {self.path} uses format version {document.version}; "
                f"this release understands up to {STATE_FORMAT_VERSION}"
            )
        return document

    def _write(self, document: StateDocument, entries: Dict[str, StateEntry]) -> None:
        updated = StateDocument(
            version=STATE_FORMAT_VERSION,
            serial=document.serial + 1,
            resources=[entries[key] for key in sorted(entries)],
        )
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(updated.model_dump(mode="json"), f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StateStoreError(f"Cannot write state file {self.path}: {e}")
        self._document = updated
