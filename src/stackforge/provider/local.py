"""Local provider: simulated remote objects held in memory or a JSON file."""

import copy
import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from .base import ProviderAdapter
from ..policy.registry import PolicyTable, build_policy_table, get_policy
from ..utils.errors import NotFoundError, ProviderError
from ..utils.logging import get_logger

logger = get_logger("provider.local")

_ID_PREFIXES = {
    "vpc": "vpc",
    "subnet": "subnet",
    "internet_gateway": "igw",
    "route_table": "rtb",
    "security_group": "sg",
    "instance": "i",
    "efs_file_system": "fs",
    "efs_mount_target": "fsmt",
}


class LocalProvider(ProviderAdapter):
    """
    Provider that keeps "remote" objects locally.

    Remote ids are sequential per provider so runs are reproducible. With a
    path, objects survive between CLI invocations; without one they live only
    as long as the instance.
    """

    name = "local"

    def __init__(
        self,
        path: Optional[str] = None,
        region: str = "us-east-1",
        account_id: str = "000000000000",
        policies: Optional[PolicyTable] = None
    ):
        self.path = Path(path) if path else None
        self.region = region
        self.account_id = account_id
        self._policies = policies or build_policy_table()
        self._lock = threading.Lock()
        self._objects: Dict[str, Dict[str, Any]] = {}
        self._next_id = 1
        if self.path is not None:
            self._load()

    def create(self, kind: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        self._reject_placeholders(kind, attributes)
        with self._lock:
            prefix = _ID_PREFIXES.get(kind, kind.replace("_", "-"))
            remote_id = f"{prefix}-{self._next_id:08x}"
            self._next_id += 1
            self._objects[remote_id] = {"kind": kind, "attributes": copy.deepcopy(attributes)}
            self._save()
            effective = self._effective(kind, remote_id)
        logger.debug(f"Created {kind} {remote_id}")
        return remote_id, effective

    def read(self, kind: str, remote_id: str) -> Dict[str, Any]:
        with self._lock:
            self._require(kind, remote_id)
            return self._effective(kind, remote_id)

    def update(self, kind: str, remote_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        self._reject_placeholders(kind, attributes)
        with self._lock:
            self._require(kind, remote_id)
            self._objects[remote_id]["attributes"] = copy.deepcopy(attributes)
            self._save()
            effective = self._effective(kind, remote_id)
        logger.debug(f"Updated {kind} {remote_id}")
        return effective

    def destroy(self, kind: str, remote_id: str) -> None:
        with self._lock:
            self._require(kind, remote_id)
            del self._objects[remote_id]
            self._save()
        logger.debug(f"Destroyed {kind} {remote_id}")

    def forget(self, remote_id: str) -> None:
        """Drop an object behind the engine's back, simulating out-of-band deletion."""
        with self._lock:
            self._objects.pop(remote_id, None)
            self._save()

    def object_count(self) -> int:
        with self._lock:
            return len(self._objects)

    def _require(self, kind: str, remote_id: str) -> None:
        stored = self._objects.get(remote_id)
        if stored is None or stored["kind"] != kind:
            raise NotFoundError(f"{kind} {remote_id} does not exist")

    def _effective(self, kind: str, remote_id: str) -> Dict[str, Any]:
        effective = copy.deepcopy(self._objects[remote_id]["attributes"])
        arn = f"arn:aws:{kind}:{self.region}:{self.account_id}:{remote_id}"
        computed = {"id": remote_id, "arn": arn}
        for output in get_policy(self._policies, kind).outputs:
            effective.setdefault(output, computed.get(output, f"{remote_id}.{output}"))
        effective["id"] = remote_id
        return effective

    def _reject_placeholders(self, kind: str, attributes: Dict[str, Any]) -> None:
        if "${" in json.dumps(attributes, default=str):
            raise ProviderError(f"Refusing to send unresolved placeholders to {kind}: {attributes}")

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ProviderError(f"Cannot read local provider store {self.path}: {e}")
        self._objects = data.get("objects", {})
        self._next_id = data.get("next_id", len(self._objects) + 1)

    def _save(self) -> None:
        if self.path is None:
            return
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump({"next_id": self._next_id, "objects": self._objects}, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise ProviderError(f"Cannot write local provider store {self.path}: {e}")
