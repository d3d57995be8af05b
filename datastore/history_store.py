from __future__ import annotations

import copy
import json
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from settings import get_settings

_FORBIDDEN_CHARACTERS = frozenset(".#$[]")


def history_path(device_type: str, device_id: str, key: Optional[str] = None) -> str:
    """Build ``history/{device_type}/{device_id}[/{key}]``."""
    parts = ["history", str(device_type), str(device_id)]
    if key is not None:
        parts.append(str(key))
    return "/".join(parts)


def validate_path(path: str) -> List[str]:
    """Split ``path`` into segments, rejecting empty segments and forbidden characters."""
    segments = path.strip("/").split("/")
    for segment in segments:
        if not segment:
            raise ValueError(f"Path {path!r} contains an empty segment.")
        bad = _FORBIDDEN_CHARACTERS.intersection(segment)
        if bad:
            raise ValueError(
                f"Path segment {segment!r} contains forbidden characters: {''.join(sorted(bad))}"
            )
    return segments


class HistoryStore:
    """Path-addressed JSON tree with whole-file persistence."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._root: Dict[str, Any] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get(self, path: str) -> Optional[Any]:
        """Return a deep copy of the value at ``path`` or ``None`` when absent."""

        segments = validate_path(path)
        with self._lock:
            node = self._lookup(segments)
            return copy.deepcopy(node)

    def exists(self, path: str) -> bool:
        segments = validate_path(path)
        with self._lock:
            return self._lookup(segments) is not None

    def children(self, path: str) -> List[Any]:
        """Return copies of the values stored directly under ``path``."""

        value = self.get(path)
        if isinstance(value, dict):
            return list(value.values())
        return []

    def set(self, path: str, value: Any) -> None:
        segments = validate_path(path)
        with self._lock:
            self._assign(segments, value)
            self._persist()

    def put_if_absent(self, path: str, value: Any) -> bool:
        """Write ``value`` only when nothing is stored at ``path``; report whether it was written."""

        segments = validate_path(path)
        with self._lock:
            if self._lookup(segments) is not None:
                return False
            self._assign(segments, value)
            self._persist()
            return True

    def _lookup(self, segments: List[str]) -> Optional[Any]:
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _assign(self, segments: List[str], value: Any) -> None:
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = copy.deepcopy(value)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._root, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        if isinstance(data, dict):
            self._root = data


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> HistoryStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return HistoryStore(name=store_name, persistence_path=persistence)
