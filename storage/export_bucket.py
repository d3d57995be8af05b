from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

from settings import get_settings


class ExportBucket:
    """Object bucket receiving exported report files, optionally mirrored to a directory."""

    def __init__(self, name: str, root_path: Optional[Path] = None) -> None:
        self.name = name
        self._objects: Dict[str, bytes] = {}
        self.root_path = root_path
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    def put_object(self, key: str, data: bytes) -> None:
        with self._lock:
            self._objects[key] = data
            if self.root_path:
                path = self.root_path / key
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)

    def get_object(self, key: str) -> bytes:
        with self._lock:
            data = self._objects.get(key)
            if data is not None:
                return data

        if self.root_path:
            path = self.root_path / key
            if path.is_file():
                data = path.read_bytes()
                with self._lock:
                    self._objects[key] = data
                return data

        raise KeyError(f"Export {key!r} not found in bucket {self.name!r}.")

    def list_objects(self) -> List[str]:
        with self._lock:
            keys = set(self._objects)

        if self.root_path:
            keys.update(
                path.relative_to(self.root_path).as_posix()
                for path in self.root_path.rglob("*")
                if path.is_file()
            )

        return sorted(keys)


@lru_cache
def build_default_bucket(
    name: Optional[str] = None,
    root_path: Optional[str] = None,
) -> ExportBucket:
    settings = get_settings()
    bucket_name = settings.export_bucket_name if name is None else name
    bucket_root = settings.export_root_path if root_path is None else root_path
    path = Path(bucket_root) if bucket_root else None
    return ExportBucket(name=bucket_name, root_path=path)
