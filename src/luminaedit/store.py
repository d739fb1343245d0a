"""Asset store — durable blob storage for imported media, keyed by name.

Contract:
  put(name, data)  -> None, or StorageExhausted
  get(name)        -> bytes, or AssetNotFoundError / ReadPermissionLost
  delete(name)     -> None (missing names are ignored)
  list()           -> [{"name", "size", "thumbnail"}]

Two implementations: DirectoryAssetStore (files on disk, optional byte
quota) and MemoryAssetStore (tests, throwaway sessions).
"""

import errno
import json
import logging
from pathlib import Path

from .errors import AssetNotFoundError, ReadPermissionLost, StorageExhausted

logger = logging.getLogger(__name__)


class AssetStore:
    """Interface shared by the store implementations."""

    def put(self, name: str, data: bytes) -> None:
        raise NotImplementedError

    def get(self, name: str) -> bytes:
        raise NotImplementedError

    def delete(self, name: str) -> None:
        raise NotImplementedError

    def list(self) -> list[dict]:
        raise NotImplementedError

    def set_thumbnail(self, name: str, ref: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        for entry in self.list():
            self.delete(entry["name"])

    def path_for(self, name: str) -> Path | None:
        """Filesystem path of a stored blob, if the store has one."""
        return None

    def __contains__(self, name: str) -> bool:
        return any(e["name"] == name for e in self.list())


class MemoryAssetStore(AssetStore):
    def __init__(self, quota_bytes: int | None = None):
        self.quota_bytes = quota_bytes
        self._blobs: dict[str, bytes] = {}
        self._thumbnails: dict[str, str] = {}

    def put(self, name: str, data: bytes) -> None:
        if self.quota_bytes is not None:
            used = sum(len(b) for n, b in self._blobs.items() if n != name)
            if used + len(data) > self.quota_bytes:
                raise StorageExhausted(name, needed=len(data))
        self._blobs[name] = bytes(data)

    def get(self, name: str) -> bytes:
        try:
            return self._blobs[name]
        except KeyError:
            raise AssetNotFoundError(name) from None

    def delete(self, name: str) -> None:
        self._blobs.pop(name, None)
        self._thumbnails.pop(name, None)

    def list(self) -> list[dict]:
        return [
            {"name": n, "size": len(b), "thumbnail": self._thumbnails.get(n)}
            for n, b in self._blobs.items()
        ]

    def set_thumbnail(self, name: str, ref: str) -> None:
        if name not in self._blobs:
            raise AssetNotFoundError(name)
        self._thumbnails[name] = ref


class DirectoryAssetStore(AssetStore):
    """Blobs as files in one directory, thumbnails in a JSON sidecar."""

    THUMBNAIL_INDEX = ".thumbnails.json"

    def __init__(self, root: str | Path, quota_bytes: int | None = None):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.quota_bytes = quota_bytes

    def _path(self, name: str) -> Path:
        p = self.root / name
        if p.parent != self.root or name == self.THUMBNAIL_INDEX:
            raise ValueError(f"Invalid asset name: '{name}'")
        return p

    def _usage(self, exclude: str | None = None) -> int:
        return sum(
            p.stat().st_size for p in self.root.iterdir()
            if p.is_file() and p.name not in (exclude, self.THUMBNAIL_INDEX)
        )

    def put(self, name: str, data: bytes) -> None:
        path = self._path(name)
        if self.quota_bytes is not None and self._usage(exclude=name) + len(data) > self.quota_bytes:
            raise StorageExhausted(name, needed=len(data))

        try:
            path.write_bytes(data)
        except OSError as e:
            # Don't leave a truncated blob behind.
            path.unlink(missing_ok=True)
            if e.errno in (errno.ENOSPC, errno.EDQUOT):
                raise StorageExhausted(name, needed=len(data)) from e
            raise
        logger.info("Saved %s to store (%d bytes)", name, len(data))

    def get(self, name: str) -> bytes:
        path = self._path(name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise AssetNotFoundError(name) from None
        except PermissionError as e:
            raise ReadPermissionLost(name, str(e)) from e

    def delete(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)
        index = self._load_index()
        if index.pop(name, None) is not None:
            self._save_index(index)
        logger.info("Deleted %s from store", name)

    def list(self) -> list[dict]:
        index = self._load_index()
        return [
            {"name": p.name, "size": p.stat().st_size, "thumbnail": index.get(p.name)}
            for p in sorted(self.root.iterdir())
            if p.is_file() and p.name != self.THUMBNAIL_INDEX
        ]

    def set_thumbnail(self, name: str, ref: str) -> None:
        if not self._path(name).exists():
            raise AssetNotFoundError(name)
        index = self._load_index()
        index[name] = ref
        self._save_index(index)

    def path_for(self, name: str) -> Path | None:
        return self._path(name)

    def _load_index(self) -> dict:
        p = self.root / self.THUMBNAIL_INDEX
        if not p.exists():
            return {}
        with open(p) as f:
            return json.load(f)

    def _save_index(self, index: dict) -> None:
        with open(self.root / self.THUMBNAIL_INDEX, "w") as f:
            json.dump(index, f)
