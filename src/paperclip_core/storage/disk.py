from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from paperclip_core.errors import CacheReadError, CacheSaveError, NoStorageLocation

logger = logging.getLogger(__name__)

DEFAULT_APP_ID = "com.classifiedlist.app"


def default_cache_root() -> Path:
    xdg_cache = os.environ.get("XDG_CACHE_HOME", "").strip()
    if xdg_cache:
        return Path(xdg_cache)
    return Path.home() / ".cache"


class DiskStore:
    """Durable key -> bytes storage, one file per key."""

    def __init__(self, directory: str | Path | None = None, *, app_id: str = DEFAULT_APP_ID) -> None:
        if not app_id.strip():
            raise ValueError("app_id must not be empty")

        try:
            base = Path(directory) if directory is not None else default_cache_root() / app_id
            base.mkdir(parents=True, exist_ok=True)
        except (OSError, RuntimeError) as exc:
            raise NoStorageLocation(directory or app_id, str(exc)) from exc

        if not base.is_dir() or not os.access(base, os.W_OK):
            raise NoStorageLocation(base, "directory is not writable")

        self.directory = base

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            payload = path.read_bytes()
        except FileNotFoundError:
            logger.info("disk_store miss key=%s", path.name)
            return None
        except OSError as exc:
            raise CacheReadError(key, exc) from exc

        logger.info("disk_store hit key=%s bytes=%d", path.name, len(payload))
        return payload

    def put(self, key: str, payload: bytes) -> None:
        path = self._path(key)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".", suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise CacheSaveError(key, exc) from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        logger.info("disk_store set key=%s bytes=%d", path.name, len(payload))

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise CacheReadError(key, exc) from exc

    def clear(self) -> None:
        try:
            for path in self.directory.iterdir():
                if path.is_file() and not path.name.startswith("."):
                    path.unlink(missing_ok=True)
        except OSError as exc:
            raise CacheReadError(None, exc) from exc

    def keys(self) -> list[str]:
        return sorted(
            path.name
            for path in self.directory.iterdir()
            if path.is_file() and not path.name.startswith(".")
        )

    @staticmethod
    def sanitize_key(key: str) -> str:
        return key.replace("/", "_").replace(":", "_")

    def _path(self, key: str) -> Path:
        return self.directory / self.sanitize_key(key)
