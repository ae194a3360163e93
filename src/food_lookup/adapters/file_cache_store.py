"""File-backed persistent key-value store."""

import asyncio
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from food_lookup.services.curated import CacheStore

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass
class FileCacheStore(CacheStore):
    """Stores each key as a UTF-8 file under a directory."""

    directory: Path

    async def get(self, key: str) -> str | None:
        """Return the stored value for a key, if any."""
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing the file atomically."""
        await asyncio.to_thread(self._write, key, value)

    async def remove(self, key: str) -> None:
        """Delete a key if present."""
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def _read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            Path(tmp_name).replace(self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
