"""Durable key-value stores used as the persistent cache tier."""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Dict, Optional, Protocol

from locator.errors import PersistenceFailure


class KeyValueStore(Protocol):
    """Byte-oriented storage addressed by string keys.

    Implementations signal I/O problems with ``PersistenceFailure``.
    """

    async def read(self, key: str) -> Optional[bytes]:
        ...

    async def write(self, key: str, value: bytes) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Dictionary-backed store; survives only as long as the object."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}

    async def read(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def write(self, key: str, value: bytes) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore:
    """One file per key under ``root``; I/O runs off the event loop.

    Writes go to a temporary sibling and are renamed into place so a crash
    never leaves a half-written record behind.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise PersistenceFailure(f"invalid storage key: {key!r}")
        return self._root / f"{key}.json"

    async def read(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(self._read_bytes, path)
        except OSError as exc:
            raise PersistenceFailure(f"read {path}: {exc}") from exc

    async def write(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write_bytes, path, value)
        except OSError as exc:
            raise PersistenceFailure(f"write {path}: {exc}") from exc

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise PersistenceFailure(f"delete {path}: {exc}") from exc

    @staticmethod
    def _read_bytes(path: Path) -> Optional[bytes]:
        if not path.exists():
            return None
        return path.read_bytes()

    @staticmethod
    def _write_bytes(path: Path, value: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(value)
        os.replace(tmp, path)
