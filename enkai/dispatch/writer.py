"""Write capabilities: persist a task's payload to its destination."""

import asyncio
from pathlib import Path
from typing import Dict, Optional, Union

from ..errors import WriteError


class FileWriter:
    """Writes UTF-8 text under ``root``; parent directories are created as needed."""

    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root).expanduser() if root else None

    def resolve(self, destination: str) -> Path:
        path = Path(destination).expanduser()
        if self.root is not None and not path.is_absolute():
            path = self.root / path
        return path

    async def __call__(self, destination: str, payload: str) -> None:
        await self.write(destination, payload)

    async def write(self, destination: str, payload: str) -> None:
        if not destination:
            raise WriteError(destination, "empty destination")
        path = self.resolve(destination)
        try:
            await asyncio.to_thread(self._write_sync, path, payload)
        except OSError as e:
            raise WriteError(destination, str(e)) from e

    @staticmethod
    def _write_sync(path: Path, payload: Union[str, bytes]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(payload, bytes):
            path.write_bytes(payload)
        else:
            path.write_text(payload, encoding="utf-8")


class MemoryWriter:
    """Keeps payloads in a dict instead of touching the filesystem (dry runs)."""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = files if files is not None else {}

    async def __call__(self, destination: str, payload: str) -> None:
        await self.write(destination, payload)

    async def write(self, destination: str, payload: str) -> None:
        if not destination:
            raise WriteError(destination, "empty destination")
        self.files[destination] = payload
