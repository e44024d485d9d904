import asyncio
import json
import os
from typing import Any, Dict
from linkdrop.storage.base import LinkStore, StoreError, StoreNotFound


class FileStore(LinkStore):
    """Local JSON file, for development and single-host deployments."""
    name = "file"

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise StoreNotFound(str(e)) from e
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreError(f"cannot read {self.path}: {e}") from e

    def _write(self, blob: Dict[str, Any]) -> None:
        tmp = f"{self.path}.tmp"
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(blob, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StoreError(f"cannot write {self.path}: {e}") from e

    async def load(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._read)

    async def save(self, blob: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, blob)
