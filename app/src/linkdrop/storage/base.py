"""Blob store abstraction.

The whole allocator state is persisted as a single JSON object. A backend only
needs to fetch that object and overwrite it; there is no merge, no versioning
and no partial write.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class StoreError(Exception):
    """Backend unreachable, non-success status or unreadable payload."""

    def __init__(self, detail: str, status: Optional[int] = None):
        super().__init__(detail if status is None else f"{status} {detail}")
        self.status = status
        self.detail = detail


class StoreNotFound(StoreError):
    """The blob does not exist yet."""


class LinkStore:
    name = "abstract"

    async def load(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def save(self, blob: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


__all__ = ["LinkStore", "StoreError", "StoreNotFound"]
