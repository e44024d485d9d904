import aiohttp
import asyncio
import json
from typing import Any, Dict, Optional
from linkdrop.storage.base import LinkStore, StoreError, StoreNotFound
from linkdrop.infra.logging import logger

DROPBOX_CONTENT_URL = "https://content.dropboxapi.com"


class DropboxStore(LinkStore):
    """Link history kept as one JSON file in Dropbox (content API v2)."""
    name = "dropbox"

    def __init__(
        self,
        token: str,
        path: str,
        base_url: str = DROPBOX_CONTENT_URL,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: float = 10,
    ):
        self.token = token
        self.path = path
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
        return self._session

    def _headers(self, arg: Dict[str, Any]) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Dropbox-API-Arg": json.dumps(arg),
        }

    async def load(self) -> Dict[str, Any]:
        try:
            session = self._get_session()
            async with session.post(
                f"{self.base_url}/2/files/download",
                headers=self._headers({"path": self.path}),
            ) as resp:
                if resp.status == 409:
                    # endpoint specific errors come back as 409 with a summary
                    text = await resp.text()
                    try:
                        summary = json.loads(text).get("error_summary", "")
                    except (json.JSONDecodeError, AttributeError):
                        summary = text
                    if summary.startswith("path/not_found"):
                        raise StoreNotFound(summary, status=resp.status)
                    raise StoreError(summary or "download failed", status=resp.status)
                if resp.status >= 400:
                    raise StoreError(resp.reason or "download failed", status=resp.status)
                raw = await resp.read()
        except aiohttp.ClientError as e:
            raise StoreError(f"dropbox request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"dropbox request timed out after {self.request_timeout}s") from e

        try:
            blob = json.loads(raw.decode("utf-8")) if raw.strip() else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreError(f"dropbox file is not valid json: {e}") from e
        logger.info(f"[dropbox] load ok path={self.path}")
        return blob

    async def save(self, blob: Dict[str, Any]) -> None:
        headers = self._headers({"path": self.path, "mode": "overwrite", "mute": True})
        headers["Content-Type"] = "application/octet-stream"
        try:
            session = self._get_session()
            async with session.post(
                f"{self.base_url}/2/files/upload",
                data=json.dumps(blob, indent=2).encode("utf-8"),
                headers=headers,
            ) as resp:
                if resp.status >= 400:
                    detail = await resp.text()
                    raise StoreError(detail[:200] or "upload failed", status=resp.status)
        except aiohttp.ClientError as e:
            raise StoreError(f"dropbox request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"dropbox request timed out after {self.request_timeout}s") from e
        logger.info(f"[dropbox] save ok path={self.path} users={len(blob)}")

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
