import aiohttp
import asyncio
import json
import time
from typing import Any, Dict, Optional
from linkdrop.storage.base import LinkStore, StoreError, StoreNotFound
from linkdrop.infra.logging import logger

JSONBIN_BASE_URL = "https://api.jsonbin.io/v3"


class JsonBinStore(LinkStore):
    """Link history kept in a single JSONBin bin.

    GET returns {"record": {...}, "metadata": {...}}; PUT replaces the record.
    """
    name = "jsonbin"

    def __init__(
        self,
        bin_id: str,
        api_key: str,
        base_url: str = JSONBIN_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: float = 10,
    ):
        self.url = f"{base_url.rstrip('/')}/b/{bin_id}"
        self.api_key = api_key
        self.request_timeout = request_timeout
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
        return self._session

    async def load(self) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            session = self._get_session()
            async with session.get(self.url, headers={"X-Master-Key": self.api_key}) as resp:
                if resp.status == 404:
                    raise StoreNotFound(resp.reason or "bin not found", status=resp.status)
                if resp.status >= 400:
                    raise StoreError(resp.reason or "load failed", status=resp.status)
                body = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise StoreError(f"jsonbin request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"jsonbin request timed out after {self.request_timeout}s") from e
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreError(f"jsonbin returned invalid json: {e}") from e

        if not isinstance(body, dict):
            raise StoreError("jsonbin response is not an object")
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"[jsonbin] load ok elapsed_ms={elapsed:.1f}")
        return body.get("record") or {}

    async def save(self, blob: Dict[str, Any]) -> None:
        start = time.perf_counter()
        headers = {
            "Content-Type": "application/json",
            "X-Master-Key": self.api_key,
        }
        try:
            session = self._get_session()
            async with session.put(self.url, data=json.dumps(blob, indent=2), headers=headers) as resp:
                if resp.status >= 400:
                    raise StoreError(resp.reason or "save failed", status=resp.status)
        except aiohttp.ClientError as e:
            raise StoreError(f"jsonbin request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"jsonbin request timed out after {self.request_timeout}s") from e
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"[jsonbin] save ok users={len(blob)} elapsed_ms={elapsed:.1f}")

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
