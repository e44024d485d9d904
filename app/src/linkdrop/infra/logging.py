import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp
import discord

logger = logging.getLogger(__name__)

_LOG_START_TIME = time.time()

def _fmt_val(v: Any) -> str:
    if v is None:
        return "-"
    if isinstance(v, (int, float)):
        return str(v)
    s = str(v)
    if any(ch in s for ch in [' ', '=', '\n', '\t']):
        s = s.replace('\n', '↵')[:400]
        return f'"{s}"'
    return s[:400]

def log_event(event: str, **fields: Any) -> None:
    """Structured event logging.
    Format: key=value space separated single line for easy grep & ingestion.
    Automatically injects uptime_s since process start.
    """
    uptime = time.time() - _LOG_START_TIME
    base: Dict[str, Any] = {"event": event, "uptime_s": f"{uptime:.1f}"}
    base.update(fields)
    parts = []
    for k, v in base.items():
        parts.append(f"{k}={_fmt_val(v)}")
    logger.info(' '.join(parts))


class AuditLog:
    """Human readable audit trail posted to a Discord webhook.

    Every line is also written to the local logger, so a broken webhook
    only loses the remote copy.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._webhook: Optional[discord.Webhook] = None

    def _get_webhook(self) -> Optional[discord.Webhook]:
        if not self.webhook_url:
            return None
        if self._webhook is None:
            if self._session is None:
                self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._webhook = discord.Webhook.from_url(self.webhook_url, session=self._session)
        return self._webhook

    async def send(self, text: str) -> bool:
        logger.info(f"[audit] {text}")
        try:
            webhook = self._get_webhook()
            if webhook is None:
                return False
            await asyncio.wait_for(webhook.send(text[:2000]), timeout=self.timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"[audit] webhook send timed out after {self.timeout}s")
            return False
        except (discord.HTTPException, aiohttp.ClientError, ValueError) as e:
            logger.warning(f"[audit] webhook send failed error={e}")
            return False

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


__all__ = ["logger", "log_event", "AuditLog"]
