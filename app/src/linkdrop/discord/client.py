from typing import Any, Iterable, List
import aiohttp
import discord
from linkdrop.infra.logging import logger


class LinkDropClient(discord.Client):
    """discord.Client that also closes the HTTP sessions held by the bot's helpers.

    ``resources`` are objects with an ``async close()``, e.g. the link store
    and the audit log.
    """

    def __init__(self, *, resources: Iterable[Any] = (), **options: Any):
        super().__init__(**options)
        self.resources: List[Any] = list(resources)

    async def close(self) -> None:
        for resource in self.resources:
            try:
                await resource.close()
            except (aiohttp.ClientError, OSError) as e:
                logger.warning(f"[shutdown] closing {type(resource).__name__} failed error={e}")
        self.resources.clear()
        await super().close()


__all__ = ["LinkDropClient"]
