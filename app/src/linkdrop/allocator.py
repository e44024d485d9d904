"""Rate-limited unique-draw allocator.

Each user may receive at most ``max_links`` links per cooldown window and never
receives the same link twice. The window starts at the user's first issuance
and resets on the first draw attempt after ``cooldown_ms`` has elapsed.
"""
from __future__ import annotations
import asyncio
import random
import time
from dataclasses import dataclass
from typing import Optional, Sequence
from linkdrop.state import AllocatorState, persist_state
from linkdrop.storage.base import LinkStore
from linkdrop.infra.logging import logger, log_event

_MS_PER_HOUR = 60 * 60 * 1000
_MS_PER_MINUTE = 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def format_cooldown(ms: int) -> str:
    hours = ms // _MS_PER_HOUR
    minutes = (ms % _MS_PER_HOUR) // _MS_PER_MINUTE
    return f"{hours} hours and {minutes} minutes"


class DrawRefused(Exception):
    pass


class CooldownActive(DrawRefused):
    def __init__(self, remaining_ms: int):
        self.remaining_ms = remaining_ms
        super().__init__(f"cooldown active, {self.wait_text} remaining")

    @property
    def wait_text(self) -> str:
        return format_cooldown(self.remaining_ms)


class CatalogExhausted(DrawRefused):
    def __init__(self):
        super().__init__("every link in the catalog has already been issued to this user")


@dataclass(frozen=True)
class Issued:
    item: str
    remaining_in_window: int


class LinkAllocator:
    def __init__(
        self,
        catalog: Sequence[str],
        state: AllocatorState,
        store: LinkStore,
        max_links: int,
        cooldown_ms: int,
        persist_timeout: float = 5,
        rng: Optional[random.Random] = None,
    ):
        self.catalog = tuple(catalog)
        self.state = state
        self.store = store
        self.max_links = max_links
        self.cooldown_ms = cooldown_ms
        self.persist_timeout = persist_timeout
        self._rng = rng or random.Random()
        self._lock = asyncio.Lock()
        self._clamp_loaded_counts()

    def _clamp_loaded_counts(self):
        # a lowered max_links must not leave loaded records above the new limit
        for user_id in self.state:
            record = self.state.get(user_id)
            if record.current_period_count > self.max_links:
                logger.warning(
                    f"[allocator] clamping currentPeriodCount user_id={user_id} "
                    f"count={record.current_period_count} max_links={self.max_links}"
                )
                record.current_period_count = self.max_links

    def remaining_cooldown_ms(self, user_id: str, now: Optional[int] = None) -> int:
        record = self.state.get(user_id)
        if record is None:
            return 0
        now = now_ms() if now is None else now
        since = now - record.last_period_start_time
        return 0 if since >= self.cooldown_ms else self.cooldown_ms - since

    def links_used(self, user_id: str) -> int:
        record = self.state.get(user_id)
        return record.current_period_count if record else 0

    async def draw(self, user_id: str, now: Optional[int] = None) -> Issued:
        """Issue one unseen link to ``user_id``.

        Raises CooldownActive or CatalogExhausted when the draw is refused.
        The state is persisted before returning; a failed persist is logged
        and does not undo the issuance.
        """
        async with self._lock:
            now = now_ms() if now is None else now
            record = self.state.get_or_create(user_id, now)

            if now - record.last_period_start_time >= self.cooldown_ms:
                record.current_period_count = 0
                record.last_period_start_time = now

            if record.current_period_count >= self.max_links:
                remaining = self.cooldown_ms - (now - record.last_period_start_time)
                log_event("draw_refused", user_id=user_id, reason="cooldown", remaining_ms=remaining)
                raise CooldownActive(remaining)

            seen = set(record.history)
            available = [item for item in self.catalog if item not in seen]
            if not available:
                log_event("draw_refused", user_id=user_id, reason="exhausted", history=len(seen))
                raise CatalogExhausted()

            choice = self._rng.choice(available)
            record.history.append(choice)
            record.current_period_count += 1
            if record.current_period_count == 1:
                record.last_period_start_time = now

            remaining_in_window = self.max_links - record.current_period_count
            log_event(
                "draw_issued",
                user_id=user_id,
                count=record.current_period_count,
                remaining=remaining_in_window,
                available=len(available) - 1,
            )
            await persist_state(self.store, self.state, timeout=self.persist_timeout)
            return Issued(item=choice, remaining_in_window=remaining_in_window)


__all__ = [
    "LinkAllocator",
    "Issued",
    "DrawRefused",
    "CooldownActive",
    "CatalogExhausted",
    "format_cooldown",
    "now_ms",
]
