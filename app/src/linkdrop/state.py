"""Per-user issuance records and their wire format.

Blob shape (shared with earlier deployments of the bot):

    {"<user id>": {"history": ["https://...", ...],
                   "currentPeriodCount": 2,
                   "lastPeriodStartTime": 1715000000000}}

Times are epoch milliseconds.
"""
from __future__ import annotations
import asyncio
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional
from linkdrop.storage.base import LinkStore, StoreError, StoreNotFound
from linkdrop.infra.logging import logger, log_event


class StateFormatError(ValueError):
    """Persisted blob does not have the expected shape."""


def _whole_number(user_id: str, name: str, value: Any) -> int:
    # bool is an int subclass; json also yields NaN, Infinity and 2.0 style floats
    if isinstance(value, bool):
        raise StateFormatError(f"{name} for {user_id} is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    raise StateFormatError(f"{name} for {user_id} is not an integer")


@dataclass
class UserRecord:
    history: List[str] = field(default_factory=list)
    current_period_count: int = 0
    last_period_start_time: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "history": list(self.history),
            "currentPeriodCount": self.current_period_count,
            "lastPeriodStartTime": self.last_period_start_time,
        }

    @classmethod
    def from_dict(cls, user_id: str, raw: Any) -> "UserRecord":
        if not isinstance(raw, dict):
            raise StateFormatError(f"record for {user_id} is not an object")
        history = raw.get("history", [])
        if not isinstance(history, list) or not all(isinstance(h, str) for h in history):
            raise StateFormatError(f"history for {user_id} is not a list of strings")
        count = _whole_number(user_id, "currentPeriodCount", raw.get("currentPeriodCount", 0))
        started = _whole_number(user_id, "lastPeriodStartTime", raw.get("lastPeriodStartTime", 0))
        if count < 0:
            raise StateFormatError(f"currentPeriodCount for {user_id} is negative")
        return cls(history=list(history), current_period_count=count, last_period_start_time=started)


class AllocatorState:
    """All user records. Loaded wholesale at startup and saved wholesale after each issuance."""

    def __init__(self, records: Optional[Dict[str, UserRecord]] = None):
        self.records: Dict[str, UserRecord] = records if records is not None else {}

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self.records

    def __iter__(self) -> Iterator[str]:
        return iter(self.records)

    def get(self, user_id: str) -> Optional[UserRecord]:
        return self.records.get(user_id)

    def get_or_create(self, user_id: str, now_ms: int) -> UserRecord:
        record = self.records.get(user_id)
        if record is None:
            record = UserRecord(last_period_start_time=now_ms)
            self.records[user_id] = record
        return record

    def to_blob(self) -> Dict[str, Any]:
        return {user_id: record.to_dict() for user_id, record in self.records.items()}

    @classmethod
    def from_blob(cls, blob: Any) -> "AllocatorState":
        if blob is None:
            return cls()
        if not isinstance(blob, dict):
            raise StateFormatError("state blob is not an object")
        return cls({str(k): UserRecord.from_dict(str(k), v) for k, v in blob.items()})


async def load_state(store: LinkStore, timeout: float = 10) -> AllocatorState:
    """Read the persisted state; any failure degrades to an empty state."""
    try:
        blob = await asyncio.wait_for(store.load(), timeout=timeout)
        state = AllocatorState.from_blob(blob)
    except StoreNotFound:
        log_event("state_load", backend=store.name, status="not_found")
        return AllocatorState()
    except asyncio.TimeoutError:
        logger.error(f"[state] load timed out backend={store.name} timeout_s={timeout}")
        return AllocatorState()
    except StoreError as e:
        logger.error(f"[state] load failed backend={store.name} error={e}")
        return AllocatorState()
    except StateFormatError as e:
        logger.error(f"[state] malformed blob discarded backend={store.name} error={e}")
        return AllocatorState()
    log_event("state_load", backend=store.name, status="ok", users=len(state))
    return state


async def persist_state(store: LinkStore, state: AllocatorState, timeout: float = 5) -> bool:
    """Overwrite the persisted blob. Failures are logged, never raised."""
    try:
        await asyncio.wait_for(store.save(state.to_blob()), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"[state] persist timed out backend={store.name} timeout_s={timeout}")
        return False
    except StoreError as e:
        logger.error(f"[state] persist failed backend={store.name} error={e}")
        return False
    log_event("state_persist", backend=store.name, users=len(state))
    return True


__all__ = [
    "UserRecord",
    "AllocatorState",
    "StateFormatError",
    "load_state",
    "persist_state",
]
