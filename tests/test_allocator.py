"""Tests for `linkdrop.allocator`."""

from __future__ import annotations

import asyncio
import random

import pytest

from linkdrop.allocator import (
    CatalogExhausted,
    CooldownActive,
    Issued,
    LinkAllocator,
    format_cooldown,
)
from linkdrop.state import AllocatorState, UserRecord
from linkdrop.storage.base import LinkStore, StoreError

HOUR = 60 * 60 * 1000


class _MemoryStore(LinkStore):
    name = "memory"

    def __init__(self, fail: bool = False):
        self.saved: list[dict] = []
        self.fail = fail

    async def load(self):
        return self.saved[-1] if self.saved else {}

    async def save(self, blob):
        if self.fail:
            raise StoreError("backend down", status=503)
        self.saved.append(blob)


def _allocator(catalog, max_links=4, cooldown_ms=2 * HOUR, store=None, state=None):
    return LinkAllocator(
        catalog=catalog,
        state=state if state is not None else AllocatorState(),
        store=store or _MemoryStore(),
        max_links=max_links,
        cooldown_ms=cooldown_ms,
        rng=random.Random(1234),
    )


def _draw(allocator, user_id, now):
    return asyncio.run(allocator.draw(user_id, now=now))


# ----------------------------- format_cooldown -----------------------------

@pytest.mark.parametrize(
    "ms, expected",
    [
        (0, "0 hours and 0 minutes"),
        (400, "0 hours and 0 minutes"),
        (59_999, "0 hours and 0 minutes"),
        (60_000, "0 hours and 1 minutes"),
        (HOUR + 30 * 60_000 + 59_999, "1 hours and 30 minutes"),
        (12 * HOUR - 1, "11 hours and 59 minutes"),
    ],
)
def test_format_cooldown_floors_hours_and_minutes(ms, expected):
    assert format_cooldown(ms) == expected


# ------------------------------- draw -------------------------------------

def test_four_draws_then_cooldown():
    catalog = [f"https://example.com/{i}" for i in range(10)]
    allocator = _allocator(catalog)

    issued = [_draw(allocator, "u1", now=1_000 + i * 60_000) for i in range(4)]

    items = [i.item for i in issued]
    assert len(set(items)) == 4
    assert [i.remaining_in_window for i in issued] == [3, 2, 1, 0]

    fifth_at = 1_000 + 30 * 60_000 + 5_000
    with pytest.raises(CooldownActive) as excinfo:
        _draw(allocator, "u1", now=fifth_at)
    remaining = 2 * HOUR - (fifth_at - 1_000)
    assert excinfo.value.remaining_ms == remaining
    assert excinfo.value.wait_text == f"{remaining // HOUR} hours and {(remaining % HOUR) // 60_000} minutes"
    assert allocator.links_used("u1") == 4


def test_concrete_small_window_scenario():
    allocator = _allocator(["a", "b", "c"], max_links=2, cooldown_ms=1000)

    first = _draw(allocator, "U", now=0)
    record = allocator.state.get("U")
    assert first.item in {"a", "b", "c"}
    assert record.current_period_count == 1
    assert record.last_period_start_time == 0

    second = _draw(allocator, "U", now=500)
    assert second.item != first.item
    assert record.current_period_count == 2

    with pytest.raises(CooldownActive) as excinfo:
        _draw(allocator, "U", now=600)
    assert excinfo.value.remaining_ms == 400
    assert excinfo.value.wait_text == "0 hours and 0 minutes"

    third = _draw(allocator, "U", now=1001)
    assert record.current_period_count == 1
    assert record.last_period_start_time == 1001
    assert {first.item, second.item, third.item} == {"a", "b", "c"}

    with pytest.raises(CatalogExhausted):
        _draw(allocator, "U", now=1002)


def test_window_resets_after_cooldown_even_when_full():
    allocator = _allocator([str(i) for i in range(20)], max_links=4, cooldown_ms=2 * HOUR)
    for i in range(4):
        _draw(allocator, "u", now=i)
    with pytest.raises(CooldownActive):
        _draw(allocator, "u", now=10)

    issued = _draw(allocator, "u", now=2 * HOUR)
    record = allocator.state.get("u")
    assert issued.remaining_in_window == 3
    assert record.current_period_count == 1
    assert record.last_period_start_time == 2 * HOUR


def test_exhausted_takes_effect_regardless_of_window():
    state = AllocatorState({"u": UserRecord(history=["a", "b"], current_period_count=0, last_period_start_time=0)})
    allocator = _allocator(["a", "b"], state=state)
    with pytest.raises(CatalogExhausted):
        _draw(allocator, "u", now=5)
    # refused draws do not consume a slot
    assert state.get("u").current_period_count == 0


def test_empty_catalog_behaves_as_exhausted():
    allocator = _allocator([])
    with pytest.raises(CatalogExhausted):
        _draw(allocator, "u", now=0)


def test_window_anchored_to_first_issuance_not_record_creation():
    allocator = _allocator(["a", "b", "c"], max_links=2, cooldown_ms=1000)
    # first interaction is a refusal that creates the record at t=0
    allocator.state.get_or_create("u", 0)
    allocator.state.get("u").history.extend(["a", "b", "c"])
    with pytest.raises(CatalogExhausted):
        _draw(allocator, "u", now=0)

    allocator.catalog = ("a", "b", "c", "d")
    _draw(allocator, "u", now=900)
    assert allocator.state.get("u").last_period_start_time == 900


def test_history_never_contains_duplicates_and_count_bounded():
    catalog = [f"l{i}" for i in range(15)]
    allocator = _allocator(catalog, max_links=3, cooldown_ms=100)
    now = 0
    while True:
        try:
            _draw(allocator, "u", now=now)
        except CooldownActive:
            pass
        except CatalogExhausted:
            break
        record = allocator.state.get("u")
        assert 0 <= record.current_period_count <= 3
        now += 40
    history = allocator.state.get("u").history
    assert len(history) == len(set(history)) == 15


def test_users_are_independent():
    allocator = _allocator(["a", "b"], max_links=1, cooldown_ms=HOUR)
    _draw(allocator, "u1", now=0)
    _draw(allocator, "u2", now=0)
    with pytest.raises(CooldownActive):
        _draw(allocator, "u1", now=1)
    assert set(allocator.state) == {"u1", "u2"}


def test_each_issuance_persists_whole_state():
    store = _MemoryStore()
    allocator = _allocator(["a", "b", "c"], store=store)
    _draw(allocator, "u1", now=0)
    _draw(allocator, "u2", now=1)
    assert len(store.saved) == 2
    assert set(store.saved[-1]) == {"u1", "u2"}
    assert store.saved[-1]["u1"]["currentPeriodCount"] == 1


def test_refused_draw_does_not_persist():
    store = _MemoryStore()
    allocator = _allocator(["a"], store=store)
    _draw(allocator, "u", now=0)
    with pytest.raises(CatalogExhausted):
        _draw(allocator, "u", now=1)
    assert len(store.saved) == 1


def test_persistence_failure_keeps_issuance():
    allocator = _allocator(["a", "b"], store=_MemoryStore(fail=True))
    issued = _draw(allocator, "u", now=0)
    assert isinstance(issued, Issued)
    assert allocator.state.get("u").history == [issued.item]


def test_concurrent_draws_are_serialised():
    allocator = _allocator([str(i) for i in range(50)], max_links=5, cooldown_ms=HOUR)

    async def _burst():
        return await asyncio.gather(
            *(allocator.draw("u", now=10) for _ in range(8)), return_exceptions=True
        )

    results = asyncio.run(_burst())
    issued = [r for r in results if isinstance(r, Issued)]
    refused = [r for r in results if isinstance(r, CooldownActive)]
    assert len(issued) == 5
    assert len(refused) == 3
    assert len({r.item for r in issued}) == 5


def test_remaining_cooldown_helper():
    allocator = _allocator(["a", "b"], max_links=1, cooldown_ms=1000)
    assert allocator.remaining_cooldown_ms("nobody", now=0) == 0
    _draw(allocator, "u", now=100)
    assert allocator.remaining_cooldown_ms("u", now=400) == 700
    assert allocator.remaining_cooldown_ms("u", now=1100) == 0


def test_loaded_counts_above_limit_are_clamped():
    state = AllocatorState({"u": UserRecord(history=["a"], current_period_count=9, last_period_start_time=0)})
    allocator = _allocator(["a", "b", "c"], max_links=4, state=state)
    assert state.get("u").current_period_count == 4
    with pytest.raises(CooldownActive):
        _draw(allocator, "u", now=10)
