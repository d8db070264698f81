"""Tests for the fixed-delay request throttle."""

import asyncio

import pytest

from canvas_expander.services.throttle import RequestThrottle


def test_first_turn_is_immediate():
    throttle = RequestThrottle(delay_seconds=5.0)
    waited = asyncio.run(throttle.wait_turn())
    assert waited == 0.0
    assert throttle.get_stats()["dispatched"] == 1


def test_subsequent_turns_wait(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    throttle = RequestThrottle(delay_seconds=1.5)

    async def scenario():
        for _ in range(3):
            await throttle.wait_turn()

    asyncio.run(scenario())
    assert sleeps == [1.5, 1.5]
    assert throttle.dispatched == 3


def test_begin_resets_first_turn(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    throttle = RequestThrottle(delay_seconds=1.0)

    async def scenario():
        throttle.begin()
        await throttle.wait_turn()
        throttle.begin()
        await throttle.wait_turn()

    asyncio.run(scenario())
    assert sleeps == []


def test_zero_delay_never_sleeps():
    throttle = RequestThrottle(delay_seconds=0)

    async def scenario():
        return [await throttle.wait_turn() for _ in range(4)]

    assert asyncio.run(scenario()) == [0.0] * 4
    stats = throttle.get_stats()
    assert stats["total_waited"] == 0.0
    assert stats["last_dispatch"] is not None


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        RequestThrottle(delay_seconds=-1)
