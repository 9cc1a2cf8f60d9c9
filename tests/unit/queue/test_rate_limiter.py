"""Tests for per-source admission limits."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import pytest
from doubles import FakeClock
from redis.asyncio import Redis

from notification_queue.config.models import RateLimitConfig
from notification_queue.queue.rate_limiter import (
    BaseRateLimiter,
    RateLimiter,
    RedisRateLimiter,
    bucket_index,
    normalise_source,
)

type LimiterFactory = Callable[[RateLimitConfig], BaseRateLimiter]


def _limits(**overrides: object) -> RateLimitConfig:
    values: dict[str, object] = {"per_minute": 100, "per_hour": 1000, "burst_size": 100, "burst_window": 10.0}
    values.update(overrides)
    return RateLimitConfig.model_validate(values)


@pytest.fixture(params=["memory", "redis"])
async def make_limiter(request: pytest.FixtureRequest, clock: FakeClock) -> AsyncIterator[LimiterFactory]:
    """Factory building a limiter of the parametrized backend."""
    clients: list[Redis] = []

    def _make(config: RateLimitConfig) -> BaseRateLimiter:
        if request.param == "memory":
            return RateLimiter(config, clock=clock)
        fakeredis = pytest.importorskip("fakeredis")
        _ = pytest.importorskip("lupa")
        client = fakeredis.FakeAsyncRedis(decode_responses=True)  # pyright: ignore[reportAny]
        clients.append(client)
        return RedisRateLimiter(client, config, key_prefix="test", clock=clock)  # pyright: ignore[reportAny]

    yield _make
    for client in clients:
        await client.aclose()


class TestAdmission:
    @pytest.mark.asyncio
    async def test_minute_limit(self, make_limiter: LimiterFactory, clock: FakeClock) -> None:
        limiter = make_limiter(_limits(per_minute=3))

        results = [await limiter.admit("billing") for _ in range(4)]

        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_minute_bucket_rolls_over(self, make_limiter: LimiterFactory, clock: FakeClock) -> None:
        limiter = make_limiter(_limits(per_minute=1, burst_window=1.0))

        assert await limiter.admit("billing") is True
        assert await limiter.admit("billing") is False

        _ = clock.advance(60)
        assert await limiter.admit("billing") is True

    @pytest.mark.asyncio
    async def test_hour_limit(self, make_limiter: LimiterFactory, clock: FakeClock) -> None:
        limiter = make_limiter(_limits(per_minute=10, per_hour=2, burst_window=1.0))

        assert await limiter.admit("billing") is True
        _ = clock.advance(60)
        assert await limiter.admit("billing") is True
        _ = clock.advance(60)
        assert await limiter.admit("billing") is False

    @pytest.mark.asyncio
    async def test_sources_are_independent(self, make_limiter: LimiterFactory) -> None:
        limiter = make_limiter(_limits(per_minute=1))

        assert await limiter.admit("billing") is True
        assert await limiter.admit("reports") is True
        assert await limiter.admit("billing") is False


class TestInProcessLimiter:
    @pytest.mark.asyncio
    async def test_burst_window(self, clock: FakeClock) -> None:
        limiter = RateLimiter(_limits(burst_size=2, burst_window=10.0), clock=clock)

        assert await limiter.admit("svc") is True
        assert await limiter.admit("svc") is True
        assert await limiter.admit("svc") is False

        _ = clock.advance(10)
        assert await limiter.admit("svc") is True

    @pytest.mark.asyncio
    async def test_rejection_changes_no_counter(self, clock: FakeClock) -> None:
        limiter = RateLimiter(_limits(per_minute=2), clock=clock)
        _ = await limiter.admit("svc")
        _ = await limiter.admit("svc")
        before = limiter.counts("svc")

        assert await limiter.admit("svc") is False

        assert limiter.counts("svc") == before == (2, 2, 2)

    @pytest.mark.asyncio
    async def test_cleanup_drops_old_counters(self, clock: FakeClock) -> None:
        limiter = RateLimiter(_limits(counter_retention=3600.0), clock=clock)
        _ = await limiter.admit("svc")

        assert await limiter.cleanup() == 0

        _ = clock.advance(5000)
        removed = await limiter.cleanup()

        assert removed == 3
        assert limiter.counts("svc") == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_source_names_are_normalised(self, clock: FakeClock) -> None:
        limiter = RateLimiter(_limits(per_minute=1), clock=clock)

        assert await limiter.admit("svc/a") is True
        # Same key after normalisation
        assert await limiter.admit("svc a") is False


class TestRedisLimiter:
    @pytest.mark.asyncio
    async def test_cleanup_removes_stale_bucket_fields(self, clock: FakeClock) -> None:
        fakeredis = pytest.importorskip("fakeredis")
        _ = pytest.importorskip("lupa")
        client = fakeredis.FakeAsyncRedis(decode_responses=True)  # pyright: ignore[reportAny]
        limiter = RedisRateLimiter(client, _limits(counter_retention=3600.0), key_prefix="test", clock=clock)  # pyright: ignore[reportAny]
        try:
            _ = await limiter.admit("svc")
            _ = await client.hset("test:ratelimit", "svc:minute:garbage", 1)  # pyright: ignore[reportAny]

            assert await limiter.cleanup() == 1

            _ = clock.advance(5000)
            assert await limiter.cleanup() == 2
            assert await client.hlen("test:ratelimit") == 0  # pyright: ignore[reportAny]
        finally:
            await client.aclose()  # pyright: ignore[reportAny]


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("servicenow client/prod", "servicenow_client_prod"),
        ("task-manager_1", "task-manager_1"),
        ("a:b", "a_b"),
    ],
)
def test_normalise_source(source: str, expected: str) -> None:
    assert normalise_source(source) == expected


def test_bucket_index() -> None:
    assert bucket_index(119.9, 60) == 1
    assert bucket_index(120.0, 60) == 2
