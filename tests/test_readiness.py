"""Tests for the readiness waiter."""

from __future__ import annotations

import pytest
from planetscale_mock import FakeClock, MockDatabase, MockPlanetScaleApi

from planetscale_operator.client import ApiError
from planetscale_operator.errors import (
    NotFoundError,
    ReadinessTimeoutError,
    RemoteOperationError,
)
from planetscale_operator.readiness import is_ready, wait_until_ready


class TestIsReady:
    """Tests for state classification."""

    @pytest.mark.parametrize("state", ["ready", "READY"])
    def test_ready(self, state: str) -> None:
        assert is_ready(state) is True

    @pytest.mark.parametrize(
        "state", ["pending", "importing", "awakening", "resizing", "sleeping", "unknown", "", None]
    )
    def test_not_ready(self, state: str | None) -> None:
        """Sleeping and unrecognized states are not ready."""
        assert is_ready(state) is False


class TestWaitUntilReady:
    """Tests for wait_until_ready."""

    @pytest.mark.asyncio
    async def test_returns_immediately_when_ready(
        self, api: MockPlanetScaleApi, clock: FakeClock
    ) -> None:
        api.add_database(MockDatabase(name="orders", organization="acme", state="ready"))

        record = await wait_until_ready(
            api,
            "acme",
            "orders",
            poll_interval=2,
            timeout=30,
            sleep=clock.sleep,
            clock=clock.now,
        )

        assert record.state == "ready"
        assert clock.sleeps == []
        assert api.method_names() == ["get_database"]

    @pytest.mark.asyncio
    async def test_polls_until_ready(self, api: MockPlanetScaleApi, clock: FakeClock) -> None:
        api.add_database(MockDatabase(name="orders", organization="acme", pending_polls=3))

        record = await wait_until_ready(
            api,
            "acme",
            "orders",
            poll_interval=2,
            timeout=30,
            sleep=clock.sleep,
            clock=clock.now,
        )

        assert record.state == "ready"
        assert clock.sleeps == [2, 2, 2]
        assert len(api.calls_named("get_database")) == 4

    @pytest.mark.asyncio
    async def test_times_out(self, api: MockPlanetScaleApi, clock: FakeClock) -> None:
        api.add_database(MockDatabase(name="orders", organization="acme", pending_polls=100))

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            await wait_until_ready(
                api,
                "acme",
                "orders",
                poll_interval=2,
                timeout=5,
                sleep=clock.sleep,
                clock=clock.now,
            )

        assert exc_info.value.last_state == "pending"
        assert "orders" in str(exc_info.value)
        assert isinstance(exc_info.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_sleeping_database_is_not_ready(
        self, api: MockPlanetScaleApi, clock: FakeClock
    ) -> None:
        """A sleeping database keeps the waiter polling until the deadline."""
        api.add_database(MockDatabase(name="orders", organization="acme", state="sleeping"))

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            await wait_until_ready(
                api,
                "acme",
                "orders",
                poll_interval=2,
                timeout=5,
                sleep=clock.sleep,
                clock=clock.now,
            )

        assert exc_info.value.last_state == "sleeping"
        assert "sleeping" in str(exc_info.value)
        assert len(api.calls_named("get_database")) == 4

    @pytest.mark.asyncio
    async def test_never_sleeps_past_deadline(
        self, api: MockPlanetScaleApi, clock: FakeClock
    ) -> None:
        api.add_database(MockDatabase(name="orders", organization="acme", pending_polls=100))

        with pytest.raises(ReadinessTimeoutError):
            await wait_until_ready(
                api,
                "acme",
                "orders",
                poll_interval=2,
                timeout=5,
                sleep=clock.sleep,
                clock=clock.now,
            )

        assert clock.sleeps == [2, 2, 1]
        assert clock.total_slept == 5

    @pytest.mark.asyncio
    async def test_database_disappears(self, api: MockPlanetScaleApi, clock: FakeClock) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await wait_until_ready(
                api,
                "acme",
                "orders",
                poll_interval=2,
                timeout=30,
                sleep=clock.sleep,
                clock=clock.now,
            )

        assert "acme" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_api_errors_are_not_retried(
        self, api: MockPlanetScaleApi, clock: FakeClock
    ) -> None:
        api.add_database(MockDatabase(name="orders", organization="acme", pending_polls=1))
        api.fail_next("get_database", ApiError(500, "internal error"))

        with pytest.raises(RemoteOperationError) as exc_info:
            await wait_until_ready(
                api,
                "acme",
                "orders",
                poll_interval=2,
                timeout=30,
                sleep=clock.sleep,
                clock=clock.now,
            )

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.__cause__, ApiError)
        assert len(api.calls) == 1
