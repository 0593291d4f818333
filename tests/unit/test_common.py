"""Tests for rb_common: errors, responses, pagination, calendar helpers, events."""

import json
from datetime import date, datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from src.rb_common.datetime_utils import (
    business_day,
    last_complete_minute,
    month_start,
    next_month_start,
)
from src.rb_common.errors import (
    AppError,
    ChestAlreadyOpenError,
    InsufficientBalanceError,
    InsufficientValueError,
    InvalidAmountError,
    MilestoneNotReachedError,
    OpeningNotFoundError,
    OwnerCannotJoinError,
    UserNotFoundError,
)
from src.rb_common.events import DomainEvent, NullEventPublisher, RedisEventPublisher
from src.rb_common.pagination import cursor_decode, cursor_encode
from src.rb_common.response import error_response, success_response


class TestErrors:
    def test_base_error(self) -> None:
        err = AppError(code=9001, message="boom")
        assert err.http_status == 500
        assert str(err) == "boom"

    @pytest.mark.parametrize(
        ("err", "code", "status"),
        [
            (InvalidAmountError(0), 1002, 422),
            (UserNotFoundError("u-1"), 2001, 404),
            (OpeningNotFoundError(7), 2003, 404),
            (InsufficientBalanceError(required=5, available=2), 3001, 422),
            (InsufficientValueError(required=5, available=2), 3002, 422),
            (ChestAlreadyOpenError("s1"), 4001, 409),
            (MilestoneNotReachedError(10, 4), 4004, 409),
            (OwnerCannotJoinError(), 4007, 403),
        ],
    )
    def test_codes(self, err: AppError, code: int, status: int) -> None:
        assert err.code == code
        assert err.http_status == status

    def test_balance_message_names_both_amounts(self) -> None:
        err = InsufficientBalanceError(required=6, available=3)
        assert "6" in err.message and "3" in err.message


class TestResponse:
    def test_success_reuses_request_id(self) -> None:
        request = SimpleNamespace(state=SimpleNamespace(request_id="req_abc"))
        resp = success_response({"x": 1}, request)  # type: ignore[arg-type]
        assert resp.code == 0
        assert resp.data == {"x": 1}
        assert resp.request_id == "req_abc"

    def test_success_without_request(self) -> None:
        assert success_response().request_id.startswith("req_")

    def test_error(self) -> None:
        resp = error_response(3001, "Insufficient balance")
        assert resp.code == 3001
        assert resp.data is None


class TestPagination:
    def test_roundtrip(self) -> None:
        assert cursor_decode(cursor_encode(12345)) == 12345

    @pytest.mark.parametrize("cursor", [None, "", "!!!", "e30=", "bm90LWpzb24="])
    def test_garbage_is_first_page(self, cursor: str | None) -> None:
        assert cursor_decode(cursor) is None


class TestCalendar:
    def test_naive_datetime_rejected(self) -> None:
        with pytest.raises(ValueError):
            business_day(datetime(2026, 3, 2, 12, 0))

    def test_day_rolls_over_at_paris_midnight(self) -> None:
        # 23:30 UTC on March 2 is 00:30 on March 3 in Paris (UTC+1)
        assert business_day(datetime(2026, 3, 2, 22, 59, tzinfo=timezone.utc)) == date(2026, 3, 2)
        assert business_day(datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)) == date(2026, 3, 3)

    def test_summer_time(self) -> None:
        # UTC+2 in July
        assert business_day(datetime(2026, 7, 14, 22, 1, tzinfo=timezone.utc)) == date(2026, 7, 15)

    def test_month_bounds(self) -> None:
        assert month_start(date(2026, 3, 17)) == date(2026, 3, 1)
        assert next_month_start(date(2026, 3, 17)) == date(2026, 4, 1)
        assert next_month_start(date(2026, 12, 31)) == date(2027, 1, 1)

    def test_last_complete_minute(self) -> None:
        now = datetime(2026, 3, 2, 12, 7, 42, 500, tzinfo=timezone.utc)
        assert last_complete_minute(now) == datetime(2026, 3, 2, 12, 6, tzinfo=timezone.utc)


class TestEvents:
    def _event(self) -> DomainEvent:
        return DomainEvent(
            type="chest.settled",
            data={"opening_id": 3, "pool": 10},
            streamer_id="s1",
            occurred_at=datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc),
        )

    def test_to_json(self) -> None:
        payload = json.loads(self._event().to_json())
        assert payload == {
            "type": "chest.settled",
            "data": {"opening_id": 3, "pool": 10},
            "streamer_id": "s1",
            "user_id": None,
            "occurred_at": "2026-03-02T12:00:00+00:00",
        }

    @pytest.mark.asyncio
    async def test_null_publisher(self) -> None:
        await NullEventPublisher().publish(self._event())

    @pytest.mark.asyncio
    async def test_redis_publisher_sends_json_on_channel(self) -> None:
        publisher = RedisEventPublisher("redis://unused", "rubis.events")
        publisher._redis = AsyncMock()
        await publisher.publish(self._event())
        channel, body = publisher._redis.publish.await_args.args
        assert channel == "rubis.events"
        assert json.loads(body)["type"] == "chest.settled"

    @pytest.mark.asyncio
    async def test_redis_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        publisher = RedisEventPublisher("redis://unused", "rubis.events")
        publisher._redis = AsyncMock()
        publisher._redis.publish.side_effect = ConnectionError("redis down")
        await publisher.publish(self._event())
        assert "Failed to publish event chest.settled" in caplog.text

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        publisher = RedisEventPublisher("redis://unused", "rubis.events")
        client = AsyncMock()
        publisher._redis = client
        await publisher.close()
        client.aclose.assert_awaited_once()
        assert publisher._redis is None
