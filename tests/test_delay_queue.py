import json
from dataclasses import replace
from datetime import datetime, timedelta

import httpx
import pytest

from reminder_app.delay_queue.client import DelayQueueClient, to_unix
from reminder_app.errors import SchedulingError

NOW = datetime(2026, 3, 2, 9, 0, 0)


def make_client(settings, handler):
    return DelayQueueClient(settings, transport=httpx.MockTransport(handler), now=lambda: NOW)


@pytest.mark.asyncio
async def test_schedule_publishes_callback_with_not_before(settings):
    captured = {}

    def handler(request: httpx.Request):
        captured["request"] = request
        return httpx.Response(201, json={"messageId": "msg_123"})

    client = make_client(settings, handler)
    fire_at = NOW + timedelta(hours=1)

    job_id = await client.schedule("rem-1", fire_at)

    request = captured["request"]
    assert job_id == "msg_123"
    assert request.method == "POST"
    assert request.url.path == "/v2/publish/https://reminders.example.com/api/reminders/deliver"
    assert request.headers["Upstash-Not-Before"] == str(to_unix(fire_at))
    assert request.headers["Authorization"] == "Bearer qstash-token"
    assert json.loads(request.content) == {"reminderId": "rem-1"}


@pytest.mark.asyncio
async def test_schedule_in_the_past_fires_almost_immediately(settings):
    captured = {}

    def handler(request):
        captured["not_before"] = int(request.headers["Upstash-Not-Before"])
        return httpx.Response(200, json={"messageId": "msg_1"})

    await make_client(settings, handler).schedule("rem-1", NOW - timedelta(hours=2))

    assert captured["not_before"] == to_unix(NOW + timedelta(seconds=1))


@pytest.mark.asyncio
async def test_disabled_adapter_skips_scheduling(settings):
    def handler(request):
        raise AssertionError("no request expected")

    client = make_client(replace(settings, delay_queue_enabled=False), handler)

    assert await client.schedule("rem-1", NOW + timedelta(hours=1)) is None
    assert await client.cancel("msg_1") is False


@pytest.mark.asyncio
async def test_missing_token_is_a_scheduling_error(settings):
    client = make_client(replace(settings, qstash_token=None), lambda request: httpx.Response(200))

    with pytest.raises(SchedulingError) as exc_info:
        await client.schedule("rem-1", NOW + timedelta(hours=1))
    assert exc_info.value.details["missing"] == ["QSTASH_TOKEN"]


@pytest.mark.asyncio
async def test_rejected_publish_raises(settings):
    client = make_client(settings, lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(SchedulingError):
        await client.schedule("rem-1", NOW + timedelta(hours=1))


@pytest.mark.asyncio
async def test_unreachable_service_raises(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SchedulingError):
        await make_client(settings, handler).schedule("rem-1", NOW + timedelta(hours=1))


@pytest.mark.asyncio
async def test_cancel_reports_stale_handle_without_raising(settings):
    client = make_client(settings, lambda request: httpx.Response(404))

    assert await client.cancel("msg_gone") is False
    assert await client.cancel(None) is False


@pytest.mark.asyncio
async def test_reschedule_cancels_old_job_even_when_already_consumed(settings):
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        if request.method == "DELETE":
            return httpx.Response(404)
        return httpx.Response(200, json={"messageId": "msg_new"})

    new_handle = await make_client(settings, handler).reschedule("msg_old", "rem-1", NOW + timedelta(minutes=15))

    assert new_handle == "msg_new"
    assert calls[0] == ("DELETE", "/v2/messages/msg_old")
    assert calls[1][0] == "POST"
