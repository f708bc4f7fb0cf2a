import json

import httpx
import pytest

from app.services.realtime import Broadcaster
from app.services.webhook import WebhookRegistration

from tests.fakes import RecordingSubscriber


def recording_transport(status_code=200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code)

    return requests, httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_deliver_without_url_is_a_no_op():
    requests, transport = recording_transport()
    webhook = WebhookRegistration(transport=transport)

    assert await webhook.deliver("message", {"body": "hi"}) is False
    assert requests == []


@pytest.mark.asyncio
async def test_deliver_posts_event_envelope():
    requests, transport = recording_transport()
    webhook = WebhookRegistration(transport=transport)
    webhook.set("https://hooks.example.com/incoming")

    assert await webhook.deliver("message", {"sender": "15551234567@c.us", "body": "hi"}) is True

    assert len(requests) == 1
    assert requests[0].method == "POST"
    assert json.loads(requests[0].content) == {
        "event": "message",
        "data": {"sender": "15551234567@c.us", "body": "hi"},
    }


@pytest.mark.asyncio
async def test_deliver_reports_error_status():
    _, transport = recording_transport(status_code=502)
    webhook = WebhookRegistration(transport=transport)
    webhook.set("https://hooks.example.com/incoming")

    assert await webhook.deliver("message", {"body": "hi"}) is False


@pytest.mark.asyncio
async def test_deliver_swallows_transport_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    webhook = WebhookRegistration(transport=httpx.MockTransport(handler))
    webhook.set("https://hooks.example.com/incoming")

    assert await webhook.deliver("message", {"body": "hi"}) is False


@pytest.mark.asyncio
async def test_cleared_webhook_stops_delivery():
    requests, transport = recording_transport()
    webhook = WebhookRegistration(transport=transport)
    webhook.set("https://hooks.example.com/incoming")
    webhook.clear()

    assert webhook.url is None
    assert await webhook.deliver("message", {"body": "hi"}) is False
    assert requests == []


@pytest.mark.asyncio
async def test_broadcaster_sends_status_snapshot_on_subscribe():
    broadcaster = Broadcaster()
    subscriber = RecordingSubscriber()

    await broadcaster.subscribe(subscriber, {"ready": False, "qr": "2@abc", "qrPng": None})

    assert subscriber.messages == [
        {"event": "status", "data": {"ready": False, "qr": "2@abc", "qrPng": None}}
    ]
    assert broadcaster.subscriber_count == 1


@pytest.mark.asyncio
async def test_broadcaster_drops_failing_subscriber():
    broadcaster = Broadcaster()
    healthy = RecordingSubscriber()
    broken = RecordingSubscriber()
    await broadcaster.subscribe(healthy, {"ready": True, "qr": None, "qrPng": None})
    await broadcaster.subscribe(broken, {"ready": True, "qr": None, "qrPng": None})
    broken.fail = True

    await broadcaster.emit("ready", {"message": "WhatsApp is ready!"})

    assert healthy.events == ["status", "ready"]
    assert broadcaster.subscriber_count == 1

    await broadcaster.emit("session_timeout", {"message": "Session expired"})
    assert healthy.events[-1] == "session_timeout"


@pytest.mark.asyncio
async def test_broadcaster_unsubscribe():
    broadcaster = Broadcaster()
    subscriber = RecordingSubscriber()
    await broadcaster.subscribe(subscriber, {"ready": False, "qr": None, "qrPng": None})

    broadcaster.unsubscribe(subscriber)
    broadcaster.unsubscribe(subscriber)
    await broadcaster.emit("qr", {"text": "2@abc"})

    assert subscriber.events == ["status"]
    assert broadcaster.subscriber_count == 0
