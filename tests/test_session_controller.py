"""Session lifecycle tests for the WhatsApp session controller.

Covers pairing, readiness, disconnects, reinitialization backoff and logout,
using a fake client and a manually advanced clock.
"""

import asyncio

import httpx
import pytest

from app.exceptions import DownstreamError, NotReadyError
from app.services.messaging.base import ClientEvent
from app.services.realtime import Broadcaster
from app.services.session.controller import SessionController
from app.services.webhook import WebhookRegistration

from tests.fakes import FakeSessionClient, RecordingSubscriber


@pytest.fixture
def broadcaster():
    return Broadcaster()


@pytest.fixture
def subscriber(broadcaster):
    sub = RecordingSubscriber()
    broadcaster._subscribers.add(sub)
    return sub


@pytest.fixture
def controller(fake_client, broadcaster, clock, tmp_path):
    return SessionController(
        fake_client,
        broadcaster,
        clock=clock,
        session_paths=[tmp_path / "session", tmp_path / "cache"],
        qr_renderer=lambda code: f"data:image/png;base64,{code}",
    )


def assert_invariant(controller):
    assert not (controller.state.ready and controller.state.pairing_code)


@pytest.mark.asyncio
async def test_qr_event_sets_pairing_code_and_image(controller, subscriber):
    await controller.handle_event(ClientEvent("qr", {"code": "2@abc"}))

    assert controller.state.pairing_code == "2@abc"
    assert controller.state.pairing_image == "data:image/png;base64,2@abc"
    assert controller.ready is False
    assert subscriber.messages[-1] == {
        "event": "qr",
        "data": {"text": "2@abc", "png": "data:image/png;base64,2@abc"},
    }


@pytest.mark.asyncio
async def test_qr_codes_rotate(controller, subscriber):
    await controller.handle_event(ClientEvent("qr", {"code": "first"}))
    await controller.handle_event(ClientEvent("qr", {"code": "second"}))

    assert controller.snapshot()["qr"] == "second"
    assert subscriber.events == ["qr", "qr"]


@pytest.mark.asyncio
async def test_qr_render_failure_falls_back_to_text(fake_client, broadcaster, subscriber, clock):
    def broken_renderer(code):
        raise ValueError("data too long")

    controller = SessionController(fake_client, broadcaster, clock=clock, qr_renderer=broken_renderer)
    await controller.handle_event(ClientEvent("qr", {"code": "2@abc"}))

    assert controller.state.pairing_code == "2@abc"
    assert controller.state.pairing_image is None
    assert subscriber.messages[-1] == {"event": "qr", "data": {"text": "2@abc"}}


@pytest.mark.asyncio
async def test_default_renderer_produces_png_data_url(fake_client, broadcaster, clock):
    controller = SessionController(fake_client, broadcaster, clock=clock)
    await controller.handle_event(ClientEvent("qr", {"code": "2@pairing-code"}))
    assert controller.state.pairing_image.startswith("data:image/png;base64,")


@pytest.mark.asyncio
async def test_pairing_to_ready_clears_code(controller, subscriber):
    await controller.handle_event(ClientEvent("qr", {"code": "2@abc"}))
    assert_invariant(controller)
    await controller.handle_event(ClientEvent("authenticated"))
    assert_invariant(controller)
    await controller.handle_event(ClientEvent("ready"))
    assert_invariant(controller)

    assert controller.snapshot() == {"ready": True, "qr": None, "qrPng": None}
    assert subscriber.events == ["qr", "authenticated", "ready"]


@pytest.mark.asyncio
async def test_qr_after_ready_drops_readiness(controller):
    await controller.handle_event(ClientEvent("ready"))
    await controller.handle_event(ClientEvent("qr", {"code": "2@new"}))

    assert controller.ready is False
    assert_invariant(controller)


@pytest.mark.asyncio
async def test_auth_failure_is_broadcast(controller, subscriber):
    await controller.handle_event(ClientEvent("auth_failure", {"message": "restore failed"}))
    assert subscriber.messages[-1] == {
        "event": "auth_failure",
        "data": {"message": "Authentication failed: restore failed"},
    }


@pytest.mark.asyncio
async def test_disconnect_schedules_reinitialization(controller, subscriber, clock, fake_client):
    await controller.handle_event(ClientEvent("ready"))
    await controller.handle_event(ClientEvent("disconnected", {"reason": "LOGOUT"}))

    assert controller.snapshot() == {"ready": False, "qr": None, "qrPng": None}
    assert subscriber.events[-2:] == ["session_timeout", "reinitializing"]
    assert subscriber.messages[-1]["data"]["reason"] == "disconnected"
    assert len(clock.pending) == 1
    assert clock.pending[0].when == 2.0

    await clock.advance(2.0)
    assert fake_client.initialize_calls == 1
    assert controller.state.pending_reinit is None


@pytest.mark.asyncio
async def test_scheduling_is_idempotent(controller, subscriber, clock):
    assert await controller.schedule_reinitialize(2.0, "first") is True
    assert await controller.schedule_reinitialize(2.0, "second") is False

    assert len(clock.pending) == 1
    assert subscriber.events == ["reinitializing"]


@pytest.mark.asyncio
async def test_initialize_failures_back_off_up_to_cap(controller, clock, fake_client):
    fake_client.failures_left = 10

    assert await controller.initialize() is False
    delays = []
    for _ in range(6):
        timer = clock.pending[0]
        delays.append(timer.when - clock.time)
        await clock.advance(timer.when - clock.time)

    assert delays == [2.0, 4.0, 8.0, 16.0, 30.0, 30.0]
    assert fake_client.initialize_calls == 7


@pytest.mark.asyncio
async def test_fresh_disconnect_restarts_backoff(controller, clock, fake_client):
    fake_client.failures_left = 2
    await controller.initialize()
    await clock.advance(2.0)
    await clock.advance(4.0)
    assert fake_client.initialize_calls == 3
    assert not clock.pending

    await controller.handle_event(ClientEvent("disconnected", {"reason": "CONFLICT"}))
    assert clock.pending[0].when - clock.time == 2.0


@pytest.mark.asyncio
async def test_successful_initialize_schedules_nothing(controller, clock, fake_client):
    assert await controller.initialize() is True
    assert fake_client.initialize_calls == 1
    assert not clock.pending


@pytest.mark.asyncio
async def test_concurrent_initialize_is_guarded(fake_client, broadcaster, clock):
    gate = asyncio.Event()

    class SlowClient(FakeSessionClient):
        async def initialize(self):
            self.initialize_calls += 1
            await gate.wait()

    slow = SlowClient()
    controller = SessionController(slow, broadcaster, clock=clock)

    first = asyncio.create_task(controller.initialize())
    await asyncio.sleep(0)
    assert controller.state.initializing is True
    assert await controller.initialize() is False

    gate.set()
    assert await first is True
    assert slow.initialize_calls == 1
    assert controller.state.initializing is False


@pytest.mark.asyncio
async def test_timer_skips_when_already_initializing(controller, clock, fake_client):
    await controller.schedule_reinitialize(2.0, "disconnected")
    controller.state.initializing = True

    await clock.advance(2.0)

    assert fake_client.initialize_calls == 0
    assert controller.state.pending_reinit is None


@pytest.mark.asyncio
async def test_require_ready(controller):
    with pytest.raises(NotReadyError):
        controller.require_ready()
    await controller.handle_event(ClientEvent("ready"))
    controller.require_ready()


@pytest.mark.asyncio
async def test_logout_resets_and_reinitializes(controller, clock, fake_client, tmp_path):
    (tmp_path / "session" / "Default").mkdir(parents=True)
    (tmp_path / "cache").mkdir()
    await controller.handle_event(ClientEvent("ready"))

    await controller.logout()

    assert fake_client.destroy_calls == 1
    assert controller.snapshot() == {"ready": False, "qr": None, "qrPng": None}
    assert not (tmp_path / "session").exists()
    assert not (tmp_path / "cache").exists()
    assert clock.pending[0].when == 2.0

    await clock.advance(2.0)
    assert fake_client.initialize_calls == 1

    fake_client.emit("qr", code="2@fresh")
    await controller.handle_event(await fake_client.events.get())
    assert controller.snapshot()["qr"] == "2@fresh"


@pytest.mark.asyncio
async def test_logout_failure_is_downstream_error(controller, fake_client, clock):
    fake_client.fail_destroy = True
    with pytest.raises(DownstreamError):
        await controller.logout()
    assert not clock.pending


@pytest.mark.asyncio
async def test_run_processes_events_in_order(controller, fake_client, subscriber):
    fake_client.emit("qr", code="2@abc")
    fake_client.emit("authenticated")
    fake_client.emit("ready")

    task = asyncio.create_task(controller.run())
    for _ in range(20):
        if controller.ready:
            break
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert subscriber.events == ["qr", "authenticated", "ready"]
    assert controller.ready is True


@pytest.mark.asyncio
async def test_message_event_is_delivered_to_webhook(fake_client, broadcaster, clock):
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append((str(request.url), request.read()))
        return httpx.Response(200)

    webhook = WebhookRegistration(transport=httpx.MockTransport(handler))
    webhook.set("https://hooks.example.com/wa")
    controller = SessionController(fake_client, broadcaster, webhook=webhook, clock=clock)

    await controller.handle_event(ClientEvent("message", {"sender": "15551234567@c.us", "body": "hi"}))
    await controller.flush_deliveries()

    assert len(received) == 1
    assert received[0][0] == "https://hooks.example.com/wa"
    assert b'"body":"hi"' in received[0][1].replace(b" ", b"")


@pytest.mark.asyncio
async def test_slow_webhook_does_not_delay_ready(fake_client, broadcaster, clock):
    """Test that lifecycle events are handled while a webhook delivery is in flight"""
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200)

    webhook = WebhookRegistration(transport=httpx.MockTransport(handler))
    webhook.set("https://hooks.example.com/wa")
    controller = SessionController(fake_client, broadcaster, webhook=webhook, clock=clock)

    fake_client.emit("message", sender="15551234567@c.us", body="one")
    fake_client.emit("message", sender="15551234567@c.us", body="two")
    fake_client.emit("ready")
    task = asyncio.create_task(controller.run())

    for _ in range(50):
        if controller.ready:
            break
        await asyncio.sleep(0.01)

    assert controller.ready is True
    assert len(controller._deliveries) == 2

    release.set()
    await controller.flush_deliveries()
    assert not controller._deliveries

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_real_clock_retries_failed_initialize_once(fake_client, broadcaster):
    controller = SessionController(fake_client, broadcaster, base_delay=0.05, max_delay=0.1)
    fake_client.failures_left = 1

    assert await controller.initialize() is False
    assert controller.state.pending_reinit is not None

    await asyncio.sleep(0.3)

    assert fake_client.initialize_calls == 2
    assert fake_client.failures_left == 0
    assert controller.state.pending_reinit is None
    assert controller.state.initializing is False


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_timer(controller, clock, fake_client):
    await controller.schedule_reinitialize(2.0, "disconnected")
    await controller.shutdown()

    assert not clock.pending
    assert fake_client.destroy_calls == 1


@pytest.mark.asyncio
async def test_unknown_event_is_ignored(controller, subscriber):
    await controller.handle_event(ClientEvent("battery_changed", {"level": 40}))
    assert subscriber.messages == []
