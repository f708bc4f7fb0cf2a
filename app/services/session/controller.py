import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Set

from app.constants import (
    CLIENT_EVENT_AUTH_FAILURE,
    CLIENT_EVENT_AUTHENTICATED,
    CLIENT_EVENT_DISCONNECTED,
    CLIENT_EVENT_MESSAGE,
    CLIENT_EVENT_QR,
    CLIENT_EVENT_READY,
    EVENT_AUTH_FAILURE,
    EVENT_AUTHENTICATED,
    EVENT_QR,
    EVENT_READY,
    EVENT_REINITIALIZING,
    EVENT_SESSION_TIMEOUT,
    MESSAGES,
)
from app.exceptions import DownstreamError, NotReadyError
from app.logging import log_exception, setup_logger
from app.services.messaging.base import ClientEvent, SessionClient
from app.services.realtime import Broadcaster
from app.services.session.clock import AsyncioClock, Clock, TimerHandle
from app.services.session.qr import render_ascii, render_png_data_url
from app.services.webhook import WebhookRegistration

logger = setup_logger(__name__)


@dataclass
class SessionState:
    ready: bool = False
    pairing_code: Optional[str] = None
    pairing_image: Optional[str] = None
    initializing: bool = False
    pending_reinit: Optional[TimerHandle] = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "qr": self.pairing_code,
            "qrPng": self.pairing_image,
        }


class SessionController:
    """
    Owns the WhatsApp client lifecycle.

    Client events are consumed one at a time by `run()`, so state changes
    never interleave. Failed initializations and disconnects schedule a
    reinitialization; only one such timer can be pending, and timer-driven
    and explicit initializations share the `initializing` flag.
    """

    def __init__(
        self,
        client: SessionClient,
        broadcaster: Broadcaster,
        webhook: Optional[WebhookRegistration] = None,
        clock: Optional[Clock] = None,
        base_delay: float = 2.0,
        max_delay: float = 30.0,
        logout_delay: float = 2.0,
        session_paths: Iterable[Path] = (),
        print_qr: bool = False,
        qr_renderer: Callable[[str], str] = render_png_data_url,
    ):
        self.client = client
        self.broadcaster = broadcaster
        self.webhook = webhook
        self.clock = clock or AsyncioClock()
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.logout_delay = logout_delay
        self.session_paths = [Path(p) for p in session_paths]
        self.print_qr = print_qr
        self.qr_renderer = qr_renderer
        self.state = SessionState()
        self._dispatcher: Optional[asyncio.Task] = None
        self._startup: Optional[asyncio.Task] = None
        self._deliveries: Set[asyncio.Task] = set()

    @property
    def ready(self) -> bool:
        return self.state.ready

    def snapshot(self) -> Dict[str, Any]:
        return self.state.snapshot()

    def require_ready(self) -> None:
        if not self.state.ready:
            raise NotReadyError(MESSAGES["not_ready"])

    async def start(self) -> None:
        """Begin consuming client events and kick off the first initialization"""
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self.run())
        logger.info("Starting WhatsApp client...")
        self._startup = asyncio.create_task(self.initialize())

    async def run(self) -> None:
        while True:
            event = await self.client.events.get()
            try:
                await self.handle_event(event)
            except Exception as e:
                log_exception(logger, f"Error handling client event {event.name}", e)

    async def initialize(self, retry_delay: Optional[float] = None) -> bool:
        """
        Initialize the client unless an initialization is already running.

        On failure a reinitialization is scheduled after `retry_delay`
        (the base delay by default). Returns True on success.
        """
        if self.state.initializing:
            logger.info("Initialization already in progress, skipping")
            return False

        self.state.initializing = True
        try:
            await self.client.initialize()
            return True
        except Exception as e:
            log_exception(logger, "Error during initialize", e)
            delay = self.base_delay if retry_delay is None else retry_delay
            await self.schedule_reinitialize(delay, "initialize_error")
            return False
        finally:
            self.state.initializing = False

    async def schedule_reinitialize(self, delay: Optional[float] = None, reason: str = "unknown") -> bool:
        """
        Schedule one reinitialization. A pending timer blocks new ones.

        Returns True when a timer was scheduled.
        """
        if self.state.pending_reinit is not None:
            return False

        delay = self.base_delay if delay is None else delay
        logger.info(f"Scheduling client reinitialization in {delay:g}s (reason: {reason})")
        self.state.pending_reinit = self.clock.call_later(
            delay, lambda: self._reinitialize_after(delay)
        )
        await self.broadcaster.emit(
            EVENT_REINITIALIZING,
            {"message": MESSAGES["reinitializing"], "reason": reason},
        )
        return True

    async def _reinitialize_after(self, delay: float) -> None:
        self.state.pending_reinit = None
        if self.state.initializing:
            return
        await self.initialize(retry_delay=min(delay * 2, self.max_delay))

    def cancel_reinitialize(self) -> None:
        if self.state.pending_reinit is not None:
            self.state.pending_reinit.cancel()
            self.state.pending_reinit = None

    async def handle_event(self, event: ClientEvent) -> None:
        handler = {
            CLIENT_EVENT_QR: self._on_qr,
            CLIENT_EVENT_AUTHENTICATED: self._on_authenticated,
            CLIENT_EVENT_READY: self._on_ready,
            CLIENT_EVENT_AUTH_FAILURE: self._on_auth_failure,
            CLIENT_EVENT_DISCONNECTED: self._on_disconnected,
            CLIENT_EVENT_MESSAGE: self._on_message,
        }.get(event.name)

        if handler is None:
            logger.debug(f"Ignoring client event {event.name}")
            return
        await handler(event.payload)

    async def _on_qr(self, payload: Dict[str, Any]) -> None:
        code = payload.get("code")
        if not code:
            logger.warning("QR event without a code")
            return

        logger.info("QR Code received, scan with your WhatsApp app")
        self.state.ready = False
        self.state.pairing_code = code

        if self.print_qr:
            try:
                logger.info("\n" + render_ascii(code))
            except Exception as e:
                logger.warning(f"Could not print QR code to terminal: {e}")

        try:
            self.state.pairing_image = self.qr_renderer(code)
        except Exception as e:
            logger.error(f"Failed to generate PNG QR: {e}")
            self.state.pairing_image = None
            await self.broadcaster.emit(EVENT_QR, {"text": code})
            return

        await self.broadcaster.emit(EVENT_QR, {"text": code, "png": self.state.pairing_image})

    async def _on_authenticated(self, payload: Dict[str, Any]) -> None:
        logger.info("WhatsApp client authenticated")
        await self.broadcaster.emit(EVENT_AUTHENTICATED, {"message": MESSAGES["authenticated"]})

    async def _on_ready(self, payload: Dict[str, Any]) -> None:
        logger.info("WhatsApp client is ready!")
        self.state.pairing_code = None
        self.state.pairing_image = None
        self.state.ready = True
        await self.broadcaster.emit(EVENT_READY, {"message": MESSAGES["ready"]})

    async def _on_auth_failure(self, payload: Dict[str, Any]) -> None:
        reason = payload.get("message", "unknown")
        logger.error(f"Authentication failed: {reason}")
        await self.broadcaster.emit(
            EVENT_AUTH_FAILURE, {"message": MESSAGES["auth_failure"].format(reason=reason)}
        )

    async def _on_disconnected(self, payload: Dict[str, Any]) -> None:
        logger.info(f"WhatsApp client disconnected: {payload.get('reason', 'unknown')}")
        self.reset()
        await self.broadcaster.emit(EVENT_SESSION_TIMEOUT, {"message": MESSAGES["session_timeout"]})
        await self.schedule_reinitialize(self.base_delay, "disconnected")

    async def _on_message(self, payload: Dict[str, Any]) -> None:
        # Deliveries run beside the dispatcher, never inside it
        if self.webhook is not None:
            task = asyncio.create_task(self.webhook.deliver(CLIENT_EVENT_MESSAGE, payload))
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)

    async def flush_deliveries(self) -> None:
        """Wait for webhook deliveries that are still in flight"""
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    def reset(self) -> None:
        self.state.ready = False
        self.state.pairing_code = None
        self.state.pairing_image = None

    def clear_session_files(self) -> None:
        for path in self.session_paths:
            try:
                if path.exists():
                    shutil.rmtree(path)
                    logger.info(f"Cleared session data at {path}")
            except OSError as e:
                logger.error(f"Error clearing session data at {path}: {e}")

    async def logout(self) -> None:
        """
        Drop the linked session so a fresh QR code is issued.

        The client is destroyed, local state reset, the on-disk session and
        cache removed, and initialization scheduled after the logout delay.
        """
        try:
            await self.client.destroy()
        except Exception as e:
            log_exception(logger, "Error during logout", e)
            raise DownstreamError(f"Failed to logout: {e}") from e

        self.reset()
        logger.info("WhatsApp client logged out")
        self.clear_session_files()
        await self.schedule_reinitialize(self.logout_delay, "logout")

    async def shutdown(self) -> None:
        """Best-effort teardown: timers, dispatcher and deliveries, then the client"""
        self.cancel_reinitialize()
        for task in (self._startup, self._dispatcher, *self._deliveries):
            if task is not None and not task.done():
                task.cancel()
        try:
            await self.client.destroy()
        except Exception as e:
            logger.error(f"Error destroying WhatsApp client during shutdown: {e}")
        logger.info("Session controller stopped")
