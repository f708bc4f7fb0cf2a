from dataclasses import dataclass
from typing import Optional

from app.config import Settings
from app.services.auth.api_keys import KeyStore
from app.services.messaging.base import SessionClient
from app.services.messaging.service import MessagingService
from app.services.realtime import Broadcaster
from app.services.session.clock import Clock
from app.services.session.controller import SessionController
from app.services.webhook import WebhookRegistration


@dataclass
class GatewayContext:
    """Process-wide state shared by the HTTP and real-time surfaces"""

    settings: Settings
    keys: KeyStore
    broadcaster: Broadcaster
    webhook: WebhookRegistration
    controller: SessionController
    messaging: MessagingService


def build_context(
    settings: Settings,
    client: Optional[SessionClient] = None,
    clock: Optional[Clock] = None,
) -> GatewayContext:
    if client is None:
        from app.services.messaging.browser import BrowserClient

        client = BrowserClient(
            profile_dir=settings.session_path,
            cache_dir=settings.cache_path,
            executable_path=settings.BROWSER_EXECUTABLE_PATH,
            headless=settings.BROWSER_HEADLESS,
        )

    keys = KeyStore(
        settings.API_KEYS_FILE,
        master_key=settings.MASTER_KEY,
        touch_interval=settings.KEY_TOUCH_INTERVAL,
    )
    broadcaster = Broadcaster()
    webhook = WebhookRegistration(timeout=settings.WEBHOOK_TIMEOUT)
    controller = SessionController(
        client,
        broadcaster,
        webhook=webhook,
        clock=clock,
        base_delay=settings.REINIT_BASE_DELAY,
        max_delay=settings.REINIT_MAX_DELAY,
        logout_delay=settings.LOGOUT_REINIT_DELAY,
        session_paths=[settings.session_path, settings.cache_path],
        print_qr=settings.QR_PRINT_TERMINAL,
    )
    messaging = MessagingService(controller, profile_pic_timeout=settings.PROFILE_PIC_TIMEOUT)
    return GatewayContext(
        settings=settings,
        keys=keys,
        broadcaster=broadcaster,
        webhook=webhook,
        controller=controller,
        messaging=messaging,
    )
