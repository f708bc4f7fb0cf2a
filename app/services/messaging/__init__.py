"""
WhatsApp messaging for the gateway.

This package defines the client seam the session controller drives, the
Playwright-backed WhatsApp Web client, identifier normalization and the
service translating gateway requests into client calls.
"""

from app.services.messaging.base import ClientEvent, MessageMedia, SessionClient
from app.services.messaging.service import MessagingService

__all__ = [
    "ClientEvent",
    "MessageMedia",
    "SessionClient",
    "MessagingService",
]
