"""
Session lifecycle: pairing, readiness and reinitialization with backoff.
"""

from app.services.session.controller import SessionController, SessionState

__all__ = ["SessionController", "SessionState"]
