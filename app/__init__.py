# This file makes the app directory a Python package

"""
WhatsApp Gateway: HTTP and WebSocket access to a WhatsApp Web session.

This package provides a FastAPI application that pairs a WhatsApp account
through a browser-driven client, keeps the session alive and exposes
messaging operations behind API keys.
"""

__version__ = "0.1.0"
