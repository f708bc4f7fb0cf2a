# This file makes the auth directory a Python package

"""
API key issuing, validation and usage bookkeeping.
"""

from app.services.auth.api_keys import KeyStore, hash_key, new_api_key

__all__ = [
    "KeyStore",
    "hash_key",
    "new_api_key",
]
