"""Capability tokens and admin key checks.

Each booking carries three independent tokens. They are drawn separately so
that leaking one (e.g. the cancel link in an e-mail) grants nothing else.
"""

import secrets

from app.core.config import settings

SESSION_TOKEN_PREFIX = "tok_"
CANCEL_TOKEN_PREFIX = "cancel_"
RESCHEDULE_TOKEN_PREFIX = "reschedule_"


def generate_session_token() -> str:
    """Generate the token that authorises confirming a hold."""
    return f"{SESSION_TOKEN_PREFIX}{secrets.token_hex(32)}"


def generate_cancel_token() -> str:
    """Generate the token that authorises cancelling a booking."""
    return f"{CANCEL_TOKEN_PREFIX}{secrets.token_hex(16)}"


def generate_reschedule_token() -> str:
    """Generate the token reserved for rescheduling."""
    return f"{RESCHEDULE_TOKEN_PREFIX}{secrets.token_hex(16)}"


def verify_admin_key(provided: str | None, expected: str | None = None) -> bool:
    """Compare an admin key in constant time."""
    expected = expected if expected is not None else settings.admin_api_key
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())
