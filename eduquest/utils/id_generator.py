"""
Opaque id generation for sessions and requests
"""
import secrets
import string
import time

_ALPHABET = string.digits + string.ascii_lowercase


def generate_id(prefix: str = "session") -> str:
    """
    Build '{prefix}_{epochMillis}_{9 random base36 chars}'

    Collisions are unlikely in a single process but not cryptographically
    ruled out. Callers must treat the result as an opaque string.
    """
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"
