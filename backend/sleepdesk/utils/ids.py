from __future__ import annotations
import secrets
import string
from typing import Optional
from datetime import datetime

from sleepdesk.utils.timeutil import epoch_millis

_ALPHABET = string.digits + string.ascii_lowercase


def random_suffix(length: int = 9) -> str:
    return ''.join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_id(prefix: str, now: Optional[datetime] = None) -> str:
    """``<prefix>-<epoch millis>-<9 base36 chars>``, e.g. ``log-1760884500123-k3j9x0a1b``."""
    return f"{prefix}-{epoch_millis(now)}-{random_suffix()}"

__all__ = ['generate_id', 'random_suffix']
