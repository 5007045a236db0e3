"""Environment-backed settings read once by ``create_app``.

Values can always be overridden by the ``config`` mapping passed to the factory,
which is how the test-suite switches to an in-memory database and inline audit sink.
"""
from __future__ import annotations
import os
from typing import Any, Dict

AUDIT_SINK_BACKGROUND = 'background'
AUDIT_SINK_INLINE = 'inline'


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f'{name} must be int')


def load_settings() -> Dict[str, Any]:
    return {
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'AUDIT_SINK': os.getenv('AUDIT_SINK', AUDIT_SINK_BACKGROUND),
        'AUDIT_QUEUE_SIZE': _int_env('AUDIT_QUEUE_SIZE', 1000),
        'WEBHOOK_MAX_ATTEMPTS': _int_env('WEBHOOK_MAX_ATTEMPTS', 3),
        'SHOPIFY_WEBHOOK_SECRET': os.getenv('SHOPIFY_WEBHOOK_SECRET', ''),
        'ROLE_POLICY_FILE': os.getenv('ROLE_POLICY_FILE', ''),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
    }

__all__ = ['load_settings', 'AUDIT_SINK_BACKGROUND', 'AUDIT_SINK_INLINE']
