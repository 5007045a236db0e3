from functools import wraps
from typing import Optional

from flask import abort
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity, get_jwt

from sleepdesk.extensions import current_services
from sleepdesk.services.policy import Identity

def current_identity() -> Optional[Identity]:
    """Identity of the verified JWT on this request (None when absent)."""
    verify_jwt_in_request(optional=True)
    user_id = get_jwt_identity()
    return Identity.from_claims(user_id, get_jwt()) if user_id else None


def ensure_access(resource: str, action: str) -> Identity:
    verify_jwt_in_request()
    identity = current_identity()
    decision = current_services().resolver.can(identity, resource, action)
    if not decision.allowed:
        abort(403, description=decision.reason)
    return identity

def require_access(resource: str, action: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            ensure_access(resource, action)
            return fn(*args, **kwargs)
        return wrapper
    return outer
