"""Test seeding utilities to reduce duplication.

These helpers create users, role permission rows and override bundles through the
entity store, the same way the application writes them.
"""
from typing import Dict, Iterable, Optional, Tuple
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from sleepdesk.services.policy import Identity, role_id_for
from sleepdesk.services.roles import permission_id
from sleepdesk.store import USERS, PERMISSIONS, OVERRIDES, ROLES


def ensure_user(store, user_id: str, role: str, email: Optional[str] = None, password: str = 'pw', name: Optional[str] = None):
    user = store.get(USERS, user_id)
    if not user:
        user = store.insert(USERS, {
            'id': user_id,
            'name': name or user_id,
            'email': email or f'{user_id}@test.local',
            'role': role,
            'password_hash': generate_password_hash(password),
            'is_active': True,
        })
    return user


def ensure_role(store, name: str, is_system: bool = False):
    rid = role_id_for(name)
    role = store.get(ROLES, rid)
    if not role:
        role = store.insert(ROLES, {'id': rid, 'name': name, 'display_name': name.title(), 'is_system': is_system})
    return role


def ensure_role_permission(store, role: str, resource: str, action: str, allowed: bool):
    rid = role_id_for(role)
    pid = permission_id(rid, resource, action)
    record = {'id': pid, 'role_id': rid, 'resource': resource, 'action': action, 'allowed': allowed}
    if store.get(PERMISSIONS, pid):
        return store.replace(PERMISSIONS, pid, record)
    return store.insert(PERMISSIONS, record)


def ensure_override(store, user_id: str, entries: Iterable[Tuple[str, str, bool]], reason: str = 'test', override_id: Optional[str] = None):
    return store.insert(OVERRIDES, {
        'id': override_id or f'override-{user_id}',
        'user_id': user_id,
        'reason': reason,
        'permissions': [{'resource': r, 'action': a, 'allowed': ok} for r, a, ok in entries],
    })


def identity(user_id: str, role: str) -> Identity:
    return Identity(user_id=user_id, role=role, email=f'{user_id}@test.local', name=user_id)


def jwt_headers(user_id: str, role: str, email: Optional[str] = None, name: Optional[str] = None) -> Dict[str, str]:
    """Bearer header for a user without going through /iam/auth/login (needs an app context)."""
    token = create_access_token(identity=str(user_id), additional_claims={
        'role': role,
        'email': email or f'{user_id}@test.local',
        'name': name or user_id,
    })
    return {'Authorization': f'Bearer {token}'}


class FailingStore:
    """Store double whose every call raises (simulates an unreachable backend)."""

    def __init__(self, exc: Exception = None):
        self.exc = exc or ConnectionError('store down')
        self.calls = 0

    def _boom(self, *a, **kw):
        self.calls += 1
        raise self.exc

    get = list = insert = replace = delete = _boom


class MemoryStore:
    """Minimal in-memory implementation of the store contract for unit tests."""

    def __init__(self):
        self.collections: Dict[str, list] = {}

    def get(self, collection, record_id):
        for r in self.collections.get(collection, []):
            if r['id'] == record_id:
                return dict(r)
        return None

    def list(self, collection, **equals):
        return [dict(r) for r in self.collections.get(collection, []) if all(r.get(k) == v for k, v in equals.items())]

    def insert(self, collection, record):
        rows = self.collections.setdefault(collection, [])
        rows.append(dict(record))
        return dict(record)

    def replace(self, collection, record_id, record):
        rows = self.collections.get(collection, [])
        for i, r in enumerate(rows):
            if r['id'] == record_id:
                rows[i] = dict(record, id=record_id)
                return dict(rows[i])
        from sleepdesk.errors import NotFound
        raise NotFound(collection, record_id)

    def delete(self, collection, record_id):
        rows = self.collections.get(collection, [])
        for i, r in enumerate(rows):
            if r['id'] == record_id:
                return rows.pop(i)
        from sleepdesk.errors import NotFound
        raise NotFound(collection, record_id)


__all__ = [
    'ensure_user', 'ensure_role', 'ensure_role_permission', 'ensure_override', 'identity', 'jwt_headers',
    'FailingStore', 'MemoryStore',
]
