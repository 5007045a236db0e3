"""Demo user directory backing the JWT login (password hashes via werkzeug)."""
from __future__ import annotations
from typing import Any, Dict, Optional

from werkzeug.security import generate_password_hash, check_password_hash

from sleepdesk.constants.permissions import SYSTEM_ROLES
from sleepdesk.errors import Conflict, ValidationError
from sleepdesk.services.policy import Identity
from sleepdesk.store import USERS

PUBLIC_FIELDS = ('id', 'name', 'email', 'role', 'is_active')

DEMO_USERS = [
    {'id': 'admin-001', 'name': 'Admin User', 'email': 'admin@sleepdesk.local', 'role': 'admin', 'password': 'admin123'},
    {'id': 'emp-002', 'name': 'Manager User', 'email': 'manager@sleepdesk.local', 'role': 'manager', 'password': 'manager123'},
    {'id': 'emp-001', 'name': 'Agent User', 'email': 'agent@sleepdesk.local', 'role': 'agent', 'password': 'agent123'},
]


def public(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: user.get(k) for k in PUBLIC_FIELDS}


def identity_for(user: Dict[str, Any]) -> Identity:
    return Identity(user_id=user['id'], role=user['role'], email=user.get('email') or '', name=user.get('name') or '')


class UserDirectory:
    def __init__(self, store):
        self.store = store

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(USERS, user_id)

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        rows = self.store.list(USERS, email=email)
        return rows[0] if rows else None

    def create_user(self, user_id: str, name: str, email: str, role: str, password: str) -> Dict[str, Any]:
        if not (user_id and name and email and password):
            raise ValidationError('id, name, email & password required')
        if self.find_by_email(email) is not None:
            raise Conflict(f'email {email} in use')
        return self.store.insert(USERS, {
            'id': user_id,
            'name': name,
            'email': email,
            'role': role,
            'password_hash': generate_password_hash(password),
            'is_active': True,
        })

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        user = self.find_by_email(email)
        if not user or not user.get('is_active') or not user.get('password_hash'):
            return None
        if not check_password_hash(user['password_hash'], password):
            return None
        return user

    def seed_demo_users(self) -> int:
        created = 0
        for u in DEMO_USERS:
            if u['role'] not in SYSTEM_ROLES or self.get(u['id']) is not None:
                continue
            self.create_user(u['id'], u['name'], u['email'], u['role'], u['password'])
            created += 1
        return created


__all__ = ['UserDirectory', 'public', 'identity_for', 'DEMO_USERS']
