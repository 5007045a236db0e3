"""Administration of roles, role permission rows and per-user override bundles.

These are the writers behind what ``PermissionResolver`` reads. Payloads are
validated here (ValidationError) so malformed entries never reach the store.
"""
from __future__ import annotations
import logging
import re
from typing import Any, Dict, List, Optional

from sleepdesk.constants.permissions import RESOURCE_ACTIONS, SYSTEM_ROLES
from sleepdesk.errors import Conflict, NotFound, ValidationError
from sleepdesk.services.policy import FallbackPolicy, role_id_for
from sleepdesk.store import ROLES, PERMISSIONS, OVERRIDES
from sleepdesk.utils.ids import generate_id
from sleepdesk.utils.timeutil import utcnow, to_iso

logger = logging.getLogger(__name__)

ROLE_NAME_RE = re.compile(r'^[a-z][a-z0-9_-]{1,63}$')


def permission_id(role_id: str, resource: str, action: str) -> str:
    return f'perm-{role_id}-{resource}-{action}'


def validate_entries(entries: Any, registry: Optional[Dict[str, List[str]]] = None) -> List[Dict[str, Any]]:
    """Normalize ``[{resource, action, allowed}]``; unknown pairs and non-bool flags are rejected."""
    registry = registry if registry is not None else RESOURCE_ACTIONS
    if not isinstance(entries, list):
        raise ValidationError('permissions must be a list')
    out: List[Dict[str, Any]] = []
    seen = set()
    for i, e in enumerate(entries):
        if not isinstance(e, dict):
            raise ValidationError(f'permissions[{i}] must be an object')
        resource, action, allowed = e.get('resource'), e.get('action'), e.get('allowed')
        if action not in registry.get(resource, ()):
            raise ValidationError(f'permissions[{i}]: unknown resource/action {resource}.{action}')
        if not isinstance(allowed, bool):
            raise ValidationError(f'permissions[{i}]: allowed must be boolean')
        if (resource, action) in seen:
            raise ValidationError(f'permissions[{i}]: duplicate entry {resource}.{action}')
        seen.add((resource, action))
        out.append({'resource': resource, 'action': action, 'allowed': allowed})
    return out


class RoleAdmin:
    def __init__(self, store, registry: Optional[Dict[str, List[str]]] = None):
        self.store = store
        self.registry = registry if registry is not None else RESOURCE_ACTIONS

    # -- roles --
    def list_roles(self) -> List[Dict[str, Any]]:
        return self.store.list(ROLES)

    def get_role(self, role_id: str) -> Dict[str, Any]:
        role = self.store.get(ROLES, role_id)
        if role is None:
            raise NotFound(ROLES, role_id)
        return role

    def create_role(self, name: str, display_name: str = '', description: str = '', is_system: bool = False) -> Dict[str, Any]:
        if not name or not ROLE_NAME_RE.match(name):
            raise ValidationError('name must be lowercase letters, digits, - or _')
        rid = role_id_for(name)
        if self.store.get(ROLES, rid) is not None:
            raise Conflict(f'role {name} exists')
        return self.store.insert(ROLES, {
            'id': rid,
            'name': name,
            'display_name': display_name or name.title(),
            'description': description or '',
            'is_system': is_system,
            'permissions': [],
        })

    def delete_role(self, role_id: str) -> Dict[str, Any]:
        role = self.get_role(role_id)
        if role.get('is_system'):
            raise Conflict(f'system role {role["name"]} cannot be deleted')
        for row in self.store.list(PERMISSIONS, role_id=role_id):
            self.store.delete(PERMISSIONS, row['id'])
        return self.store.delete(ROLES, role_id)

    # -- role permission rows --
    def list_permissions(self, role_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if role_id:
            return self.store.list(PERMISSIONS, role_id=role_id)
        return self.store.list(PERMISSIONS)

    def set_permission(self, role_id: str, resource: str, action: str, allowed: bool) -> Dict[str, Any]:
        entry = validate_entries([{'resource': resource, 'action': action, 'allowed': allowed}], self.registry)[0]
        self.get_role(role_id)
        pid = permission_id(role_id, resource, action)
        record = {'id': pid, 'role_id': role_id, **entry}
        if self.store.get(PERMISSIONS, pid) is None:
            saved = self.store.insert(PERMISSIONS, record)
        else:
            saved = self.store.replace(PERMISSIONS, pid, record)
        self._sync_role_summary(role_id)
        return saved

    def replace_permissions(self, role_id: str, entries: Any) -> List[Dict[str, Any]]:
        """Full replace of a role's rows: rows not in ``entries`` are removed."""
        entries = validate_entries(entries, self.registry)
        self.get_role(role_id)
        wanted = {permission_id(role_id, e['resource'], e['action']): e for e in entries}
        for row in self.store.list(PERMISSIONS, role_id=role_id):
            if row['id'] not in wanted:
                self.store.delete(PERMISSIONS, row['id'])
        out = []
        for pid, e in wanted.items():
            record = {'id': pid, 'role_id': role_id, **e}
            if self.store.get(PERMISSIONS, pid) is None:
                out.append(self.store.insert(PERMISSIONS, record))
            else:
                out.append(self.store.replace(PERMISSIONS, pid, record))
        self._sync_role_summary(role_id)
        return out

    def _sync_role_summary(self, role_id: str):
        role = self.store.get(ROLES, role_id)
        if role is None:
            return
        allowed = [r['id'] for r in self.store.list(PERMISSIONS, role_id=role_id) if r.get('allowed')]
        self.store.replace(ROLES, role_id, dict(role, permissions=allowed, updated_at=to_iso(utcnow())))

    # -- overrides --
    def list_overrides(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if user_id:
            return self.store.list(OVERRIDES, user_id=user_id)
        return self.store.list(OVERRIDES)

    def create_override(self, user_id: str, permissions: Any, reason: str = '', created_by: Optional[str] = None) -> Dict[str, Any]:
        if not user_id:
            raise ValidationError('user_id required')
        entries = validate_entries(permissions, self.registry)
        if self.store.list(OVERRIDES, user_id=user_id):
            raise Conflict(f'user {user_id} already has an override bundle')
        return self.store.insert(OVERRIDES, {
            'id': generate_id('override'),
            'user_id': user_id,
            'reason': reason or '',
            'permissions': entries,
            'created_at': to_iso(utcnow()),
            'created_by': created_by,
        })

    def replace_override(self, override_id: str, permissions: Any, reason: Optional[str] = None) -> Dict[str, Any]:
        current = self.store.get(OVERRIDES, override_id)
        if current is None:
            raise NotFound(OVERRIDES, override_id)
        entries = validate_entries(permissions, self.registry)
        updated = dict(current, permissions=entries)
        if reason is not None:
            updated['reason'] = reason
        return self.store.replace(OVERRIDES, override_id, updated)

    def delete_override(self, override_id: str) -> Dict[str, Any]:
        return self.store.delete(OVERRIDES, override_id)

    # -- seeding --
    def seed_system_roles(self, fallback: FallbackPolicy) -> Dict[str, int]:
        """Create system roles and materialize the fallback table as explicit rows (idempotent)."""
        counts = {'roles': 0, 'permissions': 0}
        for name, meta in SYSTEM_ROLES.items():
            rid = role_id_for(name)
            if self.store.get(ROLES, rid) is None:
                self.create_role(name, meta['display_name'], meta['description'], is_system=True)
                counts['roles'] += 1
            existing = {r['id'] for r in self.store.list(PERMISSIONS, role_id=rid)}
            for resource, actions in self.registry.items():
                for action in actions:
                    pid = permission_id(rid, resource, action)
                    if pid in existing:
                        continue
                    allowed = fallback.decide(name, resource, action).allowed
                    self.store.insert(PERMISSIONS, {
                        'id': pid, 'role_id': rid, 'resource': resource, 'action': action, 'allowed': allowed,
                    })
                    counts['permissions'] += 1
            self._sync_role_summary(rid)
        logger.info('Seeded %s roles and %s permission rows', counts['roles'], counts['permissions'])
        return counts


__all__ = ['RoleAdmin', 'validate_entries', 'permission_id']
