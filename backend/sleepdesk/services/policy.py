"""Permission resolution: user override, then role permission row, then fallback role policy.

Every decision is a value (``Decision``), never an exception. Store failures and
malformed rows are logged and resolution falls straight through to the fallback
policy so a degraded backend cannot lock administrators out.
"""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sleepdesk.constants.permissions import (
    RESOURCE_ACTIONS,
    DEFAULT_ROLE_POLICIES,
    REASON_OVERRIDE_DENIED,
    REASON_ROLE_DENIED,
    REASON_UNRECOGNIZED_ROLE,
    REASON_UNAUTHENTICATED,
)
from sleepdesk.errors import ValidationError
from sleepdesk.store import OVERRIDES, PERMISSIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The signed-in user, passed explicitly to the resolver and the activity recorder."""
    user_id: str
    role: str
    email: str = ''
    name: str = ''

    @classmethod
    def from_claims(cls, user_id: str, claims: Mapping[str, Any]) -> 'Identity':
        return cls(
            user_id=str(user_id),
            role=claims.get('role') or '',
            email=claims.get('email') or '',
            name=claims.get('name') or '',
        )


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {'allowed': self.allowed}
        if self.reason:
            out['reason'] = self.reason
        return out


def role_id_for(role: str) -> str:
    return f'role-{role}'


# --- Fallback policy ---

@dataclass
class RolePolicy:
    default_allowed: bool
    reason: Optional[str] = None
    exceptions: Dict[Tuple[str, str], bool] = field(default_factory=dict)

    def decide(self, resource: str, action: str) -> Decision:
        allowed = self.exceptions.get((resource, action), self.default_allowed)
        return Decision(allowed, None if allowed else self.reason)


class FallbackPolicy:
    """Data-driven default table keyed by role name.

    Built from a mapping shaped like ``DEFAULT_ROLE_POLICIES``::

        {'agent': {'default': 'deny', 'reason': '...', 'exceptions': [{'resource', 'action', 'allowed'}]}}
    """

    def __init__(self, roles: Dict[str, RolePolicy]):
        self.roles = roles

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'FallbackPolicy':
        if not isinstance(mapping, Mapping):
            raise ValidationError('role policy must be an object keyed by role')
        roles: Dict[str, RolePolicy] = {}
        for role, policy_cfg in mapping.items():
            if not isinstance(policy_cfg, Mapping):
                raise ValidationError(f'policy for role {role} must be an object')
            default = policy_cfg.get('default')
            if default not in ('allow', 'deny'):
                raise ValidationError(f'policy for role {role}: default must be allow|deny')
            exceptions: Dict[Tuple[str, str], bool] = {}
            for entry in policy_cfg.get('exceptions') or []:
                if not isinstance(entry, Mapping) or not isinstance(entry.get('allowed'), bool) \
                        or not entry.get('resource') or not entry.get('action'):
                    raise ValidationError(f'policy for role {role}: invalid exception {entry!r}')
                exceptions[(entry['resource'], entry['action'])] = entry['allowed']
            roles[role] = RolePolicy(default_allowed=default == 'allow', reason=policy_cfg.get('reason'), exceptions=exceptions)
        return cls(roles)

    @classmethod
    def from_file(cls, path: str) -> 'FallbackPolicy':
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_mapping(json.load(f))

    def decide(self, role: str, resource: str, action: str) -> Decision:
        policy = self.roles.get(role)
        if policy is None:
            return Decision(False, REASON_UNRECOGNIZED_ROLE)
        return policy.decide(resource, action)


def load_fallback_policy(path: Optional[str] = None) -> FallbackPolicy:
    if path:
        logger.info('Loading role fallback policy from %s', path)
        return FallbackPolicy.from_file(path)
    return FallbackPolicy.from_mapping(DEFAULT_ROLE_POLICIES)


# --- Resolver ---

_UNAVAILABLE = object()


def _override_entries(bundles: List[Dict[str, Any]]) -> Dict[Tuple[str, str], bool]:
    """Entries of the first bundle; malformed entries are skipped."""
    if not bundles:
        return {}
    if len(bundles) > 1:
        logger.warning('User %s has %d override bundles; using %s', bundles[0].get('user_id'), len(bundles), bundles[0].get('id'))
    entries = bundles[0].get('permissions')
    if not isinstance(entries, list):
        logger.warning('Override %s has malformed permissions; ignoring it', bundles[0].get('id'))
        return {}
    out: Dict[Tuple[str, str], bool] = {}
    for e in entries:
        if isinstance(e, dict) and isinstance(e.get('allowed'), bool):
            # first entry for a pair wins
            out.setdefault((e.get('resource'), e.get('action')), e['allowed'])
    return out


def _role_rows(rows: List[Dict[str, Any]]) -> Dict[Tuple[str, str], bool]:
    out: Dict[Tuple[str, str], bool] = {}
    for r in rows:
        if isinstance(r, dict) and isinstance(r.get('allowed'), bool):
            out.setdefault((r.get('resource'), r.get('action')), r['allowed'])
    return out


class PermissionSnapshot:
    """Overrides and role rows for one identity, fetched once for batch evaluation."""

    def __init__(self, role: str, overrides, role_rows, fallback: FallbackPolicy):
        self.role = role
        self.overrides = overrides
        self.role_rows = role_rows
        self.fallback = fallback

    def decide(self, resource: str, action: str) -> Decision:
        if self.overrides is _UNAVAILABLE:
            return self.fallback.decide(self.role, resource, action)
        key = (resource, action)
        if key in self.overrides:
            allowed = self.overrides[key]
            return Decision(allowed, None if allowed else REASON_OVERRIDE_DENIED)
        if self.role_rows is _UNAVAILABLE:
            return self.fallback.decide(self.role, resource, action)
        if key in self.role_rows:
            allowed = self.role_rows[key]
            return Decision(allowed, None if allowed else REASON_ROLE_DENIED)
        return self.fallback.decide(self.role, resource, action)


class PermissionResolver:
    def __init__(self, store, fallback: Optional[FallbackPolicy] = None, registry: Optional[Dict[str, List[str]]] = None):
        self.store = store
        self.fallback = fallback or load_fallback_policy()
        self.registry = registry if registry is not None else RESOURCE_ACTIONS

    def _read(self, collection: str, **equals):
        try:
            rows = self.store.list(collection, **equals)
        except Exception:
            logger.warning('%s unavailable; falling back to default role policy', collection, exc_info=True)
            return _UNAVAILABLE
        if not isinstance(rows, list):
            logger.warning('%s returned malformed data; falling back to default role policy', collection)
            return _UNAVAILABLE
        return rows

    def _overrides(self, user_id: str):
        bundles = self._read(OVERRIDES, user_id=user_id)
        return bundles if bundles is _UNAVAILABLE else _override_entries(bundles)

    def _rows(self, role: str, **equals):
        rows = self._read(PERMISSIONS, role_id=role_id_for(role), **equals)
        return rows if rows is _UNAVAILABLE else _role_rows(rows)

    def evaluate(self, user_id: str, role: str, resource: str, action: str) -> Decision:
        overrides = self._overrides(user_id)
        if overrides is not _UNAVAILABLE and (resource, action) not in overrides:
            rows = self._rows(role, resource=resource, action=action)
        else:
            rows = {}
        return PermissionSnapshot(role, overrides, rows, self.fallback).decide(resource, action)

    def snapshot(self, user_id: str, role: str) -> PermissionSnapshot:
        overrides = self._overrides(user_id)
        rows = self._rows(role) if overrides is not _UNAVAILABLE else {}
        return PermissionSnapshot(role, overrides, rows, self.fallback)

    def resolve_all(self, user_id: str, role: str) -> List[Dict[str, Any]]:
        snap = self.snapshot(user_id, role)
        out = []
        for resource, actions in self.registry.items():
            for action in actions:
                decision = snap.decide(resource, action)
                out.append({'resource': resource, 'action': action, **decision.to_dict()})
        return out

    def resource_permissions(self, user_id: str, role: str, resource: str) -> Dict[str, bool]:
        snap = self.snapshot(user_id, role)
        actions = self.registry.get(resource) or ['list', 'create', 'edit', 'delete', 'show']
        return {action: snap.decide(resource, action).allowed for action in actions}

    def can(self, identity: Optional[Identity], resource: str, action: str) -> Decision:
        if identity is None:
            return Decision(False, REASON_UNAUTHENTICATED)
        return self.evaluate(identity.user_id, identity.role, resource, action)

    def can_any(self, identity: Optional[Identity], resource: str, actions: Iterable[str]) -> bool:
        if identity is None:
            return False
        snap = self.snapshot(identity.user_id, identity.role)
        return any(snap.decide(resource, a).allowed for a in actions)


__all__ = [
    'Identity', 'Decision', 'RolePolicy', 'FallbackPolicy', 'load_fallback_policy',
    'PermissionSnapshot', 'PermissionResolver', 'role_id_for',
]
