"""Activity logging decorator for route handlers that mutate configuration.

Usage examples:

@audit_log('create', resource='roles', resource_id_key='id', detail_keys=['name'])
def create_role():
    ... return role, 201

@audit_log('update', resource='permissions', resource_id_arg='role_id',
           details_builder=lambda data, rv, args, kwargs: {'count': len(data.get('data', []))})
def replace_role_permissions(role_id): ...

Parameters:
  action: activity action kind (create, update, delete, change_status, ...)
  resource: activity resource key (roles, permissions, webhooks, ...)
  resource_id_key: key in the returned JSON object whose value becomes resource_id.
  resource_id_arg: name of the path parameter to use for resource_id (fallback if resource_id_key absent).
  detail_keys: keys to project from the returned JSON into details.
  details_builder: callable returning a details dict; receives (data, original_return_value, args, kwargs).
  diff_keys / pre_fetch: when both given, ``pre_fetch(args, kwargs)`` snapshots the record before the
    view runs and changed keys are logged as details['changes'] = {key: {before, after}}.

The entry is written only after the view returned normally; an aborted or
failing view raises before anything is logged, and the recorder never raises.
"""
from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict
import logging

from sleepdesk.decorators.auth import current_identity
from sleepdesk.extensions import current_services

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, original_rv) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        return rv[0], rv
    return rv, rv


def _diff(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    changes = {}
    for k in keys:
        if k in before and k in after and before.get(k) != after.get(k):
            changes[k] = {'before': before.get(k), 'after': after.get(k)}
    return changes


def audit_log(
    action: str,
    *,
    resource: str,
    resource_id_key: Optional[str] = None,
    resource_id_arg: Optional[str] = None,
    detail_keys: Optional[Iterable[str]] = None,
    details_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if diff_keys and pre_fetch:
                try:
                    before_snapshot = pre_fetch(args, kwargs)
                except Exception:
                    logger.warning('pre_fetch failed for %s %s', action, resource, exc_info=True)
            rv = fn(*args, **kwargs)
            try:
                data, _ = _extract_payload(rv)
                if not isinstance(data, dict):
                    data = {}
                resource_id = None
                if resource_id_key and resource_id_key in data:
                    resource_id = data.get(resource_id_key)
                elif resource_id_arg and resource_id_arg in kwargs:
                    resource_id = kwargs.get(resource_id_arg)
                details: Dict[str, Any] = {}
                if details_builder:
                    details = details_builder(data, rv, args, kwargs) or {}
                elif detail_keys:
                    details = {k: data.get(k) for k in detail_keys if k in data}
                metadata = None
                if diff_keys and isinstance(before_snapshot, dict):
                    changes = _diff(before_snapshot, data, diff_keys)
                    if changes:
                        details['changes'] = changes
                    metadata = {'previous_data': before_snapshot}
                current_services().recorder.log(current_identity(), action, resource, resource_id, details, metadata)
            except Exception:
                # the response is already built; a broken audit hook must not replace it
                logger.exception('audit_log hook failed for %s %s', action, resource)
            return rv
        return wrapper
    return outer
