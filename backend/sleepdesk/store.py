"""Collection-of-records entity store backed by SQLAlchemy.

Contract (mirrors a json-server style REST store):
    get(collection, id)            -> dict | None
    list(collection, **equals)     -> [dict] in insertion order, equality filters only
    insert(collection, record)     -> dict
    replace(collection, id, rec)   -> dict (full replace, NotFound when missing)
    delete(collection, id)         -> dict (removed record, NotFound when missing)

Collections with a typed model serialize columns by column name; every other
collection name is kept as a JSON document in ``records``. SQLAlchemy failures
surface as StoreUnavailable (IntegrityError as Conflict). No locking: the last
write wins.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

from sqlalchemy import select, DateTime
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sleepdesk.errors import StoreUnavailable, NotFound, Conflict, ValidationError
from sleepdesk.models.authz import Base, Role, Permission, UserPermissionOverride, User
from sleepdesk.models.audit import ActivityLog
from sleepdesk.models.webhook import Webhook, WebhookEvent
from sleepdesk.models.record import Record
from sleepdesk.utils.ids import generate_id
from sleepdesk.utils.timeutil import to_iso, parse_iso

logger = logging.getLogger(__name__)

ROLES = 'roles'
PERMISSIONS = 'permissions'
OVERRIDES = 'user_permission_overrides'
ACTIVITY_LOGS = 'activity_logs'
WEBHOOKS = 'webhooks'
WEBHOOK_EVENTS = 'webhook_events'
USERS = 'users'

TYPED_COLLECTIONS: Dict[str, Type[Base]] = {
    ROLES: Role,
    PERMISSIONS: Permission,
    OVERRIDES: UserPermissionOverride,
    ACTIVITY_LOGS: ActivityLog,
    WEBHOOKS: Webhook,
    WEBHOOK_EVENTS: WebhookEvent,
    USERS: User,
}

# insertion-order proxies per typed model (string primary keys carry no sequence)
_ORDER_BY = {
    Role: ('created_at', 'id'),
    Permission: ('id',),
    UserPermissionOverride: ('created_at', 'id'),
    ActivityLog: ('timestamp', 'id'),
    Webhook: ('received_at', 'id'),
    WebhookEvent: ('id',),
    User: ('id',),
}


def _columns(model):
    """Yield (attribute key, column) pairs for a mapped model."""
    for attr in model.__mapper__.column_attrs:
        yield attr.key, attr.columns[0]


def model_to_dict(obj) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, col in _columns(type(obj)):
        val = getattr(obj, key)
        if isinstance(val, datetime):
            val = to_iso(val)
        out[col.name] = val
    return out


def _apply_dict(obj, model, record: Dict[str, Any], partial: bool = False):
    for key, col in _columns(model):
        if col.name not in record:
            if not partial and not col.primary_key and col.server_default is None:
                # full replace: absent fields fall back to the column default
                default = None
                if col.default is not None:
                    # callable column defaults are wrapped to accept an execution context
                    default = col.default.arg(None) if col.default.is_callable else col.default.arg
                setattr(obj, key, default)
            continue
        val = record[col.name]
        if isinstance(col.type, DateTime) and val is not None:
            try:
                val = parse_iso(val)
            except ValueError:
                raise ValidationError(f'{col.name} must be ISO-8601 timestamp')
        setattr(obj, key, val)


class EntityStore:
    """SQLAlchemy-backed implementation of the collection store contract."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            from sleepdesk import get_db
            session_factory = get_db
        self._session_factory = session_factory

    # -- helpers --
    def _session(self) -> Session:
        return self._session_factory()

    def _fail(self, session: Session, collection: str, exc: Exception):
        try:
            session.rollback()
        except SQLAlchemyError:
            logger.debug('rollback failed after store error', exc_info=True)
        if isinstance(exc, IntegrityError):
            raise Conflict(f'{collection}: duplicate or invalid record') from exc
        raise StoreUnavailable(f'{collection}: {exc.__class__.__name__}', collection=collection) from exc

    def _find(self, session: Session, collection: str, record_id: str):
        model = TYPED_COLLECTIONS.get(collection)
        if model is not None:
            return session.get(model, record_id)
        return session.execute(
            select(Record).where(Record.collection == collection, Record.record_id == str(record_id))
        ).scalar_one_or_none()

    @staticmethod
    def _serialize(collection: str, obj) -> Dict[str, Any]:
        if isinstance(obj, Record):
            data = dict(obj.data or {})
            data['id'] = obj.record_id
            return data
        return model_to_dict(obj)

    # -- contract --
    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        session = self._session()
        try:
            obj = self._find(session, collection, record_id)
            return self._serialize(collection, obj) if obj is not None else None
        except SQLAlchemyError as e:
            self._fail(session, collection, e)

    def list(self, collection: str, **equals: Any) -> List[Dict[str, Any]]:
        session = self._session()
        model = TYPED_COLLECTIONS.get(collection)
        try:
            if model is None:
                rows = session.execute(
                    select(Record).where(Record.collection == collection).order_by(Record.pk.asc())
                ).scalars().all()
                out = [self._serialize(collection, r) for r in rows]
                return [r for r in out if all(r.get(k) == v for k, v in equals.items())]
            cols = {col.name: getattr(model, key) for key, col in _columns(model)}
            q = select(model)
            for name, value in equals.items():
                if name not in cols:
                    raise ValidationError(f'Unknown filter field {name} for {collection}')
                q = q.where(cols[name] == value)
            order = [getattr(model, k).asc() for k in _ORDER_BY[model]]
            rows = session.execute(q.order_by(*order)).scalars().all()
            return [self._serialize(collection, r) for r in rows]
        except SQLAlchemyError as e:
            self._fail(session, collection, e)

    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        session = self._session()
        record = dict(record)
        record_id = record.get('id') or generate_id(collection[:3])
        record['id'] = record_id
        model = TYPED_COLLECTIONS.get(collection)
        try:
            if model is None:
                data = {k: v for k, v in record.items() if k != 'id'}
                obj = Record(collection=collection, record_id=str(record_id), data=data)
            else:
                obj = model()
                _apply_dict(obj, model, record, partial=True)
            session.add(obj)
            session.commit()
            session.refresh(obj)
            return self._serialize(collection, obj)
        except SQLAlchemyError as e:
            self._fail(session, collection, e)

    def replace(self, collection: str, record_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        session = self._session()
        model = TYPED_COLLECTIONS.get(collection)
        try:
            obj = self._find(session, collection, record_id)
            if obj is None:
                raise NotFound(collection, record_id)
            body = {k: v for k, v in record.items() if k != 'id'}
            if model is None:
                obj.data = body
            else:
                _apply_dict(obj, model, body)
            session.commit()
            session.refresh(obj)
            return self._serialize(collection, obj)
        except SQLAlchemyError as e:
            self._fail(session, collection, e)

    def delete(self, collection: str, record_id: str) -> Dict[str, Any]:
        session = self._session()
        try:
            obj = self._find(session, collection, record_id)
            if obj is None:
                raise NotFound(collection, record_id)
            snapshot = self._serialize(collection, obj)
            session.delete(obj)
            session.commit()
            return snapshot
        except SQLAlchemyError as e:
            self._fail(session, collection, e)


__all__ = [
    'EntityStore', 'model_to_dict', 'TYPED_COLLECTIONS',
    'ROLES', 'PERMISSIONS', 'OVERRIDES', 'ACTIVITY_LOGS', 'WEBHOOKS', 'WEBHOOK_EVENTS', 'USERS',
]
