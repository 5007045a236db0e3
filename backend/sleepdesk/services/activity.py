"""Activity (audit) log recording and querying.

Recording is best-effort: ``ActivityLogRecorder.log`` never raises. Records are
handed to a sink; ``InlineAuditSink`` writes immediately, ``BackgroundAuditSink``
queues into a bounded queue drained by a daemon thread. Either way a failed
write is logged and dropped so the triggering business operation is unaffected.
"""
from __future__ import annotations
import logging
import queue
import threading
from typing import Any, Callable, Dict, List, Optional

from sleepdesk.constants import activity as acts
from sleepdesk.services.policy import Identity
from sleepdesk.store import ACTIVITY_LOGS
from sleepdesk.utils.ids import generate_id
from sleepdesk.utils.timeutil import utcnow, to_iso, parse_iso

logger = logging.getLogger(__name__)

Writer = Callable[[Dict[str, Any]], Any]


class InlineAuditSink:
    def __init__(self, writer: Writer):
        self.writer = writer

    def submit(self, record: Dict[str, Any]) -> bool:
        try:
            self.writer(record)
            return True
        except Exception:
            logger.exception('Failed to write activity log %s', record.get('id'))
            return False

    def flush(self, timeout: Optional[float] = None):
        return True

    def close(self):
        pass


class BackgroundAuditSink:
    """Bounded queue + daemon drain thread. Full queue drops the record (logged)."""

    _STOP = object()

    def __init__(self, writer: Writer, maxsize: int = 1000):
        self.writer = writer
        self.queue: 'queue.Queue[Any]' = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self._thread = threading.Thread(target=self._drain, name='audit-sink', daemon=True)
        self._thread.start()

    def submit(self, record: Dict[str, Any]) -> bool:
        try:
            self.queue.put_nowait(record)
            return True
        except queue.Full:
            self.dropped += 1
            logger.warning('Audit queue full; dropped activity log %s', record.get('id'))
            return False

    def _drain(self):
        while True:
            item = self.queue.get()
            try:
                if item is self._STOP:
                    return
                self.writer(item)
            except Exception:
                logger.exception('Failed to write activity log %s', item.get('id') if isinstance(item, dict) else None)
            finally:
                self.queue.task_done()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until queued records are written (True) or timeout elapses (False)."""
        if timeout is None:
            self.queue.join()
            return True
        done = threading.Event()

        def _wait():
            self.queue.join()
            done.set()

        threading.Thread(target=_wait, daemon=True).start()
        return done.wait(timeout)

    def close(self, timeout: Optional[float] = 5.0):
        self.queue.put(self._STOP)
        self._thread.join(timeout)


def store_writer(store) -> Writer:
    def write(record: Dict[str, Any]):
        return store.insert(ACTIVITY_LOGS, record)
    return write


class ActivityLogRecorder:
    def __init__(self, sink, clock: Callable = utcnow):
        self.sink = sink
        self.clock = clock

    def build(self, identity: Identity, action: str, resource: str, resource_id=None,
              details: Optional[Dict[str, Any]] = None, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        now = self.clock()
        return {
            'id': generate_id('log', now),
            'user_id': identity.user_id,
            'user_email': identity.email,
            'user_name': identity.name,
            'action': action,
            'resource': resource,
            'resource_id': str(resource_id) if resource_id is not None else None,
            'details': details or {},
            'metadata': metadata or {},
            'timestamp': to_iso(now),
        }

    def log(self, identity: Optional[Identity], action: str, resource: str, resource_id=None,
            details: Optional[Dict[str, Any]] = None, metadata: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Record one activity; returns the submitted record or None. Never raises."""
        if identity is None:
            logger.warning('No identity for activity %s on %s; not logged', action, resource)
            return None
        try:
            record = self.build(identity, action, resource, resource_id, details, metadata)
        except Exception:
            logger.exception('Could not build activity log for %s %s', action, resource)
            return None
        return record if self.sink.submit(record) else None

    # -- per-action helpers --
    def log_create(self, identity, resource, resource_id, details=None):
        return self.log(identity, acts.CREATE, resource, resource_id, details)

    def log_update(self, identity, resource, resource_id, changes: Dict[str, Any], previous_data=None):
        changes = dict(changes or {})
        details = {'changes': changes, 'fields': list(changes.keys())}
        metadata = {'previous_data': previous_data} if previous_data else {}
        return self.log(identity, acts.UPDATE, resource, resource_id, details, metadata)

    def log_delete(self, identity, resource, resource_id, details=None):
        return self.log(identity, acts.DELETE, resource, resource_id, details)

    def log_view(self, identity, resource, resource_id, details=None):
        return self.log(identity, acts.VIEW, resource, resource_id, details)

    def log_login(self, identity, user_agent: Optional[str] = None, **details):
        details = {**details, 'user_agent': user_agent or '', 'timestamp': to_iso(self.clock())}
        return self.log(identity, acts.LOGIN, acts.RESOURCE_AUTH, None, details)

    def log_logout(self, identity):
        return self.log(identity, acts.LOGOUT, acts.RESOURCE_AUTH)

    def log_export(self, identity, resource, details=None):
        return self.log(identity, acts.EXPORT, resource, None, details)

    def log_import(self, identity, resource, details=None):
        return self.log(identity, acts.IMPORT, resource, None, details)

    def log_sync(self, identity, resource, details=None):
        return self.log(identity, acts.SYNC, resource, None, details)

    def log_call(self, identity, call_id, customer_id, details=None):
        return self.log(identity, acts.MAKE_CALL, acts.RESOURCE_CALLS, call_id, {'customer_id': customer_id, **(details or {})})

    def log_status_change(self, identity, resource, resource_id, from_status, to_status, reason=None):
        return self.log(identity, acts.CHANGE_STATUS, resource, resource_id, {
            'from_status': from_status,
            'to_status': to_status,
            'reason': reason,
        })


def _newest_first(logs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(logs, key=lambda r: (r.get('timestamp') or '', r.get('id') or ''), reverse=True)


class ActivityLogQuery:
    """Read side over the activity_logs collection (append-only, no update/delete)."""

    def __init__(self, store):
        self.store = store

    def get_activity_logs(self, user_id=None, resource=None, action=None, start_date=None, end_date=None,
                          limit: Optional[int] = None) -> List[Dict[str, Any]]:
        equals = {k: v for k, v in (('user_id', user_id), ('resource', resource), ('action', action)) if v}
        logs = _newest_first(self.store.list(ACTIVITY_LOGS, **equals))
        start = parse_iso(start_date)
        end = parse_iso(end_date)
        if start or end:
            # the store only filters on equality; date range is applied here
            def in_range(r):
                ts = parse_iso(r.get('timestamp'))
                if start and ts < start:
                    return False
                if end and ts > end:
                    return False
                return True
            logs = [r for r in logs if in_range(r)]
        if limit:
            logs = logs[:limit]
        return logs

    def get_resource_history(self, resource: str, resource_id) -> List[Dict[str, Any]]:
        return _newest_first(self.store.list(ACTIVITY_LOGS, resource=resource, resource_id=str(resource_id)))

    def get(self, log_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(ACTIVITY_LOGS, log_id)


__all__ = ['InlineAuditSink', 'BackgroundAuditSink', 'store_writer', 'ActivityLogRecorder', 'ActivityLogQuery']
