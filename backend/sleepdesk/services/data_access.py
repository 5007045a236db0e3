"""Entity store access that writes one activity log entry per operation.

The audit entry is submitted only after the store call returned; a store failure
raises before anything is logged and an audit failure never reaches the caller.
Batch calls log the items already applied before re-raising a mid-batch failure.
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional

from sleepdesk.constants.activity import VIEW_AUDITED_LISTS
from sleepdesk.errors import NotFound
from sleepdesk.services.activity import ActivityLogRecorder
from sleepdesk.services.policy import Identity
from sleepdesk.utils.timeutil import utcnow, to_iso


BULK = 'bulk'


class AuditedDataAccess:
    def __init__(self, store, recorder: ActivityLogRecorder):
        self.store = store
        self.recorder = recorder

    def get_list(self, identity: Optional[Identity], resource: str, **filters: Any) -> List[Dict[str, Any]]:
        rows = self.store.list(resource, **filters)
        if resource in VIEW_AUDITED_LISTS:
            self.recorder.log_view(identity, resource, 'list', {'count': len(rows), 'filters': filters})
        return rows

    def get_one(self, identity: Optional[Identity], resource: str, record_id: str) -> Dict[str, Any]:
        row = self.store.get(resource, record_id)
        if row is None:
            raise NotFound(resource, record_id)
        self.recorder.log_view(identity, resource, record_id, {'timestamp': to_iso(utcnow())})
        return row

    def get_many(self, resource: str, ids: Iterable[str]) -> List[Dict[str, Any]]:
        out = []
        for record_id in ids:
            row = self.store.get(resource, record_id)
            if row is not None:
                out.append(row)
        return out

    def create(self, identity: Optional[Identity], resource: str, data: Dict[str, Any]) -> Dict[str, Any]:
        created = self.store.insert(resource, data)
        self.recorder.log_create(identity, resource, created['id'], {'data': data})
        return created

    def update(self, identity: Optional[Identity], resource: str, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        previous = self.store.get(resource, record_id)
        if previous is None:
            raise NotFound(resource, record_id)
        updated = self.store.replace(resource, record_id, {**previous, **changes})
        self.recorder.log_update(identity, resource, record_id, changes, previous)
        return updated

    def delete(self, identity: Optional[Identity], resource: str, record_id: str) -> Dict[str, Any]:
        deleted = self.store.delete(resource, record_id)
        self.recorder.log_delete(identity, resource, record_id, {
            'deleted_data': deleted,
            'timestamp': to_iso(utcnow()),
        })
        return deleted

    # -- bulk: one audit entry for the whole batch, resource_id 'bulk' --
    def _apply_batch(self, items, apply, log):
        """Run ``apply`` per item; log what was applied even when an item fails midway."""
        done: List[Dict[str, Any]] = []
        try:
            for item in items:
                done.append(apply(item))
        except Exception as e:
            if done:
                log(done, {'partial': True, 'error': str(e)})
            raise
        log(done, {})
        return done

    def create_many(self, identity: Optional[Identity], resource: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self._apply_batch(
            items,
            lambda item: self.store.insert(resource, item),
            lambda done, extra: self.recorder.log_create(
                identity, resource, BULK, {'count': len(done), 'ids': [c['id'] for c in done], **extra}),
        )

    def import_many(self, identity: Optional[Identity], resource: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self._apply_batch(
            items,
            lambda item: self.store.insert(resource, item),
            lambda done, extra: self.recorder.log_import(
                identity, resource, {'count': len(done), 'ids': [c['id'] for c in done], **extra}),
        )

    def update_many(self, identity: Optional[Identity], resource: str, ids: List[str], changes: Dict[str, Any]) -> List[Dict[str, Any]]:
        def apply(record_id):
            previous = self.store.get(resource, record_id)
            if previous is None:
                raise NotFound(resource, record_id)
            return self.store.replace(resource, record_id, {**previous, **changes})

        def log(done, extra):
            done_ids = [r['id'] for r in done]
            self.recorder.log_update(identity, resource, BULK, changes, {'count': len(done_ids), 'ids': done_ids, **extra})

        return self._apply_batch(ids, apply, log)

    def delete_many(self, identity: Optional[Identity], resource: str, ids: List[str]) -> List[Dict[str, Any]]:
        return self._apply_batch(
            ids,
            lambda record_id: self.store.delete(resource, record_id),
            lambda done, extra: self.recorder.log_delete(
                identity, resource, BULK, {'count': len(done), 'ids': [d['id'] for d in done], **extra}),
        )


__all__ = ['AuditedDataAccess', 'BULK']
