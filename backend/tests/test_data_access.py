from sleepdesk.errors import Conflict, NotFound
from sleepdesk.services.activity import ActivityLogRecorder, InlineAuditSink, store_writer
from sleepdesk.services.data_access import AuditedDataAccess
from sleepdesk.store import ACTIVITY_LOGS
from tests.test_utils_seed import identity, FailingStore, MemoryStore
import pytest


def _access(store, audit_store=None):
    recorder = ActivityLogRecorder(InlineAuditSink(store_writer(audit_store or store)))
    return AuditedDataAccess(store, recorder)


def test_list_of_audited_collection_logs_view(store):
    data = _access(store)
    who = identity('emp-001', 'agent')
    data.create(who, 'customers', {'name': 'Ann'})
    rows = data.get_list(who, 'customers')
    assert [r['name'] for r in rows] == ['Ann']
    views = store.list(ACTIVITY_LOGS, action='view')
    assert len(views) == 1 and views[0]['resource_id'] == 'list'


def test_get_one_missing_raises_and_logs_nothing(store):
    data = _access(store)
    with pytest.raises(NotFound):
        data.get_one(identity('emp-001', 'agent'), 'customers', 'cus-404')
    assert store.list(ACTIVITY_LOGS) == []


def test_delete_logs_snapshot(store):
    data = _access(store)
    who = identity('emp-002', 'manager')
    data.create(who, 'sales', {'id': 'sale-1', 'total': 40})
    data.delete(who, 'sales', 'sale-1')
    entry = store.list(ACTIVITY_LOGS, action='delete')[0]
    assert entry['details']['deleted_data'] == {'id': 'sale-1', 'total': 40}


def test_bulk_operations_log_once_each():
    mem = MemoryStore()
    data = _access(mem)
    who = identity('emp-002', 'manager')
    created = data.create_many(who, 'customers', [{'id': 'c1', 'name': 'A'}, {'id': 'c2', 'name': 'B'}])
    assert [c['id'] for c in created] == ['c1', 'c2']
    data.update_many(who, 'customers', ['c1', 'c2'], {'status': 'active'})
    assert all(c['status'] == 'active' for c in mem.list('customers'))
    data.delete_many(who, 'customers', ['c1', 'c2'])
    assert mem.list('customers') == []
    logs = mem.list(ACTIVITY_LOGS)
    assert [l['action'] for l in logs] == ['create', 'update', 'delete']
    assert all(l['resource_id'] == 'bulk' for l in logs)


def test_failed_write_records_no_audit_entry():
    audit = MemoryStore()
    data = _access(FailingStore(), audit_store=audit)
    with pytest.raises(ConnectionError):
        data.create(identity('emp-001', 'agent'), 'customers', {'name': 'Ann'})
    assert audit.list(ACTIVITY_LOGS) == []


def test_import_stopped_midway_logs_what_was_written(store):
    data = _access(store)
    who = identity('admin-001', 'admin')
    store.insert('customers', {'id': 'dup', 'name': 'Existing'})
    with pytest.raises(Conflict):
        data.import_many(who, 'customers', [{'id': 'new1'}, {'id': 'dup'}, {'id': 'new2'}])
    assert sorted(c['id'] for c in store.list('customers')) == ['dup', 'new1']
    logs = store.list(ACTIVITY_LOGS, action='import')
    assert len(logs) == 1
    assert logs[0]['details']['ids'] == ['new1']
    assert logs[0]['details']['partial'] is True


def test_bulk_delete_stopped_midway_logs_what_was_removed(store):
    data = _access(store)
    who = identity('admin-001', 'admin')
    for cid in ('a', 'b'):
        store.insert('customers', {'id': cid})
    with pytest.raises(NotFound):
        data.delete_many(who, 'customers', ['a', 'missing', 'b'])
    assert [c['id'] for c in store.list('customers')] == ['b']
    entry = store.list(ACTIVITY_LOGS, action='delete')
    assert len(entry) == 1
    assert entry[0]['resource_id'] == 'bulk'
    assert entry[0]['details']['ids'] == ['a'] and entry[0]['details']['count'] == 1


def test_bulk_update_stopped_midway_logs_what_was_changed():
    mem = MemoryStore()
    data = _access(mem)
    mem.insert('customers', {'id': 'c1', 'status': 'lead'})
    with pytest.raises(NotFound):
        data.update_many(identity('emp-002', 'manager'), 'customers', ['c1', 'c2'], {'status': 'active'})
    assert mem.get('customers', 'c1')['status'] == 'active'
    (entry,) = mem.list(ACTIVITY_LOGS)
    assert entry['action'] == 'update'
    assert entry['metadata']['previous_data']['ids'] == ['c1']


def test_batch_failing_on_first_item_logs_nothing():
    audit = MemoryStore()
    data = _access(FailingStore(), audit_store=audit)
    with pytest.raises(ConnectionError):
        data.create_many(identity('emp-001', 'agent'), 'customers', [{'name': 'Ann'}, {'name': 'Bo'}])
    assert audit.list(ACTIVITY_LOGS) == []
