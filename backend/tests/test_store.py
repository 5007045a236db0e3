import pytest
from sqlalchemy.exc import OperationalError

from sleepdesk.errors import NotFound, StoreUnavailable, ValidationError, Conflict
from sleepdesk.store import EntityStore, ROLES, PERMISSIONS


def test_generic_collection_crud(store):
    created = store.insert('customers', {'id': 'cus-1', 'name': 'Ann', 'status': 'lead'})
    assert created == {'id': 'cus-1', 'name': 'Ann', 'status': 'lead'}
    store.insert('customers', {'name': 'Bo', 'status': 'active'})
    assert [c['name'] for c in store.list('customers')] == ['Ann', 'Bo']
    assert [c['name'] for c in store.list('customers', status='active')] == ['Bo']
    replaced = store.replace('customers', 'cus-1', {'name': 'Ann B'})
    assert replaced == {'id': 'cus-1', 'name': 'Ann B'}
    assert store.delete('customers', 'cus-1')['name'] == 'Ann B'
    assert store.get('customers', 'cus-1') is None


def test_missing_records(store):
    with pytest.raises(NotFound):
        store.replace('customers', 'nope', {})
    with pytest.raises(NotFound):
        store.delete(ROLES, 'role-nope')


def test_typed_collection_full_replace_resets_fields(store):
    store.insert(ROLES, {'id': 'role-ops', 'name': 'ops', 'display_name': 'Ops', 'description': 'desk'})
    replaced = store.replace(ROLES, 'role-ops', {'name': 'ops'})
    assert replaced['display_name'] == ''
    assert replaced['description'] == ''
    assert replaced['permissions'] == []


def test_unknown_filter_field(store):
    with pytest.raises(ValidationError):
        store.list(PERMISSIONS, colour='blue')


def test_unique_violation_is_conflict(store):
    row = {'id': 'p1', 'role_id': 'role-agent', 'resource': 'customers', 'action': 'list', 'allowed': True}
    store.insert(PERMISSIONS, row)
    with pytest.raises(Conflict):
        store.insert(PERMISSIONS, dict(row, id='p2'))
    # session usable after rollback
    assert len(store.list(PERMISSIONS)) == 1


def test_sqlalchemy_errors_become_store_unavailable():
    class BrokenSession:
        def execute(self, *a, **kw):
            raise OperationalError('SELECT 1', {}, Exception('database is locked'))

        def get(self, *a, **kw):
            raise OperationalError('SELECT 1', {}, Exception('database is locked'))

        def rollback(self):
            pass

    broken = EntityStore(session_factory=BrokenSession)
    with pytest.raises(StoreUnavailable):
        broken.list('customers')
    with pytest.raises(StoreUnavailable):
        broken.get(ROLES, 'role-admin')
