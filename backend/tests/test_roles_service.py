import pytest

from sleepdesk.constants.permissions import RESOURCE_ACTIONS
from sleepdesk.errors import Conflict, NotFound, ValidationError
from sleepdesk.services.policy import PermissionResolver
from sleepdesk.services.roles import RoleAdmin, validate_entries
from sleepdesk.services.users import UserDirectory
from sleepdesk.store import PERMISSIONS, ROLES


def test_validate_entries_rejects_bad_payloads():
    assert validate_entries([{'resource': 'customers', 'action': 'list', 'allowed': True}]) == [
        {'resource': 'customers', 'action': 'list', 'allowed': True}]
    for bad in (
        {'not': 'a list'},
        ['junk'],
        [{'resource': 'customers', 'action': 'fly', 'allowed': True}],
        [{'resource': 'customers', 'action': 'list', 'allowed': 'yes'}],
        [{'resource': 'customers', 'action': 'list', 'allowed': True}] * 2,
    ):
        with pytest.raises(ValidationError):
            validate_entries(bad)


def test_create_and_delete_role(store):
    admin = RoleAdmin(store)
    role = admin.create_role('auditor', description='Reads logs')
    assert role['id'] == 'role-auditor' and role['display_name'] == 'Auditor'
    with pytest.raises(Conflict):
        admin.create_role('auditor')
    with pytest.raises(ValidationError):
        admin.create_role('Bad Name')
    admin.set_permission('role-auditor', 'activityLogs', 'list', True)
    admin.delete_role('role-auditor')
    assert store.list(PERMISSIONS, role_id='role-auditor') == []
    with pytest.raises(NotFound):
        admin.get_role('role-auditor')


def test_system_role_cannot_be_deleted(store):
    admin = RoleAdmin(store)
    admin.create_role('admin', is_system=True)
    with pytest.raises(Conflict):
        admin.delete_role('role-admin')


def test_replace_permissions_is_full_replace(store):
    admin = RoleAdmin(store)
    admin.create_role('ops')
    admin.replace_permissions('role-ops', [
        {'resource': 'customers', 'action': 'list', 'allowed': True},
        {'resource': 'customers', 'action': 'delete', 'allowed': False},
    ])
    rows = admin.replace_permissions('role-ops', [{'resource': 'sales', 'action': 'list', 'allowed': True}])
    assert [(r['resource'], r['action']) for r in rows] == [('sales', 'list')]
    assert [r['resource'] for r in store.list(PERMISSIONS, role_id='role-ops')] == ['sales']
    assert store.get(ROLES, 'role-ops')['permissions'] == ['perm-role-ops-sales-list']
    with pytest.raises(NotFound):
        admin.replace_permissions('role-none', [])


def test_role_rows_drive_resolution(store):
    admin = RoleAdmin(store)
    admin.create_role('ops')
    admin.set_permission('role-ops', 'customers', 'list', True)
    resolver = PermissionResolver(store)
    # rows exist, but the role has no fallback entry
    assert resolver.evaluate('u', 'ops', 'customers', 'list').allowed is True
    assert resolver.evaluate('u', 'ops', 'customers', 'delete').reason == 'Unrecognized role'


def test_one_override_bundle_per_user(store):
    admin = RoleAdmin(store)
    bundle = admin.create_override('emp-001', [{'resource': 'stores', 'action': 'list', 'allowed': True}], 'pilot', 'admin-001')
    assert bundle['id'].startswith('override-')
    assert bundle['created_by'] == 'admin-001'
    with pytest.raises(Conflict):
        admin.create_override('emp-001', [])
    updated = admin.replace_override(bundle['id'], [], reason='ended')
    assert updated['permissions'] == [] and updated['reason'] == 'ended'
    admin.delete_override(bundle['id'])
    assert admin.list_overrides('emp-001') == []
    with pytest.raises(NotFound):
        admin.delete_override(bundle['id'])


def test_seed_system_roles_materializes_fallback(services):
    counts = services.roles.seed_system_roles(services.resolver.fallback)
    per_role = sum(len(a) for a in RESOURCE_ACTIONS.values())
    assert counts == {'roles': 3, 'permissions': 3 * per_role}
    assert services.roles.seed_system_roles(services.resolver.fallback) == {'roles': 0, 'permissions': 0}
    decision = services.resolver.evaluate('emp-002', 'manager', 'systemSettings', 'edit')
    assert decision.allowed is False
    assert decision.reason == "You don't have permission to perform this action"
    assert services.resolver.evaluate('emp-001', 'agent', 'customers', 'list').allowed is True


def test_demo_users_and_authentication(store):
    users = UserDirectory(store)
    assert users.seed_demo_users() == 3
    assert users.seed_demo_users() == 0
    agent = users.authenticate('agent@sleepdesk.local', 'agent123')
    assert agent['id'] == 'emp-001' and agent['role'] == 'agent'
    assert users.authenticate('agent@sleepdesk.local', 'wrong') is None
    assert users.authenticate('nobody@sleepdesk.local', 'agent123') is None
    with pytest.raises(Conflict):
        users.create_user('x', 'X', 'agent@sleepdesk.local', 'agent', 'pw')
