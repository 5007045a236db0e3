from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, jwt_required

from sleepdesk.decorators.auth import require_access, current_identity
from sleepdesk.decorators.audit import audit_log
from sleepdesk.extensions import current_services
from sleepdesk.services.navigation import build_menu, route_access
from sleepdesk.services.users import public, identity_for
from sleepdesk.store import OVERRIDES
from sleepdesk.utils.listing import list_response

iam_bp = Blueprint('iam', __name__)


# --- Authentication ---

@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    services = current_services()
    user = services.users.authenticate(email, password)
    if not user:
        abort(401, description='invalid credentials')
    claims = {'role': user['role'], 'email': user['email'], 'name': user['name']}
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user['id']), additional_claims=claims)
    services.recorder.log_login(identity_for(user), request.headers.get('User-Agent'))
    return {'access_token': token, 'user': public(user)}


@iam_bp.post('/auth/logout')
@jwt_required()
def logout():
    current_services().recorder.log_logout(current_identity())
    return {'status': 'logged_out'}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    identity = current_identity()
    user = current_services().users.get(identity.user_id)
    if not user:
        abort(404)
    return public(user)


# --- Access checks for the signed-in user ---

@iam_bp.get('/access')
@jwt_required()
def check_access():
    resource = request.args.get('resource'); action = request.args.get('action')
    if not resource or not action:
        abort(400, description='resource & action required')
    decision = current_services().resolver.can(current_identity(), resource, action)
    body = {'can': decision.allowed}
    if decision.reason:
        body['reason'] = decision.reason
    return body


@iam_bp.post('/access/any')
@jwt_required()
def check_access_any():
    data = request.json or {}
    resource = data.get('resource'); actions = data.get('actions')
    if not resource or not isinstance(actions, list) or not actions:
        abort(400, description='resource & actions[] required')
    return {'can': current_services().resolver.can_any(current_identity(), resource, actions)}


@iam_bp.get('/me/permissions')
@jwt_required()
def my_permissions():
    identity = current_identity()
    resolver = current_services().resolver
    resource = request.args.get('resource')
    if resource:
        return {'resource': resource, 'actions': resolver.resource_permissions(identity.user_id, identity.role, resource)}
    return {'data': resolver.resolve_all(identity.user_id, identity.role)}


@iam_bp.get('/me/menu')
@jwt_required()
def my_menu():
    identity = current_identity()
    resolutions = current_services().resolver.resolve_all(identity.user_id, identity.role)
    return {'data': [node.to_dict() for node in build_menu(resolutions)]}


@iam_bp.get('/routes/access')
@jwt_required()
def check_route():
    path = request.args.get('path')
    if not path:
        abort(400, description='path required')
    return {'path': path, **route_access(current_services().resolver, current_identity(), path).to_dict()}


# --- Roles ---

@iam_bp.get('/roles')
@require_access('roles', 'list')
def list_roles():
    return list_response(current_services().roles.list_roles(), ts_key='updated_at')


@iam_bp.post('/roles')
@require_access('roles', 'create')
@audit_log('create', resource='roles', resource_id_key='id', detail_keys=['name', 'display_name'])
def create_role():
    data = request.json or {}
    role = current_services().roles.create_role(
        data.get('name'), data.get('display_name') or '', data.get('description') or '',
    )
    return role, 201


@iam_bp.delete('/roles/<role_id>')
@require_access('roles', 'delete')
@audit_log('delete', resource='roles', resource_id_arg='role_id',
           details_builder=lambda data, rv, a, kw: {'deleted_data': data})
def delete_role(role_id: str):
    return current_services().roles.delete_role(role_id)


# --- Role permission rows ---

@iam_bp.get('/permissions')
@require_access('permissions', 'view')
def list_permissions():
    return list_response(current_services().roles.list_permissions(request.args.get('role_id')))


@iam_bp.put('/roles/<role_id>/permissions')
@require_access('permissions', 'edit')
@audit_log('update', resource='permissions', resource_id_arg='role_id',
           details_builder=lambda data, rv, a, kw: {'count': len(data.get('data', []))})
def replace_role_permissions(role_id: str):
    data = request.json or {}
    rows = current_services().roles.replace_permissions(role_id, data.get('permissions'))
    return {'role_id': role_id, 'data': rows}


@iam_bp.patch('/roles/<role_id>/permissions')
@require_access('permissions', 'edit')
@audit_log('update', resource='permissions', resource_id_key='id', detail_keys=['resource', 'action', 'allowed'])
def set_role_permission(role_id: str):
    data = request.json or {}
    return current_services().roles.set_permission(role_id, data.get('resource'), data.get('action'), data.get('allowed'))


# --- Per-user overrides ---

@iam_bp.get('/overrides')
@require_access('permissions', 'view')
def list_overrides():
    return list_response(current_services().roles.list_overrides(request.args.get('user_id')), ts_key='created_at')


@iam_bp.post('/overrides')
@require_access('permissions', 'edit')
@audit_log('create', resource='permissions', resource_id_key='id', detail_keys=['user_id', 'reason'])
def create_override():
    data = request.json or {}
    override = current_services().roles.create_override(
        data.get('user_id'), data.get('permissions'), data.get('reason') or '', created_by=current_identity().user_id,
    )
    return override, 201


@iam_bp.put('/overrides/<override_id>')
@require_access('permissions', 'edit')
@audit_log('update', resource='permissions', resource_id_arg='override_id',
           diff_keys=['permissions', 'reason'],
           pre_fetch=lambda a, kw: current_services().store.get(OVERRIDES, kw.get('override_id')))
def replace_override(override_id: str):
    data = request.json or {}
    return current_services().roles.replace_override(override_id, data.get('permissions'), data.get('reason'))


@iam_bp.delete('/overrides/<override_id>')
@require_access('permissions', 'edit')
@audit_log('delete', resource='permissions', resource_id_arg='override_id',
           details_builder=lambda data, rv, a, kw: {'deleted_data': data})
def delete_override(override_id: str):
    return current_services().roles.delete_override(override_id)
