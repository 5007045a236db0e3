from flask import Blueprint, request, abort

from sleepdesk.constants.permissions import RESOURCE_ACTIONS
from sleepdesk.decorators.auth import ensure_access
from sleepdesk.extensions import current_services
from sleepdesk.utils.listing import list_response

data_bp = Blueprint('data', __name__)

# served by their own blueprints
RESERVED = {'roles', 'permissions', 'activityLogs', 'webhooks', 'webhookSettings'}
PAGING_ARGS = {'limit', 'offset'}


def _action(resource: str, kind: str) -> str:
    declared = RESOURCE_ACTIONS.get(resource)
    if declared is None or resource in RESERVED:
        abort(404, description=f'Unknown resource {resource}')
    if kind in declared:
        return kind
    if kind in ('list', 'show') and 'view' in declared:
        return 'view'
    abort(405, description=f'{kind} not supported for {resource}')


def _gate(resource: str, kind: str):
    return ensure_access(resource, _action(resource, kind))


def _json_object():
    data = request.json
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return data


def _ids(data) -> list:
    ids = data.get('ids')
    if not isinstance(ids, list) or not ids:
        abort(400, description='ids[] required')
    return [str(i) for i in ids]


@data_bp.get('/<resource>')
def list_records(resource: str):
    identity = _gate(resource, 'list')
    filters = {k: v for k, v in request.args.items() if k not in PAGING_ARGS}
    rows = current_services().data.get_list(identity, resource, **filters)
    return list_response(rows)


@data_bp.post('/<resource>')
def create_record(resource: str):
    identity = _gate(resource, 'create')
    data = request.json
    if isinstance(data, list):
        if not all(isinstance(item, dict) for item in data):
            abort(400, description='list items must be objects')
        return {'data': current_services().data.create_many(identity, resource, data)}, 201
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return current_services().data.create(identity, resource, data), 201


@data_bp.get('/<resource>/many')
def get_many(resource: str):
    _gate(resource, 'show')
    ids = [i for i in (request.args.get('ids') or '').split(',') if i]
    return {'data': current_services().data.get_many(resource, ids)}


@data_bp.get('/<resource>/export')
def export_records(resource: str):
    identity = _gate(resource, 'list')
    services = current_services()
    rows = services.store.list(resource)
    services.recorder.log_export(identity, resource, {'count': len(rows)})
    return {'data': rows}


@data_bp.post('/<resource>/import')
def import_records(resource: str):
    identity = _gate(resource, 'create')
    items = _json_object().get('items')
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        abort(400, description='items[] of objects required')
    return {'data': current_services().data.import_many(identity, resource, items)}, 201


@data_bp.post('/<resource>/bulk-update')
def bulk_update(resource: str):
    identity = _gate(resource, 'edit')
    data = _json_object()
    changes = data.get('changes')
    if not isinstance(changes, dict):
        abort(400, description='changes object required')
    return {'data': current_services().data.update_many(identity, resource, _ids(data), changes)}


@data_bp.post('/<resource>/bulk-delete')
def bulk_delete(resource: str):
    identity = _gate(resource, 'delete')
    return {'data': current_services().data.delete_many(identity, resource, _ids(_json_object()))}


@data_bp.get('/<resource>/<record_id>')
def get_record(resource: str, record_id: str):
    identity = _gate(resource, 'show')
    return current_services().data.get_one(identity, resource, record_id)


@data_bp.route('/<resource>/<record_id>', methods=['PUT', 'PATCH'])
def update_record(resource: str, record_id: str):
    identity = _gate(resource, 'edit')
    return current_services().data.update(identity, resource, record_id, _json_object())


@data_bp.delete('/<resource>/<record_id>')
def delete_record(resource: str, record_id: str):
    identity = _gate(resource, 'delete')
    return current_services().data.delete(identity, resource, record_id)
