from flask import Blueprint, request, abort

from sleepdesk.config.pagination import normalize_limit
from sleepdesk.decorators.auth import require_access
from sleepdesk.extensions import current_services
from sleepdesk.utils.listing import list_response

activity_bp = Blueprint('activity', __name__)


@activity_bp.get('')
@require_access('activityLogs', 'list')
def list_activity_logs():
    args = request.args
    try:
        cap = normalize_limit(args.get('max'), default=None)
        logs = current_services().activity.get_activity_logs(
            user_id=args.get('user_id'),
            resource=args.get('resource'),
            action=args.get('action'),
            start_date=args.get('start_date'),
            end_date=args.get('end_date'),
            limit=cap,
        )
    except ValueError as e:
        abort(400, description=str(e))
    return list_response(logs, ts_key='timestamp')


@activity_bp.get('/<log_id>')
@require_access('activityLogs', 'show')
def show_activity_log(log_id: str):
    log = current_services().activity.get(log_id)
    if not log:
        abort(404)
    return log


@activity_bp.get('/history/<resource>/<resource_id>')
@require_access('activityLogs', 'list')
def resource_history(resource: str, resource_id: str):
    return list_response(current_services().activity.get_resource_history(resource, resource_id), ts_key='timestamp')
