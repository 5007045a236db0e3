from flask import Blueprint, request, abort, current_app

from sleepdesk.config.pagination import normalize_limit
from sleepdesk.constants.activity import RESOURCE_WEBHOOKS
from sleepdesk.decorators.auth import require_access, current_identity
from sleepdesk.decorators.audit import audit_log
from sleepdesk.extensions import current_services
from sleepdesk.services.webhooks import FAILED, RETRYING, shopify_headers, verify_shopify_hmac
from sleepdesk.store import WEBHOOK_EVENTS
from sleepdesk.utils.listing import list_response

webhooks_bp = Blueprint('webhooks', __name__)


# --- Intake (called by Shopify, no JWT) ---

@webhooks_bp.post('/shopify/<path:event>')
def shopify_intake(event: str):
    raw = request.get_data(cache=True)
    secret = current_app.config.get('SHOPIFY_WEBHOOK_SECRET')
    if secret:
        if not verify_shopify_hmac(raw, request.headers.get('X-Shopify-Hmac-Sha256'), secret):
            current_app.logger.warning('Rejected Shopify webhook %s: bad signature', event)
            abort(401, description='invalid webhook signature')
    else:
        current_app.logger.warning('SHOPIFY_WEBHOOK_SECRET not set; accepting %s unsigned', event)
    tracker = current_services().webhooks
    config = tracker.find_event('shopify', event)
    if config is not None and not config.get('enabled'):
        current_app.logger.info('Ignoring disabled Shopify webhook %s', event)
        return {'success': False, 'message': f'Webhook {event} is disabled'}
    payload = request.get_json(silent=True)
    if payload is None and raw:
        payload = {'raw': raw.decode('utf-8', errors='replace')}
    webhook = tracker.register('shopify', event, shopify_headers(request.headers), payload)
    return {'success': True, 'message': f'Webhook {event} received', 'webhook_id': webhook['id']}


# --- Tracking ---

@webhooks_bp.get('')
@require_access('webhooks', 'list')
def list_webhooks():
    args = request.args
    try:
        rows = current_services().webhooks.list(
            source=args.get('source'),
            event=args.get('event'),
            status=args.get('status'),
            start_date=args.get('start_date'),
            end_date=args.get('end_date'),
            limit=normalize_limit(args.get('max'), default=None),
        )
    except ValueError as e:
        abort(400, description=str(e))
    return list_response(rows, ts_key='received_at')


@webhooks_bp.get('/stats')
@require_access('webhooks', 'list')
def webhook_stats():
    return current_services().webhooks.stats(request.args.get('timeframe', 'day'))


@webhooks_bp.get('/<webhook_id>')
@require_access('webhooks', 'show')
def show_webhook(webhook_id: str):
    tracker = current_services().webhooks
    webhook = tracker.get(webhook_id)
    if not webhook:
        abort(404)
    return {**webhook, 'can_retry': tracker.can_retry(webhook)}


@webhooks_bp.post('/<webhook_id>/retry')
@require_access('webhooks', 'retry')
def retry_webhook(webhook_id: str):
    services = current_services()
    webhook = services.webhooks.retry(webhook_id)
    services.recorder.log_status_change(current_identity(), RESOURCE_WEBHOOKS, webhook_id, FAILED, RETRYING, 'manual retry')
    if request.args.get('process') in ('1', 'true'):
        webhook = services.processor.process(webhook_id)
    return webhook


@webhooks_bp.post('/<webhook_id>/process')
@require_access('webhooks', 'retry')
def process_webhook(webhook_id: str):
    services = current_services()
    before = services.webhooks.get(webhook_id)
    if not before:
        abort(404)
    webhook = services.processor.process(webhook_id)
    services.recorder.log_status_change(current_identity(), RESOURCE_WEBHOOKS, webhook_id, before['status'], webhook['status'])
    return webhook


# --- Event configuration ---

@webhooks_bp.get('/events')
@require_access('webhookSettings', 'view')
def list_webhook_events():
    enabled = request.args.get('enabled')
    flag = None if enabled is None else enabled.lower() in ('1', 'true', 'yes')
    return {'data': current_services().webhooks.list_events(flag)}


@webhooks_bp.patch('/events/<event_id>')
@require_access('webhookSettings', 'edit')
@audit_log('update', resource='webhookSettings', resource_id_arg='event_id',
           diff_keys=['enabled', 'endpoint', 'description', 'retry_policy'],
           pre_fetch=lambda a, kw: current_services().store.get(WEBHOOK_EVENTS, kw.get('event_id')))
def update_webhook_event(event_id: str):
    data = request.json
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return current_services().webhooks.update_event(event_id, data)


@webhooks_bp.post('/events/<event_id>/toggle')
@require_access('webhookSettings', 'edit')
@audit_log('update', resource='webhookSettings', resource_id_key='id', detail_keys=['enabled'])
def toggle_webhook_event(event_id: str):
    enabled = (request.json or {}).get('enabled')
    if not isinstance(enabled, bool):
        abort(400, description='enabled must be boolean')
    return current_services().webhooks.toggle_event(event_id, enabled)
