import base64
import hashlib
import hmac
import json

from sleepdesk.store import ACTIVITY_LOGS
from tests.test_utils_seed import jwt_headers


def _headers(app_instance, user_id, role):
    with app_instance.app_context():
        return jwt_headers(user_id, role)


def _services(app_instance):
    return app_instance.extensions['sleepdesk']


def test_intake_registers_pending(client, app_instance):
    resp = client.post('/webhooks/shopify/orders/create', json={'id': 42},
                       headers={'X-Shopify-Topic': 'orders/create', 'X-Shopify-Shop-Domain': 'demo.myshopify.com'})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['success'] is True and body['message'] == 'Webhook orders/create received'
    admin = _headers(app_instance, 'admin-001', 'admin')
    shown = client.get(f"/webhooks/{body['webhook_id']}", headers=admin).get_json()
    assert shown['status'] == 'pending' and shown['attempts'] == 0
    assert shown['payload'] == {'id': 42}
    assert shown['headers']['x-shopify-shop-domain'] == 'demo.myshopify.com'
    assert shown['can_retry'] is False


def test_intake_checks_signature_when_secret_set(client, app_instance):
    app_instance.config['SHOPIFY_WEBHOOK_SECRET'] = 'shpss_test'
    try:
        body = json.dumps({'id': 1}).encode()
        assert client.post('/webhooks/shopify/orders/create', data=body,
                           content_type='application/json').status_code == 401
        sig = base64.b64encode(hmac.new(b'shpss_test', body, hashlib.sha256).digest()).decode()
        ok = client.post('/webhooks/shopify/orders/create', data=body, content_type='application/json',
                         headers={'X-Shopify-Hmac-Sha256': sig})
        assert ok.status_code == 200
    finally:
        app_instance.config['SHOPIFY_WEBHOOK_SECRET'] = ''


def test_disabled_event_is_acknowledged_not_stored(client, app_instance):
    with app_instance.app_context():
        tracker = _services(app_instance).webhooks
        tracker.seed_events()
        tracker.toggle_event('whe-001', False)
    resp = client.post('/webhooks/shopify/orders/create', json={'id': 1})
    assert resp.get_json()['success'] is False
    with app_instance.app_context():
        assert _services(app_instance).webhooks.list() == []


def test_retry_flow_and_cap(client, app_instance):
    with app_instance.app_context():
        tracker = _services(app_instance).webhooks
        wh = tracker.register('shopify', 'orders/paid', payload={'id': 5})
        tracker.update_status(wh['id'], 'failed', error={'code': 'TIMEOUT', 'message': 'slow'})
    admin = _headers(app_instance, 'admin-001', 'admin')
    agent = _headers(app_instance, 'emp-001', 'agent')
    assert client.post(f"/webhooks/{wh['id']}/retry", headers=agent).status_code == 403

    retried = client.post(f"/webhooks/{wh['id']}/retry", headers=admin)
    assert retried.status_code == 200
    assert retried.get_json()['status'] == 'retrying'
    # no handler registered for orders/paid: processed and marked unhandled
    processed = client.post(f"/webhooks/{wh['id']}/process", headers=admin).get_json()
    assert processed['status'] == 'processed' and processed['attempts'] == 2
    assert client.post(f"/webhooks/{wh['id']}/retry", headers=admin).status_code == 409

    with app_instance.app_context():
        capped = tracker.register('shopify', 'orders/paid')
        for _ in range(3):
            tracker.update_status(capped['id'], 'failed')
            if tracker.get(capped['id'])['attempts'] < 3:
                tracker.retry(capped['id'])
    limited = client.post(f"/webhooks/{capped['id']}/retry", headers=admin)
    assert limited.status_code == 409
    assert 'max 3' in limited.get_json()['error']['detail']

    with app_instance.app_context():
        logs = _services(app_instance).store.list(ACTIVITY_LOGS, resource='webhooks')
    assert sorted(l['action'] for l in logs) == ['change_status', 'change_status']


def test_list_and_stats(client, app_instance):
    with app_instance.app_context():
        tracker = _services(app_instance).webhooks
        a = tracker.register('shopify', 'orders/create')
        tracker.register('internal', 'sync/run')
        tracker.update_status(a['id'], 'processed')
    headers = _headers(app_instance, 'admin-001', 'admin')
    listing = client.get('/webhooks?source=shopify', headers=headers).get_json()
    assert [w['id'] for w in listing['data']] == [a['id']]
    stats = client.get('/webhooks/stats?timeframe=week', headers=headers).get_json()
    assert stats['total'] == 2 and stats['processed'] == 1 and stats['pending'] == 1
    assert client.get('/webhooks/stats?timeframe=decade', headers=headers).status_code == 400
    assert client.get('/webhooks/wh-missing', headers=headers).status_code == 404
    manager = _headers(app_instance, 'emp-002', 'manager')
    assert client.get('/webhooks', headers=manager).status_code == 403


def test_event_settings(client, app_instance):
    with app_instance.app_context():
        _services(app_instance).webhooks.seed_events()
    admin = _headers(app_instance, 'admin-001', 'admin')
    events = client.get('/webhooks/events', headers=admin).get_json()['data']
    assert len(events) == 5
    toggled = client.post('/webhooks/events/whe-002/toggle', json={'enabled': False}, headers=admin)
    assert toggled.get_json()['enabled'] is False
    assert len(client.get('/webhooks/events?enabled=false', headers=admin).get_json()['data']) == 1
    patched = client.patch('/webhooks/events/whe-002', json={'description': 'Order edits'}, headers=admin)
    assert patched.status_code == 200
    assert client.patch('/webhooks/events/whe-002', json={'source': 'x'}, headers=admin).status_code == 400
    with app_instance.app_context():
        logs = _services(app_instance).store.list(ACTIVITY_LOGS, resource='webhookSettings')
    change = next(l for l in logs if 'changes' in l['details'])
    assert change['details']['changes']['description']['after'] == 'Order edits'
