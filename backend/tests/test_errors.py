from sleepdesk.errors import StoreUnavailable
from tests.test_utils_seed import jwt_headers


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}


def test_store_outage_maps_to_503(client, app_instance, monkeypatch):
    services = app_instance.extensions['sleepdesk']

    def down(*a, **kw):
        raise StoreUnavailable('customers: OperationalError', collection='customers')

    monkeypatch.setattr(services.data.store, 'list', down)
    with app_instance.app_context():
        headers = jwt_headers('admin-001', 'admin')
    resp = client.get('/data/customers', headers=headers)
    assert resp.status_code == 503
    assert resp.get_json()['error'] == {
        'status': 503, 'title': 'Service Unavailable', 'detail': 'customers: OperationalError',
    }


def test_unexpected_error_is_hidden(client, app_instance, monkeypatch):
    services = app_instance.extensions['sleepdesk']

    def boom(*a, **kw):
        raise RuntimeError('explode')

    monkeypatch.setattr(services.activity, 'get_activity_logs', boom)
    with app_instance.app_context():
        headers = jwt_headers('admin-001', 'admin')
    resp = client.get('/activity-logs', headers=headers)
    assert resp.status_code == 500
    assert resp.get_json()['error']['detail'] == 'Unexpected error'
