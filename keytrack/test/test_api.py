"""
Test the JSON API: identity headers, error mapping and the request flows.
"""

from keytrack.build import build_database, insert_demo_data
from keytrack.data.core.asset_info.constants import AssetStatus
from keytrack.test.helpers import ORG_ID, OTHER_ORG_ID, api_headers


def _create(client, name='Front Door', **payload):
    response = client.post('/api/assets', json=dict({'name': name}, **payload), headers=api_headers())
    assert response.status_code == 201, response.get_json()
    return response.get_json()['id']


def test_org_header_is_required(client):
    response = client.get('/api/assets')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'ValidationError'


def test_create_and_fetch_asset(client):
    asset_id = _create(client, metaData={'keyCode': 'FD-1'}, qrCode='QR-1')

    response = client.get(f'/api/assets/{asset_id}', headers=api_headers())
    assert response.status_code == 200
    body = response.get_json()
    assert body['name'] == 'Front Door'
    assert body['status'] == AssetStatus.AVAILABLE
    assert 'fd-1' in body['searchKeywords']


def test_other_org_gets_404(client):
    asset_id = _create(client)
    response = client.get(f'/api/assets/{asset_id}', headers=api_headers(org_id=OTHER_ORG_ID))
    assert response.status_code == 404


def test_checkout_flow_and_conflict(client):
    asset_id = _create(client)
    headers = api_headers()

    response = client.post(f'/api/assets/{asset_id}/checkout', json={'recipient': 'Sam'}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['metaData']['currentHolder'] == 'Sam'

    response = client.post(f'/api/assets/{asset_id}/checkout', json={'recipient': 'Alex'}, headers=headers)
    assert response.status_code == 409, "Second checkout is a conflict"

    response = client.post(f'/api/assets/{asset_id}/missing', json={}, headers=headers)
    assert response.status_code == 400, "Missing report needs a reason"

    response = client.post(f'/api/assets/{asset_id}/checkin', json={'notes': 'ok'}, headers=headers)
    assert response.get_json()['status'] == AssetStatus.AVAILABLE

    history = client.get(f'/api/assets/{asset_id}/history', headers=headers).get_json()
    assert [entry['action'] for entry in history] == ['CHECK_IN', 'CHECK_OUT', 'CREATE']


def test_bad_due_date(client):
    asset_id = _create(client)
    response = client.post(
        f'/api/assets/{asset_id}/checkout', json={'recipient': 'Sam', 'dueDate': 'tomorrow'}, headers=api_headers()
    )
    assert response.status_code == 400


def test_due_date_with_zulu_suffix(client):
    asset_id = _create(client)
    response = client.post(
        f'/api/assets/{asset_id}/checkout',
        json={'recipient': 'Sam', 'dueDate': '2026-10-16T12:00:00Z'},
        headers=api_headers(),
    )
    assert response.status_code == 200
    assert response.get_json()['metaData']['dueDate'] == '2026-10-16T12:00:00'


def test_malformed_fields_are_rejected(client):
    headers = api_headers()
    response = client.post('/api/assets', json={'name': 'X', 'metaData': 'abc'}, headers=headers)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'ValidationError'

    response = client.post('/api/assets', json={'name': 5}, headers=headers)
    assert response.status_code == 400

    response = client.post(
        '/api/assets', data='{"name": "Depot", "totalKeys": Infinity}',
        content_type='application/json', headers=headers,
    )
    assert response.status_code == 400

    asset_id = _create(client)
    response = client.patch(f'/api/assets/{asset_id}', json={'metaData': ['a', 'b']}, headers=headers)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'ValidationError'

    response = client.post(f'/api/assets/{asset_id}/checkout', json={'recipient': ['Sam']}, headers=headers)
    assert response.status_code == 400


def test_status_route(client):
    asset_id = _create(client)
    headers = api_headers()

    response = client.post(f'/api/assets/{asset_id}/status', json={'status': 'MAINTENANCE'}, headers=headers)
    assert response.get_json()['status'] == AssetStatus.MAINTENANCE

    response = client.post(f'/api/assets/{asset_id}/status', json={'status': 'MISSING'}, headers=headers)
    assert response.status_code == 400


def test_search_and_groups(client):
    _create(client, 'Server Room', type='FACILITY')
    _create(client, 'Boiler House', type='FACILITY')

    body = client.get('/api/assets?q=server', headers=api_headers()).get_json()
    assert [asset['name'] for asset in body['assets']] == ['Server Room']

    groups = client.get('/api/assets/groups', headers=api_headers()).get_json()
    assert groups == []


def test_type_view(client):
    _create(client, 'Skip Hire', type='RENTAL')
    _create(client, 'Depot', type='RENTAL', totalKeys=4)
    _create(client, 'Van 1', type='VEHICLE')

    body = client.get('/api/assets?type=rental', headers=api_headers()).get_json()
    assert [asset['name'] for asset in body['assets']] == ['Skip Hire']
    assert body['keys'] == []

    response = client.get('/api/assets?type=SPACESHIP', headers=api_headers())
    assert response.status_code == 400


def test_update_and_delete(client):
    asset_id = _create(client)
    headers = api_headers()

    response = client.patch(f'/api/assets/{asset_id}', json={'name': 'Back Door'}, headers=headers)
    assert response.get_json()['name'] == 'Back Door'

    response = client.patch(f'/api/assets/{asset_id}', json={}, headers=headers)
    assert response.status_code == 400

    response = client.delete(f'/api/assets/{asset_id}', headers=headers)
    assert response.get_json() == {'deleted': True, 'id': asset_id}
    assert client.get(f'/api/assets/{asset_id}', headers=headers).status_code == 404


def test_import_and_audit(client):
    headers = api_headers()
    response = client.post('/api/assets/import', json={
        'kind': 'keys',
        'rows': [{'key_id': 'MO-1', 'asset_name': 'Main Office', 'quantity': 2}],
    }, headers=headers)
    assert response.status_code == 201
    assert response.get_json()['created'] == 2

    expected = client.get('/api/audits/expected', headers=headers).get_json()
    assert expected[0]['code'] == 'MO-1' and expected[0]['expected'] == 2

    response = client.post('/api/audits', json={'counts': {'MO-1': '1'}}, headers=headers)
    assert response.status_code == 201
    body = response.get_json()
    assert len(body['missingKeys']) == 1
    assert 'Missing Keys: 1' in body['reportText']

    audits = client.get('/api/audits', headers=headers).get_json()
    assert audits[0]['id'] == body['recordId']


def test_audit_with_non_finite_count(client):
    headers = api_headers()
    client.post('/api/assets/import', json={
        'kind': 'keys',
        'rows': [{'key_id': 'MO-1', 'asset_name': 'Main Office', 'quantity': 2}],
    }, headers=headers)

    response = client.post(
        '/api/audits', data='{"counts": {"MO-1": NaN}}', content_type='application/json', headers=headers
    )
    assert response.status_code == 201
    assert len(response.get_json()['missingKeys']) == 2, "NaN counts as zero"


def test_delete_all_requires_confirmation(client):
    _create(client)
    headers = api_headers()

    response = client.post('/api/assets/delete-all', json={'confirmation': 'DELETE ALL'}, headers=headers)
    assert response.status_code == 400, "Acknowledgement is required"

    response = client.post('/api/assets/delete-all', json={'acknowledged': True, 'confirmation': 'delete all'},
                           headers=headers)
    assert response.status_code == 400, "Phrase must match exactly"

    response = client.post('/api/assets/delete-all', json={'acknowledged': True, 'confirmation': 'DELETE ALL'},
                           headers=headers)
    assert response.status_code == 200
    assert response.get_json()['succeeded'] == 1
    assert client.get('/api/assets', headers=headers).get_json()['assets'] == []


def test_reports(client):
    asset_id = _create(client)
    headers = api_headers()
    client.post(f'/api/assets/{asset_id}/checkout', json={'recipient': 'Sam'}, headers=headers)

    loans = client.get('/api/reports/active-loans', headers=headers).get_json()
    assert loans[0]['holder'] == 'Sam'
    assert client.get('/api/reports/overdue', headers=headers).get_json() == []
    assert client.get('/api/reports/who-has-what', headers=headers).get_json()[0]['total'] == 1
    assert client.get('/api/reports/checked-out-counts', headers=headers).get_json() == {'KEY': 1}


def test_build_database_with_demo_data(app, store):
    build_database(app, enable_demo_data=True)

    assert len(store.list('demo-org')) == 11, "3 parents, 6 keys and 2 assets"
    assert insert_demo_data(store) is None, "Seeding twice is a no-op"
    assert store.list(ORG_ID) == []
