import pytest


@pytest.fixture
def fee_items(client, auth_headers):
    items = [
        ('Senior 1', 'Tuition', 600000),
        ('Senior 1', 'Boarding Fee', 450000),
        ('Senior 1', 'Development', 50000),
        ('Senior 2', 'Tuition', 650000),
    ]
    created = []
    for class_name, fee_name, amount in items:
        response = client.post('/api/settings/fee-structures', json={
            'className': class_name, 'feeName': fee_name, 'amount': amount, 'frequency': 'termly',
        }, headers=auth_headers)
        assert response.status_code == 201
        created.append(response.get_json()['feeStructure'])
    return created


def test_grouped_listing(client, auth_headers, fee_items):
    body = client.get('/api/settings/fee-structures', headers=auth_headers).get_json()
    assert body['totalClasses'] == 2
    assert body['classTotals'] == {'Senior 1': 1100000, 'Senior 2': 650000}
    assert len(body['feeStructures']['Senior 1']) == 3


def test_class_totals_by_residence(client, auth_headers, fee_items):
    body = client.get('/api/settings/fee-structures/Senior%201', headers=auth_headers).get_json()
    assert body['dayTotal'] == 650000
    assert body['boardingTotal'] == 1100000
    assert body['totalFees'] == 1100000
    assert body['feeCount'] == 3


def test_validation(client, auth_headers):
    assert client.post('/api/settings/fee-structures', json={'className': 'Senior 1'},
                       headers=auth_headers).status_code == 400
    assert client.post('/api/settings/fee-structures', json={
        'className': 'Senior 1', 'feeName': 'Tuition', 'amount': -5,
    }, headers=auth_headers).status_code == 400


def test_update_and_delete(client, auth_headers, fee_items):
    fee_id = fee_items[0]['id']
    updated = client.put(f'/api/settings/fee-structures/{fee_id}', json={'amount': 700000},
                         headers=auth_headers).get_json()
    assert updated['feeStructure']['amount'] == 700000

    assert client.delete(f'/api/settings/fee-structures/{fee_id}', headers=auth_headers).status_code == 200
    assert client.delete(f'/api/settings/fee-structures/{fee_id}', headers=auth_headers).status_code == 404


def test_new_fee_items_apply_to_admissions(admit, fee_items):
    boarder = admit('Amina', residenceType='Boarding').get_json()['student']
    day = admit('Brian', residenceType='Day').get_json()['student']
    assert boarder['totalFees'] == 1100000
    assert day['totalFees'] == 650000
