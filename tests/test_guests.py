import pytest


@pytest.fixture
def guests(desk_client, other_client):
    created = []
    for test_client, body in (
        (desk_client, {'first_name': 'Ram', 'last_name': 'Thapa', 'phone': '9811111111', 'email': 'ram@example.com'}),
        (desk_client, {'first_name': 'Gita', 'last_name': 'Rai', 'phone': '9822222222', 'nationality': 'Nepali'}),
        (other_client, {'first_name': 'Ramesh', 'last_name': 'Gurung', 'phone': '9833333333'}),
    ):
        response = test_client.post('/api/guests', json=body)
        assert response.status_code == 201
        created.append(response.get_json()['data']['guest'])
    return created


def test_guest_is_created_in_staff_branch(desk_client, seed):
    response = desk_client.post('/api/guests', json={
        'first_name': 'Hari', 'last_name': 'Karki', 'branch_id': seed.other_branch_id
    })

    assert response.status_code == 201
    assert response.get_json()['data']['guest']['branch_id'] == seed.branch_id


def test_guest_requires_names(desk_client):
    response = desk_client.post('/api/guests', json={'first_name': 'Solo'})

    assert response.status_code == 400
    assert response.get_json()['error']['details'][0]['field'] == 'last_name'


def test_list_is_branch_scoped(desk_client, admin_client, guests):
    names = [guest['first_name'] for guest in desk_client.get('/api/guests').get_json()['data']['guests']]
    assert sorted(names) == ['Gita', 'Ram']

    assert len(admin_client.get('/api/guests').get_json()['data']['guests']) == 3


def test_lookup_by_phone(desk_client, guests):
    response = desk_client.get('/api/guests?phone=9822222222')

    found = response.get_json()['data']['guests']
    assert [guest['first_name'] for guest in found] == ['Gita']


def test_search_matches_name_phone_and_email(desk_client, admin_client, guests):
    by_name = desk_client.get('/api/guests/search?q=ram').get_json()['data']['guests']
    assert [guest['first_name'] for guest in by_name] == ['Ram']

    by_phone = desk_client.get('/api/guests/search?q=98222').get_json()['data']['guests']
    assert [guest['first_name'] for guest in by_phone] == ['Gita']

    by_email = desk_client.get('/api/guests/search?q=example.com').get_json()['data']['guests']
    assert [guest['first_name'] for guest in by_email] == ['Ram']

    everywhere = admin_client.get('/api/guests/search?q=ram').get_json()['data']['guests']
    assert sorted(guest['first_name'] for guest in everywhere) == ['Ram', 'Ramesh']


def test_empty_search_returns_nothing(desk_client, guests):
    response = desk_client.get('/api/guests/search?q=')

    assert response.status_code == 200
    assert response.get_json()['data']['guests'] == []


def test_guest_from_other_branch_is_forbidden(desk_client, guests):
    other_guest = guests[2]

    assert desk_client.get(f'/api/guests/{other_guest["id"]}').status_code == 403
    assert desk_client.put(f'/api/guests/{other_guest["id"]}', json={'phone': '1'}).status_code == 403


def test_update_and_soft_delete(desk_client, guests):
    guest_id = guests[0]['id']

    response = desk_client.put(f'/api/guests/{guest_id}', json={'id_type': 'national-id', 'id_number': 'N-77'})
    assert response.status_code == 200
    assert response.get_json()['data']['guest']['id_type'] == 'national-id'

    assert desk_client.delete(f'/api/guests/{guest_id}').status_code == 204
    names = [guest['first_name'] for guest in desk_client.get('/api/guests').get_json()['data']['guests']]
    assert names == ['Gita']


def test_unknown_guest(desk_client, seed):
    response = desk_client.get('/api/guests/9999')

    assert response.status_code == 404
    assert response.get_json()['error']['code'] == 'GUEST_NOT_FOUND'
