import json
from types import SimpleNamespace

import pytest

from hotel_pms.main import create_app
from hotel_pms.models.user import db, User
from hotel_pms.models.branch import Branch
from hotel_pms.models.room import Room, RoomType
from hotel_pms.services import notifications

PASSWORD = 'password123'

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'JWT_SECRET_KEY': 'test-jwt-secret-key-with-enough-length',
    'SECRET_KEY': 'test-secret',
    'JWT_COOKIE_CSRF_PROTECT': False,
    'VAPID_PUBLIC_KEY': 'test-public-key',
    'VAPID_PRIVATE_KEY': 'test-private-key',
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture
def pushes(monkeypatch):
    """Record Web Push deliveries instead of contacting a push service."""
    sent = []

    def fake_webpush(subscription_info, data, vapid_private_key, vapid_claims):
        sent.append({
            'endpoint': subscription_info['endpoint'],
            'payload': json.loads(data),
            'claims': vapid_claims
        })

    monkeypatch.setattr(notifications, 'webpush', fake_webpush)
    return sent


@pytest.fixture
def app(pushes):
    app = create_app(dict(TEST_CONFIG))
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _user(email, role, branch=None, first_name='Test'):
    user = User(email=email, first_name=first_name, last_name='User', role=role, branch=branch)
    user.set_password(PASSWORD)
    return user


@pytest.fixture
def seed(app):
    with app.app_context():
        kathmandu = Branch(name='Kathmandu', address='Thamel', phone='01-4000000')
        pokhara = Branch(name='Pokhara', address='Lakeside')
        deluxe = RoomType(name='Deluxe', base_price=100, max_occupancy=2, amenities=['wifi', 'tv'])
        db.session.add_all([kathmandu, pokhara, deluxe])
        db.session.flush()

        rooms = [
            Room(number=number, floor=1, room_type=deluxe, branch=kathmandu)
            for number in ('101', '102', '103')
        ]
        other_room = Room(number='201', floor=2, room_type=deluxe, branch=pokhara)

        admin = _user('admin@hotel.test', 'superadmin', first_name='Asha')
        manager = _user('manager@hotel.test', 'branch-admin', kathmandu, first_name='Manish')
        desk = _user('desk@hotel.test', 'front-desk', kathmandu, first_name='Deepa')
        other_manager = _user('pokhara@hotel.test', 'branch-admin', pokhara, first_name='Pema')

        db.session.add_all(rooms + [other_room, admin, manager, desk, other_manager])
        db.session.commit()

        return SimpleNamespace(
            branch_id=kathmandu.id,
            other_branch_id=pokhara.id,
            room_type_id=deluxe.id,
            room_ids=[room.id for room in rooms],
            other_room_id=other_room.id,
            admin_id=admin.id,
            manager_id=manager.id,
            desk_id=desk.id,
            other_manager_id=other_manager.id
        )


@pytest.fixture
def login(app, seed):
    """Return a test client carrying the session cookie of ``email``."""
    def _login(email, password=PASSWORD):
        test_client = app.test_client()
        response = test_client.post('/api/auth/login', json={'email': email, 'password': password})
        assert response.status_code == 200, response.get_json()
        return test_client
    return _login


@pytest.fixture
def admin_client(login):
    return login('admin@hotel.test')


@pytest.fixture
def manager_client(login):
    return login('manager@hotel.test')


@pytest.fixture
def desk_client(login):
    return login('desk@hotel.test')


@pytest.fixture
def other_client(login):
    return login('pokhara@hotel.test')


@pytest.fixture
def reservation_payload(seed):
    def _payload(room_id=None, branch_id=None, check_in='2030-01-10T14:00:00',
                 check_out='2030-01-12T11:00:00', rate=100, phone='9800000001',
                 first_name='Sita', status='confirmed'):
        return {
            'guest': {
                'first_name': first_name,
                'last_name': 'Sharma',
                'phone': phone,
                'email': 'sita@example.com',
                'nationality': 'Nepali',
                'id_type': 'passport',
                'id_number': 'P1234567'
            },
            'reservation': {
                'branch_id': branch_id or seed.branch_id,
                'status': status
            },
            'rooms': [{
                'room_id': room_id or seed.room_ids[0],
                'check_in_date': check_in,
                'check_out_date': check_out,
                'adults': 2,
                'rate_per_night': rate
            }]
        }
    return _payload


@pytest.fixture
def create_reservation(desk_client, reservation_payload):
    def _create(test_client=None, **kwargs):
        response = (test_client or desk_client).post('/api/reservations', json=reservation_payload(**kwargs))
        assert response.status_code == 201, response.get_json()
        return response.get_json()['data']['reservation']
    return _create
