from datetime import date, datetime, timedelta

import pytest


def _iso(day, hour):
    return datetime.combine(day, datetime.min.time()).replace(hour=hour).isoformat()


@pytest.fixture
def activity(desk_client, create_reservation, seed):
    """A stay arriving today with one cash payment, plus a pending booking next month."""
    today = date.today()
    arriving = create_reservation(
        room_id=seed.room_ids[0],
        check_in=_iso(today, 14),
        check_out=_iso(today + timedelta(days=2), 11)
    )
    desk_client.post(f'/api/reservations/{arriving["id"]}/payments', json={
        'payment_type': 'advance', 'payment_method': 'cash', 'amount': 50
    })
    create_reservation(
        room_id=seed.room_ids[1],
        check_in=_iso(today + timedelta(days=30), 14),
        check_out=_iso(today + timedelta(days=31), 11),
        phone='9800000002',
        status='pending'
    )
    return arriving


class TestDashboard:

    def test_branch_metrics(self, desk_client, activity):
        response = desk_client.get('/api/dashboard/metrics')

        assert response.status_code == 200
        metrics = response.get_json()['data']['metrics']
        assert metrics['total_rooms'] == 3
        assert metrics['room_status']['reserved'] == 2
        assert metrics['available_rooms'] == 1
        assert metrics['today_check_ins'] == 1
        assert metrics['revenue_today'] == 50.0
        assert metrics['total_reservations'] == 2
        assert metrics['active_reservations'] == 2
        assert metrics['outstanding_balance'] == 150.0 + 100.0
        assert len(metrics['recent_reservations']) == 2

    def test_occupancy_rate_follows_check_in(self, desk_client, activity):
        desk_client.patch(f'/api/reservations/{activity["id"]}', json={'status': 'checked-in'})

        metrics = desk_client.get('/api/dashboard/metrics').get_json()['data']['metrics']

        assert metrics['occupied_rooms'] == 1
        assert metrics['occupancy_rate'] == round(100 / 3, 2)

    def test_other_branch_sees_its_own_figures(self, other_client, activity):
        metrics = other_client.get('/api/dashboard/metrics').get_json()['data']['metrics']

        assert metrics['total_rooms'] == 1
        assert metrics['total_reservations'] == 0

    def test_super_admin_metrics(self, admin_client, desk_client, activity):
        assert desk_client.get('/api/dashboard/super-admin-metrics').status_code == 403

        data = admin_client.get('/api/dashboard/super-admin-metrics').get_json()['data']
        assert data['totals']['branch_count'] == 2
        assert data['totals']['total_rooms'] == 4
        assert data['totals']['revenue_today'] == 50.0
        assert [item['branch']['name'] for item in data['branches']] == ['Kathmandu', 'Pokhara']


class TestAnalytics:

    def test_revenue(self, desk_client, activity):
        response = desk_client.get('/api/analytics/revenue?period=7d')

        data = response.get_json()['data']
        assert data['total_revenue'] == 50.0
        assert data['payment_count'] == 1
        assert data['by_method'] == {'cash': 50.0}
        assert data['by_type'] == {'advance': 50.0}
        assert len(data['daily']) == 7
        assert data['daily'][-1] == {'date': date.today().isoformat(), 'revenue': 50.0}
        assert data['average_daily_revenue'] == round(50.0 / 7, 2)

    def test_revenue_csv(self, desk_client, activity):
        response = desk_client.get('/api/analytics/revenue?period=7d&format=csv')

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        rows = response.get_data(as_text=True).strip().splitlines()
        assert rows[0] == 'date,revenue'
        assert len(rows) == 8
        assert rows[-1] == f'{date.today().isoformat()},50.0'

    def test_unknown_period(self, desk_client, seed):
        response = desk_client.get('/api/analytics/revenue?period=2w')

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_PERIOD'

    def test_occupancy(self, desk_client, activity):
        data = desk_client.get('/api/analytics/occupancy?period=7d').get_json()['data']

        assert data['total_rooms'] == 3
        assert len(data['daily']) == 7
        assert data['daily'][-1]['occupied_rooms'] == 1
        assert data['current_status']['reserved'] == 2

    def test_guests(self, desk_client, activity):
        data = desk_client.get('/api/analytics/guests').get_json()['data']

        assert data['total_guests'] == 2
        assert data['new_this_month'] == 2
        assert data['top_nationalities'] == [{'nationality': 'Nepali', 'count': 2}]
        assert data['id_types'] == {'passport': 2}

    def test_guests_without_data(self, desk_client, seed):
        data = desk_client.get('/api/analytics/guests').get_json()['data']

        assert data['total_guests'] == 0
        assert data['top_nationalities'] == []

    def test_rooms(self, desk_client, activity):
        data = desk_client.get('/api/analytics/rooms').get_json()['data']

        by_number = {room['room_number']: room for room in data['rooms']}
        assert by_number['101']['bookings'] == 1
        assert by_number['101']['nights'] == 2
        assert by_number['101']['revenue'] == 200.0
        assert by_number['103']['bookings'] == 0
        assert data['room_types'][0]['room_type'] == 'Deluxe'
        assert data['room_types'][0]['rooms'] == 3

    def test_operations(self, desk_client, activity):
        data = desk_client.get('/api/analytics/operations').get_json()['data']

        assert data['arrivals_today'] == 1
        assert data['pending_reservations'] == 1
        assert data['in_house'] == 0
        assert data['rooms_needing_attention'] == {'maintenance': 0, 'out-of-order': 0, 'housekeeping': 0}
