from hotel_pms.models.user import db
from hotel_pms.models.room import Room
from hotel_pms.models.guest import Guest
from hotel_pms.models.reservation import Reservation
from hotel_pms.models.notification import NotificationHistory
from hotel_pms.services import notifications


def _room_status(app, room_id):
    with app.app_context():
        return db.session.get(Room, room_id).status


def _patch(test_client, reservation_id, body):
    return test_client.patch(f'/api/reservations/{reservation_id}', json=body)


class TestCreateReservation:

    def test_creates_reservation_with_totals(self, app, seed, create_reservation):
        reservation = create_reservation(check_in='2030-01-10T14:00:00', check_out='2030-01-12T11:00:00', rate=100)

        assert reservation['confirmation_number'].startswith('RES')
        assert len(reservation['confirmation_number']) == 11
        assert reservation['status'] == 'confirmed'
        assert reservation['total_amount'] == 200.0
        assert reservation['paid_amount'] == 0.0
        assert reservation['payment_status'] == 'unpaid'
        line = reservation['reservation_rooms'][0]
        assert line['total_amount'] == 200.0
        assert line['room']['number'] == '101'
        assert _room_status(app, seed.room_ids[0]) == 'reserved'

    def test_partial_night_counts_as_full_night(self, create_reservation):
        reservation = create_reservation(check_in='2030-01-10T10:00:00', check_out='2030-01-10T22:00:00', rate=80)

        assert reservation['total_amount'] == 80.0

    def test_guest_is_reused_by_phone(self, app, create_reservation, seed):
        first = create_reservation(room_id=seed.room_ids[0])
        second = create_reservation(room_id=seed.room_ids[1], first_name='Sita Devi')

        assert first['guest_id'] == second['guest_id']
        with app.app_context():
            assert db.session.get(Guest, first['guest_id']).reservation_count == 2

    def test_multi_room_reservation(self, app, desk_client, reservation_payload, seed):
        payload = reservation_payload()
        payload['rooms'].append({
            'room_id': seed.room_ids[1],
            'check_in_date': '2030-01-10T14:00:00',
            'check_out_date': '2030-01-13T11:00:00',
            'rate_per_night': 120
        })

        response = desk_client.post('/api/reservations', json=payload)

        assert response.status_code == 201
        assert response.get_json()['data']['reservation']['total_amount'] == 200.0 + 360.0
        assert _room_status(app, seed.room_ids[1]) == 'reserved'

    def test_overlapping_booking_is_rejected(self, desk_client, reservation_payload, create_reservation):
        create_reservation(check_in='2030-01-10T14:00:00', check_out='2030-01-12T11:00:00')

        response = desk_client.post('/api/reservations', json=reservation_payload(
            check_in='2030-01-11T14:00:00', check_out='2030-01-14T11:00:00', phone='9899999999'
        ))

        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'ROOM_UNAVAILABLE'

    def test_room_must_belong_to_branch(self, desk_client, reservation_payload, seed):
        response = desk_client.post('/api/reservations', json=reservation_payload(room_id=seed.other_room_id))

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'ROOM_BRANCH_MISMATCH'

    def test_check_out_must_follow_check_in(self, desk_client, reservation_payload):
        response = desk_client.post('/api/reservations', json=reservation_payload(
            check_in='2030-01-12T11:00:00', check_out='2030-01-10T14:00:00'
        ))

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'VALIDATION_ERROR'

    def test_mixed_offsets_are_compared_in_utc(self, desk_client, reservation_payload):
        response = desk_client.post('/api/reservations', json=reservation_payload(
            check_in='2030-01-10T19:45:00+05:45', check_out='2030-01-12T11:00:00'
        ))

        assert response.status_code == 201
        line = response.get_json()['data']['reservation']['reservation_rooms'][0]
        assert line['check_in_date'] == '2030-01-10T14:00:00'
        assert line['total_amount'] == 200.0

    def test_mixed_offsets_out_of_order(self, desk_client, reservation_payload):
        response = desk_client.post('/api/reservations', json=reservation_payload(
            check_in='2030-01-12T14:00:00Z', check_out='2030-01-12T11:00:00'
        ))

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'VALIDATION_ERROR'

    def test_duplicate_rooms_are_rejected(self, desk_client, reservation_payload):
        payload = reservation_payload()
        payload['rooms'].append(dict(payload['rooms'][0]))

        assert desk_client.post('/api/reservations', json=payload).status_code == 400

    def test_staff_cannot_book_other_branch(self, desk_client, reservation_payload, seed):
        response = desk_client.post('/api/reservations', json=reservation_payload(
            room_id=seed.other_room_id, branch_id=seed.other_branch_id
        ))

        assert response.status_code == 403
        assert response.get_json()['error']['code'] == 'BRANCH_FORBIDDEN'

    def test_new_reservation_notifies_admins(self, app, create_reservation, seed):
        reservation = create_reservation()

        with app.app_context():
            entries = NotificationHistory.query.filter_by(type='new-reservation').all()
            assert sorted(entry.user_id for entry in entries) == sorted([seed.admin_id, seed.manager_id])
            assert entries[0].reservation_id == reservation['id']
            assert entries[0].data['confirmation_number'] == reservation['confirmation_number']

    def test_notification_failure_does_not_fail_booking(self, app, monkeypatch, create_reservation):
        def broken_notify(*args, **kwargs):
            raise RuntimeError('push service down')

        monkeypatch.setattr(notifications, 'notify_admins', broken_notify)

        reservation = create_reservation()

        with app.app_context():
            assert db.session.get(Reservation, reservation['id']) is not None


class TestReadReservations:

    def test_list_is_scoped_and_newest_first(self, desk_client, other_client, create_reservation, seed):
        first = create_reservation(room_id=seed.room_ids[0])
        second = create_reservation(room_id=seed.room_ids[1], phone='9800000002')

        ids = [r['id'] for r in desk_client.get('/api/reservations').get_json()['data']['reservations']]
        assert ids == [second['id'], first['id']]

        assert other_client.get('/api/reservations').get_json()['data']['reservations'] == []
        assert other_client.get(f'/api/reservations/{first["id"]}').status_code == 403

    def test_list_filters_by_status(self, desk_client, create_reservation, seed):
        create_reservation(room_id=seed.room_ids[0], status='pending')
        create_reservation(room_id=seed.room_ids[1], phone='9800000002')

        pending = desk_client.get('/api/reservations?status=pending').get_json()['data']['reservations']
        assert [r['status'] for r in pending] == ['pending']

    def test_detail_includes_guest_and_rooms(self, desk_client, create_reservation):
        reservation = create_reservation()

        response = desk_client.get(f'/api/reservations/{reservation["id"]}')

        detail = response.get_json()['data']['reservation']
        assert detail['guest']['phone'] == '9800000001'
        assert detail['reservation_rooms'][0]['room']['room_type']['name'] == 'Deluxe'

    def test_unknown_reservation(self, desk_client, seed):
        response = desk_client.get('/api/reservations/does-not-exist')

        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'RESERVATION_NOT_FOUND'


class TestStatusWorkflow:

    def test_check_in_and_check_out_move_rooms(self, app, desk_client, create_reservation, seed):
        reservation = create_reservation()

        checked_in = _patch(desk_client, reservation['id'], {'status': 'checked-in'})
        assert checked_in.status_code == 200
        line = checked_in.get_json()['data']['reservation']['reservation_rooms'][0]
        assert line['actual_check_in'] is not None
        assert _room_status(app, seed.room_ids[0]) == 'occupied'

        checked_out = _patch(desk_client, reservation['id'], {'status': 'checked-out'})
        assert checked_out.status_code == 200
        assert checked_out.get_json()['data']['reservation']['reservation_rooms'][0]['actual_check_out'] is not None
        assert _room_status(app, seed.room_ids[0]) == 'available'

        with app.app_context():
            types = {entry.type for entry in NotificationHistory.query.all()}
            assert types == {'new-reservation', 'check-in', 'check-out'}

    def test_final_states_cannot_be_left(self, desk_client, create_reservation):
        reservation = create_reservation()
        _patch(desk_client, reservation['id'], {'status': 'checked-in'})
        _patch(desk_client, reservation['id'], {'status': 'checked-out'})

        response = _patch(desk_client, reservation['id'], {'status': 'checked-in'})

        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'INVALID_STATUS_TRANSITION'

    def test_cannot_skip_check_in(self, desk_client, create_reservation):
        reservation = create_reservation()

        response = _patch(desk_client, reservation['id'], {'status': 'checked-out'})

        assert response.status_code == 409

    def test_same_status_is_a_no_op(self, app, desk_client, create_reservation):
        reservation = create_reservation()

        response = _patch(desk_client, reservation['id'], {'status': 'confirmed'})

        assert response.status_code == 200
        with app.app_context():
            assert NotificationHistory.query.filter(NotificationHistory.type != 'new-reservation').count() == 0

    def test_no_show_frees_rooms(self, app, desk_client, create_reservation, seed):
        reservation = create_reservation()

        response = _patch(desk_client, reservation['id'], {'status': 'no-show'})

        assert response.status_code == 200
        assert _room_status(app, seed.room_ids[0]) == 'available'

    def test_cancel_frees_rooms_without_notification(self, app, desk_client, create_reservation, seed):
        reservation = create_reservation()

        assert desk_client.delete(f'/api/reservations/{reservation["id"]}').status_code == 204
        assert _room_status(app, seed.room_ids[0]) == 'available'
        with app.app_context():
            assert db.session.get(Reservation, reservation['id']).status == 'cancelled'
            assert NotificationHistory.query.filter(NotificationHistory.type != 'new-reservation').count() == 0

        again = desk_client.delete(f'/api/reservations/{reservation["id"]}')
        assert again.status_code == 409

    def test_notes_can_be_updated(self, desk_client, create_reservation):
        reservation = create_reservation()

        response = _patch(desk_client, reservation['id'], {'notes': 'Late arrival'})

        assert response.get_json()['data']['reservation']['notes'] == 'Late arrival'


class TestDateEdits:

    def test_dates_recompute_totals(self, desk_client, create_reservation):
        reservation = create_reservation(check_in='2030-01-10T14:00:00', check_out='2030-01-12T11:00:00')
        line_id = reservation['reservation_rooms'][0]['id']

        response = _patch(desk_client, reservation['id'], {'rooms': [{
            'id': line_id, 'check_in_date': '2030-01-10T14:00:00', 'check_out_date': '2030-01-14T11:00:00'
        }]})

        assert response.status_code == 200
        updated = response.get_json()['data']['reservation']
        assert updated['reservation_rooms'][0]['total_amount'] == 400.0
        assert updated['total_amount'] == 400.0

    def test_dates_cannot_collide_with_other_booking(self, desk_client, create_reservation, seed):
        create_reservation(check_in='2030-01-15T14:00:00', check_out='2030-01-17T11:00:00', phone='9800000002')
        reservation = create_reservation(check_in='2030-01-10T14:00:00', check_out='2030-01-12T11:00:00')
        line_id = reservation['reservation_rooms'][0]['id']

        response = _patch(desk_client, reservation['id'], {'rooms': [{
            'id': line_id, 'check_in_date': '2030-01-10T14:00:00', 'check_out_date': '2030-01-16T11:00:00'
        }]})

        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'ROOM_UNAVAILABLE'

    def test_total_cannot_drop_below_paid(self, desk_client, create_reservation):
        reservation = create_reservation(check_in='2030-01-10T14:00:00', check_out='2030-01-13T11:00:00')
        desk_client.post(f'/api/reservations/{reservation["id"]}/payments', json={
            'payment_type': 'advance', 'payment_method': 'cash', 'amount': 250
        })
        line_id = reservation['reservation_rooms'][0]['id']

        response = _patch(desk_client, reservation['id'], {'rooms': [{
            'id': line_id, 'check_in_date': '2030-01-10T14:00:00', 'check_out_date': '2030-01-11T11:00:00'
        }]})

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'TOTAL_BELOW_PAID'
        detail = desk_client.get(f'/api/reservations/{reservation["id"]}').get_json()['data']['reservation']
        assert detail['total_amount'] == 300.0

    def test_edit_with_mixed_offsets(self, desk_client, create_reservation):
        reservation = create_reservation(check_in='2030-01-10T14:00:00', check_out='2030-01-12T11:00:00')
        line_id = reservation['reservation_rooms'][0]['id']

        response = _patch(desk_client, reservation['id'], {'rooms': [{
            'id': line_id, 'check_in_date': '2030-01-10T14:00:00Z', 'check_out_date': '2030-01-10T12:00:00'
        }]})

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'VALIDATION_ERROR'

    def test_unknown_room_line(self, desk_client, create_reservation):
        reservation = create_reservation()

        response = _patch(desk_client, reservation['id'], {'rooms': [{
            'id': 9999, 'check_in_date': '2030-01-10T14:00:00', 'check_out_date': '2030-01-11T11:00:00'
        }]})

        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'RESERVATION_ROOM_NOT_FOUND'
