"""Admin notifications: a history row per recipient plus a Web Push message
to each of the recipient's browser subscriptions.

Recipients are every active superadmin and the active branch-admins of the
branch the event happened in. Callers treat dispatch as best-effort; see
``dispatch_best_effort``.
"""
import json
import logging
from datetime import datetime

from flask import current_app
from pywebpush import webpush, WebPushException
from requests import RequestException

from hotel_pms.models.user import db, User
from hotel_pms.models.notification import NotificationHistory

logger = logging.getLogger(__name__)

# Push services answer with these when a subscription no longer exists
GONE_STATUS_CODES = (404, 410)


def get_vapid_public_key():
    return current_app.config.get('VAPID_PUBLIC_KEY') or ''


def get_admin_recipients(branch_id):
    query = User.query.filter(User.is_active.is_(True))
    superadmins = query.filter(User.role == 'superadmin').all()
    branch_admins = []
    if branch_id:
        branch_admins = query.filter(User.role == 'branch-admin', User.branch_id == branch_id).all()
    return superadmins + branch_admins


def send_push(subscription, payload):
    """Deliver one push message. Returns False when the subscription was removed."""
    private_key = current_app.config.get('VAPID_PRIVATE_KEY')
    if not private_key:
        logger.debug('VAPID private key not configured, skipping push to %s', subscription.endpoint[:50])
        return True

    try:
        webpush(
            subscription_info=subscription.subscription_info(),
            data=json.dumps(payload),
            vapid_private_key=private_key,
            vapid_claims={'sub': current_app.config['VAPID_SUBJECT']}
        )
    except WebPushException as exc:
        status_code = exc.response.status_code if exc.response is not None else None
        if status_code in GONE_STATUS_CODES:
            logger.info('Removing expired push subscription %s for user %s', subscription.id, subscription.user_id)
            db.session.delete(subscription)
            return False
        logger.warning('Push to subscription %s failed: %s', subscription.id, exc)
    except (RequestException, ValueError) as exc:
        # Unreachable endpoint or malformed keys; the other subscriptions still get theirs
        logger.warning('Push to subscription %s failed: %s', subscription.id, exc)
    return True


def notify_admins(notification_type, title, body, branch_id=None, data=None,
                  reservation_id=None, room_id=None):
    recipients = get_admin_recipients(branch_id)
    payload = {
        'title': title,
        'body': body,
        'type': notification_type,
        'data': data or {}
    }

    history = []
    for user in recipients:
        entry = NotificationHistory(
            user_id=user.id,
            type=notification_type,
            title=title,
            body=body,
            data=data,
            reservation_id=reservation_id,
            room_id=room_id,
            branch_id=branch_id
        )
        db.session.add(entry)
        history.append(entry)

    # History is stored before any push so delivery problems cannot lose it
    db.session.commit()

    for user in recipients:
        for subscription in list(user.push_subscriptions):
            send_push(subscription, payload)
    db.session.commit()

    logger.info('Sent %s notification to %d admin(s)', notification_type, len(recipients))
    return history


def send_new_reservation_notification(guest, room, branch, reservation, check_in, check_out):
    return notify_admins(
        'new-reservation',
        'New Reservation',
        f'{guest.full_name} booked room {room.number} at {branch.name} '
        f'from {check_in.strftime("%Y-%m-%d")} to {check_out.strftime("%Y-%m-%d")}',
        branch_id=branch.id,
        data={
            'reservation_id': reservation.id,
            'confirmation_number': reservation.confirmation_number,
            'room_number': room.number,
            'url': '/reservations'
        },
        reservation_id=reservation.id,
        room_id=room.id
    )


def send_check_in_notification(guest, room, branch, reservation):
    return notify_admins(
        'check-in',
        'Guest Checked In',
        f'{guest.full_name} checked in to room {room.number} at {branch.name}',
        branch_id=branch.id,
        data={
            'reservation_id': reservation.id,
            'room_number': room.number,
            'url': '/reservations'
        },
        reservation_id=reservation.id,
        room_id=room.id
    )


def send_check_out_notification(guest, room, branch, reservation):
    return notify_admins(
        'check-out',
        'Guest Checked Out',
        f'{guest.full_name} checked out of room {room.number} at {branch.name}',
        branch_id=branch.id,
        data={
            'reservation_id': reservation.id,
            'room_number': room.number,
            'url': '/billing'
        },
        reservation_id=reservation.id,
        room_id=room.id
    )


def send_maintenance_notification(room, branch, status):
    room_type = room.room_type.name if room.room_type else 'Room'
    return notify_admins(
        'maintenance',
        'Room Maintenance Required',
        f'{room_type} {room.number} at {branch.name} is now {status}',
        branch_id=branch.id,
        data={
            'room_id': room.id,
            'room_number': room.number,
            'status': status,
            'url': '/rooms'
        },
        room_id=room.id
    )


def dispatch_best_effort(send, *args, **kwargs):
    """Run a notification sender; failures are logged and never raised."""
    try:
        return send(*args, **kwargs)
    except Exception:
        db.session.rollback()
        logger.exception('Failed to send %s', getattr(send, '__name__', 'notification'))
        return None


def mark_as_read(notification):
    notification.is_read = True
    notification.read_at = datetime.utcnow()
