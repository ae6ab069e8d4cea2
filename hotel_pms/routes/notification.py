from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.models.user import db
from hotel_pms.models.notification import PushSubscription, NotificationHistory
from hotel_pms.permissions import forbidden
from hotel_pms.schemas import PushSubscriptionCreate, PushSubscriptionDelete
from hotel_pms.services.notifications import get_vapid_public_key, mark_as_read

notification_bp = Blueprint('notification', __name__)

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 200


def _admins_only():
    return forbidden('Only admins can receive notifications')


@notification_bp.route('/notifications/vapid-key', methods=['GET'])
def get_vapid_key():
    return jsonify({
        'success': True,
        'data': {
            'public_key': get_vapid_public_key()
        },
        'message': 'VAPID public key retrieved successfully'
    }), 200


@notification_bp.route('/notifications/subscribe', methods=['POST'])
@jwt_required()
def subscribe():
    if not current_user.is_admin:
        return _admins_only()

    data = PushSubscriptionCreate.model_validate(request.get_json(silent=True) or {})

    # Re-subscribing the same browser refreshes its keys
    subscription = PushSubscription.query.filter_by(user_id=current_user.id, endpoint=data.endpoint).first()
    created = subscription is None
    if created:
        subscription = PushSubscription(user_id=current_user.id, endpoint=data.endpoint)
        db.session.add(subscription)
    subscription.p256dh = data.p256dh
    subscription.auth = data.auth

    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'subscription': subscription.to_dict()
        },
        'message': 'Subscribed to notifications successfully'
    }), 201 if created else 200


@notification_bp.route('/notifications/unsubscribe', methods=['DELETE'])
@jwt_required()
def unsubscribe():
    data = PushSubscriptionDelete.model_validate(request.get_json(silent=True) or {})

    PushSubscription.query.filter_by(user_id=current_user.id, endpoint=data.endpoint).delete()
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'Unsubscribed from notifications successfully'
    }), 200


@notification_bp.route('/notifications/history', methods=['GET'])
@jwt_required()
def get_history():
    if not current_user.is_admin:
        return _admins_only()

    limit = request.args.get('limit', DEFAULT_HISTORY_LIMIT, type=int)
    limit = max(1, min(limit, MAX_HISTORY_LIMIT))

    notifications = NotificationHistory.query.filter_by(user_id=current_user.id) \
        .order_by(NotificationHistory.sent_at.desc(), NotificationHistory.id.desc()) \
        .limit(limit).all()

    return jsonify({
        'success': True,
        'data': {
            'notifications': [notification.to_dict() for notification in notifications]
        },
        'message': 'Notification history retrieved successfully'
    }), 200


@notification_bp.route('/notifications/history/<int:notification_id>/read', methods=['PATCH'])
@jwt_required()
def mark_notification_read(notification_id):
    notification = NotificationHistory.query.filter_by(id=notification_id, user_id=current_user.id).first()
    if not notification:
        return jsonify({
            'success': False,
            'error': {
                'code': 'NOTIFICATION_NOT_FOUND',
                'message': 'Notification not found'
            }
        }), 404

    mark_as_read(notification)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'notification': notification.to_dict()
        },
        'message': 'Notification marked as read'
    }), 200


@notification_bp.route('/notifications/history/read-all', methods=['PATCH'])
@jwt_required()
def mark_all_read():
    unread = NotificationHistory.query.filter_by(user_id=current_user.id, is_read=False).all()
    for notification in unread:
        mark_as_read(notification)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'updated': len(unread)
        },
        'message': 'All notifications marked as read'
    }), 200


@notification_bp.route('/notifications/unread-count', methods=['GET'])
@jwt_required()
def get_unread_count():
    if not current_user.is_admin:
        return _admins_only()

    count = NotificationHistory.query.filter_by(user_id=current_user.id, is_read=False).count()

    return jsonify({
        'success': True,
        'data': {
            'count': count
        },
        'message': 'Unread count retrieved successfully'
    }), 200
