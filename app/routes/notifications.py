from flask import Blueprint, request, jsonify

from app import db
from app.models import Notification
from app.utils import require_auth

notifications_bp = Blueprint('notifications', __name__)

LATEST_LIMIT = 20


@notifications_bp.route('/my', methods=['GET'])
@require_auth
def my_notifications():
    """Latest notifications of the caller, newest first"""
    notifications = Notification.query.filter_by(recipient_id=request.user_id).order_by(
        Notification.created_at.desc()).limit(LATEST_LIMIT).all()
    return jsonify({'success': True, 'data': [n.to_dict() for n in notifications]}), 200


@notifications_bp.route('/unread-count', methods=['GET'])
@require_auth
def unread_count():
    count = Notification.query.filter_by(recipient_id=request.user_id, is_read=False).count()
    return jsonify({'success': True, 'data': {'count': count}}), 200


@notifications_bp.route('/mark-all-read', methods=['PATCH'])
@require_auth
def mark_all_read():
    updated = Notification.query.filter_by(recipient_id=request.user_id, is_read=False).update(
        {'is_read': True}, synchronize_session=False)
    db.session.commit()
    return jsonify({'success': True, 'message': 'All notifications marked as read',
                    'data': {'updated': updated}}), 200


@notifications_bp.route('/<notification_id>/read', methods=['PATCH'])
@require_auth
def mark_read(notification_id):
    notification = Notification.get_or_404(notification_id, 'Notification not found')
    if notification.recipient_id != request.user_id:
        return jsonify({'success': False, 'message': 'Access denied to this notification'}), 403

    notification.mark_read()
    db.session.commit()
    return jsonify({'success': True, 'message': 'Notification marked as read',
                    'data': notification.to_dict()}), 200
