"""
In-app notifications.

create_notification() only stages the row in the current session so it
commits together with the change that caused it. push_notifications()
is called after that commit; delivery is best effort and never raises.
"""
import logging

from flask import current_app

from app import db
from app.models import Notification, User

logger = logging.getLogger(__name__)

NEW_NOTIFICATION_EVENT = 'newNotification'


def create_notification(recipient_id, message, notification_type='system',
                        related_id=None, related_type=None, sender_id=None):
    """Stage a notification; returns None when there is no recipient"""
    if not recipient_id:
        return None
    notification = Notification(
        recipient_id=recipient_id,
        sender_id=sender_id,
        message=message,
        type=notification_type,
        related_entity_id=related_id,
        related_entity_type=related_type,
    )
    db.session.add(notification)
    return notification


def notify_admins(message, notification_type='system', related_id=None,
                  related_type=None, sender_id=None, exclude=None):
    admins = User.query.filter_by(role='admin', is_active=True).all()
    return [
        create_notification(admin.id, message, notification_type, related_id, related_type, sender_id)
        for admin in admins
        if admin.id != exclude
    ]


def get_publisher():
    return current_app.extensions.get('notification_publisher')


def push_notifications(notifications):
    """Publish committed notifications to their recipients' channels"""
    publish = get_publisher()
    if publish is None:
        return
    for notification in notifications:
        if notification is None:
            continue
        try:
            publish(notification.recipient_id, NEW_NOTIFICATION_EVENT, notification.to_dict())
        except Exception:
            logger.exception('Failed to push notification %s to %s',
                             notification.id, notification.recipient_id)
