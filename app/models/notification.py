"""Notification model"""
from app import db
from .base import BaseModel

NOTIFICATION_TYPES = (
    'mission_assigned', 'status_update', 'new_message', 'system', 'quote_response',
    'quote_created', 'quote_sent', 'report_created', 'report_sent',
)
RELATED_ENTITY_TYPES = ('Mission', 'Quote', 'Request', 'Report', 'Invoice', 'Conversation')


class Notification(BaseModel):
    """
    Notification model - in-app notifications, pushed live when the recipient is connected
    """
    __tablename__ = 'notifications'

    recipient_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    sender_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))

    type = db.Column(db.String(50), nullable=False, default='system')
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    related_entity_id = db.Column(db.String(36))
    related_entity_type = db.Column(db.String(30))

    __table_args__ = (
        db.Index('idx_notifications_recipient', 'recipient_id', 'created_at'),
        db.Index('idx_notifications_unread', 'recipient_id', 'is_read'),
    )

    def __repr__(self):
        return f'<Notification {self.type} - user={self.recipient_id}>'

    def mark_read(self):
        self.is_read = True

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        data['relatedEntity'] = {
            'id': self.related_entity_id,
            'type': self.related_entity_type,
        } if self.related_entity_id else None
        return data
