"""Conversation and message models"""
from app import db
from .base import BaseModel

CONVERSATION_TYPES = ('general', 'quote', 'mission', 'report')


class Conversation(BaseModel):
    """
    Conversation - participants are a name/role snapshot taken at creation;
    unread_counts maps participant id to the number of unseen messages.
    """
    __tablename__ = 'conversations'

    subject = db.Column(db.String(255), nullable=False, default='New conversation')
    participants = db.Column(db.JSON, nullable=False, default=list)  # [{user, name, role}]
    last_message = db.Column(db.JSON)  # {content, sender: {id, name, role}, timestamp}
    unread_counts = db.Column(db.JSON, nullable=False, default=dict)
    type = db.Column(db.String(20), nullable=False, default='general')
    related_to = db.Column(db.JSON)  # {id, type}

    def __repr__(self):
        return f'<Conversation {self.subject}>'

    @property
    def participant_ids(self):
        return [p['user'] for p in self.participants or []]

    def has_participant(self, user_id):
        return user_id in self.participant_ids

    def record_message(self, sender, content, timestamp):
        """Update the lastMessage summary and bump every other participant's counter"""
        self.last_message = {
            'content': content,
            'sender': {'id': sender.id, 'name': sender.full_name, 'role': sender.role},
            'timestamp': timestamp.isoformat(),
        }
        counts = dict(self.unread_counts or {})
        for user_id in self.participant_ids:
            if user_id != sender.id:
                counts[user_id] = counts.get(user_id, 0) + 1
        # reassign so the JSON column is flagged dirty
        self.unread_counts = counts

    def reset_unread(self, user_id):
        counts = dict(self.unread_counts or {})
        counts[user_id] = 0
        self.unread_counts = counts

    def unread_for(self, user_id):
        return (self.unread_counts or {}).get(user_id, 0)


class Message(BaseModel):
    __tablename__ = 'messages'

    sender_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    recipients = db.Column(db.JSON, nullable=False, default=list)  # user ids
    content = db.Column(db.Text, nullable=False)
    mission_id = db.Column(db.String(36), db.ForeignKey('missions.id', ondelete='SET NULL'))
    conversation_id = db.Column(db.String(36), db.ForeignKey('conversations.id', ondelete='CASCADE'), index=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    attachments = db.Column(db.JSON, default=list)  # [{name, url, type}]

    sender = db.relationship('User')
    mission = db.relationship('Mission')

    def __repr__(self):
        return f'<Message from={self.sender_id}>'

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        data['sender'] = self.sender.to_summary() if self.sender else None
        data['mission'] = {'id': self.mission.id, 'missionNumber': self.mission.mission_number} if self.mission else None
        return data
