"""
Messaging routes - conversations with per-participant unread counters
"""
from flask import Blueprint, request, jsonify

from app import db
from app.models import Conversation, Message, Mission, User
from app.models.messaging import CONVERSATION_TYPES
from app.services.notifications import create_notification, push_notifications
from app.services.uploads import save_uploads, DOCUMENT_EXTENSIONS
from app.utils import require_auth, get_json_body, FieldErrors, utcnow
from app.utils.helpers import parse_json_field
from app.utils.validators import is_blank

messages_bp = Blueprint('messages', __name__)

MAX_ATTACHMENTS = 10


def _conversation_dict(conversation, user_id, messages=None):
    data = conversation.to_dict()
    data['unreadCount'] = conversation.unread_for(user_id)
    if messages is not None:
        data['messages'] = [m.to_dict() for m in messages]
    return data


def _resolve_recipients(raw, errors):
    recipients = parse_json_field(raw, default=raw)
    if not errors.check(isinstance(recipients, list) and len(recipients) > 0, 'recipients',
                        'At least one recipient is required'):
        return []
    users = User.query.filter(User.id.in_(recipients)).all()
    found = {u.id for u in users}
    for index, recipient in enumerate(recipients):
        errors.check(recipient in found, f'recipients[{index}]', 'Invalid recipient ID')
    return [u for u in users if u.id != request.user_id]


def _message_notifications(sender, recipient_ids, related_id, related_type):
    preview = f'Nouveau message de {sender.full_name}'
    return [
        create_notification(recipient_id, preview, 'new_message', related_id, related_type, sender_id=sender.id)
        for recipient_id in recipient_ids
    ]


def _user_conversations(user_id):
    conversations = Conversation.query.order_by(Conversation.updated_at.desc()).all()
    return [c for c in conversations if c.has_participant(user_id)]


@messages_bp.route('/conversations', methods=['POST'])
@require_auth
def create_conversation():
    """
    POST /api/messages/conversations
    {"recipients": ["<user id>"], "content": "Bonjour", "subject": "Intervention"}
    """
    data = get_json_body()
    errors = FieldErrors()
    recipients = _resolve_recipients(data.get('recipients'), errors)
    errors.check(not is_blank(data.get('content')), 'content', 'Message content cannot be empty')
    if data.get('type'):
        errors.check(data['type'] in CONVERSATION_TYPES, 'type', 'Invalid conversation type')
    errors.raise_if_any()
    if not recipients:
        return jsonify({'success': False, 'message': 'A conversation needs someone else in it'}), 400

    sender = request.current_user
    participants = [sender] + recipients
    conversation = Conversation(
        subject=data.get('subject') or 'Nouvelle conversation',
        participants=[{'user': u.id, 'name': u.full_name, 'role': u.role} for u in participants],
        unread_counts={u.id: 0 for u in participants},
        type=data.get('type') or 'general',
        related_to=data.get('relatedTo'),
    )
    db.session.add(conversation)
    db.session.flush()

    content = data['content'].strip()
    message = Message(
        sender_id=sender.id,
        recipients=[u.id for u in recipients],
        content=content,
        conversation_id=conversation.id,
    )
    db.session.add(message)
    conversation.record_message(sender, content, utcnow())
    notifications = _message_notifications(sender, message.recipients, conversation.id, 'Conversation')
    db.session.commit()

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Conversation created successfully',
                    'data': {'conversation': _conversation_dict(conversation, sender.id)}}), 201


@messages_bp.route('/conversations', methods=['GET'])
@require_auth
def list_conversations():
    conversations = _user_conversations(request.user_id)
    return jsonify({
        'success': True,
        'data': {'conversations': [_conversation_dict(c, request.user_id) for c in conversations]}
    }), 200


@messages_bp.route('/conversations/<conversation_id>', methods=['GET'])
@require_auth
def get_conversation(conversation_id):
    conversation = Conversation.get_or_404(conversation_id, 'Conversation not found')
    if not conversation.has_participant(request.user_id):
        return jsonify({'success': False, 'message': 'You are not part of this conversation'}), 403

    messages = Message.query.filter_by(conversation_id=conversation.id).order_by(Message.created_at).all()
    return jsonify({
        'success': True,
        'data': {'conversation': _conversation_dict(conversation, request.user_id, messages)}
    }), 200


@messages_bp.route('/conversations/<conversation_id>', methods=['POST'])
@require_auth
def reply_to_conversation(conversation_id):
    """Send a message in a conversation (JSON or multipart with attachments)"""
    conversation = Conversation.get_or_404(conversation_id, 'Conversation not found')
    if not conversation.has_participant(request.user_id):
        return jsonify({'success': False, 'message': 'You are not part of this conversation'}), 403

    data = get_json_body()
    errors = FieldErrors()
    errors.check(not is_blank(data.get('content')), 'content', 'Message content cannot be empty')
    errors.raise_if_any()

    attachments = save_uploads(request.files.getlist('attachments'), 'attachments',
                               max_files=MAX_ATTACHMENTS, allowed=DOCUMENT_EXTENSIONS)
    sender = request.current_user
    content = data['content'].strip()
    message = Message(
        sender_id=sender.id,
        recipients=[user_id for user_id in conversation.participant_ids if user_id != sender.id],
        content=content,
        conversation_id=conversation.id,
        attachments=attachments,
    )
    db.session.add(message)
    conversation.record_message(sender, content, utcnow())
    notifications = _message_notifications(sender, message.recipients, conversation.id, 'Conversation')
    db.session.commit()

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Message sent successfully',
                    'data': {'message': message.to_dict()}}), 201


@messages_bp.route('/conversations/<conversation_id>/read', methods=['PATCH'])
@require_auth
def mark_conversation_read(conversation_id):
    conversation = Conversation.get_or_404(conversation_id, 'Conversation not found')
    if not conversation.has_participant(request.user_id):
        return jsonify({'success': False, 'message': 'You are not part of this conversation'}), 403

    conversation.reset_unread(request.user_id)
    Message.query.filter_by(conversation_id=conversation.id).filter(
        Message.sender_id != request.user_id).update({'is_read': True}, synchronize_session=False)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Conversation marked as read'}), 200


@messages_bp.route('/send', methods=['POST'])
@require_auth
def send_message():
    """Standalone message, optionally about a mission"""
    data = get_json_body()
    errors = FieldErrors()
    recipients = _resolve_recipients(data.get('recipients'), errors)
    errors.check(not is_blank(data.get('content')), 'content', 'Message content cannot be empty')
    if data.get('mission'):
        errors.check(db.session.get(Mission, data['mission']) is not None, 'mission', 'Mission not found')
    errors.raise_if_any()
    if not recipients:
        return jsonify({'success': False, 'message': 'A message needs a recipient other than the sender'}), 400

    message = Message(
        sender_id=request.user_id,
        recipients=[u.id for u in recipients],
        content=data['content'].strip(),
        mission_id=data.get('mission') or None,
    )
    db.session.add(message)
    db.session.flush()
    related = (data['mission'], 'Mission') if data.get('mission') else (None, None)
    notifications = _message_notifications(request.current_user, message.recipients, *related)
    db.session.commit()

    push_notifications(notifications)
    return jsonify({'success': True, 'message': 'Message sent successfully',
                    'data': {'message': message.to_dict()}}), 201


@messages_bp.route('/my', methods=['GET'])
@require_auth
def my_messages():
    messages = Message.query.order_by(Message.created_at.desc()).all()
    mine = [m for m in messages if request.user_id in (m.recipients or [])]
    return jsonify({'success': True, 'data': {'messages': [m.to_dict() for m in mine]}}), 200
