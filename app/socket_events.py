"""
Socket.IO event handlers and the realtime notification publisher.

Each authenticated user joins a room named after their user id; workflow
code pushes to that room through the publisher stored in
app.extensions['notification_publisher'].
"""
import logging

from flask import request
from flask_socketio import emit, join_room, leave_room

from app.extensions import socketio
from app.utils.auth import decode_token

logger = logging.getLogger(__name__)


class SocketIOPublisher:
    """publish(recipient_id, event, payload) over Socket.IO rooms.

    Fire-and-forget: an absent recipient simply misses the event.
    """

    def __init__(self, socketio_instance):
        self.socketio = socketio_instance

    def __call__(self, recipient_id, event, payload):
        self.socketio.emit(event, payload, room=str(recipient_id))


@socketio.on('connect')
def handle_connect():
    logger.debug('Socket client connected: %s', request.sid)


@socketio.on('disconnect')
def handle_disconnect():
    logger.debug('Socket client disconnected: %s', request.sid)


@socketio.on('join')
def handle_join(data):
    """Join the caller's private room. data = { token: "<access token>" }"""
    token = (data or {}).get('token') if isinstance(data, dict) else None
    if not token:
        emit('error', {'message': 'Access token required'}, room=request.sid)
        return

    try:
        payload = decode_token(token)
    except ValueError as e:
        emit('error', {'message': str(e)}, room=request.sid)
        return

    room = payload['user_id']
    join_room(room)
    emit('joined', {'room': room}, room=request.sid)


@socketio.on('leave')
def handle_leave(data):
    room = (data or {}).get('room') if isinstance(data, dict) else None
    if room:
        leave_room(room)
