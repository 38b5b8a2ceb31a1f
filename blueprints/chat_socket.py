"""Socket.IO transport for the chat hub.

Clients connect to the ``/chat`` namespace with the session cookie set by
``/auth/login``. Each connection subscribes to its user's room on connect and
to group rooms on ``joinGroupRoom``; everything the HTTP routes broadcast
through the hub is then pushed down the socket.
"""

from flask import current_app, request, session
from flask_socketio import SocketIO, emit
import logging
import os

from errors import ApiError, PermissionDenied, ValidationError
from models import db, User
from blueprints.common import require_fields, parse_int, chat_hub
from blueprints.chat import (
    deliver_direct_message,
    deliver_group_message,
    retract_direct_message,
    retract_group_message,
    is_group_member,
)
from services.chat_hub import user_room, group_room

CHAT_NAMESPACE = '/chat'

EVENT_JOINED_ROOM = 'joinedRoom'
EVENT_JOINED_GROUP_ROOM = 'joinedGroupRoom'
EVENT_LEFT_GROUP_ROOM = 'leftGroupRoom'
EVENT_GROUP_MESSAGE_SENT = 'groupMessageSent'
EVENT_ERROR = 'error'

socketio = SocketIO()
logger = logging.getLogger(__name__)


class SocketConnection:
    """Hub listener that forwards room events to one Socket.IO client."""

    def __init__(self, sid: str, user_id: int, hub):
        self.sid = sid
        self.user_id = user_id
        self.hub = hub
        self.rooms = set()

    def __call__(self, event, payload):
        socketio.emit(event, payload, to=self.sid, namespace=CHAT_NAMESPACE)

    def join(self, room: str) -> None:
        self.hub.subscribe(room, self)
        self.rooms.add(room)

    def leave(self, room: str) -> None:
        self.hub.unsubscribe(room, self)
        self.rooms.discard(room)

    def close(self) -> None:
        for room in list(self.rooms):
            self.leave(room)


def init_chat_socket(app):
    """Attach Socket.IO to the app; CORS origins come from SOCKETIO_CORS_ORIGINS."""
    origins = os.environ.get('SOCKETIO_CORS_ORIGINS')
    app.extensions['chat_connections'] = {}
    socketio.init_app(
        app,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
        cors_allowed_origins=origins.split(',') if origins else None,
    )


def _connections() -> dict:
    return current_app.extensions['chat_connections']


def _connection() -> SocketConnection:
    connection = _connections().get(request.sid)
    if connection is None:
        raise PermissionDenied("Socket is not connected to the chat")
    return connection


def _payload(data) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Event data must be a JSON object")
    return data


def _group_id(data: dict) -> int:
    require_fields(data, 'groupId')
    return parse_int(data['groupId'], 'groupId')


@socketio.on('connect', namespace=CHAT_NAMESPACE)
def on_connect(auth=None):
    """Accept logged-in users only and subscribe them to their own room"""
    user_id = session.get('user_id')
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None:
        logger.info("Rejected anonymous chat socket %s", request.sid)
        return False

    connection = SocketConnection(request.sid, user.id, chat_hub())
    _connections()[request.sid] = connection
    room = user_room(user.id)
    connection.join(room)
    logger.info("User %s connected to chat (%s)", user.id, request.sid)
    emit(EVENT_JOINED_ROOM, {'roomId': room, 'userId': user.id})


@socketio.on('disconnect', namespace=CHAT_NAMESPACE)
def on_disconnect(reason=None):
    connection = _connections().pop(request.sid, None)
    if connection is not None:
        connection.close()
        logger.info("User %s disconnected from chat (%s)", connection.user_id, request.sid)


@socketio.on('joinRoom', namespace=CHAT_NAMESPACE)
def join_user_room(data=None):
    """Re-announce the personal room; the user always comes from the session"""
    connection = _connection()
    room = user_room(connection.user_id)
    connection.join(room)
    payload = {'roomId': room, 'userId': connection.user_id}
    emit(EVENT_JOINED_ROOM, payload)
    return payload


@socketio.on('sendMessage', namespace=CHAT_NAMESPACE)
def send_message(data=None):
    return deliver_direct_message(_connection().user_id, _payload(data))


@socketio.on('joinGroupRoom', namespace=CHAT_NAMESPACE)
def join_group_room(data=None):
    connection = _connection()
    group_id = _group_id(_payload(data))
    if not is_group_member(group_id, connection.user_id):
        raise PermissionDenied(f"User {connection.user_id} is not a member of group {group_id}")

    room = group_room(group_id)
    connection.join(room)
    payload = {'roomId': room, 'groupId': group_id}
    emit(EVENT_JOINED_GROUP_ROOM, payload)
    return payload


@socketio.on('leaveGroupRoom', namespace=CHAT_NAMESPACE)
def leave_group_room(data=None):
    connection = _connection()
    group_id = _group_id(_payload(data))
    room = group_room(group_id)
    connection.leave(room)
    payload = {'roomId': room, 'groupId': group_id}
    emit(EVENT_LEFT_GROUP_ROOM, payload)
    return payload


@socketio.on('sendGroupMessage', namespace=CHAT_NAMESPACE)
def send_group_message(data=None):
    connection = _connection()
    data = _payload(data)
    payload = deliver_group_message(_group_id(data), connection.user_id, data)
    emit(EVENT_GROUP_MESSAGE_SENT, payload)
    return payload


@socketio.on('deleteMessage', namespace=CHAT_NAMESPACE)
def delete_message(data=None):
    connection = _connection()
    data = _payload(data)
    require_fields(data, 'messageId')
    return retract_direct_message(parse_int(data['messageId'], 'messageId'), connection.user_id)


@socketio.on('deleteGroupMessage', namespace=CHAT_NAMESPACE)
def delete_group_message(data=None):
    connection = _connection()
    data = _payload(data)
    require_fields(data, 'messageId')
    return retract_group_message(parse_int(data['messageId'], 'messageId'), connection.user_id)


@socketio.on_error(CHAT_NAMESPACE)
def handle_socket_error(error):
    """Report a failed event to its sender as ``error`` and as the ack"""
    db.session.rollback()
    if isinstance(error, ApiError):
        payload = error.to_dict()
        logger.info("Chat event from %s rejected (%s): %s", request.sid, error.status_code, error.message)
    else:
        payload = {'error': 'internal_error', 'message': 'Failed to process chat event'}
        logger.exception("Chat event from %s failed", request.sid)
    emit(EVENT_ERROR, payload)
    return payload
