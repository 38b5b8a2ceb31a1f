from flask import Blueprint, jsonify, g
from sqlalchemy import or_, and_
import logging

from errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from models import (
    db,
    current_time,
    ChatGroup,
    GroupMember,
    GroupMessage,
    Message,
    User,
    GROUP_ROLE_ADMIN,
    GROUP_ROLE_MEMBER,
)
from blueprints.auth import login_required
from blueprints.common import json_body, require_fields, get_or_404, parse_int, chat_hub
from services.chat_hub import (
    user_room,
    group_room,
    EVENT_RECEIVE_MESSAGE,
    EVENT_MESSAGE_SENT,
    EVENT_MESSAGE_DELETED,
    EVENT_RECEIVE_GROUP_MESSAGE,
    EVENT_GROUP_MESSAGE_DELETED,
)

chat_bp = Blueprint('chat', __name__, url_prefix='/chat')
logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def _message_text(data: dict) -> str:
    require_fields(data, 'message')
    text = str(data['message']).strip()
    if not text:
        raise ValidationError("message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"message cannot exceed {MAX_MESSAGE_LENGTH} characters")
    return text


def _conversation_query(user_id: int, other_id: int):
    return Message.query.filter(
        Message.is_deleted.is_(False),
        or_(
            and_(Message.sender_id == user_id, Message.receiver_id == other_id),
            and_(Message.sender_id == other_id, Message.receiver_id == user_id),
        ),
    )


def _membership(group_id: int, user_id: int) -> GroupMember | None:
    return GroupMember.query.filter_by(group_id=group_id, user_id=user_id).first()


def _member_group(group_id: int) -> ChatGroup:
    group = get_or_404(ChatGroup, group_id, 'Group')
    if _membership(group.id, g.current_user.id) is None:
        raise PermissionDenied("You are not a member of this group")
    return group


def _admin_group(group_id: int) -> ChatGroup:
    group = get_or_404(ChatGroup, group_id, 'Group')
    member = _membership(group.id, g.current_user.id)
    if member is None or member.role != GROUP_ROLE_ADMIN:
        raise PermissionDenied("Only group admins can manage members")
    return group


def _live_group_messages(group_id: int):
    return GroupMessage.query.filter(
        GroupMessage.group_id == group_id,
        GroupMessage.is_deleted.is_(False),
    )


def _group_unread_count(group_id: int, user_id: int) -> int:
    messages = _live_group_messages(group_id).filter(GroupMessage.sender_id != user_id).all()
    return len([m for m in messages if not m.is_read_by(user_id)])


def deliver_direct_message(sender_id: int, data: dict) -> dict:
    """Persist a direct message, then push it to both users' rooms"""
    require_fields(data, 'receiverId')
    receiver = get_or_404(User, parse_int(data['receiverId'], 'receiverId'), 'User')
    if receiver.id == sender_id:
        raise ValidationError("You cannot message yourself")

    message = Message(sender_id=sender_id, receiver_id=receiver.id, body=_message_text(data))
    db.session.add(message)
    db.session.commit()

    payload = message.to_dict()
    hub = chat_hub()
    hub.broadcast(user_room(receiver.id), EVENT_RECEIVE_MESSAGE, payload)
    hub.broadcast(user_room(sender_id), EVENT_MESSAGE_SENT, payload)
    return payload


def deliver_group_message(group_id: int, sender_id: int, data: dict) -> dict:
    """Persist a group message from a member and push it to the group room"""
    group = get_or_404(ChatGroup, group_id, 'Group')
    if _membership(group.id, sender_id) is None:
        raise PermissionDenied("You are not a member of this group")
    message = GroupMessage(
        group_id=group.id,
        sender_id=sender_id,
        body=_message_text(data),
        read_by=[sender_id],
    )
    db.session.add(message)
    db.session.commit()

    payload = message.to_dict()
    chat_hub().broadcast(group_room(group.id), EVENT_RECEIVE_GROUP_MESSAGE, payload)
    return payload


def retract_direct_message(message_id: int, user_id: int) -> dict:
    """Soft-delete the user's own direct message and tell both rooms"""
    message = get_or_404(Message, message_id, 'Message')
    if message.sender_id != user_id:
        raise PermissionDenied("You can only delete your own messages")
    if message.is_deleted:
        raise NotFoundError(f"Message {message_id} not found")

    message.is_deleted = True
    message.deleted_at = current_time()
    db.session.commit()

    payload = {'messageId': message.id}
    hub = chat_hub()
    hub.broadcast(user_room(message.receiver_id), EVENT_MESSAGE_DELETED, payload)
    hub.broadcast(user_room(message.sender_id), EVENT_MESSAGE_DELETED, payload)
    return payload


def retract_group_message(message_id: int, user_id: int, group_id: int | None = None) -> dict:
    """Soft-delete the user's own group message and tell the group room"""
    message = get_or_404(GroupMessage, message_id, 'Message')
    if message.is_deleted or (group_id is not None and message.group_id != group_id):
        raise NotFoundError(f"Message {message_id} not found")
    if message.sender_id != user_id:
        raise PermissionDenied("You can only delete your own messages")

    message.is_deleted = True
    message.deleted_at = current_time()
    db.session.commit()

    payload = {'messageId': message.id, 'groupId': message.group_id}
    chat_hub().broadcast(group_room(message.group_id), EVENT_GROUP_MESSAGE_DELETED, payload)
    return payload


def is_group_member(group_id: int, user_id: int) -> bool:
    return _membership(group_id, user_id) is not None


# Direct messages

@chat_bp.route('/messages', methods=['POST'])
@login_required
def send_message():
    return jsonify(deliver_direct_message(g.current_user.id, json_body())), 201


@chat_bp.route('/conversations', methods=['GET'])
@login_required
def list_conversations():
    """One entry per partner with the last message and unread count, newest first"""
    me = g.current_user.id
    messages = (
        Message.query.filter(
            Message.is_deleted.is_(False),
            or_(Message.sender_id == me, Message.receiver_id == me),
        )
        .order_by(Message.id.asc())
        .all()
    )

    conversations: dict[int, dict] = {}
    for message in messages:
        partner_id = message.receiver_id if message.sender_id == me else message.sender_id
        entry = conversations.setdefault(partner_id, {'lastMessage': None, 'unreadCount': 0})
        entry['lastMessage'] = message
        if message.receiver_id == me and not message.is_read:
            entry['unreadCount'] += 1

    partners = {u.id: u for u in User.query.filter(User.id.in_(list(conversations))).all()}
    ordered = sorted(conversations.items(), key=lambda item: item[1]['lastMessage'].id, reverse=True)
    return jsonify([
        {
            'partner': partners[partner_id].summary() if partner_id in partners else {'id': partner_id},
            'lastMessage': entry['lastMessage'].to_dict(),
            'unreadCount': entry['unreadCount'],
        }
        for partner_id, entry in ordered
    ])


@chat_bp.route('/conversations/<int:other_id>', methods=['GET'])
@login_required
def get_conversation(other_id):
    get_or_404(User, other_id, 'User')
    messages = _conversation_query(g.current_user.id, other_id).order_by(Message.id.asc()).all()
    return jsonify([message.to_dict() for message in messages])


@chat_bp.route('/conversations/<int:other_id>/last', methods=['GET'])
@login_required
def get_last_message(other_id):
    message = _conversation_query(g.current_user.id, other_id).order_by(Message.id.desc()).first()
    return jsonify(message.to_dict() if message else None)


@chat_bp.route('/conversations/<int:other_id>/read', methods=['POST'])
@login_required
def mark_conversation_read(other_id):
    updated = Message.query.filter(
        Message.sender_id == other_id,
        Message.receiver_id == g.current_user.id,
        Message.is_read.is_(False),
        Message.is_deleted.is_(False),
    ).update({'is_read': True}, synchronize_session=False)
    db.session.commit()
    return jsonify({'updated': updated})


@chat_bp.route('/unread-count', methods=['GET'])
@login_required
def unread_count():
    count = Message.query.filter(
        Message.receiver_id == g.current_user.id,
        Message.is_read.is_(False),
        Message.is_deleted.is_(False),
    ).count()
    return jsonify({'count': count})


@chat_bp.route('/messages/<int:message_id>', methods=['DELETE'])
@login_required
def delete_message(message_id):
    retract_direct_message(message_id, g.current_user.id)
    return jsonify({'message': 'Message deleted'})


# Groups

@chat_bp.route('/groups', methods=['POST'])
@login_required
def create_group():
    """Create a group; the creator joins as admin"""
    data = json_body()
    require_fields(data, 'name')
    group = ChatGroup(
        name=str(data['name']).strip(),
        description=data.get('description'),
        avatar=data.get('avatar'),
        creator_id=g.current_user.id,
    )
    group.members.append(GroupMember(user_id=g.current_user.id, role=GROUP_ROLE_ADMIN))

    seen = {g.current_user.id}
    for raw in data.get('memberIds') or []:
        user = get_or_404(User, parse_int(raw, 'memberIds'), 'User')
        if user.id in seen:
            continue
        seen.add(user.id)
        group.members.append(GroupMember(user_id=user.id, role=GROUP_ROLE_MEMBER))

    db.session.add(group)
    db.session.commit()
    logger.info("Group %s created by %s with %d members", group.id, group.creator_id, len(group.members))
    return jsonify({**group.to_dict(), 'memberCount': len(group.members)}), 201


@chat_bp.route('/groups', methods=['GET'])
@login_required
def list_groups():
    me = g.current_user.id
    groups = (
        ChatGroup.query.join(GroupMember, GroupMember.group_id == ChatGroup.id)
        .filter(GroupMember.user_id == me)
        .order_by(ChatGroup.id.asc())
        .all()
    )
    result = []
    for group in groups:
        last = _live_group_messages(group.id).order_by(GroupMessage.id.desc()).first()
        result.append({
            **group.to_dict(),
            'memberCount': len(group.members),
            'lastMessage': last.to_dict() if last else None,
            'unreadCount': _group_unread_count(group.id, me),
        })
    return jsonify(result)


@chat_bp.route('/groups/<int:group_id>', methods=['GET'])
@login_required
def get_group(group_id):
    group = _member_group(group_id)
    return jsonify({**group.to_dict(), 'memberCount': len(group.members)})


@chat_bp.route('/groups/<int:group_id>/members', methods=['GET'])
@login_required
def list_group_members(group_id):
    group = _member_group(group_id)
    return jsonify([member.to_dict() for member in group.members])


@chat_bp.route('/groups/<int:group_id>/members', methods=['POST'])
@login_required
def add_group_member(group_id):
    group = _admin_group(group_id)
    data = json_body()
    require_fields(data, 'userId')
    user = get_or_404(User, parse_int(data['userId'], 'userId'), 'User')
    if _membership(group.id, user.id) is not None:
        raise ConflictError("User is already a member of this group")

    member = GroupMember(group_id=group.id, user_id=user.id, role=GROUP_ROLE_MEMBER)
    db.session.add(member)
    db.session.commit()
    return jsonify(member.to_dict()), 201


@chat_bp.route('/groups/<int:group_id>/members/<int:user_id>', methods=['DELETE'])
@login_required
def remove_group_member(group_id, user_id):
    """Admins remove anyone; members may remove themselves"""
    if user_id == g.current_user.id:
        group = _member_group(group_id)
    else:
        group = _admin_group(group_id)
    member = _membership(group.id, user_id)
    if member is None:
        raise NotFoundError("User is not a member of this group")

    db.session.delete(member)
    db.session.commit()
    return jsonify({'message': 'Member removed'})


@chat_bp.route('/groups/<int:group_id>/messages', methods=['POST'])
@login_required
def send_group_message(group_id):
    return jsonify(deliver_group_message(group_id, g.current_user.id, json_body())), 201


@chat_bp.route('/groups/<int:group_id>/messages', methods=['GET'])
@login_required
def list_group_messages(group_id):
    group = _member_group(group_id)
    messages = _live_group_messages(group.id).order_by(GroupMessage.id.asc()).all()
    return jsonify([message.to_dict() for message in messages])


@chat_bp.route('/groups/<int:group_id>/read', methods=['POST'])
@login_required
def mark_group_read(group_id):
    group = _member_group(group_id)
    updated = 0
    for message in _live_group_messages(group.id).all():
        if message.mark_read_by(g.current_user.id):
            updated += 1
    db.session.commit()
    return jsonify({'updated': updated})


@chat_bp.route('/groups/<int:group_id>/messages/<int:message_id>', methods=['DELETE'])
@login_required
def delete_group_message(group_id, message_id):
    retract_group_message(message_id, g.current_user.id, group_id=group_id)
    return jsonify({'message': 'Message deleted'})
