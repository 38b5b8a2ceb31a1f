from flask import Blueprint, jsonify, request, g
from sqlalchemy import or_
import logging

from errors import ConflictError, PermissionDenied, ValidationError
from models import db, AcademyStaff, Team, User, Notification, ROLE_OWNER, USER_ROLES
from blueprints.auth import login_required, check_user_uniqueness
from blueprints.common import json_body, get_or_404, parse_int, parse_choice, text_field
from services.profile_stats import profile_stats

users_bp = Blueprint('users', __name__, url_prefix='/users')
logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('first_name', 'last_name', 'email', 'phone_number', 'picture')


@users_bp.route('', methods=['GET'])
@login_required
def list_users():
    """List accounts, optionally filtered by role and a name/email search"""
    query = User.query
    role = request.args.get('role')
    if role:
        query = query.filter(User.role == parse_choice(role, 'role', USER_ROLES))

    term = (request.args.get('q') or '').strip()
    if term:
        like_term = f"%{term}%"
        query = query.filter(
            or_(
                User.first_name.ilike(like_term),
                User.last_name.ilike(like_term),
                User.email.ilike(like_term),
            )
        )

    users = query.order_by(User.last_name.asc(), User.first_name.asc()).all()
    return jsonify([user.to_dict() for user in users])


@users_bp.route('/<int:user_id>', methods=['GET'])
@login_required
def get_user(user_id):
    return jsonify(get_or_404(User, user_id, 'User').to_dict())


@users_bp.route('/<int:user_id>/profile-stats', methods=['GET'])
@login_required
def get_profile_stats(user_id):
    """Role-specific activity summary: record, goals, matches refereed or coached"""
    return jsonify(profile_stats(get_or_404(User, user_id, 'User')))


@users_bp.route('/names', methods=['POST'])
@login_required
def resolve_names():
    """Display names for team and user ids; unknown ids are left out.

    A team resolves to its academy owner's name, falling back to the team name.
    """
    data = json_body()
    team_ids = data.get('teamIds') or []
    user_ids = data.get('userIds') or []
    if not isinstance(team_ids, list) or not isinstance(user_ids, list):
        raise ValidationError("teamIds and userIds must be lists")

    teams = {}
    for raw_id in team_ids:
        team = db.session.get(Team, parse_int(raw_id, 'teamIds'))
        if team is not None:
            owner_name = team.academy.full_name if team.academy else ''
            teams[str(team.id)] = owner_name or team.name

    users = {}
    for raw_id in user_ids:
        user = db.session.get(User, parse_int(raw_id, 'userIds'))
        if user is not None:
            users[str(user.id)] = user.full_name
    return jsonify({'teams': teams, 'users': users})


@users_bp.route('/<int:user_id>', methods=['PATCH'])
@login_required
def update_user(user_id):
    """Users edit their own profile; owners may edit anyone, role included"""
    user = get_or_404(User, user_id, 'User')
    actor = g.current_user
    if actor.id != user.id and actor.role != ROLE_OWNER:
        raise PermissionDenied("You can only update your own profile")

    data = json_body()
    if 'role' in data and actor.role != ROLE_OWNER:
        raise PermissionDenied("Only owners can change roles")

    values = {
        field: text_field(data, field) if field in data else getattr(user, field)
        for field in EDITABLE_FIELDS
    }
    role = data.get('role', user.role)
    password = text_field(data, 'password', strip=False)

    errors = User.validate_format(
        values['first_name'],
        values['last_name'],
        values['email'],
        password,
        role,
        values['phone_number'],
    )
    if errors:
        raise ValidationError(errors=errors)
    if values['email'] != user.email:
        uniqueness_errors = check_user_uniqueness(values['email'], exclude_user_id=user.id)
        if uniqueness_errors:
            raise ConflictError('; '.join(uniqueness_errors))

    for field, value in values.items():
        setattr(user, field, value)
    user.role = role
    if password:
        user.set_password(password)
    db.session.commit()
    return jsonify(user.to_dict())


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@login_required
def delete_user(user_id):
    user = get_or_404(User, user_id, 'User')
    if g.current_user.id != user.id:
        raise PermissionDenied("You can only delete your own account")

    AcademyStaff.query.filter(
        or_(AcademyStaff.academy_id == user.id, AcademyStaff.user_id == user.id)
    ).delete(synchronize_session=False)
    db.session.delete(user)
    db.session.commit()
    logger.info("User %s deleted their account", user_id)
    return jsonify({'message': 'Account deleted'})


@users_bp.route('/me/notifications', methods=['GET'])
@login_required
def list_notifications():
    query = Notification.query.filter_by(user_id=g.current_user.id)
    if request.args.get('unread') in ('1', 'true'):
        query = query.filter_by(is_read=False)
    notifications = query.order_by(Notification.id.desc()).all()
    return jsonify([note.to_dict() for note in notifications])


@users_bp.route('/me/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    note = get_or_404(Notification, notification_id, 'Notification')
    if note.user_id != g.current_user.id:
        raise PermissionDenied("This notification belongs to another user")
    note.is_read = True
    db.session.commit()
    return jsonify(note.to_dict())
