from flask import Blueprint, jsonify, request, g
import logging

from errors import PermissionDenied, ValidationError
from models import (
    db,
    Injury,
    Team,
    TeamMember,
    User,
    ROLE_COACH,
    ROLE_OWNER,
    ROLE_PLAYER,
    ROLE_REFEREE,
    INJURY_TYPES,
    INJURY_SEVERITIES,
    MEDICAL_STATUSES,
    MEDICAL_MONITORED,
    MEDICAL_UNAVAILABLE,
)
from blueprints.auth import login_required, roles_required
from blueprints.common import json_body, require_fields, get_or_404, parse_int, parse_choice, parse_datetime

injuries_bp = Blueprint('injuries', __name__, url_prefix='/injuries')
logger = logging.getLogger(__name__)

STAFF_ROLES = (ROLE_OWNER, ROLE_COACH)
MAX_NOTE_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 1000


def _notify_academies(player: User, injury: Injury) -> int:
    """Tell every academy owner with this player on a roster about the injury."""
    owners = (
        User.query.join(Team, Team.academy_id == User.id)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .filter(TeamMember.player_id == player.id)
        .distinct()
        .all()
    )
    for owner in owners:
        owner.notify(
            f"{player.full_name} declared a {injury.severity} {injury.injury_type} injury",
            category='injury',
            context_type='injury',
            context_ref=str(injury.id),
        )
    return len(owners)


def _visible_injury(injury_id: int) -> Injury:
    injury = get_or_404(Injury, injury_id, 'Injury')
    user = g.current_user
    if user.role not in STAFF_ROLES and injury.player_id != user.id:
        raise PermissionDenied("You cannot view this injury")
    return injury


@injuries_bp.route('', methods=['POST'])
@roles_required(ROLE_PLAYER)
def declare_injury():
    """Player declares a new injury; it starts under observation"""
    data = json_body()
    require_fields(data, 'type', 'severity', 'description')
    description = str(data['description']).strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")

    injury = Injury(
        player_id=g.current_user.id,
        injury_type=parse_choice(data['type'], 'type', INJURY_TYPES),
        severity=parse_choice(data['severity'], 'severity', INJURY_SEVERITIES),
        description=description,
        status=MEDICAL_MONITORED,
        recommendations=[],
        evolutions=[],
    )
    if data.get('date'):
        injury.date = parse_datetime(data['date'], 'date')
    db.session.add(injury)
    db.session.flush()

    notified = _notify_academies(g.current_user, injury)
    db.session.commit()
    logger.info("Player %s declared injury %s (%s), %d academies notified",
                injury.player_id, injury.id, injury.severity, notified)
    return jsonify(injury.to_dict()), 201


@injuries_bp.route('/me', methods=['GET'])
@roles_required(ROLE_PLAYER)
def my_injuries():
    injuries = (
        Injury.query.filter_by(player_id=g.current_user.id)
        .order_by(Injury.date.desc(), Injury.id.desc())
        .all()
    )
    return jsonify([injury.to_dict() for injury in injuries])


@injuries_bp.route('', methods=['GET'])
@roles_required(*STAFF_ROLES)
def list_injuries():
    query = Injury.query
    status = request.args.get('status')
    if status:
        query = query.filter(Injury.status == parse_choice(status, 'status', MEDICAL_STATUSES))
    severity = request.args.get('severity')
    if severity:
        query = query.filter(Injury.severity == parse_choice(severity, 'severity', INJURY_SEVERITIES))
    player_id = request.args.get('player')
    if player_id:
        query = query.filter(Injury.player_id == parse_int(player_id, 'player'))

    injuries = query.order_by(Injury.date.desc(), Injury.id.desc()).all()
    return jsonify([injury.to_dict() for injury in injuries])


@injuries_bp.route('/unavailable', methods=['GET'])
@roles_required(ROLE_REFEREE, *STAFF_ROLES)
def unavailable_players():
    """Injuries keeping a player out or under observation"""
    injuries = (
        Injury.query.filter(Injury.status.in_((MEDICAL_UNAVAILABLE, MEDICAL_MONITORED)))
        .order_by(Injury.date.desc(), Injury.id.desc())
        .all()
    )
    return jsonify([
        {**injury.to_dict(), 'player': injury.player.summary() if injury.player else None}
        for injury in injuries
    ])


@injuries_bp.route('/<int:injury_id>', methods=['GET'])
@login_required
def get_injury(injury_id):
    return jsonify(_visible_injury(injury_id).to_dict())


@injuries_bp.route('/<int:injury_id>/evolutions', methods=['POST'])
@roles_required(ROLE_PLAYER)
def add_evolution(injury_id):
    """Player logs how the injury feels today"""
    injury = get_or_404(Injury, injury_id, 'Injury')
    if injury.player_id != g.current_user.id:
        raise PermissionDenied("You can only follow up your own injuries")

    data = json_body()
    require_fields(data, 'painLevel', 'note')
    pain_level = parse_int(data['painLevel'], 'painLevel', minimum=0, maximum=10)
    note = str(data['note']).strip()
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note cannot exceed {MAX_NOTE_LENGTH} characters")

    injury.add_evolution(pain_level, note)
    db.session.commit()
    return jsonify(injury.to_dict()), 201


@injuries_bp.route('/<int:injury_id>/status', methods=['PATCH'])
@roles_required(*STAFF_ROLES)
def update_status(injury_id):
    injury = get_or_404(Injury, injury_id, 'Injury')
    data = json_body()
    require_fields(data, 'status')
    injury.status = parse_choice(data['status'], 'status', MEDICAL_STATUSES)
    db.session.commit()
    logger.info("Injury %s marked %s by %s", injury.id, injury.status, g.current_user.id)
    return jsonify(injury.to_dict())


@injuries_bp.route('/<int:injury_id>/recommendations', methods=['POST'])
@roles_required(*STAFF_ROLES)
def add_recommendation(injury_id):
    injury = get_or_404(Injury, injury_id, 'Injury')
    data = json_body()
    require_fields(data, 'recommendation')
    injury.add_recommendation(str(data['recommendation']).strip())
    db.session.commit()
    return jsonify(injury.to_dict()), 201
