from flask import Blueprint, jsonify, request, g
from datetime import datetime
import logging

from errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from models import (
    db,
    Coupe,
    CoupeParticipant,
    Team,
    User,
    ROLE_OWNER,
    ROLE_REFEREE,
    COUPE_CATEGORIES,
    COUPE_TYPES,
)
from blueprints.auth import login_required, roles_required
from blueprints.common import (
    json_body,
    require_fields,
    get_or_404,
    parse_int,
    parse_optional_int,
    parse_date,
    parse_choice,
)
from services.bracket import generate_bracket
from services.repositories import SqlCoupeRepository, SqlMatchRepository

coupes_bp = Blueprint('coupes', __name__, url_prefix='/coupes')
logger = logging.getLogger(__name__)


def _organized_coupe(coupe_id: int) -> Coupe:
    coupe = get_or_404(Coupe, coupe_id, 'Coupe')
    if coupe.organizer_id != g.current_user.id:
        raise PermissionDenied("Only the organizer can manage this coupe")
    return coupe


def _parse_money(value, field: str) -> float | None:
    if value in (None, ''):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number") from None
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount


def _parse_time(value) -> str | None:
    if value in (None, ''):
        return None
    try:
        return datetime.strptime(str(value), '%H:%M').strftime('%H:%M')
    except ValueError:
        raise ValidationError("time must be formatted HH:MM") from None


def _parse_referees(value) -> list[int]:
    if value in (None, ''):
        return []
    if not isinstance(value, list):
        value = [value]
    referee_ids = []
    for raw in value:
        referee = get_or_404(User, parse_int(raw, 'referee'), 'Referee')
        if referee.role != ROLE_REFEREE:
            raise ValidationError(f"User {referee.id} is not a referee")
        if referee.id not in referee_ids:
            referee_ids.append(referee.id)
    return referee_ids


def _coupe_fields(data: dict) -> dict:
    """Map the descriptive wire fields present in ``data`` to Coupe attributes."""
    fields = {}
    if 'nom' in data:
        name = str(data['nom'] or '').strip()
        if not name:
            raise ValidationError("nom cannot be empty")
        fields['name'] = name
    if 'date_debut' in data:
        fields['start_date'] = parse_date(data['date_debut'], 'date_debut')
    if 'date_fin' in data:
        fields['end_date'] = parse_date(data['date_fin'], 'date_fin')
    if 'categorie' in data:
        fields['category'] = parse_choice(data['categorie'], 'categorie', COUPE_CATEGORIES)
    if 'type' in data:
        fields['coupe_type'] = parse_choice(data['type'], 'type', COUPE_TYPES)
    if 'tournamentName' in data:
        fields['tournament_name'] = data['tournamentName']
    if 'stadium' in data:
        fields['stadium'] = data['stadium']
    if 'date' in data:
        fields['kickoff_date'] = parse_date(data['date'], 'date') if data['date'] else None
    if 'time' in data:
        fields['kickoff_time'] = _parse_time(data['time'])
    if 'maxParticipants' in data:
        fields['max_participants'] = parse_optional_int(data['maxParticipants'], 'maxParticipants', minimum=2)
    if 'entryFee' in data:
        fields['entry_fee'] = _parse_money(data['entryFee'], 'entryFee')
    if 'prizePool' in data:
        fields['prize_pool'] = _parse_money(data['prizePool'], 'prizePool')
    if 'referee' in data:
        fields['referee_ids'] = _parse_referees(data['referee'])
    return fields


def _check_dates(start, end) -> None:
    if start and end and end < start:
        raise ValidationError("date_fin must be on or after date_debut")


def _ensure_open_for_entries(coupe: Coupe) -> None:
    if coupe.is_bracket_generated:
        raise ConflictError("Participants cannot change once the bracket is generated")


@coupes_bp.route('', methods=['POST'])
@roles_required(ROLE_OWNER)
def create_coupe():
    """Create a coupe organized by the current owner"""
    data = json_body()
    require_fields(data, 'nom', 'date_debut', 'date_fin', 'categorie')
    fields = _coupe_fields(data)
    _check_dates(fields['start_date'], fields['end_date'])

    participant_ids = []
    for raw in data.get('participants') or []:
        team = get_or_404(Team, parse_int(raw, 'participants'), 'Team')
        if team.id in participant_ids:
            raise ConflictError(f"Team {team.id} is listed twice")
        participant_ids.append(team.id)
    max_participants = fields.get('max_participants')
    if max_participants and len(participant_ids) > max_participants:
        raise ConflictError("More participants than maxParticipants allows")

    coupe = Coupe(organizer_id=g.current_user.id, **fields)
    coupe.participants = [CoupeParticipant(team_id=team_id) for team_id in participant_ids]
    db.session.add(coupe)
    db.session.commit()

    logger.info("Coupe %s created by %s with %d participants", coupe.id, coupe.organizer_id, len(participant_ids))
    return jsonify(coupe.to_dict()), 201


@coupes_bp.route('', methods=['GET'])
@login_required
def list_coupes():
    query = Coupe.query
    category = request.args.get('categorie')
    if category:
        query = query.filter(Coupe.category == parse_choice(category, 'categorie', COUPE_CATEGORIES))
    coupe_type = request.args.get('type')
    if coupe_type:
        query = query.filter(Coupe.coupe_type == parse_choice(coupe_type, 'type', COUPE_TYPES))

    coupes = query.order_by(Coupe.start_date.asc(), Coupe.id.asc()).all()
    return jsonify([coupe.to_dict() for coupe in coupes])


@coupes_bp.route('/<int:coupe_id>', methods=['GET'])
@login_required
def get_coupe(coupe_id):
    """Coupe with resolved matches and team summaries"""
    return jsonify(get_or_404(Coupe, coupe_id, 'Coupe').to_dict(resolve=True))


@coupes_bp.route('/<int:coupe_id>/bracket', methods=['GET'])
@login_required
def get_bracket(coupe_id):
    coupe = get_or_404(Coupe, coupe_id, 'Coupe')
    rounds: dict[int, list] = {}
    for match in coupe.matches:
        rounds.setdefault(match.round_number, []).append(match.to_dict(resolve_teams=True))
    return jsonify({
        'coupe': coupe.id,
        'isBracketGenerated': bool(coupe.is_bracket_generated),
        'currentRound': coupe.current_round,
        'rounds': [{'round': number, 'matches': rounds[number]} for number in sorted(rounds)],
    })


@coupes_bp.route('/<int:coupe_id>', methods=['PATCH'])
@roles_required(ROLE_OWNER)
def update_coupe(coupe_id):
    coupe = _organized_coupe(coupe_id)
    fields = _coupe_fields(json_body())
    _check_dates(fields.get('start_date', coupe.start_date), fields.get('end_date', coupe.end_date))
    max_participants = fields.get('max_participants')
    if max_participants and max_participants < len(coupe.participants):
        raise ConflictError("maxParticipants cannot be lower than the current number of participants")

    # start_date first so the end_date check sees the new range
    if 'start_date' in fields:
        coupe.start_date = fields.pop('start_date')
    for key, value in fields.items():
        setattr(coupe, key, value)
    db.session.commit()
    return jsonify(coupe.to_dict())


@coupes_bp.route('/<int:coupe_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER)
def delete_coupe(coupe_id):
    coupe = _organized_coupe(coupe_id)
    db.session.delete(coupe)
    db.session.commit()
    logger.info("Coupe %s deleted", coupe_id)
    return jsonify({'message': 'Coupe deleted'})


@coupes_bp.route('/<int:coupe_id>/participants', methods=['POST'])
@roles_required(ROLE_OWNER)
def add_participant(coupe_id):
    coupe = _organized_coupe(coupe_id)
    data = json_body()
    require_fields(data, 'team_id')
    team = get_or_404(Team, parse_int(data['team_id'], 'team_id'), 'Team')

    _ensure_open_for_entries(coupe)
    if team.id in coupe.participant_ids:
        raise ConflictError("Team is already registered in this coupe")
    if coupe.max_participants and len(coupe.participants) >= coupe.max_participants:
        raise ConflictError("This coupe is full")

    coupe.participants.append(CoupeParticipant(team_id=team.id))
    db.session.commit()
    return jsonify(coupe.to_dict()), 201


@coupes_bp.route('/<int:coupe_id>/participants/<int:team_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER)
def remove_participant(coupe_id, team_id):
    coupe = _organized_coupe(coupe_id)
    _ensure_open_for_entries(coupe)
    entry = next((p for p in coupe.participants if p.team_id == team_id), None)
    if entry is None:
        raise NotFoundError("Team is not registered in this coupe")

    coupe.participants.remove(entry)
    db.session.commit()
    return jsonify(coupe.to_dict())


@coupes_bp.route('/<int:coupe_id>/generate-bracket', methods=['POST'])
@roles_required(ROLE_OWNER, ROLE_REFEREE)
def generate_coupe_bracket(coupe_id):
    """Draw the knockout bracket; allowed once, for the organizer or a referee"""
    coupe = get_or_404(Coupe, coupe_id, 'Coupe')
    if g.current_user.role == ROLE_OWNER and coupe.organizer_id != g.current_user.id:
        raise PermissionDenied("Only the organizer can generate this bracket")

    result = generate_bracket(
        coupe_id,
        coupes=SqlCoupeRepository(),
        matches=SqlMatchRepository(),
    )
    db.session.commit()
    return jsonify(result), 201
