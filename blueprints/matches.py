from flask import Blueprint, jsonify, request, g
import logging

from errors import ConflictError, PermissionDenied, ValidationError
from models import (
    db,
    Coupe,
    Match,
    MatchEvent,
    Team,
    User,
    ROLE_OWNER,
    ROLE_REFEREE,
    MATCH_FINISHED,
    MATCH_SCHEDULED,
    MATCH_STATUSES,
    MATCH_SLOTS,
    EVENT_KINDS,
    PLAYER_EVENT_KINDS,
    EVENT_GOAL,
    EVENT_YELLOW_CARD,
    EVENT_RED_CARD,
)
from blueprints.auth import login_required, roles_required
from blueprints.common import (
    json_body,
    require_fields,
    get_or_404,
    parse_int,
    parse_optional_int,
    parse_datetime,
    parse_choice,
)
from services.repositories import SqlMatchRepository, SqlTeamRepository, SqlCoupeRepository
from services.results import apply_match_update, parse_score

matches_bp = Blueprint('matches', __name__, url_prefix='/matches')
logger = logging.getLogger(__name__)

# wire name -> Match attribute
WIRE_FIELDS = {
    'coupe': 'coupe_id',
    'id_equipe1': 'team1_id',
    'id_equipe2': 'team2_id',
    'id_arbitre': 'referee_id',
    'venue': 'venue',
    'date': 'scheduled_at',
    'round': 'round_number',
    'statut': 'status',
    'score_eq1': 'team1_score',
    'score_eq2': 'team2_score',
}
REFEREE_FIELDS = ('statut', 'score_eq1', 'score_eq2')
CARD_COLORS = {'yellow': EVENT_YELLOW_CARD, 'red': EVENT_RED_CARD}


def _parse_match_fields(data: dict) -> dict:
    """Translate a wire payload into validated Match attributes."""
    unknown = sorted(set(data) - set(WIRE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown match fields: {', '.join(unknown)}")

    fields = {}
    for wire, attr in WIRE_FIELDS.items():
        if wire not in data:
            continue
        value = data[wire]
        if attr in ('team1_id', 'team2_id'):
            value = parse_optional_int(value, wire)
            if value is not None:
                get_or_404(Team, value, 'Team')
        elif attr == 'coupe_id':
            value = parse_optional_int(value, wire)
            if value is not None:
                get_or_404(Coupe, value, 'Coupe')
        elif attr == 'referee_id':
            value = parse_optional_int(value, wire)
            if value is not None and get_or_404(User, value, 'Referee').role != ROLE_REFEREE:
                raise ValidationError(f"User {value} is not a referee")
        elif attr == 'scheduled_at':
            value = parse_datetime(value, wire) if value else None
        elif attr == 'round_number':
            value = parse_int(value, wire, minimum=1)
        elif attr == 'status':
            value = parse_choice(value, wire, MATCH_STATUSES)
        elif attr in ('team1_score', 'team2_score'):
            value = None if value is None else parse_score(value, wire)
        fields[attr] = value
    return fields


def _check_distinct_teams(team1_id, team2_id) -> None:
    if team1_id is not None and team1_id == team2_id:
        raise ValidationError("A team cannot play against itself")


@matches_bp.route('', methods=['POST'])
@roles_required(ROLE_OWNER)
def create_match():
    data = json_body()
    require_fields(data, 'id_equipe1', 'id_equipe2')
    fields = _parse_match_fields(data)
    _check_distinct_teams(fields['team1_id'], fields['team2_id'])
    if fields.get('status') == MATCH_FINISHED:
        raise ValidationError("Create the match first, then finish it with its scores")
    fields.setdefault('status', MATCH_SCHEDULED)

    match = SqlMatchRepository().create(**fields)
    db.session.commit()
    logger.info("Match %s created: %s vs %s", match.id, match.team1_id, match.team2_id)
    return jsonify(match.to_dict()), 201


@matches_bp.route('', methods=['GET'])
@login_required
def list_matches():
    query = Match.query
    coupe_id = request.args.get('coupe')
    if coupe_id:
        query = query.filter(Match.coupe_id == parse_int(coupe_id, 'coupe'))
    status = request.args.get('statut')
    if status:
        query = query.filter(Match.status == parse_choice(status, 'statut', MATCH_STATUSES))
    team_id = request.args.get('equipe')
    if team_id:
        team_id = parse_int(team_id, 'equipe')
        query = query.filter((Match.team1_id == team_id) | (Match.team2_id == team_id))

    matches = query.order_by(Match.round_number.asc(), Match.id.asc()).all()
    return jsonify([match.to_dict() for match in matches])


@matches_bp.route('/<int:match_id>', methods=['GET'])
@login_required
def get_match(match_id):
    match = get_or_404(Match, match_id, 'Match')
    return jsonify(match.to_dict(resolve_teams=request.args.get('resolve') in ('1', 'true')))


@matches_bp.route('/<int:match_id>', methods=['PATCH'])
@roles_required(ROLE_OWNER, ROLE_REFEREE)
def update_match(match_id):
    """Update a match; moving it to TERMINE records both teams' results and advances the winner"""
    match = get_or_404(Match, match_id, 'Match')
    data = json_body()
    actor = g.current_user

    if actor.role == ROLE_REFEREE:
        forbidden = sorted(set(data) - set(REFEREE_FIELDS))
        if forbidden:
            raise PermissionDenied(f"Referees can only update: {', '.join(REFEREE_FIELDS)}")
        if match.referee_id is not None and match.referee_id != actor.id:
            raise PermissionDenied("You are not the referee of this match")

    changes = _parse_match_fields(data)
    _check_distinct_teams(
        changes.get('team1_id', match.team1_id),
        changes.get('team2_id', match.team2_id),
    )

    outcome = apply_match_update(
        match_id,
        changes,
        matches=SqlMatchRepository(),
        teams=SqlTeamRepository(),
        coupes=SqlCoupeRepository(),
    )
    db.session.commit()
    return jsonify(outcome.match.to_dict())


@matches_bp.route('/<int:match_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER)
def delete_match(match_id):
    match = get_or_404(Match, match_id, 'Match')
    if match.coupe is not None and match.coupe.is_bracket_generated:
        raise ConflictError("Match belongs to a generated bracket and cannot be deleted")
    Match.query.filter_by(next_match_id=match.id).update(
        {'next_match_id': None, 'position_in_next_match': None},
        synchronize_session=False,
    )
    db.session.delete(match)
    db.session.commit()
    logger.info("Match %s deleted", match_id)
    return jsonify({'message': 'Match deleted'})


# Events

@matches_bp.route('/<int:match_id>/events', methods=['POST'])
@roles_required(ROLE_OWNER, ROLE_REFEREE)
def record_event(match_id):
    """Record a goal, assist, card, offside, corner or penalty for one side"""
    match = get_or_404(Match, match_id, 'Match')
    data = json_body()
    require_fields(data, 'kind', 'side')
    kind = parse_choice(data['kind'], 'kind', EVENT_KINDS)
    side = parse_choice(data['side'], 'side', MATCH_SLOTS)

    team = match.team_for(side)
    if team is None:
        raise ValidationError(f"No team is set for side {side} yet")

    player_id = None
    if kind in PLAYER_EVENT_KINDS:
        require_fields(data, 'player_id')
        player_id = parse_int(data['player_id'], 'player_id')
        if team.membership(player_id) is None:
            raise ValidationError(f"Player {player_id} does not play for {team.name}")

    event = MatchEvent(match_id=match.id, kind=kind, side=side, player_id=player_id)
    db.session.add(event)
    db.session.commit()
    return jsonify(event.to_dict()), 201


@matches_bp.route('/<int:match_id>/events', methods=['GET'])
@login_required
def list_events(match_id):
    match = get_or_404(Match, match_id, 'Match')
    return jsonify([event.to_dict() for event in match.events])


@matches_bp.route('/<int:match_id>/events/<int:event_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER, ROLE_REFEREE)
def delete_event(match_id, event_id):
    event = get_or_404(MatchEvent, event_id, 'Event')
    if event.match_id != match_id:
        raise ValidationError("Event does not belong to this match")
    db.session.delete(event)
    db.session.commit()
    return jsonify({'message': 'Event deleted'})


@matches_bp.route('/<int:match_id>/scorers', methods=['GET'])
@login_required
def list_scorers(match_id):
    match = get_or_404(Match, match_id, 'Match')
    return jsonify({
        side: [
            {'player': player_id, 'goals': len([
                e for e in match.events
                if e.kind == EVENT_GOAL and e.side == side and e.player_id == player_id
            ])}
            for player_id in match.player_ids_for(EVENT_GOAL, side=side)
        ]
        for side in MATCH_SLOTS
    })


@matches_bp.route('/<int:match_id>/cards', methods=['GET'])
@login_required
def list_cards(match_id):
    """Players carded in the match; ``color`` is yellow or red"""
    match = get_or_404(Match, match_id, 'Match')
    color = parse_choice(request.args.get('color'), 'color', tuple(CARD_COLORS))
    return jsonify({
        'color': color,
        'players': match.player_ids_for(CARD_COLORS[color]),
    })
