from flask import Blueprint, jsonify, request, g
from sqlalchemy import or_
import logging

from errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from models import (
    db,
    Coupe,
    CoupeParticipant,
    Match,
    Team,
    TeamMember,
    User,
    ROLE_OWNER,
    ROLE_PLAYER,
    TEAM_CATEGORIES,
    LINEUP_STARTER,
    LINEUP_SUBSTITUTE,
)
from blueprints.auth import login_required, roles_required
from blueprints.common import json_body, require_fields, get_or_404, parse_int, parse_choice

equipes_bp = Blueprint('equipes', __name__, url_prefix='/equipes')
logger = logging.getLogger(__name__)

STARTERS_TARGET = 8
SUBSTITUTES_TARGET = 4
JERSEY_MIN = 1
JERSEY_MAX = 99


def _owned_team(team_id: int) -> Team:
    """Load a team the current user runs as academy owner."""
    team = get_or_404(Team, team_id, 'Team')
    if team.academy_id != g.current_user.id:
        raise PermissionDenied("Only the academy owner can manage this team")
    return team


def _member_or_error(team: Team, player_id: int) -> TeamMember:
    member = team.membership(player_id)
    if member is None:
        raise ValidationError(f"Player {player_id} is not a member of this team")
    return member


def _player_id(data: dict, field: str = 'player_id') -> int:
    require_fields(data, field)
    return parse_int(data[field], field)


@equipes_bp.route('', methods=['POST'])
@roles_required(ROLE_OWNER)
def create_team():
    """Create a team for the current owner's academy"""
    data = json_body()
    require_fields(data, 'nom', 'categorie')
    name = str(data['nom']).strip()
    if not name:
        raise ValidationError("nom is required")

    team = Team(
        academy_id=g.current_user.id,
        name=name,
        category=parse_choice(data['categorie'], 'categorie', TEAM_CATEGORIES),
        logo=data.get('logo'),
        description=data.get('description'),
        is_active=bool(data.get('is_active', True)),
    )
    db.session.add(team)

    for player_id in data.get('members') or []:
        player = get_or_404(User, parse_int(player_id, 'members'), 'Player')
        if player.role != ROLE_PLAYER:
            raise ValidationError(f"User {player.id} is not a player")
        if team.membership(player.id) is None:
            team.members.append(TeamMember(player_id=player.id))

    db.session.commit()
    logger.info("Team %s (%s) created by academy %s", team.id, team.category, team.academy_id)
    return jsonify(team.to_dict()), 201


@equipes_bp.route('', methods=['GET'])
@login_required
def list_teams():
    query = Team.query
    academy_id = request.args.get('academy')
    if academy_id:
        query = query.filter(Team.academy_id == parse_int(academy_id, 'academy'))
    category = request.args.get('categorie')
    if category:
        query = query.filter(Team.category == parse_choice(category, 'categorie', TEAM_CATEGORIES))
    if request.args.get('active') in ('1', 'true'):
        query = query.filter(Team.is_active.is_(True))

    teams = query.order_by(Team.name.asc()).all()
    return jsonify([team.to_dict() for team in teams])


@equipes_bp.route('/academy/<int:academy_id>', methods=['GET'])
@login_required
def list_academy_teams(academy_id):
    get_or_404(User, academy_id, 'Academy')
    teams = Team.query.filter_by(academy_id=academy_id).order_by(Team.category.asc()).all()
    return jsonify([team.to_dict() for team in teams])


@equipes_bp.route('/<int:team_id>', methods=['GET'])
@login_required
def get_team(team_id):
    return jsonify(get_or_404(Team, team_id, 'Team').to_dict())


@equipes_bp.route('/<int:team_id>/stats', methods=['GET'])
@login_required
def get_team_stats(team_id):
    team = get_or_404(Team, team_id, 'Team')
    return jsonify({'id': team.id, 'nom': team.name, **team.stats_dict()})


@equipes_bp.route('/<int:team_id>', methods=['PATCH'])
@roles_required(ROLE_OWNER)
def update_team(team_id):
    team = _owned_team(team_id)
    data = json_body()

    if 'nom' in data:
        name = str(data['nom'] or '').strip()
        if not name:
            raise ValidationError("nom cannot be empty")
        team.name = name
    if 'categorie' in data:
        team.category = parse_choice(data['categorie'], 'categorie', TEAM_CATEGORIES)
    for key, attr in (('logo', 'logo'), ('description', 'description')):
        if key in data:
            setattr(team, attr, data[key])
    if 'is_active' in data:
        team.is_active = bool(data['is_active'])

    db.session.commit()
    return jsonify(team.to_dict())


@equipes_bp.route('/<int:team_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER)
def delete_team(team_id):
    """Delete a team that no coupe or match refers to"""
    team = _owned_team(team_id)
    if CoupeParticipant.query.filter_by(team_id=team.id).first() is not None:
        raise ConflictError("Team is registered in a coupe; remove it from the coupe first")
    if Match.query.filter(or_(Match.team1_id == team.id, Match.team2_id == team.id)).first() is not None:
        raise ConflictError("Team has matches and cannot be deleted")
    if Coupe.query.filter_by(winner_id=team.id).first() is not None:
        raise ConflictError("Team has won a coupe and cannot be deleted")
    db.session.delete(team)
    db.session.commit()
    logger.info("Team %s deleted", team_id)
    return jsonify({'message': 'Team deleted'})


# Roster

@equipes_bp.route('/<int:team_id>/members', methods=['GET'])
@login_required
def list_members(team_id):
    """Roster in join order; ``role`` narrows to starters or substitutes, ``q`` searches names"""
    team = get_or_404(Team, team_id, 'Team')
    members = list(team.members)

    role = request.args.get('role')
    if role:
        role = parse_choice(role, 'role', (LINEUP_STARTER, LINEUP_SUBSTITUTE))
        members = [m for m in members if m.lineup_role == role]

    term = (request.args.get('q') or '').strip()
    if term:
        like_term = f"%{term}%"
        matching_ids = {
            user_id
            for (user_id,) in db.session.query(User.id).filter(
                User.id.in_([m.player_id for m in members]),
                or_(
                    User.first_name.ilike(like_term),
                    User.last_name.ilike(like_term),
                    User.email.ilike(like_term),
                ),
            )
        }
        members = [m for m in members if m.player_id in matching_ids]

    return jsonify([
        {
            **m.player.summary(),
            'lineup_role': m.lineup_role,
            'numero': m.jersey_number,
        }
        for m in members
    ])


@equipes_bp.route('/<int:team_id>/members', methods=['POST'])
@roles_required(ROLE_OWNER)
def add_member(team_id):
    team = _owned_team(team_id)
    player = get_or_404(User, _player_id(json_body()), 'Player')
    if player.role != ROLE_PLAYER:
        raise ValidationError(f"User {player.id} is not a player")
    if team.membership(player.id) is not None:
        raise ConflictError("Player is already in this team")

    team.members.append(TeamMember(player_id=player.id))
    db.session.commit()
    return jsonify(team.to_dict()), 201


@equipes_bp.route('/<int:team_id>/members/<int:player_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER)
def remove_member(team_id, player_id):
    team = _owned_team(team_id)
    member = team.membership(player_id)
    if member is None:
        raise NotFoundError("Player is not a member of this team")

    team.members.remove(member)
    db.session.commit()
    return jsonify(team.to_dict())


# Lineup

def _set_lineup_role(team_id: int, role: str | None):
    team = _owned_team(team_id)
    member = _member_or_error(team, _player_id(json_body()))
    member.lineup_role = role
    db.session.commit()
    return jsonify(team.to_dict())


@equipes_bp.route('/<int:team_id>/starters', methods=['POST'])
@roles_required(ROLE_OWNER)
def add_starter(team_id):
    return _set_lineup_role(team_id, LINEUP_STARTER)


@equipes_bp.route('/<int:team_id>/substitutes', methods=['POST'])
@roles_required(ROLE_OWNER)
def add_substitute(team_id):
    return _set_lineup_role(team_id, LINEUP_SUBSTITUTE)


@equipes_bp.route('/<int:team_id>/lineup/<int:player_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER)
def remove_from_lineup(team_id, player_id):
    team = _owned_team(team_id)
    member = _member_or_error(team, player_id)
    member.lineup_role = None
    db.session.commit()
    return jsonify(team.to_dict())


@equipes_bp.route('/<int:team_id>/swap', methods=['POST'])
@roles_required(ROLE_OWNER)
def swap_players(team_id):
    """Exchange the lineup slots (starter/substitute) of two players"""
    team = _owned_team(team_id)
    data = json_body()
    first = _member_or_error(team, _player_id(data, 'player1_id'))
    second = _member_or_error(team, _player_id(data, 'player2_id'))
    for member in (first, second):
        if not member.lineup_role:
            raise ValidationError(f"Player {member.player_id} is neither a starter nor a substitute")

    first.lineup_role, second.lineup_role = second.lineup_role, first.lineup_role
    db.session.commit()
    return jsonify(team.to_dict())


@equipes_bp.route('/<int:team_id>/enforce-roster', methods=['POST'])
@roles_required(ROLE_OWNER)
def enforce_roster(team_id):
    """Fill the lineup up to 8 starters and 4 substitutes from unassigned members"""
    team = _owned_team(team_id)
    free = [m for m in team.members if not m.lineup_role]

    missing_starters = max(0, STARTERS_TARGET - len(team.starter_ids))
    for member in free[:missing_starters]:
        member.lineup_role = LINEUP_STARTER
    free = free[missing_starters:]

    missing_substitutes = max(0, SUBSTITUTES_TARGET - len(team.substitute_ids))
    for member in free[:missing_substitutes]:
        member.lineup_role = LINEUP_SUBSTITUTE

    db.session.commit()
    return jsonify(team.to_dict())


# Jersey numbers (maillots)

def _jersey_number(data: dict) -> int:
    require_fields(data, 'numero')
    return parse_int(data['numero'], 'numero', minimum=JERSEY_MIN, maximum=JERSEY_MAX)


def _ensure_number_free(team: Team, number: int, player_id: int) -> None:
    for member in team.members:
        if member.jersey_number == number and member.player_id != player_id:
            raise ConflictError(f"Jersey number {number} is already used in this team")


@equipes_bp.route('/<int:team_id>/maillots/<int:player_id>', methods=['GET'])
@login_required
def get_jersey(team_id, player_id):
    team = get_or_404(Team, team_id, 'Team')
    member = team.membership(player_id)
    if member is None:
        raise NotFoundError("Player is not a member of this team")
    return jsonify({'id_joueur': player_id, 'numero': member.jersey_number})


@equipes_bp.route('/<int:team_id>/maillots', methods=['POST'])
@roles_required(ROLE_OWNER)
def assign_jersey(team_id):
    team = _owned_team(team_id)
    data = json_body()
    member = _member_or_error(team, _player_id(data))
    number = _jersey_number(data)
    if member.jersey_number is not None:
        raise ConflictError("This player already has a jersey number")
    _ensure_number_free(team, number, member.player_id)

    member.jersey_number = number
    db.session.commit()
    return jsonify({'id_joueur': member.player_id, 'numero': number}), 201


@equipes_bp.route('/<int:team_id>/maillots/<int:player_id>', methods=['PUT'])
@roles_required(ROLE_OWNER)
def update_jersey(team_id, player_id):
    team = _owned_team(team_id)
    member = _member_or_error(team, player_id)
    number = _jersey_number(json_body())
    _ensure_number_free(team, number, player_id)

    member.jersey_number = number
    db.session.commit()
    return jsonify({'id_joueur': player_id, 'numero': number})


@equipes_bp.route('/<int:team_id>/maillots/<int:player_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER)
def remove_jersey(team_id, player_id):
    team = _owned_team(team_id)
    member = _member_or_error(team, player_id)
    if member.jersey_number is None:
        raise NotFoundError("This player has no jersey number")

    member.jersey_number = None
    db.session.commit()
    return jsonify({'message': 'Jersey number removed'})
