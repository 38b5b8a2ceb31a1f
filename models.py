from datetime import datetime, date
import math
import re
import pytz

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

DEFAULT_TIMEZONE = 'Africa/Tunis'
_app_timezone = pytz.timezone(DEFAULT_TIMEZONE)

ROLE_PLAYER = 'JOUEUR'
ROLE_OWNER = 'OWNER'
ROLE_REFEREE = 'ARBITRE'
ROLE_COACH = 'COACH'
USER_ROLES = (ROLE_PLAYER, ROLE_OWNER, ROLE_REFEREE, ROLE_COACH)

TEAM_CATEGORIES = ('KIDS', 'YOUTH', 'JUNIOR', 'SENIOR')
LINEUP_STARTER = 'starter'
LINEUP_SUBSTITUTE = 'substitute'

MATCH_SCHEDULED = 'PROGRAMME'
MATCH_IN_PROGRESS = 'EN_COURS'
MATCH_FINISHED = 'TERMINE'
MATCH_STATUSES = (MATCH_SCHEDULED, MATCH_IN_PROGRESS, MATCH_FINISHED)

SLOT_FIRST = 'eq1'
SLOT_SECOND = 'eq2'
MATCH_SLOTS = (SLOT_FIRST, SLOT_SECOND)

EVENT_GOAL = 'goal'
EVENT_ASSIST = 'assist'
EVENT_YELLOW_CARD = 'yellow_card'
EVENT_RED_CARD = 'red_card'
EVENT_OFFSIDE = 'offside'
EVENT_CORNER = 'corner'
EVENT_PENALTY = 'penalty'
PLAYER_EVENT_KINDS = (EVENT_GOAL, EVENT_ASSIST, EVENT_YELLOW_CARD, EVENT_RED_CARD, EVENT_OFFSIDE)
TEAM_EVENT_KINDS = (EVENT_CORNER, EVENT_PENALTY)
EVENT_KINDS = PLAYER_EVENT_KINDS + TEAM_EVENT_KINDS

COUPE_CATEGORIES = ('Kids', 'Youth', 'Junior', 'Senior')
COUPE_TYPES = ('Tournament', 'League')

INJURY_TYPES = ('muscle', 'articulation', 'choc', 'tendon', 'fracture', 'other')
INJURY_SEVERITIES = ('light', 'medium', 'severe')
MEDICAL_FIT = 'apte'
MEDICAL_MONITORED = 'surveille'
MEDICAL_UNAVAILABLE = 'indisponible'
MEDICAL_STATUSES = (MEDICAL_FIT, MEDICAL_MONITORED, MEDICAL_UNAVAILABLE)
SEVERITY_COLORS = {
    'light': '#4CAF50',
    'medium': '#FF9800',
    'severe': '#F44336',
}
DEFAULT_SEVERITY_COLOR = '#9E9E9E'

GROUP_ROLE_ADMIN = 'admin'
GROUP_ROLE_MEMBER = 'member'

STAFF_ROLES = (ROLE_REFEREE, ROLE_COACH)

RECENT_FORM_LENGTH = 5
FORM_POINTS = {'W': 2, 'D': 1, 'L': 0}


def configure_timezone(name: str) -> None:
    global _app_timezone
    _app_timezone = pytz.timezone(name)


def current_time():
    return datetime.now(_app_timezone)


def _iso(value):
    if value is None:
        return None
    return value.isoformat()


class User(db.Model):
    """Academy accounts: players, owners, referees and coaches."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False)  # JOUEUR, OWNER, ARBITRE, COACH
    phone_number = db.Column(db.String(20))
    picture = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=current_time)

    notifications = db.relationship(
        'Notification',
        backref='user',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='Notification.id.desc()',
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<User {self.id} {self.email} role={self.role}>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def notify(
        self,
        message: str,
        category: str = 'info',
        context_type: str | None = None,
        context_ref: str | None = None,
    ) -> 'Notification':
        """Queue an in-app notification for this user on the current session."""
        note = Notification(
            user_id=self.id,
            message=message,
            category=category,
            context_type=context_type,
            context_ref=context_ref,
        )
        db.session.add(note)
        return note

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'role': self.role,
            'phone_number': self.phone_number,
            'picture': self.picture,
            'created_at': _iso(self.created_at),
        }

    def summary(self) -> dict:
        return {'id': self.id, 'first_name': self.first_name, 'last_name': self.last_name}

    @staticmethod
    def validate_format(
        first_name: str,
        last_name: str,
        email: str,
        password: str | None,
        role: str,
        phone_number: str | None = None,
    ) -> list[str]:
        """Validate registration data format without using the database."""
        errors: list[str] = []

        if not first_name or not first_name.strip():
            errors.append("First name is required")
        if not last_name or not last_name.strip():
            errors.append("Last name is required")

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not email or not re.match(email_pattern, email):
            errors.append("Valid email required")

        if password is not None:
            password_regex = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*#?&])[A-Za-z\d@$!%*#?&]{8,}$"
            if len(password) < 8:
                errors.append("Password must be at least 8 characters")
            elif not re.fullmatch(password_regex, password):
                errors.append(
                    "Password must contain at least one uppercase letter, one lowercase letter, one number, and one special character"
                )

        if role not in USER_ROLES:
            errors.append("Invalid role selected")

        if phone_number:
            phone_pattern = r'^\+?[0-9\s-]{7,15}$'
            if not re.fullmatch(phone_pattern, phone_number):
                errors.append("Phone number must contain 7-15 digits and may include + or -")

        return errors


class Notification(db.Model):
    __tablename__ = 'notification'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    message = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(40), default='info')
    context_type = db.Column(db.String(40))  # e.g. injury, coupe, match
    context_ref = db.Column(db.String(40))
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=current_time)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'message': self.message,
            'category': self.category,
            'context_type': self.context_type,
            'context_ref': self.context_ref,
            'is_read': bool(self.is_read),
            'created_at': _iso(self.created_at),
        }


class AcademyStaff(db.Model):
    """A referee or coach working for an academy (an OWNER account)."""
    __tablename__ = 'academy_staff'
    __table_args__ = (db.UniqueConstraint('academy_id', 'user_id', name='uq_academy_staff'),)

    id = db.Column(db.Integer, primary_key=True)
    academy_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    role = db.Column(db.String(20), nullable=False)  # ARBITRE or COACH
    joined_at = db.Column(db.DateTime, default=current_time)

    academy = db.relationship('User', foreign_keys=[academy_id])
    member = db.relationship('User', foreign_keys=[user_id])

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'id_academie': self.academy_id,
            'user': self.member.summary(),
            'role': self.role,
            'joined_at': _iso(self.joined_at),
        }


class Team(db.Model):
    """An academy squad in one age category, with its cumulative record."""

    __tablename__ = 'team'

    id = db.Column(db.Integer, primary_key=True)
    academy_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    logo = db.Column(db.String(255))
    category = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=current_time)

    matches_played = db.Column(db.Integer, nullable=False, default=0)
    wins = db.Column(db.Integer, nullable=False, default=0)
    draws = db.Column(db.Integer, nullable=False, default=0)
    losses = db.Column(db.Integer, nullable=False, default=0)
    goals_for = db.Column(db.Integer, nullable=False, default=0)
    goals_against = db.Column(db.Integer, nullable=False, default=0)
    recent_form = db.Column(db.JSON, default=list)

    academy = db.relationship('User', foreign_keys=[academy_id], backref='teams')
    members = db.relationship(
        'TeamMember',
        backref='team',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='TeamMember.id',
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Team {self.id} {self.name}>"

    def membership(self, player_id: int) -> 'TeamMember | None':
        for member in self.members:
            if member.player_id == player_id:
                return member
        return None

    @property
    def member_ids(self) -> list[int]:
        return [m.player_id for m in self.members]

    @property
    def starter_ids(self) -> list[int]:
        return [m.player_id for m in self.members if m.lineup_role == LINEUP_STARTER]

    @property
    def substitute_ids(self) -> list[int]:
        return [m.player_id for m in self.members if m.lineup_role == LINEUP_SUBSTITUTE]

    @property
    def lineup_ids(self) -> list[int]:
        return [m.player_id for m in self.members if m.lineup_role]

    @property
    def win_rate(self) -> float:
        if not self.matches_played:
            return 0
        return round(self.wins / self.matches_played * 100, 2)

    @property
    def goal_difference(self) -> int:
        return (self.goals_for or 0) - (self.goals_against or 0)

    @property
    def avg_goals_per_match(self) -> float:
        if not self.matches_played:
            return 0
        return round(self.goals_for / self.matches_played, 2)

    @property
    def form_rating(self) -> int:
        form = self.recent_form or []
        if not form:
            return 5
        points = sum(FORM_POINTS.get(result, 0) for result in form)
        return math.ceil(points * 10 / (2 * RECENT_FORM_LENGTH))

    @property
    def momentum(self) -> str:
        form = self.recent_form or []
        if len(form) < 3:
            return 'Stable'
        recent = form[-3:]
        if recent.count('W') >= 2:
            return 'Rising'
        if recent.count('L') >= 2:
            return 'Declining'
        return 'Stable'

    def stats_dict(self) -> dict:
        return {
            'matches_played': self.matches_played,
            'wins': self.wins,
            'draws': self.draws,
            'losses': self.losses,
            'goals_for': self.goals_for,
            'goals_against': self.goals_against,
            'recent_form': list(self.recent_form or []),
            'win_rate': self.win_rate,
            'goal_difference': self.goal_difference,
            'avg_goals_per_match': self.avg_goals_per_match,
            'form_rating': self.form_rating,
            'momentum': self.momentum,
        }

    def summary(self) -> dict:
        logo = self.logo or (self.academy.picture if self.academy else None)
        return {'id': self.id, 'nom': self.name, 'logo': logo}

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'id_academie': self.academy_id,
            'nom': self.name,
            'logo': self.logo,
            'categorie': self.category,
            'description': self.description,
            'is_active': bool(self.is_active),
            'members': self.member_ids,
            'starters': self.starter_ids,
            'substitutes': self.substitute_ids,
            'maillots': [
                {'id_joueur': m.player_id, 'numero': m.jersey_number}
                for m in self.members
                if m.jersey_number is not None
            ],
            'stats': self.stats_dict(),
            'created_at': _iso(self.created_at),
        }


class TeamMember(db.Model):
    """A player's place in a team roster, lineup and jersey numbering."""

    __tablename__ = 'team_member'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    lineup_role = db.Column(db.String(20))  # starter, substitute or None
    jersey_number = db.Column(db.Integer)
    joined_at = db.Column(db.DateTime, default=current_time)

    __table_args__ = (
        db.UniqueConstraint('team_id', 'player_id', name='unique_team_member'),
        db.UniqueConstraint('team_id', 'jersey_number', name='unique_team_jersey'),
    )

    player = db.relationship('User')


class Match(db.Model):
    __tablename__ = 'match'

    id = db.Column(db.Integer, primary_key=True)
    coupe_id = db.Column(db.Integer, db.ForeignKey('coupe.id'))
    team1_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    team2_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    referee_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    venue = db.Column(db.String(100))
    scheduled_at = db.Column(db.DateTime)
    round_number = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default=MATCH_SCHEDULED)
    team1_score = db.Column(db.Integer)
    team2_score = db.Column(db.Integer)
    next_match_id = db.Column(db.Integer, db.ForeignKey('match.id'))
    position_in_next_match = db.Column(db.String(3))  # eq1 or eq2
    created_at = db.Column(db.DateTime, default=current_time)

    team1 = db.relationship('Team', foreign_keys=[team1_id])
    team2 = db.relationship('Team', foreign_keys=[team2_id])
    referee = db.relationship('User', foreign_keys=[referee_id])
    events = db.relationship(
        'MatchEvent',
        backref='match',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='MatchEvent.id',
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Match {self.id} round={self.round_number} {self.status}>"

    @property
    def is_finished(self) -> bool:
        return self.status == MATCH_FINISHED

    @property
    def winner_id(self):
        """Winning team id once finished; None for unfinished or level matches."""
        if not self.is_finished or self.team1_score is None or self.team2_score is None:
            return None
        if self.team1_score > self.team2_score:
            return self.team1_id
        if self.team2_score > self.team1_score:
            return self.team2_id
        return None

    def team_id_for(self, side: str):
        return self.team1_id if side == SLOT_FIRST else self.team2_id

    def team_for(self, side: str) -> 'Team | None':
        return self.team1 if side == SLOT_FIRST else self.team2

    def side_of(self, team_id) -> str | None:
        if team_id is None:
            return None
        if self.team1_id == team_id:
            return SLOT_FIRST
        if self.team2_id == team_id:
            return SLOT_SECOND
        return None

    def count_events(self, kind: str, side: str) -> int:
        return len([e for e in self.events if e.kind == kind and e.side == side])

    def player_ids_for(self, *kinds: str, side: str | None = None) -> list[int]:
        """Distinct player ids for the given event kinds, in recording order."""
        seen: list[int] = []
        for event in self.events:
            if event.kind not in kinds or event.player_id is None:
                continue
            if side and event.side != side:
                continue
            if event.player_id not in seen:
                seen.append(event.player_id)
        return seen

    def to_dict(self, resolve_teams: bool = False) -> dict:
        team1 = self.team1_id
        team2 = self.team2_id
        if resolve_teams:
            team1 = self.team1.summary() if self.team1 else None
            team2 = self.team2.summary() if self.team2 else None
        return {
            'id': self.id,
            'coupe': self.coupe_id,
            'id_equipe1': team1,
            'id_equipe2': team2,
            'id_arbitre': self.referee_id,
            'venue': self.venue,
            'date': _iso(self.scheduled_at),
            'round': self.round_number,
            'statut': self.status,
            'score_eq1': self.team1_score,
            'score_eq2': self.team2_score,
            'nextMatch': self.next_match_id,
            'positionInNextMatch': self.position_in_next_match,
            'corner_eq1': self.count_events(EVENT_CORNER, SLOT_FIRST),
            'corner_eq2': self.count_events(EVENT_CORNER, SLOT_SECOND),
            'penalty_eq1': self.count_events(EVENT_PENALTY, SLOT_FIRST),
            'penalty_eq2': self.count_events(EVENT_PENALTY, SLOT_SECOND),
        }


class MatchEvent(db.Model):
    """Something that happened on the pitch: goal, assist, card, offside, corner, penalty."""

    __tablename__ = 'match_event'

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False)
    kind = db.Column(db.String(20), nullable=False)
    side = db.Column(db.String(3), nullable=False)
    player_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=current_time)

    player = db.relationship('User')

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'match': self.match_id,
            'kind': self.kind,
            'side': self.side,
            'player': self.player_id,
            'created_at': _iso(self.created_at),
        }


class Coupe(db.Model):
    """A cup competition; knockout brackets are generated from its participants."""

    __tablename__ = 'coupe'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    organizer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(20), nullable=False)
    coupe_type = db.Column(db.String(20), nullable=False, default='Tournament')
    winner_id = db.Column(db.Integer, db.ForeignKey('team.id'))
    tournament_name = db.Column(db.String(120))
    stadium = db.Column(db.String(120))
    kickoff_date = db.Column(db.Date)
    kickoff_time = db.Column(db.String(5))  # HH:MM
    max_participants = db.Column(db.Integer)
    entry_fee = db.Column(db.Float)
    prize_pool = db.Column(db.Float)
    referee_ids = db.Column(db.JSON, default=list)
    current_round = db.Column(db.Integer, nullable=False, default=1)
    is_bracket_generated = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=current_time)

    organizer = db.relationship('User', foreign_keys=[organizer_id])
    winner = db.relationship('Team', foreign_keys=[winner_id])
    participants = db.relationship(
        'CoupeParticipant',
        backref='coupe',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='CoupeParticipant.id',
    )
    matches = db.relationship(
        'Match',
        backref='coupe',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='Match.id',
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Coupe {self.id} {self.name}>"

    @validates('end_date')
    def validate_end_date(self, key, value):
        if self.start_date and value and value < self.start_date:
            raise ValueError('End date must be on or after the start date')
        return value

    @property
    def participant_ids(self) -> list[int]:
        return [p.team_id for p in self.participants]

    @property
    def match_ids(self) -> list[int]:
        return [m.id for m in self.matches]

    @property
    def kickoff(self) -> datetime:
        """When generated bracket matches are scheduled by default."""
        day = self.kickoff_date or self.start_date or date.today()
        hour, minute = 0, 0
        if self.kickoff_time:
            try:
                parsed = datetime.strptime(self.kickoff_time, '%H:%M')
                hour, minute = parsed.hour, parsed.minute
            except ValueError:
                pass
        return datetime(day.year, day.month, day.day, hour, minute)

    def to_dict(self, resolve: bool = False) -> dict:
        payload = {
            'id': self.id,
            'nom': self.name,
            'id_organisateur': self.organizer_id,
            'participants': self.participant_ids,
            'matches': self.match_ids,
            'date_debut': _iso(self.start_date),
            'date_fin': _iso(self.end_date),
            'categorie': self.category,
            'type': self.coupe_type,
            'id_vainqueur': self.winner_id,
            'tournamentName': self.tournament_name,
            'stadium': self.stadium,
            'date': _iso(self.kickoff_date),
            'time': self.kickoff_time,
            'maxParticipants': self.max_participants,
            'entryFee': self.entry_fee,
            'prizePool': self.prize_pool,
            'referee': list(self.referee_ids or []),
            'currentRound': self.current_round,
            'isBracketGenerated': bool(self.is_bracket_generated),
        }
        if resolve:
            payload['id_organisateur'] = self.organizer.summary() if self.organizer else None
            payload['participants'] = [p.team.summary() for p in self.participants if p.team]
            payload['matches'] = [m.to_dict(resolve_teams=True) for m in self.matches]
            payload['id_vainqueur'] = self.winner.summary() if self.winner else None
        return payload


class CoupeParticipant(db.Model):
    __tablename__ = 'coupe_participant'

    id = db.Column(db.Integer, primary_key=True)
    coupe_id = db.Column(db.Integer, db.ForeignKey('coupe.id'), nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    added_at = db.Column(db.DateTime, default=current_time)

    __table_args__ = (db.UniqueConstraint('coupe_id', 'team_id', name='unique_coupe_team'),)

    team = db.relationship('Team')


class Injury(db.Model):
    """An injury declared by a player and followed up by the academy staff."""

    __tablename__ = 'injury'

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    injury_type = db.Column(db.String(20), nullable=False)
    severity = db.Column(db.String(10), nullable=False)
    description = db.Column(db.String(1000), nullable=False)
    date = db.Column(db.DateTime, default=current_time)
    status = db.Column(db.String(20), nullable=False, default=MEDICAL_MONITORED, index=True)
    recommendations = db.Column(db.JSON, default=list)
    evolutions = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=current_time)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    player = db.relationship('User', backref='injuries')

    @property
    def severity_color(self) -> str:
        return SEVERITY_COLORS.get(self.severity, DEFAULT_SEVERITY_COLOR)

    def add_evolution(self, pain_level: int, note: str) -> dict:
        entry = {'date': current_time().isoformat(), 'painLevel': pain_level, 'note': note}
        # reassign so the JSON column is flagged dirty
        self.evolutions = list(self.evolutions or []) + [entry]
        return entry

    def add_recommendation(self, text: str) -> None:
        self.recommendations = list(self.recommendations or []) + [text]

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'injuryId': self.id,
            'playerId': self.player_id,
            'type': self.injury_type,
            'severity': self.severity,
            'severityColor': self.severity_color,
            'description': self.description,
            'date': _iso(self.date),
            'status': self.status,
            'recommendations': list(self.recommendations or []),
            'evolutions': list(self.evolutions or []),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Message(db.Model):
    """Direct message between two users."""

    __tablename__ = 'message'

    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    receiver_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    body = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, default=False)
    is_deleted = db.Column(db.Boolean, default=False, index=True)
    deleted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=current_time)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'senderId': self.sender_id,
            'receiverId': self.receiver_id,
            'message': self.body,
            'isRead': bool(self.is_read),
            'isDeleted': bool(self.is_deleted),
            'createdAt': _iso(self.created_at),
        }


class ChatGroup(db.Model):
    __tablename__ = 'chat_group'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(255))
    creator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    avatar = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=current_time)

    members = db.relationship(
        'GroupMember',
        backref='group',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='GroupMember.id',
    )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'creatorId': self.creator_id,
            'avatar': self.avatar,
            'createdAt': _iso(self.created_at),
        }


class GroupMember(db.Model):
    __tablename__ = 'group_member'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('chat_group.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    role = db.Column(db.String(10), nullable=False, default=GROUP_ROLE_MEMBER)
    created_at = db.Column(db.DateTime, default=current_time)

    __table_args__ = (db.UniqueConstraint('group_id', 'user_id', name='unique_group_member'),)

    def to_dict(self) -> dict:
        return {
            'groupId': self.group_id,
            'userId': self.user_id,
            'role': self.role,
            'createdAt': _iso(self.created_at),
        }


class GroupMessage(db.Model):
    __tablename__ = 'group_message'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('chat_group.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    body = db.Column(db.Text, nullable=False)
    read_by = db.Column(db.JSON, default=list)
    is_deleted = db.Column(db.Boolean, default=False, index=True)
    deleted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=current_time)

    def is_read_by(self, user_id: int) -> bool:
        return user_id in (self.read_by or [])

    def mark_read_by(self, user_id: int) -> bool:
        if self.is_read_by(user_id):
            return False
        self.read_by = list(self.read_by or []) + [user_id]
        return True

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'groupId': self.group_id,
            'senderId': self.sender_id,
            'message': self.body,
            'readBy': list(self.read_by or []),
            'isDeleted': bool(self.is_deleted),
            'createdAt': _iso(self.created_at),
        }


def init_default_data():
    """Seed the default owner account used to bootstrap a fresh database."""

    admin = User.query.filter_by(email='admin@academy.local').first()
    if not admin:
        admin = User(
            first_name='Academy',
            last_name='Admin',
            email='admin@academy.local',
            role=ROLE_OWNER,
        )
        admin.set_password('Admin@123')
        db.session.add(admin)

    db.session.commit()
    return admin
