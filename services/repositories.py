"""Storage collaborators for the bracket and match-result services.

The services only need create/get/update on matches, get/increment on team
statistics and get/update on coupes. Two backings are provided: the
SQLAlchemy one used by the blueprints (it flushes but never commits, the
request owns the transaction) and an in-memory one used to exercise the
services in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from errors import NotFoundError
from models import (
    db,
    Coupe,
    Match,
    Team,
    MATCH_SCHEDULED,
    RECENT_FORM_LENGTH,
)

MATCH_FIELDS = (
    'coupe_id',
    'team1_id',
    'team2_id',
    'referee_id',
    'venue',
    'scheduled_at',
    'round_number',
    'status',
    'team1_score',
    'team2_score',
    'next_match_id',
    'position_in_next_match',
)
COUPE_FIELDS = ('match_ids', 'is_bracket_generated', 'current_round', 'winner_id')
RESULT_COUNTERS = {'W': 'wins', 'D': 'draws', 'L': 'losses'}


def _check_fields(fields: dict[str, Any], allowed: tuple[str, ...]) -> None:
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(unknown)}")


def _result_counter(result: str) -> str:
    try:
        return RESULT_COUNTERS[result]
    except KeyError:
        raise ValueError(f"Unknown result {result!r}") from None


class MatchRepository:
    def create(self, **fields):
        raise NotImplementedError

    def get(self, match_id: int):
        raise NotImplementedError

    def update(self, match_id: int, **fields):
        raise NotImplementedError

    def list_for_coupe(self, coupe_id: int) -> list:
        raise NotImplementedError


class TeamRepository:
    def get(self, team_id: int):
        raise NotImplementedError

    def increment_stats(self, team_id: int, *, result: str, goals_for: int, goals_against: int):
        raise NotImplementedError


class CoupeRepository:
    def get(self, coupe_id: int):
        raise NotImplementedError

    def update(self, coupe_id: int, **fields):
        raise NotImplementedError


class SqlMatchRepository(MatchRepository):
    def create(self, **fields) -> Match:
        _check_fields(fields, MATCH_FIELDS)
        match = Match(**fields)
        db.session.add(match)
        db.session.flush()
        return match

    def get(self, match_id: int) -> Match | None:
        return db.session.get(Match, match_id)

    def update(self, match_id: int, **fields) -> Match:
        _check_fields(fields, MATCH_FIELDS)
        match = self.get(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")
        for key, value in fields.items():
            setattr(match, key, value)
        db.session.flush()
        return match

    def list_for_coupe(self, coupe_id: int) -> list[Match]:
        return Match.query.filter_by(coupe_id=coupe_id).order_by(Match.id.asc()).all()


class SqlTeamRepository(TeamRepository):
    def get(self, team_id: int) -> Team | None:
        return db.session.get(Team, team_id)

    def get_for_update(self, team_id: int) -> Team | None:
        """Re-read the row under a row lock (no-op on SQLite)."""
        return db.session.get(Team, team_id, with_for_update=True, populate_existing=True)

    def increment_stats(self, team_id: int, *, result: str, goals_for: int, goals_against: int) -> Team:
        """Add one match to the team's record.

        Counters are written as ``column = column + delta``. The recent form
        list is rewritten whole, so the row is locked and re-read first.
        """
        counter = _result_counter(result)
        team = self.get_for_update(team_id)
        if team is None:
            raise NotFoundError(f"Team {team_id} not found")

        team.matches_played = Team.matches_played + 1
        setattr(team, counter, getattr(Team, counter) + 1)
        team.goals_for = Team.goals_for + goals_for
        team.goals_against = Team.goals_against + goals_against
        team.recent_form = (list(team.recent_form or []) + [result])[-RECENT_FORM_LENGTH:]
        db.session.flush()
        return team


class SqlCoupeRepository(CoupeRepository):
    def get(self, coupe_id: int) -> Coupe | None:
        return db.session.get(Coupe, coupe_id)

    def update(self, coupe_id: int, **fields) -> Coupe:
        _check_fields(fields, COUPE_FIELDS)
        coupe = self.get(coupe_id)
        if coupe is None:
            raise NotFoundError(f"Coupe {coupe_id} not found")

        match_ids = fields.pop('match_ids', None)
        if match_ids is not None:
            coupe.matches = [db.session.get(Match, match_id) for match_id in match_ids]
        for key, value in fields.items():
            setattr(coupe, key, value)
        db.session.flush()
        return coupe


@dataclass
class MatchRecord:
    id: int
    coupe_id: int | None = None
    team1_id: int | None = None
    team2_id: int | None = None
    referee_id: int | None = None
    venue: str | None = None
    scheduled_at: datetime | None = None
    round_number: int = 1
    status: str = MATCH_SCHEDULED
    team1_score: int | None = None
    team2_score: int | None = None
    next_match_id: int | None = None
    position_in_next_match: str | None = None


@dataclass
class TeamRecord:
    id: int
    name: str = ''
    matches_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    recent_form: list[str] = field(default_factory=list)


@dataclass
class CoupeRecord:
    id: int
    participant_ids: list[int] = field(default_factory=list)
    match_ids: list[int] = field(default_factory=list)
    is_bracket_generated: bool = False
    current_round: int = 1
    winner_id: int | None = None
    kickoff: datetime | None = None


class InMemoryMatchRepository(MatchRepository):
    def __init__(self) -> None:
        self.records: dict[int, MatchRecord] = {}
        self._next_id = 1

    def create(self, **fields) -> MatchRecord:
        _check_fields(fields, MATCH_FIELDS)
        record = MatchRecord(id=self._next_id, **fields)
        self.records[record.id] = record
        self._next_id += 1
        return record

    def get(self, match_id: int) -> MatchRecord | None:
        return self.records.get(match_id)

    def update(self, match_id: int, **fields) -> MatchRecord:
        _check_fields(fields, MATCH_FIELDS)
        record = self.get(match_id)
        if record is None:
            raise NotFoundError(f"Match {match_id} not found")
        for key, value in fields.items():
            setattr(record, key, value)
        return record

    def list_for_coupe(self, coupe_id: int) -> list[MatchRecord]:
        return [r for r in self.records.values() if r.coupe_id == coupe_id]


class InMemoryTeamRepository(TeamRepository):
    def __init__(self, team_ids=()) -> None:
        self.records: dict[int, TeamRecord] = {}
        for team_id in team_ids:
            self.add(team_id)

    def add(self, team_id: int, name: str = '') -> TeamRecord:
        record = TeamRecord(id=team_id, name=name or f"Team {team_id}")
        self.records[team_id] = record
        return record

    def get(self, team_id: int) -> TeamRecord | None:
        return self.records.get(team_id)

    def increment_stats(self, team_id: int, *, result: str, goals_for: int, goals_against: int) -> TeamRecord:
        counter = _result_counter(result)
        record = self.get(team_id)
        if record is None:
            raise NotFoundError(f"Team {team_id} not found")
        record.matches_played += 1
        setattr(record, counter, getattr(record, counter) + 1)
        record.goals_for += goals_for
        record.goals_against += goals_against
        record.recent_form = (record.recent_form + [result])[-RECENT_FORM_LENGTH:]
        return record


class InMemoryCoupeRepository(CoupeRepository):
    def __init__(self) -> None:
        self.records: dict[int, CoupeRecord] = {}

    def add(self, coupe_id: int, participant_ids=(), **fields) -> CoupeRecord:
        record = CoupeRecord(id=coupe_id, participant_ids=list(participant_ids), **fields)
        self.records[coupe_id] = record
        return record

    def get(self, coupe_id: int) -> CoupeRecord | None:
        return self.records.get(coupe_id)

    def update(self, coupe_id: int, **fields) -> CoupeRecord:
        _check_fields(fields, COUPE_FIELDS)
        record = self.get(coupe_id)
        if record is None:
            raise NotFoundError(f"Coupe {coupe_id} not found")
        for key, value in fields.items():
            setattr(record, key, list(value) if key == 'match_ids' else value)
        return record
