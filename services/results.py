"""Match status/score updates and what happens when a match finishes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from errors import ConflictError, NotFoundError, ValidationError
from models import (
    MATCH_FINISHED,
    MATCH_IN_PROGRESS,
    MATCH_SCHEDULED,
    MATCH_STATUSES,
    SLOT_FIRST,
    SLOT_SECOND,
)
from services.repositories import MATCH_FIELDS

logger = logging.getLogger(__name__)

STATUS_ORDER = {MATCH_SCHEDULED: 0, MATCH_IN_PROGRESS: 1, MATCH_FINISHED: 2}
SCORE_FIELDS = ('team1_score', 'team2_score')
# frozen once the match is finished
LOCKED_WHEN_FINISHED = SCORE_FIELDS + ('team1_id', 'team2_id')


@dataclass
class MatchUpdateOutcome:
    match: Any
    finished: bool = False
    winner_id: int | None = None
    propagated_to: int | None = None


def parse_score(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a non-negative integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer")
    return value


def match_result(own: int, other: int) -> str:
    if own > other:
        return 'W'
    if own < other:
        return 'L'
    return 'D'


def apply_match_update(match_id: int, changes: dict, *, matches, teams, coupes=None) -> MatchUpdateOutcome:
    """Apply a status/score change to a match.

    When the change moves the match into ``TERMINE`` both teams' statistics
    are updated and the winner is written into the successor match slot.
    Every rule is checked before anything is written.
    """
    match = matches.get(match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")

    unknown = sorted(set(changes) - set(MATCH_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown match fields: {', '.join(unknown)}")

    current = match.status
    target = changes.get('status') or current
    if target not in MATCH_STATUSES:
        raise ValidationError(f"Invalid status {target!r}")
    if STATUS_ORDER[target] < STATUS_ORDER[current]:
        raise ConflictError(f"Cannot move a match from {current} back to {target}")

    updates = dict(changes)
    updates['status'] = target
    for field in SCORE_FIELDS:
        if updates.get(field) is not None:
            updates[field] = parse_score(updates[field], field)

    if current == MATCH_FINISHED:
        changed = [f for f in LOCKED_WHEN_FINISHED if f in updates and updates[f] != getattr(match, f)]
        if changed:
            raise ConflictError("Match is already finished")

    will_finish = target == MATCH_FINISHED and current != MATCH_FINISHED
    if will_finish:
        if updates.get('team1_score') is None or updates.get('team2_score') is None:
            raise ConflictError("Both scores are required to finish a match")
        team1_id = updates.get('team1_id', match.team1_id)
        team2_id = updates.get('team2_id', match.team2_id)
        if team1_id is None or team2_id is None:
            raise ConflictError("Both teams must be set before a match can finish")
        for team_id in (team1_id, team2_id):
            if teams.get(team_id) is None:
                raise NotFoundError(f"Team {team_id} not found")

    match = matches.update(match_id, **updates)
    if not will_finish:
        return MatchUpdateOutcome(match=match)

    score1, score2 = match.team1_score, match.team2_score
    teams.increment_stats(
        match.team1_id,
        result=match_result(score1, score2),
        goals_for=score1,
        goals_against=score2,
    )
    teams.increment_stats(
        match.team2_id,
        result=match_result(score2, score1),
        goals_for=score2,
        goals_against=score1,
    )

    winner_id = None
    if score1 > score2:
        winner_id = match.team1_id
    elif score2 > score1:
        winner_id = match.team2_id

    propagated_to = None
    if winner_id is None:
        logger.warning(
            "Match %s finished level at %s-%s; no winner to carry forward",
            match.id,
            score1,
            score2,
        )
    else:
        propagated_to = propagate_winner(match, winner_id, matches)

    if coupes is not None and match.coupe_id is not None:
        _update_coupe_progress(match, winner_id, coupes, matches)

    logger.info("Match %s finished %s-%s (winner: %s)", match.id, score1, score2, winner_id)
    return MatchUpdateOutcome(
        match=match,
        finished=True,
        winner_id=winner_id,
        propagated_to=propagated_to,
    )


def propagate_winner(match, winner_id: int, matches) -> int | None:
    """Write the winner into the successor slot; returns the successor id."""
    if match.next_match_id is None:
        return None

    successor = matches.get(match.next_match_id)
    if successor is None:
        logger.warning("Match %s points to missing next match %s", match.id, match.next_match_id)
        return None

    if match.position_in_next_match == SLOT_FIRST:
        matches.update(successor.id, team1_id=winner_id)
    elif match.position_in_next_match == SLOT_SECOND:
        matches.update(successor.id, team2_id=winner_id)
    else:
        logger.warning("Match %s has no slot recorded in match %s", match.id, successor.id)
        return None

    logger.info(
        "Team %s advances from match %s to match %s (%s)",
        winner_id,
        match.id,
        successor.id,
        match.position_in_next_match,
    )
    return successor.id


def _update_coupe_progress(match, winner_id, coupes, matches) -> None:
    coupe = coupes.get(match.coupe_id)
    if coupe is None or not coupe.is_bracket_generated:
        return

    if match.next_match_id is None and winner_id is not None:
        coupes.update(coupe.id, winner_id=winner_id)
        logger.info("Coupe %s won by team %s", coupe.id, winner_id)
        return

    bracket = matches.list_for_coupe(coupe.id)
    current_round = [m for m in bracket if m.round_number == coupe.current_round]
    has_next_round = any(m.round_number > coupe.current_round for m in bracket)
    if current_round and has_next_round and all(m.status == MATCH_FINISHED for m in current_round):
        coupes.update(coupe.id, current_round=coupe.current_round + 1)
        logger.info("Coupe %s moves to round %s", coupe.id, coupe.current_round)
