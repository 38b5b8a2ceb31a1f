"""Single-elimination bracket generation for coupes."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from errors import ConflictError, NotFoundError, ValidationError
from models import MATCH_SCHEDULED, SLOT_FIRST, SLOT_SECOND

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedMatch:
    """One node of a planned bracket.

    ``next_index`` points into the same plan list (the arena), so the tree can
    be walked and checked without any storage behind it.
    """

    round_number: int
    index: int
    team1_id: int | None
    team2_id: int | None
    next_index: int | None
    position: str | None


def is_power_of_two(count: int) -> bool:
    return count >= 1 and count & (count - 1) == 0


def validate_participants(team_ids) -> None:
    count = len(team_ids)
    if count < 2:
        raise ConflictError("At least 2 teams are required to generate a bracket")
    if not is_power_of_two(count):
        raise ConflictError(f"Number of teams must be a power of 2 (got {count})")
    if len(set(team_ids)) != count:
        raise ValidationError("A team cannot appear twice in the same bracket")


def plan_bracket(team_ids, rng=None) -> list[PlannedMatch]:
    """Shuffle the teams and lay out every round of the bracket.

    Round 1 pairs consecutive shuffled teams; later rounds start empty. Match
    ``j`` of a round feeds match ``j // 2`` of the next round, in slot ``eq1``
    when ``j`` is even and ``eq2`` when it is odd.
    """
    validate_participants(team_ids)
    seeded = list(team_ids)
    (rng or random).shuffle(seeded)

    plan: list[PlannedMatch] = []
    size = len(seeded) // 2
    round_number = 1
    offset = 0
    while size >= 1:
        next_offset = offset + size
        for j in range(size):
            team1_id = team2_id = None
            if round_number == 1:
                team1_id, team2_id = seeded[2 * j], seeded[2 * j + 1]

            next_index = position = None
            if size > 1:
                next_index = next_offset + j // 2
                position = SLOT_FIRST if j % 2 == 0 else SLOT_SECOND

            plan.append(
                PlannedMatch(
                    round_number=round_number,
                    index=j,
                    team1_id=team1_id,
                    team2_id=team2_id,
                    next_index=next_index,
                    position=position,
                )
            )
        offset = next_offset
        size //= 2
        round_number += 1

    return plan


def generate_bracket(coupe_id: int, *, coupes, matches, rng=None) -> dict:
    """Create and link every match of a coupe's knockout bracket.

    All preconditions are checked before the first match is written, and a
    coupe can only be generated once.
    """
    coupe = coupes.get(coupe_id)
    if coupe is None:
        raise NotFoundError(f"Coupe {coupe_id} not found")
    if coupe.is_bracket_generated:
        raise ConflictError("Bracket already generated for this coupe")

    plan = plan_bracket(coupe.participant_ids, rng)
    kickoff = coupe.kickoff

    created = [
        matches.create(
            coupe_id=coupe_id,
            round_number=planned.round_number,
            team1_id=planned.team1_id,
            team2_id=planned.team2_id,
            status=MATCH_SCHEDULED,
            team1_score=None,
            team2_score=None,
            scheduled_at=kickoff,
        )
        for planned in plan
    ]

    for planned, record in zip(plan, created):
        if planned.next_index is None:
            continue
        matches.update(
            record.id,
            next_match_id=created[planned.next_index].id,
            position_in_next_match=planned.position,
        )

    coupes.update(
        coupe_id,
        match_ids=[record.id for record in created],
        is_bracket_generated=True,
        current_round=1,
    )

    rounds = plan[-1].round_number
    logger.info(
        "Generated bracket for coupe %s: %d teams, %d matches, %d rounds",
        coupe_id,
        len(coupe.participant_ids),
        len(created),
        rounds,
    )
    return {
        'message': 'Bracket generated successfully',
        'matchesCount': len(created),
        'rounds': rounds,
    }
