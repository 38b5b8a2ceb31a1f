"""Per-role activity summaries shown on a user's profile.

Owners see the record of every team in their academy, players their team's
results plus their own goals and assists, referees the matches they
officiated and coaches the results of the academy teams they work for.
Only finished matches count.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_

from models import (
    AcademyStaff,
    Coupe,
    Match,
    MatchEvent,
    Team,
    TeamMember,
    User,
    ROLE_OWNER,
    ROLE_PLAYER,
    ROLE_REFEREE,
    ROLE_COACH,
    MATCH_FINISHED,
    EVENT_GOAL,
    EVENT_ASSIST,
)

RECENT_MATCHES = 5
NO_ACADEMY = 'Independent'
NO_TEAM = 'No team'


def _newest_first(matches: list[Match]) -> list[Match]:
    # undated matches sort after dated ones
    return sorted(
        matches,
        key=lambda m: (m.scheduled_at is not None, m.scheduled_at or datetime.min, m.id),
        reverse=True,
    )


def _finished_matches_of(team_ids: list[int]) -> list[Match]:
    if not team_ids:
        return []
    matches = Match.query.filter(
        Match.status == MATCH_FINISHED,
        or_(Match.team1_id.in_(team_ids), Match.team2_id.in_(team_ids)),
    ).all()
    return _newest_first(matches)


def _result_for(match: Match, team_ids: list[int]) -> str:
    """W, D or L from the side of the first listed team that played."""
    s1, s2 = match.team1_score or 0, match.team2_score or 0
    if match.team1_id in team_ids:
        mine, theirs = s1, s2
    else:
        mine, theirs = s2, s1
    if mine > theirs:
        return 'W'
    if mine < theirs:
        return 'L'
    return 'D'


def _match_line(match: Match, status: str) -> dict:
    when = match.scheduled_at
    return {
        'id': match.id,
        'status': status,
        'title': 'Match',
        'date': f"{when:%b} {when.day}" if when else 'N/A',
        'score': f"{match.team1_score or 0}-{match.team2_score or 0}",
    }


def _academy_name(academy: User | None) -> str:
    if academy is None:
        return NO_ACADEMY
    return academy.full_name or NO_ACADEMY


def _record(matches: list[Match], team_ids: list[int]) -> tuple[dict, list[dict]]:
    counts = {'W': 0, 'D': 0, 'L': 0}
    recent = []
    for match in matches:
        status = _result_for(match, team_ids)
        counts[status] += 1
        if len(recent) < RECENT_MATCHES:
            recent.append(_match_line(match, status))
    return counts, recent


def owner_stats(user: User) -> dict:
    teams = Team.query.filter_by(academy_id=user.id).all()
    team_ids = [team.id for team in teams]
    counts, recent = _record(_finished_matches_of(team_ids), team_ids)

    total = sum(counts.values())
    win_rate = counts['W'] / total * 100 if total else 0.0
    trophies = Coupe.query.filter(Coupe.winner_id.in_(team_ids)).count() if team_ids else 0
    return {
        'role': ROLE_OWNER,
        'wins': counts['W'],
        'losses': counts['L'],
        'totalMatches': total,
        'winRate': f"{win_rate:.1f}%",
        'totalPlayers': sum(len(team.members) for team in teams),
        'trophies': trophies,
        'recentMatches': recent,
    }


def player_stats(user: User) -> dict:
    membership = TeamMember.query.filter_by(player_id=user.id).order_by(TeamMember.id).first()
    team = membership.team if membership else None
    team_ids = [team.id] if team else []
    matches = _finished_matches_of(team_ids)
    _, recent = _record(matches, team_ids)

    return {
        'role': ROLE_PLAYER,
        'teamName': team.name if team else NO_TEAM,
        'academyName': _academy_name(team.academy if team else None),
        'matchesPlayed': len(matches),
        'goals': MatchEvent.query.filter_by(player_id=user.id, kind=EVENT_GOAL).count(),
        'assists': MatchEvent.query.filter_by(player_id=user.id, kind=EVENT_ASSIST).count(),
        'recentMatches': recent,
    }


def referee_stats(user: User) -> dict:
    matches = _newest_first(Match.query.filter_by(referee_id=user.id, status=MATCH_FINISHED).all())
    link = AcademyStaff.query.filter_by(user_id=user.id, role=ROLE_REFEREE).order_by(AcademyStaff.id).first()
    return {
        'role': ROLE_REFEREE,
        'matchesRefereed': len(matches),
        'academyName': _academy_name(link.academy if link else None),
        # a referee has no side, so every line is neutral
        'recentMatches': [_match_line(m, 'D') for m in matches[:RECENT_MATCHES]],
    }


def coach_stats(user: User) -> dict:
    academy_ids = [
        link.academy_id
        for link in AcademyStaff.query.filter_by(user_id=user.id, role=ROLE_COACH).order_by(AcademyStaff.id)
    ]
    teams = Team.query.filter(Team.academy_id.in_(academy_ids)).order_by(Team.id).all() if academy_ids else []
    team_ids = [team.id for team in teams]
    matches = _finished_matches_of(team_ids)
    counts, recent = _record(matches, team_ids)

    return {
        'role': ROLE_COACH,
        'teamName': ', '.join(team.name for team in teams) or NO_TEAM,
        'matchesCoached': len(matches),
        'teamWins': counts['W'],
        'teamLosses': counts['L'],
        'recentMatches': recent,
    }


ROLE_STATS = {
    ROLE_OWNER: owner_stats,
    ROLE_PLAYER: player_stats,
    ROLE_REFEREE: referee_stats,
    ROLE_COACH: coach_stats,
}


def profile_stats(user: User) -> dict:
    return ROLE_STATS[user.role](user)
