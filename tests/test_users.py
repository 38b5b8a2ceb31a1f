"""
Integration tests for user listing, profile edits, profile stats and notifications
"""
from datetime import datetime

from models import db, AcademyStaff, Match, MatchEvent, User, Notification


class TestListing:
    def test_filter_by_role(self, login, owner, coach, player, player2):
        body = login(coach).get('/users?role=JOUEUR').get_json()
        assert [u['last_name'] for u in body] == ['Forward', 'Player']

    def test_search(self, login, owner, coach, player):
        client = login(coach)
        assert [u['id'] for u in client.get('/users?q=olivia').get_json()] == [owner.id]
        assert [u['id'] for u in client.get('/users?q=COACH').get_json()] == [coach.id]

    def test_invalid_role_filter(self, login, coach):
        assert login(coach).get('/users?role=CAPTAIN').status_code == 400

    def test_login_required(self, client):
        assert client.get('/users').status_code == 401


class TestProfile:
    def test_update_self(self, login, player):
        response = login(player).patch(f'/users/{player.id}', json={
            'first_name': 'Pablo',
            'phone_number': '+216 22 333 444',
        })

        assert response.status_code == 200
        assert response.get_json()['first_name'] == 'Pablo'

    def test_cannot_edit_someone_else(self, login, player, player2):
        response = login(player).patch(f'/users/{player2.id}', json={'first_name': 'Hacked'})
        assert response.status_code == 403

    def test_only_owner_changes_role(self, login, owner, player, coach):
        assert login(player).patch(f'/users/{player.id}', json={'role': 'OWNER'}).status_code == 403

        response = login(owner).patch(f'/users/{coach.id}', json={'role': 'ARBITRE'})
        assert response.get_json()['role'] == 'ARBITRE'

    def test_weak_password_rejected(self, login, player):
        response = login(player).patch(f'/users/{player.id}', json={'password': 'password'})
        assert response.status_code == 400

    def test_non_string_name_rejected(self, login, player):
        response = login(player).patch(f'/users/{player.id}', json={'first_name': 123})

        assert response.status_code == 400
        db.session.expire_all()
        assert db.session.get(User, player.id).first_name == 'Paul'

    def test_email_taken(self, login, player, player2):
        response = login(player).patch(f'/users/{player.id}', json={'email': player2.email.upper()})
        assert response.status_code == 409

    def test_delete_own_account_only(self, login, player, player2):
        assert login(player).delete(f'/users/{player2.id}').status_code == 403
        assert login(player).delete(f'/users/{player.id}').status_code == 200
        assert db.session.get(User, player.id) is None


class TestNotifications:
    def test_list_and_mark_read(self, login, player):
        player.notify('Squad list published', context_type='coupe', context_ref='1')
        player.notify('Training moved', context_type='match', context_ref='2')
        db.session.commit()
        client = login(player)

        notes = client.get('/users/me/notifications').get_json()
        assert [n['message'] for n in notes] == ['Training moved', 'Squad list published']

        response = client.post(f"/users/me/notifications/{notes[0]['id']}/read")
        assert response.get_json()['is_read'] is True
        assert len(client.get('/users/me/notifications?unread=1').get_json()) == 1

    def test_cannot_read_others(self, login, player, player2):
        player2.notify('Private')
        db.session.commit()
        note = Notification.query.filter_by(user_id=player2.id).one()

        assert login(player).post(f'/users/me/notifications/{note.id}/read').status_code == 403


class TestProfileStats:
    def test_owner_record_and_trophies(self, login, owner, other_owner, make_team, make_coupe, team):
        rivals = make_team('Rivals', academy=other_owner)
        db.session.add_all([
            Match(team1_id=team.id, team2_id=rivals.id, status='TERMINE', team1_score=3, team2_score=1,
                  scheduled_at=datetime(2025, 3, 1, 15, 0)),
            Match(team1_id=rivals.id, team2_id=team.id, status='TERMINE', team1_score=2, team2_score=0,
                  scheduled_at=datetime(2025, 3, 8, 15, 0)),
            Match(team1_id=team.id, team2_id=rivals.id, scheduled_at=datetime(2025, 3, 15, 15, 0)),
        ])
        db.session.commit()
        make_coupe([team, rivals], winner_id=team.id)

        stats = login(owner).get(f'/users/{owner.id}/profile-stats').get_json()

        assert stats['role'] == 'OWNER'
        assert (stats['wins'], stats['losses'], stats['totalMatches']) == (1, 1, 2)
        assert stats['winRate'] == '50.0%'
        assert stats['totalPlayers'] == 1
        assert stats['trophies'] == 1
        assert [(m['status'], m['date'], m['score']) for m in stats['recentMatches']] == [
            ('L', 'Mar 8', '2-0'),
            ('W', 'Mar 1', '3-1'),
        ]

    def test_owner_without_teams(self, login, other_owner):
        stats = login(other_owner).get(f'/users/{other_owner.id}/profile-stats').get_json()
        assert stats['winRate'] == '0.0%'
        assert stats['recentMatches'] == []

    def test_player_goals_and_assists(self, login, player, player2, match):
        match.status = 'TERMINE'
        match.team1_score, match.team2_score = 2, 1
        db.session.add_all([
            MatchEvent(match_id=match.id, kind='goal', side='eq1', player_id=player.id),
            MatchEvent(match_id=match.id, kind='goal', side='eq1', player_id=player.id),
            MatchEvent(match_id=match.id, kind='assist', side='eq1', player_id=player.id),
            MatchEvent(match_id=match.id, kind='goal', side='eq2', player_id=player2.id),
        ])
        db.session.commit()
        client = login(player)

        stats = client.get(f'/users/{player.id}/profile-stats').get_json()
        assert stats['teamName'] == 'Lions'
        assert stats['academyName'] == 'Olivia Owner'
        assert (stats['matchesPlayed'], stats['goals'], stats['assists']) == (1, 2, 1)
        assert stats['recentMatches'] == [{'id': match.id, 'status': 'W', 'title': 'Match', 'date': 'N/A', 'score': '2-1'}]

        rival = client.get(f'/users/{player2.id}/profile-stats').get_json()
        assert rival['recentMatches'][0]['status'] == 'L'
        assert (rival['goals'], rival['assists']) == (1, 0)

    def test_player_without_team(self, login, make_user):
        loner = make_user()
        stats = login(loner).get(f'/users/{loner.id}/profile-stats').get_json()
        assert (stats['teamName'], stats['academyName'], stats['matchesPlayed']) == ('No team', 'Independent', 0)

    def test_referee_and_coach_follow_staff_links(self, login, owner, referee, coach, match):
        match.status = 'TERMINE'
        match.team1_score, match.team2_score = 1, 1
        db.session.commit()
        client = login(owner)

        assert client.get(f'/users/{referee.id}/profile-stats').get_json()['academyName'] == 'Independent'
        assert client.get(f'/users/{coach.id}/profile-stats').get_json()['teamName'] == 'No team'

        db.session.add_all([
            AcademyStaff(academy_id=owner.id, user_id=referee.id, role='ARBITRE'),
            AcademyStaff(academy_id=owner.id, user_id=coach.id, role='COACH'),
        ])
        db.session.commit()

        refereeing = client.get(f'/users/{referee.id}/profile-stats').get_json()
        assert refereeing['matchesRefereed'] == 1
        assert refereeing['academyName'] == 'Olivia Owner'
        assert refereeing['recentMatches'][0]['status'] == 'D'

        coaching = client.get(f'/users/{coach.id}/profile-stats').get_json()
        assert coaching['teamName'] == 'Lions, Tigers'
        assert (coaching['matchesCoached'], coaching['teamWins'], coaching['teamLosses']) == (1, 0, 0)

    def test_unknown_user(self, login, player):
        assert login(player).get('/users/9999/profile-stats').status_code == 404


class TestNames:
    def test_resolve_teams_and_users(self, login, player, team):
        response = login(player).post('/users/names', json={
            'teamIds': [team.id, 9999],
            'userIds': [player.id],
        })

        assert response.get_json() == {
            'teams': {str(team.id): 'Olivia Owner'},
            'users': {str(player.id): 'Paul Player'},
        }

    def test_ids_must_be_lists(self, login, player):
        assert login(player).post('/users/names', json={'teamIds': 3}).status_code == 400
