"""
Integration tests for the matches blueprint
"""
from models import db, Match, Team


class TestMatchCreation:
    def test_owner_creates_match(self, login, owner, team, team2, referee):
        response = login(owner).post('/matches', json={
            'id_equipe1': team.id,
            'id_equipe2': team2.id,
            'id_arbitre': referee.id,
            'venue': 'Stade Olympique',
            'date': '2026-09-01T16:00:00',
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['statut'] == 'PROGRAMME'
        assert body['score_eq1'] is None
        assert body['nextMatch'] is None

    def test_team_cannot_play_itself(self, login, owner, team):
        response = login(owner).post('/matches', json={'id_equipe1': team.id, 'id_equipe2': team.id})
        assert response.status_code == 400
        assert Match.query.count() == 0

    def test_unknown_team(self, login, owner, team):
        response = login(owner).post('/matches', json={'id_equipe1': team.id, 'id_equipe2': 999})
        assert response.status_code == 404

    def test_referee_must_have_referee_role(self, login, owner, team, team2, coach):
        response = login(owner).post('/matches', json={
            'id_equipe1': team.id,
            'id_equipe2': team2.id,
            'id_arbitre': coach.id,
        })
        assert response.status_code == 400

    def test_cannot_create_finished(self, login, owner, team, team2):
        response = login(owner).post('/matches', json={
            'id_equipe1': team.id,
            'id_equipe2': team2.id,
            'statut': 'TERMINE',
        })
        assert response.status_code == 400


class TestMatchUpdate:
    def test_referee_finishes_match_and_stats_update(self, login, referee, match, team, team2):
        response = login(referee).patch(f'/matches/{match.id}', json={
            'statut': 'TERMINE',
            'score_eq1': 3,
            'score_eq2': 1,
        })

        assert response.status_code == 200
        db.session.expire_all()
        home, away = db.session.get(Team, team.id), db.session.get(Team, team2.id)
        assert (home.wins, home.goals_for, home.goals_against) == (1, 3, 1)
        assert (away.losses, away.goals_for, away.goals_against) == (1, 1, 3)

    def test_referee_limited_to_status_and_scores(self, login, referee, match):
        response = login(referee).patch(f'/matches/{match.id}', json={'venue': 'Elsewhere'})
        assert response.status_code == 403

    def test_other_referee_rejected(self, login, make_user, match):
        stranger = make_user('ARBITRE')
        response = login(stranger).patch(f'/matches/{match.id}', json={'statut': 'EN_COURS'})
        assert response.status_code == 403

    def test_player_cannot_update(self, login, player, match):
        assert login(player).patch(f'/matches/{match.id}', json={'statut': 'EN_COURS'}).status_code == 403

    def test_finish_without_scores_rejected(self, login, owner, match, team):
        response = login(owner).patch(f'/matches/{match.id}', json={'statut': 'TERMINE', 'score_eq1': 2})

        assert response.status_code == 409
        db.session.expire_all()
        assert db.session.get(Match, match.id).status == 'PROGRAMME'
        assert db.session.get(Team, team.id).matches_played == 0

    def test_finished_match_is_terminal(self, login, owner, match):
        client = login(owner)
        client.patch(f'/matches/{match.id}', json={'statut': 'TERMINE', 'score_eq1': 1, 'score_eq2': 0})

        assert client.patch(f'/matches/{match.id}', json={'statut': 'EN_COURS'}).status_code == 409
        assert client.patch(f'/matches/{match.id}', json={'score_eq2': 4}).status_code == 409

    def test_owner_edits_details(self, login, owner, match):
        response = login(owner).patch(f'/matches/{match.id}', json={'venue': 'Annex', 'round': 2})
        body = response.get_json()
        assert body['venue'] == 'Annex'
        assert body['round'] == 2

    def test_unknown_field(self, login, owner, match):
        response = login(owner).patch(f'/matches/{match.id}', json={'nextMatch': 5})
        assert response.status_code == 400

    def test_missing_match(self, login, owner):
        assert login(owner).patch('/matches/999', json={'statut': 'EN_COURS'}).status_code == 404

    def test_delete_match(self, login, owner, match):
        assert login(owner).delete(f'/matches/{match.id}').status_code == 200
        assert db.session.get(Match, match.id) is None


class TestMatchEvents:
    def test_goal_and_scorers(self, login, referee, match, player):
        client = login(referee)
        for _ in range(2):
            response = client.post(f'/matches/{match.id}/events', json={
                'kind': 'goal', 'side': 'eq1', 'player_id': player.id,
            })
            assert response.status_code == 201

        scorers = client.get(f'/matches/{match.id}/scorers').get_json()
        assert scorers['eq1'] == [{'player': player.id, 'goals': 2}]
        assert scorers['eq2'] == []

    def test_scorer_must_play_for_side(self, login, referee, match, player2):
        response = login(referee).post(f'/matches/{match.id}/events', json={
            'kind': 'goal', 'side': 'eq1', 'player_id': player2.id,
        })
        assert response.status_code == 400

    def test_cards_by_color(self, login, referee, match, player, player2):
        client = login(referee)
        client.post(f'/matches/{match.id}/events', json={'kind': 'yellow_card', 'side': 'eq1', 'player_id': player.id})
        client.post(f'/matches/{match.id}/events', json={'kind': 'red_card', 'side': 'eq2', 'player_id': player2.id})

        assert client.get(f'/matches/{match.id}/cards?color=yellow').get_json()['players'] == [player.id]
        assert client.get(f'/matches/{match.id}/cards?color=red').get_json()['players'] == [player2.id]
        assert client.get(f'/matches/{match.id}/cards?color=green').status_code == 400

    def test_corners_counted_per_side(self, login, referee, match):
        client = login(referee)
        for side in ('eq1', 'eq1', 'eq2'):
            client.post(f'/matches/{match.id}/events', json={'kind': 'corner', 'side': side})

        body = client.get(f'/matches/{match.id}').get_json()
        assert body['corner_eq1'] == 2
        assert body['corner_eq2'] == 1
        assert body['penalty_eq1'] == 0

    def test_unknown_kind(self, login, referee, match):
        response = login(referee).post(f'/matches/{match.id}/events', json={'kind': 'dive', 'side': 'eq1'})
        assert response.status_code == 400
