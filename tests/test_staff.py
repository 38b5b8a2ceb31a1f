"""
Integration tests for linking referees and coaches to an academy
"""
from models import db, AcademyStaff


class TestReferees:
    def test_add_list_and_check(self, login, owner, referee):
        client = login(owner)

        response = client.post(f'/staff/{owner.id}/referees', json={'userId': referee.id})
        assert response.status_code == 201
        assert response.get_json()['role'] == 'ARBITRE'

        assert [u['id'] for u in client.get(f'/staff/{owner.id}/referees').get_json()] == [referee.id]
        assert client.get(f'/staff/{owner.id}/referees/{referee.id}').get_json() == {'member': True}
        assert client.get(f'/staff/{owner.id}/coaches').get_json() == []

    def test_duplicate_rejected(self, login, owner, referee):
        client = login(owner)
        client.post(f'/staff/{owner.id}/referees', json={'userId': referee.id})

        assert client.post(f'/staff/{owner.id}/referees', json={'userId': referee.id}).status_code == 409
        assert AcademyStaff.query.count() == 1

    def test_role_must_match(self, login, owner, referee, player):
        client = login(owner)
        assert client.post(f'/staff/{owner.id}/coaches', json={'userId': referee.id}).status_code == 400
        assert client.post(f'/staff/{owner.id}/referees', json={'userId': player.id}).status_code == 400

    def test_remove(self, login, owner, referee):
        client = login(owner)
        client.post(f'/staff/{owner.id}/referees', json={'userId': referee.id})

        assert client.delete(f'/staff/{owner.id}/referees/{referee.id}').status_code == 200
        assert client.get(f'/staff/{owner.id}/referees/{referee.id}').get_json() == {'member': False}
        assert client.delete(f'/staff/{owner.id}/referees/{referee.id}').status_code == 404


class TestPermissions:
    def test_only_the_academy_owner_manages_staff(self, login, owner, other_owner, coach):
        response = login(other_owner).post(f'/staff/{owner.id}/coaches', json={'userId': coach.id})
        assert response.status_code == 403

    def test_staff_cannot_add_themselves(self, login, owner, coach):
        response = login(coach).post(f'/staff/{owner.id}/coaches', json={'userId': coach.id})
        assert response.status_code == 403

    def test_academy_must_be_an_owner(self, login, owner, coach):
        assert login(owner).get(f'/staff/{coach.id}/coaches').status_code == 404

    def test_account_deletion_drops_links(self, login, owner, coach):
        db.session.add(AcademyStaff(academy_id=owner.id, user_id=coach.id, role='COACH'))
        db.session.commit()

        assert login(coach).delete(f'/users/{coach.id}').status_code == 200
        assert AcademyStaff.query.count() == 0
