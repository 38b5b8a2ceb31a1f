import pytest
from datetime import date, timedelta

from app import create_app
from models import (
    db,
    User,
    Team,
    TeamMember,
    Coupe,
    CoupeParticipant,
    Match,
    ROLE_COACH,
    ROLE_OWNER,
    ROLE_PLAYER,
    ROLE_REFEREE,
)

PASSWORD = 'Secret@123'


@pytest.fixture
def flask_app():
    """Create test application with in-memory SQLite database"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret-key',
        'SEED_DEFAULT_DATA': False,
    })

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(flask_app):
    """Test client"""
    return flask_app.test_client()


@pytest.fixture
def make_user(flask_app):
    """Factory creating committed users of any role"""
    counter = {'n': 0}

    def _make_user(role=ROLE_PLAYER, first_name=None, last_name='Tester', email=None):
        counter['n'] += 1
        n = counter['n']
        user = User(
            first_name=first_name or f'{role.title()}{n}',
            last_name=last_name,
            email=email or f'{role.lower()}{n}@academy.test',
            role=role,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def owner(make_user):
    return make_user(ROLE_OWNER, first_name='Olivia', last_name='Owner')


@pytest.fixture
def other_owner(make_user):
    return make_user(ROLE_OWNER, first_name='Oscar', last_name='Rival')


@pytest.fixture
def referee(make_user):
    return make_user(ROLE_REFEREE, first_name='Rami', last_name='Referee')


@pytest.fixture
def coach(make_user):
    return make_user(ROLE_COACH, first_name='Carla', last_name='Coach')


@pytest.fixture
def player(make_user):
    return make_user(ROLE_PLAYER, first_name='Paul', last_name='Player')


@pytest.fixture
def player2(make_user):
    return make_user(ROLE_PLAYER, first_name='Nina', last_name='Forward')


@pytest.fixture
def login(client):
    """Write the session the way /auth/login does and return the client"""
    def _login(user):
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
            sess['role'] = user.role
        return client

    return _login


@pytest.fixture
def make_team(flask_app, owner):
    """Factory creating teams for an academy, optionally with players"""
    counter = {'n': 0}

    def _make_team(name=None, academy=None, category='SENIOR', players=()):
        counter['n'] += 1
        team = Team(
            academy_id=(academy or owner).id,
            name=name or f'Team {counter["n"]}',
            category=category,
        )
        for p in players:
            team.members.append(TeamMember(player_id=p.id))
        db.session.add(team)
        db.session.commit()
        return team

    return _make_team


@pytest.fixture
def team(make_team, player):
    return make_team('Lions', players=[player])


@pytest.fixture
def team2(make_team, player2):
    return make_team('Tigers', players=[player2])


@pytest.fixture
def make_coupe(flask_app, owner):
    def _make_coupe(teams=(), organizer=None, **fields):
        coupe = Coupe(
            name=fields.pop('name', 'Spring Cup'),
            organizer_id=(organizer or owner).id,
            start_date=fields.pop('start_date', date.today()),
            end_date=fields.pop('end_date', date.today() + timedelta(days=14)),
            category=fields.pop('category', 'Senior'),
            **fields,
        )
        coupe.participants = [CoupeParticipant(team_id=t.id) for t in teams]
        db.session.add(coupe)
        db.session.commit()
        return coupe

    return _make_coupe


@pytest.fixture
def four_team_coupe(make_team, make_coupe):
    teams = [make_team(name) for name in ('Alpha', 'Bravo', 'Charlie', 'Delta')]
    return make_coupe(teams)


@pytest.fixture
def match(flask_app, team, team2, referee):
    """Create a scheduled friendly between the two fixture teams"""
    match = Match(team1_id=team.id, team2_id=team2.id, referee_id=referee.id, venue='Main Field')
    db.session.add(match)
    db.session.commit()
    return match
