"""
Tests for the SQLAlchemy-backed repositories used by the result processor
"""
from sqlalchemy import event
from sqlalchemy.dialects import postgresql

from models import db, Team
from services.repositories import SqlTeamRepository


class TestSqlTeamRepository:
    def test_increment_rereads_form_written_elsewhere(self, team):
        repo = SqlTeamRepository()
        repo.get(team.id)
        # another transaction recorded a result; this session still holds the old row
        Team.query.filter_by(id=team.id).update({'recent_form': ['W', 'L']}, synchronize_session=False)

        repo.increment_stats(team.id, result='D', goals_for=1, goals_against=1)
        db.session.commit()

        db.session.expire_all()
        assert db.session.get(Team, team.id).recent_form == ['W', 'L', 'D']

    def test_increment_locks_the_team_row(self, team):
        locking = []
        session = db.session()

        @event.listens_for(session, 'do_orm_execute')
        def capture(state):
            if state.is_select:
                sql = str(state.statement.compile(dialect=postgresql.dialect()))
                locking.append('FOR UPDATE' in sql)

        try:
            SqlTeamRepository().increment_stats(team.id, result='W', goals_for=2, goals_against=0)
        finally:
            event.remove(session, 'do_orm_execute', capture)

        assert any(locking)

    def test_form_keeps_last_five(self, team):
        repo = SqlTeamRepository()
        for result in ('W', 'W', 'L', 'D', 'W', 'L'):
            repo.increment_stats(team.id, result=result, goals_for=1, goals_against=1)
        db.session.commit()

        db.session.expire_all()
        stored = db.session.get(Team, team.id)
        assert stored.recent_form == ['W', 'L', 'D', 'W', 'L']
        assert stored.matches_played == 6
