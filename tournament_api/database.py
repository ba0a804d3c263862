"""Transaction handling for the service layer.

Usage:
    with transaction() as session:
        tournament = owned_tournament(session, tournament_id, user_id, lock=True)
        session.add(...)
        # commits on exit, rolls back and re-raises on any exception
"""
from contextlib import contextmanager

from tournament_api.app import db


@contextmanager
def transaction():
    """Run one logical write as a single commit.

    The yielded session is the handle every repository helper receives.
    Validation errors and database errors alike roll back everything written
    inside the block.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
