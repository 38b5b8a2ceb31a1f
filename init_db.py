"""
Database initialization script for deployments
Run with: python init_db.py
"""

import logging

from app import create_app
from models import db, init_default_data

logger = logging.getLogger(__name__)


def initialize_database(app=None):
    """Create tables and the default owner account"""
    app = app or create_app({'SEED_DEFAULT_DATA': False})
    with app.app_context():
        logger.info("Creating database tables...")
        db.create_all()

        logger.info("Initializing default data...")
        admin = init_default_data()

        logger.info("Database initialized; default owner account: %s", admin.email)
    return admin.id


if __name__ == "__main__":
    initialize_database()
