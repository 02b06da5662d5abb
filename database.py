"""
Database management: engine, session factory and session helpers
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from config import Config
import logging

logger = logging.getLogger(__name__)

# Global engine and session factory
ENGINE = None
SessionLocal = None


def init_database(database_uri: str = None, engine_options: dict = None):
    """Initialize database engine and session factory"""
    global ENGINE, SessionLocal

    config = Config()
    database_uri = database_uri or config.get_database_uri()

    if database_uri.startswith('sqlite'):
        options = {'connect_args': {'check_same_thread': False}}
        if ':memory:' in database_uri:
            # One shared connection, otherwise every session sees an empty database
            options['poolclass'] = StaticPool
    else:
        options = dict(engine_options or config.SQLALCHEMY_ENGINE_OPTIONS)

    if ENGINE is not None:
        ENGINE.dispose()

    ENGINE = create_engine(database_uri, **options)
    SessionLocal = sessionmaker(bind=ENGINE, autoflush=False, autocommit=False, expire_on_commit=False)

    logger.info(f"Database initialized: {ENGINE.url.render_as_string(hide_password=True)}")
    return ENGINE, SessionLocal


def get_session():
    """Get a database session"""
    if SessionLocal is None:
        init_database()
    return SessionLocal()


def get_engine():
    if ENGINE is None:
        init_database()
    return ENGINE
