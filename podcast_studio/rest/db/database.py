"""
Database session management with SQLAlchemy.

Provides:
    - Engine creation from the `database url` setting (sqlite by default)
    - Session factory
    - Context manager for automatic session lifecycle management

Usage:
    from podcast_studio.rest.db.database import get_db

    with get_db() as session:
        podcast = session.query( Podcast ).filter( Podcast.id == podcast_id ).first()
        # session.commit() called automatically on success
        # session.rollback() called automatically on exception
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Generator, Optional
import logging

from podcast_studio.rest.podcast_models import Base

logger = logging.getLogger( __name__ )

DEFAULT_DATABASE_URL = "sqlite:///./podcast_studio.db"

engine       : Optional[Engine] = None
SessionLocal : Optional[sessionmaker] = None


def get_engine_config( database_url: str ) -> dict:
    """
    Get engine configuration for a database URL.

    Ensures:
        - sqlite: connections shareable across threads (asyncio.to_thread workers)
        - In-memory sqlite: one shared connection (StaticPool) so every session sees the same tables
        - Other databases: pre-ping pooled connections

    Returns:
        Dictionary of create_engine keyword arguments
    """
    if database_url.startswith( "sqlite" ):
        config = { "connect_args": { "check_same_thread": False } }
        if database_url in ( "sqlite://", "sqlite:///:memory:" ):
            config[ "poolclass" ] = StaticPool
        return config

    return {
        "pool_pre_ping": True,
        "pool_recycle" : 3600,
    }


def init_engine( database_url: str = DEFAULT_DATABASE_URL, create_tables: bool = True ) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    Requires:
        - database_url is a SQLAlchemy URL

    Ensures:
        - Module-level engine and SessionLocal are set
        - Tables exist when create_tables is True

    Returns:
        The new Engine
    """
    global engine, SessionLocal

    if engine is not None:
        engine.dispose()

    engine = create_engine( database_url, **get_engine_config( database_url ) )

    # Session factory (not thread-safe, use get_db() context manager instead)
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )

    if create_tables:
        Base.metadata.create_all( bind=engine )

    logger.info( f"Database engine initialized ({engine.url.get_backend_name()})" )
    return engine


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic lifecycle management.

    Ensures:
        - Engine initialized with the default URL on first use
        - Automatic commit on success
        - Automatic rollback on exception
        - Session always closed (prevents connection leaks)

    Yields:
        SQLAlchemy Session instance

    Raises:
        Any exception from database operations (re-raised after rollback)
    """
    if SessionLocal is None:
        init_engine()

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def quick_smoke_test():
    """Quick smoke test against an in-memory sqlite database."""
    import podcast_studio.utils.util as du

    du.print_banner( "Database Session Smoke Test", prepend_nl=True )

    try:
        init_engine( "sqlite://" )
        with get_db() as session:
            result = session.execute( text( "SELECT 1" ) ).scalar()
            print( f"✓ SELECT 1 -> {result}" )
        print( f"✓ Tables: {sorted( Base.metadata.tables.keys() )}" )
        print( "\n✓ Database smoke test completed successfully" )

    except Exception as e:
        print( f"\n✗ Smoke test failed: {e}" )
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    quick_smoke_test()
