from lta_bus.config.config_main import db_config

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager

# Base class for SQLAlchemy models
Base = declarative_base()

class ConnectionBroker:

    _engine = None
    _SessionLocal = None

    @staticmethod
    def build_engine(url: str):
        """Create an engine for the given URL; in-memory SQLite shares one connection."""
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False
            )
        else:
            engine = create_engine(
                url,
                pool_pre_ping=True,  # Verify connections before using
                echo=False  # Set to True for SQL debug logging
            )

        if engine.dialect.name == "sqlite":
            # SQLite ships with foreign key enforcement off
            @event.listens_for(engine, "connect")
            def enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    @staticmethod
    def get_engine():
        """Get or create SQLAlchemy engine."""
        if ConnectionBroker._engine is None:
            ConnectionBroker._engine = ConnectionBroker.build_engine(db_config.url)
        return ConnectionBroker._engine

    @staticmethod
    def build_session_factory(engine):
        # Query results are read after the session closes
        return sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=engine
        )

    @staticmethod
    def get_session_factory():
        """Get or create SQLAlchemy session factory."""
        if ConnectionBroker._SessionLocal is None:
            engine = ConnectionBroker.get_engine()
            ConnectionBroker._SessionLocal = ConnectionBroker.build_session_factory(engine)
        return ConnectionBroker._SessionLocal

    @staticmethod
    def reset():
        """Forget the cached engine and session factory."""
        if ConnectionBroker._engine is not None:
            ConnectionBroker._engine.dispose()
        ConnectionBroker._engine = None
        ConnectionBroker._SessionLocal = None

    @staticmethod
    @contextmanager
    def get_session(session_factory=None):
        """
        Get a SQLAlchemy session with automatic cleanup.

        Usage:
            with ConnectionBroker.get_session() as session:
                session.query(Model).all()
        """
        SessionLocal = session_factory or ConnectionBroker.get_session_factory()
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
