"""Database connection management for the engine's persisted state."""

import os
from contextlib import contextmanager
from typing import Generator, Iterable, Optional

from sqlalchemy import create_engine, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, EngineCounterModel

TEMPLATES_CREATED_COUNTER = "templates_created"
REGISTRY_VERSION_COUNTER = "category_registry_version"

DEFAULT_COUNTERS = (TEMPLATES_CREATED_COUNTER, REGISTRY_VERSION_COUNTER)


def get_database_url(
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """
    Build the database URL from parameters or environment variables.

    `CONTRACT_COMPOSER_DATABASE_URL` wins when set and no parameter is given.

    Args:
        host: Database host (default: from POSTGRES_HOST env or 'localhost')
        port: Database port (default: from POSTGRES_PORT env or 5432)
        database: Database name (default: from POSTGRES_DB env or 'contract_composer')
        user: Database user (default: from POSTGRES_USER env or 'postgres')
        password: Database password (default: from POSTGRES_PASSWORD env or 'postgres')

    Returns:
        Database connection URL string.
    """
    explicit = os.environ.get("CONTRACT_COMPOSER_DATABASE_URL")
    if explicit and not any((host, port, database, user, password)):
        return explicit

    host = host or os.environ.get("POSTGRES_HOST", "localhost")
    port = port or int(os.environ.get("POSTGRES_PORT", "5432"))
    database = database or os.environ.get("POSTGRES_DB", "contract_composer")
    user = user or os.environ.get("POSTGRES_USER", "postgres")
    password = password or os.environ.get("POSTGRES_PASSWORD", "postgres")

    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


class DatabaseManager:
    """
    Database connection manager with connection pooling.

    Handles database connections, session management, and schema initialization.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        """
        Initialize the database manager.

        Args:
            database_url: Database URL. If None, built from env vars.
            pool_size: Number of connections to keep in the pool.
            max_overflow: Maximum overflow connections beyond pool_size.
            echo: If True, log all SQL statements.
        """
        self._database_url = database_url or get_database_url()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._echo = echo

    @property
    def database_url(self) -> str:
        return self._database_url

    @property
    def engine(self) -> Engine:
        """Get or create the database engine."""
        if self._engine is None:
            if self._database_url.startswith("sqlite"):
                # SQLite takes no pool sizing; share connections across threads
                kwargs = {"connect_args": {"check_same_thread": False}}
                if ":memory:" in self._database_url or self._database_url == "sqlite://":
                    kwargs["poolclass"] = StaticPool
                self._engine = create_engine(self._database_url, echo=self._echo, **kwargs)
            else:
                self._engine = create_engine(
                    self._database_url,
                    pool_size=self._pool_size,
                    max_overflow=self._max_overflow,
                    echo=self._echo,
                    pool_pre_ping=True,
                )
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Get a database session with automatic commit/rollback.

        Yields:
            SQLAlchemy Session object.

        Example:
            with db_manager.get_session() as session:
                session.add(some_object)
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, counters: Iterable[str] = DEFAULT_COUNTERS) -> None:
        """
        Create all tables and seed the named counters.

        Args:
            counters: Counter names to create with value 0 when missing.
        """
        Base.metadata.create_all(self.engine)
        with self.get_session() as session:
            existing = set(session.execute(select(EngineCounterModel.name)).scalars())
            for name in counters:
                if name not in existing:
                    session.add(EngineCounterModel(name=name, value=0))

    def drop_all_tables(self) -> None:
        """Drop all tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    def close(self) -> None:
        """Close the database engine and release all connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def health_check(self) -> bool:
        """
        Check if the database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False


def increment_counter(session: Session, name: str, amount: int = 1) -> None:
    """Atomically add `amount` to a named counter inside `session`."""
    result = session.execute(
        update(EngineCounterModel)
        .where(EngineCounterModel.name == name)
        .values(value=EngineCounterModel.value + amount)
    )
    if result.rowcount == 0:
        session.add(EngineCounterModel(name=name, value=amount))
        session.flush()


def get_counter(session: Session, name: str) -> int:
    """Read a named counter, 0 when it does not exist."""
    value = session.execute(
        select(EngineCounterModel.value).where(EngineCounterModel.name == name)
    ).scalar()
    return value or 0
