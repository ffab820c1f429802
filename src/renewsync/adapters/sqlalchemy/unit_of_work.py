"""SQLAlchemy-backed units of work for the renewal pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from renewsync.adapters.sqlalchemy.identifiers import SqlAlchemyIdentifierCounter
from renewsync.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from renewsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyExecutionRepository,
    SqlAlchemyProviderCredentialStore,
    SqlAlchemySubscriptionRepository,
)
from renewsync.config.storage import get_database_config
from renewsync.domain.ports.unit_of_work import RenewalRepositories, RepositoryCollection

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.pool import ConnectionPoolEntry


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call renewsync.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def _sqlite_on_connect(dbapi_connection: object, connection_record: ConnectionPoolEntry) -> None:
    _ = connection_record
    # let SQLAlchemy emit BEGIN itself so SAVEPOINT behaves
    dbapi_connection.isolation_level = None  # type: ignore[attr-defined]


def _sqlite_on_begin(connection: Connection) -> None:
    connection.exec_driver_sql("BEGIN")


def enable_sqlite_savepoints(engine: Engine) -> None:
    """Install the pysqlite transaction hooks that make SAVEPOINT work.

    Must run before the engine opens its first connection. No-op for other
    dialects and for engines that already carry the hooks.
    """

    if engine.dialect.name != "sqlite" or event.contains(engine, "begin", _sqlite_on_begin):
        return
    event.listen(engine, "connect", _sqlite_on_connect)
    event.listen(engine, "begin", _sqlite_on_begin)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, metadata, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(database_uri or get_database_config().uri)
    enable_sqlite_savepoints(resolved_engine)
    start_mappers()
    create_all_tables(resolved_engine)

    _STATE.engine = resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


def session_factory() -> sessionmaker[Session]:
    return _STATE.session_factory


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyRenewalUnitOfWork(BaseSqlAlchemyUnitOfWork[RenewalRepositories]):
    """Unit of work over subscriptions, execution logs and the shared counter."""

    def _build_repositories(self, session: Session) -> RenewalRepositories:
        counter = SqlAlchemyIdentifierCounter(session)
        return RenewalRepositories(
            subscriptions=SqlAlchemySubscriptionRepository(session, counter),
            executions=SqlAlchemyExecutionRepository(session, counter),
            identifiers=counter,
        )


class SqlAlchemyTenantRegistry:
    """Tenants are the distinct tenant ids present in the subscription table."""

    def __init__(
        self,
        unit_of_work_factory: Callable[[], SqlAlchemyRenewalUnitOfWork] = SqlAlchemyRenewalUnitOfWork,
    ) -> None:
        self._uow_factory = unit_of_work_factory

    def tenant_ids(self) -> Sequence[str]:
        with self._uow_factory() as uow:
            return list(uow.repositories.subscriptions.distinct_tenant_ids())


def credential_store(*, decrypt: Callable[[str], str] | None = None) -> SqlAlchemyProviderCredentialStore:
    """Build a credential store reading through the adapter's session factory."""

    return SqlAlchemyProviderCredentialStore(session_factory(), decrypt=decrypt)
