from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.exc import IntegrityError

from renewsync.adapters.sqlalchemy.mappings import subscription_table
from renewsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyRenewalUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from renewsync.domain.model import ReconciliationStatus, SubscriptionStatus
from tests.helpers.subscriptions import days, make_subscription

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyRenewalUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:")
    engine_b = create_engine("sqlite+pysqlite:///:memory:")

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_startup_accepts_database_uri() -> None:
    startup(database_uri="sqlite+pysqlite:///:memory:")

    engine = configured_engine()
    assert engine is not None
    assert engine.dialect.name == "sqlite"


def test_repositories_require_an_open_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(StartupError):
        _ = SqlAlchemyRenewalUnitOfWork().repositories


def test_exception_rolls_back_uncommitted_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError), SqlAlchemyRenewalUnitOfWork() as uow:
        uow.repositories.subscriptions.save(make_subscription(end_in_days=1, external_id="lost"))
        raise RuntimeError("abort")

    with SqlAlchemyRenewalUnitOfWork() as uow:
        assert uow.repositories.subscriptions.get_by_external_id("lost") is None


def test_failed_save_keeps_earlier_saves_in_transaction(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    with SqlAlchemyRenewalUnitOfWork() as uow:
        uow.session.execute(
            insert(subscription_table).values(
                id=999,
                tenant_id="tenant-1",
                status=SubscriptionStatus.ACTIVE,
                current_period_start=days(-30),
                current_period_end=days(0),
                cancel_at_period_end=False,
                reconciliation_status=ReconciliationStatus.PENDING,
            )
        )
        uow.commit()
    kept = make_subscription(end_in_days=1, external_id="kept")
    duplicate = make_subscription(end_in_days=2, external_id="duplicate", record_id=999)

    with SqlAlchemyRenewalUnitOfWork() as uow:
        uow.repositories.subscriptions.save(kept)
        with pytest.raises(IntegrityError):
            uow.repositories.subscriptions.save(duplicate)
        assert duplicate.id == 999
        uow.commit()

    with SqlAlchemyRenewalUnitOfWork() as uow:
        assert uow.repositories.subscriptions.get_by_external_id("kept") is not None
        assert uow.repositories.subscriptions.get_by_external_id("duplicate") is None
