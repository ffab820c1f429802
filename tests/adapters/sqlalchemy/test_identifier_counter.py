from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import insert, select, update

from renewsync.adapters.sqlalchemy.mappings import (
    SHARED_COUNTER_NAME,
    execution_table,
    id_counter_table,
    payment_provider_config_table,
    shared_counter_tables,
    subscription_table,
)
from renewsync.domain.model import ExecutionRecord, ReconciliationStatus, SubscriptionStatus
from renewsync.domain.renewal import ChunkWriter
from tests.helpers.subscriptions import NOW, days, make_subscription

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session

    from renewsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyRenewalUnitOfWork

    UowFactory = Callable[[], SqlAlchemyRenewalUnitOfWork]


def _counter_value(session: Session) -> int | None:
    return session.execute(
        select(id_counter_table.c.next_value).where(id_counter_table.c.name == SHARED_COUNTER_NAME)
    ).scalar_one_or_none()


def _insert_raw_subscription(session: Session, row_id: int) -> None:
    session.execute(
        insert(subscription_table).values(
            id=row_id,
            tenant_id="tenant-1",
            external_subscription_id=f"sub_raw_{row_id}",
            status=SubscriptionStatus.ACTIVE,
            current_period_start=days(-30),
            current_period_end=days(0),
            cancel_at_period_end=False,
            reconciliation_status=ReconciliationStatus.PENDING,
        )
    )


def test_all_id_tables_share_one_counter() -> None:
    tables = shared_counter_tables()

    assert subscription_table in tables
    assert execution_table in tables
    assert payment_provider_config_table in tables
    assert id_counter_table not in tables


def test_counter_is_seeded_from_existing_rows(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        _insert_raw_subscription(uow.session, 41)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        counter = uow.repositories.identifiers
        assert counter.next_value() == 42
        assert counter.next_value() == 43
        uow.commit()
        assert _counter_value(uow.session) == 44


def test_ids_are_unique_across_tables(sqlite_unit_of_work: UowFactory) -> None:
    subscription = make_subscription(end_in_days=1)
    execution = ExecutionRecord(job_name="job", job_type="T", started_at=NOW)

    with sqlite_unit_of_work() as uow:
        uow.repositories.subscriptions.save(subscription)
        uow.repositories.executions.save(execution)
        uow.commit()

    assert subscription.id is not None
    assert execution.id is not None
    assert subscription.id != execution.id


def test_resync_moves_counter_forward_only(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        _insert_raw_subscription(uow.session, 10)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.identifiers.resync() == 11
        uow.session.execute(
            update(id_counter_table)
            .where(id_counter_table.c.name == SHARED_COUNTER_NAME)
            .values(next_value=500)
        )
        assert uow.repositories.identifiers.resync() == 500
        uow.commit()


def test_resync_on_empty_database_starts_at_one(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.identifiers.resync() == 1


def test_lagging_counter_is_recovered_during_write(sqlite_unit_of_work: UowFactory) -> None:
    first = make_subscription(end_in_days=1, external_id="sub_first")
    with sqlite_unit_of_work() as uow:
        uow.repositories.subscriptions.save(first)
        uow.commit()
    assert first.id is not None

    # a row written outside the counter takes the next id
    with sqlite_unit_of_work() as uow:
        _insert_raw_subscription(uow.session, first.id + 1)
        uow.commit()

    second = make_subscription(end_in_days=2, external_id="sub_second")
    with sqlite_unit_of_work() as uow:
        assert ChunkWriter(uow).write([second]) == 1

    assert second.id == first.id + 2
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.subscriptions.get_by_external_id("sub_second")
        assert stored is not None
        assert stored.id == second.id
        assert _counter_value(uow.session) == second.id + 1
