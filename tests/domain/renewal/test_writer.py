from __future__ import annotations

import pytest

from renewsync.domain.renewal import ChunkWriter
from tests.helpers.subscriptions import (
    FakeIdentifierCounter,
    FakeRenewalUnitOfWork,
    FakeSubscriptionRepository,
    make_subscription,
)


class _PrimaryKeyError(Exception):
    def __init__(self) -> None:
        super().__init__(
            'duplicate key value violates unique constraint "pk_membership_subscription"'
        )


def _uow() -> FakeRenewalUnitOfWork:
    counter = FakeIdentifierCounter(start=10)
    return FakeRenewalUnitOfWork(
        subscriptions=FakeSubscriptionRepository(counter=counter),
        identifiers=counter,
    )


def test_write_all_commits_once_per_chunk() -> None:
    uow = _uow()
    records = [make_subscription(end_in_days=1, external_id=f"sub_{i}") for i in range(5)]
    committed: list[int] = []

    writer = ChunkWriter(uow, chunk_size=2)
    written = writer.write_all(records, on_commit=lambda chunk: committed.append(len(chunk)))

    assert written == 5
    assert committed == [2, 2, 1]
    assert uow.commits == 3
    assert uow.repositories.subscriptions.saved == records


def test_empty_chunk_is_not_committed() -> None:
    uow = _uow()

    assert ChunkWriter(uow).write([]) == 0
    assert uow.commits == 0


def test_collision_is_resynced_and_retried_once() -> None:
    uow = _uow()
    uow.repositories.subscriptions.save_errors.append(_PrimaryKeyError())
    record = make_subscription(end_in_days=1)

    assert ChunkWriter(uow).write([record]) == 1

    assert uow.repositories.identifiers.resync_calls == 1
    assert uow.repositories.subscriptions.saved == [record]
    assert uow.commits == 1


def test_non_collision_failure_rolls_back_and_propagates() -> None:
    uow = _uow()
    uow.repositories.subscriptions.save_errors.append(RuntimeError("disk full"))

    with pytest.raises(RuntimeError, match="disk full"):
        ChunkWriter(uow).write([make_subscription(end_in_days=1)])

    assert uow.repositories.identifiers.resync_calls == 0
    assert uow.rollbacks == 1
    assert uow.commits == 0


def test_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValueError, match="chunk_size"):
        ChunkWriter(_uow(), chunk_size=0)
