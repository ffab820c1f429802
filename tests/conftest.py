from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from renewsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyRenewalUnitOfWork,
    shutdown,
    startup,
)

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    # file-backed so separate sessions (credential lookups) get their own connection
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'renewsync.db'}")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyRenewalUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyRenewalUnitOfWork:
        return SqlAlchemyRenewalUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()
