"""Shared identifier counter stored in the ``id_counter`` table."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import case, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from renewsync.adapters.sqlalchemy.mappings import (
    SHARED_COUNTER_NAME,
    id_counter_table,
    shared_counter_tables,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Table
    from sqlalchemy.orm import Session

log = getLogger(__name__)


class CounterAdjustmentError(RuntimeError):
    """Raised when the shared counter cannot be read or advanced."""


class SqlAlchemyIdentifierCounter:
    """Allocate integer ids for every table sharing one counter row.

    The counter lives in the session's transaction, so an allocation rolled back
    with its SAVEPOINT is handed out again.
    """

    def __init__(
        self,
        session: Session,
        *,
        name: str = SHARED_COUNTER_NAME,
        tables: Sequence[Table] | None = None,
    ) -> None:
        self.session = session
        self.name = name
        self.tables = tuple(tables) if tables is not None else shared_counter_tables(name)

    def next_value(self) -> int:
        current = self.session.execute(
            select(id_counter_table.c.next_value)
            .where(id_counter_table.c.name == self.name)
            .with_for_update()
        ).scalar_one_or_none()
        if current is None:
            current = self._max_identifier() + 1
            self.session.execute(
                insert(id_counter_table).values(name=self.name, next_value=current + 1)
            )
        else:
            self.session.execute(
                update(id_counter_table)
                .where(id_counter_table.c.name == self.name)
                .values(next_value=current + 1)
            )
        return current

    def resync(self) -> int:
        """Move the counter past the largest id in every sharing table; never backwards."""

        try:
            target = self._max_identifier() + 1
            existing = self.session.execute(
                select(id_counter_table.c.next_value).where(id_counter_table.c.name == self.name)
            ).scalar_one_or_none()
            if existing is None:
                self.session.execute(
                    insert(id_counter_table).values(name=self.name, next_value=target)
                )
            else:
                column = id_counter_table.c.next_value
                self.session.execute(
                    update(id_counter_table)
                    .where(id_counter_table.c.name == self.name)
                    .values(next_value=case((column < target, target), else_=column))
                )
            next_value = self.session.execute(
                select(id_counter_table.c.next_value).where(id_counter_table.c.name == self.name)
            ).scalar_one()
        except SQLAlchemyError as exc:
            if "permission denied" in str(exc).lower():
                log.error(  # noqa: TRY400
                    "Insufficient privileges to adjust identifier counter %s", self.name
                )
            raise CounterAdjustmentError(
                f"Could not resynchronise identifier counter {self.name}"
            ) from exc

        log.info("Identifier counter %s resynchronised; next value %s", self.name, next_value)
        return next_value

    def _max_identifier(self) -> int:
        highest = 0
        for table in self.tables:
            value = self.session.execute(select(func.max(table.c.id))).scalar_one_or_none()
            if value is not None and value > highest:
                highest = int(value)
        return highest
