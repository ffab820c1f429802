"""Chunked persistence of reconciled subscriptions."""

from __future__ import annotations

from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING

from renewsync.domain.identifiers import recover_identifier_collisions

from .context import DEFAULT_CHUNK_SIZE

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from renewsync.domain.model import SubscriptionRecord
    from renewsync.domain.ports.unit_of_work import RenewalUnitOfWork

log = getLogger(__name__)


class ChunkWriter:
    """Save reconciled records through an open unit of work, one commit per chunk.

    A chunk is all-or-nothing: any failure rolls the chunk back and propagates.
    Chunks committed earlier stay committed.
    """

    def __init__(self, unit_of_work: RenewalUnitOfWork, *, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._uow = unit_of_work
        self.chunk_size = chunk_size
        repositories = unit_of_work.repositories
        self._save = recover_identifier_collisions(
            repositories.subscriptions.save,
            resync=repositories.identifiers.resync,
        )

    def write(self, records: Sequence[SubscriptionRecord]) -> int:
        """Persist ``records`` atomically and return how many were written."""

        if not records:
            return 0
        try:
            for record in records:
                self._save(record)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            raise
        log.debug("Committed chunk of %d subscription(s)", len(records))
        return len(records)

    def write_all(
        self,
        records: Iterable[SubscriptionRecord],
        *,
        on_commit: Callable[[Sequence[SubscriptionRecord]], None] | None = None,
    ) -> int:
        """Split ``records`` into chunks and write each in turn.

        ``on_commit`` receives every chunk after it has been committed.
        """

        written = 0
        for chunk in batched(records, self.chunk_size):
            written += self.write(chunk)
            if on_commit is not None:
                on_commit(chunk)
        return written
