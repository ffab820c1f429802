"""Recovery from primary-key collisions on the shared identifier counter.

Several tables draw their integer ids from one counter. Rows inserted through
paths that bypass it (bulk imports, manual fixes) leave the counter behind the
real maximum, and the next allocation collides with an existing row. The
decorator here turns that into a one-off resync followed by a single retry.
"""

from __future__ import annotations

from functools import wraps
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

_POSTGRES_DUPLICATE = "duplicate key value violates unique constraint"
_POSTGRES_PK_MARKERS = ("pkey", "pk_", "primary key")
_SQLITE_UNIQUE = "unique constraint failed:"


def _messages(exc: BaseException) -> list[str]:
    messages: list[str] = []
    current: BaseException | None = exc
    seen: set[int] = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        messages.append(str(current).lower())
        current = current.__cause__ or getattr(current, "orig", None)
    return messages


def is_primary_key_violation(exc: BaseException) -> bool:
    """Return whether ``exc`` (or its cause) reports a primary-key uniqueness violation."""

    for message in _messages(exc):
        if _POSTGRES_DUPLICATE in message and any(m in message for m in _POSTGRES_PK_MARKERS):
            return True
        if _SQLITE_UNIQUE in message:
            tail = message.split(_SQLITE_UNIQUE, 1)[1].strip()
            first_line = tail.splitlines()[0] if tail else ""
            if any(column.strip().endswith(".id") for column in first_line.split(",")):
                return True
    return False


def recover_identifier_collisions[T, R](
    save: Callable[[T], R],
    *,
    resync: Callable[[], int],
    is_collision: Callable[[BaseException], bool] = is_primary_key_violation,
) -> Callable[[T], R]:
    """Wrap ``save`` so a primary-key collision triggers one resync and one retry.

    The original error propagates when the resync itself fails or the retry
    fails again.
    """

    @wraps(save)
    def wrapper(item: T) -> R:
        try:
            return save(item)
        except Exception as exc:
            if not is_collision(exc):
                raise
            log.warning("Primary key collision while saving %r; resynchronising counter", item)
            try:
                next_value = resync()
            except Exception:
                log.exception("Identifier counter could not be resynchronised")
                raise exc from None
            log.info("Identifier counter resynchronised to %s; retrying save once", next_value)
            try:
                return save(item)
            except Exception as retry_exc:
                log.error("Save failed again after counter resync: %s", retry_exc)  # noqa: TRY400
                raise exc from retry_exc

    return wrapper
