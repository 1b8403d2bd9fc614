"""
RouteDesk Client — Row Identifiers
====================================

A row in the working copy is either already stored on the server
(`PersistedId`, wrapping the serial id) or created locally and not saved yet
(`PendingId`, wrapping an opaque token). The two never compare equal, so a
pending row can never be mistaken for a stored one, whatever its token.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class PersistedId:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class PendingId:
    token: str

    def __str__(self) -> str:
        return f"pending:{self.token}"


RowId = Union[PersistedId, PendingId]


def new_pending_id() -> PendingId:
    return PendingId(token=uuid.uuid4().hex)


def is_pending(row_id: RowId) -> bool:
    return isinstance(row_id, PendingId)


def as_row_id(value: Any) -> RowId:
    """Wrap a server id; RowId values pass through unchanged."""
    if isinstance(value, (PersistedId, PendingId)):
        return value
    return PersistedId(int(value))
