"""Cooldown guard: suppress same-origin changes shortly after our own write.

A change that arrives from the side that did *not* write last is always a
genuine edit and propagates. A change from the same side inside the cooldown
window is treated as a repeat of the write we just applied.

Accepted trade-off: if a user legitimately edits the same side again within
the window, that edit is suppressed until the window expires and the next
poll or webhook observes it. Shortening the cooldown narrows this gap only at
the cost of more loop risk.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from notesync.services.datetime_service import now_utc

if TYPE_CHECKING:
    from notesync.services.mapping_store import Origin, SyncMapping

DEFAULT_COOLDOWN = timedelta(seconds=30)


def should_suppress(
    mapping: SyncMapping | None,
    incoming_origin: Origin,
    cooldown: timedelta = DEFAULT_COOLDOWN,
    now: datetime | None = None,
) -> bool:
    """Return True if a change from ``incoming_origin`` must be skipped."""
    if mapping is None:
        return False
    if mapping.last_write_origin != incoming_origin:
        return False
    current = now if now is not None else now_utc()
    return current - mapping.last_write_timestamp < cooldown
