"""Message visibility: which stored messages a given identity may read.

A message is visible to ``requester`` when it is addressed to everyone, was
sent by the requester, or is addressed to the requester. Status notices are
always addressed to everyone, so they are visible to all.
"""

from __future__ import annotations

from batepapo.models import EVERYONE
from batepapo.store import ChatStore


def visibility_query(requester: str | None) -> dict:
    """Store query selecting the messages ``requester`` may read."""
    clauses: list[dict] = [{"to": EVERYONE}]
    if requester:
        clauses.append({"from": requester})
        clauses.append({"to": requester})
    return {"$or": clauses}


def parse_limit(raw) -> int | None:
    """Interpret the ``limit`` query parameter.

    Missing, non-numeric or non-positive values mean "no limit".
    """
    if raw is None or isinstance(raw, bool):
        return None
    try:
        limit = int(str(raw).strip())
    except ValueError:
        return None
    return limit if limit > 0 else None


class VisibilityFilter:
    """Lists the tail of the message stream visible to one identity."""

    def __init__(self, store: ChatStore) -> None:
        self._store = store

    async def list_visible(self, requester: str | None, limit=None) -> list[dict]:
        """Visible messages oldest to newest, at most the latest ``limit`` of them.

        The store returns newest first so only the requested tail is read;
        the window is reversed here to restore chronological order.
        """
        requester = (requester or "").strip() or None
        newest_first = await self._store.find_latest_messages(
            visibility_query(requester), parse_limit(limit),
        )
        return list(reversed(newest_first))
