"""Pure reductions behind the unread badge."""
from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from typing import Any

BADGE_CAP = 9


def unread_of(conversation: Any) -> int:
    """A conversation's unread count. Missing or None counts as 0.

    Accepts model instances as well as plain decoded JSON objects.
    """
    if isinstance(conversation, Mapping):
        value = conversation.get("unread_count")
    else:
        value = getattr(conversation, "unread_count", None)
    return value or 0


def conversation_key(conversation: Any) -> str:
    if isinstance(conversation, Mapping):
        return str(conversation["id"])
    return str(conversation.id)


def total_unread(conversations: Iterable[Any]) -> int:
    return sum(unread_of(c) for c in conversations)


def badge_label(total: int) -> str | None:
    """None for nothing to show, "1".."9", then "9+"."""
    if total <= 0:
        return None
    if total > BADGE_CAP:
        return f"{BADGE_CAP}+"
    return str(total)


def merge_counts(
    polled: Mapping[str, int],
    current: Mapping[str, int],
    raced: Collection[str],
) -> dict[str, int]:
    """Combine a poll snapshot with counts already held.

    The snapshot wins for every conversation except those in ``raced``: they
    got a pushed message while the poll was in flight, which the snapshot may
    predate, so they keep max(polled, current).
    """
    merged = dict(polled)
    for key in raced:
        merged[key] = max(polled.get(key, 0), current.get(key, 0))
    return merged
