# src/letitout/services/moderation.py
"""Device-side moderation: hidden posts and blocked handles."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from letitout.repositories.local_store import LocalStore


class Moderatable(Protocol):
    id: str
    anonymous_handle: str


T = TypeVar("T", bound=Moderatable)


@dataclass(frozen=True)
class ModerationFilter:
    """Snapshot of the moderation lists applied uniformly to every source."""

    hidden_posts: frozenset[str] = field(default_factory=frozenset)
    blocked_users: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    async def load(cls, store: LocalStore) -> ModerationFilter:
        """Read both lists from the store.

        Raises:
            StorageUnavailable: If either list cannot be read.
        """
        hidden = await store.get_hidden_posts()
        blocked = await store.get_blocked_users()
        # A post hidden by its local id must also stay hidden under its backend id.
        hidden |= await store.get_remote_ids(hidden)
        return cls(frozenset(hidden), frozenset(blocked))

    def allows(self, item: Moderatable, *aliases: str | None) -> bool:
        """Return False if the item, or any alias id of it, is hidden or its author blocked."""
        if item.anonymous_handle in self.blocked_users:
            return False
        ids = {item.id, *(alias for alias in aliases if alias)}
        return self.hidden_posts.isdisjoint(ids)

    def apply(self, items: Iterable[T]) -> list[T]:
        return [item for item in items if self.allows(item)]

