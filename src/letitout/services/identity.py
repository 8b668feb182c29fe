"""Anonymous per-install identity."""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable

from letitout.core.errors import IdentityUnavailable, StorageUnavailable
from letitout.models.device_state import DEVICE_ID_KEY, HANDLE_KEY
from letitout.repositories.local_store import LocalStore

logger = logging.getLogger(__name__)

HANDLE_ADJECTIVES = (
    "Quiet", "Gentle", "Brave", "Calm", "Hopeful", "Kind",
    "Restless", "Tender", "Wandering", "Patient", "Soft", "Steady",
)
HANDLE_ANIMALS = (
    "Otter", "Sparrow", "Fox", "Panda", "Heron", "Koala",
    "Owl", "Deer", "Robin", "Turtle", "Lynx", "Moth",
)


def generate_device_id() -> str:
    """Return a new random device identifier (32 hex characters)."""
    return secrets.token_hex(16)


def generate_handle() -> str:
    """Return a random display handle such as ``QuietOtter42``."""
    adjective = secrets.choice(HANDLE_ADJECTIVES)
    animal = secrets.choice(HANDLE_ANIMALS)
    return f"{adjective}{animal}{secrets.randbelow(90) + 10}"


class IdentityProvider:
    """Stable anonymous identifiers for this install.

    Values are created on first request, persisted in the local store and
    cached on the instance. Two first callers racing each other resolve to
    the same value.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()
        self._cache: dict[str, str] = {}

    async def get_device_id(self) -> str:
        """Return the persisted device id, creating it on first use.

        Raises:
            IdentityUnavailable: If the id cannot be read or persisted.
        """
        return await self._get_or_create(DEVICE_ID_KEY, generate_device_id)

    async def get_handle(self) -> str:
        """Return the persisted anonymous handle, creating it on first use."""
        return await self._get_or_create(HANDLE_KEY, generate_handle)

    async def _get_or_create(self, key: str, factory: Callable[[], str]) -> str:
        cached = self._cache.get(key)
        if cached:
            return cached
        async with self._lock:
            cached = self._cache.get(key)
            if cached:
                return cached
            try:
                value = await self._store.get_setting(key)
                if not value:
                    value = await self._store.set_setting_if_absent(key, factory())
                    logger.info("Generated new %s for this install", key)
            except StorageUnavailable as exc:
                raise IdentityUnavailable(f"could not load {key}") from exc
            self._cache[key] = value
            return value
