import asyncio
import re

import pytest

from letitout.core.errors import IdentityUnavailable, StorageUnavailable
from letitout.models.device_state import DEVICE_ID_KEY
from letitout.repositories.local_store import LocalStore
from letitout.services.identity import IdentityProvider, generate_handle


async def test_device_id_is_generated_once_and_persisted(store: LocalStore) -> None:
    provider = IdentityProvider(store)

    first = await provider.get_device_id()
    second = await provider.get_device_id()

    assert first == second
    assert re.fullmatch(r"[0-9a-f]{32}", first)
    assert await store.get_setting(DEVICE_ID_KEY) == first


async def test_device_id_is_stable_across_restarts(store: LocalStore) -> None:
    first = await IdentityProvider(store).get_device_id()

    assert await IdentityProvider(store).get_device_id() == first


async def test_racing_first_callers_share_one_id(store: LocalStore) -> None:
    provider = IdentityProvider(store)

    ids = await asyncio.gather(*(provider.get_device_id() for _ in range(5)))

    assert len(set(ids)) == 1


async def test_separate_providers_racing_share_one_id(store: LocalStore) -> None:
    ids = await asyncio.gather(
        IdentityProvider(store).get_device_id(),
        IdentityProvider(store).get_device_id(),
    )

    assert ids[0] == ids[1]


async def test_storage_failure_raises_identity_unavailable(store: LocalStore, mocker) -> None:
    mocker.patch.object(store, "get_setting", side_effect=StorageUnavailable("disk gone"))

    with pytest.raises(IdentityUnavailable):
        await IdentityProvider(store).get_device_id()


async def test_handle_shape(store: LocalStore) -> None:
    handle = await IdentityProvider(store).get_handle()

    assert re.fullmatch(r"[A-Z][a-z]+[A-Z][a-z]+\d{2}", handle)
    assert re.fullmatch(r"[A-Z][a-z]+[A-Z][a-z]+\d{2}", generate_handle())
