from unittest.mock import AsyncMock, MagicMock

from letitout.services.connectivity import ConnectivityMonitor, ConnectivityState


async def test_starts_offline_until_probed(connectivity: ConnectivityMonitor, gateway) -> None:
    assert connectivity.state is ConnectivityState.OFFLINE

    gateway.ping.return_value = True
    assert await connectivity.probe() is ConnectivityState.ONLINE
    assert connectivity.is_online


async def test_listeners_fire_only_on_transitions(
    connectivity: ConnectivityMonitor, gateway
) -> None:
    listener = MagicMock(return_value=None)
    connectivity.subscribe(listener)

    await connectivity.probe()
    gateway.ping.return_value = True
    await connectivity.probe()
    await connectivity.probe()
    gateway.ping.return_value = False
    await connectivity.probe()

    assert [call.args for call in listener.call_args_list] == [
        (ConnectivityState.OFFLINE, ConnectivityState.ONLINE),
        (ConnectivityState.ONLINE, ConnectivityState.OFFLINE),
    ]


async def test_async_listeners_are_awaited(connectivity: ConnectivityMonitor) -> None:
    listener = AsyncMock()
    connectivity.subscribe(listener)

    await connectivity.set_state(ConnectivityState.ONLINE)

    listener.assert_awaited_once_with(ConnectivityState.OFFLINE, ConnectivityState.ONLINE)


async def test_unsubscribe_stops_notifications(connectivity: ConnectivityMonitor) -> None:
    listener = MagicMock(return_value=None)
    unsubscribe = connectivity.subscribe(listener)

    unsubscribe()
    unsubscribe()
    await connectivity.set_state(ConnectivityState.ONLINE)

    listener.assert_not_called()
