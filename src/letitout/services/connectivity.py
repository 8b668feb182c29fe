"""Connectivity state machine driven by backend health probes."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from letitout.services.gateway import RemoteGateway

logger = logging.getLogger(__name__)


class ConnectivityState(Enum):
    OFFLINE = "offline"
    ONLINE = "online"


Listener = Callable[[ConnectivityState, ConnectivityState], Awaitable[None] | None]


class ConnectivityMonitor:
    """Tracks whether the backend is reachable and notifies subscribers on change.

    The state starts OFFLINE until the first probe. Listeners are called with
    ``(previous, current)`` only when the state actually changes.
    """

    def __init__(self, gateway: RemoteGateway) -> None:
        self._gateway = gateway
        self._state = ConnectivityState.OFFLINE
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state is ConnectivityState.ONLINE

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a transition listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def probe(self) -> ConnectivityState:
        """Ping the backend and apply the resulting state."""
        reachable = await self._gateway.ping()
        await self.set_state(ConnectivityState.ONLINE if reachable else ConnectivityState.OFFLINE)
        return self._state

    async def set_state(self, state: ConnectivityState) -> None:
        previous = self._state
        if previous is state:
            return
        self._state = state
        logger.info("Connectivity changed: %s -> %s", previous.value, state.value)
        for listener in list(self._listeners):
            result = listener(previous, state)
            if result is not None:
                await result
