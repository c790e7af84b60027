"""Connectivity monitor - online/offline state and reconnect listeners."""

import inspect
from collections.abc import Callable
from typing import Any

import httpx
from loguru import logger

from settings import HEALTHCHECK_TIMEOUT, HEALTHCHECK_URL

ReconnectListener = Callable[[], Any]


class ConnectivityMonitor:
    """Tracks whether the device can reach the backend.

    Listeners registered with `on_reconnect` run on every offline -> online
    transition, whether it was detected by `check()` or set explicitly.
    """

    def __init__(
        self,
        url: str = HEALTHCHECK_URL,
        timeout: float = HEALTHCHECK_TIMEOUT,
        online: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url
        self._timeout = timeout
        self._transport = transport
        self._online = online
        self._listeners: list[ReconnectListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def on_reconnect(self, listener: ReconnectListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def set_online(self, online: bool) -> None:
        """Record the current state, notifying listeners when coming back online."""
        was_online, self._online = self._online, online
        if online == was_online:
            return
        if not online:
            logger.warning("Connectivity lost")
            return

        logger.info("Connectivity restored, notifying {} listeners", len(self._listeners))
        for listener in list(self._listeners):
            try:
                result = listener()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("Reconnect listener failed: {}", e)

    async def check(self) -> bool:
        """Probe the health endpoint. Without a configured URL the current state is kept."""
        if not self._url:
            return self._online
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(self._url)
            online = resp.status_code < 500
        except httpx.HTTPError as e:
            logger.debug("Health check failed: {}", e)
            online = False
        await self.set_online(online)
        return online
