"""Tests for the connectivity monitor."""

import asyncio

import httpx

from app.services.network import ConnectivityMonitor


def transport(status=200, error=None):
    def handler(request):
        if error is not None:
            raise error
        return httpx.Response(status)

    return httpx.MockTransport(handler)


class TestConnectivity:
    def test_reconnect_listeners(self):
        monitor = ConnectivityMonitor(online=False)
        calls = []

        async def async_listener():
            calls.append("async")

        monitor.on_reconnect(lambda: calls.append("sync"))
        monitor.on_reconnect(async_listener)

        async def scenario():
            await monitor.set_online(True)
            await monitor.set_online(True)

        asyncio.run(scenario())
        assert calls == ["sync", "async"]

    def test_unsubscribe(self):
        monitor = ConnectivityMonitor(online=False)
        calls = []
        unsubscribe = monitor.on_reconnect(lambda: calls.append(1))
        unsubscribe()
        asyncio.run(monitor.set_online(True))
        assert calls == []

    def test_failing_listener_does_not_block_others(self):
        monitor = ConnectivityMonitor(online=False)
        calls = []

        def broken():
            raise RuntimeError("boom")

        monitor.on_reconnect(broken)
        monitor.on_reconnect(lambda: calls.append(1))
        asyncio.run(monitor.set_online(True))
        assert calls == [1]
        assert monitor.is_online

    def test_check_healthy(self):
        monitor = ConnectivityMonitor(url="http://api.test/health", online=False, transport=transport(200))
        assert asyncio.run(monitor.check()) is True
        assert monitor.is_online

    def test_check_server_error(self):
        monitor = ConnectivityMonitor(url="http://api.test/health", transport=transport(503))
        assert asyncio.run(monitor.check()) is False
        assert not monitor.is_online

    def test_check_network_error(self):
        monitor = ConnectivityMonitor(
            url="http://api.test/health",
            transport=transport(error=httpx.ConnectError("down")),
        )
        assert asyncio.run(monitor.check()) is False

    def test_check_without_url_keeps_state(self):
        assert asyncio.run(ConnectivityMonitor(url="", online=False).check()) is False
        assert asyncio.run(ConnectivityMonitor(url="", online=True).check()) is True
