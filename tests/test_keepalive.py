"""Keep-alive ping tests."""

import asyncio

import httpx

from gateway.keepalive import KeepAlive


def keep_alive(handler, **kwargs) -> KeepAlive:
    return KeepAlive("https://growbot.example.com/", transport=httpx.MockTransport(handler), **kwargs)


async def test_ping_hits_ping_route():
    urls = []

    def handler(request):
        urls.append(str(request.url))
        return httpx.Response(200, json={"status": "alive"})

    assert await keep_alive(handler).ping_once() is True
    assert urls == ["https://growbot.example.com/ping"]


async def test_ping_failure_is_swallowed():
    def handler(request):
        raise httpx.ConnectError("no route", request=request)

    assert await keep_alive(handler).ping_once() is False


async def test_ping_bad_status():
    assert await keep_alive(lambda request: httpx.Response(503)).ping_once() is False


async def test_loop_pings_until_stopped():
    pings = []

    def handler(request):
        pings.append(request)
        return httpx.Response(500 if len(pings) == 1 else 200)

    task = keep_alive(handler, interval=0.01)
    task.start()
    for _ in range(100):
        if len(pings) >= 3:
            break
        await asyncio.sleep(0.01)
    await task.stop()

    assert len(pings) >= 3
    assert task.running is False


async def test_start_is_idempotent():
    task = keep_alive(lambda request: httpx.Response(200), interval=60)
    task.start()
    first = task._task
    task.start()

    assert task._task is first
    await task.stop()


async def test_invalid_url_is_logged_not_raised():
    task = KeepAlive("http://localhost:notaport", interval=0.01)

    assert await task.ping_once() is False


async def test_loop_survives_invalid_url():
    task = KeepAlive("http://localhost:notaport", interval=0.01)
    task.start()
    await asyncio.sleep(0.1)

    assert task.running is True
    await task.stop()
    assert task.running is False
