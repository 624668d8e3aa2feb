from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 14 * 60


class KeepAlive:
    """Periodically pings this service's own /ping route.

    Hosts that suspend idle processes see the ping as traffic. Ping failures
    are logged and otherwise ignored.
    """

    def __init__(
        self,
        base_url: str,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = base_url.rstrip("/") + "/ping"
        self.interval = interval
        self.timeout = timeout
        self._transport = transport
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def ping_once(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url)
        except httpx.HTTPError as exc:
            logger.warning("Keep-alive ping to %s failed: %s", self.url, exc)
            return False
        except Exception:
            logger.exception("Keep-alive ping to %s raised", self.url)
            return False
        if not response.is_success:
            logger.warning("Keep-alive ping to %s returned %d", self.url, response.status_code)
            return False
        logger.debug("Keep-alive ping ok")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.ping_once()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Keep-alive pinging %s every %.0fs", self.url, self.interval)
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Keep-alive task ended with an error")
        self._task = None
