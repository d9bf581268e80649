"""Connectivity monitor.

The host platform reports the network state through `set_online()`; only
actual transitions reach subscribers, so a flapping signal that repeats the
current state is ignored. An optional health probe can derive the state by
calling the server's `/health` endpoint.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

Listener = Callable[[bool], Awaitable[None]]


class ConnectivityMonitor:
    def __init__(self, online: bool = False) -> None:
        self._online = online
        self._listeners: list[Listener] = []

    @property
    def online(self) -> bool:
        return self._online

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener`; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def set_online(self, online: bool) -> bool:
        """Record the new state; return True when it was a transition."""
        online = bool(online)
        if online == self._online:
            return False
        self._online = online
        logger.info("connectivity_changed online=%s", online)
        for listener in list(self._listeners):
            try:
                await listener(online)
            except Exception:
                # one failing subscriber must not hide the transition from the rest
                logger.error("connectivity_listener_failed online=%s", online, exc_info=True)
        return True

    async def probe(self, health_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 5.0) -> bool:
        """Derive the online state from a GET on `health_url` and apply it."""
        ok = False
        try:
            if client is not None:
                resp = await client.get(health_url, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as own:
                    resp = await own.get(health_url)
            ok = 200 <= resp.status_code < 300
        except httpx.HTTPError:
            logger.debug("connectivity_probe_failed url=%s", health_url)
            ok = False
        await self.set_online(ok)
        return ok


__all__ = ["ConnectivityMonitor", "Listener"]
