"""Client adapter over the server write API.

Each queued mutation is POSTed to `{base_url}/sync/mutations` with the queue
item id as `Idempotency-Key`, so a retry after a lost acknowledgement is
applied at most once by the server. Any transport error, timeout or non-2xx
status is a retryable `MutationSendError`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from fieldsync.models.offline import MutationQueueItem

logger = logging.getLogger(__name__)

MUTATIONS_PATH = "/sync/mutations"


class MutationSendError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MutationSender(Protocol):
    async def send(self, item: MutationQueueItem) -> Any:
        """Apply `item` remotely; return the acknowledgement or raise MutationSendError."""
        ...


class HttpMutationSender:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def send(self, item: MutationQueueItem) -> Any:
        body = {"type": item.type, "resource": item.resource, "payload": item.payload}
        url = f"{self._base_url}{MUTATIONS_PATH}"
        try:
            resp = await self._get_client().post(
                url,
                json=body,
                headers={"Idempotency-Key": item.id},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise MutationSendError(f"timeout sending mutation {item.id}") from exc
        except httpx.HTTPError as exc:
            raise MutationSendError(f"network error: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            logger.warning("mutation_rejected id=%s status=%s", item.id, resp.status_code)
            raise MutationSendError(f"server returned {resp.status_code}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError:
            return None

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = ["MUTATIONS_PATH", "MutationSendError", "MutationSender", "HttpMutationSender"]
