"""Request ID middleware.

Every response carries `X-Request-Id`: the caller's value when the request
sent one (clients reuse it across retries of a mutation), otherwise a fresh
UUID. The id is also placed on `scope["state"]` for handlers and logged with
the response status.
"""

from __future__ import annotations

import logging
import uuid

logger = logging.getLogger(__name__)


class RequestIdMiddleware:
    def __init__(self, app, header_name: str = "X-Request-Id") -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self.header_name = header_name
        self._key = header_name.lower().encode("latin-1")

    def _incoming(self, scope) -> bytes | None:  # type: ignore[no-untyped-def]
        for name, value in scope.get("headers") or []:
            if name.lower() == self._key and value:
                return value
        return None

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._incoming(scope) or uuid.uuid4().hex.encode("latin-1")
        scope.setdefault("state", {})["request_id"] = request_id.decode("latin-1")

        async def send_with_id(message):  # type: ignore[no-untyped-def]
            if message.get("type") == "http.response.start":
                headers = [(k, v) for k, v in (message.get("headers") or []) if k.lower() != self._key]
                headers.append((self.header_name.encode("latin-1"), request_id))
                message = {**message, "headers": headers}
                logger.info(
                    "request_completed method=%s path=%s status=%s request_id=%s",
                    scope.get("method"),
                    scope.get("path"),
                    message.get("status"),
                    request_id.decode("latin-1"),
                )
            await send(message)

        await self.app(scope, receive, send_with_id)


__all__ = ["RequestIdMiddleware"]
