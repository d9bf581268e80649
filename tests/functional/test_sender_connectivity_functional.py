"""Functional tests for the HTTP mutation sender and connectivity monitor."""

from __future__ import annotations

import json

import httpx
import pytest

from fieldsync.models.offline import MutationQueueItem
from fieldsync.offline.connectivity import ConnectivityMonitor
from fieldsync.offline.sender import HttpMutationSender, MutationSendError

pytestmark = pytest.mark.anyio


def _item() -> MutationQueueItem:
    return MutationQueueItem(type="update", resource="inspection", payload={"inspectionId": "i1", "taskId": "t1"})


async def test_sender_posts_with_idempotency_key() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": request.headers["Idempotency-Key"], "status": "applied"})

    item = _item()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sender = HttpMutationSender("http://api.test/api/v1/", client=client)
        ack = await sender.send(item)

    assert ack == {"id": item.id, "status": "applied"}
    assert len(seen) == 1
    assert str(seen[0].url) == "http://api.test/api/v1/sync/mutations"
    assert seen[0].headers["Idempotency-Key"] == item.id
    assert json.loads(seen[0].content) == {"type": "update", "resource": "inspection", "payload": item.payload}


@pytest.mark.parametrize("status", [409, 500, 503])
async def test_non_2xx_is_a_retryable_send_error(status: int) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(status, json={"title": "nope"}))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(MutationSendError) as exc_info:
            await HttpMutationSender("http://api.test", client=client).send(_item())
    assert exc_info.value.status_code == status


async def test_transport_errors_become_send_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(MutationSendError) as exc_info:
            await HttpMutationSender("http://api.test", client=client).send(_item())
    assert exc_info.value.status_code is None


async def test_timeouts_become_send_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(MutationSendError, match="timeout"):
            await HttpMutationSender("http://api.test", client=client, timeout_seconds=0.5).send(_item())


async def test_monitor_fires_only_on_transitions() -> None:
    monitor = ConnectivityMonitor()
    events: list[bool] = []

    async def listener(online: bool) -> None:
        events.append(online)

    unsubscribe = monitor.subscribe(listener)
    for signal in (False, True, True, False, False, True):
        await monitor.set_online(signal)
    assert events == [True, False, True]

    unsubscribe()
    await monitor.set_online(False)
    assert events == [True, False, True]
    assert monitor.online is False


async def test_failing_listener_does_not_block_the_others() -> None:
    monitor = ConnectivityMonitor()
    events: list[bool] = []

    async def broken(online: bool) -> None:
        raise RuntimeError("listener exploded")

    async def listener(online: bool) -> None:
        events.append(online)

    monitor.subscribe(broken)
    monitor.subscribe(listener)
    assert await monitor.set_online(True) is True
    assert events == [True]
    assert monitor.online is True


async def test_probe_derives_state_from_health_endpoint() -> None:
    healthy = {"ok": True}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200 if healthy["ok"] else 503, json={})

    monitor = ConnectivityMonitor()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await monitor.probe("http://api.test/health", client=client) is True
        assert monitor.online is True
        healthy["ok"] = False
        assert await monitor.probe("http://api.test/health", client=client) is False
        assert monitor.online is False
