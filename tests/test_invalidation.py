import asyncio

from fastapi import WebSocketDisconnect

from app.core import config
from routers.events import forward_invalidations, invalidations
from utils.invalidation import LINK_KEYS, MAPPED_DEPARTMENTS, ROOM_CONNECTIONS, InvalidationHub, hub
from utils.linking import create_connection


def test_publish_flattens_and_deduplicates():
    local = InvalidationHub()
    seen = []
    remove = local.add_listener(seen.append)

    batch = local.publish(LINK_KEYS, MAPPED_DEPARTMENTS, ROOM_CONNECTIONS)

    assert batch == LINK_KEYS + (MAPPED_DEPARTMENTS,)
    assert seen == [batch]
    remove()
    local.publish(ROOM_CONNECTIONS)
    assert seen == [batch]
    assert local.listener_count == 0


def test_publish_without_keys_is_silent():
    local = InvalidationHub()
    seen = []
    local.add_listener(seen.append)

    assert local.publish() == ()
    assert seen == []


def test_subscription_forwards_batches():
    async def scenario():
        local = InvalidationHub()
        subscription = local.subscribe()
        sent = []

        async def send(message):
            sent.append(message)
            subscription.close()

        task = asyncio.create_task(forward_invalidations(subscription, send))
        local.publish(ROOM_CONNECTIONS)
        await asyncio.wait_for(task, timeout=1)
        return sent, local.listener_count

    sent, listeners = asyncio.run(scenario())

    assert sent == [{"type": "invalidate", "keys": [ROOM_CONNECTIONS]}]
    assert listeners == 0


def test_link_writes_publish_link_keys(db_session, add_projector, add_turar):
    add_projector("Хирургия", "Операционная 1")
    add_turar("Хирургическое отделение", "Опер. 1")
    seen = []
    remove = hub.add_listener(seen.append)
    try:
        create_connection(
            db_session, "Хирургическое отделение", "Опер. 1", "Хирургия", "Операционная 1"
        )
    finally:
        remove()

    assert seen == [LINK_KEYS + (MAPPED_DEPARTMENTS,)]


class FakeSocket:
    def __init__(self, user_id=1):
        self.session = {"user_id": user_id} if user_id else {}
        self.sent = []
        self.accepted = False
        self.close_code = None
        self.disconnected = asyncio.Event()

    async def accept(self):
        self.accepted = True

    async def close(self, code=1000):
        self.close_code = code

    async def send_json(self, message):
        self.sent.append(message)

    async def receive_text(self):
        await self.disconnected.wait()
        raise WebSocketDisconnect(code=1000)


async def _until(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


def test_websocket_forwards_invalidations_and_stops_on_disconnect(monkeypatch):
    monkeypatch.setattr(config, "RECONCILE_INTERVAL_SECONDS", 0.01)

    async def scenario():
        baseline = hub.listener_count
        ws = FakeSocket()
        task = asyncio.create_task(invalidations(ws))
        await _until(lambda: hub.listener_count == baseline + 1)

        hub.publish(ROOM_CONNECTIONS)
        await _until(lambda: {"type": "invalidate", "keys": [ROOM_CONNECTIONS]} in ws.sent)
        await _until(lambda: {"type": "reconcile"} in ws.sent)

        ws.disconnected.set()
        await asyncio.wait_for(task, timeout=1)
        sent_at_close = len(ws.sent)
        await asyncio.sleep(0.05)
        hub.publish(ROOM_CONNECTIONS)
        return ws, sent_at_close, hub.listener_count - baseline

    ws, sent_at_close, extra_listeners = asyncio.run(scenario())

    assert ws.accepted
    assert len(ws.sent) == sent_at_close
    assert extra_listeners == 0


def test_websocket_rejects_anonymous_clients():
    async def scenario():
        ws = FakeSocket(user_id=None)
        await invalidations(ws)
        return ws

    ws = asyncio.run(scenario())

    assert ws.close_code == 1008
    assert not ws.accepted
