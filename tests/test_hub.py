from __future__ import annotations

import asyncio

import pytest

from sentinel.schemas import Snapshot
from sentinel.services.hub import BroadcastHub, DeliveryOutcome, SubscriptionClosed


@pytest.mark.asyncio
async def test_snapshot_reaches_only_remaining_subscribers() -> None:
    hub = BroadcastHub(buffer_size=2)
    subs = [hub.subscribe() for _ in range(3)]
    hub.unsubscribe(subs[0])

    snap = Snapshot()
    outcomes = hub.publish(snap)

    assert set(outcomes) == {subs[1].id, subs[2].id}
    assert all(o is DeliveryOutcome.DELIVERED for o in outcomes.values())
    assert (await subs[1].get()).message is snap
    assert (await subs[2].get()).message is snap
    with pytest.raises(SubscriptionClosed):
        await subs[0].get()


@pytest.mark.asyncio
async def test_stalled_subscriber_drops_oldest_and_does_not_block_others() -> None:
    hub = BroadcastHub(buffer_size=1, overflow="drop")
    stalled = hub.subscribe()
    live = hub.subscribe()

    received = []
    for i in range(50):
        snap = Snapshot()
        outcomes = hub.publish(snap)
        assert outcomes[live.id] is DeliveryOutcome.DELIVERED
        received.append(await asyncio.wait_for(live.get(), timeout=1))
        if i > 0:
            assert outcomes[stalled.id] is DeliveryOutcome.DROPPED

    assert len(received) == 50
    assert stalled.pending() == 1
    assert stalled.dropped == 49
    # el suscriptor lento se pone al día con el último snapshot
    assert await stalled.get() is received[-1]


@pytest.mark.asyncio
async def test_close_policy_removes_stalled_subscriber() -> None:
    hub = BroadcastHub(buffer_size=1, overflow="close")
    stalled = hub.subscribe()
    hub.publish(Snapshot())
    outcomes = hub.publish(Snapshot())

    assert outcomes[stalled.id] is DeliveryOutcome.CLOSED
    assert stalled not in hub
    assert len(hub) == 0
    with pytest.raises(SubscriptionClosed):
        await stalled.get()


@pytest.mark.asyncio
async def test_unsubscribe_during_publish_keeps_set_consistent() -> None:
    hub = BroadcastHub(buffer_size=4)
    first = hub.subscribe()
    second = hub.subscribe()
    third = hub.subscribe()

    original_offer = first.offer

    def offer_and_disconnect_second(message, overflow):
        hub.unsubscribe(second)
        return original_offer(message, overflow)

    first.offer = offer_and_disconnect_second
    outcomes = hub.publish(Snapshot())

    assert outcomes[first.id] is DeliveryOutcome.DELIVERED
    assert outcomes[second.id] is DeliveryOutcome.CLOSED
    assert outcomes[third.id] is DeliveryOutcome.DELIVERED
    assert len(hub) == 2
    assert first.pending() == 1
    assert third.pending() == 1

    # la siguiente publicación ya no ve al suscriptor eliminado
    assert set(hub.publish(Snapshot())) == {first.id, third.id}


@pytest.mark.asyncio
async def test_new_subscriber_gets_latest_then_subsequent() -> None:
    hub = BroadcastHub(buffer_size=4)
    old = Snapshot()
    hub.publish(old)

    sub = hub.subscribe()
    new = Snapshot()
    hub.publish(new)
    assert (await sub.get()).message is old
    assert (await sub.get()).message is new


@pytest.mark.asyncio
async def test_errors_are_not_remembered_as_latest() -> None:
    hub = BroadcastHub()
    sub = hub.subscribe()
    hub.publish_error("history unavailable")
    assert hub.latest is None
    msg = (await sub.get()).message
    assert msg.detail == "history unavailable"


@pytest.mark.asyncio
async def test_close_wakes_waiting_subscribers() -> None:
    hub = BroadcastHub()
    sub = hub.subscribe()
    waiter = asyncio.create_task(sub.get())
    await asyncio.sleep(0)
    hub.close()
    with pytest.raises(SubscriptionClosed):
        await asyncio.wait_for(waiter, timeout=1)
    assert len(hub) == 0


def test_rejects_bad_configuration() -> None:
    with pytest.raises(ValueError):
        BroadcastHub(buffer_size=0)
    with pytest.raises(ValueError):
        BroadcastHub(overflow="block")


@pytest.mark.asyncio
async def test_snapshot_is_encoded_once_per_publish(monkeypatch) -> None:
    from sentinel.services import hub as hub_module

    calls = []
    real_encode = hub_module.encode_message

    def counting_encode(message):
        calls.append(message)
        return real_encode(message)

    monkeypatch.setattr(hub_module, "encode_message", counting_encode)
    hub = BroadcastHub(buffer_size=2)
    subs = [hub.subscribe() for _ in range(3)]
    hub.publish(Snapshot())

    assert len(calls) == 1
    frames = [(await s.get()).frame for s in subs]
    assert frames[0].startswith("data: ")
    assert all(f is frames[0] for f in frames)


@pytest.mark.asyncio
async def test_unserializable_message_is_not_delivered(monkeypatch) -> None:
    from sentinel.services import hub as hub_module

    def broken_encode(message):
        raise ValueError("cannot encode")

    hub = BroadcastHub()
    sub = hub.subscribe()
    monkeypatch.setattr(hub_module, "encode_message", broken_encode)
    with pytest.raises(ValueError):
        hub.publish(Snapshot())
    assert hub.latest is None
    assert sub.pending() == 0
