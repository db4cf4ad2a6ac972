"""Live update broadcaster tests.

Learn: Most tests drive the broadcaster directly with a recording
gateway and an in-memory metric source, then call on_tick() by hand
so nothing depends on wall-clock timing. A few scenario tests let real
timers run with millisecond intervals to prove ticks actually fire and
actually stop.

Pattern: test_<operation>_<scenario>
"""

import asyncio
import random
from datetime import datetime
from types import SimpleNamespace

import pytest
import pytest_asyncio

from biopulse.realtime.broadcaster import LiveUpdateBroadcaster
from biopulse.realtime.events import BIOMARKER_UPDATES
from biopulse.realtime.gateway import ConnectionGateway


# ─── Helpers ─────────────────────────────────────────────


def _metric(mid: str, value: float, name: str | None = None, unit: str = "mg/dL"):
    return SimpleNamespace(id=mid, name=name or f"Marker {mid}", value=value, unit=unit)


class FakeMetrics:
    """Metric source with per-topic lists and a failure switch."""

    def __init__(self, metrics: dict | None = None):
        self.metrics = metrics or {}
        self.fail = False
        self.calls = 0

    async def list_metrics_for_topic(self, topic_id):
        self.calls += 1
        if self.fail:
            raise RuntimeError("metric store offline")
        return list(self.metrics.get(topic_id, []))


class RecordingGateway:
    """Gateway stand-in that records rooms and every send."""

    def __init__(self):
        self.rooms: dict[str, set[str]] = {}
        self.sent: list[tuple[str, str, dict]] = []

    def join(self, connection_id, topic_id):
        self.rooms.setdefault(topic_id, set()).add(connection_id)
        return True

    def leave(self, connection_id, topic_id):
        self.rooms.get(topic_id, set()).discard(connection_id)

    async def send_to_topic(self, topic_id, event, payload):
        self.sent.append((topic_id, event, payload))


class BlockingMetrics(FakeMetrics):
    """Metric source whose lookup waits until the test releases it."""

    def __init__(self, metrics: dict):
        super().__init__(metrics)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_metrics_for_topic(self, topic_id):
        self.entered.set()
        await self.release.wait()
        return await super().list_metrics_for_topic(topic_id)


class FixedRandom(random.Random):
    """random() always returns the same value; sample() follows suit."""

    def __init__(self, value: float):
        self.value = value
        super().__init__(0)

    def random(self):
        return self.value


class FakeConnection:
    def __init__(self):
        self.frames: list[dict] = []

    async def send_json(self, data):
        self.frames.append(data)


METRICS = {
    "p1": [_metric("a", 100.0), _metric("b", 50.0), _metric("c", 7.25), _metric("d", 0.4)],
    "p2": [_metric("x", 72.0), _metric("y", 120.0), _metric("z", 80.0)],
}


@pytest.fixture()
def metrics():
    return FakeMetrics({k: list(v) for k, v in METRICS.items()})


@pytest.fixture()
def gateway():
    return RecordingGateway()


@pytest_asyncio.fixture()
async def broadcaster(metrics, gateway):
    """Slow timers (never fire during a test) — ticks are driven by hand."""
    b = LiveUpdateBroadcaster(metrics, gateway, random.Random(42), min_interval=60, max_interval=61)
    yield b
    await b.shutdown()


@pytest_asyncio.fixture()
async def fast_broadcaster(metrics):
    """Real gateway, millisecond timers — for end-to-end scenarios."""
    gw = ConnectionGateway()
    b = LiveUpdateBroadcaster(
        metrics, gw, random.Random(7), min_interval=0.01, max_interval=0.02
    )
    gw.on_disconnect(b.handle_disconnect)
    yield b, gw
    await b.shutdown()


def _timer_invariant_holds(b: LiveUpdateBroadcaster, topics) -> bool:
    return all(b.has_timer(t) == bool(b.subscribers_of(t)) for t in topics)


# ═══════════════════════════════════════════════════════════
# Timer lifecycle
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_subscribe_first_subscriber_starts_timer(broadcaster, gateway):
    assert not broadcaster.has_timer("p1")
    broadcaster.subscribe("c1", "p1")
    assert broadcaster.has_timer("p1")
    assert broadcaster.subscribers_of("p1") == {"c1"}
    assert gateway.rooms["p1"] == {"c1"}


@pytest.mark.asyncio
async def test_subscribe_second_subscriber_reuses_timer(broadcaster):
    """Two connections on one topic share exactly one timer."""
    broadcaster.subscribe("c1", "p1")
    first = broadcaster._timers["p1"]
    broadcaster.subscribe("c2", "p1")
    assert broadcaster._timers["p1"] is first
    assert broadcaster.active_topics() == {"p1"}
    assert broadcaster.subscribers_of("p1") == {"c1", "c2"}


@pytest.mark.asyncio
async def test_subscribe_duplicate_is_noop(broadcaster):
    broadcaster.subscribe("c1", "p1")
    first = broadcaster._timers["p1"]
    broadcaster.subscribe("c1", "p1")
    assert broadcaster._timers["p1"] is first
    assert broadcaster.subscribers_of("p1") == {"c1"}


@pytest.mark.asyncio
async def test_subscribe_rejects_empty_topic(broadcaster):
    with pytest.raises(ValueError):
        broadcaster.subscribe("c1", "")
    assert broadcaster.active_topics() == set()


@pytest.mark.asyncio
async def test_unsubscribe_last_subscriber_cancels_timer(broadcaster):
    broadcaster.subscribe("c1", "p1")
    task = broadcaster._timers["p1"]

    broadcaster.unsubscribe("c1", "p1")

    assert not broadcaster.has_timer("p1")
    assert broadcaster.subscribers_of("p1") == set()
    await asyncio.gather(task, return_exceptions=True)
    assert task.cancelled()


@pytest.mark.asyncio
async def test_unsubscribe_keeps_timer_while_others_remain(broadcaster):
    broadcaster.subscribe("c1", "p1")
    broadcaster.subscribe("c2", "p1")
    broadcaster.unsubscribe("c1", "p1")
    assert broadcaster.has_timer("p1")
    assert broadcaster.subscribers_of("p1") == {"c2"}


@pytest.mark.asyncio
async def test_unsubscribe_twice_is_idempotent(broadcaster):
    broadcaster.subscribe("c1", "p1")
    broadcaster.subscribe("c2", "p1")

    broadcaster.unsubscribe("c1", "p1")
    once = (broadcaster.subscribers_of("p1"), broadcaster.active_topics())
    broadcaster.unsubscribe("c1", "p1")
    twice = (broadcaster.subscribers_of("p1"), broadcaster.active_topics())

    assert once == twice == ({"c2"}, {"p1"})


@pytest.mark.asyncio
async def test_unsubscribe_unknown_pair_is_noop(broadcaster):
    broadcaster.unsubscribe("ghost", "nobody")
    broadcaster.subscribe("c1", "p1")
    broadcaster.unsubscribe("ghost", "p1")
    assert broadcaster.subscribers_of("p1") == {"c1"}
    assert broadcaster.has_timer("p1")


@pytest.mark.asyncio
async def test_handle_disconnect_removes_from_every_topic(broadcaster):
    """A connection on A, B, C disconnects; only B survives (c2 still there)."""
    for topic in ("A", "B", "C"):
        broadcaster.subscribe("c1", topic)
    broadcaster.subscribe("c2", "B")

    broadcaster.handle_disconnect("c1")

    for topic in ("A", "B", "C"):
        assert "c1" not in broadcaster.subscribers_of(topic)
    assert broadcaster.active_topics() == {"B"}
    assert broadcaster.subscribers_of("B") == {"c2"}


@pytest.mark.asyncio
async def test_handle_disconnect_without_subscriptions_is_noop(broadcaster):
    broadcaster.subscribe("c1", "p1")
    broadcaster.handle_disconnect("stranger")
    assert broadcaster.subscribers_of("p1") == {"c1"}


@pytest.mark.asyncio
async def test_timer_exists_iff_topic_has_subscribers(broadcaster):
    """Random interleavings of subscribe/unsubscribe/disconnect keep the invariant."""
    rng = random.Random(2024)
    connections = [f"c{i}" for i in range(5)]
    topics = [f"p{i}" for i in range(4)]

    for _ in range(300):
        op = rng.choice(["subscribe", "subscribe", "unsubscribe", "disconnect"])
        conn = rng.choice(connections)
        if op == "subscribe":
            broadcaster.subscribe(conn, rng.choice(topics))
        elif op == "unsubscribe":
            broadcaster.unsubscribe(conn, rng.choice(topics))
        else:
            broadcaster.handle_disconnect(conn)
        assert _timer_invariant_holds(broadcaster, topics)
        assert len(broadcaster._timers) == len(broadcaster.active_topics())


@pytest.mark.asyncio
async def test_shutdown_cancels_all_timers(broadcaster):
    broadcaster.subscribe("c1", "p1")
    broadcaster.subscribe("c1", "p2")
    tasks = list(broadcaster._timers.values())

    await broadcaster.shutdown()

    assert broadcaster.active_topics() == set()
    assert all(t.cancelled() for t in tasks)


def test_constructor_rejects_bad_bounds(metrics, gateway):
    with pytest.raises(ValueError):
        LiveUpdateBroadcaster(metrics, gateway, min_interval=3, max_interval=2)
    with pytest.raises(ValueError):
        LiveUpdateBroadcaster(metrics, gateway, min_interval=0, max_interval=2)
    with pytest.raises(ValueError):
        LiveUpdateBroadcaster(metrics, gateway, min_batch=3, max_batch=2)


# ═══════════════════════════════════════════════════════════
# Ticks
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_on_tick_sends_two_or_three_perturbed_metrics(broadcaster, gateway):
    broadcaster.subscribe("c1", "p1")
    before = {m.id: m.value for m in METRICS["p1"]}

    for _ in range(50):
        payload = await broadcaster.on_tick("p1")
        assert payload is not None
        assert 2 <= len(payload["updates"]) <= 3
        ids = [u["id"] for u in payload["updates"]]
        assert len(ids) == len(set(ids))
        for update in payload["updates"]:
            assert abs(update["value"] - before[update["id"]]) <= 5.0 + 1e-9

    assert len(gateway.sent) == 50
    assert all(event == BIOMARKER_UPDATES for _, event, _ in gateway.sent)


@pytest.mark.asyncio
async def test_on_tick_payload_shape(broadcaster, gateway):
    broadcaster.subscribe("c1", "p2")
    payload = await broadcaster.on_tick("p2")

    assert set(payload) == {"patientId", "updates", "timestamp"}
    assert payload["patientId"] == "p2"
    datetime.fromisoformat(payload["timestamp"].replace("Z", "+00:00"))
    for update in payload["updates"]:
        assert set(update) == {"id", "name", "value", "timestamp", "unit"}
        assert update["unit"] == "mg/dL"
        datetime.fromisoformat(update["timestamp"].replace("Z", "+00:00"))

    topic, _, sent = gateway.sent[0]
    assert topic == "p2"
    assert sent == payload


@pytest.mark.asyncio
async def test_on_tick_does_not_write_back_to_store(broadcaster, metrics):
    broadcaster.subscribe("c1", "p1")
    for _ in range(10):
        await broadcaster.on_tick("p1")
    assert [m.value for m in metrics.metrics["p1"]] == [100.0, 50.0, 7.25, 0.4]


@pytest.mark.asyncio
async def test_on_tick_lower_bound_of_perturbation(metrics, gateway):
    """random() == 0 → delta is exactly -5 and the batch is the minimum (2)."""
    b = LiveUpdateBroadcaster(metrics, gateway, FixedRandom(0.0), min_interval=60, max_interval=61)
    b.subscribe("c1", "p1")
    try:
        payload = await b.on_tick("p1")
    finally:
        await b.shutdown()

    before = {m.id: m.value for m in METRICS["p1"]}
    assert len(payload["updates"]) == 2
    for update in payload["updates"]:
        assert update["value"] == round(before[update["id"]] - 5.0, 2)


@pytest.mark.asyncio
async def test_on_tick_upper_bound_of_perturbation(metrics, gateway):
    """random() just below 1 → delta just below +5 and the batch is the maximum (3)."""
    b = LiveUpdateBroadcaster(
        metrics, gateway, FixedRandom(0.9999), min_interval=60, max_interval=61
    )
    b.subscribe("c1", "p1")
    try:
        payload = await b.on_tick("p1")
    finally:
        await b.shutdown()

    before = {m.id: m.value for m in METRICS["p1"]}
    assert len(payload["updates"]) == 3
    for update in payload["updates"]:
        assert before[update["id"]] < update["value"] <= before[update["id"]] + 5.0


@pytest.mark.asyncio
async def test_on_tick_values_rounded_to_two_decimals(broadcaster):
    broadcaster.subscribe("c1", "p1")
    for _ in range(20):
        payload = await broadcaster.on_tick("p1")
        for update in payload["updates"]:
            assert update["value"] == round(update["value"], 2)


@pytest.mark.asyncio
async def test_on_tick_fewer_metrics_than_batch(metrics, gateway):
    metrics.metrics["solo"] = [_metric("only", 42.0)]
    b = LiveUpdateBroadcaster(metrics, gateway, FixedRandom(0.9999), min_interval=60, max_interval=61)
    b.subscribe("c1", "solo")
    try:
        payload = await b.on_tick("solo")
    finally:
        await b.shutdown()
    assert [u["id"] for u in payload["updates"]] == ["only"]


@pytest.mark.asyncio
async def test_on_tick_unknown_topic_is_noop(broadcaster, gateway):
    """No metrics → no event, timer stays up."""
    broadcaster.subscribe("c1", "nobody")
    assert await broadcaster.on_tick("nobody") is None
    assert gateway.sent == []
    assert broadcaster.has_timer("nobody")


@pytest.mark.asyncio
async def test_on_tick_store_failure_is_absorbed(broadcaster, metrics, gateway):
    broadcaster.subscribe("c1", "p1")
    metrics.fail = True

    assert await broadcaster.on_tick("p1") is None

    assert gateway.sent == []
    assert broadcaster.has_timer("p1")


@pytest.mark.asyncio
async def test_on_tick_after_release_sends_nothing(broadcaster, gateway):
    broadcaster.subscribe("c1", "p1")
    broadcaster.unsubscribe("c1", "p1")
    assert await broadcaster.on_tick("p1") is None
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_on_tick_released_during_lookup_sends_nothing(gateway):
    metrics = BlockingMetrics(METRICS)
    b = LiveUpdateBroadcaster(metrics, gateway, random.Random(3), min_interval=60, max_interval=61)
    b.subscribe("c1", "p1")

    tick = asyncio.create_task(b.on_tick("p1"))
    await asyncio.wait_for(metrics.entered.wait(), timeout=1)
    b.unsubscribe("c1", "p1")
    metrics.release.set()

    assert await tick is None
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_timer_cancelled_during_lookup_sends_nothing(gateway):
    metrics = BlockingMetrics(METRICS)
    b = LiveUpdateBroadcaster(
        metrics, gateway, random.Random(3), min_interval=0.01, max_interval=0.01
    )
    b.subscribe("c1", "p1")
    task = b._timers["p1"]

    await asyncio.wait_for(metrics.entered.wait(), timeout=1)
    b.unsubscribe("c1", "p1")
    metrics.release.set()
    await asyncio.gather(task, return_exceptions=True)

    assert task.cancelled()
    assert gateway.sent == []
    assert not b.has_timer("p1")


@pytest.mark.asyncio
async def test_subscribe_unknown_connection_is_ignored(metrics):
    gw = ConnectionGateway()
    b = LiveUpdateBroadcaster(metrics, gw, random.Random(1), min_interval=60, max_interval=61)

    b.subscribe("ghost", "p1")

    assert not b.has_timer("p1")
    assert b.subscribers_of("p1") == set()
    assert gw.members("p1") == set()
    assert b.stats() == {"liveTopics": 0, "subscriptions": 0}


# ═══════════════════════════════════════════════════════════
# Delivery & scenarios (real timers)
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_updates_only_reach_topic_subscribers(metrics):
    gw = ConnectionGateway()
    b = LiveUpdateBroadcaster(metrics, gw, random.Random(1), min_interval=60, max_interval=61)
    conn_a, conn_b = FakeConnection(), FakeConnection()
    gw.connect(conn_a, "a")
    gw.connect(conn_b, "b")
    b.subscribe("a", "p1")
    b.subscribe("b", "p2")

    try:
        await b.on_tick("p1")
    finally:
        await b.shutdown()

    assert len(conn_a.frames) == 1
    assert conn_a.frames[0]["data"]["patientId"] == "p1"
    assert conn_b.frames == []


@pytest.mark.asyncio
async def test_scenario_subscribe_receive_unsubscribe(fast_broadcaster):
    b, gw = fast_broadcaster
    conn = FakeConnection()
    gw.connect(conn, "c1")

    b.subscribe("c1", "p1")
    assert b.has_timer("p1")

    for _ in range(50):
        if conn.frames:
            break
        await asyncio.sleep(0.01)
    assert conn.frames, "expected at least one tick"

    before = {m.id: m.value for m in METRICS["p1"]}
    frame = conn.frames[0]
    assert frame["event"] == BIOMARKER_UPDATES
    assert 2 <= len(frame["data"]["updates"]) <= 3
    for update in frame["data"]["updates"]:
        assert abs(update["value"] - before[update["id"]]) <= 5.0 + 1e-9

    b.unsubscribe("c1", "p1")
    assert not b.has_timer("p1")
    received = len(conn.frames)
    await asyncio.sleep(0.1)
    assert len(conn.frames) == received


@pytest.mark.asyncio
async def test_scenario_shared_topic_then_disconnect(fast_broadcaster):
    b, gw = fast_broadcaster
    gw.connect(FakeConnection(), "c1")
    gw.connect(FakeConnection(), "c2")

    b.subscribe("c1", "p1")
    b.subscribe("c2", "p1")
    assert b.active_topics() == {"p1"}

    b.unsubscribe("c1", "p1")
    assert b.has_timer("p1")

    gw.disconnect("c2")
    assert not b.has_timer("p1")
    assert b.subscribers_of("p1") == set()


@pytest.mark.asyncio
async def test_timer_survives_transient_store_failure(fast_broadcaster, metrics):
    b, gw = fast_broadcaster
    conn = FakeConnection()
    gw.connect(conn, "c1")
    metrics.fail = True

    b.subscribe("c1", "p1")
    await asyncio.sleep(0.06)
    assert metrics.calls >= 1
    assert conn.frames == []

    metrics.fail = False
    for _ in range(50):
        if conn.frames:
            break
        await asyncio.sleep(0.01)
    assert conn.frames
    assert b.has_timer("p1")
