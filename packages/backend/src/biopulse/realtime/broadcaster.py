"""Live update broadcaster — per-patient timers driven by subscriber presence.

Learn: Each patient (topic) is in one of two states:

  NoSubscribers ── first subscribe ──▶ Active ── last subscriber gone ──▶ NoSubscribers

Only Active topics own a timer. The timer is an asyncio task that
sleeps a randomized period (uniform in [min_interval, max_interval),
picked once when the timer starts) and then runs one tick: fetch the
patient's biomarkers, perturb 2–3 of them by a uniform delta in
[-max_delta, +max_delta), and push the changed values to the room.

subscribe/unsubscribe/handle_disconnect are plain synchronous methods.
On a single event loop they run without interleaving, which is what
keeps "one timer per topic" true without a lock: no await sits between
checking the timer registry and writing to it.

Ticks never raise. A failed metric lookup is logged and the timer keeps
going; the next tick simply tries again.
"""

import asyncio
import random
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence

import structlog

from biopulse.realtime.events import BIOMARKER_UPDATES
from biopulse.schemas.live import BiomarkerUpdate, BiomarkerUpdateEvent

logger = structlog.get_logger()


class Metric(Protocol):
    id: str
    name: str
    value: float
    unit: str


class MetricSource(Protocol):
    async def list_metrics_for_topic(self, topic_id: str) -> Sequence[Metric]: ...


class TopicGateway(Protocol):
    def join(self, connection_id: str, topic_id: str) -> bool: ...

    def leave(self, connection_id: str, topic_id: str) -> None: ...

    async def send_to_topic(self, topic_id: str, event: str, payload: Any) -> Any: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class LiveUpdateBroadcaster:
    """Owns the subscription and timer registries for live updates."""

    def __init__(
        self,
        metrics: MetricSource,
        gateway: TopicGateway,
        rng: Optional[random.Random] = None,
        *,
        min_interval: float = 2.0,
        max_interval: float = 3.0,
        max_delta: float = 5.0,
        min_batch: int = 2,
        max_batch: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not 0 < min_interval <= max_interval:
            raise ValueError("Intervals must satisfy 0 < min_interval <= max_interval")
        if not 1 <= min_batch <= max_batch:
            raise ValueError("Batch sizes must satisfy 1 <= min_batch <= max_batch")

        self.metrics = metrics
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.min_interval = min_interval
        self.max_interval = max_interval
        self.max_delta = max_delta
        self.min_batch = min_batch
        self.max_batch = max_batch
        self.clock = clock

        self._subscribers: dict[str, set[str]] = {}
        self._timers: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls,
        metrics: MetricSource,
        gateway: TopicGateway,
        settings,
        rng: Optional[random.Random] = None,
    ) -> "LiveUpdateBroadcaster":
        return cls(
            metrics,
            gateway,
            rng,
            min_interval=settings.live_update_min_interval,
            max_interval=settings.live_update_max_interval,
            max_delta=settings.live_update_max_delta,
            min_batch=settings.live_update_min_batch,
            max_batch=settings.live_update_max_batch,
        )

    # ─── Subscription lifecycle ─────────────────────────

    def subscribe(self, connection_id: str, topic_id: str) -> None:
        """Add a subscriber; the first one for a topic starts its timer."""
        if not topic_id:
            raise ValueError("topic_id must be a non-empty string")

        # Only open connections subscribe; closing one releases its topics
        if not self.gateway.join(connection_id, topic_id):
            logger.warning(
                "biopulse.live.subscribe_unknown_connection",
                patient_id=topic_id,
                connection_id=connection_id,
            )
            return

        self._subscribers.setdefault(topic_id, set()).add(connection_id)

        if topic_id not in self._timers:
            self._start_timer(topic_id)

        logger.info(
            "biopulse.live.subscribed",
            patient_id=topic_id,
            connection_id=connection_id,
            subscribers=len(self._subscribers[topic_id]),
        )

    def unsubscribe(self, connection_id: str, topic_id: str) -> None:
        """Remove a subscriber; the last one out cancels the timer."""
        self.gateway.leave(connection_id, topic_id)

        subscribers = self._subscribers.get(topic_id)
        if not subscribers or connection_id not in subscribers:
            return

        subscribers.discard(connection_id)
        if not subscribers:
            self._release(topic_id)

        logger.info(
            "biopulse.live.unsubscribed",
            patient_id=topic_id,
            connection_id=connection_id,
        )

    def handle_disconnect(self, connection_id: str) -> None:
        """Remove a connection from every topic it subscribed to."""
        released = []
        for topic_id in list(self._subscribers):
            subscribers = self._subscribers[topic_id]
            if connection_id not in subscribers:
                continue
            subscribers.discard(connection_id)
            if not subscribers:
                self._release(topic_id)
                released.append(topic_id)

        if released:
            logger.info(
                "biopulse.live.disconnect_released",
                connection_id=connection_id,
                patient_ids=released,
            )

    def _release(self, topic_id: str) -> None:
        del self._subscribers[topic_id]
        self._cancel_timer(topic_id)

    # ─── Timers ─────────────────────────────────────────

    def _start_timer(self, topic_id: str) -> None:
        period = self.min_interval + self.rng.random() * (self.max_interval - self.min_interval)
        self._timers[topic_id] = asyncio.create_task(
            self._run_timer(topic_id, period),
            name=f"live-updates:{topic_id}",
        )
        logger.debug("biopulse.live.timer_started", patient_id=topic_id, period=round(period, 3))

    def _cancel_timer(self, topic_id: str) -> None:
        task = self._timers.pop(topic_id, None)
        if task is not None:
            task.cancel()
            logger.debug("biopulse.live.timer_cancelled", patient_id=topic_id)

    async def _run_timer(self, topic_id: str, period: float) -> None:
        while True:
            await asyncio.sleep(period)
            await self.on_tick(topic_id)

    async def shutdown(self) -> None:
        """Cancel every timer and wait for them to finish."""
        tasks = list(self._timers.values())
        self._timers.clear()
        self._subscribers.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ─── Ticks ──────────────────────────────────────────

    async def on_tick(self, topic_id: str) -> Optional[dict]:
        """Perturb a few metrics and push them. Returns the sent payload, if any."""
        try:
            metrics = list(await self.metrics.list_metrics_for_topic(topic_id))
            if not metrics:
                return None

            payload = self.build_update(topic_id, metrics)

            # Released while the lookup was in flight
            if not self._subscribers.get(topic_id):
                return None

            await self.gateway.send_to_topic(topic_id, BIOMARKER_UPDATES, payload)
            return payload
        except Exception:
            logger.exception("biopulse.live.tick_failed", patient_id=topic_id)
            return None

    def build_update(self, topic_id: str, metrics: Sequence[Metric]) -> dict:
        """Wire payload for one tick: only the perturbed metrics."""
        span = self.max_batch - self.min_batch + 1
        count = min(self.min_batch + int(self.rng.random() * span), len(metrics))
        selected = self.rng.sample(list(metrics), count)

        timestamp = _iso(self.clock())
        updates = [
            BiomarkerUpdate(
                id=metric.id,
                name=metric.name,
                value=self.perturb(metric.value),
                timestamp=timestamp,
                unit=metric.unit or "",
            )
            for metric in selected
        ]
        event = BiomarkerUpdateEvent(patient_id=topic_id, updates=updates, timestamp=timestamp)
        return event.model_dump(by_alias=True)

    def perturb(self, value: float) -> float:
        # Same absolute jitter for every unit (bpm, pg/mL, ...)
        delta = (self.rng.random() * 2 - 1) * self.max_delta
        return round(value + delta, 2)

    # ─── Introspection ──────────────────────────────────

    def has_timer(self, topic_id: str) -> bool:
        return topic_id in self._timers

    def subscribers_of(self, topic_id: str) -> set[str]:
        return set(self._subscribers.get(topic_id, ()))

    def active_topics(self) -> set[str]:
        return set(self._timers)

    def stats(self) -> dict:
        return {
            "liveTopics": len(self._timers),
            "subscriptions": sum(len(s) for s in self._subscribers.values()),
        }
