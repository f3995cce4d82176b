"""BDD step definitions for live metric update features."""

from dataclasses import dataclass, field

import pytest
from pytest_bdd import given, parsers, then, when

from insightops.core.broadcast import Broadcaster, Subscriber
from insightops.core.models import METRICS_UPDATE, BroadcastMessage


@dataclass
class BroadcastScenarioContext:
    """Shared state between steps in a broadcast scenario."""

    broadcaster: Broadcaster | None = None
    subscribers: list[Subscriber] = field(default_factory=list)
    stalled: set[int] = field(default_factory=set)
    delivered: int = 0
    published: list[BroadcastMessage] = field(default_factory=list)
    received: dict[int, list[BroadcastMessage]] = field(default_factory=dict)

    def subscriber(self, number: int) -> Subscriber:
        return self.subscribers[number - 1]

    def publish(self, message: BroadcastMessage) -> int:
        assert self.broadcaster is not None
        self.published.append(message)
        delivered = self.broadcaster.publish(message)
        # Readers that keep up drain after every publish
        for index, subscriber in enumerate(self.subscribers, start=1):
            if index not in self.stalled:
                self.received.setdefault(index, []).extend(subscriber.drain())
        return delivered


def _update(cpu: float) -> BroadcastMessage:
    return BroadcastMessage(METRICS_UPDATE, {"cpuUsagePercent": cpu})


@pytest.fixture
def ctx() -> BroadcastScenarioContext:
    """Fresh scenario context for each test."""
    return BroadcastScenarioContext()


# === Given ===
@given(parsers.parse("a broadcaster with queue size {size:d}"))
def step_broadcaster(ctx: BroadcastScenarioContext, size: int) -> None:
    ctx.broadcaster = Broadcaster(max_queue_size=size)


@given(parsers.parse("{count:d} subscribers are connected"))
def step_subscribers(ctx: BroadcastScenarioContext, count: int) -> None:
    assert ctx.broadcaster is not None
    ctx.subscribers = [ctx.broadcaster.subscribe() for _ in range(count)]


@given(parsers.parse("subscriber {number:d} has closed its connection"))
def step_subscriber_closed(ctx: BroadcastScenarioContext, number: int) -> None:
    ctx.subscriber(number).close()
    ctx.stalled.add(number)


@given(parsers.parse("subscriber {number:d} stops reading"))
def step_subscriber_stalls(ctx: BroadcastScenarioContext, number: int) -> None:
    ctx.stalled.add(number)


# === When ===
@when(parsers.parse("a MetricsUpdate with cpu {cpu:f} is published"))
def step_publish_one(ctx: BroadcastScenarioContext, cpu: float) -> None:
    ctx.delivered = ctx.publish(_update(cpu))


@when(parsers.parse("{count:d} MetricsUpdates are published"))
def step_publish_many(ctx: BroadcastScenarioContext, count: int) -> None:
    for n in range(count):
        ctx.delivered = ctx.publish(_update(float(n)))


@when(parsers.parse("subscriber {number:d} unsubscribes twice"))
def step_unsubscribe_twice(ctx: BroadcastScenarioContext, number: int) -> None:
    assert ctx.broadcaster is not None
    subscriber = ctx.subscriber(number)
    assert ctx.broadcaster.unsubscribe(subscriber) is True
    assert ctx.broadcaster.unsubscribe(subscriber) is False


# === Then ===
@then(parsers.parse("the update is delivered to {count:d} subscribers"))
def step_delivered(ctx: BroadcastScenarioContext, count: int) -> None:
    assert ctx.delivered == count


@then(parsers.parse("every connected subscriber has received {count:d} message"))
def step_every_received(ctx: BroadcastScenarioContext, count: int) -> None:
    for index in range(1, len(ctx.subscribers) + 1):
        assert len(ctx.received.get(index, [])) == count


@then(parsers.parse("{count:d} subscribers remain registered"))
def step_remaining(ctx: BroadcastScenarioContext, count: int) -> None:
    assert ctx.broadcaster is not None
    assert ctx.broadcaster.subscriber_count == count


@then(parsers.parse("subscriber {number:d} has been dropped"))
def step_dropped(ctx: BroadcastScenarioContext, number: int) -> None:
    assert ctx.subscriber(number).closed


@then(parsers.parse("subscriber {number:d} receives the updates in publish order"))
def step_in_order(ctx: BroadcastScenarioContext, number: int) -> None:
    assert ctx.received[number] == ctx.published
