"""Port interfaces for pluggable components.

These protocols define the contracts that adapters must implement.
The sampler and the application factory depend only on these interfaces,
not on concrete implementations.
"""

from collections.abc import Callable, Iterable
from typing import Protocol, runtime_checkable

from insightops.core.models import BroadcastMessage, LogEntry, SystemSnapshot

Clock = Callable[[], float]


@runtime_checkable
class SampleSourcePort(Protocol):
    """Port for reading resource usage.

    Adapters implementing this protocol read CPU, memory and storage usage
    once per call. Examples: LinuxProcSampleSource, PsutilSampleSource,
    ProcessSampleSource.
    """

    def sample(self) -> SystemSnapshot:
        """Capture a fresh snapshot. Must not raise on OS-level failures."""
        ...


@runtime_checkable
class SubscriberPort(Protocol):
    """Port for a live connection registered with a broadcast channel."""

    @property
    def id(self) -> str: ...

    @property
    def closed(self) -> bool: ...

    def offer(self, message: BroadcastMessage) -> bool:
        """Enqueue a message without blocking.

        Returns:
            False when the subscriber cannot accept the message.
        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class BroadcastChannelPort(Protocol):
    """Port for fan-out of messages to live subscribers.

    Implementable over WebSockets, Server-Sent Events or polling without
    changing the sampler contract.
    """

    def subscribe(self) -> SubscriberPort: ...

    def publish(self, message: BroadcastMessage) -> int:
        """Deliver to every registered subscriber.

        Returns:
            Number of subscribers the message was delivered to.
        """
        ...

    def unsubscribe(self, subscriber: SubscriberPort) -> bool: ...


@runtime_checkable
class LogStoragePort(Protocol):
    """Port for captured log storage.

    Examples: LogBuffer.
    """

    def write(self, entry: LogEntry) -> None:
        """Write a log entry to storage."""
        ...

    def read(self, since: float = 0, level: str | None = None) -> Iterable[LogEntry]:
        """Read log entries since the given timestamp.

        Args:
            since: Unix timestamp. Returns entries with timestamp > since.
                   Default 0 returns all entries.
            level: Optional level filter (e.g., "ERROR").

        Returns:
            Iterable of LogEntry objects, ordered by timestamp ascending.
        """
        ...
