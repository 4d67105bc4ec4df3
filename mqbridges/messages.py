"""Message types, connection settings and the transport and target interfaces."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

_MAX_RECEIVE_LIMIT = 1024


class BridgeError(Exception):
    """Base error raised by the bridge components."""


def _tags() -> Any:
    return field(default_factory=dict)


@dataclass
class _Content:
    """Fields shared by every message that carries a payload."""

    channel: str = ""
    metadata: str = ""
    body: bytes = b""
    client_id: str = ""
    tags: dict[str, str] = _tags()


@dataclass
class _Identified(_Content):
    id: str = ""


@dataclass
class _Addressed(_Identified):
    response_to: str = ""


@dataclass
class _Outgoing(_Identified):
    timeout_seconds: int = 0


@dataclass
class _Queued(_Content):
    message_id: str = ""
    max_receive_count: int = 0


@dataclass
class Event(_Identified):
    """A fire-and-forget event, as sent or as received."""


@dataclass
class EventStore(_Identified):
    """An outgoing persistent event."""


@dataclass
class EventStoreReceive(_Identified):
    """A persistent event delivered to a subscriber."""

    sequence: int = 0
    timestamp: datetime | None = None


@dataclass
class CommandReceive(_Addressed):
    """A command delivered to a subscriber that must be answered."""


@dataclass
class QueryReceive(_Addressed):
    """A query delivered to a subscriber that must be answered."""


@dataclass
class QueueMessage(_Queued):
    """A queue message together with its delivery policy."""

    delay_seconds: int = 0
    expiration_seconds: int = 0
    dead_letter_queue: str = ""


AckCallback = Callable[[], Awaitable[None]]


@dataclass
class PolledMessage(_Queued):
    """A queue message received by polling; it must be acknowledged or rejected."""

    receive_count: int = 0
    on_ack: AckCallback | None = field(default=None, repr=False, compare=False)
    on_nack: AckCallback | None = field(default=None, repr=False, compare=False)
    status: str = field(default="pending", compare=False)

    async def _settle(self, callback: AckCallback | None, outcome: str) -> None:
        if self.status != "pending":
            raise BridgeError(f"message {self.message_id!r} already {self.status}")
        if callback is not None:
            await callback()
        self.status = outcome

    async def ack(self) -> None:
        """Acknowledge the message, removing it from the queue."""
        await self._settle(self.on_ack, "acked")

    async def nack(self) -> None:
        """Reject the message so that it returns to the queue."""
        await self._settle(self.on_nack, "nacked")

    def should_requeue(self) -> bool:
        """Whether a failed message may still be handed back to the queue."""
        return (
            self.max_receive_count < _MAX_RECEIVE_LIMIT
            and self.max_receive_count != self.receive_count
        )


@dataclass
class Command(_Outgoing):
    """An outgoing command awaiting execution."""


@dataclass
class Query(_Outgoing):
    """An outgoing query awaiting a reply."""


@dataclass
class _Outcome:
    """Fields shared by the responses to commands and queries."""

    response_client_id: str = ""
    executed: bool = False
    executed_at: datetime | None = None
    error: str = ""
    tags: dict[str, str] = _tags()


@dataclass
class CommandResponse(_Outcome):
    """The outcome of a command."""

    command_id: str = ""


@dataclass
class QueryResponse(_Outcome):
    """The outcome of a query, with its reply payload."""

    query_id: str = ""
    metadata: str = ""
    body: bytes = b""
    cache_hit: bool = False


@dataclass
class Response:
    """A reply sent back for a received command or query."""

    request_id: str = ""
    response_to: str = ""
    metadata: str = ""
    body: bytes = b""
    tags: dict[str, str] = _tags()
    executed_at: datetime | None = None
    error: str = ""


@dataclass
class SendResult:
    """Per-message result of sending queue messages."""

    message_id: str = ""
    is_error: bool = False
    error: str = ""


@dataclass
class ConnectionSettings:
    """Everything needed to open a connection to a broker."""

    host: str
    port: int
    client_id: str
    auth_token: str = ""
    check_connection: bool = True
    auto_reconnect: bool = False
    reconnect_interval_seconds: int = 0
    max_reconnects: int = 0


class Transport(Protocol):
    """An open connection to a broker."""

    async def send_command(self, command: Command) -> CommandResponse: ...
    async def send_query(self, query: Query) -> QueryResponse: ...
    async def send_event(self, event: Event) -> None: ...
    async def send_event_store(self, event: EventStore) -> None: ...
    async def send_queue_messages(self, messages: Sequence[QueueMessage]) -> list[SendResult]: ...
    async def send_response(self, response: Response) -> None: ...
    def subscribe_events(self, channel: str, group: str) -> AsyncIterator[Event]: ...
    def subscribe_events_store(self, channel: str, group: str) -> AsyncIterator[EventStoreReceive]: ...
    def subscribe_commands(self, channel: str, group: str) -> AsyncIterator[CommandReceive]: ...
    def subscribe_queries(self, channel: str, group: str) -> AsyncIterator[QueryReceive]: ...
    async def poll(self, channel: str, max_items: int, wait_timeout_ms: int) -> list[PolledMessage]: ...
    async def close(self) -> None: ...


Connector = Callable[[ConnectionSettings], Awaitable[Transport]]


@runtime_checkable
class Target(Protocol):
    """Something a source hands received messages to."""

    async def do(self, request: Any) -> Any: ...
    async def stop(self) -> None: ...