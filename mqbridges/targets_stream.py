"""Targets that publish requests as events, persistent events or queue messages."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from mqbridges.messages import (
    BridgeError,
    CommandReceive,
    ConnectionSettings,
    Connector,
    Event,
    EventStore,
    EventStoreReceive,
    PolledMessage,
    QueryReceive,
    QueueMessage,
    Transport,
)
from mqbridges.options import (
    QueueTargetOptions,
    StreamTargetOptions,
    parse_queue_target_options,
    parse_stream_target_options,
)

DEFAULT_SEND_TIMEOUT_SECONDS = 10.0

_ID_TYPES = (CommandReceive, Event, EventStoreReceive, QueryReceive)

_T = TypeVar("_T")


def _payload(request: Any, *, allow_polled: bool = False) -> dict[str, Any]:
    if isinstance(request, _ID_TYPES):
        message_id = request.id
    elif isinstance(request, QueueMessage) or (
        allow_polled and isinstance(request, PolledMessage)
    ):
        message_id = request.message_id
    else:
        raise BridgeError("unknown request type")
    return {
        "id": message_id,
        "channel": request.channel,
        "metadata": request.metadata,
        "body": request.body,
        "tags": dict(request.tags),
    }


def _fan_out(
    request: Any, channels: Iterable[str], factory: Callable[..., _T]
) -> list[_T]:
    payload = _payload(request)
    targets = list(channels) or [payload["channel"]]
    return [
        factory(**{**payload, "channel": channel, "tags": dict(payload["tags"])})
        for channel in targets
    ]


def to_events(request: Any, channels: Iterable[str]) -> list[Event]:
    """One event per channel; the request's own channel when none are given."""
    return _fan_out(request, channels, Event)


def to_events_store(request: Any, channels: Iterable[str]) -> list[EventStore]:
    """One persistent event per channel; the request's own channel when none are given."""
    return _fan_out(request, channels, EventStore)


def to_queue_messages(request: Any, options: QueueTargetOptions) -> list[QueueMessage]:
    """One queue message per configured channel, carrying the configured policy."""
    payload = _payload(request, allow_polled=True)
    channels = list(options.channels)
    if not channels and isinstance(request, Event):
        channels = [payload["channel"]]
    return [
        QueueMessage(
            message_id=payload["id"],
            channel=channel,
            metadata=payload["metadata"],
            body=payload["body"],
            tags=dict(payload["tags"]),
            delay_seconds=options.delay_seconds,
            expiration_seconds=options.expiration_seconds,
            max_receive_count=options.max_receive_count,
            dead_letter_queue=options.dead_letter_queue,
        )
        for channel in channels
    ]


class _ConnectedTarget:
    _logger_name = "stream"
    _auto_reconnect = False

    def __init__(self, connector: Connector) -> None:
        self._connector = connector
        self._transport: Transport | None = None
        self.log = logging.getLogger(f"mqbridges.{self._logger_name}")

    def _set_log(self, log: logging.Logger | None) -> None:
        self.log = log or logging.getLogger(f"mqbridges.{self._logger_name}")

    async def _connect(self, options: StreamTargetOptions | QueueTargetOptions) -> None:
        self._transport = await self._connector(
            ConnectionSettings(
                host=options.host,
                port=options.port,
                client_id=options.client_id,
                auth_token=options.auth_token,
                check_connection=True,
                auto_reconnect=self._auto_reconnect,
            )
        )
        self.log.debug("connected to %s:%d", options.host, options.port)

    def _connected(self) -> Transport:
        if self._transport is None:
            raise BridgeError("target is not initialized")
        return self._transport

    async def _close(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()


class _PublishingTarget(_ConnectedTarget):
    _timeout_message = "error timeout on sending"

    def __init__(self, connector: Connector) -> None:
        super().__init__(connector)
        self.options: StreamTargetOptions | None = None
        self.send_timeout = DEFAULT_SEND_TIMEOUT_SECONDS

    async def _open(
        self, connection: Mapping[str, Any], log: logging.Logger | None
    ) -> None:
        self._set_log(log)
        self.options = parse_stream_target_options(connection)
        await self._connect(self.options)

    async def _publish(self, messages: list[Any], send: Callable[[Any], Any]) -> None:
        for message in messages:
            try:
                await asyncio.wait_for(send(message), self.send_timeout)
            except asyncio.TimeoutError:
                raise BridgeError(self._timeout_message) from None

    def _channels(self) -> list[str]:
        return self.options.channels if self.options is not None else []


class EventsTarget(_PublishingTarget):
    """Publishes each request as an event on every configured channel."""

    _logger_name = "events"
    _timeout_message = "error timeout on sending event"

    def __init__(self, connector: Connector) -> None:
        super().__init__(connector)

    async def init(
        self, connection: Mapping[str, Any], log: logging.Logger | None = None
    ) -> None:
        """Parse the connection settings and open the broker connection."""
        await self._open(connection, log)

    async def do(self, request: Any) -> None:
        """Publish the request as one event per channel."""
        messages = to_events(request, self._channels())
        transport = self._connected()
        await self._publish(messages, transport.send_event)
        return None

    async def stop(self) -> None:
        """Close the broker connection, if one is open."""
        await self._close()


class EventsStoreTarget(_PublishingTarget):
    """Publishes each request as a persistent event on every configured channel."""

    _logger_name = "events-store"
    _timeout_message = "error timeout on sending event store"

    def __init__(self, connector: Connector) -> None:
        super().__init__(connector)

    async def init(
        self, connection: Mapping[str, Any], log: logging.Logger | None = None
    ) -> None:
        """Parse the connection settings and open the broker connection."""
        await self._open(connection, log)

    async def do(self, request: Any) -> None:
        """Publish the request as one persistent event per channel."""
        messages = to_events_store(request, self._channels())
        transport = self._connected()
        await self._publish(messages, transport.send_event_store)
        return None

    async def stop(self) -> None:
        """Close the broker connection, if one is open."""
        await self._close()


class QueueTarget(_ConnectedTarget):
    """Sends each request as a queue message to every configured channel."""

    _logger_name = "queue"
    _auto_reconnect = True

    def __init__(self, connector: Connector) -> None:
        super().__init__(connector)
        self.options: QueueTargetOptions | None = None

    async def init(
        self, connection: Mapping[str, Any], log: logging.Logger | None = None
    ) -> None:
        """Parse the connection settings and open the broker connection."""
        self._set_log(log)
        self.options = parse_queue_target_options(connection)
        await self._connect(self.options)

    async def do(self, request: Any) -> None:
        """Send the request to every channel; raise on the first failed result."""
        if self.options is None:
            raise BridgeError("target is not initialized")
        messages = to_queue_messages(request, self.options)
        results = await self._connected().send_queue_messages(messages)
        for result in results:
            if result.is_error:
                raise BridgeError(result.error)
        return None

    async def stop(self) -> None:
        """Close the broker connection, if one is open."""
        await self._close()