import asyncio

import pytest

from mqbridges.messages import (
    BridgeError,
    CommandReceive,
    Event,
    EventStore,
    EventStoreReceive,
    PolledMessage,
    QueryReceive,
    QueueMessage,
    SendResult,
)
from mqbridges.options import OptionsError, QueueTargetOptions
from mqbridges.targets_stream import (
    EventsStoreTarget,
    EventsTarget,
    QueueTarget,
    to_events,
    to_events_store,
    to_queue_messages,
)


class FakeTransport:
    def __init__(self, delay=0.0, failing=()):
        self.delay = delay
        self.failing = set(failing)
        self.events = []
        self.events_store = []
        self.queue_batches = []
        self.closed = False

    async def send_event(self, event):
        await asyncio.sleep(self.delay)
        self.events.append(event)

    async def send_event_store(self, event):
        await asyncio.sleep(self.delay)
        self.events_store.append(event)

    async def send_queue_messages(self, messages):
        self.queue_batches.append(list(messages))
        return [
            SendResult(
                message_id=m.message_id,
                is_error=m.channel in self.failing,
                error="queue rejected" if m.channel in self.failing else "",
            )
            for m in messages
        ]

    async def close(self):
        self.closed = True


def make_connector(transport, seen=None):
    async def connector(settings):
        if seen is not None:
            seen.append(settings)
        return transport

    return connector


async def refusing_connector(settings):
    raise ConnectionRefusedError(f"cannot connect to {settings.host}:{settings.port}")


def requests_for(channel):
    return [
        Event(id="id", channel=channel, metadata="metadata", body=b"data"),
        EventStoreReceive(
            id="id", sequence=1, channel=channel, metadata="metadata", body=b"data"
        ),
        CommandReceive(id="id", channel=channel, metadata="metadata", body=b"data"),
        QueryReceive(id="id", channel=channel, metadata="metadata", body=b"data"),
        QueueMessage(message_id="id", channel=channel, metadata="metadata", body=b"data"),
    ]


@pytest.mark.parametrize("request_obj", requests_for("events1"))
def test_to_events_uses_request_channel(request_obj):
    assert to_events(request_obj, []) == [
        Event(id="id", channel="events1", metadata="metadata", body=b"data")
    ]


def test_to_events_fans_out_over_channels():
    events = to_events(Event(id="id", channel="orig", body=b"x"), ["a", "b"])
    assert [e.channel for e in events] == ["a", "b"]
    assert all(e.body == b"x" and e.id == "id" for e in events)


@pytest.mark.parametrize("request_obj", requests_for("events_store1"))
def test_to_events_store(request_obj):
    assert to_events_store(request_obj, []) == [
        EventStore(id="id", channel="events_store1", metadata="metadata", body=b"data")
    ]


def test_stream_conversions_reject_unknown_types():
    with pytest.raises(BridgeError, match="unknown request type"):
        to_events("bad-format", [])
    with pytest.raises(BridgeError, match="unknown request type"):
        to_events_store(PolledMessage(message_id="id"), [])


def queue_options(channels, **kwargs):
    return QueueTargetOptions(
        host="localhost", port=50000, client_id="client_id", channels=channels, **kwargs
    )


def test_to_queue_messages_sets_policy():
    options = queue_options(
        ["q1", "q2"],
        delay_seconds=3,
        expiration_seconds=7,
        max_receive_count=2,
        dead_letter_queue="dlq",
    )
    messages = to_queue_messages(
        CommandReceive(id="id", channel="c", metadata="m", body=b"b"), options
    )
    assert messages == [
        QueueMessage(
            message_id="id",
            channel=channel,
            metadata="m",
            body=b"b",
            delay_seconds=3,
            expiration_seconds=7,
            max_receive_count=2,
            dead_letter_queue="dlq",
        )
        for channel in ("q1", "q2")
    ]


def test_to_queue_messages_without_channels():
    options = queue_options([])
    from_event = to_queue_messages(Event(id="id", channel="ev"), options)
    assert [m.channel for m in from_event] == ["ev"]
    assert to_queue_messages(QueryReceive(id="id", channel="q"), options) == []


def test_to_queue_messages_accepts_polled_messages():
    polled = PolledMessage(message_id="id", channel="in", metadata="m", body=b"b")
    messages = to_queue_messages(polled, queue_options(["out"]))
    assert [(m.message_id, m.channel, m.body) for m in messages] == [("id", "out", b"b")]


def test_to_queue_messages_rejects_unknown_types():
    with pytest.raises(BridgeError, match="unknown request type"):
        to_queue_messages("bad-format", queue_options(["q"]))


@pytest.mark.asyncio
@pytest.mark.parametrize("request_obj", requests_for("events2"))
async def test_events_target_do(request_obj):
    transport = FakeTransport()
    target = EventsTarget(make_connector(transport))
    await target.init({"address": "localhost:50000"}, None)
    assert await target.do(request_obj) is None
    assert transport.events == [
        Event(id="id", channel="events2", metadata="metadata", body=b"data")
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("request_obj", requests_for("events_store3"))
async def test_events_store_target_do(request_obj):
    transport = FakeTransport()
    target = EventsStoreTarget(make_connector(transport))
    await target.init({"address": "localhost:50000"}, None)
    await target.do(request_obj)
    got = transport.events_store[0]
    assert (got.id, got.metadata, got.body) == ("id", "metadata", b"data")


@pytest.mark.asyncio
async def test_events_target_configured_channels():
    transport = FakeTransport()
    target = EventsTarget(make_connector(transport))
    await target.init({"address": "localhost:50000", "channels": "a,b"}, None)
    await target.do(Event(id="id", channel="orig"))
    assert [e.channel for e in transport.events] == ["a", "b"]


@pytest.mark.asyncio
async def test_events_target_invalid_type():
    for target_cls in (EventsTarget, EventsStoreTarget):
        target = target_cls(make_connector(FakeTransport()))
        await target.init({"address": "localhost:50000"}, None)
        with pytest.raises(BridgeError, match="unknown request type"):
            await target.do("bad-format")


@pytest.mark.asyncio
async def test_events_target_send_timeout():
    target = EventsTarget(make_connector(FakeTransport(delay=1.0)))
    await target.init({"address": "localhost:50000"}, None)
    target.send_timeout = 0.01
    with pytest.raises(BridgeError, match="error timeout on sending event"):
        await target.do(Event(id="id", channel="c"))


@pytest.mark.asyncio
async def test_events_store_target_send_timeout():
    target = EventsStoreTarget(make_connector(FakeTransport(delay=1.0)))
    await target.init({"address": "localhost:50000"}, None)
    target.send_timeout = 0.01
    with pytest.raises(BridgeError, match="error timeout on sending event store"):
        await target.do(Event(id="id", channel="c"))


@pytest.mark.asyncio
async def test_stream_target_init_settings():
    seen = []
    target = EventsTarget(make_connector(FakeTransport(), seen))
    await target.init(
        {
            "address": "localhost:50000",
            "client_id": "client_id",
            "auth_token": "token",
            "channels": "some-channel",
        },
        None,
    )
    assert (seen[0].host, seen[0].port, seen[0].client_id) == (
        "localhost",
        50000,
        "client_id",
    )
    assert seen[0].auth_token == "token"
    assert target.options.channels == ["some-channel"]


@pytest.mark.asyncio
async def test_stream_target_init_errors():
    for target_cls in (EventsTarget, EventsStoreTarget):
        with pytest.raises(OptionsError):
            await target_cls(make_connector(FakeTransport())).init(
                {"address": "localhost"}, None
            )
        with pytest.raises(ConnectionRefusedError):
            await target_cls(refusing_connector).init(
                {"address": "localhost:40000"}, None
            )


@pytest.mark.asyncio
@pytest.mark.parametrize("request_obj", requests_for("other"))
async def test_queue_target_do(request_obj):
    transport = FakeTransport()
    target = QueueTarget(make_connector(transport))
    await target.init({"address": "localhost:50000", "channels": "queues1"}, None)
    assert await target.do(request_obj) is None
    (message,) = transport.queue_batches[0]
    assert (message.message_id, message.channel, message.metadata, message.body) == (
        "id",
        "queues1",
        "metadata",
        b"data",
    )


@pytest.mark.asyncio
async def test_queue_target_reports_send_errors():
    transport = FakeTransport(failing={"bad"})
    target = QueueTarget(make_connector(transport))
    await target.init({"address": "localhost:50000", "channels": "good,bad"}, None)
    with pytest.raises(BridgeError, match="queue rejected"):
        await target.do(Event(id="id", channel="c"))


@pytest.mark.asyncio
async def test_queue_target_invalid_type():
    target = QueueTarget(make_connector(FakeTransport()))
    await target.init({"address": "localhost:50000", "channels": "q"}, None)
    with pytest.raises(BridgeError, match="unknown request type"):
        await target.do("bad-format")


@pytest.mark.asyncio
async def test_queue_target_init_settings():
    seen = []
    target = QueueTarget(make_connector(FakeTransport(), seen))
    await target.init(
        {
            "address": "localhost:50000",
            "client_id": "client_id",
            "auth_token": "token",
            "channels": "some-channel",
            "expiration_seconds": "0",
            "delay_seconds": "0",
            "max_receive_count": "1",
            "dead_letter_queue": "",
        },
        None,
    )
    assert seen[0].auto_reconnect is True
    assert target.options.max_receive_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "connection",
    [
        {"address": "localhost"},
        {"address": "localhost:50000"},
        {"address": "localhost:50000", "channels": "q", "expiration_seconds": "-1"},
        {"address": "localhost:50000", "channels": "q", "delay_seconds": "-1"},
        {"address": "localhost:50000", "channels": "q", "max_receive_count": "-1"},
    ],
)
async def test_queue_target_init_bad_options(connection):
    target = QueueTarget(make_connector(FakeTransport()))
    with pytest.raises(OptionsError):
        await target.init(connection, None)


@pytest.mark.asyncio
async def test_stop_closes_transport():
    transport = FakeTransport()
    target = QueueTarget(make_connector(transport))
    await target.init({"address": "localhost:50000", "channels": "q"}, None)
    await target.stop()
    assert transport.closed is True
    with pytest.raises(BridgeError, match="not initialized"):
        await target.do(Event(id="id", channel="c"))