# mqbridges

`mqbridges` holds the building blocks for forwarding messages between the
channels of a message broker:

- `mqbridges.messages` – dataclasses for the messages that travel through a
  bridge (`Event`, `EventStore`, `EventStoreReceive`, `CommandReceive`,
  `QueryReceive`, `QueueMessage`, `PolledMessage`, `Command`, `Query`,
  `CommandResponse`, `QueryResponse`, `Response`, `SendResult`), the
  `ConnectionSettings` used to open a broker connection, the `Transport` and
  `Target` protocols, and the base error `BridgeError`.
- `mqbridges.options` – parsers that turn plain string mappings, as they would
  appear in a configuration file, into typed settings. Invalid values raise
  `OptionsError` (a `BridgeError` and a `ValueError`).
- `mqbridges.targets_stream` – asynchronous targets that re-publish any
  received message as events (`EventsTarget`), persistent events
  (`EventsStoreTarget`) or queue messages (`QueueTarget`).

There are no third-party dependencies.

## Installing

```
pip install mqbridges
```

For the test suite:

```
pip install "mqbridges[test]"
pytest
```

## Connecting to a broker

The package never opens network connections by itself. Each target is built
with a *connector*: an async callable that takes a
`mqbridges.messages.ConnectionSettings` and returns an object implementing
`mqbridges.messages.Transport` (`send_event`, `send_event_store`,
`send_queue_messages`, `close`, and so on). Plug the client of your broker in
there, or a fake one in tests.

## Targets

```python
from mqbridges.messages import Event
from mqbridges.targets_stream import EventsTarget


async def forward(connector):
    target = EventsTarget(connector)
    await target.init({"address": "localhost:50000", "channels": "copy-a,copy-b"})
    await target.do(Event(id="1", channel="orders", metadata="m", body=b"data"))
    await target.stop()
```

`init(connection, log=None)` parses the settings and opens the connection;
`do(request)` publishes the request and returns `None`; `stop()` closes the
connection.

A request may be an `Event`, `EventStoreReceive`, `CommandReceive`,
`QueryReceive` or `QueueMessage` (`QueueTarget` also takes a
`PolledMessage`). Any other object raises `BridgeError("unknown request
type")`. The id, metadata, body and tags are carried over.

- `EventsTarget` and `EventsStoreTarget` send one message per configured
  channel, or one on the request's own channel when `channels` is empty. Each
  send that takes longer than `send_timeout` seconds (10 by default) raises
  `BridgeError`.
- `QueueTarget` sends one message per configured channel, carrying the
  configured delay, expiration, maximum receive count and dead-letter queue.
  The first result reported as an error is raised as `BridgeError`.

The same conversions are available as functions: `to_events(request,
channels)`, `to_events_store(request, channels)` and
`to_queue_messages(request, options)`.

## Settings

All keys are optional unless noted; empty values count as missing.

Event and events-store targets (`parse_stream_target_options`):
`address` (`host:port`, default `localhost:50000`), `client_id` (random by
default), `auth_token` (empty by default) and `channels` (comma separated).

Queue target (`parse_queue_target_options`): as above, and `channels` is
required; also `expiration_seconds`, `delay_seconds`, `max_receive_count`
(each 0 to 2147483647, default 0) and `dead_letter_queue`.

The module also parses settings for other bridge components:

| function | keys |
| --- | --- |
| `parse_source_options` | `address` (default `0.0.0.0:50000`), `channel` (required), `client_id`, `auth_token`, `group`, `sources` (1–1024, default 1), `auto_reconnect` (default true), `reconnect_interval_seconds` (1–1000000, default 1), `max_reconnects` (default 0) |
| `parse_queue_source_options` | `address` (default `0.0.0.0:50000`), `channel` (required), `client_id`, `auth_token`, `sources` (1–100, default 1), `batch_size` (1–1024, default 1), `wait_timeout` (seconds, 1–86400, default 5) |
| `parse_rpc_target_options` | `address` (default `localhost:5000`), `client_id`, `auth_token`, `default_channel`, `timeout_seconds` (1–2147483647, default 600) |

`parse_address("host:port")` returns `(host, port)` and raises
`OptionsError` when the value is not of that form.

## Polled queue messages

A `PolledMessage` is settled once, with `await message.ack()` or
`await message.nack()`; settling it again raises `BridgeError`.
`message.should_requeue()` is true while the message's `max_receive_count`
is below 1024 and differs from its `receive_count`.

## What this package does not do

It contains no components that subscribe to channels and feed targets, no
targets that forward requests as commands or queries, no lookup of
components by kind name, and no command-line program or service. The
settings parsers for sources and for command and query targets are provided,
but nothing in the package uses them yet. Broker connectivity is supplied by
the caller's connector.