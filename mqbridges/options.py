"""Parsing of connection settings for sources and targets."""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mqbridges.messages import BridgeError

MAX_INT32 = 2**31 - 1

SOURCE_DEFAULT_ADDRESS = "0.0.0.0:50000"
RPC_TARGET_DEFAULT_ADDRESS = "localhost:5000"
STREAM_TARGET_DEFAULT_ADDRESS = "localhost:50000"
DEFAULT_TIMEOUT_SECONDS = 600
DEFAULT_WAIT_TIMEOUT = 5

_CREDENTIAL_KEY = "auth_token"
_NO_CREDENTIAL = str()

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class OptionsError(BridgeError, ValueError):
    """Raised when a connection setting is missing or invalid."""


@dataclass
class SourceOptions:
    """Settings of a subscribing source (events, events store, command, query)."""

    host: str
    port: int
    channel: str
    client_id: str
    auth_token: str = _NO_CREDENTIAL
    group: str = ""
    auto_reconnect: bool = True
    reconnect_interval_seconds: int = 1
    max_reconnects: int = 0
    sources: int = 1


@dataclass
class QueueSourceOptions:
    """Settings of a polling queue source."""

    host: str
    port: int
    channel: str
    client_id: str
    auth_token: str = _NO_CREDENTIAL
    sources: int = 1
    batch_size: int = 1
    wait_timeout: int = DEFAULT_WAIT_TIMEOUT


@dataclass
class RpcTargetOptions:
    """Settings of a command or query target."""

    host: str
    port: int
    client_id: str
    auth_token: str = _NO_CREDENTIAL
    default_channel: str = ""
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS


@dataclass
class StreamTargetOptions:
    """Settings of an events or events store target."""

    host: str
    port: int
    client_id: str
    auth_token: str = _NO_CREDENTIAL
    channels: list[str] = field(default_factory=list)


@dataclass
class QueueTargetOptions:
    """Settings of a queue target."""

    host: str
    port: int
    client_id: str
    channels: list[str]
    auth_token: str = _NO_CREDENTIAL
    expiration_seconds: int = 0
    delay_seconds: int = 0
    max_receive_count: int = 0
    dead_letter_queue: str = ""


def _lookup(cfg: Mapping[str, Any], key: str) -> str | None:
    value = cfg.get(key)
    if value is None:
        return None
    text = str(value)
    return text or None


def _to_int(text: str) -> int:
    if not _INT_PATTERN.fullmatch(text):
        raise OptionsError(f"invalid integer value {text!r}")
    return int(text)


def _string(cfg: Mapping[str, Any], key: str, default: str) -> str:
    value = _lookup(cfg, key)
    return default if value is None else value


def _required_string(cfg: Mapping[str, Any], key: str) -> str:
    value = _lookup(cfg, key)
    if value is None:
        raise OptionsError(f"value for key {key} not found or empty")
    return value


def _int(cfg: Mapping[str, Any], key: str, default: int) -> int:
    value = _lookup(cfg, key)
    if value is None:
        return default
    try:
        return _to_int(value)
    except OptionsError:
        return default


def _int_in_range(
    cfg: Mapping[str, Any], key: str, default: int, low: int, high: int
) -> int:
    value = _lookup(cfg, key)
    number = default if value is None else _to_int(value)
    if not low <= number <= high:
        raise OptionsError(f"{key} value {number} out of range [{low}..{high}]")
    return number


def _bool(cfg: Mapping[str, Any], key: str, default: bool) -> bool:
    value = _lookup(cfg, key)
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    return default


def _string_list(cfg: Mapping[str, Any], key: str) -> list[str]:
    value = _lookup(cfg, key)
    if value is None:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _client_id(cfg: Mapping[str, Any]) -> str:
    return _string(cfg, "client_id", str(uuid.uuid4()))


def _credential(cfg: Mapping[str, Any]) -> str:
    return _string(cfg, _CREDENTIAL_KEY, _NO_CREDENTIAL)


def parse_address(value: str) -> tuple[str, int]:
    """Split a "host:port" address into its host and numeric port."""
    parts = str(value).split(":")
    if len(parts) != 2:
        raise OptionsError(f"invalid address {value!r}, expected host:port")
    host, port_text = parts
    try:
        port = _to_int(port_text)
    except OptionsError as exc:
        raise OptionsError(f"invalid port in address {value!r}") from exc
    return host, port


def _address(cfg: Mapping[str, Any], default: str) -> tuple[str, int]:
    try:
        return parse_address(_string(cfg, "address", default))
    except OptionsError as exc:
        raise OptionsError(f"error parsing address value, {exc}") from exc


def _wrapped(message: str, func, *args):
    try:
        return func(*args)
    except OptionsError as exc:
        raise OptionsError(f"{message}, {exc}") from exc


def parse_source_options(cfg: Mapping[str, Any]) -> SourceOptions:
    """Parse the settings of an events, events store, command or query source."""
    host, port = _address(cfg, SOURCE_DEFAULT_ADDRESS)
    auth_token = _credential(cfg)
    client_id = _client_id(cfg)
    channel = _wrapped("error parsing channel value", _required_string, cfg, "channel")
    sources = _wrapped(
        "error parsing sources value", _int_in_range, cfg, "sources", 1, 1, 1024
    )
    group = _string(cfg, "group", "")
    auto_reconnect = _bool(cfg, "auto_reconnect", True)
    interval = _wrapped(
        "error parsing reconnect interval seconds value",
        _int_in_range,
        cfg,
        "reconnect_interval_seconds",
        1,
        1,
        1_000_000,
    )
    max_reconnects = _int(cfg, "max_reconnects", 0)
    return SourceOptions(
        host=host,
        port=port,
        channel=channel,
        client_id=client_id,
        auth_token=auth_token,
        group=group,
        auto_reconnect=auto_reconnect,
        reconnect_interval_seconds=interval,
        max_reconnects=max_reconnects,
        sources=sources,
    )


def parse_queue_source_options(cfg: Mapping[str, Any]) -> QueueSourceOptions:
    """Parse the settings of a polling queue source."""
    host, port = _address(cfg, SOURCE_DEFAULT_ADDRESS)
    auth_token = _credential(cfg)
    client_id = _client_id(cfg)
    channel = _wrapped("error parsing channel value", _required_string, cfg, "channel")
    sources = _wrapped(
        "error parsing sources value", _int_in_range, cfg, "sources", 1, 1, 100
    )
    batch_size = _wrapped(
        "error parsing batch size value", _int_in_range, cfg, "batch_size", 1, 1, 1024
    )
    wait_timeout = _wrapped(
        "error parsing wait timeout value",
        _int_in_range,
        cfg,
        "wait_timeout",
        DEFAULT_WAIT_TIMEOUT,
        1,
        24 * 60 * 60,
    )
    return QueueSourceOptions(
        host=host,
        port=port,
        channel=channel,
        client_id=client_id,
        auth_token=auth_token,
        sources=sources,
        batch_size=batch_size,
        wait_timeout=wait_timeout,
    )


def parse_rpc_target_options(cfg: Mapping[str, Any]) -> RpcTargetOptions:
    """Parse the settings of a command or query target."""
    host, port = _address(cfg, RPC_TARGET_DEFAULT_ADDRESS)
    auth_token = _credential(cfg)
    client_id = _client_id(cfg)
    default_channel = _string(cfg, "default_channel", "")
    timeout_seconds = _wrapped(
        "error parsing timeout seconds value",
        _int_in_range,
        cfg,
        "timeout_seconds",
        DEFAULT_TIMEOUT_SECONDS,
        1,
        MAX_INT32,
    )
    return RpcTargetOptions(
        host=host,
        port=port,
        client_id=client_id,
        auth_token=auth_token,
        default_channel=default_channel,
        timeout_seconds=timeout_seconds,
    )


def parse_stream_target_options(cfg: Mapping[str, Any]) -> StreamTargetOptions:
    """Parse the settings of an events or events store target."""
    host, port = _address(cfg, STREAM_TARGET_DEFAULT_ADDRESS)
    return StreamTargetOptions(
        host=host,
        port=port,
        client_id=_client_id(cfg),
        auth_token=_credential(cfg),
        channels=_string_list(cfg, "channels"),
    )


def parse_queue_target_options(cfg: Mapping[str, Any]) -> QueueTargetOptions:
    """Parse the settings of a queue target; at least one channel is required."""
    host, port = _address(cfg, STREAM_TARGET_DEFAULT_ADDRESS)
    auth_token = _credential(cfg)
    client_id = _client_id(cfg)
    channels = _string_list(cfg, "channels")
    if not channels:
        raise OptionsError("error parsing channels, cannot be empty")
    expiration = _wrapped(
        "error parsing expiration seconds",
        _int_in_range,
        cfg,
        "expiration_seconds",
        0,
        0,
        MAX_INT32,
    )
    delay = _wrapped(
        "error parsing delay seconds", _int_in_range, cfg, "delay_seconds", 0, 0, MAX_INT32
    )
    try:
        max_receive_count = _int_in_range(cfg, "max_receive_count", 0, 0, MAX_INT32)
    except OptionsError as exc:
        raise OptionsError("error parsing max receive count value") from exc
    return QueueTargetOptions(
        host=host,
        port=port,
        client_id=client_id,
        channels=channels,
        auth_token=auth_token,
        expiration_seconds=expiration,
        delay_seconds=delay,
        max_receive_count=max_receive_count,
        dead_letter_queue=_string(cfg, "dead_letter_queue", ""),
    )