"""StatsD clients used to report benchmark metrics."""

from __future__ import annotations

import abc
import logging
import os
import re
import socket
import threading
from dataclasses import dataclass

_MAX_PACKET_SIZE = 1432
_FLUSH_INTERVAL = 0.3
_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9]")


class Client(abc.ABC):
    """The metrics interface used while benchmarking."""

    @abc.abstractmethod
    def inc(self, stat: str) -> None:
        """Increment the counter ``stat`` by one."""

    @abc.abstractmethod
    def timing(self, stat: str, duration: float) -> None:
        """Record a timing of ``duration`` seconds for ``stat``."""


class NoopClient(Client):
    """A client that discards every metric."""

    def inc(self, stat: str) -> None:
        return None

    def timing(self, stat: str, duration: float) -> None:
        return None


NOOP = NoopClient()


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:f}".rstrip("0").rstrip(".")


def _parse_host_port(host_port: str) -> tuple[str, int]:
    host, sep, port = host_port.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid statsd host:port {host_port!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


class StatsdClient(Client):
    """Sends metrics over UDP, batching them into packets.

    With a positive ``flush_interval`` (seconds) metrics are buffered and
    sent when a packet fills up or the interval passes; otherwise each
    metric is sent at once.
    """

    def __init__(self, host_port: str, prefix: str = "", flush_interval: float = _FLUSH_INTERVAL) -> None:
        host, port = _parse_host_port(host_port)
        family, socktype, proto, _, address = socket.getaddrinfo(
            host, port, type=socket.SOCK_DGRAM
        )[0]
        self._sock = socket.socket(family, socktype, proto)
        try:
            self._sock.connect(address)
        except OSError:
            self._sock.close()
            raise

        self._prefix = f"{prefix}." if prefix else ""
        self._flush_interval = flush_interval
        self._lock = threading.Lock()
        self._buffer: list[bytes] = []
        self._size = 0
        self._closed = threading.Event()
        self._flusher: threading.Thread | None = None
        if flush_interval > 0:
            self._flusher = threading.Thread(target=self._flush_loop, daemon=True)
            self._flusher.start()

    def _flush_loop(self) -> None:
        while not self._closed.wait(self._flush_interval):
            self.flush()

    def _send(self, packet: bytes) -> None:
        try:
            self._sock.send(packet)
        except OSError:
            pass  # metrics are best effort

    def _flush_locked(self) -> None:
        if self._buffer:
            self._send(b"\n".join(self._buffer))
            self._buffer.clear()
            self._size = 0

    def _submit(self, stat: str, value: str, tag: str) -> None:
        line = f"{self._prefix}{stat}:{value}|{tag}".encode()
        with self._lock:
            if self._closed.is_set():
                return
            if self._flush_interval <= 0:
                self._send(line)
                return
            if self._buffer and self._size + len(line) > _MAX_PACKET_SIZE:
                self._flush_locked()
            self._buffer.append(line)
            self._size += len(line) + 1

    def inc(self, stat: str) -> None:
        self._submit(stat, "1", "c")

    def timing(self, stat: str, duration: float) -> None:
        self._submit(stat, _format_number(duration * 1000), "ms")

    def flush(self) -> None:
        """Send any buffered metrics now."""
        with self._lock:
            if not self._closed.is_set():
                self._flush_locked()

    def close(self) -> None:
        """Flush buffered metrics and release the socket."""
        with self._lock:
            if self._closed.is_set():
                return
            self._flush_locked()
            self._closed.set()
        if self._flusher is not None:
            self._flusher.join()
        self._sock.close()

    def __enter__(self) -> StatsdClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass(frozen=True)
class MultiClient(Client):
    """Forwards every metric to each of several clients."""

    clients: tuple[Client, ...]

    def inc(self, stat: str) -> None:
        for client in self.clients:
            client.inc(stat)

    def timing(self, stat: str, duration: float) -> None:
        for client in self.clients:
            client.timing(stat, duration)


@dataclass(frozen=True)
class PrefixedClient(Client):
    """Adds a prefix to every stat name before forwarding it."""

    client: Client
    prefix: str

    def inc(self, stat: str) -> None:
        self.client.inc(self.prefix + stat)

    def timing(self, stat: str, duration: float) -> None:
        self.client.timing(self.prefix + stat, duration)


def statsd_prefix(service: str, method: str) -> str:
    """Return the metric prefix for the current user, service and method."""
    user = _INVALID_CHARS.sub("-", os.environ.get("USER", ""))
    service = _INVALID_CHARS.sub("-", service)
    method = _INVALID_CHARS.sub("-", method)
    return f"yab.{user}.{service}.{method}"


def new_client(
    logger: logging.Logger | None, host_port: str, service: str, method: str
) -> Client:
    """Return a client reporting to ``host_port``, or the no-op client if it is empty."""
    if host_port == "":
        return NOOP
    if logger is not None:
        logger.debug(
            "Create statsd client. hostPort=%s serviceName=%s procedure=%s",
            host_port,
            service,
            method,
        )
    return StatsdClient(host_port, statsd_prefix(service, method), _FLUSH_INTERVAL)


def multi_client(*args: Client) -> MultiClient:
    """Combine several clients into one."""
    return MultiClient(tuple(args))


def new_prefixed_client(client: Client, prefix: str) -> PrefixedClient:
    """Wrap ``client`` so that every stat name gets ``prefix``."""
    return PrefixedClient(client, prefix)