"""An in-memory StatsD server that records what it receives, for tests."""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass

# UDP lengths are 16 bits, so no datagram is larger than this.
_MAX_DATAGRAM = 65535


@dataclass(frozen=True)
class Stat:
    """One received metric line."""

    stat: str
    value: str
    tag: str = ""


def _parse_line(line: str) -> Stat | None:
    body, sep, tail = line.strip().partition("|")
    if not sep:
        return None
    name, colon, value = body.rpartition(":")
    if not colon or not name:
        return None
    return Stat(name, value, tail.split("|")[0])


class Server:
    """A UDP StatsD listener on 127.0.0.1 that records every metric."""

    def __init__(self) -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.settimeout(0.05)
        self._lock = threading.Lock()
        self._received: list[Stat] = []
        self._stopping = threading.Event()
        self._closed = False
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                packet, _ = self._sock.recvfrom(_MAX_DATAGRAM)
            except TimeoutError:
                continue
            except OSError:
                return
            lines = packet.decode("utf-8", errors="replace").split("\n")
            stats = [stat for stat in map(_parse_line, lines) if stat is not None]
            with self._lock:
                self._received.extend(stats)

    def addr(self) -> str:
        """Return the ``host:port`` the server listens on."""
        host, port = self._sock.getsockname()
        return f"{host}:{port}"

    def close(self) -> None:
        """Stop listening."""
        if self._closed:
            return
        self._closed = True
        self._stopping.set()
        self._thread.join()
        self._sock.close()

    def __enter__(self) -> Server:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def stats(self) -> list[Stat]:
        """Return every received stat, keeping only its name and value."""
        with self._lock:
            return [Stat(s.stat, s.value) for s in self._received]

    def aggregated(self) -> dict[str, int]:
        """Sum counters, keep the last gauge, and count timings per stat."""
        with self._lock:
            received = list(self._received)

        aggregated: dict[str, int] = {}
        for stat in received:
            if stat.tag in ("c", "g"):
                try:
                    value = int(stat.value)
                except ValueError:
                    raise ValueError(f"failed to convert {stat.stat}: {stat.value}") from None
                if stat.tag == "c":
                    aggregated[stat.stat] = aggregated.get(stat.stat, 0) + value
                else:
                    aggregated[stat.stat] = value
            elif stat.tag == "ms":
                aggregated[stat.stat] = aggregated.get(stat.stat, 0) + 1
        return aggregated