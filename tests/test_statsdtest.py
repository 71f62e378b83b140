import socket
import time

import pytest

from yab.statsdtest import Server, Stat


def _wait_for(predicate, timeout=1.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def server():
    srv = Server()
    yield srv
    srv.close()


def _send(server, *packets):
    host, port = server.addr().rsplit(":", 1)
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        for packet in packets:
            sock.sendto(packet.encode(), (host, int(port)))


def test_server_records_and_aggregates(server):
    _send(
        server,
        "client.counter:1|c",
        "client.counter:2|c",
        "client.gauge:3|g",
        "client.gauge:5|g",
        "client.timer:100|ms",
        "client.timer:150|ms",
    )
    want = [
        Stat("client.counter", "1"),
        Stat("client.counter", "2"),
        Stat("client.gauge", "3"),
        Stat("client.gauge", "5"),
        Stat("client.timer", "100"),
        Stat("client.timer", "150"),
    ]
    assert _wait_for(lambda: len(server.stats()) == len(want))
    assert server.stats() == want
    assert server.aggregated() == {
        "client.counter": 3,
        "client.gauge": 5,
        "client.timer": 2,
    }


def test_multi_line_packet_and_sample_rate(server):
    _send(server, "a:1|c|@0.5\nb:7|g\n\nc:3|ms")
    assert _wait_for(lambda: len(server.stats()) == 3)
    assert server.stats() == [Stat("a", "1"), Stat("b", "7"), Stat("c", "3")]
    assert server.aggregated() == {"a": 1, "b": 7, "c": 1}


def test_malformed_lines_are_skipped(server):
    _send(server, "garbage\nok:1|c")
    assert _wait_for(lambda: len(server.stats()) == 1)
    assert server.stats() == [Stat("ok", "1")]


def test_non_integer_counter_fails_aggregation(server):
    _send(server, "bad:x|c")
    assert _wait_for(lambda: len(server.stats()) == 1)
    with pytest.raises(ValueError, match="failed to convert bad: x"):
        server.aggregated()


def test_addr_is_loopback_and_close_is_idempotent():
    srv = Server()
    host, port = srv.addr().rsplit(":", 1)
    assert host == "127.0.0.1"
    assert int(port) > 0
    srv.close()
    srv.close()
    assert srv.stats() == []