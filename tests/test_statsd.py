import time

import pytest

from yab.statsd import (
    NOOP,
    Client,
    StatsdClient,
    multi_client,
    new_client,
    new_prefixed_client,
    statsd_prefix,
)
from yab.statsdtest import Server, Stat


def _wait_for(predicate, timeout=1.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class RecordingClient(Client):
    def __init__(self):
        self.calls = []

    def inc(self, stat):
        self.calls.append(("inc", stat))

    def timing(self, stat, duration):
        self.calls.append(("timing", stat, duration))


@pytest.fixture
def server():
    srv = Server()
    yield srv
    srv.close()


def test_statsd_prefix_sanitises(monkeypatch):
    monkeypatch.setenv("USER", "te.=?ster")
    assert statsd_prefix("s?v-c", 'm:"ethod') == "yab.te---ster.s-v-c.m--ethod"


def test_new_client_empty_is_noop():
    assert new_client(None, "", "svc", "method") is NOOP


def test_new_client_invalid_host_port():
    with pytest.raises(ValueError, match="host:port"):
        new_client(None, "no-port-here", "svc", "method")


def test_multi(server, monkeypatch):
    monkeypatch.setenv("USER", "tester")
    c1 = new_client(None, server.addr(), "c1", "foo")
    c2 = new_client(None, server.addr(), "c2", "foo")

    mc = multi_client(c1, c2)
    mc.inc("c")
    mc.timing("t", 0.001)
    c1.close()
    c2.close()

    want = {
        "yab.tester.c1.foo.c": 1,
        "yab.tester.c2.foo.c": 1,
        "yab.tester.c1.foo.t": 1,
        "yab.tester.c2.foo.t": 1,
    }
    assert _wait_for(lambda: len(server.aggregated()) >= len(want))
    assert server.aggregated() == want


def test_prefix_client(server, monkeypatch):
    monkeypatch.setenv("USER", "tester")
    c1 = new_client(None, server.addr(), "c1", "foo")
    c2 = new_prefixed_client(c1, "prefix.")

    c1.inc("c")
    c2.inc("c")
    c1.timing("t", 0.001)
    c2.timing("t", 0.001)
    c1.close()

    want = {
        "yab.tester.c1.foo.c": 1,
        "yab.tester.c1.foo.prefix.c": 1,
        "yab.tester.c1.foo.t": 1,
        "yab.tester.c1.foo.prefix.t": 1,
    }
    assert _wait_for(lambda: len(server.aggregated()) >= len(want))
    assert server.aggregated() == want


def test_unbuffered_line_format(server):
    client = StatsdClient(server.addr(), "p", 0)
    client.inc("c")
    client.timing("t", 0.0015)
    client.timing("whole", 2)
    assert _wait_for(lambda: len(server.stats()) == 3)
    assert server.stats() == [Stat("p.c", "1"), Stat("p.t", "1.5"), Stat("p.whole", "2000")]
    client.close()


def test_buffered_until_flush(server):
    client = StatsdClient(server.addr(), "", 60)
    client.inc("a")
    client.inc("b")
    time.sleep(0.05)
    assert server.stats() == []
    client.flush()
    assert _wait_for(lambda: len(server.stats()) == 2)
    assert server.stats() == [Stat("a", "1"), Stat("b", "1")]
    client.close()


def test_closed_client_drops_metrics(server):
    client = StatsdClient(server.addr(), "x", 0)
    client.close()
    client.inc("c")
    time.sleep(0.05)
    assert server.stats() == []


def test_multi_and_prefix_forward_calls():
    first, second = RecordingClient(), RecordingClient()
    combined = multi_client(first, new_prefixed_client(second, "p."))
    combined.inc("c")
    combined.timing("t", 0.5)
    assert first.calls == [("inc", "c"), ("timing", "t", 0.5)]
    assert second.calls == [("inc", "p.c"), ("timing", "p.t", 0.5)]