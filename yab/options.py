"""Command-line options and the duration formats they accept."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

_NANOSECOND = 1
_MICROSECOND = 1_000 * _NANOSECOND
_MILLISECOND = 1_000 * _MICROSECOND
_SECOND = 1_000 * _MILLISECOND
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE
_MAX_DURATION_NS = 2**63 - 1

_UNITS = {
    "ns": _NANOSECOND,
    "us": _MICROSECOND,
    "\u00b5s": _MICROSECOND,
    "\u03bcs": _MICROSECOND,
    "ms": _MILLISECOND,
    "s": _SECOND,
    "m": _MINUTE,
    "h": _HOUR,
}

_DURATION_PART = re.compile(r"([0-9]*)(\.([0-9]*))?([^0-9.]*)")
_INTEGER = re.compile(r"[+-]?[0-9]+")

# Hidden flags that write into another option instead of their own.
STRING_ALIASES = {
    "method": "procedure",
    "endpoint": "procedure",
    "arg1": "procedure",
    "arg2": "headers_json",
    "arg3": "request_json",
    "body": "request_json",
}


class Encoding(enum.StrEnum):
    """The encoding of request and response bodies."""

    UNSPECIFIED = ""
    THRIFT = "Thrift"
    PROTOBUF = "proto"
    JSON = "json"
    RAW = "raw"

    @classmethod
    def parse(cls, value: str) -> Encoding:
        """Return the encoding named by ``value``, ignoring case."""
        wanted = value.lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        raise ValueError(f"unknown encoding {value!r}, options are: Thrift, proto, JSON, raw")


def parse_duration(value: str) -> float:
    """Parse a duration such as ``1h2m3.5s`` or ``-100ms`` into seconds."""
    invalid = ValueError(f'time: invalid duration "{value}"')
    s = value
    negative = False
    if s and s[0] in "+-":
        negative = s[0] == "-"
        s = s[1:]
    if s == "0":
        return 0.0
    if s == "":
        raise invalid

    total = 0
    while s:
        if not (s[0] == "." or s[0].isascii() and s[0].isdigit()):
            raise invalid
        match = _DURATION_PART.match(s)
        whole, dot, frac, unit_name = match.group(1), match.group(2), match.group(3) or "", match.group(4)
        if not whole and not frac:
            raise invalid
        s = s[match.end():]
        if unit_name == "":
            raise ValueError(f'time: missing unit in duration "{value}"')
        unit = _UNITS.get(unit_name)
        if unit is None:
            raise ValueError(f'time: unknown unit "{unit_name}" in duration "{value}"')
        part = int(whole or "0") * unit
        if frac:
            part += int(frac) * unit // 10 ** len(frac)
        total += part
        if total > _MAX_DURATION_NS:
            raise invalid
        del dot

    return (-total if negative else total) / 1e9


def parse_time_millis(value: str) -> float:
    """Parse a timeout in seconds; a bare integer counts as milliseconds."""
    if _INTEGER.fullmatch(value):
        return int(value) * _MILLISECOND / 1e9
    return parse_duration(value)


def _with_fraction(value: int, digits: int) -> str:
    scale = 10**digits
    whole, frac = divmod(value, scale)
    fraction = f"{frac:0{digits}d}".rstrip("0")
    return f"{whole}.{fraction}" if fraction else str(whole)


def format_duration(seconds: float) -> str:
    """Format a duration in seconds the way durations are shown on the command line."""
    ns = round(seconds * 1e9)
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)

    if ns < _SECOND:
        if ns < _MICROSECOND:
            return f"{sign}{ns}ns"
        if ns < _MILLISECOND:
            return f"{sign}{_with_fraction(ns, 3)}\u00b5s"
        return f"{sign}{_with_fraction(ns, 6)}ms"

    hours, rest = divmod(ns, _HOUR)
    minutes, rest = divmod(rest, _MINUTE)
    secs = _with_fraction(rest, 9)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


@dataclass
class StreamRequestOptions:
    """Options for streaming requests; durations are in seconds."""

    interval: float = 0.0
    delay_close_send_stream: float = 0.0


@dataclass
class RequestOptions:
    """Options describing the request to make."""

    encoding: Encoding = Encoding.UNSPECIFIED
    thrift_file: str = ""
    file_descriptor_set: list[str] = field(default_factory=list)
    procedure: str = ""
    request_json: str = ""
    request_file: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    headers_json: str = ""
    headers_file: str = ""
    baggage: dict[str, str] = field(default_factory=dict)
    health: bool = False
    timeout: float = 1.0
    yaml_template: str = ""
    template_args: dict[str, str] = field(default_factory=dict)
    thrift_disable_envelopes: bool = False
    thrift_multiplexed: bool = False
    json_alias: bool = False
    raw_alias: bool = False
    stream: StreamRequestOptions = field(default_factory=StreamRequestOptions)

    def detect_encoding(self) -> Encoding:
        """Return the explicit encoding, or guess it from the procedure and files."""
        if self.encoding != Encoding.UNSPECIFIED:
            return self.encoding
        if "::" in self.procedure or self.thrift_file:
            return Encoding.THRIFT
        if "/" in self.procedure or self.file_descriptor_set:
            return Encoding.PROTOBUF
        return Encoding.UNSPECIFIED


@dataclass
class TransportOptions:
    """Options describing how to reach the service."""

    service_name: str = ""
    peers: list[str] = field(default_factory=list)
    peer_list: str = ""
    caller_name: str = ""
    routing_key: str = ""
    routing_delegate: str = ""
    shard_key: str = ""
    jaeger: bool = False
    transport_headers: dict[str, str] = field(default_factory=dict)
    http_method: str = "POST"
    grpc_max_response_size: int = 0
    ca_path: str = ""
    cert_path: str = ""
    private_key_path: str = ""
    no_jaeger: bool = False


@dataclass
class BenchmarkOptions:
    """Benchmark limits and reporting; durations are in seconds."""

    max_requests: int = 0
    max_duration: float = 0.0
    num_cpus: int = 0
    connections: int = 0
    warmup_requests: int = 10
    concurrency: int = 1
    rps: int = 0
    statsd_host_port: str = ""
    per_peer_stats: bool = False
    format: str = ""

    def enabled(self) -> bool:
        """Benchmarking runs only when a request or duration limit is set."""
        return self.max_duration != 0 or self.max_requests != 0


@dataclass
class Options:
    """All options of one invocation."""

    request: RequestOptions = field(default_factory=RequestOptions)
    transport: TransportOptions = field(default_factory=TransportOptions)
    benchmark: BenchmarkOptions = field(default_factory=BenchmarkOptions)
    verbosity: list[bool] = field(default_factory=list)
    display_version: bool = False
    man_page: bool = False


def new_options() -> Options:
    """Return options holding the default values."""
    return Options()


def set_encoding_options(opts: Options) -> None:
    """Apply the --json and --raw shorthand flags to the encoding."""
    if opts.request.json_alias:
        opts.request.encoding = Encoding.JSON
    if opts.request.raw_alias:
        opts.request.encoding = Encoding.RAW