"""Command-line option parsing, defaults files, help and man page output."""

from __future__ import annotations

import abc
import dataclasses
import os
import re
import sys
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, TextIO

from yab import plugin
from yab.options import (
    Encoding,
    Options,
    new_options,
    parse_duration,
    parse_time_millis,
    set_encoding_options,
)

VERSION = "0.1.0"

_USAGE = "[<service> <method> <body>] [OPTIONS]"
_SHORT_DESCRIPTION = "yet another benchmarker"
_LONG_DESCRIPTION = """
yab is a benchmarking tool for TChannel and HTTP applications. It's primarily intended for Thrift applications but supports other encodings like JSON and binary (raw). It can be used in a curl-like fashion when benchmarking features are disabled.

yab includes a full man page (man yab).
"""
_DEFAULTS_DESCRIPTION = """
Default options can be specified in a ~/.config/yab/defaults.ini file (or ~/Library/Preferences/yab/defaults.ini on Mac) with contents similar to this:

\t[request]
\ttimeout = 2s

\t[transport]
\tpeer-list = "/path/to/peer/list.json"

\t[benchmark]
\twarmup = 10
"""


class ExitRequested(Exception):
    """Raised when parsing finished the job itself (help, version, man page)."""


class Output(abc.ABC):
    """Where the program writes results, warnings and fatal errors."""

    @abc.abstractmethod
    def write(self, text: str) -> None:
        """Write raw text to the main output."""

    @abc.abstractmethod
    def fatalf(self, format: str, *args: Any) -> None:
        """Report a fatal error."""

    @abc.abstractmethod
    def printf(self, format: str, *args: Any) -> None:
        """Write formatted text to the main output."""

    @abc.abstractmethod
    def warnf(self, format: str, *args: Any) -> None:
        """Write a formatted warning."""


def _fmt(format: str, args: tuple[Any, ...]) -> str:
    return format % args if args else format


class ConsoleOutput(Output):
    """Writes to stdout and stderr; fatal errors exit the process."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream if stream is not None else sys.stdout

    def write(self, text: str) -> None:
        self.stream.write(text)

    def fatalf(self, format: str, *args: Any) -> None:
        message = _fmt(format, args)
        sys.stderr.write(message if message.endswith("\n") else message + "\n")
        sys.exit(1)

    def printf(self, format: str, *args: Any) -> None:
        self.stream.write(_fmt(format, args))

    def warnf(self, format: str, *args: Any) -> None:
        sys.stderr.write(_fmt(format, args))


def to_groff(s: str) -> str:
    """Turn plain description text into groff markup."""
    s = s.replace("\n\t* ", "\n.IP \\[bu]\n")
    s = s.replace("\n\n", "\n.PP\n")
    return re.sub(r"\t(.*)\n", r".nf\n.RS\n\1\n.RE\n.fi\n", s)


def is_yab_template(s: str) -> bool:
    """True for an existing file whose name ends with ``.yab``."""
    return s.endswith(".yab") and os.path.exists(s)


def find_best_config_file() -> str:
    """Return the user's defaults file, else a system one, else an empty string."""
    home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(
        os.path.expanduser("~"), ".config"
    )
    system = os.environ.get("XDG_CONFIG_DIRS") or "/etc/xdg"
    candidates = [home, *[d for d in system.split(os.pathsep) if d]]
    for base in candidates:
        path = os.path.join(base, "yab", "defaults.ini")
        if os.path.exists(path):
            return path
    return ""


class _HelpRequested(Exception):
    pass


@dataclass
class _Flag:
    long: str
    short: str
    kind: str
    target: str
    attr: str
    help: str = ""
    hidden: bool = False
    data: Any = None

    @property
    def takes_value(self) -> bool:
        return self.kind not in ("bool", "count", "help")


_FLAG_SPECS = [
    ("encoding", "e", "encoding", "request", "encoding", "The encoding of the data, options are: Thrift, proto, JSON, raw."),
    ("thrift", "t", "str", "request", "thrift_file", "Path of the .thrift file"),
    ("file-descriptor-set-bin", "F", "list", "request", "file_descriptor_set", "A binary file containing a compiled protobuf FileDescriptorSet."),
    ("procedure", "", "str", "request", "procedure", "The full method name to invoke (Thrift: Svc::Method, Proto: package.Service/Method)."),
    ("method", "m", "str", "request", "procedure", "Alias for procedure"),
    ("request", "r", "str", "request", "request_json", "The request body, in JSON or YAML format"),
    ("file", "f", "str", "request", "request_file", "Path of a file containing the request body in JSON or YAML"),
    ("header", "H", "map", "request", "headers", "Individual application header as a key:value pair per flag"),
    ("headers", "", "str", "request", "headers_json", "The headers in JSON or YAML format"),
    ("headers-file", "", "str", "request", "headers_file", "Path of a file containing the headers in JSON or YAML"),
    ("baggage", "B", "map", "request", "baggage", "Individual context baggage header as a key:value pair per flag"),
    ("health", "", "bool", "request", "health", "Hit the health endpoint, Meta::health"),
    ("timeout", "", "timeout", "request", "timeout", "The timeout for each request. E.g., 100ms, 0.5s, 1s. If no unit is specified, milliseconds are assumed. (default: 1s)"),
    ("yaml-template", "y", "str", "request", "yaml_template", "Send a tchannel request specified by a YAML template"),
    ("arg", "A", "map", "request", "template_args", "A list of key-value template arguments, specified as -A foo:bar -A user:me"),
    ("disable-thrift-envelope", "", "bool", "request", "thrift_disable_envelopes", "Disables Thrift envelopes (disabled by default for TChannel and gRPC)"),
    ("multiplexed-thrift", "", "bool", "request", "thrift_multiplexed", "Enables the Thrift TMultiplexedProtocol."),
    ("endpoint", "", "str", "request", "procedure", ""),
    ("arg1", "1", "str", "request", "procedure", ""),
    ("arg2", "2", "str", "request", "headers_json", ""),
    ("arg3", "3", "str", "request", "request_json", ""),
    ("body", "", "str", "request", "request_json", ""),
    ("json", "", "bool", "request", "json_alias", ""),
    ("raw", "", "bool", "request", "raw_alias", ""),
    ("stream-interval", "", "timeout", "stream", "interval", "Interval between consecutive stream message sends."),
    ("stream-delay-close-send", "", "timeout", "stream", "delay_close_send_stream", "Delay the closure of send stream once all the request messages have been sent."),
    ("service", "s", "str", "transport", "service_name", "The TChannel/Hyperbahn service name"),
    ("peer", "p", "list", "transport", "peers", "The host:port of the service to call"),
    ("peer-list", "P", "str", "transport", "peer_list", "Path or URL of a JSON, YAML, or flat file containing a list of host:ports. -P? for supported protocols."),
    ("caller", "", "str", "transport", "caller_name", "Caller will override the default caller name (which is yab-$USER)."),
    ("rk", "", "str", "transport", "routing_key", "The routing key overrides the service name traffic group for proxies."),
    ("rd", "", "str", "transport", "routing_delegate", "The routing delegate overrides the routing key traffic group for proxies."),
    ("sk", "", "str", "transport", "shard_key", "The shard key is a transport header that clues where to send a request."),
    ("jaeger", "", "bool", "transport", "jaeger", "Use the Jaeger tracing client to send traces and baggage headers"),
    ("topt", "T", "map", "transport", "transport_headers", "Transport options for TChannel, protocol headers for HTTP"),
    ("http-method", "", "str", "transport", "http_method", "The HTTP method to use (default: POST)"),
    ("grpc-max-response-size", "", "int", "transport", "grpc_max_response_size", "Maximum response size for gRPC requests. Default value is 4MB"),
    ("ca-path", "", "str", "transport", "ca_path", "path of CA to use in TLS config"),
    ("cert-path", "", "str", "transport", "cert_path", "path of cert to use in TLS config"),
    ("key-path", "", "str", "transport", "private_key_path", "path of private key to use in TLS config"),
    ("no-jaeger", "", "bool", "transport", "no_jaeger", ""),
    ("max-requests", "n", "int", "benchmark", "max_requests", "The maximum number of requests to make. 0 implies no limit. (default: 0)"),
    ("max-duration", "d", "duration", "benchmark", "max_duration", "The maximum amount of time to run the benchmark for. (default: 0s)"),
    ("cpus", "", "int", "benchmark", "num_cpus", "The number of OS threads"),
    ("connections", "", "int", "benchmark", "connections", "The number of TCP connections to use"),
    ("warmup", "", "int", "benchmark", "warmup_requests", "The number of requests to make to warmup each connection (default: 10)"),
    ("concurrency", "", "int", "benchmark", "concurrency", "The number of concurrent calls per connection (default: 1)"),
    ("rps", "", "int", "benchmark", "rps", "Limit on the number of requests per second. (default: 0)"),
    ("statsd", "", "str", "benchmark", "statsd_host_port", "Optional host:port of a StatsD server to report metrics"),
    ("per-peer-stats", "", "bool", "benchmark", "per_peer_stats", "Whether to emit stats by peer rather than aggregated"),
    ("format", "", "str", "benchmark", "format", "Prints benchmark output in either text or JSON format. Default is text."),
    ("", "v", "count", "", "verbosity", "Enable more detailed logging. Repeats increase the verbosity, ie. -vvv"),
    ("version", "", "bool", "", "display_version", "Displays the application version"),
    ("man-page", "", "bool", "", "man_page", ""),
    ("help", "h", "help", "", "", "Show this help message"),
]

_HIDDEN = {"endpoint", "arg1", "arg2", "arg3", "body", "json", "raw", "no-jaeger", "man-page"}
_GROUP_TITLES = {
    "request": "Request Options",
    "stream": "Request Options",
    "transport": "Transport Options",
    "benchmark": "Benchmark Options",
    "": "Application Options",
}


class _FlagTable(plugin.Parser):
    """All known flags, addressable by long and short name."""

    def __init__(self) -> None:
        self.flags: list[_Flag] = []
        self.by_long: dict[str, _Flag] = {}
        self.by_short: dict[str, _Flag] = {}
        self.plugin_groups: list[tuple[str, str, list[_Flag]]] = []
        for long, short, kind, target, attr, text in _FLAG_SPECS:
            self._add(_Flag(long, short, kind, target, attr, text, long in _HIDDEN))

    def _add(self, flag: _Flag) -> None:
        self.flags.append(flag)
        if flag.long:
            self.by_long[flag.long] = flag
        if flag.short:
            self.by_short[flag.short] = flag

    def add_flag_group(self, group_name: str, long_description: str, data: Any) -> None:
        if not dataclasses.is_dataclass(data) or isinstance(data, type):
            raise TypeError(f"flag group data must be a dataclass instance, got {type(data).__name__}")
        new: list[_Flag] = []
        seen: set[str] = set()
        for field in dataclasses.fields(data):
            long = field.metadata.get("long", "")
            short = field.metadata.get("short", "")
            if not long and not short:
                continue
            for name in (long, short):
                if name and (name in seen or name in self.by_long or name in self.by_short):
                    raise ValueError(f"option `{name}' uses the same name as another option")
                if name:
                    seen.add(name)
            new.append(
                _Flag(long, short, "str", "plugin", field.name,
                      field.metadata.get("description", ""), data=data)
            )
        for flag in new:
            self._add(flag)
        self.plugin_groups.append((group_name, long_description, new))


def _owner(opts: Options, flag: _Flag) -> Any:
    return {
        "request": opts.request,
        "stream": opts.request.stream,
        "transport": opts.transport,
        "benchmark": opts.benchmark,
        "": opts,
        "plugin": flag.data,
    }[flag.target]


def _flag_name(flag: _Flag) -> str:
    return f"--{flag.long}" if flag.long else f"-{flag.short}"


def _set(opts: Options, flag: _Flag, value: str | None, reset: set[int]) -> None:
    owner = _owner(opts, flag)
    kind = flag.kind
    if kind == "help":
        raise _HelpRequested()
    if kind == "count":
        owner.verbosity.append(True)
    elif kind == "bool":
        if value is None:
            setattr(owner, flag.attr, True)
        elif value.lower() in ("true", "1", "yes"):
            setattr(owner, flag.attr, True)
        elif value.lower() in ("false", "0", "no"):
            setattr(owner, flag.attr, False)
        else:
            raise ValueError(f"invalid boolean value `{value}' for {_flag_name(flag)}")
    elif kind in ("list", "map"):
        key = id(flag.attr) ^ id(owner)
        if key not in reset:
            reset.add(key)
            setattr(owner, flag.attr, [] if kind == "list" else {})
        assert value is not None
        if kind == "list":
            getattr(owner, flag.attr).append(value)
        else:
            k, sep, v = value.partition(":")
            if not sep:
                raise ValueError(f"expected key:value pair for {_flag_name(flag)}, got `{value}'")
            getattr(owner, flag.attr)[k] = v
    elif kind == "int":
        try:
            setattr(owner, flag.attr, int(value or ""))
        except ValueError:
            raise ValueError(
                f"invalid argument for flag `{_flag_name(flag)}' (expected int): {value}"
            ) from None
    elif kind == "timeout":
        setattr(owner, flag.attr, parse_time_millis(value or ""))
    elif kind == "duration":
        setattr(owner, flag.attr, parse_duration(value or ""))
    elif kind == "encoding":
        setattr(owner, flag.attr, Encoding.parse(value or ""))
    else:
        setattr(owner, flag.attr, value)


def _parse_args(args: Sequence[str], opts: Options, table: _FlagTable) -> list[str]:
    remaining: list[str] = []
    reset: set[int] = set()
    it: Iterator[str] = iter(args)
    for arg in it:
        if arg == "--":
            remaining.extend(it)
            break
        if arg.startswith("--"):
            name, eq, attached = arg[2:].partition("=")
            flag = table.by_long.get(name)
            if flag is None:
                raise ValueError(f"unknown flag `{name}'")
            value: str | None = None
            if flag.takes_value:
                if eq:
                    value = attached
                else:
                    value = next(it, None)
                    if value is None:
                        raise ValueError(f"expected argument for flag `--{name}'")
            _set(opts, flag, value, reset)
        elif arg.startswith("-") and len(arg) > 1:
            chars = arg[1:]
            while chars:
                name, chars = chars[0], chars[1:]
                flag = table.by_short.get(name)
                if flag is None:
                    raise ValueError(f"unknown flag `{name}'")
                value = None
                if flag.takes_value:
                    if chars:
                        value, chars = chars, ""
                    else:
                        value = next(it, None)
                        if value is None:
                            raise ValueError(f"expected argument for flag `-{name}'")
                _set(opts, flag, value, reset)
        else:
            remaining.append(arg)
    return remaining


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _parse_ini(path: str, opts: Options, table: _FlagTable) -> None:
    reset: set[int] = set()
    with open(path, encoding="utf-8") as ini:
        for lineno, raw in enumerate(ini, start=1):
            line = raw.strip()
            if not line or line[0] in ";#" or (line.startswith("[") and line.endswith("]")):
                continue
            key, sep, value = line.partition("=")
            key = key.strip()
            try:
                if not sep:
                    raise ValueError(f"malformed key=value ({line})")
                flag = table.by_long.get(key)
                if flag is None or flag.kind in ("help", "count"):
                    raise ValueError(f"unknown option: {key}")
                _set(opts, flag, _unquote(value.strip()), reset)
            except ValueError as err:
                raise ValueError(f"{path}:{lineno}: {err}") from None


def parse_default_configs(opts: Options) -> None:
    """Apply the defaults file to ``opts`` if there is one."""
    path = find_best_config_file()
    if not path:
        return
    try:
        _parse_ini(path, opts, _FlagTable())
    except (OSError, ValueError) as err:
        raise ValueError(f"couldn't read {path}: {err}") from err


def override_defaults(defaults: Options, args: Sequence[str]) -> None:
    """Clear default peer settings that clash with peer options given in ``args``."""
    args_only = new_options()
    try:
        _parse_args(args, args_only, _FlagTable())
    except (ValueError, _HelpRequested):
        pass
    if args_only.transport.peers:
        defaults.transport.peer_list = ""
    if args_only.transport.peer_list:
        defaults.transport.peers = []


def _flag_line(flag: _Flag) -> str:
    names = []
    if flag.short:
        names.append(f"-{flag.short}")
    if flag.long:
        names.append(f"--{flag.long}" + ("=" if flag.takes_value else ""))
    return f"  {', '.join(names):<32} {flag.help}".rstrip()


def _help_text(table: _FlagTable) -> str:
    lines = [f"Usage:\n  yab {_USAGE}\n"]
    groups: dict[str, list[str]] = {}
    for flag in table.flags:
        if flag.hidden or flag.target == "plugin":
            continue
        groups.setdefault(_GROUP_TITLES[flag.target], []).append(_flag_line(flag))
    for name, _, flags in table.plugin_groups:
        groups.setdefault(name, []).extend(_flag_line(f) for f in flags)
    for title, entries in groups.items():
        lines.append(f"{title}:")
        lines.extend(entries)
        lines.append("")
    return "\n".join(lines) + "\n"


def _man_page(table: _FlagTable) -> str:
    description = to_groff(_LONG_DESCRIPTION + _DEFAULTS_DESCRIPTION)
    out = [
        '.TH yab 1 "" "yab" ""',
        ".SH NAME",
        f"yab \\- {_SHORT_DESCRIPTION}",
        ".SH SYNOPSIS",
        f"\\fByab\\fP {_USAGE}",
        ".SH DESCRIPTION",
        description,
        ".SH OPTIONS",
    ]
    for flag in table.flags:
        if flag.hidden:
            continue
        names = ", ".join(
            n for n in (f"\\fB-{flag.short}\\fP" if flag.short else "",
                        f"\\fB--{flag.long}\\fP" if flag.long else "") if n
        )
        out.extend([".TP", names, flag.help])
    return "\n".join(out) + "\n"


def _from_positional(args: list[str], index: int) -> tuple[bool, str | None]:
    if len(args) <= index:
        return False, None
    return True, args[index] or None


def get_options(args: Sequence[str], out: Output) -> Options:
    """Parse defaults and ``args`` into options.

    Raises ExitRequested after printing help, the version or the man page,
    and ValueError for invalid input.
    """
    args = list(args or [])
    opts = new_options()
    try:
        parse_default_configs(opts)
    except ValueError as err:
        raise ValueError(f"error reading defaults: {err}") from err

    if args and is_yab_template(args[0]):
        args = ["-y", *args]

    override_defaults(opts, args)

    table = _FlagTable()
    try:
        plugin.add_to_parser(table)
    except ExceptionGroup as err:
        details = "; ".join(str(e) for e in err.exceptions)
        out.warnf("WARNING: Error adding plugin-based custom flags: %s.", details)

    if not args:
        out.write(_help_text(table))
        raise ExitRequested()
    try:
        remaining = _parse_args(args, opts, table)
    except _HelpRequested:
        out.write(_help_text(table))
        raise ExitRequested() from None
    set_encoding_options(opts)

    if opts.display_version:
        out.printf("yab version %s\n", VERSION)
        raise ExitRequested()
    if opts.man_page:
        out.write(_man_page(table))
        raise ExitRequested()

    for index, attr, owner in ((0, "service_name", opts.transport), (1, "procedure", opts.request)):
        _, value = _from_positional(remaining, index)
        if value is not None:
            setattr(owner, attr, value)

    present, value = _from_positional(remaining, 3)
    if present:
        if value is not None:
            opts.request.request_json = value
        _, headers = _from_positional(remaining, 2)
        if headers is not None:
            opts.request.headers_json = headers
    else:
        _, value = _from_positional(remaining, 2)
        if value is not None:
            opts.request.request_json = value
    return opts