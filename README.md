# yab

`yab` holds the pieces of a command-line benchmarker for RPC services:
parsing of options and defaults files, request body and header input,
choice of transport protocol and encoding, protobuf descriptor lookup,
and metrics reporting to statsd.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## What is inside

- `yab.options` – the option model (`Options`, `RequestOptions`,
  `TransportOptions`, `BenchmarkOptions`, `StreamRequestOptions`), the
  `Encoding` enum with `Encoding.parse`, encoding detection from the
  procedure name and files (`RequestOptions.detect_encoding`: `::` or a
  Thrift file means Thrift, `/` or a descriptor set means proto), and
  duration handling in seconds: `parse_time_millis` (a bare integer means
  milliseconds), `parse_duration` (`1h2m3.5s`, `-100ms`, ...) and
  `format_duration`. `BenchmarkOptions.enabled` is true when a request or
  duration limit is set.
- `yab.cli` – command-line parsing with `get_options(args, out)`.
  Positional arguments are `<service> <method> [<headers>] <body>`. Long and
  short flags (`-p`, `--peer`, `--timeout`, `-e`, `-H key:value`, ...) and
  the aliases `--method`, `--endpoint`, `-1`/`--arg1`, `-2`/`--arg2`,
  `-3`/`--arg3`, `--body`, `--json` and `--raw` are accepted. With no
  arguments or with `-h`/`--help` it writes the help text and raises
  `ExitRequested`; `--version` and `--man-page` do the same with the version
  line and a groff man page (`to_groff` does the markup). A first argument
  naming an existing `.yab` file is taken as `-y <file>` (`is_yab_template`).
  Defaults are read first from `yab/defaults.ini` under `$XDG_CONFIG_HOME`
  (or `~/.config`), else under `$XDG_CONFIG_DIRS` (or `/etc/xdg`)
  (`find_best_config_file`, `parse_default_configs`); keys are long flag
  names, section headers are ignored. Peers given on the command line
  replace a default peer list and the other way round (`override_defaults`).
  Output goes through an `Output`; `ConsoleOutput` writes to stdout/stderr
  and exits on `fatalf`.
- `yab.request` – request bodies inline, from a file or from standard input
  with `-` (`get_request_input`), headers in JSON or YAML with per-key
  overrides (`get_headers`), and `resolve_protocol_encoding`, which maps a
  peer scheme and the request options to a `ResolvedProtocolEncoding` of a
  `Protocol` and an encoding.
- `yab.protobuf` – service and message lookup in compiled protobuf
  `FileDescriptorSet` files (`descriptor_provider_from_bins`,
  `descriptor_provider_from_set`, `FileSource`). An unknown service raises
  `ServiceNotFoundError`, listing the services that are available.
- `yab.statsd` – statsd clients: `new_client` returns a no-op client for an
  empty address, else a buffered UDP `StatsdClient` whose prefix is
  `yab.<user>.<service>.<method>` (`statsd_prefix`); `multi_client` and
  `new_prefixed_client` combine and wrap clients.
- `yab.statsdtest` – an in-memory UDP statsd `Server` on 127.0.0.1 that
  records received metrics (`stats`, `aggregated`), for tests.
- `yab.plugin` – extra flag groups registered with `add_flags` and applied
  to a parser with `add_to_parser`; failures are raised together as an
  `ExceptionGroup`. `yab.cli` accepts dataclass instances whose fields carry
  `long`, `short` and `description` metadata.
- `yab.logger` – a logger whose level follows the number of `-v` flags
  (`get_logger_verbosity`, `configure_logger_config`, `LoggerConfig.build`).
- `yab.sorted` – `map_keys`, the sorted keys of a string-keyed mapping.
- `yab.changelog` – extraction of one version's release notes.

## Example

```python
from yab.cli import ConsoleOutput, get_options
from yab.request import resolve_protocol_encoding

opts = get_options(
    ["foo", "Svc::method", "-p", "127.0.0.1:4040", "--timeout", "500"],
    ConsoleOutput(),
)
print(opts.transport.service_name)    # foo
print(opts.request.timeout)           # 0.5 (seconds)
print(opts.request.detect_encoding()) # Thrift
print(resolve_protocol_encoding("", opts.request).protocol)  # Protocol.TCHANNEL
```

Reporting to statsd:

```python
from yab.statsd import new_client, new_prefixed_client

client = new_client(None, "127.0.0.1:8125", "foo", "Svc::method")
new_prefixed_client(client, "warmup.").inc("requests")
client.timing("latency", 0.012)
```

## Extracting release notes

The `yab-changelog` command prints the section of `CHANGELOG.md` in the
current directory that belongs to a version (a leading `v` is ignored):

```
yab-changelog v1.2.0
```

It exits with status 1 when the version has no section in the changelog.

## What this package does not do

It parses and prepares everything a benchmark run needs, but it does not
make calls itself: there are no TChannel, HTTP or gRPC transports, no
request serializers, no benchmark runner and no `yab` command. It also does
not resolve peer lists from files or URLs, does not pace requests by a
requests-per-second limit, and does not expand `.yab` YAML templates; a
template path is only recorded in `RequestOptions.yaml_template`.