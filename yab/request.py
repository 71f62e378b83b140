"""Request input handling and protocol/encoding resolution."""

from __future__ import annotations

import enum
import io
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import BinaryIO

import yaml

from yab.options import Encoding, RequestOptions


class Protocol(enum.Enum):
    """The wire protocol used to make a call."""

    UNKNOWN = "unknown"
    TCHANNEL = "tchannel"
    GRPC = "grpc"
    HTTP = "http"


@dataclass(frozen=True)
class ResolvedProtocolEncoding:
    """The protocol and encoding chosen for a call."""

    protocol: Protocol = Protocol.UNKNOWN
    enc: Encoding | str = Encoding.UNSPECIFIED


def get_request_input(inline: str, file: str) -> BinaryIO:
    """Return a binary stream of the request body given inline, in a file, or on stdin.

    ``-`` as either the inline body or the file name reads from standard input.
    """
    if file == "-" or inline == "-":
        return sys.stdin.buffer

    if file:
        try:
            return open(file, "rb")
        except OSError as err:
            raise OSError(f"failed to open request file: {err}") from err

    return io.BytesIO(inline.encode("utf-8"))


def _header_string(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"header value must be a scalar, got {type(value).__name__}")


def get_headers(
    inline: str, file: str, override: Mapping[str, str] | None
) -> dict[str, str] | None:
    """Load headers in JSON or YAML, then apply the ``override`` pairs on top."""
    with get_request_input(inline, file) as stream:
        contents = stream.read()

    if not contents:
        return dict(override) if override is not None else None

    try:
        document = yaml.safe_load(contents)
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ValueError(
                f"cannot unmarshal {type(document).__name__} into a map of headers"
            )
        headers = {
            _header_string(key): _header_string(value) for key, value in document.items()
        }
    except (yaml.YAMLError, ValueError) as err:
        raise ValueError(f"unmarshal headers failed: {err}") from err

    headers.update(override or {})
    return headers


_SCHEME_DEFAULTS = {
    "tchannel": (Protocol.TCHANNEL, Encoding.THRIFT),
    "grpc": (Protocol.GRPC, Encoding.PROTOBUF),
    "http": (Protocol.HTTP, Encoding.JSON),
    "https": (Protocol.HTTP, Encoding.JSON),
}

_ENCODING_PROTOCOLS = {
    Encoding.THRIFT: Protocol.TCHANNEL,
    Encoding.PROTOBUF: Protocol.GRPC,
    Encoding.JSON: Protocol.HTTP,
    Encoding.RAW: Protocol.HTTP,
}


def resolve_protocol_encoding(
    protocol_scheme: str, ropts: RequestOptions
) -> ResolvedProtocolEncoding:
    """Pick the protocol and encoding from the peer scheme and the request options."""
    enc = ropts.detect_encoding()

    scheme_default = _SCHEME_DEFAULTS.get(protocol_scheme)
    if scheme_default is not None:
        protocol, default_enc = scheme_default
        if enc == Encoding.UNSPECIFIED:
            enc = default_enc
        return ResolvedProtocolEncoding(protocol, enc)

    if enc != Encoding.UNSPECIFIED and enc in _ENCODING_PROTOCOLS:
        known = Encoding(enc)
        return ResolvedProtocolEncoding(_ENCODING_PROTOCOLS[known], known)

    # --health without anything else means a TChannel + Thrift health call.
    if ropts.health:
        return ResolvedProtocolEncoding(Protocol.TCHANNEL, Encoding.THRIFT)

    return ResolvedProtocolEncoding(Protocol.UNKNOWN, enc)