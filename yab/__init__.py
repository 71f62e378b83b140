"""Pieces of an RPC benchmarker: options and defaults, request input, protobuf descriptors and statsd metrics."""

__version__ = "0.1.0"