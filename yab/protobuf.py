"""Protobuf descriptor lookup backed by compiled FileDescriptorSet files."""

from __future__ import annotations

import abc
from collections.abc import Iterable, Iterator, Mapping, Sequence

from google.protobuf import descriptor_pb2, descriptor_pool
from google.protobuf.descriptor import Descriptor, FileDescriptor, ServiceDescriptor
from google.protobuf.message import DecodeError


class ServiceNotFoundError(LookupError):
    """Raised when a service is not among the known descriptors."""

    def __init__(
        self,
        search: str,
        available: Sequence[str] = (),
        encoding: str = "gRPC",
        search_type: str = "service",
        example: str = "",
    ) -> None:
        self.search = search
        self.available = list(available)
        self.encoding = encoding
        self.search_type = search_type
        self.example = example
        message = f'could not find {encoding} {search_type} "{search}"'
        if example:
            message += f"\n\tExample: {example}"
        if self.available:
            listed = "\n\t".join(sorted(self.available))
            message += f"\n\tAvailable {search_type}s:\n\t{listed}"
        super().__init__(message)


class DescriptorProvider(abc.ABC):
    """A source of service and message descriptors."""

    @abc.abstractmethod
    def find_service(self, fully_qualified_name: str) -> ServiceDescriptor:
        """Return the service with the given fully-qualified name."""

    @abc.abstractmethod
    def find_message(self, message_type: str) -> Descriptor | None:
        """Return the message with the given fully-qualified name, or None."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release any resources held by the provider."""

    def __enter__(self) -> DescriptorProvider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _all_messages(messages: Iterable[Descriptor]) -> Iterator[Descriptor]:
    for message in messages:
        yield message
        yield from _all_messages(message.nested_types)


class FileSource(DescriptorProvider):
    """Descriptors from a fixed set of resolved files, keyed by file name."""

    def __init__(self, files: Mapping[str, FileDescriptor]) -> None:
        self.files = dict(files)

    def find_service(self, fully_qualified_name: str) -> ServiceDescriptor:
        available = []
        for fd in self.files.values():
            for service in fd.services_by_name.values():
                if service.full_name == fully_qualified_name:
                    return service
                available.append(service.full_name)
        raise ServiceNotFoundError(fully_qualified_name, available)

    def find_message(self, message_type: str) -> Descriptor | None:
        for fd in self.files.values():
            for message in _all_messages(fd.message_types_by_name.values()):
                if message.full_name == message_type:
                    return message
        return None

    def close(self) -> None:
        return None


def descriptor_provider_from_bins(*args: str) -> FileSource:
    """Build a provider from files holding encoded FileDescriptorSet protos."""
    files = descriptor_pb2.FileDescriptorSet()
    for file_name in args:
        try:
            with open(file_name, "rb") as protoset:
                contents = protoset.read()
        except OSError as err:
            raise ValueError(f'could not load protoset file "{file_name}": {err}') from err
        try:
            parsed = descriptor_pb2.FileDescriptorSet.FromString(contents)
        except DecodeError as err:
            raise ValueError(
                f'could not parse contents of protoset file "{file_name}": {err}'
            ) from err
        files.file.extend(parsed.file)
    return descriptor_provider_from_set(files)


def descriptor_provider_from_set(files: descriptor_pb2.FileDescriptorSet) -> FileSource:
    """Build a provider from a FileDescriptorSet, resolving file dependencies."""
    unresolved = {fd.name: fd for fd in files.file}
    pool = descriptor_pool.DescriptorPool()
    resolved: dict[str, FileDescriptor] = {}

    def resolve(filename: str) -> FileDescriptor:
        if filename in resolved:
            return resolved[filename]
        proto = unresolved.get(filename)
        if proto is None:
            raise ValueError(f'no descriptor found for "{filename}"')
        for dependency in proto.dependency:
            resolve(dependency)
        try:
            result = pool.AddSerializedFile(proto.SerializeToString())
        except (TypeError, KeyError, ValueError) as err:
            raise ValueError(f'could not build descriptor for "{filename}": {err}') from err
        resolved[filename] = result
        return result

    for fd in files.file:
        resolve(fd.name)
    return FileSource(resolved)