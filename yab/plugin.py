"""Registry of extra flag groups contributed by embedded modules."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any


@dataclass
class FlagGroup:
    """A group of custom flags with a heading and a description."""

    group_name: str
    long_description: str
    data: Any


class Parser(abc.ABC):
    """Anything that can take extra flag groups before it parses."""

    @abc.abstractmethod
    def add_flag_group(self, group_name: str, long_description: str, data: Any) -> None:
        """Add a flag group to process during parsing; raise on failure."""


_flags: list[FlagGroup] = []


def add_flags(group_name: str, long_description: str, data: Any) -> None:
    """Register a group of custom flags under the heading ``group_name``.

    ``data`` is the object that receives the parsed flag values; keep a
    reference to it and read it once parsing is complete.
    """
    _flags.append(FlagGroup(group_name, long_description, data))


def registered_flags() -> list[FlagGroup]:
    """Return the registered flag groups in registration order."""
    return list(_flags)


def clear_flags() -> None:
    """Forget every registered flag group."""
    _flags.clear()


def add_to_parser(parser: Parser) -> None:
    """Add every registered flag group to ``parser``.

    Groups are added on a best-effort basis. If any fail, an ExceptionGroup
    holding one error per failed group is raised after all were tried.
    """
    errors: list[Exception] = []
    for flag in _flags:
        try:
            parser.add_flag_group(flag.group_name, flag.long_description, flag.data)
        except Exception as err:  # noqa: BLE001 - collected and re-raised below
            wrapped = RuntimeError(f"adding {flag.group_name} to parser: {err}")
            wrapped.__cause__ = err
            errors.append(wrapped)
    if errors:
        raise ExceptionGroup("failed to add plugin flag groups", errors)