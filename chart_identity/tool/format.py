"""Library for formatting output."""

from abc import ABC, abstractmethod
from collections.abc import Generator
import json
import sys
from typing import Any, TextIO

import yaml


PADDING = 4


def column_format_string(rows: list[list[str]]) -> str:
    """Produce a format string based on max width of columns."""
    widths = [0] * len(rows[0])
    for row in rows:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(value))
    return "".join([f"{{:{w+PADDING}}}" for w in widths])


def format_columns(
    headers: list[str], rows: list[list[str]]
) -> Generator[str, None, None]:
    """Yield the header and rows aligned in columns."""
    data = [headers] + rows
    if format_string := column_format_string(data):
        for row in data:
            yield format_string.format(*row)


class Formatter(ABC):
    """A formatter for command output."""

    @abstractmethod
    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""

    def print(self, data: list[dict[str, Any]], file: TextIO = sys.stdout) -> None:
        """Output the data objects."""
        for line in self.format(data):
            print(line, file=file)


class PrintFormatter(Formatter):
    """A formatter that prints human readable console output."""

    def __init__(self, keys: list[str]) -> None:
        """Initialize the PrintFormatter with the keys to print."""
        self._keys = keys

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects as columns."""
        if not data:
            return
        rows = [[str(row[key]) for key in self._keys] for row in data]
        cols = [col.upper() for col in self._keys]
        yield from format_columns(cols, rows)


class YamlFormatter(Formatter):
    """A formatter that prints each object as a yaml document."""

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""
        content = yaml.dump_all(data, sort_keys=False, explicit_start=True)
        yield from content.rstrip("\n").split("\n")


class JsonFormatter(Formatter):
    """A formatter that prints json output."""

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""
        yield from json.dumps(data, indent=4, sort_keys=False).split("\n")


FORMATTERS = ["yaml", "json", "wide"]


def formatter(output: str, keys: list[str]) -> Formatter:
    """Return the formatter for the output flag."""
    if output == "json":
        return JsonFormatter()
    if output == "wide":
        return PrintFormatter(keys)
    return YamlFormatter()
