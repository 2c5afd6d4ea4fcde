"""Human-facing output for commands and the release builder.

Anything a user reads goes through a ConsoleProtocol; tests pass a
MockConsole and assert on what was said. Diagnostic key/value events are a
separate channel (structlog, see `monorel.logging`).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

__all__ = ["ConsoleProtocol", "MockConsole", "RichConsole", "Style"]


class Style(Enum):
    """Output styles; each value is the Rich style it renders with."""

    DEFAULT = ""
    SUCCESS = "green"
    ERROR = "red bold"
    WARNING = "yellow"
    INFO = "cyan"
    DIM = "dim"
    HEADER = "blue bold"

    def __str__(self) -> str:
        return self.name.lower()


# Label printed before a status message, per style.
_LABELS: dict[Style, str] = {
    Style.SUCCESS: "OK",
    Style.ERROR: "error:",
    Style.WARNING: "warning:",
    Style.INFO: "info:",
}


class ConsoleProtocol(Protocol):
    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def table(self, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        """Print rows under column headings."""
        ...


class RichConsole:
    """Console writing to stdout (or stderr) through Rich.

    Messages are printed as plain text: package names and versions such as
    `[BUMP|VERSION]` must never be read as Rich markup.
    """

    def __init__(self, *, stderr: bool = False) -> None:
        from rich.console import Console

        self._console = Console(stderr=stderr, highlight=False)

    def _labelled(self, style: Style, message: str) -> None:
        from rich.text import Text

        line = Text(_LABELS[style], style=style.value)
        line.append(f" {message}")
        self._console.print(line)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._console.print(message, style=style.value or None, markup=False)

    def success(self, message: str) -> None:
        self._labelled(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._labelled(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._labelled(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._labelled(Style.INFO, message)

    def header(self, message: str) -> None:
        self._console.print()
        self.print(message, Style.HEADER)

    def table(self, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        from rich.table import Table

        grid = Table(show_edge=False, header_style="bold")
        for column in columns:
            grid.add_column(column, overflow="fold")
        for row in rows:
            grid.add_row(*row)
        self._console.print(grid)


@dataclass(frozen=True, slots=True)
class OutputRecord:
    message: str
    style: Style


def _no_records() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Records every line instead of printing it."""

    outputs: list[OutputRecord] = field(default_factory=_no_records)

    def _record(self, message: str, style: Style) -> None:
        label = _LABELS.get(style)
        self.outputs.append(OutputRecord(f"{label} {message}" if label else message, style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self._record(message, Style.SUCCESS)

    def error(self, message: str) -> None:
        self._record(message, Style.ERROR)

    def warning(self, message: str) -> None:
        self._record(message, Style.WARNING)

    def info(self, message: str) -> None:
        self._record(message, Style.INFO)

    def header(self, message: str) -> None:
        self._record(message, Style.HEADER)

    def table(self, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        self._record("  ".join(columns), Style.HEADER)
        for row in rows:
            self._record("  ".join(row), Style.DEFAULT)

    @property
    def messages(self) -> list[str]:
        return [record.message for record in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(record.style is Style.ERROR for record in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [record for record in self.outputs if substring in record.message]
