"""Console output for idmauth, split between data and diagnostics.

Anything a script might capture (a token, a stored value, the ``status``
report) is written to **stdout**. Everything else, including every line
the store and the authenticator log, is a diagnostic and goes to
**stderr**, so ``idmauth store get IDMToken | ...`` stays clean.

Diagnostics come in five levels:

=========  ===============  ==========================
level      prefix           shown
=========  ===============  ==========================
info       --               unless ``--quiet``
success    --               unless ``--quiet``
warning    ``Warning:``     always
error      ``Error:``       always
debug      ``[debug]``      only with ``--verbose``
=========  ===============  ==========================

Rich styling is used when colour is allowed; ``NO_COLOR``, ``TERM=dumb``
and ``--no-color`` fall back to bare ``print``. Library code calls the
module-level helpers (:func:`info`, :func:`error`, ...) which delegate to
the one :class:`OutputManager` installed by
:func:`~idmauth.app.main_callback`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, NamedTuple, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """How stdout data is rendered. ``AUTO`` picks ``RICH`` on a colour TTY, else ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class _Level(NamedTuple):
    label: str
    style: str
    quiet_hides: bool
    verbose_only: bool


_LEVELS = {
    "info": _Level("", "", True, False),
    "success": _Level("", "green", True, False),
    "warning": _Level("Warning:", "yellow", False, False),
    "error": _Level("Error:", "bold red", False, False),
    "debug": _Level("[debug]", "dim", False, True),
}


class OutputManager:
    """Holds the output preferences for one CLI invocation.

    Args:
        format: Rendering for stdout data.
        no_color: Force plain, unstyled diagnostics.
        quiet: Hide info and success messages.
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        if format == OutputFormat.AUTO:
            format = OutputFormat.PLAIN if self._no_color or not _is_tty() else OutputFormat.RICH
        self._format = format
        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # -- stdout ----------------------------------------------------------

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Render *data* (usually a dict) to stdout in the active format.

        PLAIN prints one ``key<TAB>value`` line per dict entry; JSON prints
        indented JSON; RICH prints syntax-highlighted JSON.
        """
        if self._format == OutputFormat.PLAIN:
            lines = (
                [f"{key}\t{value}" for key, value in data.items()]
                if isinstance(data, dict)
                else [str(data)]
            )
            for line in lines:
                self.print_data(line)
            return
        if not isinstance(data, (dict, list)) and self._format == OutputFormat.RICH:
            self._stdout.print(str(data), markup=False)
            return
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format == OutputFormat.JSON:
            self.print_data(text)
        else:
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows as a Rich table, a JSON array of objects, or TSV."""
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps([dict(zip(headers, row)) for row in rows], indent=2))
        elif self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
        else:
            table = Table(*headers, title=title, header_style="bold cyan")
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    # -- stderr ----------------------------------------------------------

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def debug(self, message: str) -> None:
        self._emit("debug", message)

    def _emit(self, level_name: str, message: str) -> None:
        level = _LEVELS[level_name]
        if level.quiet_hides and self._quiet:
            return
        if level.verbose_only and not self._verbose:
            return
        if self._no_color:
            print(f"{level.label} {message}".lstrip(), file=sys.stderr, flush=True)
            return
        # Server text may contain square brackets; never treat it as markup.
        body = escape(message)
        if level.label:
            body = f"[{level.style}]{escape(level.label)}[/] {body}"
        elif level.style:
            body = f"[{level.style}]{body}[/]"
        self._stderr.print(body)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value, even empty) or ``TERM=dumb`` disables colour."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# -- global instance -----------------------------------------------------

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager; tests call this between cases."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
