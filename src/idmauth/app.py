"""Typer application and CLI entry point for idmauth.

This module wires together the top-level Typer application and registers
the built-in commands (``login``, ``logout``, ``status``, ``store``,
``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Unhandled :class:`~idmauth.exceptions.IdmAuthError`
instances exit with their ``exit_code``; any other exception is written
to a crash log under the data directory.
"""

from __future__ import annotations

import sys
import traceback
from datetime import datetime
from typing import Optional

import typer

from idmauth import __version__
from idmauth.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="idmauth",
    help="Sign in to COMPS and manage the local session store.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"idmauth {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    endpoint: Optional[str] = typer.Option(
        None, "--endpoint", help="Token service base URL (overrides config and env)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~idmauth.output.OutputManager` from the
    CLI flags and stores the ``--endpoint`` override in ``ctx.obj`` for
    :func:`~idmauth.commands.context_from`.
    """
    from idmauth.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["endpoint"] = endpoint


def _register_commands() -> None:
    from idmauth.commands.auth import login_command, logout_command, status_command
    from idmauth.commands.config import config_app
    from idmauth.commands.store import store_app

    app.command("login")(login_command)
    app.command("logout")(logout_command)
    app.command("status")(status_command)
    app.add_typer(store_app, name="store", help="Read and write the cookie store.")
    app.add_typer(config_app, name="config", help="Configuration management.")


_register_commands()


def _crash_report(exc: BaseException) -> str:
    """Save the active traceback under ``<data_dir>/logs`` and return the file path."""
    from idmauth.config import get_data_dir

    log_dir = get_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_file.write_text(f"{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}")
    return str(log_file)


def main() -> None:
    """Run the ``idmauth`` console script.

    Known failures exit with the code their exception carries; a Ctrl-C
    exits 130; anything else leaves a crash report and exits 1.
    """
    from idmauth.exceptions import IdmAuthError
    from idmauth.output import error

    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except IdmAuthError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error. Debug log: {_crash_report(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)
