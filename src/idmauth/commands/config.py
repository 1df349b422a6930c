"""Config commands -- view and modify the persisted auth context.

Provides the ``idmauth config`` sub-command group. Settings live in
``config.json`` under the idmauth config directory and are validated
against :class:`~idmauth.models.AuthContext` before saving.
"""

from __future__ import annotations

import typer

from idmauth.exit_codes import EXIT_INVALID_USAGE
from idmauth.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_SETTABLE = ("endpoint", "localize", "token_key", "timeout")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration, including environment overrides.

    Example::

        idmauth config show --json
    """
    from idmauth.commands import context_from
    from idmauth.config import get_config_dir

    context = context_from(ctx)
    info(f"Config directory: {get_config_dir()}")
    format_response(context.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help=f"One of: {', '.join(_SETTABLE)}."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Example::

        idmauth config set endpoint https://comps.idmod.org/
        idmauth config set localize false
    """
    from idmauth.config import update_auth_context
    from idmauth.exceptions import ConfigError

    if key not in _SETTABLE:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        updated = update_auth_context(**{key: value})
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    success(f"Set {key} = {getattr(updated, key)}")


@config_app.command("set-context")
def config_set_context(
    field: str = typer.Argument(help="Context field merged into every sign-in payload."),
    value: str = typer.Argument(help="Value; integers are stored as numbers."),
) -> None:
    """Set a context field sent with every sign-in (e.g. ``ClientVersion``).

    Example::

        idmauth config set-context ClientVersion 12
    """
    from idmauth.config import load_auth_context, update_auth_context
    from idmauth.exceptions import ConfigError

    try:
        context = dict(load_auth_context().context)
        context[field] = int(value) if value.lstrip("-").isdigit() else value
        update_auth_context(context=context)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    success(f"Set context.{field} = {context[field]}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults."""
    from idmauth.config import save_auth_context
    from idmauth.models import AuthContext

    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_auth_context(AuthContext())
    success("Configuration reset to defaults.")
