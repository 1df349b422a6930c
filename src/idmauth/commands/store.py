"""Store commands -- read and write the cookie store directly.

Provides the ``idmauth store`` sub-command group. Every command goes
through :class:`~idmauth.store.ScopedStore`, so reserved keys are refused
and domain enforcement applies exactly as it does for the token.
"""

from __future__ import annotations

import math
from typing import Optional

import typer

from idmauth.output import error, info, print_data, print_table, success

store_app = typer.Typer(no_args_is_help=True)


def parse_expiry(text: Optional[str]) -> object:
    """Turn an ``--expires`` value into a store expiry.

    ``inf`` means never, an integer means seconds, anything else is taken
    as a literal date string.
    """
    if text is None:
        return None
    if text.strip().lower() in ("inf", "infinity", "never"):
        return math.inf
    try:
        return int(text)
    except ValueError:
        return text


@store_app.command("keys")
def store_keys(ctx: typer.Context) -> None:
    """List the keys visible in the store, one per line."""
    from idmauth.commands import context_from
    from idmauth.store import open_store

    for key in open_store(context_from(ctx)).get_keys():
        print_data(key)


@store_app.command("list")
def store_list(ctx: typer.Context) -> None:
    """Show every visible key with its value."""
    from idmauth.commands import context_from
    from idmauth.store import open_store

    store = open_store(context_from(ctx))
    rows = [[key, store.get_item(key, "") or ""] for key in store.get_keys()]
    if not rows:
        info("The store is empty.")
        return
    print_table(["Key", "Value"], rows, title="Stored items")


@store_app.command("get")
def store_get(
    ctx: typer.Context,
    key: str = typer.Argument(help="Key to read."),
    default: Optional[str] = typer.Option(
        None, "--default", help="Value to print when the key is absent."
    ),
) -> None:
    """Print the value of KEY.

    Exits 1 when the key is absent and no ``--default`` was given.
    """
    from idmauth.commands import context_from
    from idmauth.store import open_store

    value = open_store(context_from(ctx)).get_item(key, default)
    if value is None:
        error(f"No item named '{key}'.")
        raise typer.Exit(code=1)
    print_data(value)


@store_app.command("set")
def store_set(
    ctx: typer.Context,
    key: str = typer.Argument(help="Key to write."),
    value: str = typer.Argument(help="Value to store."),
    expires: Optional[str] = typer.Option(
        None, "--expires", "-e", help="Seconds, 'inf', or an RFC 1123 date. Omit for a session item."
    ),
    path: Optional[str] = typer.Option(None, "--path", help="Restrict the item to a path."),
    domain: Optional[str] = typer.Option(None, "--domain", help="Restrict the item to a domain."),
    secure: bool = typer.Option(False, "--secure", help="Only send over secure schemes."),
) -> None:
    """Store VALUE under KEY.

    Example::

        idmauth store set theme dark --expires 31536000
    """
    from idmauth.commands import context_from
    from idmauth.exit_codes import EXIT_STORE_ERROR
    from idmauth.store import open_store

    store = open_store(context_from(ctx))
    if not store.set_item(key, value, parse_expiry(expires), path, domain, secure):
        error(f"Cannot store '{key}': the key is reserved or cookies are disabled.")
        raise typer.Exit(code=EXIT_STORE_ERROR)
    if expires is None:
        info("Session items are not kept once this command exits.")
    success(f"Stored {key}.")


@store_app.command("rm")
def store_rm(
    ctx: typer.Context,
    key: str = typer.Argument(help="Key to remove."),
    path: Optional[str] = typer.Option(None, "--path", help="Path the item was stored with."),
    domain: Optional[str] = typer.Option(None, "--domain", help="Domain the item was stored with."),
) -> None:
    """Remove KEY. PATH and DOMAIN must match the ones used when storing it.

    Keys written with an enforced domain (the token key and any reserved
    keys, while localization is on) default to that same domain.
    """
    from idmauth.commands import context_from
    from idmauth.store import open_store
    from idmauth.store.scoped import registrable_domain

    context = context_from(ctx)
    store = open_store(context)
    if domain is None and context.localize and key in context.domain_enforced_keys:
        domain = registrable_domain(store.host.hostname)
    if not store.has_item(key):
        info(f"No item named '{key}'.")
        return
    store.remove_item(key, path=path, domain=domain)
    if store.has_item(key):
        error(f"'{key}' is still present; check --path and --domain.")
        raise typer.Exit(code=1)
    success(f"Removed {key}.")
