"""Session commands -- sign in, sign out, and report the stored token.

Typical workflow::

    idmauth login --username jdoe   # prompts for the password
    idmauth status
    idmauth logout
"""

from __future__ import annotations

from typing import Optional

import typer

from idmauth.exit_codes import EXIT_AUTH_FAILURE, EXIT_STORE_ERROR
from idmauth.output import error, format_response, info, print_data, success


def login_command(
    ctx: typer.Context,
    username: str = typer.Option(..., "--username", "-u", prompt=True, help="Account user name."),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Account password."
    ),
    show_token: bool = typer.Option(
        False, "--show-token", help="Print the issued token to stdout."
    ),
) -> None:
    """Exchange credentials for a token and store it.

    Exits 0 when a verified token was stored, 3 when the service rejected
    or could not verify the sign-in, and 8 when the cookie store refused
    the token.

    Example::

        idmauth login -u jdoe
        idmauth --endpoint https://comps.idmod.org login -u jdoe --show-token
    """
    from idmauth.auth import CredentialAuthenticator
    from idmauth.commands import context_from
    from idmauth.exceptions import IdmAuthError
    from idmauth.store import open_store

    try:
        context = context_from(ctx)
        authenticator = CredentialAuthenticator(context, open_store(context))
        info(f"Signing in to {context.endpoint}")
        outcome = authenticator.authenticate({"UserName": username, "Password": password})
    except IdmAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if not outcome.is_success:
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    if not outcome.token_stored:
        raise typer.Exit(code=EXIT_STORE_ERROR)
    if show_token and outcome.token:
        print_data(outcome.token)


def logout_command(
    ctx: typer.Context,
    domain: Optional[str] = typer.Option(
        None, "--domain", help="Domain the token was stored under, if not the default."
    ),
) -> None:
    """Remove the stored token.

    Example::

        idmauth logout
    """
    from idmauth.auth import CredentialAuthenticator
    from idmauth.commands import context_from
    from idmauth.store import open_store

    context = context_from(ctx)
    authenticator = CredentialAuthenticator(context, open_store(context))
    if authenticator.sign_out(domain=domain):
        success("Signed out.")
    else:
        info("No stored token.")


def status_command(ctx: typer.Context) -> None:
    """Show whether a token is stored for the configured endpoint.

    Example::

        idmauth status --json
    """
    from idmauth.auth import CredentialAuthenticator
    from idmauth.commands import context_from
    from idmauth.store import open_store

    context = context_from(ctx)
    authenticator = CredentialAuthenticator(context, open_store(context))
    format_response(
        {
            "endpoint": context.endpoint,
            "token_key": context.token_key,
            "signed_in": authenticator.current_token() is not None,
        }
    )
