"""Built-in CLI sub-commands for idmauth.

* :mod:`~idmauth.commands.auth` -- ``login``, ``logout`` and ``status``,
  registered directly on the root app.
* :mod:`~idmauth.commands.store` -- the ``store`` group for direct access
  to the cookie store.
* :mod:`~idmauth.commands.config` -- the ``config`` group for viewing and
  changing the persisted auth context.
"""

from __future__ import annotations

from typing import Optional

import typer

from idmauth.models import AuthContext


def context_from(ctx: typer.Context) -> AuthContext:
    """Resolve the effective :class:`~idmauth.models.AuthContext` for a command.

    Honors the root ``--endpoint`` flag stored in ``ctx.obj``.
    """
    from idmauth.config import resolve_context

    endpoint: Optional[str] = None
    if ctx.obj:
        endpoint = ctx.obj.get("endpoint")
    return resolve_context(cli_endpoint=endpoint)
