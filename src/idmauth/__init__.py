"""idmauth -- session and sign-in helper for the COMPS web platform.

This package keeps a small cookie-backed key-value store scoped by domain
and path, and exchanges user credentials for a COMPS token that it
persists into that store.

Typical use::

    from idmauth.auth import CredentialAuthenticator
    from idmauth.config import resolve_context
    from idmauth.store import open_store

    context = resolve_context()
    authenticator = CredentialAuthenticator(context, open_store(context))
    outcome = authenticator.authenticate({"UserName": "jdoe", "Password": "..."})

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr output with Rich support.
    store: The scoped cookie store and its hosts.
    auth: Response classification and the credential authenticator.
"""

__version__ = "0.1.0"
