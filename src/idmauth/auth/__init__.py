"""Token exchange for the COMPS authentication service.

The main entry points are:

- :class:`CredentialAuthenticator` -- posts credentials, classifies the
  response, and persists a verified token into a
  :class:`~idmauth.store.ScopedStore`.
- :class:`ExchangeReply` -- what success and failure handlers receive.
- :func:`classify_response` -- the pure ``(status, body) -> outcome``
  classifier behind the authenticator.
- :func:`token_is_viable` -- the token sanity predicate.

Typical usage::

    from idmauth.auth import CredentialAuthenticator

    authenticator = CredentialAuthenticator(context, store)
    outcome = authenticator.authenticate({"UserName": "jdoe", "Password": "..."})
    if outcome.is_success and outcome.token_stored:
        ...
"""

from idmauth.auth.authenticator import CredentialAuthenticator, ExchangeReply
from idmauth.auth.classify import classify_response, token_is_viable

__all__ = [
    "CredentialAuthenticator",
    "ExchangeReply",
    "classify_response",
    "token_is_viable",
]
