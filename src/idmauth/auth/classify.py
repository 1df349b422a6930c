"""Pure classification of a token-endpoint response.

:func:`classify_response` turns ``(status_code, body_text)`` into an
:class:`~idmauth.models.ExchangeOutcome`. It performs no I/O and holds no
state, so every branch can be tested without a network or a store.

Branch order matters and mirrors the endpoint contract:

1. an empty body is ``EMPTY`` whatever the status;
2. a non-empty body that is not a JSON object is ``MALFORMED``;
3. a 2xx status is ``SUCCESS`` if ``Token`` passes :func:`token_is_viable`,
   ``UNVERIFIED`` otherwise;
4. any other status is ``REJECTED``.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from idmauth.models import ExchangeOutcome, OutcomeKind

GENERIC_FAILURE_MESSAGE = "Sorry, but there was a problem with IDM authentication (see: console)."
UNVERIFIED_MESSAGE = "Authentication cannot be verified at this time."
CREDENTIAL_MISMATCH_MESSAGE = "The supplied credentials do not match a registered account."
COOKIES_REQUIRED_MESSAGE = "Access requires the client to accept cookies."
MALFORMED_MESSAGE = "The authentication service returned an unreadable response."

TOKEN_FIELD = "Token"
RESPONSE_MESSAGE_FIELD = "ResponseMessage"

MAX_TOKEN_LENGTH = 4096
_PLACEHOLDER_TOKENS = frozenset({"null", "undefined", "none"})


def token_is_viable(token: Any) -> bool:
    """Return True if *token* looks like a usable authentication token.

    A viable token is a non-empty string of at most
    :data:`MAX_TOKEN_LENGTH` printable ASCII characters with no whitespace,
    and is not a serialised placeholder such as ``"null"``.
    """
    if not isinstance(token, str) or not token:
        return False
    if len(token) > MAX_TOKEN_LENGTH:
        return False
    if not all("!" <= ch <= "~" for ch in token):
        return False
    return token.lower() not in _PLACEHOLDER_TOKENS


def rejection_message(status_code: int) -> str:
    """Default user-facing message for a non-success status."""
    if status_code == httpx.codes.UNAUTHORIZED:
        return CREDENTIAL_MISMATCH_MESSAGE
    return UNVERIFIED_MESSAGE


def classify_response(status_code: int, body_text: str) -> ExchangeOutcome:
    """Classify one token-endpoint response.

    Args:
        status_code: HTTP status of the response.
        body_text: The raw response body.

    Returns:
        An :class:`~idmauth.models.ExchangeOutcome` tagged with the branch
        taken. ``MALFORMED`` outcomes are returned, not raised; the
        authenticator decides that they are fatal.
    """
    if not body_text:
        return ExchangeOutcome(
            kind=OutcomeKind.EMPTY,
            status_code=status_code,
            message=GENERIC_FAILURE_MESSAGE,
        )

    try:
        body = json.loads(body_text)
    except json.JSONDecodeError:
        body = None
    if not isinstance(body, dict):
        return ExchangeOutcome(
            kind=OutcomeKind.MALFORMED,
            status_code=status_code,
            message=MALFORMED_MESSAGE,
        )

    response_message = body.get(RESPONSE_MESSAGE_FIELD) or None
    if response_message is not None:
        response_message = str(response_message)

    if httpx.codes.is_success(status_code):
        token = body.get(TOKEN_FIELD)
        if token_is_viable(token):
            return ExchangeOutcome(
                kind=OutcomeKind.SUCCESS,
                status_code=status_code,
                token=token,
                body=body,
                response_message=response_message,
            )
        return ExchangeOutcome(
            kind=OutcomeKind.UNVERIFIED,
            status_code=status_code,
            message=UNVERIFIED_MESSAGE,
            response_message=response_message,
            body=body,
        )

    return ExchangeOutcome(
        kind=OutcomeKind.REJECTED,
        status_code=status_code,
        message=rejection_message(status_code),
        response_message=response_message,
        body=body,
    )
