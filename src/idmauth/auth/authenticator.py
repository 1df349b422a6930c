"""Credential exchange against the token endpoint.

:class:`CredentialAuthenticator` runs one sign-in attempt per
:meth:`~CredentialAuthenticator.submit` call:

1. **Sent** -- the caller's credentials are copied, the context fields are
   merged over them, and the payload is POSTed as JSON to
   ``{endpoint}tokens?format=json``.
2. **Classifying** -- the response is handed to
   :func:`~idmauth.auth.classify.classify_response`.
3. **Terminal** -- a viable token is written to the store, the matching
   handler runs, and the finalizer runs last on every exit path.

Nothing is retried. Concurrent ``submit`` calls each own their request and
response, but their token writes race: whichever finishes last wins the
token key.

Note the one asymmetry callers see: a 2xx response whose token fails the
viability check is ``UNVERIFIED``. It logs a warning, invokes
``on_failure`` with the reason and then still invokes ``on_success``.
Handlers must check :attr:`ExchangeReply.outcome` before trusting the
token.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any, Callable, Mapping, Optional

import httpx

from idmauth.auth.classify import COOKIES_REQUIRED_MESSAGE, classify_response
from idmauth.exceptions import ConnectionError_, MalformedResponseError
from idmauth.models import AuthContext, ExchangeOutcome, OutcomeKind
from idmauth.output import debug, error, success, warning
from idmauth.store.scoped import ScopedStore, registrable_domain

_LOG_PREFIX = "idmorg-auth:submit:"


class ExchangeReply:
    """What ``on_success`` and ``on_failure`` receive.

    Args:
        request: The request that was sent.
        response: The response received.
        outcome: The classified outcome.
        message: A user-facing message. For failures this is the reason
            being reported; for successes it is ``None``.
    """

    def __init__(
        self,
        request: httpx.Request,
        response: httpx.Response,
        outcome: ExchangeOutcome,
        message: Optional[str] = None,
    ):
        self.request = request
        self.response = response
        self.outcome = outcome
        self.message = message

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def body(self) -> Optional[dict[str, Any]]:
        """The parsed JSON body, when the response had one."""
        return self.outcome.body


ReplyHandler = Callable[[ExchangeReply], None]
FinallyHandler = Callable[[], None]


class CredentialAuthenticator:
    """Exchange credentials for a token and persist it in a :class:`ScopedStore`.

    Args:
        context: Endpoint, context fields and token key.
        store: Where a verified token is written.
        transport: Optional ``httpx`` transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        authenticator = CredentialAuthenticator(context, store)
        outcome = await authenticator.submit(
            {"UserName": "jdoe", "Password": "..."},
            on_failure=lambda reply: print(reply.message),
        )
    """

    def __init__(
        self,
        context: AuthContext,
        store: ScopedStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._context = context
        self._store = store
        self._transport = transport

    @property
    def context(self) -> AuthContext:
        return self._context

    async def submit(
        self,
        credentials: Mapping[str, Any],
        on_success: Optional[ReplyHandler] = None,
        on_failure: Optional[ReplyHandler] = None,
        on_finally: Optional[FinallyHandler] = None,
    ) -> ExchangeOutcome:
        """Send *credentials* to the token endpoint and act on the response.

        The credentials are not validated; the caller vouches for their
        shape. The caller's mapping is never modified.

        Args:
            credentials: e.g. ``{"UserName": ..., "Password": ...}``.
            on_success: Called with the reply for ``SUCCESS`` and
                ``UNVERIFIED`` outcomes.
            on_failure: Called with the reply for ``EMPTY`` and ``REJECTED``
                outcomes, for ``UNVERIFIED`` before ``on_success``, and for
                a ``SUCCESS`` whose token the store refused.
            on_finally: Called exactly once after everything else, whatever
                happened, including when this method raises.

        Returns:
            The classified :class:`~idmauth.models.ExchangeOutcome`. For
            ``SUCCESS``, :attr:`~idmauth.models.ExchangeOutcome.token_stored`
            tells whether the store accepted the token.

        Raises:
            ConnectionError_: If the request could not be sent or no
                response arrived.
            MalformedResponseError: If the body is not a JSON object.
            Exception: Any other error raised while building or sending the
                request, such as a credential value JSON cannot encode, is
                logged and re-raised unchanged.
        """
        try:
            request, response = await self._send(credentials)
            outcome = classify_response(response.status_code, response.text)
            return self._dispatch(outcome, request, response, on_success, on_failure)
        finally:
            if on_finally is not None:
                on_finally()

    def authenticate(
        self,
        credentials: Mapping[str, Any],
        on_success: Optional[ReplyHandler] = None,
        on_failure: Optional[ReplyHandler] = None,
        on_finally: Optional[FinallyHandler] = None,
    ) -> ExchangeOutcome:
        """Blocking wrapper around :meth:`submit` for synchronous callers.

        Must not be called from inside a running event loop.
        """
        return asyncio.run(self.submit(credentials, on_success, on_failure, on_finally))

    def current_token(self) -> Optional[str]:
        """Return the stored token, or ``None`` when there is none."""
        return self._store.get_item(self._context.token_key)

    def sign_out(self, path: Optional[str] = None, domain: Optional[str] = None) -> bool:
        """Remove the stored token.

        When ``localize`` is on and no *domain* is given, the domain the
        token was enforced to on write is used, so the removal targets the
        same cookie.

        Returns:
            ``True`` if a token was visible before the removal.
        """
        key = self._context.token_key
        if domain is None and self._context.localize:
            domain = registrable_domain(self._store.host.hostname)
        existed = self._store.has_item(key)
        self._store.remove_item(key, path=path, domain=domain)
        return existed

    def build_payload(self, credentials: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of *credentials* with the context fields merged over it."""
        return {**credentials, **self._context.context}

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _send(
        self, credentials: Mapping[str, Any]
    ) -> tuple[httpx.Request, httpx.Response]:
        payload = self.build_payload(credentials)
        url = self._context.token_url
        debug(f"POST {url}")
        try:
            async with httpx.AsyncClient(
                timeout=self._context.timeout,
                transport=self._transport,
            ) as client:
                request = client.build_request(
                    "POST",
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response = await client.send(request)
        except httpx.HTTPError as exc:
            error(f"{_LOG_PREFIX} {exc}")
            raise ConnectionError_(f"Token request to {url} failed: {exc}") from exc
        except Exception as exc:
            error(f"{_LOG_PREFIX} {exc}")
            raise
        return request, response

    def _dispatch(
        self,
        outcome: ExchangeOutcome,
        request: httpx.Request,
        response: httpx.Response,
        on_success: Optional[ReplyHandler],
        on_failure: Optional[ReplyHandler],
    ) -> ExchangeOutcome:
        if outcome.kind is OutcomeKind.EMPTY:
            error(f"{_LOG_PREFIX} {outcome.message}")
            if on_failure is not None:
                on_failure(ExchangeReply(request, response, outcome, outcome.message))
            return outcome

        if outcome.kind is OutcomeKind.MALFORMED:
            error(f"{_LOG_PREFIX} {outcome.message} (HTTP {outcome.status_code})")
            raise MalformedResponseError(
                outcome.message or "Malformed response",
                status_code=outcome.status_code,
                body=response.text,
            )

        if outcome.kind is OutcomeKind.UNVERIFIED:
            detail = f" ({outcome.response_message})" if outcome.response_message else ""
            warning(f"{_LOG_PREFIX} {outcome.message}{detail}")
            if on_failure is not None:
                on_failure(ExchangeReply(request, response, outcome, outcome.message))
            if on_success is not None:
                on_success(ExchangeReply(request, response, outcome))
            return outcome

        if outcome.kind is OutcomeKind.SUCCESS:
            stored = self._store.set_item(
                self._context.token_key, outcome.token, expiry=math.inf
            )
            outcome = outcome.model_copy(update={"token_stored": stored})
            if stored:
                success("Signed in.")
            else:
                error(f"{_LOG_PREFIX} {COOKIES_REQUIRED_MESSAGE}")
                if on_failure is not None:
                    on_failure(
                        ExchangeReply(request, response, outcome, COOKIES_REQUIRED_MESSAGE)
                    )
            if on_success is not None:
                on_success(ExchangeReply(request, response, outcome))
            return outcome

        # REJECTED
        error(f"{_LOG_PREFIX} {outcome.message} (HTTP {outcome.status_code})")
        if on_failure is not None:
            on_failure(ExchangeReply(request, response, outcome, outcome.message))
        return outcome
