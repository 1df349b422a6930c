"""Scoped key-value store over a cookie host.

:class:`ScopedStore` is the only component that formats cookie strings.
Every write becomes exactly one call to :meth:`CookieHost.write
<idmauth.store.hosts.CookieHost.write>` with a string of the form::

    key=value[; expires=<RFC 1123 date>|; max-age=<seconds>][; path=<path>][; secure][; domain=<domain>]

Keys and values are percent-encoded the way ``encodeURIComponent`` encodes
them and decoded again on read. Reads parse the host's cookie header fresh
on every call; nothing is cached.

Store operations never raise. A refused write is a ``False`` return, a
missing key is the caller's default.

Reserved application keys (see
:attr:`AuthContext.domain_enforced_keys
<idmauth.models.AuthContext.domain_enforced_keys>`) are written with an
explicit domain when ``localize`` is enabled. Without a caller-supplied
domain the registrable domain of the host is used: the last two labels of
the host name, e.g. ``.idmod.org`` for ``comps.idmod.org``. For IP
addresses and single-label hosts such as ``localhost`` no domain can be
derived and the cookie is written unscoped.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Iterator, Optional, Union
from urllib.parse import quote, unquote

from idmauth.models import AuthContext
from idmauth.output import debug
from idmauth.store.hosts import CookieHost, is_ip_address

RESERVED_ATTRIBUTE_NAMES = frozenset(
    {"expires", "max-age", "path", "domain", "secure", "true", "false"}
)
"""Key names that collide with cookie attribute syntax; never written."""

NEVER_EXPIRES = "Fri, 31 Dec 9999 23:59:59 GMT"
EXPIRED = "Thu, 01 Jan 1970 00:00:00 GMT"

# Characters encodeURIComponent leaves alone besides ASCII letters and digits.
_UNRESERVED = "-_.!~*'()"

Expiry = Union[None, int, float, str, datetime]


def encode_component(text: object) -> str:
    return quote(str(text), safe=_UNRESERVED)


def decode_component(text: str) -> str:
    return unquote(text)


def http_date(moment: datetime) -> str:
    """Format *moment* as an RFC 1123 date in GMT. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return format_datetime(moment.astimezone(timezone.utc), usegmt=True)


def format_expiry(expiry: Expiry) -> str:
    """Return the expiry attribute (with its leading ``"; "``) for *expiry*.

    * ``None`` or any falsy value -- ``""``, a session cookie.
    * ``math.inf`` -- a fixed year-9999 ``expires`` rather than a huge
      ``max-age`` that older clients overflow on.
    * other numbers -- ``max-age`` in seconds.
    * ``str`` -- passed through verbatim as ``expires``.
    * ``datetime`` -- formatted as an RFC 1123 ``expires``.

    Anything else is ignored and yields a session cookie.
    """
    if not expiry or isinstance(expiry, bool):
        return ""
    if isinstance(expiry, (int, float)):
        if expiry == math.inf:
            return f"; expires={NEVER_EXPIRES}"
        if isinstance(expiry, float) and expiry.is_integer():
            expiry = int(expiry)
        return f"; max-age={expiry}"
    if isinstance(expiry, str):
        return f"; expires={expiry}"
    if isinstance(expiry, datetime):
        return f"; expires={http_date(expiry)}"
    debug(f"Unsupported expiry type {type(expiry).__name__}; writing a session cookie")
    return ""


def registrable_domain(hostname: str) -> Optional[str]:
    """Return the cookie domain for *hostname*, or ``None`` when none can be derived."""
    hostname = hostname.rstrip(".")
    if not hostname or "." not in hostname or is_ip_address(hostname):
        return None
    return "." + ".".join(hostname.split(".")[-2:])


class ScopedStore:
    """Key-value store backed by cookies with domain, path and expiry scoping.

    Args:
        host: The cookie channel to read and write through.
        context: Supplies the ``localize`` flag and the reserved keys that
            are domain-enforced. Defaults to ``AuthContext()``.

    Example::

        store = ScopedStore(MemoryCookieHost("https://comps.idmod.org/"))
        store.set_item("session", "abc123")
        assert store.get_item("session") == "abc123"
    """

    def __init__(self, host: CookieHost, context: Optional[AuthContext] = None) -> None:
        self._host = host
        self._context = context or AuthContext()

    @property
    def host(self) -> CookieHost:
        return self._host

    def set_item(
        self,
        key: str,
        value: object,
        expiry: Expiry = None,
        path: Optional[str] = None,
        domain: Optional[str] = None,
        secure: bool = False,
    ) -> bool:
        """Create or overwrite the cookie *key*.

        Args:
            key: Cookie name. Empty names and reserved attribute names are
                refused.
            value: Cookie value; converted with ``str()`` (``None`` becomes
                an empty string).
            expiry: See :func:`format_expiry`.
            path: Restrict the cookie to this path (e.g. ``"/dashboard"``).
            domain: Restrict the cookie to this domain. ``None`` lets domain
                enforcement pick one for reserved keys; ``""`` forces an
                unscoped cookie.
            secure: Only transmit the cookie over secure schemes.

        Returns:
            ``True`` if a write was handed to the host. This is not a
            confirmation that the host kept it.
        """
        if not key or key.lower() in RESERVED_ATTRIBUTE_NAMES:
            debug(f"Refusing to store reserved or empty key {key!r}")
            return False
        if not self._host.enabled:
            debug(f"Cookies are disabled; not storing {key!r}")
            return False

        if domain is None and self._is_domain_enforced(key):
            domain = registrable_domain(self._host.hostname)
            if domain is None:
                debug(f"No registrable domain for {self._host.hostname!r}; {key!r} stays unscoped")

        cookie = (
            encode_component(key)
            + "="
            + encode_component("" if value is None else value)
            + format_expiry(expiry)
            + (f"; path={path}" if path else "")
            + ("; secure" if secure else "")
            + (f"; domain={domain}" if domain else "")
        )
        self._host.write(cookie)
        return True

    def get_item(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the decoded value of *key*, or *default* when it is not visible.

        When the host exposes the same key more than once (same name,
        different paths) the last occurrence wins.
        """
        if not key:
            return default
        encoded = encode_component(key)
        found: Optional[str] = None
        for name, value in self._pairs():
            if name == encoded:
                found = value
        if found is None:
            return default
        return decode_component(found)

    def has_item(self, key: str) -> bool:
        """Return True if a cookie named exactly *key* is visible."""
        if not key:
            return False
        encoded = encode_component(key)
        return any(name == encoded for name, _ in self._pairs())

    def remove_item(
        self,
        key: str,
        path: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> None:
        """Expire the cookie *key*.

        The *path* and *domain* must match the ones used when the cookie
        was written, otherwise the host treats the write as a different
        cookie and the original survives. Reserved keys are not
        domain-enforced here; pass their domain explicitly.
        """
        if not self.has_item(key):
            return
        self._host.write(
            encode_component(key)
            + f"=; expires={EXPIRED}"
            + (f"; domain={domain}" if domain else "")
            + (f"; path={path}" if path else "")
        )

    def get_keys(self) -> list[str]:
        """Return the decoded names of all visible cookies in host order."""
        return [decode_component(name) for name, _ in self._pairs()]

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _is_domain_enforced(self, key: str) -> bool:
        return self._context.localize and key in self._context.domain_enforced_keys

    def _pairs(self) -> Iterator[tuple[str, str]]:
        for segment in self._host.cookie_header().split(";"):
            name, sep, value = segment.partition("=")
            name = name.strip()
            if sep and name:
                yield name, value.strip()
