"""Cookie-backed key-value storage.

- :class:`ScopedStore` -- the key-value API (``set_item``, ``get_item``,
  ``has_item``, ``remove_item``, ``get_keys``).
- :class:`CookieHost` -- the injected cookie channel the store writes
  through, with :class:`MemoryCookieHost` and :class:`FileCookieHost`
  implementations.

Typical usage::

    from idmauth.store import FileCookieHost, ScopedStore

    host = FileCookieHost(get_cookie_path(), url=context.origin)
    store = ScopedStore(host, context)
    store.set_item("theme", "dark", expiry=31536000)
"""

from idmauth.config import get_cookie_path
from idmauth.models import AuthContext
from idmauth.store.hosts import CookieHost, FileCookieHost, MemoryCookieHost
from idmauth.store.scoped import RESERVED_ATTRIBUTE_NAMES, ScopedStore

__all__ = [
    "CookieHost",
    "FileCookieHost",
    "MemoryCookieHost",
    "RESERVED_ATTRIBUTE_NAMES",
    "ScopedStore",
    "open_store",
]


def open_store(context: AuthContext) -> ScopedStore:
    """Return a :class:`ScopedStore` over the user's persistent cookie jar.

    The jar lives at :func:`~idmauth.config.get_cookie_path` and behaves as
    a document served from the endpoint's origin.
    """
    host = FileCookieHost(get_cookie_path(), url=context.origin)
    return ScopedStore(host, context)
