"""Cookie hosts -- the ambient cookie channel a :class:`~idmauth.store.ScopedStore` writes through.

A host plays the part a browser document plays for ``document.cookie``:
reads return a single ``Cookie``-style header listing every cookie visible
at the host's URL, and writes take one ``Set-Cookie``-style string that
the host parses and applies (or silently ignores). The store never sees
the records themselves.

Three implementations are provided:

- :class:`CookieHost` -- the abstract contract.
- :class:`MemoryCookieHost` -- an in-process jar following the RFC 6265
  storage model (domain and path matching, default paths, ``Max-Age``
  precedence over ``Expires``, deletion by past expiry).
- :class:`FileCookieHost` -- a :class:`MemoryCookieHost` whose persistent
  cookies survive the process in a JSON file. Session cookies are never
  written to disk, so they are cleared when the client shuts down.

None of the hosts are thread-safe.
"""

from __future__ import annotations

import ipaddress
import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, ValidationError

from idmauth.config import atomic_write
from idmauth.models import CookieRecord
from idmauth.output import debug

DEFAULT_HOST_URL = "https://localhost/"

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def is_ip_address(hostname: str) -> bool:
    """Return True if *hostname* is an IPv4 or IPv6 literal."""
    try:
        ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        return False
    return True


def domain_matches(domain: str, hostname: str) -> bool:
    """Return whether *hostname* domain-matches *domain* (RFC 6265, section 5.1.3)."""
    if hostname == domain:
        return True
    if not hostname.endswith("." + domain):
        return False
    return not is_ip_address(hostname)


def path_matches(cookie_path: str, request_path: str) -> bool:
    """Return whether *request_path* path-matches *cookie_path* (RFC 6265, section 5.1.4)."""
    if request_path == cookie_path:
        return True
    if not request_path.startswith(cookie_path):
        return False
    return cookie_path.endswith("/") or request_path[len(cookie_path)] == "/"


def default_path(request_path: str) -> str:
    """Return the default cookie path for a document at *request_path*."""
    if not request_path.startswith("/") or request_path.count("/") == 1:
        return "/"
    return request_path[: request_path.rindex("/")]


class CookieHost(ABC):
    """Abstract cookie channel bound to one URL.

    Args:
        url: The URL of the "document" the host represents. Its host name
            drives domain matching and its path drives path matching and
            default paths.
        enabled: When ``False`` the host behaves as if cookies are disabled;
            :class:`~idmauth.store.ScopedStore` refuses to write through it.
    """

    def __init__(self, url: str = DEFAULT_HOST_URL, enabled: bool = True) -> None:
        parts = urlsplit(url)
        self.url = url
        self.hostname = (parts.hostname or "").lower()
        self.path = parts.path or "/"
        self.is_secure = parts.scheme.lower() in ("https", "wss")
        self.enabled = enabled

    @abstractmethod
    def cookie_header(self) -> str:
        """Return the visible cookies as ``name=value; name2=value2``."""
        ...

    @abstractmethod
    def write(self, cookie: str) -> None:
        """Apply a single ``name=value; attr; attr=value`` cookie string."""
        ...


class MemoryCookieHost(CookieHost):
    """In-memory cookie jar.

    Records are keyed by ``(name, domain, path)``. A write whose ``domain``
    attribute the host does not domain-match is dropped, as is any write
    while the host is disabled. Expired records are purged lazily on read.

    Example::

        host = MemoryCookieHost("https://comps.idmod.org/")
        host.write("session=abc; path=/")
        assert host.cookie_header() == "session=abc"
    """

    def __init__(self, url: str = DEFAULT_HOST_URL, enabled: bool = True) -> None:
        super().__init__(url, enabled)
        self._records: dict[tuple[str, str, str], CookieRecord] = {}

    def cookie_header(self) -> str:
        return "; ".join(f"{r.name}={r.value}" for r in self.visible_records())

    def write(self, cookie: str) -> None:
        if not self.enabled:
            return
        record = self._parse(cookie)
        if record is None:
            return
        key = (record.name, record.domain, record.path)
        if record.is_expired():
            if self._records.pop(key, None) is not None:
                self._changed()
            return
        existing = self._records.get(key)
        if existing is not None:
            record = record.model_copy(update={"created_at": existing.created_at})
        self._records[key] = record
        self._changed()

    def visible_records(self) -> list[CookieRecord]:
        """Return the unexpired records visible at this host's URL.

        Records with longer paths come first; ties keep creation order.
        """
        self._purge()
        visible = [r for r in self._records.values() if self._is_visible(r)]
        visible.sort(key=lambda r: (-len(r.path), r.created_at))
        return visible

    def records(self) -> list[CookieRecord]:
        """Return every stored record, visible or not."""
        self._purge()
        return list(self._records.values())

    def clear(self) -> None:
        self._records.clear()
        self._changed()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _changed(self) -> None:
        """Called after every mutation. Subclasses persist here."""

    def _purge(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [k for k, r in self._records.items() if r.is_expired(now)]
        for key in expired:
            del self._records[key]
        if expired:
            self._changed()

    def _is_visible(self, record: CookieRecord) -> bool:
        if record.host_only:
            if record.domain != self.hostname:
                return False
        elif not domain_matches(record.domain, self.hostname):
            return False
        if record.secure and not self.is_secure:
            return False
        return path_matches(record.path, self.path)

    def _parse(self, cookie: str) -> Optional[CookieRecord]:
        head, *attributes = cookie.split(";")
        name, sep, value = head.partition("=")
        if not sep:
            debug(f"Ignoring cookie without '=': {head!r}")
            return None

        domain = ""
        path = ""
        secure = False
        max_age: Optional[int] = None
        expires: Optional[datetime] = None

        for attribute in attributes:
            attr_name, _, attr_value = attribute.partition("=")
            attr_name = attr_name.strip().lower()
            attr_value = attr_value.strip()
            if attr_name == "expires":
                expires = _parse_http_date(attr_value)
            elif attr_name == "max-age":
                try:
                    max_age = int(attr_value)
                except ValueError:
                    debug(f"Ignoring unparseable max-age: {attr_value!r}")
            elif attr_name == "domain":
                domain = attr_value.lstrip(".").lower()
            elif attr_name == "path":
                path = attr_value
            elif attr_name == "secure":
                secure = True

        if domain and not domain_matches(domain, self.hostname):
            debug(f"Rejecting cookie for domain {domain!r} at host {self.hostname!r}")
            return None
        if not path.startswith("/"):
            path = default_path(self.path)

        expires_at = expires
        if max_age is not None:
            if max_age <= 0:
                expires_at = _EPOCH
            else:
                try:
                    expires_at = datetime.now(timezone.utc) + timedelta(seconds=max_age)
                except OverflowError:
                    expires_at = _FAR_FUTURE

        return CookieRecord(
            name=name.strip(),
            value=value.strip(),
            domain=domain or self.hostname,
            path=path,
            host_only=not domain,
            secure=secure,
            expires_at=expires_at,
        )


def _parse_http_date(text: str) -> Optional[datetime]:
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        debug(f"Ignoring unparseable expires: {text!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _CookieJarFile(BaseModel):
    """On-disk layout of a :class:`FileCookieHost`."""

    cookies: list[CookieRecord] = Field(default_factory=list)


class FileCookieHost(MemoryCookieHost):
    """Cookie jar that keeps persistent cookies in a JSON file.

    The file is rewritten atomically with ``0o600`` permissions after every
    mutation. A missing or unreadable file yields an empty jar; the broken
    file is left in place until the next successful write replaces it.

    Args:
        path: Location of the JSON file (typically
            :func:`~idmauth.config.get_cookie_path`).
        url: URL of the document the host represents.
        enabled: See :class:`CookieHost`.
    """

    def __init__(
        self,
        path: Path,
        url: str = DEFAULT_HOST_URL,
        enabled: bool = True,
    ) -> None:
        self._path = Path(path)
        self._loading = True
        super().__init__(url, enabled)
        self._load()
        self._loading = False

    @property
    def path_on_disk(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.is_file():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            jar = _CookieJarFile.model_validate(data)
        except (json.JSONDecodeError, ValidationError, OSError) as exc:
            debug(f"Ignoring unreadable cookie file {self._path}: {exc}")
            return
        for record in jar.cookies:
            if record.is_session or record.is_expired():
                continue
            self._records[(record.name, record.domain, record.path)] = record

    def _changed(self) -> None:
        if self._loading:
            return
        jar = _CookieJarFile(
            cookies=[r for r in self._records.values() if not r.is_session]
        )
        text = json.dumps(jar.model_dump(mode="json"), indent=2) + "\n"
        atomic_write(self._path, text, mode=0o600)
