"""
experiments_sdk.tier1_runtime.page
───────────────────────────────────
Page primitives the resolver reads from: the browser cookie jar, the page
location (origin, hostname, hash parameters) and the document's meta tags.

These are thin in-process models. A host embedding the SDK in a real
request pipeline builds them from the incoming request (Cookie header,
URL) and flushes CookieJar.writes back as Set-Cookie headers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import SplitResult, parse_qsl, quote, unquote, urlsplit

from experiments_sdk.tier1_runtime.clock import Clock, http_date


# ── Cookies ──────────────────────────────────────────────────────────────────

@dataclass
class CookieJar:
    """
    In-memory cookie jar with document.cookie semantics: reads see the
    current name=value pairs, writes replace a cookie or delete it when
    the expiry is already in the past. Every write is recorded as a
    Set-Cookie string in ``writes``.
    """
    clock: Clock = field(default_factory=Clock)
    writes: list[str] = field(default_factory=list)
    _values: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_header(cls, header: str | None, clock: Clock | None = None) -> "CookieJar":
        """Parse a Cookie header ('a=1; b=2'). Pairs without '=' are ignored."""
        jar = cls(clock=clock or Clock())
        for part in (header or "").split(";"):
            name, sep, value = part.partition("=")
            name = name.strip()
            if not sep or not name:
                continue
            jar._values[name] = value.strip()
        return jar

    @property
    def header(self) -> str:
        """Current cookies as a Cookie header string."""
        return "; ".join(f"{name}={value}" for name, value in self._values.items())

    def get(self, name: str) -> str | None:
        raw = self._values.get(name)
        if raw is None:
            return None
        return unquote(raw)

    def set(
        self,
        name: str,
        value: str,
        expires: datetime,
        *,
        path: str = "/",
        domain: str | None = None,
    ) -> str:
        """Write a cookie and return the Set-Cookie string that was recorded."""
        encoded = quote(value, safe="")
        parts = [f"{name}={encoded}", f"path={path}"]
        if domain:
            parts.append(f"domain={domain}")
        parts.append(f"expires={http_date(expires)}")
        set_cookie = "; ".join(parts)
        self.writes.append(set_cookie)

        if expires <= self.clock.now():
            self._values.pop(name, None)
        else:
            self._values[name] = encoded
        return set_cookie

    def __contains__(self, name: object) -> bool:
        return name in self._values


# ── Location ─────────────────────────────────────────────────────────────────

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class Location:
    """Page URL. ``original_hash`` preserves a fragment the page has since rewritten."""
    href: str
    original_hash: str | None = None

    def _parts(self) -> SplitResult:
        try:
            return urlsplit(self.href)
        except ValueError:
            # Unparseable URLs (e.g. a broken IPv6 literal) behave like an empty one.
            return urlsplit("")

    @property
    def scheme(self) -> str:
        return self._parts().scheme

    @property
    def hostname(self) -> str:
        return self._parts().hostname or ""

    @property
    def origin(self) -> str:
        """
        scheme://host[:port], never including path, query or fragment.
        A port equal to the scheme default is omitted, as in a browser.
        """
        parts = self._parts()
        if not parts.scheme or not parts.hostname:
            return ""
        try:
            port = parts.port
        except ValueError:
            return ""
        origin = f"{parts.scheme}://{parts.hostname}"
        if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
            origin += f":{port}"
        return origin

    @property
    def hash(self) -> str:
        fragment = self._parts().fragment
        return f"#{fragment}" if fragment else ""

    def hash_params(self) -> dict[str, str]:
        """Parse '#a=1&b=2' into {'a': '1', 'b': '2'}; later duplicates win."""
        fragment = self.original_hash if self.original_hash is not None else self.hash
        return dict(parse_qsl(fragment.lstrip("#"), keep_blank_values=True))


# ── Document ─────────────────────────────────────────────────────────────────

@dataclass
class Document:
    cookies: CookieJar = field(default_factory=CookieJar)
    meta: dict[str, list[str]] = field(default_factory=dict)

    def add_meta(self, name: str, content: str) -> None:
        self.meta.setdefault(name, []).append(content)

    def meta_content(self, name: str) -> str | None:
        """Content of the first <meta name=...> tag, or None."""
        contents = self.meta.get(name)
        return contents[0] if contents else None

    def meta_contents(self, name: str) -> list[str]:
        return list(self.meta.get(name, ()))


__all__ = ["CookieJar", "Location", "Document"]
