"""Bounded context window handed to validators and the risk scorer."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlsplit


@dataclass(frozen=True)
class ValidationContext:
    """Text immediately around a candidate value (at most the window size each side)."""

    before: str = ""
    after: str = ""
    rule_id: str = ""
    category: str = ""

    @property
    def line(self) -> str:
        """The (window-clipped) line holding the value, value excluded."""
        head = self.before.rsplit("\n", 1)[-1]
        tail = self.after.split("\n", 1)[0]
        return f"{head} {tail}"

    @property
    def previous_line(self) -> Optional[str]:
        if "\n" not in self.before:
            return None
        return self.before.rsplit("\n", 2)[-2]

    @property
    def text(self) -> str:
        return f"{self.before} {self.after}"


_HOST = re.compile(
    r"(?<![\w.-])((?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63})(?![\w-])",
    re.I,
)


def host_matches(host: str, trusted: str) -> bool:
    """Whitelist matching: ``*.example.com`` covers the base and subdomains."""
    host = host.lower().rstrip(".")
    trusted = trusted.lower().strip()
    if trusted.startswith("*."):
        base = trusted[2:]
        return host == base or host.endswith("." + base)
    return host == trusted


def mentions_trusted_domain(text: str, trusted_domains: Iterable[str]) -> bool:
    """True if any hostname in ``text`` is covered by ``trusted_domains``."""
    trusted = [d for d in trusted_domains if d]
    if not trusted or not text:
        return False
    for match in _HOST.finditer(text):
        host = match.group(1)
        if any(host_matches(host, entry) for entry in trusted):
            return True
    return False


def origin_host(origin: Optional[str]) -> Optional[str]:
    """Lowercased hostname of a page origin (``https://host`` or bare ``host``)."""
    if not origin:
        return None
    url = origin if "://" in origin else f"https://{origin}"
    try:
        return (urlsplit(url).hostname or "").lower() or None
    except ValueError:
        return None


def origin_is_trusted(origin: Optional[str], trusted_domains: Iterable[str]) -> bool:
    """True if the page the content came from is on the trusted list."""
    host = origin_host(origin)
    if not host:
        return False
    return any(host_matches(host, entry) for entry in trusted_domains if entry)
