# SPDX-License-Identifier: MIT
"""
Structural matchers for phishing indicators.

A structural detector receives the content and the page origin (if known)
and yields ``(start, end)`` spans of the suspicious value. Detectors are
registered by name and referenced from rule records as
``matcher: {kind: structural, detector: <name>}``.
"""
from __future__ import annotations

import ipaddress
import re
import unicodedata
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple
from urllib.parse import urlsplit

from ferretwatch.validate.context import origin_host

Span = Tuple[int, int]
StructuralDetector = Callable[..., Iterable[Span]]

STRUCTURAL_DETECTORS: Dict[str, StructuralDetector] = {}


def structural_detector(name: str):
    """Register a structural detector under ``name``."""

    def decorator(func: StructuralDetector) -> StructuralDetector:
        if name in STRUCTURAL_DETECTORS:
            raise ValueError(f"Duplicate structural detector: {name}")
        STRUCTURAL_DETECTORS[name] = func
        return func

    return decorator


# Cyrillic and Greek letters that render like Latin ones.
CONFUSABLES = {
    "а": "a", "е": "e", "о": "o", "р": "p", "с": "c",
    "у": "y", "х": "x", "і": "i", "ј": "j", "һ": "h",
    "ԁ": "d", "ԛ": "q", "ԝ": "w", "ѕ": "s", "ӏ": "l",
    "А": "a", "В": "b", "Е": "e", "К": "k", "М": "m",
    "Н": "h", "О": "o", "Р": "p", "С": "c", "Т": "t",
    "Х": "x", "ο": "o", "α": "a", "ε": "e", "ι": "i",
    "κ": "k", "ν": "v", "ρ": "p", "τ": "t", "υ": "u",
    "χ": "x", "Ο": "o", "Α": "a", "Β": "b", "Ε": "e",
    "Η": "h", "Ι": "i", "Κ": "k", "Μ": "m", "Ν": "n",
    "Ρ": "p", "Τ": "t", "Χ": "x", "Υ": "y", "Ζ": "z",
}
_FOLD_TABLE = str.maketrans(CONFUSABLES)

_URL_HOST = re.compile(
    r"(?:https?://|//|\bwww\.)((?:[^\W_](?:[\w-]{0,61}[^\W_])?\.)+[^\W\d_]{2,63})",
    re.UNICODE,
)


def _script(char: str) -> str:
    try:
        return unicodedata.name(char).split(" ", 1)[0]
    except ValueError:
        return "UNKNOWN"


def _decode_punycode(label: str) -> Optional[str]:
    try:
        return label[4:].encode("ascii").decode("punycode")
    except UnicodeError:
        return None


def fold_confusables(host: str) -> str:
    """Map look-alike letters to their Latin counterparts."""
    return host.translate(_FOLD_TABLE)


def is_homoglyph_host(host: str) -> bool:
    """True for hosts that imitate an ASCII hostname with look-alike letters."""
    labels = host.lower().split(".")
    for label in labels:
        if label.startswith("xn--"):
            decoded = _decode_punycode(label)
            if decoded and not decoded.isascii():
                return True

    if host.isascii():
        return False

    if fold_confusables(host).isascii():
        return True

    # Mixed scripts inside one label (e.g. Latin + Cyrillic).
    for label in labels:
        scripts = {_script(c) for c in label if c.isalpha()}
        if "LATIN" in scripts and len(scripts) > 1:
            return True
    return False


@structural_detector("idn_homoglyph")
def find_homoglyph_hosts(content: str, origin: Optional[str] = None) -> Iterator[Span]:
    """Yield spans of URL hostnames that are IDN homoglyph look-alikes."""
    for match in _URL_HOST.finditer(content):
        if is_homoglyph_host(match.group(1)):
            yield match.span(1)


_FORM = re.compile(r"<form\b([^>]*)>(.*?)</form\s*>", re.I | re.S)
_ACTION = re.compile(r"""\baction\s*=\s*(["'])(.*?)\1""", re.I | re.S)
_PASSWORD_INPUT = re.compile(r"""<input\b[^>]*\btype\s*=\s*["']?password\b""", re.I)


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def is_suspicious_form_action(action: str, origin: Optional[str] = None) -> bool:
    """A password form action that leaves the page origin (or is insecure)."""
    try:
        parts = urlsplit(action.strip())
        action_host = (parts.hostname or "").lower()
    except ValueError:
        return False
    if not action_host:
        return False  # relative action posts back to the page itself

    page_host = origin_host(origin)
    if page_host:
        return not (action_host == page_host or action_host.endswith("." + page_host))
    return parts.scheme.lower() == "http" or _is_ip_literal(action_host)


@structural_detector("credential_form")
def find_credential_forms(content: str, origin: Optional[str] = None) -> Iterator[Span]:
    """Yield spans of form actions that harvest passwords off-origin."""
    for form in _FORM.finditer(content):
        if not _PASSWORD_INPUT.search(form.group(2)):
            continue
        action = _ACTION.search(form.group(1))
        if action and is_suspicious_form_action(action.group(2), origin):
            offset = form.start(1)
            yield (offset + action.start(2), offset + action.end(2))
