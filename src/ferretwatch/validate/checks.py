# SPDX-License-Identifier: MIT
"""
Built-in candidate validators.

Each validator is a pure function ``(value, context, **params) -> bool``.
Returning ``False`` vetoes the candidate. Validators never perform I/O and
only look at the value and the bounded context window around it.
"""
from __future__ import annotations

import base64
import binascii
import json
import math
import re
import zlib
from collections import Counter
from typing import Optional
from urllib.parse import urlsplit

from .buckets import cloud_bucket
from .context import ValidationContext


# ---------------------------------------------------------------------------
# Heuristic helpers
# ---------------------------------------------------------------------------


def shannon_entropy(text: str) -> float:
    """Calculate Shannon entropy of text in bits per character."""
    if not text:
        return 0.0

    counts = Counter(text)
    length = len(text)

    entropy = 0.0
    for count in counts.values():
        probability = count / length
        entropy -= probability * math.log2(probability)

    return entropy


def character_variety(text: str) -> float:
    """Ratio of distinct characters to length (0-1)."""
    if not text:
        return 0.0
    return len(set(text)) / len(text)


def has_sequential_pattern(text: str, run: int = 4) -> bool:
    """Check for ascending character runs (abcde, 12345)."""
    if len(text) < 6:
        return False

    ascending_count = 0
    for i in range(len(text) - 1):
        if ord(text[i + 1]) == ord(text[i]) + 1:
            ascending_count += 1
        else:
            ascending_count = 0
        if ascending_count >= run:
            return True

    return False


PLACEHOLDER_PATTERNS = [
    re.compile(r"^(your_?|example_?|test_?|dummy_?|placeholder_?|sample_?|demo_?|fake_?)", re.I),
    re.compile(r"(?:YOUR_|example|dummy|placeholder|sample|changeme|redacted)", re.I),
    re.compile(r"^[a-z]{1,5}$", re.I),
    re.compile(r"^(null|undefined|none|empty|nil)$", re.I),
    re.compile(r"(example\.com|test\.com|localhost)", re.I),
    re.compile(r"^x+$", re.I),
    re.compile(r"^\*+$"),
    re.compile(r"^\.+$"),
    re.compile(r"^0+$"),
    re.compile(r"^(secret|password|key|token)$", re.I),
    re.compile(r"^(123|abc|aaa|111)", re.I),
    re.compile(r"\$\{|\{\{|<%|%>"),
    re.compile(r"^[A-Z_]+$"),
    re.compile(r"^https?://(localhost|127\.0\.0\.1|example)", re.I),
    re.compile(r"x{6,}", re.I),
]


def is_placeholder_value(value: str) -> bool:
    """True if the value looks like a template, fake or documentation value."""
    if not value:
        return True
    return any(pattern.search(value) for pattern in PLACEHOLDER_PATTERNS)


_COMMENT_MARKER = re.compile(r"(?://|#|/\*|<!--|^\s*\*|\s--\s)")
_EXAMPLE_WORDS = re.compile(
    r"\b(?:example|examples|sample|dummy|placeholder|fake|mock)\b", re.I
)


def _comment_mentions_example(line: str) -> bool:
    marker = _COMMENT_MARKER.search(line)
    if not marker:
        return False
    return bool(_EXAMPLE_WORDS.search(line[marker.start():]))


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def min_entropy(value: str, context: ValidationContext, threshold: float = 3.0) -> bool:
    """Reject low-randomness values."""
    return shannon_entropy(value) >= threshold


def min_length(value: str, context: ValidationContext, length: int = 8) -> bool:
    return len(value) >= length


_OBVIOUS_PATTERN = re.compile(r"^(.)\1+$|^(..)\2+$|^(?:123|abc|qwe)", re.I)


def looks_random(
    value: str,
    context: ValidationContext,
    threshold: float = 3.5,
    variety: float = 0.5,
    length: int = 10,
) -> bool:
    """Reject values that do not look generated.

    A generated secret has high entropy, many distinct characters and no
    repeated unit or ascending run.
    """
    if len(value) < length:
        return False
    if shannon_entropy(value) < threshold or character_variety(value) < variety:
        return False
    return not (_OBVIOUS_PATTERN.search(value) or has_sequential_pattern(value))


def not_placeholder(value: str, context: ValidationContext) -> bool:
    """Reject placeholder and documentation values."""
    return not is_placeholder_value(value)


def not_example_context(value: str, context: ValidationContext) -> bool:
    """Reject values sitting in a code comment marked as an example.

    The line holding the value is checked, as is the preceding line when it
    is a comment line of its own.
    """
    if _comment_mentions_example(context.line):
        return False
    previous = context.previous_line
    if previous is not None and _COMMENT_MARKER.match(previous.strip()):
        return not _comment_mentions_example(previous)
    return True


_BASE62 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
_GITHUB_PREFIXES = ("ghp_", "gho_", "ghu_", "ghs_", "ghr_")


def _base62(number: int, width: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 62)
        digits.append(_BASE62[remainder])
    return "".join(reversed(digits)).rjust(width, "0")


def github_checksum(value: str, context: ValidationContext) -> bool:
    """Verify the CRC32 checksum embedded in classic GitHub tokens.

    Layout: 4-character prefix, 30 random base62 characters, then the
    base62-encoded CRC32 of the random part left-padded to 6 characters.
    """
    if not value.startswith(_GITHUB_PREFIXES) or len(value) != 40:
        return False
    body, checksum = value[4:34], value[34:]
    return _base62(zlib.crc32(body.encode("ascii", "ignore")), 6) == checksum


def _b64url_json(segment: str) -> Optional[object]:
    padded = segment + "=" * (-len(segment) % 4)
    try:
        return json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, ValueError, UnicodeError):
        return None


def jwt_structure(value: str, context: ValidationContext) -> bool:
    """Header and payload decode to JSON objects; header names an algorithm."""
    parts = value.split(".")
    if len(parts) != 3 or not all(parts[:2]):
        return False
    header = _b64url_json(parts[0])
    payload = _b64url_json(parts[1])
    return isinstance(header, dict) and "alg" in header and isinstance(payload, dict)


_AWS_KEY_ID = re.compile(r"^(?:AKIA|ASIA|AGPA|AIDA|AROA|AIPA|ANPA|ANVA)[A-Z2-7]{16}$")


def aws_key_id_structure(value: str, context: ValidationContext) -> bool:
    """Known key-id prefix followed by a base32 body."""
    return bool(_AWS_KEY_ID.match(value))


_PEM_BLOCK = re.compile(r"-----BEGIN [A-Z0-9 ]+-----(.*?)-----END [A-Z0-9 ]+-----", re.S)


def pem_structure(value: str, context: ValidationContext, min_body: int = 64) -> bool:
    """The PEM body carries real base64 key material."""
    block = _PEM_BLOCK.search(value)
    if not block:
        return False
    lines = [
        line.strip()
        for line in block.group(1).replace("\\n", "\n").splitlines()
        if line.strip() and ":" not in line
    ]
    body = "".join(lines)
    return len(body) >= min_body and bool(re.fullmatch(r"[A-Za-z0-9+/=]+", body))


def url_has_credentials(value: str, context: ValidationContext) -> bool:
    """A connection URL embeds a non-placeholder password."""
    try:
        password = urlsplit(value).password
    except ValueError:
        return False
    if not password:
        return False
    if password.lower() in ("password", "pass", "passwd", "secret", "changeme"):
        return False
    return not re.search(r"^\*+$|^<.*>$|\$\{|\{\{", password)


BUILTIN_VALIDATORS = {
    "min_entropy": min_entropy,
    "min_length": min_length,
    "looks_random": looks_random,
    "not_placeholder": not_placeholder,
    "not_example_context": not_example_context,
    "github_checksum": github_checksum,
    "jwt_structure": jwt_structure,
    "aws_key_id_structure": aws_key_id_structure,
    "pem_structure": pem_structure,
    "url_has_credentials": url_has_credentials,
    "cloud_bucket": cloud_bucket,
}
