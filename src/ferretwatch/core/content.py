# SPDX-License-Identifier: MIT
"""
Content preprocessing helpers.

Page content is untrusted and noisy. These helpers extract the visible
text of an HTML document and recognize minified script, which is a common
source of look-alike tokens.
"""
from __future__ import annotations

import html
import re

_SCRIPT = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.I)
_STYLE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.I)
_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")

_MINIFIED_PATTERNS = [
    re.compile(r"^[a-zA-Z$_][a-zA-Z0-9$_]*\s*=\s*function\s*\("),
    re.compile(r"}\s*,\s*[a-zA-Z$_]"),
    re.compile(r"\)\s*&&\s*\("),
    re.compile(r"\|\|\s*\("),
    re.compile(r"\?\s*[a-zA-Z$_]+\s*:"),
    re.compile(r"[;,{}()]\w{1,2}[=.(]\w{1,2}[;,)(]"),
]


def extract_visible_text(document: str) -> str:
    """Visible text of an HTML document: no script, style, comments or tags."""
    if not document:
        return ""

    text = _SCRIPT.sub("", document)
    text = _STYLE.sub("", text)
    text = _COMMENT.sub("", text)
    text = _TAG.sub(" ", text)
    text = html.unescape(text)
    return _WHITESPACE.sub(" ", text).strip()


def syntax_density(text: str) -> float:
    if not text:
        return 0.0
    syntax = sum(text.count(c) for c in ";,{}()")
    return syntax / len(text)


def is_minified_line(line: str) -> bool:
    """Heuristic check for minified JavaScript."""
    if not line:
        return False

    if len(line) > 500 and syntax_density(line) > 0.05:
        return True

    return any(pattern.search(line) for pattern in _MINIFIED_PATTERNS)


def looks_obfuscated(text: str) -> bool:
    """Short-window variant used on the context around a match.

    Dense punctuation with almost no whitespace reads as minified or
    packed code.
    """
    if is_minified_line(text):
        return True
    if len(text) < 40:
        return False
    spaces = sum(1 for c in text if c.isspace())
    return spaces / len(text) < 0.02 and syntax_density(text) > 0.1
