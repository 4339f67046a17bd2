# SPDX-License-Identifier: MIT
"""
Secret redaction for FerretWatch.

Serialized findings, log lines and CLI output show matched values only in
this masked form unless the caller explicitly asks for clear text.
"""

from __future__ import annotations


def redact_secret(secret: str) -> str:
    """
    Redact secret showing first 6 + last 4 characters.

    For secrets <= 10 characters, shows only ****.
    For secrets > 10 characters, shows first6****last4.

    Args:
        secret: The secret string to redact

    Returns:
        Redacted string
    """
    if len(secret) <= 10:
        return "****"
    return secret[:6] + "****" + secret[-4:]
