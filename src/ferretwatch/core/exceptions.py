"""FerretWatch custom exceptions."""

from __future__ import annotations

from typing import Optional


class FerretWatchError(Exception):
    """Base class for all FerretWatch errors."""


class FerretWatchConfigError(FerretWatchError):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str, config_path: str = None, section: str = None):
        self.config_path = config_path
        self.section = section
        super().__init__(message)

    def __str__(self):
        msg = super().__str__()
        if self.config_path:
            msg += f" (config: {self.config_path})"
        if self.section:
            msg += f" (section: {self.section})"
        return msg


class InvalidRuleError(FerretWatchError):
    """Raised when a rule record cannot be loaded.

    The registry rejects and excludes the offending rule; the rest of the
    rule set still loads.
    """

    def __init__(self, message: str, rule_id: Optional[str] = None):
        self.rule_id = rule_id
        super().__init__(message)

    def __str__(self):
        msg = super().__str__()
        if self.rule_id:
            msg = f"rule {self.rule_id!r}: {msg}"
        return msg


class ScanFailure(FerretWatchError):
    """Raised when content cannot be scanned at all (e.g. undecodable bytes)."""

    def __init__(self, message: str, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message)


class ScanBusyError(FerretWatchError):
    """Raised when the concurrency limit is reached and the queue is full.

    Callers should retry with backoff; ``retry_after_ms`` is a hint.
    """

    def __init__(self, message: str, retry_after_ms: int = 250):
        self.retry_after_ms = retry_after_ms
        super().__init__(message)
