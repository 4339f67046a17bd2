# SPDX-License-Identifier: MIT
"""Finding data structures and utilities for FerretWatch."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ferretwatch.core.redaction import redact_secret


class RiskLevel(Enum):
    """Risk level categories, totally ordered LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> "RiskLevel":
        """Accept a RiskLevel or its (case-insensitive) string value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError(
            f"Unknown risk level {value!r}; expected one of "
            f"{', '.join(level.value for level in _RISK_ORDER)}"
        )

    def lower(self) -> "RiskLevel":
        """The next lower level (LOW stays LOW)."""
        return _RISK_ORDER[max(0, self.rank - 1)]

    def __lt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_RISK_ORDER = (RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL)


class ScanStatus(Enum):
    """Lifecycle states of a single scan."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self not in (ScanStatus.IDLE, ScanStatus.RUNNING)


@dataclass(frozen=True)
class Candidate:
    """A raw pattern match before validation."""

    rule_id: str
    raw_value: str
    start: int  # offset of raw_value in the scanned content
    end: int
    source_label: str = "content"
    before: str = ""  # bounded context window preceding raw_value
    after: str = ""  # bounded context window following raw_value


@dataclass(frozen=True)
class Finding:
    """A validated, scored, reportable detection."""

    rule_id: str
    category: str
    value: str  # original (unredacted) matched value
    risk_level: RiskLevel
    base_risk: RiskLevel
    confidence: float
    rationale: Tuple[str, ...] = ()
    start: int = 0
    end: int = 0
    source_label: str = "content"
    description: str = ""
    occurrences: int = 1
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    @property
    def redacted_value(self) -> str:
        return redact_secret(self.value)

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Convert Finding to dictionary format."""
        result = {
            "id": self.rule_id,
            "category": self.category,
            "value": self.redacted_value if redact else self.value,
            "risk": self.risk_level.value,
            "base_risk": self.base_risk.value,
            "confidence": round(self.confidence, 3),
            "rationale": list(self.rationale),
            "start": self.start,
            "end": self.end,
            "source": self.source_label,
            "occurrences": self.occurrences,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.description:
            result["description"] = self.description

        return result


@dataclass(frozen=True)
class ScanMetrics:
    """Counters and timings for one scan."""

    duration_ms: float = 0.0
    patterns_evaluated: int = 0
    matches_found: int = 0
    candidates_rejected: int = 0
    findings_suppressed: int = 0
    below_threshold: int = 0
    rules_failed: int = 0
    rules_truncated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScanResult:
    """Immutable outcome of a single scan invocation."""

    findings: Tuple[Finding, ...]
    metrics: ScanMetrics
    truncated: bool = False
    status: ScanStatus = ScanStatus.COMPLETED
    error: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.status is ScanStatus.COMPLETED and not self.truncated

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Convert the result to a JSON-friendly dictionary."""
        result = {
            "status": self.status.value,
            "truncated": self.truncated,
            "total": len(self.findings),
            "findings": [f.to_dict(redact=redact) for f in self.findings],
            "metrics": self.metrics.to_dict(),
        }

        if self.error:
            result["error"] = self.error

        return result
