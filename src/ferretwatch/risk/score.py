# SPDX-License-Identifier: MIT
"""
Risk scoring for validated candidates.

Provides deterministic scoring based on:
- Base risk of the rule that matched
- Number of validators the candidate passed
- Context signals (nearby keywords, assignment, minified code, entropy)

Confidence starts at a baseline and each signal adds a capped contribution.
The final risk comes from a lookup table keyed by (base risk, confidence
bucket) and never exceeds the rule's base risk. Weights and the table are
data (:class:`ScoringConfig`), not code.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ferretwatch.core.content import looks_obfuscated
from ferretwatch.core.exceptions import FerretWatchConfigError
from ferretwatch.core.findings import Candidate, Finding, RiskLevel
from ferretwatch.detectors.rules import Rule
from ferretwatch.validate.checks import shannon_entropy

BUCKETS = ("low", "medium", "high")

DEFAULT_KEYWORDS = (
    "key",
    "secret",
    "token",
    "password",
    "passwd",
    "pwd",
    "auth",
    "credential",
    "api",
    "private",
    "bearer",
    "access",
)


@dataclass(frozen=True)
class SignalWeight:
    """Per-occurrence step and absolute cap of one confidence signal."""

    step: float
    cap: float

    def contribution(self, count: int) -> float:
        raw = self.step * count
        return max(-self.cap, min(self.cap, raw))


DEFAULT_SIGNALS: Dict[str, SignalWeight] = {
    "validators": SignalWeight(step=0.1, cap=0.2),
    "keyword": SignalWeight(step=0.1, cap=0.2),
    "assignment": SignalWeight(step=0.1, cap=0.1),
    "minified": SignalWeight(step=-0.3, cap=0.3),
    "low_entropy": SignalWeight(step=-0.15, cap=0.15),
}


def default_risk_table() -> Dict[Tuple[RiskLevel, str], RiskLevel]:
    """Medium and high confidence keep the base risk; low confidence drops a level."""
    table = {}
    for level in RiskLevel:
        table[(level, "high")] = level
        table[(level, "medium")] = level
        table[(level, "low")] = level.lower()
    return table


@dataclass(frozen=True)
class ScoringConfig:
    """Tuning data for the risk scorer."""

    baseline: float = 0.5
    bucket_edges: Tuple[float, float] = (0.4, 0.7)
    low_entropy_threshold: float = 3.0
    keywords: Tuple[str, ...] = DEFAULT_KEYWORDS
    signals: Mapping[str, SignalWeight] = field(default_factory=lambda: dict(DEFAULT_SIGNALS))
    risk_table: Mapping[Tuple[RiskLevel, str], RiskLevel] = field(
        default_factory=default_risk_table
    )

    def __post_init__(self):
        if not 0.0 <= self.baseline <= 1.0:
            raise FerretWatchConfigError("baseline must be within [0, 1]", section="scoring")
        low, high = self.bucket_edges
        if not 0.0 < low < high <= 1.0:
            raise FerretWatchConfigError(
                "bucket_edges must satisfy 0 < low < high <= 1", section="scoring"
            )
        for name, weight in self.signals.items():
            if weight.cap < 0 or self.baseline + weight.cap >= 1.0:
                raise FerretWatchConfigError(
                    f"signal {name!r} cap must keep baseline + cap below 1.0",
                    section="scoring",
                )

    def bucket(self, confidence: float) -> str:
        low, high = self.bucket_edges
        if confidence < low:
            return "low"
        if confidence < high:
            return "medium"
        return "high"

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ScoringConfig":
        """
        Build a config from a parsed YAML/JSON mapping.

        Recognized keys: ``baseline``, ``bucket_edges``,
        ``low_entropy_threshold``, ``keywords``, ``signals`` (name ->
        ``{step, cap}``), ``risk_table`` (base -> bucket -> final).

        Raises:
            FerretWatchConfigError: unknown keys or malformed values
        """
        data = dict(data or {})
        allowed = {"baseline", "bucket_edges", "low_entropy_threshold", "keywords", "signals", "risk_table"}
        unknown = set(data) - allowed
        if unknown:
            raise FerretWatchConfigError(
                f"Unknown scoring keys: {', '.join(sorted(unknown))}", section="scoring"
            )

        kwargs: Dict[str, Any] = {}
        try:
            if "baseline" in data:
                kwargs["baseline"] = float(data["baseline"])
            if "bucket_edges" in data:
                low, high = data["bucket_edges"]
                kwargs["bucket_edges"] = (float(low), float(high))
            if "low_entropy_threshold" in data:
                kwargs["low_entropy_threshold"] = float(data["low_entropy_threshold"])
            if "keywords" in data:
                kwargs["keywords"] = tuple(str(k).lower() for k in data["keywords"])
            if "signals" in data:
                signals = dict(DEFAULT_SIGNALS)
                for name, weight in data["signals"].items():
                    if name not in DEFAULT_SIGNALS:
                        raise ValueError(f"unknown signal {name!r}")
                    signals[name] = SignalWeight(
                        step=float(weight.get("step", signals[name].step)),
                        cap=float(weight.get("cap", signals[name].cap)),
                    )
                kwargs["signals"] = signals
            if "risk_table" in data:
                table = default_risk_table()
                for base, row in data["risk_table"].items():
                    base_level = RiskLevel.parse(base)
                    for bucket, final in row.items():
                        if bucket not in BUCKETS:
                            raise ValueError(f"unknown confidence bucket {bucket!r}")
                        table[(base_level, bucket)] = RiskLevel.parse(final)
                kwargs["risk_table"] = table
        except (TypeError, ValueError, AttributeError) as e:
            raise FerretWatchConfigError(f"Invalid scoring config: {e}", section="scoring")

        return cls(**kwargs)


_ASSIGNMENT_BEFORE = re.compile(r"""(?:[:=]\s*|[:=]\s*['"`]|['"`])$""")
_QUOTE_AFTER = re.compile(r"""^['"`]""")


class RiskScorer:
    """Turns a validated candidate into a Finding."""

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()
        keywords = "|".join(re.escape(k) for k in self.config.keywords)
        self._keyword_re = re.compile(rf"(?<![a-z])(?:{keywords})", re.I) if keywords else None

    # -- signals ---------------------------------------------------------
    def _keyword_hits(self, candidate: Candidate) -> int:
        if self._keyword_re is None:
            return 0
        hits = {m.group(0).lower() for m in self._keyword_re.finditer(candidate.before)}
        return len(hits)

    def _signals(self, candidate: Candidate, passed_validators: int) -> Dict[str, int]:
        assigned = bool(_ASSIGNMENT_BEFORE.search(candidate.before)) or bool(
            _QUOTE_AFTER.match(candidate.after)
        )
        return {
            "validators": passed_validators,
            "keyword": self._keyword_hits(candidate),
            "assignment": int(assigned),
            "minified": int(looks_obfuscated(candidate.before + candidate.after)),
            "low_entropy": int(
                shannon_entropy(candidate.raw_value) < self.config.low_entropy_threshold
            ),
        }

    # -- scoring ---------------------------------------------------------
    def confidence(self, candidate: Candidate, passed_validators: int = 0) -> Tuple[float, List[str]]:
        """
        Compute confidence in [0, 1] and the rationale entries behind it.

        Each signal's contribution is clamped to its cap, so no single signal
        can carry the score to 1.0 on its own.
        """
        score = self.config.baseline
        reasons = []
        for name, count in self._signals(candidate, passed_validators).items():
            weight = self.config.signals.get(name)
            if weight is None or count == 0:
                continue
            delta = weight.contribution(count)
            if delta:
                score += delta
                reasons.append(f"signal:{name}:{delta:+.2f}")
        return max(0.0, min(1.0, score)), reasons

    def final_risk(self, base_risk: RiskLevel, confidence: float) -> RiskLevel:
        bucket = self.config.bucket(confidence)
        level = self.config.risk_table.get((base_risk, bucket), base_risk)
        # Cap: never above the rule's base risk
        return min(level, base_risk)

    def score(self, candidate: Candidate, rule: Rule, passed_validators: int = 0) -> Finding:
        """Score a candidate that survived validation."""
        confidence, reasons = self.confidence(candidate, passed_validators)
        bucket = self.config.bucket(confidence)
        risk = self.final_risk(rule.base_risk, confidence)

        rationale = [f"rule:{rule.id}"]
        if passed_validators:
            rationale.append(f"validators:{passed_validators}")
        rationale.extend(reasons)
        rationale.append(f"bucket:{bucket}")
        if risk < rule.base_risk:
            rationale.append(f"risk:{rule.base_risk.value}->{risk.value}")

        return Finding(
            rule_id=rule.id,
            category=rule.category,
            value=candidate.raw_value,
            risk_level=risk,
            base_risk=rule.base_risk,
            confidence=round(confidence, 4),
            rationale=tuple(rationale),
            start=candidate.start,
            end=candidate.end,
            source_label=candidate.source_label,
            description=rule.description,
        )


def risk_summary(finding: Finding) -> Dict[str, Any]:
    """Compact risk view of a finding for reports."""
    return {
        "level": finding.risk_level.value,
        "base": finding.base_risk.value,
        "confidence": finding.confidence,
        "capped": finding.risk_level < finding.base_risk,
        "factors": [r for r in finding.rationale if r.startswith("signal:")],
    }
