"""Risk scoring for FerretWatch findings."""

from .score import (
    DEFAULT_SIGNALS,
    RiskScorer,
    ScoringConfig,
    SignalWeight,
    default_risk_table,
    risk_summary,
)

__all__ = [
    "DEFAULT_SIGNALS",
    "RiskScorer",
    "ScoringConfig",
    "SignalWeight",
    "default_risk_table",
    "risk_summary",
]
