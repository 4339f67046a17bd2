# SPDX-License-Identifier: MIT
"""
Tests for risk scoring system.
"""

import pytest

from conftest import rule
from ferretwatch.core.exceptions import FerretWatchConfigError
from ferretwatch.core.findings import Candidate, RiskLevel
from ferretwatch.detectors import compile_rule
from ferretwatch.risk import RiskScorer, ScoringConfig, risk_summary

STRONG_VALUE = "a8F2kQ9zLm3Xr7Tp"
MINIFIED = "}},a=function(){return b(c)&&(d)||(e)}"


def candidate(value=STRONG_VALUE, before="", after=""):
    return Candidate(rule_id="r", raw_value=value, start=0, end=len(value), before=before, after=after)


def make_rule(risk="high"):
    return compile_rule(rule("r", r"[A-Za-z0-9]{16}", risk=risk))


class TestRiskLevel:
    """Test the risk ordering."""

    def test_total_order(self):
        assert RiskLevel.LOW < RiskLevel.MEDIUM < RiskLevel.HIGH < RiskLevel.CRITICAL
        assert max(RiskLevel.MEDIUM, RiskLevel.CRITICAL, RiskLevel.LOW) is RiskLevel.CRITICAL

    def test_parse(self):
        assert RiskLevel.parse("HIGH") is RiskLevel.HIGH
        with pytest.raises(ValueError):
            RiskLevel.parse("severe")

    def test_lower(self):
        assert RiskLevel.CRITICAL.lower() is RiskLevel.HIGH
        assert RiskLevel.LOW.lower() is RiskLevel.LOW


class TestConfidence:
    """Test confidence signals."""

    def test_baseline_without_signals(self):
        scorer = RiskScorer()
        confidence, reasons = scorer.confidence(candidate())
        assert confidence == pytest.approx(0.5)
        assert reasons == []

    def test_positive_signals(self):
        """Keywords, assignment and validators raise confidence."""
        scorer = RiskScorer()
        confidence, reasons = scorer.confidence(candidate(before="api_key = '", after="'"), 2)

        assert confidence == pytest.approx(1.0)
        assert "signal:validators:+0.20" in reasons
        assert "signal:keyword:+0.20" in reasons
        assert "signal:assignment:+0.10" in reasons

    def test_negative_signals(self):
        """Minified context and low entropy lower confidence."""
        scorer = RiskScorer()
        confidence, reasons = scorer.confidence(candidate(value="aaaaaaaaaaaaaaaa", before=MINIFIED))

        assert confidence == pytest.approx(0.05)
        assert "signal:minified:-0.30" in reasons
        assert "signal:low_entropy:-0.15" in reasons

    def test_signal_contribution_capped(self):
        """Many passed validators still contribute at most the cap."""
        scorer = RiskScorer()
        confidence, _ = scorer.confidence(candidate(), 10)
        assert confidence == pytest.approx(0.7)

    def test_no_single_signal_reaches_one(self):
        config = ScoringConfig()
        for name, weight in config.signals.items():
            assert config.baseline + weight.cap < 1.0, name


class TestFinalRisk:
    """Test the risk table and cap."""

    def test_high_confidence_keeps_base(self):
        finding = RiskScorer().score(candidate(before="secret = '", after="'"), make_rule("critical"), 2)

        assert finding.risk_level is RiskLevel.CRITICAL
        assert finding.base_risk is RiskLevel.CRITICAL
        assert finding.rationale[0] == "rule:r"
        assert "validators:2" in finding.rationale
        assert finding.rationale[-1] == "bucket:high"

    def test_low_confidence_drops_a_level(self):
        finding = RiskScorer().score(candidate(value="aaaaaaaaaaaaaaaa", before=MINIFIED), make_rule("high"))

        assert finding.risk_level is RiskLevel.MEDIUM
        assert "risk:high->medium" in finding.rationale
        assert "bucket:low" in finding.rationale

    def test_table_cannot_raise_above_base(self):
        """The cap holds even when the table maps to a higher level."""
        config = ScoringConfig.from_mapping({"risk_table": {"medium": {"medium": "critical", "high": "critical"}}})
        scorer = RiskScorer(config)

        finding = scorer.score(candidate(), make_rule("medium"))
        assert finding.risk_level is RiskLevel.MEDIUM

    @pytest.mark.parametrize("base", list(RiskLevel))
    def test_monotonic_cap(self, base):
        scorer = RiskScorer()
        for before in ("", "token: '", MINIFIED):
            for value in (STRONG_VALUE, "aaaaaaaaaaaaaaaa"):
                finding = scorer.score(candidate(value=value, before=before), make_rule(base.value))
                assert finding.risk_level <= base

    def test_risk_summary(self):
        finding = RiskScorer().score(candidate(value="aaaaaaaaaaaaaaaa", before=MINIFIED), make_rule("high"))
        summary = risk_summary(finding)

        assert summary["level"] == "medium"
        assert summary["base"] == "high"
        assert summary["capped"] is True
        assert "signal:minified:-0.30" in summary["factors"]


class TestScoringConfig:
    """Test loading scoring configuration."""

    def test_from_mapping(self):
        config = ScoringConfig.from_mapping(
            {
                "baseline": 0.4,
                "bucket_edges": [0.3, 0.6],
                "keywords": ["Token"],
                "signals": {"keyword": {"step": 0.2, "cap": 0.3}},
            }
        )
        assert config.baseline == 0.4
        assert config.bucket(0.5) == "medium"
        assert config.keywords == ("token",)
        assert config.signals["keyword"].cap == 0.3
        assert config.signals["validators"].cap == 0.2

    @pytest.mark.parametrize(
        "data",
        [
            {"unknown": 1},
            {"bucket_edges": [0.8, 0.2]},
            {"signals": {"keyword": {"cap": 0.6}}},
            {"signals": {"nope": {"cap": 0.1}}},
            {"risk_table": {"high": {"huge": "low"}}},
            {"baseline": "lots"},
        ],
    )
    def test_invalid(self, data):
        with pytest.raises(FerretWatchConfigError):
            ScoringConfig.from_mapping(data)
