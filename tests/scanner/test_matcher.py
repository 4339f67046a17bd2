# SPDX-License-Identifier: MIT
"""
Tests for the matcher engine.
"""

from conftest import FakeClock, rule
from ferretwatch.core.findings import RiskLevel
from ferretwatch.detectors import compile_rule
from ferretwatch.detectors.rules import Rule, StructuralMatcher
from ferretwatch.scanner.matcher import MatchLimits, match, match_rule

TOKENS = " ".join(f"tok_{i:04d}" for i in range(100))


def exploding_rule():
    def detector(content, origin=None):
        raise RuntimeError("detector crashed")

    return Rule(
        id="boom",
        category="phishing",
        matcher=StructuralMatcher(detector="boom", func=detector),
        base_risk=RiskLevel.HIGH,
    )


class TestMatchRule:
    """Test single-rule matching."""

    def test_left_to_right_with_context(self):
        r = compile_rule(rule("t", r"tok_\d{4}"))
        result = match_rule("a tok_0001 b tok_0002 c", r, MatchLimits(context_window=2), deadline=float("inf"))

        assert [c.raw_value for c in result.candidates] == ["tok_0001", "tok_0002"]
        first = result.candidates[0]
        assert (first.start, first.end) == (2, 10)
        assert first.before == "a "
        assert first.after == " b"
        assert not result.truncated

    def test_capture_group(self):
        r = compile_rule(rule("g", r"key=(\w{6,})", group=1))
        result = match_rule("url?key=abcdef123&x=1", r, MatchLimits(), deadline=float("inf"))

        assert [c.raw_value for c in result.candidates] == ["abcdef123"]
        assert result.candidates[0].before.endswith("key=")

    def test_candidate_cap(self):
        r = compile_rule(rule("t", r"tok_\d{4}"))
        result = match_rule(TOKENS, r, MatchLimits(max_candidates_per_rule=3), deadline=float("inf"))

        assert len(result.candidates) == 3
        assert result.truncated
        assert not result.deadline_hit

    def test_rule_budget(self):
        """A rule over its own budget stops early but keeps its candidates."""
        clock = FakeClock(step=0.001)
        r = compile_rule(rule("t", r"tok_\d{4}"))
        limits = MatchLimits(rule_budget_ms=5)
        result = match_rule(TOKENS, r, limits, deadline=float("inf"), clock=clock)

        assert result.truncated
        assert not result.deadline_hit
        assert 1 <= len(result.candidates) < 100


class TestMatch:
    """Test matching a whole rule set."""

    def test_deterministic_order(self):
        rules = [compile_rule(rule("b", r"b_\d+")), compile_rule(rule("a", r"a_\d+"))]
        content = "a_1 b_2 a_3 b_4"

        first = match(content, rules)
        second = match(content, rules)

        assert first == second
        assert [c.raw_value for c in first.candidates] == ["b_2", "b_4", "a_1", "a_3"]
        assert first.rules_evaluated == 2

    def test_total_budget_truncates(self):
        """A 10 ms budget on slow matching keeps what was found."""
        clock = FakeClock(step=0.001)
        rules = [compile_rule(rule("t", r"tok_\d{4}")), compile_rule(rule("u", r"tok_00\d\d"))]

        outcome = match(TOKENS, rules, MatchLimits(total_budget_ms=10), clock=clock)

        assert outcome.truncated
        assert outcome.timed_out
        assert len(outcome.candidates) >= 1
        assert outcome.rules_evaluated == 1

    def test_failing_rule_isolated(self):
        rules = [exploding_rule(), compile_rule(rule("t", r"tok_\d{4}"))]
        outcome = match("tok_0001", rules)

        assert outcome.rules_failed == ("boom",)
        assert [c.rule_id for c in outcome.candidates] == ["t"]

    def test_no_match_no_candidates(self):
        outcome = match("nothing here", [compile_rule(rule("t", r"tok_\d{4}"))])
        assert outcome.candidates == ()
        assert not outcome.truncated
