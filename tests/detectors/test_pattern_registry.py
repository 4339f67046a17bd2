# SPDX-License-Identifier: MIT
"""
Tests for the pattern registry and rule loading.
"""

import pytest

from conftest import rule
from ferretwatch.core.exceptions import InvalidRuleError
from ferretwatch.core.findings import RiskLevel
from ferretwatch.detectors import PatternRegistry, compile_rule
from ferretwatch.detectors.rules import RegexMatcher, StructuralMatcher


class TestRuleLoading:
    """Test loading rule-set payloads."""

    def test_load_valid_rules(self):
        """Valid records compile into ordered, immutable rules."""
        registry = PatternRegistry()
        report = registry.load(
            [
                rule("first", r"tok_[a-z0-9]{8}"),
                rule("second", r"key_[a-z0-9]{8}", category="services", risk="medium"),
            ]
        )

        assert report.ok
        assert report.loaded == ("first", "second")
        assert [r.id for r in registry.all_rules()] == ["first", "second"]
        assert registry.get("second").base_risk is RiskLevel.MEDIUM
        assert isinstance(registry.get("first").matcher, RegexMatcher)
        assert registry.categories() == frozenset({"api-key", "services"})

    def test_invalid_rules_are_rejected_not_fatal(self):
        """Broken records are excluded; the rest of the set still loads."""
        registry = PatternRegistry()
        report = registry.load(
            [
                rule("good", r"tok_[a-z0-9]{8}"),
                rule("bad-regex", r"tok_[a-z"),
                rule("bad-category", r"tok_x", category="nope"),
                rule("bad-validator", r"tok_x", validators=["does_not_exist"]),
                rule("bad-risk", r"tok_x", risk="severe"),
                rule("empty-match", r"a*"),
                rule("bad-group", r"tok_(x)", group=3),
                {"id": "bad-detector", "category": "phishing", "base_risk": "high",
                 "matcher": {"kind": "structural", "detector": "nope"}},
            ]
        )

        assert report.loaded == ("good",)
        rejected = {e.rule_id for e in report.rejected}
        assert rejected == {
            "bad-regex",
            "bad-category",
            "bad-validator",
            "bad-risk",
            "empty-match",
            "bad-group",
            "bad-detector",
        }
        assert len(registry) == 1

    def test_duplicate_ids_rejected(self):
        """The first rule with an id wins; later duplicates are rejected."""
        registry = PatternRegistry()
        report = registry.load([rule("dup", r"aaa_\d+"), rule("dup", r"bbb_\d+")])

        assert report.loaded == ("dup",)
        assert len(report.rejected) == 1
        assert registry.get("dup").matcher.pattern == r"aaa_\d+"

    def test_strict_mode_raises_and_keeps_previous_set(self):
        """Strict loading fails fast without touching the active set."""
        registry = PatternRegistry([rule("keep", r"keep_\d+")])

        with pytest.raises(InvalidRuleError) as exc_info:
            registry.load([rule("new", r"new_\d+"), rule("broken", r"(")], strict=True)

        assert exc_info.value.rule_id == "broken"
        assert [r.id for r in registry.all_rules()] == ["keep"]

    def test_reload_swaps_snapshot(self):
        """A snapshot taken before a reload stays unchanged."""
        registry = PatternRegistry([rule("old", r"old_\d+")])
        snapshot = registry.all_rules()

        registry.load([rule("new", r"new_\d+")])

        assert [r.id for r in snapshot] == ["old"]
        assert [r.id for r in registry.all_rules()] == ["new"]
        assert registry.get("old") is None

    def test_unknown_fields_rejected(self):
        """Records are checked strictly against the schema."""
        with pytest.raises(InvalidRuleError):
            compile_rule(rule("extra", r"x_\d+", severity="high"))

    def test_non_mapping_record(self):
        with pytest.raises(InvalidRuleError):
            compile_rule(["not", "a", "mapping"])


class TestRuleShapes:
    """Test the accepted record shapes."""

    def test_explicit_regex_matcher(self):
        compiled = compile_rule(
            {
                "id": "explicit",
                "category": "api-key",
                "baseRisk": "Critical",
                "matcher": {"kind": "regex", "pattern": r"key=(\w{8,})", "group": 1,
                            "flags": ["ignorecase"]},
                "validators": [{"name": "min_entropy", "threshold": 2.0}],
            }
        )

        assert compiled.base_risk is RiskLevel.CRITICAL
        assert compiled.matcher.group == 1
        assert compiled.validators[0].name == "min_entropy"
        assert compiled.validators[0].params == (("threshold", 2.0),)

    def test_matcher_kind_inferred(self):
        compiled = compile_rule(
            {"id": "s", "category": "phishing", "risk": "high",
             "matcher": {"detector": "idn_homoglyph"}}
        )
        assert isinstance(compiled.matcher, StructuralMatcher)

    def test_validator_parameters_checked_at_load(self):
        """Parameters a validator does not accept are a load error."""
        with pytest.raises(InvalidRuleError) as exc_info:
            compile_rule(rule("p", r"x_\d+", validators=[{"name": "min_entropy", "bogus": 1}]))
        assert "min_entropy" in str(exc_info.value)

    def test_to_record_round_trip(self):
        """A compiled rule's record form loads back into an equal rule."""
        original = compile_rule(
            rule("rt", r"tok_(\w+)", group=1, flags=["multiline"], validators=["not_placeholder"])
        )
        assert compile_rule(original.to_record()) == original

    def test_rule_instances_pass_through(self):
        compiled = compile_rule(rule("inst", r"inst_\d+"))
        registry = PatternRegistry([compiled])
        assert registry.get("inst") is compiled
