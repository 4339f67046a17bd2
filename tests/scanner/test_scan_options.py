# SPDX-License-Identifier: MIT
"""
Tests for per-scan options.
"""

import pytest

from ferretwatch.core.exceptions import FerretWatchConfigError
from ferretwatch.core.findings import RiskLevel
from ferretwatch.scanner import ScanOptions


class TestScanOptions:
    """Test defaults and mapping conversion."""

    def test_defaults(self):
        options = ScanOptions()
        assert options.enabled_categories is None
        assert options.risk_threshold is RiskLevel.LOW
        assert options.max_queued_scans == 0
        assert options.category_enabled("anything")

    def test_camel_and_snake_case(self):
        options = ScanOptions.from_mapping(
            {
                "enabledCategories": ["aws", "github"],
                "riskThreshold": "high",
                "scan_timeout_ms": 250,
                "trustedDomains": ["*.example.com"],
                "maxConcurrentScans": 5,
            }
        )
        assert options.enabled_categories == frozenset({"aws", "github"})
        assert options.risk_threshold is RiskLevel.HIGH
        assert options.scan_timeout_ms == 250
        assert options.trusted_domains == ("*.example.com",)
        assert options.max_concurrent_scans == 5
        assert not options.category_enabled("slack")

    def test_unknown_key(self):
        with pytest.raises(FerretWatchConfigError) as exc_info:
            ScanOptions.from_mapping({"scanTimeout": 10})
        assert "scanTimeout" in str(exc_info.value)

    @pytest.mark.parametrize(
        "data",
        [
            {"riskThreshold": "severe"},
            {"scanTimeoutMs": 0},
            {"maxConcurrentScans": 0},
            {"contentMode": "dom"},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(FerretWatchConfigError):
            ScanOptions.from_mapping(data)

    def test_limits(self):
        limits = ScanOptions(scan_timeout_ms=10, rule_budget_ms=100).to_limits()
        assert limits.total_budget_ms == 10
        assert limits.rule_budget_ms == 10

    def test_overrides_ignore_none(self):
        options = ScanOptions(origin="https://a.test").with_overrides(origin=None, scan_timeout_ms=50)
        assert options.origin == "https://a.test"
        assert options.scan_timeout_ms == 50
