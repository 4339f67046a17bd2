# SPDX-License-Identifier: MIT
"""Test configuration file discovery and parsing."""

import pytest

from ferretwatch.config import load_config, load_rules_file
from ferretwatch.core.exceptions import FerretWatchConfigError
from ferretwatch.core.findings import RiskLevel
from ferretwatch.risk import ScoringConfig
from ferretwatch.scanner import ScanOptions


class TestLoadConfig:
    """Test the config search order."""

    def test_defaults_without_file(self, tmp_path):
        options, scoring = load_config(root=str(tmp_path))
        assert options == ScanOptions()
        assert scoring == ScoringConfig()

    def test_repo_config_discovered(self, tmp_path):
        (tmp_path / ".ferretwatch.yaml").write_text(
            "scan:\n  riskThreshold: high\n  trustedDomains: ['*.corp.test']\n"
            "scoring:\n  baseline: 0.45\n"
        )
        options, scoring = load_config(root=str(tmp_path))

        assert options.risk_threshold is RiskLevel.HIGH
        assert options.trusted_domains == ("*.corp.test",)
        assert scoring.baseline == 0.45

    def test_explicit_path_wins(self, tmp_path):
        (tmp_path / ".ferretwatch.yml").write_text("scan:\n  riskThreshold: high\n")
        explicit = tmp_path / "custom.yml"
        explicit.write_text("scan:\n  riskThreshold: medium\n")

        options, _ = load_config(str(explicit), root=str(tmp_path))
        assert options.risk_threshold is RiskLevel.MEDIUM

    def test_empty_file(self, tmp_path):
        config = tmp_path / "empty.yml"
        config.write_text("")
        options, _ = load_config(str(config))
        assert options == ScanOptions()

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(FerretWatchConfigError) as exc_info:
            load_config(str(tmp_path / "nope.yml"))
        assert "not found" in str(exc_info.value)

    @pytest.mark.parametrize(
        "text",
        [
            "scan: [unclosed",
            "- just\n- a list\n",
            "extra_section: {}\n",
            "scan: 5\n",
            "scoring:\n  bucket_edges: [0.9, 0.1]\n",
        ],
    )
    def test_malformed(self, tmp_path, text):
        config = tmp_path / "bad.yml"
        config.write_text(text)

        with pytest.raises(FerretWatchConfigError) as exc_info:
            load_config(str(config))
        assert exc_info.value.config_path == str(config.resolve())


class TestLoadRulesFile:
    """Test reading YAML rule packs."""

    def test_rules_list(self, tmp_path):
        path = tmp_path / "rules.yml"
        path.write_text("rules:\n  - id: a\n    category: aws\n    pattern: 'AKIA[0-9A-Z]{16}'\n    risk: critical\n")
        rules = load_rules_file(str(path))
        assert rules == [{"id": "a", "category": "aws", "pattern": "AKIA[0-9A-Z]{16}", "risk": "critical"}]

    def test_missing_rules_key(self, tmp_path):
        path = tmp_path / "rules.yml"
        path.write_text("patterns: []\n")
        with pytest.raises(FerretWatchConfigError):
            load_rules_file(str(path))
