# SPDX-License-Identifier: MIT
"""
Per-scan options.

Options are passed into every scan; there is no process-wide setting.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from ferretwatch.core.exceptions import FerretWatchConfigError
from ferretwatch.core.findings import RiskLevel
from ferretwatch.scanner.matcher import MatchLimits

CONTENT_MODES = ("raw", "visible")


@dataclass(frozen=True)
class ScanOptions:
    """Options for a single scan invocation.

    ``enabled_categories=None`` enables every category in the registry.
    """

    enabled_categories: Optional[FrozenSet[str]] = None
    risk_threshold: RiskLevel = RiskLevel.LOW
    scan_timeout_ms: float = 500.0
    max_concurrent_scans: int = 3
    max_queued_scans: int = 0
    trusted_domains: Tuple[str, ...] = ()
    rule_budget_ms: float = 100.0
    max_candidates_per_rule: int = 1000
    context_window: int = 40
    max_content_chars: int = 1_000_000
    content_mode: str = "raw"
    origin: Optional[str] = None
    source_label: str = "content"

    def __post_init__(self):
        if self.enabled_categories is not None and not isinstance(self.enabled_categories, frozenset):
            object.__setattr__(self, "enabled_categories", frozenset(self.enabled_categories))
        if isinstance(self.trusted_domains, str):
            object.__setattr__(self, "trusted_domains", (self.trusted_domains,))
        elif not isinstance(self.trusted_domains, tuple):
            object.__setattr__(self, "trusted_domains", tuple(self.trusted_domains))
        if not isinstance(self.risk_threshold, RiskLevel):
            try:
                object.__setattr__(self, "risk_threshold", RiskLevel.parse(self.risk_threshold))
            except ValueError as e:
                raise FerretWatchConfigError(str(e), section="scan")

        if self.scan_timeout_ms <= 0 or self.rule_budget_ms <= 0:
            raise FerretWatchConfigError("time budgets must be positive", section="scan")
        if self.max_concurrent_scans < 1:
            raise FerretWatchConfigError("max_concurrent_scans must be at least 1", section="scan")
        if self.max_queued_scans < 0:
            raise FerretWatchConfigError("max_queued_scans cannot be negative", section="scan")
        if self.max_candidates_per_rule < 1:
            raise FerretWatchConfigError("max_candidates_per_rule must be at least 1", section="scan")
        if self.context_window < 0 or self.max_content_chars < 1:
            raise FerretWatchConfigError("invalid context_window or max_content_chars", section="scan")
        if self.content_mode not in CONTENT_MODES:
            raise FerretWatchConfigError(
                f"content_mode must be one of {', '.join(CONTENT_MODES)}", section="scan"
            )

    def to_limits(self) -> MatchLimits:
        return MatchLimits(
            total_budget_ms=self.scan_timeout_ms,
            rule_budget_ms=min(self.rule_budget_ms, self.scan_timeout_ms),
            max_candidates_per_rule=self.max_candidates_per_rule,
            context_window=self.context_window,
        )

    def category_enabled(self, category: str) -> bool:
        return self.enabled_categories is None or category in self.enabled_categories

    def with_overrides(self, **changes: Any) -> "ScanOptions":
        """Copy with the given fields replaced; ``None`` values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ScanOptions":
        """
        Build options from a parsed YAML/JSON mapping.

        Keys may be snake_case (``scan_timeout_ms``) or camelCase
        (``scanTimeoutMs``).

        Raises:
            FerretWatchConfigError: unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        unknown = []
        for key, value in (data or {}).items():
            name = _snake_case(str(key))
            if name not in known:
                unknown.append(str(key))
                continue
            kwargs[name] = value

        if unknown:
            raise FerretWatchConfigError(
                f"Unknown scan option(s): {', '.join(sorted(unknown))}", section="scan"
            )

        try:
            return cls(**kwargs)
        except (TypeError, ValueError) as e:
            raise FerretWatchConfigError(f"Invalid scan options: {e}", section="scan")


_CAMEL = re.compile(r"(?<=[a-z0-9])([A-Z])")


def _snake_case(name: str) -> str:
    return _CAMEL.sub(r"_\1", name).lower()
