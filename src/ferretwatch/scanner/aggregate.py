# SPDX-License-Identifier: MIT
"""Deduplication of findings within a scan."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Tuple

from ferretwatch.core.findings import Finding

AggregateKey = Tuple[str, str]


def normalize_value(value: str) -> str:
    """Lowercase and drop all whitespace."""
    return "".join(value.split()).lower()


def finding_key(finding: Finding) -> AggregateKey:
    return (finding.category, normalize_value(finding.value))


def _outranks(new: Finding, current: Finding) -> bool:
    if new.risk_level != current.risk_level:
        return new.risk_level > current.risk_level
    return new.confidence > current.confidence


def _merge_rationale(first: Tuple[str, ...], second: Tuple[str, ...]) -> Tuple[str, ...]:
    merged = list(first)
    seen = set(first)
    for reason in second:
        if reason not in seen:
            seen.add(reason)
            merged.append(reason)
    return tuple(merged)


class Aggregator:
    """
    Collapses findings that report the same value in the same category.

    The surviving finding is the one with the higher risk (then the higher
    confidence, then the first seen). It keeps the slot of the first
    occurrence, so output order is insertion order.
    """

    def __init__(self):
        self._slots: Dict[AggregateKey, Finding] = {}

    def add(self, findings: Iterable[Finding]) -> None:
        for finding in findings:
            key = finding_key(finding)
            current = self._slots.get(key)
            if current is None:
                self._slots[key] = finding
                continue

            winner, other = (finding, current) if _outranks(finding, current) else (current, finding)
            self._slots[key] = replace(
                winner,
                rationale=_merge_rationale(winner.rationale, other.rationale),
                occurrences=current.occurrences + finding.occurrences,
            )

    def current(self) -> Tuple[Finding, ...]:
        """Deduplicated findings in first-seen order."""
        return tuple(self._slots.values())

    def __len__(self) -> int:
        return len(self._slots)


def aggregate(findings: Iterable[Finding]) -> List[Finding]:
    """One-shot deduplication of a finding list."""
    aggregator = Aggregator()
    aggregator.add(findings)
    return list(aggregator.current())
