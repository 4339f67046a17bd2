# SPDX-License-Identifier: MIT
"""Shared fixtures for FerretWatch tests."""

import pytest

from ferretwatch.detectors import PatternRegistry


class FakeClock:
    """Monotonic clock that advances a fixed step on every call."""

    def __init__(self, step=0.0, start=100.0):
        self.now = start
        self.step = step
        self.calls = 0

    def __call__(self):
        self.calls += 1
        current = self.now
        self.now += self.step
        return current

    def advance(self, seconds):
        self.now += seconds


def rule(rule_id, pattern, category="api-key", risk="high", **extra):
    """Build a regex rule record."""
    record = {"id": rule_id, "category": category, "pattern": pattern, "base_risk": risk}
    record.update(extra)
    return record


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_registry():
    def _make(*records, **kwargs):
        registry = PatternRegistry(**kwargs)
        report = registry.load(list(records))
        assert report.ok, report.rejected
        return registry

    return _make
