# SPDX-License-Identifier: MIT
"""
Matcher engine.

Applies rules to a content buffer and produces raw candidates. Matching is
stateless: the same content and rule set always give the same candidates in
the same order (rule order, then left to right within a rule).

Time budgets are checked between matches. A rule over its budget stops
early and keeps what it found; the outcome is then ``truncated``.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from ferretwatch.core.findings import Candidate
from ferretwatch.detectors.rules import Rule

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class MatchLimits:
    """Budgets for one matching pass."""

    total_budget_ms: float = 500.0
    rule_budget_ms: float = 100.0
    max_candidates_per_rule: int = 1000
    context_window: int = 40


@dataclass(frozen=True)
class RuleMatch:
    """Candidates produced by a single rule."""

    rule_id: str
    candidates: Tuple[Candidate, ...]
    truncated: bool = False
    deadline_hit: bool = False


@dataclass(frozen=True)
class MatchOutcome:
    """Candidates produced by a whole rule set."""

    candidates: Tuple[Candidate, ...]
    truncated: bool = False
    timed_out: bool = False
    rules_evaluated: int = 0
    rules_truncated: Tuple[str, ...] = ()
    rules_failed: Tuple[str, ...] = ()


def make_candidate(
    content: str,
    rule: Rule,
    start: int,
    end: int,
    window: int,
    source_label: str = "content",
) -> Candidate:
    return Candidate(
        rule_id=rule.id,
        raw_value=content[start:end],
        start=start,
        end=end,
        source_label=source_label,
        before=content[max(0, start - window):start],
        after=content[end:end + window],
    )


def match_rule(
    content: str,
    rule: Rule,
    limits: MatchLimits,
    deadline: float,
    clock: Clock = time.perf_counter,
    origin: Optional[str] = None,
    source_label: str = "content",
) -> RuleMatch:
    """
    Collect the non-overlapping matches of one rule, left to right.

    Args:
        content: Text to scan
        rule: Rule to apply
        limits: Budgets; ``rule_budget_ms`` bounds this call
        deadline: Absolute clock value at which the whole scan must stop
        clock: Monotonic clock in seconds
        origin: Page origin handed to structural matchers

    Returns:
        RuleMatch with ``truncated`` set if a budget stopped matching early
    """
    started = clock()
    rule_deadline = min(deadline, started + limits.rule_budget_ms / 1000.0)
    found: List[Candidate] = []
    truncated = deadline_hit = False

    for start, end in rule.matcher.spans(content, origin):
        found.append(
            make_candidate(content, rule, start, end, limits.context_window, source_label)
        )
        if len(found) >= limits.max_candidates_per_rule:
            truncated = True
            logger.debug("Rule %s hit the candidate cap (%d)", rule.id, len(found))
            break
        now = clock()
        if now >= rule_deadline:
            truncated = True
            deadline_hit = now >= deadline
            logger.debug(
                "Rule %s stopped after %d candidates: %s budget exhausted",
                rule.id,
                len(found),
                "scan" if deadline_hit else "rule",
            )
            break

    return RuleMatch(
        rule_id=rule.id,
        candidates=tuple(found),
        truncated=truncated,
        deadline_hit=deadline_hit,
    )


def match(
    content: str,
    rules: Sequence[Rule],
    limits: Optional[MatchLimits] = None,
    clock: Clock = time.perf_counter,
    origin: Optional[str] = None,
    source_label: str = "content",
) -> MatchOutcome:
    """
    Run every rule against ``content``.

    A rule that raises is skipped and reported in ``rules_failed``; the other
    rules still run. Once the total budget is spent the remaining rules are
    not evaluated and the outcome is ``timed_out``.
    """
    limits = limits or MatchLimits()
    deadline = clock() + limits.total_budget_ms / 1000.0

    candidates: List[Candidate] = []
    truncated_rules: List[str] = []
    failed_rules: List[str] = []
    evaluated = 0
    timed_out = False

    for rule in rules:
        if clock() >= deadline:
            timed_out = True
            break
        evaluated += 1
        try:
            result = match_rule(content, rule, limits, deadline, clock, origin, source_label)
        except Exception as e:
            logger.warning("Rule %s failed during matching: %s", rule.id, e)
            failed_rules.append(rule.id)
            continue
        candidates.extend(result.candidates)
        if result.truncated:
            truncated_rules.append(rule.id)
        if result.deadline_hit:
            timed_out = True
            break

    return MatchOutcome(
        candidates=tuple(candidates),
        truncated=timed_out or bool(truncated_rules),
        timed_out=timed_out,
        rules_evaluated=evaluated,
        rules_truncated=tuple(truncated_rules),
        rules_failed=tuple(failed_rules),
    )
