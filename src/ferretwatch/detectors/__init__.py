"""Pattern registry for FerretWatch."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from ferretwatch.core.exceptions import InvalidRuleError
from ferretwatch.validate.core import ValidatorRegistry

from .builtin import DEFAULT_RULES
from .rules import KNOWN_CATEGORIES, Rule, compile_rule

logger = logging.getLogger(__name__)

RuleRecord = Union[Rule, Mapping[str, Any]]


@dataclass(frozen=True)
class LoadReport:
    """Outcome of a registry load: what went live and what was rejected."""

    loaded: Tuple[str, ...] = ()
    rejected: Tuple[InvalidRuleError, ...] = field(default=())

    @property
    def ok(self) -> bool:
        return not self.rejected


class PatternRegistry:
    """Holds the active, immutable rule set.

    ``load`` swaps the whole set in one reference assignment, so a scan that
    took a snapshot with :meth:`all_rules` keeps seeing a consistent set.
    """

    def __init__(
        self,
        rules: Optional[Iterable[RuleRecord]] = None,
        categories: Iterable[str] = KNOWN_CATEGORIES,
        validators: Optional[ValidatorRegistry] = None,
    ) -> None:
        self._categories: FrozenSet[str] = frozenset(categories)
        self._validators = validators
        self._rules: Tuple[Rule, ...] = ()
        self._index: Dict[str, Rule] = {}
        self._write_lock = threading.Lock()
        if rules is not None:
            self.load(rules)

    # -- loading --------------------------------------------------------
    def load(self, rules: Iterable[RuleRecord], strict: bool = False) -> LoadReport:
        """Replace the active rule set.

        Invalid rules are rejected and excluded; the remaining rules still
        go live. With ``strict=True`` the first invalid rule raises and the
        active set is left untouched.

        Raises:
            InvalidRuleError: only in strict mode
        """
        compiled: List[Rule] = []
        seen = set()
        rejected: List[InvalidRuleError] = []

        for record in rules:
            try:
                rule = compile_rule(record, self._categories, self._validators)
                if rule.id in seen:
                    raise InvalidRuleError("duplicate rule id", rule_id=rule.id)
            except InvalidRuleError as e:
                if strict:
                    raise
                logger.warning("Rejected rule: %s", e)
                rejected.append(e)
                continue
            seen.add(rule.id)
            compiled.append(rule)

        snapshot = tuple(compiled)
        index = {rule.id: rule for rule in snapshot}
        with self._write_lock:
            self._rules = snapshot
            self._index = index

        logger.info("Loaded %d rules (%d rejected)", len(snapshot), len(rejected))
        return LoadReport(loaded=tuple(index), rejected=tuple(rejected))

    # -- access helpers ---------------------------------------------------
    def all_rules(self) -> Tuple[Rule, ...]:
        """Immutable, ordered snapshot of the active rules."""
        return self._rules

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._index.get(rule_id)

    def categories(self) -> FrozenSet[str]:
        """Categories present in the active rule set."""
        return frozenset(rule.category for rule in self._rules)

    @property
    def known_categories(self) -> FrozenSet[str]:
        return self._categories

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)


# Global registry instance
_registry = None
_registry_lock = threading.Lock()


def get_default_registry() -> PatternRegistry:
    """Get the global registry preloaded with the built-in rules."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = PatternRegistry(DEFAULT_RULES)
        return _registry


__all__ = [
    "DEFAULT_RULES",
    "KNOWN_CATEGORIES",
    "LoadReport",
    "PatternRegistry",
    "Rule",
    "compile_rule",
    "get_default_registry",
]
