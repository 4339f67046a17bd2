# SPDX-License-Identifier: MIT
"""
Validator core.

Validators are pure, named functions resolved once at rule load time. A
rule's validator chain runs in order and short-circuits on the first
failure; a candidate survives only if every validator passes.
"""
from __future__ import annotations

import functools
import inspect
import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ferretwatch.core.findings import Candidate
from ferretwatch.core.redaction import redact_secret

from .checks import BUILTIN_VALIDATORS
from .context import ValidationContext

if TYPE_CHECKING:
    from ferretwatch.detectors.rules import Rule

logger = logging.getLogger(__name__)

ValidatorFunc = Callable[..., bool]
ValidatorSpec = Union[str, Mapping[str, Any]]


@dataclass(frozen=True)
class ValidatorRef:
    """A resolved validator: name, bound parameters and the callable."""

    name: str
    func: Callable[[str, ValidationContext], bool] = field(compare=False, repr=False)
    params: Tuple[Tuple[str, Any], ...] = ()

    def __call__(self, value: str, context: ValidationContext) -> bool:
        return bool(self.func(value, context))

    def to_spec(self) -> ValidatorSpec:
        if not self.params:
            return self.name
        return {"name": self.name, **dict(self.params)}


class ValidatorRegistry:
    """Registry of validator functions addressable by name."""

    def __init__(self):
        self._validators: Dict[str, ValidatorFunc] = {}

    def register(self, name: str, func: ValidatorFunc) -> None:
        """Register a validator."""
        if name in self._validators:
            raise ValueError(f"Validator {name} already registered")
        self._validators[name] = func

    def names(self) -> List[str]:
        return list(self._validators)

    def __contains__(self, name: str) -> bool:
        return name in self._validators

    def resolve(self, spec: ValidatorSpec) -> ValidatorRef:
        """Turn ``"name"`` or ``{"name": ..., **params}`` into a ValidatorRef.

        Raises:
            ValueError: unknown validator or parameters it does not accept
        """
        if isinstance(spec, str):
            name, params = spec, {}
        else:
            params = dict(spec)
            name = params.pop("name", None)
        if not isinstance(name, str) or name not in self._validators:
            raise ValueError(f"Unknown validator: {name!r}")

        func = self._validators[name]
        try:
            inspect.signature(func).bind(None, None, **params)
        except TypeError as e:
            raise ValueError(f"Bad parameters for validator {name}: {e}") from None

        bound = functools.partial(func, **params) if params else func
        return ValidatorRef(name=name, func=bound, params=tuple(sorted(params.items())))


def context_for(candidate: Candidate, rule: "Rule") -> ValidationContext:
    return ValidationContext(
        before=candidate.before,
        after=candidate.after,
        rule_id=rule.id,
        category=rule.category,
    )


def validate_chain(candidate: Candidate, rule: "Rule") -> Optional[int]:
    """
    Run the rule's validator chain against a candidate.

    Returns:
        Number of validators passed, or ``None`` if any validator vetoed.

    Raises:
        Exception: whatever a misbehaving validator raised; callers isolate
        it to the rule.
    """
    if not rule.validators:
        return 0

    context = context_for(candidate, rule)
    for validator in rule.validators:
        if not validator(candidate.raw_value, context):
            logger.debug(
                "Validator %s rejected %s for rule %s",
                validator.name,
                redact_secret(candidate.raw_value),
                rule.id,
            )
            return None
    return len(rule.validators)


def validate(candidate: Candidate, rule: "Rule") -> bool:
    """True if the candidate survives the rule's validator chain."""
    return validate_chain(candidate, rule) is not None


_registry: Optional[ValidatorRegistry] = None
_registry_lock = threading.Lock()


def get_validator_registry() -> ValidatorRegistry:
    """Get the process-wide registry with the built-in validators."""
    global _registry
    with _registry_lock:
        if _registry is None:
            registry = ValidatorRegistry()
            for name, func in BUILTIN_VALIDATORS.items():
                registry.register(name, func)
            _registry = registry
        return _registry
