# SPDX-License-Identifier: MIT
"""
Rule records and their load-time validation.

Rule-set payloads are lists of plain mappings. Each record is checked
against :class:`RuleSpec` (pydantic) and compiled into an immutable
:class:`Rule` whose matcher is a tagged variant: :class:`RegexMatcher` or
:class:`StructuralMatcher`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, FrozenSet, Iterable, Iterator, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ferretwatch.core.exceptions import InvalidRuleError
from ferretwatch.core.findings import RiskLevel
from ferretwatch.validate.core import ValidatorRef, ValidatorRegistry, get_validator_registry

from .structural import STRUCTURAL_DETECTORS, Span, StructuralDetector

KNOWN_CATEGORIES: FrozenSet[str] = frozenset(
    {
        "aws",
        "github",
        "slack",
        "discord",
        "api-key",
        "azure",
        "gcp",
        "jwt",
        "services",
        "password",
        "private-key",
        "certificate",
        "database",
        "environment",
        "phishing",
        "cloud-storage",
    }
)

_REGEX_FLAGS = {
    "ignorecase": re.IGNORECASE,
    "multiline": re.MULTILINE,
    "dotall": re.DOTALL,
}


# -- schema -----------------------------------------------------------------


class RegexMatcherSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["regex"] = "regex"
    pattern: str = Field(min_length=1)
    group: Union[int, str] = 0
    flags: List[Literal["ignorecase", "multiline", "dotall"]] = []


class StructuralMatcherSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["structural"] = "structural"
    detector: str = Field(min_length=1)


MatcherSpec = Annotated[
    Union[RegexMatcherSpec, StructuralMatcherSpec], Field(discriminator="kind")
]


class RuleSpec(BaseModel):
    """Schema of one rule record in a rule-set payload."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.:-]*$")
    category: str = Field(min_length=1)
    matcher: MatcherSpec
    base_risk: RiskLevel = Field(
        validation_alias=AliasChoices("base_risk", "baseRisk", "risk", "riskLevel")
    )
    description: str = ""
    validators: List[Union[str, Dict[str, Any]]] = []

    @model_validator(mode="before")
    @classmethod
    def _shorthand_matcher(cls, data: Any) -> Any:
        """Accept ``pattern:`` at the top level and matchers without ``kind``."""
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        if "matcher" not in data and "pattern" in data:
            data["matcher"] = {
                key: data.pop(key) for key in ("pattern", "group", "flags") if key in data
            }
        matcher = data.get("matcher")
        if isinstance(matcher, Mapping) and "kind" not in matcher:
            matcher = dict(matcher)
            matcher["kind"] = "regex" if "pattern" in matcher else "structural"
            data["matcher"] = matcher
        return data

    @field_validator("base_risk", mode="before")
    @classmethod
    def _parse_risk(cls, value: Any) -> RiskLevel:
        return RiskLevel.parse(value)


# -- compiled rules -----------------------------------------------------------


@dataclass(frozen=True)
class RegexMatcher:
    pattern: str
    regex: "re.Pattern[str]" = field(compare=False, repr=False)
    group: Union[int, str] = 0
    flags: Tuple[str, ...] = ()
    kind: str = "regex"

    def spans(self, content: str, origin: Optional[str] = None) -> Iterator[Span]:
        for m in self.regex.finditer(content):
            start, end = m.span(self.group)
            if start < 0 or start == end:
                continue
            yield start, end

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"kind": self.kind, "pattern": self.pattern}
        if self.group != 0:
            record["group"] = self.group
        if self.flags:
            record["flags"] = list(self.flags)
        return record


@dataclass(frozen=True)
class StructuralMatcher:
    detector: str
    func: StructuralDetector = field(compare=False, repr=False)
    kind: str = "structural"

    def spans(self, content: str, origin: Optional[str] = None) -> Iterator[Span]:
        # Detector output is normalized to left-to-right, non-overlapping.
        last_end = -1
        for start, end in sorted(set(self.func(content, origin))):
            if start < last_end or start == end:
                continue
            last_end = end
            yield start, end

    def to_record(self) -> Dict[str, Any]:
        return {"kind": self.kind, "detector": self.detector}


Matcher = Union[RegexMatcher, StructuralMatcher]


@dataclass(frozen=True)
class Rule:
    """A named detector with category, matcher, base risk and validator chain."""

    id: str
    category: str
    matcher: Matcher
    base_risk: RiskLevel
    validators: Tuple[ValidatorRef, ...] = ()
    description: str = ""

    def to_record(self) -> Dict[str, Any]:
        """The rule-set payload form of this rule."""
        return {
            "id": self.id,
            "category": self.category,
            "matcher": self.matcher.to_record(),
            "base_risk": self.base_risk.value,
            "description": self.description,
            "validators": [v.to_spec() for v in self.validators],
        }


def _compile_regex(spec: RegexMatcherSpec, rule_id: str) -> RegexMatcher:
    flags = 0
    for name in spec.flags:
        flags |= _REGEX_FLAGS[name]
    try:
        regex = re.compile(spec.pattern, flags)
    except re.error as e:
        raise InvalidRuleError(f"unparsable pattern: {e}", rule_id=rule_id) from None

    if isinstance(spec.group, int):
        if not 0 <= spec.group <= regex.groups:
            raise InvalidRuleError(f"pattern has no group {spec.group}", rule_id=rule_id)
    elif spec.group not in regex.groupindex:
        raise InvalidRuleError(f"pattern has no group named {spec.group!r}", rule_id=rule_id)

    if regex.fullmatch("") is not None:
        raise InvalidRuleError("pattern matches the empty string", rule_id=rule_id)

    return RegexMatcher(
        pattern=spec.pattern, regex=regex, group=spec.group, flags=tuple(spec.flags)
    )


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "record"
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


def compile_rule(
    record: Union[Rule, Mapping[str, Any]],
    categories: Iterable[str] = KNOWN_CATEGORIES,
    validators: Optional[ValidatorRegistry] = None,
) -> Rule:
    """
    Validate a rule record and compile it into a :class:`Rule`.

    Raises:
        InvalidRuleError: schema violation, unparsable pattern, unknown
            category, validator or structural detector
    """
    categories = frozenset(categories)

    if isinstance(record, Rule):
        if record.category not in categories:
            raise InvalidRuleError(f"unrecognized category {record.category!r}", rule_id=record.id)
        return record

    rule_id = record.get("id") if isinstance(record, Mapping) else None
    if not isinstance(record, Mapping):
        raise InvalidRuleError(f"rule record must be a mapping, got {type(record).__name__}")

    try:
        spec = RuleSpec.model_validate(record)
    except ValidationError as e:
        raise InvalidRuleError(_summarize(e), rule_id=rule_id) from None

    if spec.category not in categories:
        raise InvalidRuleError(f"unrecognized category {spec.category!r}", rule_id=spec.id)

    if isinstance(spec.matcher, RegexMatcherSpec):
        matcher: Matcher = _compile_regex(spec.matcher, spec.id)
    else:
        func = STRUCTURAL_DETECTORS.get(spec.matcher.detector)
        if func is None:
            raise InvalidRuleError(
                f"unknown structural detector {spec.matcher.detector!r}", rule_id=spec.id
            )
        matcher = StructuralMatcher(detector=spec.matcher.detector, func=func)

    registry = validators if validators is not None else get_validator_registry()
    try:
        chain = tuple(registry.resolve(v) for v in spec.validators)
    except ValueError as e:
        raise InvalidRuleError(str(e), rule_id=spec.id) from None

    return Rule(
        id=spec.id,
        category=spec.category,
        matcher=matcher,
        base_risk=spec.base_risk,
        validators=chain,
        description=spec.description,
    )
