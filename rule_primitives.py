#!/usr/bin/env python3
"""
Rule Primitives - Stateless checks shared by every validator.

A configured constraint is one of a small set of tagged rule variants. Each
variant is evaluated against a single extracted value and yields zero or more
RuleViolation fragments; the caller turns fragments into ValidationMessages
with a rule id, a location and a resolved severity.

Key Features:
- RequiredRule, PatternRule, RangeRule, AllowedRule and FlagRule variants
- Full-string regex matching for every pattern rule
- Two-level severity cascade via resolve_severity()
- Transitive order-violation search shared by sections and metadata
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Pattern, Sequence, Tuple, Union

from validation_result import Severity


class ConfigurationError(ValueError):
    """Raised when a rule configuration is invalid. Always raised at load time."""
    pass


def resolve_severity(local: Optional[Severity], fallback: Optional[Severity]) -> Severity:
    """
    Resolve the effective severity of a nested rule.

    A rule's own severity always wins; otherwise the parent block severity
    applies. There is no third level.

    Args:
        local: Severity configured on the rule itself
        fallback: Severity of the enclosing block configuration

    Returns:
        Effective severity

    Raises:
        ConfigurationError: If neither level carries a severity
    """
    if local is not None:
        return local
    if fallback is None:
        raise ConfigurationError("Rule has no severity and no parent severity to fall back to")
    return fallback


# ============================================================================
# Rule variants
# ============================================================================

@dataclass(frozen=True)
class RequiredRule:
    """Value must be present and not blank."""
    required: bool = True
    severity: Optional[Severity] = None


@dataclass(frozen=True)
class PatternRule:
    """Value must match the regular expression over its entire length."""
    pattern: str
    severity: Optional[Severity] = None
    compiled: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        try:
            compiled = re.compile(self.pattern)
        except (re.error, TypeError) as exc:
            raise ConfigurationError(f"Invalid regular expression '{self.pattern}': {exc}") from exc
        object.__setattr__(self, "compiled", compiled)

    def matches(self, value: str) -> bool:
        return self.compiled.fullmatch(value) is not None


class RangeUnit(Enum):
    LENGTH = "length"
    COUNT = "count"


@dataclass(frozen=True)
class RangeRule:
    """
    Numeric bounds on a value.

    LENGTH ranges measure the character count of a string value and report
    minLength/maxLength; COUNT ranges compare a numeric fact (lines, columns,
    pixels) and report min/max/exact.
    """
    min: Optional[int] = None
    max: Optional[int] = None
    exact: Optional[int] = None
    unit: RangeUnit = RangeUnit.COUNT
    severity: Optional[Severity] = None

    def __post_init__(self):
        bounds = [b for b in (self.min, self.max, self.exact) if b is not None]
        if not bounds:
            raise ConfigurationError("At least one of min, max or exact must be specified")
        for bound in bounds:
            if isinstance(bound, bool) or not isinstance(bound, int) or bound < 0:
                raise ConfigurationError(f"Range bound must be a non-negative integer, got {bound!r}")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ConfigurationError(f"min ({self.min}) must not be greater than max ({self.max})")
        if self.exact is not None and (self.min is not None or self.max is not None):
            raise ConfigurationError("exact cannot be combined with min or max")


@dataclass(frozen=True)
class AllowedRule:
    """Value must be one of a fixed set."""
    values: Tuple[str, ...]
    severity: Optional[Severity] = None

    def allows(self, value: str) -> bool:
        return value in self.values


@dataclass(frozen=True)
class FlagRule:
    """Kind-specific switch (e.g. callouts not allowed), interpreted by the block validator."""
    option: str
    value: Any
    severity: Optional[Severity] = None


RuleSpec = Union[RequiredRule, PatternRule, RangeRule, AllowedRule, FlagRule]


@dataclass(frozen=True)
class RuleViolation:
    """
    Fragment describing one failed rule, before location and rule id are attached.

    Attributes:
        constraint: Last segment of the rule id ("required", "pattern", "min", ...)
        message: Human readable description
        rule: The rule that failed, used for severity resolution
        actual: Found value, rendered as text
        expected: Expected value, rendered as text
    """
    constraint: str
    message: str
    rule: RuleSpec
    actual: Optional[str] = None
    expected: Optional[str] = None


# ============================================================================
# Evaluation
# ============================================================================

def is_blank(value: Any) -> bool:
    """True for None and for strings that are empty after stripping."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _quantity(amount: int, noun: str, unit: str) -> str:
    if noun:
        return f"{amount} {noun}"
    return f"{amount}{unit}"


def check_required(value: Any, rule: RequiredRule, subject: str) -> Optional[RuleViolation]:
    if rule.required and is_blank(value):
        return RuleViolation("required", f"{subject} is required but missing", rule, expected="A non-empty value")
    return None


def check_pattern(value: str, rule: PatternRule, subject: str) -> Optional[RuleViolation]:
    """
    Check a value against a pattern rule using full-string matching.

    Example:
        >>> rule = PatternRule("^[A-Z].*")
        >>> check_pattern("Title", rule, "Title") is None
        True
        >>> check_pattern("xTitle", rule, "Title").constraint
        'pattern'
    """
    text = str(value)
    if rule.matches(text):
        return None
    return RuleViolation(
        "pattern",
        f"{subject} does not match required pattern",
        rule,
        actual=text,
        expected=f"Pattern: {rule.pattern}",
    )


def check_allowed(value: Any, rule: AllowedRule, subject: str) -> Optional[RuleViolation]:
    text = str(value)
    if rule.allows(text):
        return None
    return RuleViolation(
        "allowed",
        f"{subject} has unsupported value",
        rule,
        actual=text,
        expected="One of: " + ", ".join(rule.values),
    )


def check_length(value: str, rule: RangeRule, subject: str) -> List[RuleViolation]:
    length = len(value)
    violations = []
    if rule.min is not None and length < rule.min:
        violations.append(RuleViolation(
            "minLength", f"{subject} is too short", rule,
            actual=f"{length} characters", expected=f"At least {rule.min} characters",
        ))
    if rule.max is not None and length > rule.max:
        violations.append(RuleViolation(
            "maxLength", f"{subject} is too long", rule,
            actual=f"{length} characters", expected=f"At most {rule.max} characters",
        ))
    if rule.exact is not None and length != rule.exact:
        violations.append(RuleViolation(
            "exactLength", f"{subject} does not have the required length", rule,
            actual=f"{length} characters", expected=f"Exactly {rule.exact} characters",
        ))
    return violations


def check_count(amount: int, rule: RangeRule, subject: str, noun: str = "", unit: str = "") -> List[RuleViolation]:
    """
    Compare a numeric fact against min/max/exact bounds.

    Args:
        amount: Measured value
        rule: Range rule with COUNT unit
        subject: What is being measured ("Paragraph", "Image width")
        noun: Plural noun of the counted things ("lines"); empty for magnitudes
        unit: Suffix for magnitudes ("px") when no noun is given

    Returns:
        List of violations (empty when within bounds)
    """
    violations = []
    actual = _quantity(amount, noun, unit)
    if rule.min is not None and amount < rule.min:
        text = f"{subject} has too few {noun}" if noun else f"{subject} is too small"
        violations.append(RuleViolation(
            "min", text, rule, actual=actual, expected=f"At least {_quantity(rule.min, noun, unit)}",
        ))
    if rule.max is not None and amount > rule.max:
        text = f"{subject} has too many {noun}" if noun else f"{subject} is too large"
        violations.append(RuleViolation(
            "max", text, rule, actual=actual, expected=f"At most {_quantity(rule.max, noun, unit)}",
        ))
    if rule.exact is not None and amount != rule.exact:
        violations.append(RuleViolation(
            "exact", f"{subject} does not have exactly {_quantity(rule.exact, noun, unit)}", rule,
            actual=actual, expected=f"Exactly {_quantity(rule.exact, noun, unit)}",
        ))
    return violations


def evaluate_rules(value: Any, rules: Sequence[RuleSpec], subject: str,
                   noun: str = "", unit: str = "") -> List[RuleViolation]:
    """
    Evaluate generic rules against one extracted value.

    A failed required rule ends the evaluation for this value; the other
    rules only run when a value is present. FlagRules are ignored here and
    left to the block validator that understands them.

    Args:
        value: Extracted fact (string, number or None)
        rules: Rules configured for the field
        subject: Description of the value used in messages
        noun: Plural noun for counted facts
        unit: Unit suffix for magnitudes

    Returns:
        List of violations in rule order
    """
    for rule in rules:
        if isinstance(rule, RequiredRule):
            violation = check_required(value, rule, subject)
            if violation is not None:
                return [violation]

    if is_blank(value):
        return []

    violations: List[RuleViolation] = []
    for rule in rules:
        if isinstance(rule, PatternRule):
            violation = check_pattern(value, rule, subject)
            if violation is not None:
                violations.append(violation)
        elif isinstance(rule, AllowedRule):
            violation = check_allowed(value, rule, subject)
            if violation is not None:
                violations.append(violation)
        elif isinstance(rule, RangeRule):
            if rule.unit is RangeUnit.LENGTH:
                violations.extend(check_length(str(value), rule, subject))
            elif isinstance(value, int):
                violations.extend(check_count(value, rule, subject, noun, unit))
    return violations


# ============================================================================
# Ordering
# ============================================================================

def find_order_violations(entries: Sequence[Tuple[Any, int]]) -> List[Tuple[int, int]]:
    """
    Find every pair of entries that appear out of configured order.

    Entries are given in encounter sequence as (item, order). Any entry with a
    lower order that comes after an entry with a higher order violates,
    whether or not the two are adjacent.

    Args:
        entries: Encountered items with their configured order

    Returns:
        (earlier_index, later_index) pairs, ordered by the later index

    Example:
        >>> find_order_violations([("install", 3), ("intro", 1)])
        [(0, 1)]
    """
    violations = []
    for later, (_, later_order) in enumerate(entries):
        for earlier in range(later):
            if entries[earlier][1] > later_order:
                violations.append((earlier, later))
    return violations
