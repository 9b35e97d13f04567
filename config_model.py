#!/usr/bin/env python3
"""
Configuration Model - Immutable rule configuration tree.

The loader builds these records from YAML; tests and callers may also build
them directly. Every record checks its invariants on construction and raises
ConfigurationError, so a broken configuration fails before any document is
read.

Structure:
- DocumentConfig
  - MetadataConfig -> AttributeConfig*
  - SectionConfig* -> TitleConfig, BlockConfig*, SectionConfig* (subsections)
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from block_classifier import BlockKind
from rule_primitives import ConfigurationError, PatternRule, RuleSpec
from validation_context import occurrence_key
from validation_result import Severity


def _require_severity(value, owner: str) -> Severity:
    if value is None:
        raise ConfigurationError(f"{owner} requires a severity")
    try:
        return Severity.parse(value)
    except ValueError as exc:
        raise ConfigurationError(f"{owner}: {exc}") from exc


def _optional_severity(value, owner: str) -> Optional[Severity]:
    if value is None:
        return None
    return _require_severity(value, owner)


def _check_bounds(owner: str, minimum: Optional[int], maximum: Optional[int]):
    for bound in (minimum, maximum):
        if bound is not None and (isinstance(bound, bool) or not isinstance(bound, int) or bound < 0):
            raise ConfigurationError(f"{owner}: bounds must be non-negative integers, got {bound!r}")
    if minimum is not None and maximum is not None and minimum > maximum:
        raise ConfigurationError(f"{owner}: min ({minimum}) must not be greater than max ({maximum})")


@dataclass(frozen=True)
class OccurrenceConfig:
    """How often a block rule must match within its section."""
    min: Optional[int] = None
    max: Optional[int] = None
    exact: Optional[int] = None
    severity: Optional[Severity] = None

    def __post_init__(self):
        _check_bounds("occurrence", self.min, self.max)
        _check_bounds("occurrence", self.exact, None)
        if self.exact is not None and (self.min is not None or self.max is not None):
            raise ConfigurationError("occurrence: exact cannot be combined with min or max")
        object.__setattr__(self, "severity", _optional_severity(self.severity, "occurrence"))


@dataclass(frozen=True)
class BlockConfig:
    """
    Rules for one kind of block within a section.

    Attributes:
        kind: Block kind the rules apply to
        severity: Default severity for every nested rule without its own
        name: Optional label; nodes whose "name" attribute equals it use this
              config, and it keeps this rule's occurrences apart from others
        occurrence: Optional occurrence bounds
        rules: Field name -> rule variants, e.g. {"language": (RequiredRule(),)}
    """
    kind: BlockKind
    severity: Severity
    name: Optional[str] = None
    occurrence: Optional[OccurrenceConfig] = None
    rules: Mapping[str, Tuple[RuleSpec, ...]] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.kind, BlockKind) or self.kind is BlockKind.UNKNOWN:
            raise ConfigurationError(f"Invalid block kind: {self.kind!r}")
        label = f"{self.kind.value} block" + (f" '{self.name}'" if self.name else "")
        object.__setattr__(self, "severity", _require_severity(self.severity, label))
        frozen = {name: tuple(specs) for name, specs in dict(self.rules).items()}
        object.__setattr__(self, "rules", MappingProxyType(frozen))

    def rules_for(self, field_name: str) -> Tuple[RuleSpec, ...]:
        return self.rules.get(field_name, ())


@dataclass(frozen=True)
class TitleConfig:
    """Section title rule: exactly one of pattern or exact_match."""
    pattern: Optional[str] = None
    exact_match: Optional[str] = None
    severity: Severity = Severity.ERROR
    compiled: Optional[PatternRule] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if (self.pattern is None) == (self.exact_match is None):
            raise ConfigurationError("Section title requires exactly one of 'pattern' or 'exactMatch'")
        object.__setattr__(self, "severity", _require_severity(self.severity, "section title"))
        if self.pattern is not None:
            object.__setattr__(self, "compiled", PatternRule(self.pattern))

    def matches(self, title: Optional[str]) -> bool:
        if title is None:
            return False
        if self.exact_match is not None:
            return title == self.exact_match
        return self.compiled.matches(title)


@dataclass(frozen=True)
class SectionConfig:
    """
    Expected section at one nesting level.

    Attributes:
        name: Rule name used in messages and occurrence keys
        level: Nesting depth, 1 for "==" sections
        order: Optional relative position among ordered siblings
        min: Minimum occurrences within the parent (default 0)
        max: Maximum occurrences within the parent (None for unbounded)
        title: Optional title rule; without one the config matches any title at its level
        subsections: Expected child sections
        blocks: Block rules for the section body
    """
    name: str
    level: int = 1
    order: Optional[int] = None
    min: int = 0
    max: Optional[int] = None
    title: Optional[TitleConfig] = None
    subsections: Tuple["SectionConfig", ...] = ()
    blocks: Tuple[BlockConfig, ...] = ()

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Section rule requires a name")
        if isinstance(self.level, bool) or not isinstance(self.level, int) or self.level < 1:
            raise ConfigurationError(f"Section '{self.name}': level must be a positive integer")
        _check_bounds(f"Section '{self.name}'", self.min, self.max)
        object.__setattr__(self, "subsections", tuple(self.subsections))
        object.__setattr__(self, "blocks", tuple(self.blocks))
        for child in self.subsections:
            if child.level <= self.level:
                raise ConfigurationError(
                    f"Subsection '{child.name}' (level {child.level}) must be deeper than "
                    f"section '{self.name}' (level {self.level})"
                )
        _check_unique_names(self.subsections, f"section '{self.name}'")
        seen = set()
        for block in self.blocks:
            key = occurrence_key(block)
            if key in seen:
                label = f"{block.kind.value} block" + (f" '{block.name}'" if block.name else "")
                raise ConfigurationError(f"Duplicate rule for {label} in section '{self.name}'")
            seen.add(key)

    @property
    def severity(self) -> Severity:
        """Severity of structural section messages."""
        return self.title.severity if self.title else Severity.ERROR


def _check_unique_names(sections: Tuple[SectionConfig, ...], owner: str):
    names = set()
    for section in sections:
        if section.name in names:
            raise ConfigurationError(f"Duplicate section rule '{section.name}' in {owner}")
        names.add(section.name)


@dataclass(frozen=True)
class AttributeConfig:
    """Rule for one document header attribute ("title" means the document title)."""
    name: str
    severity: Severity
    required: bool = False
    order: Optional[int] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[PatternRule] = None

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Attribute rule requires a name")
        object.__setattr__(self, "severity", _require_severity(self.severity, f"attribute '{self.name}'"))
        _check_bounds(f"attribute '{self.name}'", self.min_length, self.max_length)
        if isinstance(self.pattern, str):
            object.__setattr__(self, "pattern", PatternRule(self.pattern))


@dataclass(frozen=True)
class MetadataConfig:
    attributes: Tuple[AttributeConfig, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "attributes", tuple(self.attributes))
        names = set()
        for attribute in self.attributes:
            if attribute.name in names:
                raise ConfigurationError(f"Duplicate attribute rule '{attribute.name}'")
            names.add(attribute.name)


@dataclass(frozen=True)
class DocumentConfig:
    """Root of the configuration tree."""
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    sections: Tuple[SectionConfig, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "sections", tuple(self.sections))
        _check_unique_names(self.sections, "document")
