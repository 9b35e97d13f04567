#!/usr/bin/env python3
"""
Block Validators - Per-kind rule evaluation for classified blocks.

Every validator follows the same contract: validate(node, config, context)
extracts the facts of its block kind from the node, evaluates each rule
configured on the BlockConfig against the matching fact, and returns a list of
ValidationMessages (empty when nothing is configured or everything passes).

The work is table driven. Each validator declares a FIELDS table mapping a
configurable field to how it is described in messages; generic rules
(required, pattern, length, range, allowed) are evaluated by rule_primitives,
and only the kind-specific options (callouts, table format, verse source
format, per-line patterns, admonition type limits, ...) need code here.

Rule ids are "<kind>.<field>.<constraint>", e.g. "listing.language.allowed".

Validators hold no state. The one cross-node count, admonition blocks per
type, lives in the ValidationContext and is scoped to one document.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from block_classifier import ADMONITION_STYLES, BlockKind
from config_model import BlockConfig
from document_model import DocumentNode
from rule_primitives import (
    AllowedRule,
    ConfigurationError,
    FlagRule,
    PatternRule,
    RangeRule,
    RangeUnit,
    RequiredRule,
    RuleSpec,
    RuleViolation,
    evaluate_rules,
    is_blank,
    resolve_severity,
)
from validation_context import ValidationContext
from validation_result import ValidationMessage


CALLOUT_RE = re.compile(r"<\d+>")
BOOK_SOURCE_RE = re.compile(r".*,\s*\d{4}.*")
BOOLEAN = (True, False)

# Fact kinds. COUNT is always a number; MEASURE may be absent; LINES is a
# count whose pattern applies per line; CELLS are header cells; OPTIONS
# fields only take kind-specific options.
TEXT = "text"
COUNT = "count"
MEASURE = "measure"
LINES = "lines"
CELLS = "cells"
OPTIONS = "options"


@dataclass(frozen=True)
class FieldSpec:
    """
    How a configurable field is checked and described.

    Attributes:
        subject: Description used in messages ("Listing block language")
        noun: Plural noun for counted facts ("lines"), empty otherwise
        unit: Suffix for magnitudes without a noun ("px")
        rule_field: Field segment of the rule id when it differs from the config key
        flags: Kind-specific options accepted on the field, mapped to a tuple
               of allowed values or to the type their value must have
        value: What the extracted fact is (TEXT, COUNT, MEASURE, LINES, CELLS
               or OPTIONS); decides which constraints the field accepts
    """
    subject: str
    noun: str = ""
    unit: str = ""
    rule_field: Optional[str] = None
    flags: Mapping[str, Union[Tuple[Any, ...], type]] = field(default_factory=dict)
    value: str = TEXT


ACCEPTED_CONSTRAINTS = {
    TEXT: {"required", "pattern", "allowed", "length"},
    COUNT: {"range"},
    MEASURE: {"required", "range"},
    LINES: {"range", "pattern"},
    CELLS: {"required", "pattern"},
    OPTIONS: set(),
}

CONSTRAINT_KEYS = {
    "required": "required",
    "pattern": "pattern",
    "allowed": "allowed",
    "length": "minLength/maxLength",
    "range": "min/max/exact",
}


def constraint_of(rule: RuleSpec) -> str:
    """Constraint family of a generic rule, as named in ACCEPTED_CONSTRAINTS."""
    if isinstance(rule, RequiredRule):
        return "required"
    if isinstance(rule, PatternRule):
        return "pattern"
    if isinstance(rule, AllowedRule):
        return "allowed"
    if isinstance(rule, RangeRule) and rule.unit is RangeUnit.LENGTH:
        return "length"
    return "range"


# ============================================================================
# Fact helpers
# ============================================================================

def _lines(text: Optional[str]) -> List[str]:
    return text.split("\n") if text else []


def _non_blank_lines(text: Optional[str]) -> List[str]:
    return [line for line in _lines(text) if line.strip()]


def _trimmed(value: Any) -> Optional[str]:
    return value.strip() if isinstance(value, str) else None


def _first_attribute(node: DocumentNode, *names: str) -> Optional[str]:
    for name in names:
        value = node.attributes.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _digits(value: Optional[str]) -> Optional[int]:
    """Pixel value of a dimension attribute such as "640px"; None when it has no digits."""
    if not isinstance(value, str):
        return None
    digits = re.sub(r"\D", "", value)
    return int(digits) if digits else None


def _leading_spaces(line: str) -> int:
    count = 0
    for char in line:
        if char == " ":
            count += 1
        elif char == "\t":
            count += 4
        else:
            break
    return count


# ============================================================================
# Base validator
# ============================================================================

class BlockTypeValidator:
    """
    Base class for per-kind validators.

    Subclasses set KIND and FIELDS, implement extract_facts(), and override
    check_rule() for the options that generic evaluation does not cover.
    """

    KIND: BlockKind = BlockKind.UNKNOWN
    FIELDS: Dict[str, FieldSpec] = {}

    def field_spec(self, field_name: str) -> Optional[FieldSpec]:
        if field_name in self.FIELDS:
            return self.FIELDS[field_name]
        prefix = field_name.split(".", 1)[0]
        return self.FIELDS.get(f"{prefix}.*") if "." in field_name else None

    def check_config(self, config: BlockConfig):
        """
        Reject fields and options this kind does not understand.

        Called by the configuration loader so mistakes surface at load time.

        Raises:
            ConfigurationError: On an unknown field, option or option value,
                or a constraint the field's value cannot be checked against
        """
        for field_name, rules in config.rules.items():
            spec = self.field_spec(field_name)
            if spec is None:
                raise ConfigurationError(f"Unknown rule '{field_name}' for {self.KIND.value} blocks")
            for rule in rules:
                if isinstance(rule, FlagRule):
                    self._check_flag(field_name, spec, rule)
                    continue
                constraint = constraint_of(rule)
                if constraint not in ACCEPTED_CONSTRAINTS[spec.value]:
                    raise ConfigurationError(
                        f"Constraint '{CONSTRAINT_KEYS[constraint]}' is not supported "
                        f"for {self.KIND.value}.{field_name}"
                    )

    def _check_flag(self, field_name: str, spec: FieldSpec, rule: FlagRule):
        if rule.option not in spec.flags:
            raise ConfigurationError(f"Unknown option '{rule.option}' for {self.KIND.value}.{field_name}")
        allowed = spec.flags[rule.option]
        owner = f"{self.KIND.value}.{field_name}.{rule.option}"
        if isinstance(allowed, tuple):
            if rule.value not in allowed:
                choices = ", ".join(str(choice) for choice in allowed)
                raise ConfigurationError(f"Invalid value {rule.value!r} for {owner} (expected one of: {choices})")
        elif allowed is int:
            if isinstance(rule.value, bool) or not isinstance(rule.value, int) or rule.value < 0:
                raise ConfigurationError(f"Invalid value {rule.value!r} for {owner} (expected a non-negative integer)")
        elif not isinstance(rule.value, allowed):
            raise ConfigurationError(f"Invalid value {rule.value!r} for {owner} (expected a {allowed.__name__})")

    def validate(self, node: DocumentNode, config: BlockConfig, context: ValidationContext) -> List[ValidationMessage]:
        """
        Validate one block against its configuration.

        Args:
            node: Classified block node
            config: Block configuration of this validator's kind
            context: Context of the enclosing section

        Returns:
            List of ValidationMessage objects (empty if validation passes)

        Raises:
            TypeError: If config is not a BlockConfig of this validator's kind
        """
        if not isinstance(config, BlockConfig) or config.kind is not self.KIND:
            raise TypeError(f"{type(self).__name__} cannot validate configuration {config!r}")

        facts = self.extract_facts(node, context)
        messages = []
        for field_name, rules in config.rules.items():
            spec = self.field_spec(field_name)
            if spec is None:
                raise ConfigurationError(f"Unknown rule '{field_name}' for {self.KIND.value} blocks")
            for violation in self.field_violations(field_name, spec, rules, facts):
                messages.append(ValidationMessage(
                    severity=resolve_severity(violation.rule.severity, config.severity),
                    rule_id=f"{self.KIND.value}.{spec.rule_field or field_name}.{violation.constraint}",
                    message=violation.message,
                    location=context.create_location(node),
                    actual_value=violation.actual,
                    expected_value=violation.expected,
                ))
        return messages

    def extract_facts(self, node: DocumentNode, context: ValidationContext) -> Dict[str, Any]:
        raise NotImplementedError

    def field_violations(self, field_name: str, spec: FieldSpec, rules: Tuple[RuleSpec, ...],
                         facts: Dict[str, Any]) -> List[RuleViolation]:
        generic = []
        special = []
        for rule in rules:
            handled = self.check_rule(field_name, rule, facts)
            if handled is not None:
                special.extend(handled)
            elif isinstance(rule, FlagRule):
                raise ConfigurationError(f"Unsupported option '{rule.option}' for {self.KIND.value}.{field_name}")
            else:
                generic.append(rule)
        return evaluate_rules(facts.get(field_name), generic, spec.subject, spec.noun, spec.unit) + special

    def check_rule(self, field_name: str, rule: RuleSpec, facts: Dict[str, Any]) -> Optional[List[RuleViolation]]:
        """Evaluate a rule that needs kind-specific handling; None leaves it to generic evaluation."""
        return None


# ============================================================================
# Concrete validators
# ============================================================================

class ParagraphValidator(BlockTypeValidator):
    KIND = BlockKind.PARAGRAPH
    FIELDS = {
        "lines": FieldSpec("Paragraph", noun="lines", value=COUNT),
    }

    def extract_facts(self, node, context):
        # Blank and whitespace-only lines do not count.
        return {"lines": len(_non_blank_lines(node.text()))}


class ListingValidator(BlockTypeValidator):
    KIND = BlockKind.LISTING
    FIELDS = {
        "language": FieldSpec("Listing block language"),
        "title": FieldSpec("Listing block title"),
        "lines": FieldSpec("Listing block", noun="lines", value=COUNT),
        "lineLength": FieldSpec("Longest listing line", noun="characters", value=COUNT),
        "callouts": FieldSpec("Listing block", noun="callouts", flags={"allowed": BOOLEAN}, value=COUNT),
    }

    def extract_facts(self, node, context):
        content = node.text()
        lines = _lines(content)
        language = _first_attribute(node, "language", "source")
        if language is None and node.style and node.style.lower() not in ("source", "listing", "literal"):
            language = node.style
        return {
            "language": language,
            "title": _trimmed(node.title),
            "lines": len(lines),
            "lineLength": max((len(line) for line in lines), default=0),
            "callouts": sum(1 for line in lines if CALLOUT_RE.search(line)),
        }

    def check_rule(self, field_name, rule, facts):
        if field_name == "callouts" and isinstance(rule, FlagRule):
            count = facts["callouts"]
            if not rule.value and count > 0:
                return [RuleViolation(
                    "notAllowed", "Listing block contains callouts but callouts are not allowed", rule,
                    actual=f"{count} callouts", expected="No callouts",
                )]
            return []
        return None


class LiteralValidator(BlockTypeValidator):
    KIND = BlockKind.LITERAL
    FIELDS = {
        "title": FieldSpec("Literal block title"),
        "lines": FieldSpec("Literal block", noun="lines", value=COUNT),
        "indentation": FieldSpec("Literal block indentation", flags={
            "minSpaces": int,
            "maxSpaces": int,
            "consistent": BOOLEAN,
        }, value=OPTIONS),
    }

    def extract_facts(self, node, context):
        lines = _lines(node.text())
        indentation = [
            (number, _leading_spaces(line))
            for number, line in enumerate(lines, start=1)
            if line.strip()
        ]
        return {
            "title": _trimmed(node.title),
            "lines": len(lines),
            "indentation": indentation,
        }

    def check_rule(self, field_name, rule, facts):
        if field_name != "indentation":
            return None
        if not isinstance(rule, FlagRule):
            return []
        violations = []
        indentation = facts["indentation"]
        if rule.option == "minSpaces":
            for number, spaces in indentation:
                if spaces < rule.value:
                    violations.append(RuleViolation(
                        "minSpaces", f"Line {number} has insufficient indentation", rule,
                        actual=f"{spaces} spaces", expected=f"At least {rule.value} spaces",
                    ))
        elif rule.option == "maxSpaces":
            for number, spaces in indentation:
                if spaces > rule.value:
                    violations.append(RuleViolation(
                        "maxSpaces", f"Line {number} has excessive indentation", rule,
                        actual=f"{spaces} spaces", expected=f"At most {rule.value} spaces",
                    ))
        elif rule.option == "consistent" and rule.value and indentation:
            first = indentation[0][1]
            for number, spaces in indentation[1:]:
                if spaces != first:
                    violations.append(RuleViolation(
                        "consistent", f"Line {number} has inconsistent indentation", rule,
                        actual=f"{spaces} spaces",
                        expected=f"{first} spaces (consistent with first non-empty line)",
                    ))
        return violations


class TableValidator(BlockTypeValidator):
    KIND = BlockKind.TABLE
    FIELDS = {
        "columns": FieldSpec("Table", noun="columns", value=COUNT),
        "rows": FieldSpec("Table", noun="rows", value=COUNT),
        "header": FieldSpec("Table header", value=CELLS),
        "caption": FieldSpec("Table caption"),
        "format": FieldSpec("Table format", flags={"style": str, "borders": BOOLEAN}, value=OPTIONS),
    }

    def extract_facts(self, node, context):
        rows = [child for child in node.children if child.kind == "row"]
        header_rows = [row for row in rows if row.attribute("rowtype") == "header"]
        body_rows = [row for row in rows if row.attribute("rowtype") != "header"]

        columns = node.attribute("colcount")
        if isinstance(columns, str) and columns.isdigit():
            column_count = int(columns)
        else:
            column_count = max((len(row.children) for row in rows), default=0)

        header = None
        if header_rows:
            header = [cell.content or "" for cell in header_rows[0].children]

        return {
            "columns": column_count,
            "rows": len(body_rows),
            "header": header,
            "caption": _trimmed(node.title),
            "options": node.options,
            "frame": node.attribute("frame"),
        }

    def check_rule(self, field_name, rule, facts):
        if field_name == "header":
            return self._check_header(rule, facts["header"])
        if field_name == "format" and isinstance(rule, FlagRule):
            return self._check_format(rule, facts)
        return None

    @staticmethod
    def _check_header(rule, header):
        if isinstance(rule, RequiredRule):
            if rule.required and not header:
                return [RuleViolation("required", "Table must have a header row", rule, expected="Header row")]
            return []
        if isinstance(rule, PatternRule):
            return [
                RuleViolation(
                    "pattern", f"Table header cell '{cell}' does not match required pattern", rule,
                    actual=cell, expected=f"Pattern: {rule.pattern}",
                )
                for cell in header or []
                if not rule.matches(cell)
            ]
        return None

    @staticmethod
    def _check_format(rule, facts):
        options = facts["options"]
        if rule.option == "style":
            if rule.value not in options:
                return [RuleViolation(
                    "style", "Table does not use the required style", rule,
                    actual=",".join(options) or "default", expected=str(rule.value),
                )]
            return []
        frame = facts["frame"]
        if rule.value and (frame is None or frame == "none"):
            return [RuleViolation(
                "borders", "Table must have borders", rule,
                actual=frame or "none", expected="Borders enabled",
            )]
        return []


class ImageValidator(BlockTypeValidator):
    KIND = BlockKind.IMAGE
    FIELDS = {
        "url": FieldSpec("Image URL"),
        "width": FieldSpec("Image width", unit="px", value=MEASURE),
        "height": FieldSpec("Image height", unit="px", value=MEASURE),
        "alt": FieldSpec("Image alt text"),
    }

    def extract_facts(self, node, context):
        return {
            "url": _first_attribute(node, "target") or _trimmed(node.content) or None,
            "width": _digits(node.attribute("width")),
            "height": _digits(node.attribute("height")),
            "alt": _trimmed(node.attribute("alt")),
        }


class AdmonitionValidator(BlockTypeValidator):
    KIND = BlockKind.ADMONITION
    FIELDS = {
        "type": FieldSpec("Admonition type"),
        "title": FieldSpec("Admonition title"),
        "content": FieldSpec("Admonition content"),
        "lines": FieldSpec("Admonition", noun="lines", value=COUNT),
        "icon": FieldSpec("Admonition icon", flags={"allowed": BOOLEAN}),
        "typeOccurrences.*": FieldSpec("Admonition", rule_field="typeOccurrences", value=COUNT),
    }

    def check_config(self, config):
        super().check_config(config)
        for field_name, rules in config.rules.items():
            if not field_name.startswith("typeOccurrences."):
                continue
            variant = field_name.split(".", 1)[1]
            if variant.upper() not in ADMONITION_STYLES:
                raise ConfigurationError(f"Unknown admonition type '{variant}' in typeOccurrences")
            # Only a maximum is checked per type.
            if any(rule.min is not None or rule.exact is not None for rule in rules):
                raise ConfigurationError(f"typeOccurrences.{variant} supports only 'max'")

    def extract_facts(self, node, context):
        admonition_type = None
        if node.style:
            admonition_type = node.style.upper()
        elif node.roles:
            admonition_type = node.roles[0].upper()

        content = _trimmed(node.text())
        facts = {
            "type": admonition_type,
            "title": _trimmed(node.title),
            "content": content or None,
            "lines": len(_non_blank_lines(content)),
            "icon": self._icon(node, context),
            "type_count": 0,
        }
        if admonition_type:
            facts["type_count"] = context.count_variant(BlockKind.ADMONITION, admonition_type)
        return facts

    @staticmethod
    def _icon(node, context) -> Optional[str]:
        block_icon = node.attribute("icon")
        if block_icon is not None:
            return None if block_icon.strip() in ("", "none") else block_icon
        icons = context.document_attributes.get("icons")
        return icons or None

    def check_rule(self, field_name, rule, facts):
        if field_name == "icon" and isinstance(rule, FlagRule):
            if not rule.value and facts["icon"]:
                return [RuleViolation(
                    "notAllowed", "Admonition must not have an icon", rule,
                    actual=facts["icon"], expected="No icon",
                )]
            return []
        if field_name.startswith("typeOccurrences."):
            variant = field_name.split(".", 1)[1].upper()
            count = facts["type_count"]
            if facts["type"] != variant or not isinstance(rule, RangeRule) or rule.max is None:
                return []
            if count > rule.max:
                return [RuleViolation(
                    "max", f"Too many {variant} admonition blocks", rule,
                    actual=str(count), expected=f"At most {rule.max}",
                )]
            return []
        return None


class VerseValidator(BlockTypeValidator):
    KIND = BlockKind.VERSE
    FIELDS = {
        "author": FieldSpec("Verse author"),
        "source": FieldSpec("Verse source", flags={"format": ("book", "article", "url")}),
        "content": FieldSpec("Verse content"),
        "lines": FieldSpec("Verse", noun="lines", value=LINES),
    }

    def extract_facts(self, node, context):
        content = node.text()
        lines = [line.strip() for line in _non_blank_lines(content)]
        return {
            "author": _trimmed(_first_attribute(node, "attribution", "author")),
            "source": _trimmed(_first_attribute(node, "citetitle", "source")),
            "content": content or None,
            "lines": len(lines),
            "line_texts": lines,
        }

    def check_rule(self, field_name, rule, facts):
        if field_name == "lines" and isinstance(rule, PatternRule):
            return [
                RuleViolation(
                    "pattern", f"Verse line {number} does not match required pattern", rule,
                    actual=line, expected=f"Pattern: {rule.pattern}",
                )
                for number, line in enumerate(facts["line_texts"], start=1)
                if not rule.matches(line)
            ]
        if field_name == "source" and isinstance(rule, FlagRule):
            source = facts["source"]
            if is_blank(source) or self._matches_format(source, rule.value):
                return []
            return [RuleViolation(
                "format", f"Verse source does not look like a {rule.value} reference", rule,
                actual=source, expected=f"{rule.value} format",
            )]
        return None

    @staticmethod
    def _matches_format(source: str, source_format: str) -> bool:
        if source_format == "book":
            return BOOK_SOURCE_RE.fullmatch(source) is not None
        if source_format == "article":
            return '"' in source or "“" in source
        return source.startswith(("http://", "https://"))


class QuoteValidator(BlockTypeValidator):
    KIND = BlockKind.QUOTE
    FIELDS = {
        "author": FieldSpec("Quote author"),
        "source": FieldSpec("Quote source"),
        "content": FieldSpec("Quote content"),
        "content.lines": FieldSpec("Quote", noun="lines", value=COUNT),
    }

    def extract_facts(self, node, context):
        content = node.text()
        return {
            "author": _trimmed(_first_attribute(node, "author", "attribution")),
            "source": _trimmed(_first_attribute(node, "citetitle", "source")),
            "content": content or None,
            "content.lines": len(_non_blank_lines(content)),
        }


class VideoValidator(BlockTypeValidator):
    KIND = BlockKind.VIDEO
    FIELDS = {
        "url": FieldSpec("Video URL"),
        "width": FieldSpec("Video width", unit="px", value=MEASURE),
        "height": FieldSpec("Video height", unit="px", value=MEASURE),
        "poster": FieldSpec("Video poster"),
        "options.controls": FieldSpec("Video controls option", rule_field="controls"),
        "options.autoplay": FieldSpec("Video autoplay option", rule_field="autoplay",
                                      flags={"allowed": BOOLEAN}),
        "caption": FieldSpec("Video caption"),
    }

    def extract_facts(self, node, context):
        facts = {
            "url": _first_attribute(node, "target") or _trimmed(node.content) or None,
            "poster": _trimmed(node.attribute("poster")),
            "options.controls": "controls" if node.has_option("controls") else None,
            "options.autoplay": "autoplay" if node.has_option("autoplay") else None,
            "caption": _trimmed(_first_attribute(node, "caption")) or _trimmed(node.title),
        }
        for dimension in ("width", "height"):
            raw = _trimmed(node.attribute(dimension))
            facts[f"{dimension}_raw"] = raw or None
            try:
                facts[dimension] = int(raw) if raw else None
            except ValueError:
                facts[dimension] = None
        return facts

    def field_violations(self, field_name, spec, rules, facts):
        if field_name in ("width", "height") and rules:
            raw = facts[f"{field_name}_raw"]
            if raw is not None and facts[field_name] is None:
                return [RuleViolation(
                    "invalid", f"Video {field_name} is not a valid number", rules[0],
                    actual=raw, expected="Integer value",
                )]
        return super().field_violations(field_name, spec, rules, facts)

    def check_rule(self, field_name, rule, facts):
        if field_name == "options.autoplay" and isinstance(rule, FlagRule):
            if not rule.value and facts["options.autoplay"]:
                return [RuleViolation(
                    "notAllowed", "Video must not autoplay", rule,
                    actual="autoplay", expected="No autoplay",
                )]
            return []
        return None


class PassValidator(BlockTypeValidator):
    KIND = BlockKind.PASS
    FIELDS = {
        "type": FieldSpec("Pass block type"),
        "content": FieldSpec("Pass block content"),
        "justification": FieldSpec("Pass block justification"),
    }

    def extract_facts(self, node, context):
        content = node.text()
        return {
            "type": _trimmed(node.attribute("pass-type")),
            "content": content or None,
            "justification": _trimmed(node.attribute("pass-reason")),
        }


VALIDATORS: Dict[BlockKind, BlockTypeValidator] = {
    validator.KIND: validator
    for validator in (
        ParagraphValidator(),
        ListingValidator(),
        LiteralValidator(),
        TableValidator(),
        ImageValidator(),
        AdmonitionValidator(),
        VerseValidator(),
        QuoteValidator(),
        VideoValidator(),
        PassValidator(),
    )
}


def get_validator(kind: BlockKind) -> BlockTypeValidator:
    """
    Look up the validator for a block kind.

    Raises:
        TypeError: If no validator exists for the kind (e.g. UNKNOWN)
    """
    try:
        return VALIDATORS[kind]
    except KeyError:
        raise TypeError(f"No validator registered for block kind {kind!r}") from None
