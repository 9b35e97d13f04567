#!/usr/bin/env python3
"""
Metadata Validator - Rules for the document title and header attributes.

Checks, per configured attribute:
- required: missing or blank values (metadata.required)
- pattern: full-string regex match (metadata.pattern)
- length: minimum/maximum character count (metadata.length.min/max)
- order: configured attributes appear in ascending order in the header,
  checked transitively (metadata.order)

The attribute named "title" refers to the document title. Attributes that
the processor defines itself (doctype, backend, docfile, ...) are never
treated as user attributes.
"""

from typing import Dict, List, Optional, Tuple

from config_model import AttributeConfig, MetadataConfig
from document_model import DocumentNode
from rule_primitives import find_order_violations, is_blank
from validation_result import SourceLocation, ValidationMessage


BUILTIN_ATTRIBUTES = frozenset({
    "doctype", "backend", "doctitle", "docfile", "docdir", "docdatetime",
    "localdate", "localtime", "localdatetime", "outfile", "filetype", "notitle",
})
BUILTIN_PREFIXES = ("asciidoctor",)

# Header attributes without a recorded line are numbered from here,
# directly below the title.
FIRST_ATTRIBUTE_LINE = 2


def is_user_attribute(name: str) -> bool:
    return name not in BUILTIN_ATTRIBUTES and not name.startswith(BUILTIN_PREFIXES)


class MetadataValidator:
    """Validates document metadata against a MetadataConfig."""

    def __init__(self, config: MetadataConfig):
        self.config = config

    def validate(self, document: DocumentNode, filename: Optional[str] = None) -> List[ValidationMessage]:
        """
        Validate the document header.

        Args:
            document: Root node of the parsed document
            filename: File name for locations; defaults to the "docfile"
                      attribute, then "unknown"

        Returns:
            List of ValidationMessage objects (empty if validation passes)
        """
        filename = filename or document.attribute("docfile") or "unknown"
        present = self.user_attributes(document)
        messages: List[ValidationMessage] = []

        for rule in self.config.attributes:
            value, line = present.get(rule.name, (None, 1))
            location = SourceLocation(filename, line)
            if is_blank(value):
                if rule.required:
                    messages.append(ValidationMessage(
                        severity=rule.severity,
                        rule_id="metadata.required",
                        message=f"Missing required attribute '{rule.name}'",
                        location=location,
                        attribute_name=rule.name,
                        expected_value="Non-empty value",
                    ))
                continue
            messages.extend(self._check_value(rule, value, location))

        messages.extend(self._check_order(present, filename))
        return messages

    @staticmethod
    def user_attributes(document: DocumentNode) -> Dict[str, Tuple[str, int]]:
        """
        User-visible metadata of a document.

        Returns:
            Mapping of attribute name to (value, line), in header order; the
            document title is included as "title"
        """
        present: Dict[str, Tuple[str, int]] = {}
        if document.title is not None:
            present["title"] = (document.title, document.line or 1)
        next_line = FIRST_ATTRIBUTE_LINE
        for name, value in document.attributes.items():
            if not is_user_attribute(name):
                continue
            line = document.attribute_lines.get(name)
            if line is None:
                line = next_line
            next_line = line + 1
            present[name] = (value, line)
        return present

    @staticmethod
    def _check_value(rule: AttributeConfig, value: str, location: SourceLocation) -> List[ValidationMessage]:
        messages = []
        value = value.strip()
        if rule.pattern is not None and not rule.pattern.matches(value):
            messages.append(ValidationMessage(
                severity=rule.severity,
                rule_id="metadata.pattern",
                message=f"Attribute '{rule.name}' does not match required pattern",
                location=location,
                attribute_name=rule.name,
                actual_value=value,
                expected_value=f"Pattern: {rule.pattern.pattern}",
            ))
        if rule.min_length is not None and len(value) < rule.min_length:
            messages.append(ValidationMessage(
                severity=rule.severity,
                rule_id="metadata.length.min",
                message=f"Attribute '{rule.name}' is too short",
                location=location,
                attribute_name=rule.name,
                actual_value=f"{len(value)} characters",
                expected_value=f"Minimum {rule.min_length} characters",
            ))
        if rule.max_length is not None and len(value) > rule.max_length:
            messages.append(ValidationMessage(
                severity=rule.severity,
                rule_id="metadata.length.max",
                message=f"Attribute '{rule.name}' is too long",
                location=location,
                attribute_name=rule.name,
                actual_value=f"{len(value)} characters",
                expected_value=f"Maximum {rule.max_length} characters",
            ))
        return messages

    def _check_order(self, present: Dict[str, Tuple[str, int]], filename: str) -> List[ValidationMessage]:
        ordered = [
            (rule, present[rule.name][1])
            for rule in self.config.attributes
            if rule.order is not None and rule.name in present
        ]
        ordered.sort(key=lambda item: item[1])
        entries = [(rule.name, rule.order) for rule, _ in ordered]

        messages = []
        for earlier_index, later_index in find_order_violations(entries):
            earlier_rule, earlier_line = ordered[earlier_index]
            later_rule, later_line = ordered[later_index]
            messages.append(ValidationMessage(
                severity=later_rule.severity,
                rule_id="metadata.order",
                message=f"'{later_rule.name}' should appear before '{earlier_rule.name}'",
                location=SourceLocation(filename, later_line),
                attribute_name=later_rule.name,
                actual_value=f"Line {later_line}",
                expected_value=f"Before line {earlier_line}",
            ))
        return messages
