#!/usr/bin/env python3
"""
Section Validator - Walks the configured section tree alongside the document.

At each level the validator:
1. Matches every actual child section to a configured section of the same
   level whose title rule accepts the title (exact match or full pattern
   match; a rule without a title rule accepts any title at its level).
   Sections that match nothing are reported as unexpected, or as a level
   mismatch when a rule for another level would accept the title.
2. Checks the min/max occurrence bounds of every configured section.
3. Checks the configured order of sections transitively: any section first
   encountered after a section with a higher order is reported, adjacent or not.
4. Validates the blocks of every matched section and recurses into the
   subsections of those that configure any.

Unmatched sections are not recursed into. A document without section rules
produces no section messages.
"""

import logging
from collections import Counter
from typing import List, Mapping, Optional, Sequence, Tuple

from block_dispatch import validate_blocks
from config_model import SectionConfig
from document_model import DocumentNode
from occurrence_validator import check_bounds
from rule_primitives import find_order_violations
from validation_context import ValidationContext
from validation_result import Severity, ValidationMessage

logger = logging.getLogger(__name__)


class SectionValidator:
    """
    Hierarchy validator for the sections of one document.

    The validator itself holds only configuration; all per-run state lives in
    the contexts created by validate(), so one instance may validate any
    number of documents.
    """

    def __init__(self, sections: Sequence[SectionConfig]):
        """
        Initialize with the root section rules.

        Args:
            sections: Section rules for the top level of the document
        """
        self.sections = tuple(sections)

    def validate(self, document: DocumentNode, filename: Optional[str] = None) -> List[ValidationMessage]:
        """
        Validate the section structure of a document.

        Args:
            document: Root node of the parsed document
            filename: File name for locations; defaults to the document's
                      "docfile" attribute, then "unknown"

        Returns:
            List of ValidationMessage objects (empty if validation passes)
        """
        if not self.sections:
            return []
        filename = filename or document.attribute("docfile") or "unknown"
        variant_counts: Counter = Counter()
        return self._validate_level(document, self.sections, filename, variant_counts, document.attributes)

    def _validate_level(self, parent: DocumentNode, configs: Tuple[SectionConfig, ...], filename: str,
                        variant_counts: Counter, document_attributes: Mapping[str, str]) -> List[ValidationMessage]:
        context = ValidationContext(filename, parent, variant_counts, document_attributes)
        messages: List[ValidationMessage] = []
        matched: List[Tuple[SectionConfig, DocumentNode]] = []

        for section in parent.sections():
            config = self._match(section, configs)
            if config is not None:
                logger.debug("%s:%s: section '%s' matched rule '%s'", filename, section.line, section.title, config.name)
                context.track(config, section)
                matched.append((config, section))
                continue
            misplaced = self._match_other_level(section, configs)
            if misplaced is not None:
                messages.append(self._level_message(section, misplaced, context))
            else:
                messages.append(self._unexpected_message(section, configs, context))

        messages.extend(self._occurrence_messages(configs, context))
        messages.extend(self._order_messages(context))

        for config, section in matched:
            if config.blocks:
                messages.extend(validate_blocks(section, config.blocks, filename, variant_counts, document_attributes))
            if config.subsections:
                messages.extend(self._validate_level(section, config.subsections, filename,
                                                     variant_counts, document_attributes))
        return messages

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    @staticmethod
    def _match(section: DocumentNode, configs: Sequence[SectionConfig]) -> Optional[SectionConfig]:
        for config in configs:
            if config.level != section.level:
                continue
            if config.title is None or config.title.matches(section.title):
                return config
        return None

    @staticmethod
    def _match_other_level(section: DocumentNode, configs: Sequence[SectionConfig]) -> Optional[SectionConfig]:
        for config in configs:
            if config.level != section.level and config.title is not None and config.title.matches(section.title):
                return config
        return None

    @staticmethod
    def _level_message(section: DocumentNode, config: SectionConfig, context: ValidationContext) -> ValidationMessage:
        return ValidationMessage(
            severity=config.severity,
            rule_id="section.level",
            message=f"Section '{section.title}' is at level {section.level} but configured for level {config.level}",
            location=context.create_location(section),
            actual_value=str(section.level),
            expected_value=str(config.level),
        )

    @staticmethod
    def _unexpected_message(section: DocumentNode, configs: Sequence[SectionConfig],
                            context: ValidationContext) -> ValidationMessage:
        # The strictest title severity among the candidate rules applies.
        severities = [config.title.severity for config in configs if config.title is not None]
        return ValidationMessage(
            severity=max(severities) if severities else Severity.ERROR,
            rule_id="section.unexpected",
            message=f"Unexpected section at level {section.level}: '{section.title}'",
            location=context.create_location(section),
            actual_value=section.title,
            expected_value="One of configured sections",
        )

    # ------------------------------------------------------------------
    # Occurrences and order
    # ------------------------------------------------------------------

    @staticmethod
    def _occurrence_messages(configs: Sequence[SectionConfig], context: ValidationContext) -> List[ValidationMessage]:
        messages = []
        for config in configs:
            count = context.occurrence_count(config)
            violation = check_bounds(count, config.min, config.max)
            if violation is None:
                continue
            if violation.constraint == "min":
                messages.append(ValidationMessage(
                    severity=config.severity,
                    rule_id="section.min-occurrences",
                    message=f"Too few occurrences of section: {config.name}",
                    location=context.scope_location(),
                    actual_value=str(count),
                    expected_value=f"At least {violation.bound}",
                ))
            else:
                surplus = context.nodes_for(config)[violation.bound]
                messages.append(ValidationMessage(
                    severity=config.severity,
                    rule_id="section.max-occurrences",
                    message=f"Too many occurrences of section: {config.name}",
                    location=context.create_location(surplus),
                    actual_value=str(count),
                    expected_value=f"At most {violation.bound}",
                ))
        return messages

    @staticmethod
    def _order_messages(context: ValidationContext) -> List[ValidationMessage]:
        ordered = [e for e in context.first_encounters() if e.config.order is not None]
        entries = [(e.config.name, e.config.order) for e in ordered]
        messages = []
        for earlier_index, later_index in find_order_violations(entries):
            earlier, later = ordered[earlier_index], ordered[later_index]
            first, second = later.config.name, earlier.config.name
            messages.append(ValidationMessage(
                severity=later.config.severity,
                rule_id="section.order",
                message=f"Section order violation: '{first}' should appear before '{second}'",
                location=context.create_location(later.node),
                actual_value=f"{first} appears after {second}",
                expected_value=f"{first} should appear before {second}",
            ))
        return messages
