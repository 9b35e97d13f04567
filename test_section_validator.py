#!/usr/bin/env python3
"""
Tests for section_validator.py - Section matching, occurrences, order and
block validation inside matched sections.
"""

import unittest

from asciidoc_reader import parse_asciidoc
from block_classifier import BlockKind
from config_model import BlockConfig, OccurrenceConfig, SectionConfig, TitleConfig
from rule_primitives import RangeRule
from section_validator import SectionValidator
from validation_result import Severity


def _section(name, title, order=None, level=1, min=0, max=None, severity=Severity.ERROR, **kwargs):
    return SectionConfig(
        name=name,
        level=level,
        order=order,
        min=min,
        max=max,
        title=TitleConfig(exact_match=title, severity=severity),
        **kwargs,
    )


INTRODUCTION = _section("introduction", "Introduction", min=1, max=1)


class TestOccurrences(unittest.TestCase):
    """Test section occurrence bounds."""

    def test_single_matching_section(self):
        doc = parse_asciidoc("= Doc\n\n== Introduction\n\nText.\n")
        self.assertEqual(SectionValidator([INTRODUCTION]).validate(doc, "doc.adoc"), [])

    def test_too_many_occurrences(self):
        doc = parse_asciidoc("= Doc\n\n== Introduction\n\nOne.\n\n== Introduction\n\nTwo.\n")
        messages = SectionValidator([INTRODUCTION]).validate(doc, "doc.adoc")
        self.assertEqual(len(messages), 1)
        message = messages[0]
        self.assertEqual(message.rule_id, "section.max-occurrences")
        self.assertEqual(message.message, "Too many occurrences of section: introduction")
        self.assertEqual(message.actual_value, "2")
        self.assertEqual(message.expected_value, "At most 1")
        self.assertEqual(message.location.line, 7)

    def test_too_few_occurrences(self):
        doc = parse_asciidoc("= Doc\n\nPreamble.\n")
        messages = SectionValidator([INTRODUCTION]).validate(doc, "doc.adoc")
        self.assertEqual([m.rule_id for m in messages], ["section.min-occurrences"])
        self.assertEqual(messages[0].message, "Too few occurrences of section: introduction")
        self.assertEqual(messages[0].expected_value, "At least 1")
        self.assertEqual(messages[0].location.line, 1)

    def test_occurrences_counted_per_parent(self):
        part = _section("part", "Part", subsections=(_section("summary", "Summary", level=2, max=1),))
        doc = parse_asciidoc(
            "= Doc\n\n== Part\n\n=== Summary\n\n== Part\n\n=== Summary\n"
        )
        self.assertEqual(SectionValidator([part]).validate(doc, "doc.adoc"), [])

    def test_missing_subsection(self):
        intro = _section("introduction", "Introduction",
                         subsections=(_section("details", "Details", level=2, min=1, severity=Severity.WARN),))
        doc = parse_asciidoc("= Doc\n\n== Introduction\n\nText.\n")
        messages = SectionValidator([intro]).validate(doc, "doc.adoc")
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].rule_id, "section.min-occurrences")
        self.assertIs(messages[0].severity, Severity.WARN)
        self.assertEqual(messages[0].location.line, 3)


class TestMatching(unittest.TestCase):
    """Test title matching, unexpected sections and level mismatches."""

    def test_pattern_title(self):
        config = SectionConfig(name="chapter", title=TitleConfig(pattern="Chapter [0-9]+"))
        doc = parse_asciidoc("= Doc\n\n== Chapter 1\n\n== Chapter 2\n")
        self.assertEqual(SectionValidator([config]).validate(doc, "doc.adoc"), [])

    def test_pattern_must_match_whole_title(self):
        config = SectionConfig(name="chapter", title=TitleConfig(pattern="Chapter [0-9]+"))
        doc = parse_asciidoc("= Doc\n\n== Chapter 1 and more\n")
        messages = SectionValidator([config]).validate(doc, "doc.adoc")
        self.assertEqual([m.rule_id for m in messages], ["section.unexpected"])

    def test_unexpected_section(self):
        configs = [INTRODUCTION, _section("usage", "Usage", severity=Severity.WARN)]
        doc = parse_asciidoc("= Doc\n\n== Introduction\n\n== Random\n")
        messages = SectionValidator(configs).validate(doc, "doc.adoc")
        self.assertEqual(len(messages), 1)
        message = messages[0]
        self.assertEqual(message.rule_id, "section.unexpected")
        self.assertEqual(message.message, "Unexpected section at level 1: 'Random'")
        self.assertIs(message.severity, Severity.ERROR)
        self.assertEqual(message.location.line, 5)

    def test_section_at_wrong_level(self):
        configs = [_section("details", "Details")]
        doc = parse_asciidoc("= Doc\n\n=== Details\n")
        messages = SectionValidator(configs).validate(doc, "doc.adoc")
        self.assertEqual([m.rule_id for m in messages], ["section.level"])
        self.assertEqual(messages[0].actual_value, "2")
        self.assertEqual(messages[0].expected_value, "1")

    def test_config_without_title_matches_any_title(self):
        doc = parse_asciidoc("= Doc\n\n== Anything\n")
        self.assertEqual(SectionValidator([SectionConfig(name="any")]).validate(doc, "doc.adoc"), [])

    def test_no_section_rules_means_no_constraints(self):
        doc = parse_asciidoc("= Doc\n\n== Whatever\n\n=== Deeper\n")
        self.assertEqual(SectionValidator([]).validate(doc, "doc.adoc"), [])

    def test_unmatched_sections_are_not_descended(self):
        intro = _section("introduction", "Introduction",
                         subsections=(_section("details", "Details", level=2),))
        doc = parse_asciidoc("= Doc\n\n== Introduction\n\n== Other\n\n=== Stray\n")
        messages = SectionValidator([intro]).validate(doc, "doc.adoc")
        self.assertEqual([m.actual_value for m in messages], ["Other"])


class TestOrder(unittest.TestCase):
    """Test section order checking."""

    CONFIGS = [
        _section("intro", "Intro", order=1),
        _section("prereq", "Prerequisites", order=2),
        _section("install", "Installation", order=3),
    ]

    def test_in_order(self):
        doc = parse_asciidoc("= Doc\n\n== Intro\n\n== Prerequisites\n\n== Installation\n")
        self.assertEqual(SectionValidator(self.CONFIGS).validate(doc, "doc.adoc"), [])

    def test_out_of_order_reported_once(self):
        doc = parse_asciidoc("= Doc\n\n== Installation\n\n== Intro\n")
        messages = SectionValidator(self.CONFIGS).validate(doc, "doc.adoc")
        self.assertEqual(len(messages), 1)
        message = messages[0]
        self.assertEqual(message.rule_id, "section.order")
        self.assertIn("intro", message.message)
        self.assertIn("install", message.message)
        self.assertEqual(message.message, "Section order violation: 'intro' should appear before 'install'")
        self.assertEqual(message.location.line, 5)

    def test_non_adjacent_violation(self):
        doc = parse_asciidoc("= Doc\n\n== Installation\n\n== Prerequisites\n\n== Intro\n")
        messages = SectionValidator(self.CONFIGS).validate(doc, "doc.adoc")
        pairs = [(m.actual_value) for m in messages]
        self.assertEqual(pairs, [
            "prereq appears after install",
            "intro appears after install",
            "intro appears after prereq",
        ])


class TestBlocksInSections(unittest.TestCase):
    """Test that blocks of matched sections are validated."""

    def test_block_rules_run_in_matched_section(self):
        paragraph = BlockConfig(kind=BlockKind.PARAGRAPH, severity=Severity.WARN,
                                occurrence=OccurrenceConfig(min=2))
        intro = _section("introduction", "Introduction", blocks=(paragraph,))
        doc = parse_asciidoc("= Doc\n\n== Introduction\n\nOnly one paragraph.\n")
        messages = SectionValidator([intro]).validate(doc, "doc.adoc")
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].rule_id, "block.occurrences.min")
        self.assertEqual(messages[0].message, "Too few occurrences of paragraph block")
        self.assertIs(messages[0].severity, Severity.WARN)
        self.assertEqual(messages[0].location.line, 3)

    def test_admonition_counts_span_sections(self):
        admonition = BlockConfig(kind=BlockKind.ADMONITION, severity=Severity.ERROR,
                                 rules={"typeOccurrences.NOTE": (RangeRule(max=1),)})
        configs = [
            _section("first", "First", blocks=(admonition,)),
            _section("second", "Second", blocks=(admonition,)),
        ]
        doc = parse_asciidoc("= Doc\n\n== First\n\nNOTE: One.\n\n== Second\n\nNOTE: Two.\n")
        validator = SectionValidator(configs)
        messages = validator.validate(doc, "doc.adoc")
        self.assertEqual([m.rule_id for m in messages], ["admonition.typeOccurrences.max"])
        self.assertEqual(messages[0].location.line, 9)

        # A new run starts counting from zero again.
        self.assertEqual(len(validator.validate(doc, "doc.adoc")), 1)

    def test_filename_defaults_to_docfile(self):
        doc = parse_asciidoc("= Doc\n\n== Random\n", filename="guide.adoc")
        messages = SectionValidator([INTRODUCTION]).validate(doc)
        self.assertTrue(all(m.location.filename == "guide.adoc" for m in messages))


if __name__ == '__main__':
    unittest.main()
