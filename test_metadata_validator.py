#!/usr/bin/env python3
"""
Test suite for metadata_validator module.

Tests required attributes, patterns, length limits and attribute order in
the document header.
"""

import pytest

from asciidoc_reader import parse_asciidoc
from config_model import AttributeConfig, MetadataConfig
from document_model import DocumentNode
from metadata_validator import MetadataValidator, is_user_attribute
from validation_result import Severity


def _validate(text, *attributes):
    doc = parse_asciidoc(text)
    return MetadataValidator(MetadataConfig(attributes=attributes)).validate(doc, "doc.adoc")


# ============================================================================
# Required attributes
# ============================================================================

def test_all_present():
    messages = _validate(
        "= Guide\n:author: Jane Doe\n",
        AttributeConfig(name="title", severity=Severity.ERROR, required=True),
        AttributeConfig(name="author", severity=Severity.ERROR, required=True),
    )
    assert messages == []


def test_missing_required_attribute():
    messages = _validate(
        "= Guide\n",
        AttributeConfig(name="description", severity=Severity.WARN, required=True),
    )
    assert len(messages) == 1
    message = messages[0]
    assert message.rule_id == "metadata.required"
    assert message.message == "Missing required attribute 'description'"
    assert message.attribute_name == "description"
    assert message.severity is Severity.WARN
    assert message.location.line == 1


def test_blank_value_counts_as_missing():
    messages = _validate(
        "= Guide\n:description:\n",
        AttributeConfig(name="description", severity=Severity.ERROR, required=True),
    )
    assert [m.rule_id for m in messages] == ["metadata.required"]


def test_missing_title():
    messages = _validate(
        ":author: Jane\n",
        AttributeConfig(name="title", severity=Severity.ERROR, required=True),
    )
    assert [m.attribute_name for m in messages] == ["title"]


def test_optional_missing_attribute_is_not_checked():
    messages = _validate(
        "= Guide\n",
        AttributeConfig(name="version", severity=Severity.ERROR, pattern=r"\d+\.\d+"),
    )
    assert messages == []


# ============================================================================
# Pattern and length
# ============================================================================

def test_title_pattern():
    messages = _validate(
        "= my guide\n",
        AttributeConfig(name="title", severity=Severity.ERROR, pattern="^[A-Z].*"),
    )
    assert len(messages) == 1
    assert messages[0].rule_id == "metadata.pattern"
    assert messages[0].actual_value == "my guide"
    assert messages[0].expected_value == "Pattern: ^[A-Z].*"


def test_pattern_is_full_match():
    messages = _validate(
        "= Guide\n:version: 1.0-beta\n",
        AttributeConfig(name="version", severity=Severity.ERROR, pattern=r"\d+\.\d+"),
    )
    assert [m.rule_id for m in messages] == ["metadata.pattern"]
    assert messages[0].location.line == 2


def test_length_limits():
    messages = _validate(
        "= Guide\n:author: Jo\n:description: " + "x" * 30 + "\n",
        AttributeConfig(name="author", severity=Severity.WARN, min_length=3),
        AttributeConfig(name="description", severity=Severity.INFO, max_length=20),
    )
    assert [m.rule_id for m in messages] == ["metadata.length.min", "metadata.length.max"]
    assert messages[0].actual_value == "2 characters"
    assert messages[0].expected_value == "Minimum 3 characters"
    assert messages[1].expected_value == "Maximum 20 characters"
    assert messages[1].severity is Severity.INFO


# ============================================================================
# Order
# ============================================================================

ORDERED = (
    AttributeConfig(name="title", severity=Severity.ERROR, order=1),
    AttributeConfig(name="author", severity=Severity.WARN, order=2),
    AttributeConfig(name="version", severity=Severity.WARN, order=3),
)


def test_attributes_in_order():
    assert _validate("= Guide\n:author: Jane\n:version: 1.0\n", *ORDERED) == []


def test_attribute_out_of_order():
    messages = _validate("= Guide\n:version: 1.0\n:author: Jane\n", *ORDERED)
    assert len(messages) == 1
    message = messages[0]
    assert message.rule_id == "metadata.order"
    assert message.message == "'author' should appear before 'version'"
    assert message.actual_value == "Line 3"
    assert message.expected_value == "Before line 2"
    assert message.severity is Severity.WARN


def test_unordered_and_missing_attributes_are_ignored_for_order():
    messages = _validate(
        "= Guide\n:keywords: a\n:version: 1.0\n",
        *ORDERED,
    )
    assert messages == []


def test_order_with_synthetic_document():
    doc = DocumentNode(kind="document", title="Guide", line=5, attributes={"author": "Jane"},
                       attribute_lines={"author": 2})
    config = MetadataConfig(attributes=ORDERED[:2])
    messages = MetadataValidator(config).validate(doc, "doc.adoc")
    assert [m.rule_id for m in messages] == ["metadata.order"]
    assert messages[0].attribute_name == "title"


# ============================================================================
# User attributes
# ============================================================================

@pytest.mark.parametrize("name, expected", [
    ("author", True),
    ("description", True),
    ("doctype", False),
    ("docfile", False),
    ("asciidoctor-version", False),
])
def test_is_user_attribute(name, expected):
    assert is_user_attribute(name) is expected


def test_user_attributes_include_title_and_lines():
    doc = parse_asciidoc("= Guide\n:author: Jane\n", filename="guide.adoc")
    present = MetadataValidator.user_attributes(doc)
    assert present == {"title": ("Guide", 1), "author": ("Jane", 2)}


def test_filename_defaults_to_docfile():
    doc = parse_asciidoc("= Guide\n", filename="guide.adoc")
    config = MetadataConfig(attributes=(AttributeConfig(name="author", severity=Severity.ERROR, required=True),))
    messages = MetadataValidator(config).validate(doc)
    assert messages[0].location.filename == "guide.adoc"
