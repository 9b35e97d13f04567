#!/usr/bin/env python3
"""
Test suite for configuration loading.

Tests the JSON Schema, YAML parsing, translation of rule fields into rule
variants, load-time error reporting, caching and the show-config export.
"""

import pytest
from jsonschema import Draft7Validator, ValidationError, validate

from block_classifier import BlockKind
from config_loader import build_config, config_to_dict, load_config, load_config_text
from config_schema import CONFIG_SCHEMA
from rule_primitives import (
    AllowedRule,
    ConfigurationError,
    FlagRule,
    PatternRule,
    RangeRule,
    RangeUnit,
    RequiredRule,
)
from validation_result import Severity


FULL_CONFIG = """
document:
  metadata:
    attributes:
      - name: title
        required: true
        order: 1
        pattern: "^[A-Z].*"
        severity: error
      - name: author
        required: true
        order: 2
        minLength: 3
        maxLength: 40
        severity: warn
  sections:
    - name: introduction
      order: 1
      min: 1
      max: 1
      title:
        exactMatch: Introduction
        severity: error
      allowedBlocks:
        - paragraph:
            severity: warn
            lines:
              min: 2
        - listing:
            name: example
            severity: warn
            occurrence:
              max: 3
            language:
              required: true
              allowed: [java, python, javascript]
              severity: error
            callouts:
              allowed: false
        - admonition:
            severity: info
            typeOccurrences:
              NOTE:
                max: 2
      subsections:
        - name: details
          title:
            pattern: "^Details.*"
            severity: warn
          allowedBlocks:
            - video:
                severity: error
                options:
                  autoplay:
                    allowed: false
                  controls:
                    required: true
            - literal:
                severity: info
                indentation:
                  minSpaces: 2
                  consistent: true
"""


# ============================================================================
# Schema Tests
# ============================================================================

def test_schema_is_valid_json_schema():
    """Configuration schema itself must be a valid JSON Schema Draft 7."""
    Draft7Validator.check_schema(CONFIG_SCHEMA)


def test_schema_accepts_minimal_config():
    validate(instance={"document": {}}, schema=CONFIG_SCHEMA)


def test_schema_rejects_unknown_section_key():
    config = {"document": {"sections": [{"name": "intro", "colour": "red"}]}}
    with pytest.raises(ValidationError):
        validate(instance=config, schema=CONFIG_SCHEMA)


def test_schema_rejects_block_entry_with_two_kinds():
    config = {"document": {"sections": [{
        "name": "intro",
        "allowedBlocks": [{"paragraph": {"severity": "error"}, "table": {"severity": "error"}}],
    }]}}
    with pytest.raises(ValidationError):
        validate(instance=config, schema=CONFIG_SCHEMA)


def test_schema_rejects_negative_bounds():
    config = {"document": {"sections": [{"name": "intro", "min": -1}]}}
    with pytest.raises(ValidationError):
        validate(instance=config, schema=CONFIG_SCHEMA)


# ============================================================================
# Loading Tests
# ============================================================================

def test_load_full_config():
    config = load_config_text(FULL_CONFIG)

    title, author = config.metadata.attributes
    assert title.name == "title"
    assert title.required
    assert title.pattern.pattern == "^[A-Z].*"
    assert author.severity is Severity.WARN
    assert (author.min_length, author.max_length) == (3, 40)

    intro = config.sections[0]
    assert intro.level == 1
    assert (intro.min, intro.max, intro.order) == (1, 1, 1)
    assert intro.title.exact_match == "Introduction"
    assert [block.kind for block in intro.blocks] == [BlockKind.PARAGRAPH, BlockKind.LISTING, BlockKind.ADMONITION]

    details = intro.subsections[0]
    assert details.level == 2
    assert details.title.severity is Severity.WARN


def test_field_rules_become_rule_variants():
    listing = load_config_text(FULL_CONFIG).sections[0].blocks[1]
    assert listing.name == "example"
    assert listing.severity is Severity.WARN
    assert listing.occurrence.max == 3

    required, allowed = listing.rules_for("language")
    assert required == RequiredRule(required=True, severity=Severity.ERROR)
    assert allowed == AllowedRule(values=("java", "python", "javascript"), severity=Severity.ERROR)
    assert listing.rules_for("callouts") == (FlagRule("allowed", False),)


def test_range_rules_by_unit():
    config = load_config_text(FULL_CONFIG)
    paragraph = config.sections[0].blocks[0]
    assert paragraph.rules_for("lines") == (RangeRule(min=2),)
    author = config.metadata.attributes[1]
    assert author.min_length == 3


def test_length_keys_become_length_range():
    config = load_config_text("""
document:
  sections:
    - name: intro
      allowedBlocks:
        - admonition:
            severity: error
            content:
              minLength: 10
              maxLength: 200
""")
    content_rules = config.sections[0].blocks[0].rules_for("content")
    assert content_rules == (RangeRule(min=10, max=200, unit=RangeUnit.LENGTH),)


def test_nested_groups_flatten_to_dotted_fields():
    details = load_config_text(FULL_CONFIG).sections[0].subsections[0]
    video = details.blocks[0]
    assert set(video.rules) == {"options.autoplay", "options.controls"}
    assert video.rules_for("options.autoplay") == (FlagRule("allowed", False),)
    assert video.rules_for("options.controls") == (RequiredRule(),)

    admonition = load_config_text(FULL_CONFIG).sections[0].blocks[2]
    assert admonition.rules_for("typeOccurrences.NOTE") == (RangeRule(max=2),)


def test_nested_groups_inherit_parent_severity():
    text = _section_with_block(
        "video: {severity: error, options: {severity: warn, autoplay: {allowed: false}, "
        "controls: {required: true, severity: info}}}"
    )
    video = load_config_text(text).sections[0].blocks[0]
    assert video.rules_for("options.autoplay") == (FlagRule("allowed", False, severity=Severity.WARN),)
    assert video.rules_for("options.controls") == (RequiredRule(severity=Severity.INFO),)


def test_inherited_severity_survives_export():
    text = _section_with_block("video: {severity: error, options: {severity: warn, autoplay: {allowed: false}}}")
    config = load_config_text(text)
    assert build_config(config_to_dict(config)) == config


def test_scalar_options_become_flags():
    literal = load_config_text(FULL_CONFIG).sections[0].subsections[0].blocks[1]
    assert literal.rules_for("indentation") == (FlagRule("minSpaces", 2), FlagRule("consistent", True))


def test_explicit_level_is_kept():
    config = load_config_text("""
document:
  sections:
    - name: intro
      level: 2
""")
    assert config.sections[0].level == 2


# ============================================================================
# Error Tests
# ============================================================================

@pytest.mark.parametrize("text, match", [
    ("", "is empty"),
    ("other: 1", "Missing required 'document' section"),
    ("- a\n- b", "must be a mapping"),
    ("document: [unclosed", "Failed to parse YAML"),
    ("document:\n  sections: {name: x}", "Invalid configuration"),
])
def test_invalid_documents(text, match):
    with pytest.raises(ConfigurationError, match=match):
        load_config_text(text)


def _section_with_block(block_yaml):
    return f"""
document:
  sections:
    - name: intro
      allowedBlocks:
        - {block_yaml}
"""


@pytest.mark.parametrize("block_yaml, match", [
    ("paragraph: {lines: {min: 1}}", "requires a severity"),
    ("diagram: {severity: error}", "Unknown block type"),
    ("paragraph: {severity: fatal}", "Invalid severity"),
    ("listing: {severity: error, colour: {required: true}}", "Unknown rule 'colour'"),
    ("listing: {severity: error, callouts: {forbidden: true}}", "Unknown option 'forbidden'"),
    ("verse: {severity: error, source: {format: magazine}}", "Invalid value 'magazine'"),
    ("listing: {severity: error, language: {pattern: '[bad'}}", "Invalid regular expression"),
    ("paragraph: {severity: error, lines: {min: 5, max: 2}}", "must not be greater"),
    ("admonition: {severity: error, typeOccurrences: {NOTICE: {max: 1}}}", "Unknown admonition type"),
    ("paragraph: {severity: error, lines: {min: 1, severity: loud}}", "Invalid severity"),
    ("literal: {severity: error, indentation: {minSpaces: two}}", "non-negative integer"),
    ("literal: {severity: error, indentation: {maxSpaces: -1}}", "non-negative integer"),
    ("literal: {severity: error, indentation: {consistent: sometimes}}", "Invalid value 'sometimes'"),
    ("listing: {severity: error, title: {min: 3}}", "'min/max/exact' is not supported"),
    ("listing: {severity: error, callouts: {required: true}}", "'required' is not supported"),
    ("paragraph: {severity: error, lines: {maxLength: 3}}", "'minLength/maxLength' is not supported"),
    ("table: {severity: error, format: {required: true}}", "'required' is not supported"),
    ("admonition: {severity: error, typeOccurrences: {NOTE: {min: 1}}}", "supports only 'max'"),
])
def test_invalid_block_rules(block_yaml, match):
    with pytest.raises(ConfigurationError, match=match):
        load_config_text(_section_with_block(block_yaml))


def test_duplicate_block_rules_rejected():
    text = """
document:
  sections:
    - name: intro
      allowedBlocks:
        - paragraph: {severity: error}
        - paragraph: {severity: warn}
"""
    with pytest.raises(ConfigurationError, match="Duplicate rule"):
        load_config_text(text)


def test_title_requires_pattern_or_exact_match():
    text = """
document:
  sections:
    - name: intro
      title:
        severity: error
"""
    with pytest.raises(ConfigurationError, match="exactly one"):
        load_config_text(text)


def test_subsection_must_be_deeper():
    text = """
document:
  sections:
    - name: intro
      subsections:
        - name: nested
          level: 1
"""
    with pytest.raises(ConfigurationError, match="must be deeper"):
        load_config_text(text)


def test_attribute_without_severity_rejected():
    with pytest.raises(ConfigurationError, match="requires a severity"):
        build_config({"document": {"metadata": {"attributes": [{"name": "author"}]}}})


def test_schema_error_is_chained():
    with pytest.raises(ConfigurationError) as excinfo:
        build_config({"document": {"sections": "intro"}})
    assert isinstance(excinfo.value.__cause__, ValidationError)


# ============================================================================
# File and Cache Tests
# ============================================================================

def test_load_config_from_file(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text(FULL_CONFIG, encoding="utf-8")
    config = load_config(path)
    assert config.sections[0].name == "introduction"


def test_load_config_caches_by_path(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text(FULL_CONFIG, encoding="utf-8")
    first = load_config(path)
    assert load_config(path) is first
    assert load_config(path, use_cache=False) is not first


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


# ============================================================================
# Export Tests
# ============================================================================

def test_config_to_dict_resolves_defaults():
    data = config_to_dict(load_config_text(FULL_CONFIG))
    intro = data["document"]["sections"][0]
    assert intro["level"] == 1
    assert intro["title"] == {"severity": "error", "exactMatch": "Introduction"}
    assert intro["subsections"][0]["level"] == 2
    listing = intro["allowedBlocks"][1]["listing"]
    assert listing["name"] == "example"
    assert listing["language"] == {"required": True, "severity": "error", "allowed": ["java", "python", "javascript"]}


def test_exported_config_loads_back_unchanged():
    config = load_config_text(FULL_CONFIG)
    assert build_config(config_to_dict(config)) == config
