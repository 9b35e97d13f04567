#!/usr/bin/env python3
"""
Configuration Loader - YAML rule files to configuration objects.

Loading happens in three steps, and any failure raises ConfigurationError
before a single document is validated:
1. Parse YAML with yaml.safe_load
2. Validate the structure against CONFIG_SCHEMA with jsonschema
3. Build the immutable config_model records, which check the remaining
   invariants (severities, regex syntax, bounds, block fields and options)

Block rule fields are mappings of constraints. Nested mappings are flattened
into dotted field names, so
    options: {autoplay: {allowed: false}}
becomes the field "options.autoplay" with a FlagRule("allowed", False).
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jsonschema import ValidationError, validate

from block_classifier import BlockKind
from block_validators import get_validator
from config_model import (
    AttributeConfig,
    BlockConfig,
    DocumentConfig,
    MetadataConfig,
    OccurrenceConfig,
    SectionConfig,
    TitleConfig,
)
from config_schema import CONFIG_SCHEMA
from rule_primitives import (
    AllowedRule,
    ConfigurationError,
    FlagRule,
    PatternRule,
    RangeRule,
    RangeUnit,
    RequiredRule,
    RuleSpec,
)
from validation_result import Severity

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".linter-config.yaml"

LENGTH_KEYS = ("minLength", "maxLength")
COUNT_KEYS = ("min", "max", "exact")

# Cache for loaded configurations
_config_cache: Dict[Path, DocumentConfig] = {}


def load_config(config_path: str | Path, use_cache: bool = True) -> DocumentConfig:
    """
    Load a configuration file with caching.

    Args:
        config_path: Path to the YAML configuration
        use_cache: Whether to reuse a previously loaded configuration (default: True)

    Returns:
        DocumentConfig built from the file

    Raises:
        OSError: If the file cannot be read
        ConfigurationError: If the configuration is invalid
    """
    path = Path(config_path)
    if use_cache and path in _config_cache:
        return _config_cache[path]

    logger.debug("Loading configuration from %s", path)
    text = path.read_text(encoding="utf-8")
    config = load_config_text(text, source=str(path))

    if use_cache:
        _config_cache[path] = config
    return config


def clear_cache():
    """Clear the configuration cache."""
    _config_cache.clear()


def load_config_text(text: str, source: str = "<string>") -> DocumentConfig:
    """
    Load a configuration from YAML text.

    Raises:
        ConfigurationError: If the YAML is malformed or the configuration invalid
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML in {source}: {e}") from e
    return build_config(data, source)


def build_config(data: Any, source: str = "<config>") -> DocumentConfig:
    """
    Build a DocumentConfig from already parsed YAML data.

    Args:
        data: Parsed configuration (a mapping with a "document" key)
        source: Name of the configuration used in error messages

    Returns:
        DocumentConfig

    Raises:
        ConfigurationError: If the configuration is empty or invalid

    Example:
        >>> config = build_config({"document": {"sections": [{"name": "intro"}]}})
        >>> config.sections[0].level
        1
    """
    if not data:
        raise ConfigurationError(f"Configuration {source} is empty")
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {source} must be a mapping")
    if "document" not in data:
        raise ConfigurationError("Missing required 'document' section in configuration")

    try:
        validate(instance=data, schema=CONFIG_SCHEMA)
    except ValidationError as e:
        location = _json_path(e.absolute_path)
        raise ConfigurationError(f"Invalid configuration {source} at {location}: {e.message}") from e

    document = data["document"] or {}
    metadata = _build_metadata(document.get("metadata") or {})
    sections = tuple(_build_section(entry, parent_level=0) for entry in document.get("sections") or [])
    config = DocumentConfig(metadata=metadata, sections=sections)
    logger.debug("Loaded %d attribute rules and %d top-level section rules from %s",
                 len(metadata.attributes), len(sections), source)
    return config


def _json_path(path) -> str:
    parts = ["$"]
    for element in path:
        parts.append(f"[{element}]" if isinstance(element, int) else f".{element}")
    return "".join(parts)


def _severity(value: Any, owner: str) -> Optional[Severity]:
    if value is None:
        return None
    try:
        return Severity.parse(value)
    except ValueError as e:
        raise ConfigurationError(f"{owner}: {e}") from e


# ============================================================================
# Metadata
# ============================================================================

def _build_metadata(data: Dict[str, Any]) -> MetadataConfig:
    attributes = []
    for entry in data.get("attributes") or []:
        attributes.append(AttributeConfig(
            name=entry["name"],
            severity=entry.get("severity"),
            required=entry.get("required", False),
            order=entry.get("order"),
            min_length=entry.get("minLength"),
            max_length=entry.get("maxLength"),
            pattern=entry.get("pattern"),
        ))
    return MetadataConfig(attributes=tuple(attributes))


# ============================================================================
# Sections
# ============================================================================

def _build_section(entry: Dict[str, Any], parent_level: int) -> SectionConfig:
    name = entry["name"]
    level = entry.get("level", parent_level + 1)

    title = None
    if "title" in entry:
        title_data = entry["title"] or {}
        title = TitleConfig(
            pattern=title_data.get("pattern"),
            exact_match=title_data.get("exactMatch"),
            severity=title_data.get("severity", Severity.ERROR),
        )

    blocks = tuple(_build_block(block, name) for block in entry.get("allowedBlocks") or [])
    subsections = tuple(_build_section(child, level) for child in entry.get("subsections") or [])

    return SectionConfig(
        name=name,
        level=level,
        order=entry.get("order"),
        min=entry.get("min", 0),
        max=entry.get("max"),
        title=title,
        subsections=subsections,
        blocks=blocks,
    )


# ============================================================================
# Blocks
# ============================================================================

def _build_block(entry: Dict[str, Any], section_name: str) -> BlockConfig:
    (type_name, body), = entry.items()
    try:
        kind = BlockKind.from_name(type_name)
    except ValueError as e:
        raise ConfigurationError(f"Section '{section_name}': {e}") from e

    body = dict(body or {})
    severity = body.pop("severity", None)
    name = body.pop("name", None)
    occurrence_data = body.pop("occurrence", None)

    occurrence = None
    if occurrence_data:
        occurrence = OccurrenceConfig(
            min=occurrence_data.get("min"),
            max=occurrence_data.get("max"),
            exact=occurrence_data.get("exact"),
            severity=occurrence_data.get("severity"),
        )

    rules: Dict[str, Tuple[RuleSpec, ...]] = {}
    for field_name, spec in body.items():
        _collect_field_rules(field_name, spec, rules)

    config = BlockConfig(kind=kind, severity=severity, name=name, occurrence=occurrence, rules=rules)
    get_validator(kind).check_config(config)
    return config


def _collect_field_rules(field_name: str, spec: Any, rules: Dict[str, Tuple[RuleSpec, ...]],
                         inherited: Optional[Severity] = None):
    """
    Translate one field mapping into rule variants, flattening nested mappings.

    A severity set on a mapping applies to the mappings nested in it unless
    they set their own.
    """
    if not isinstance(spec, dict):
        raise ConfigurationError(f"Rule '{field_name}' must be a mapping of constraints")

    severity = _severity(spec.get("severity"), f"rule '{field_name}'")
    if severity is None:
        severity = inherited
    specs: List[RuleSpec] = []

    for key, value in spec.items():
        if key == "severity" or key in LENGTH_KEYS or key in COUNT_KEYS:
            continue
        if key == "required":
            specs.append(RequiredRule(required=bool(value), severity=severity))
        elif key == "pattern":
            specs.append(PatternRule(value, severity=severity))
        elif key == "allowed" and isinstance(value, list):
            specs.append(AllowedRule(values=tuple(str(item) for item in value), severity=severity))
        elif isinstance(value, dict):
            _collect_field_rules(f"{field_name}.{key}", value, rules, severity)
        else:
            specs.append(FlagRule(option=key, value=value, severity=severity))

    if any(key in spec for key in LENGTH_KEYS):
        specs.append(RangeRule(
            min=spec.get("minLength"),
            max=spec.get("maxLength"),
            unit=RangeUnit.LENGTH,
            severity=severity,
        ))
    if any(key in spec for key in COUNT_KEYS):
        specs.append(RangeRule(
            min=spec.get("min"),
            max=spec.get("max"),
            exact=spec.get("exact"),
            unit=RangeUnit.COUNT,
            severity=severity,
        ))

    if specs:
        rules[field_name] = tuple(specs)


# ============================================================================
# Export
# ============================================================================

def _rules_to_dict(config: BlockConfig) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for field_name, specs in config.rules.items():
        data: Dict[str, Any] = {}
        for spec in specs:
            if isinstance(spec, RequiredRule):
                data["required"] = spec.required
            elif isinstance(spec, PatternRule):
                data["pattern"] = spec.pattern
            elif isinstance(spec, AllowedRule):
                data["allowed"] = list(spec.values)
            elif isinstance(spec, FlagRule):
                data[spec.option] = spec.value
            elif isinstance(spec, RangeRule):
                keys = ("minLength", "maxLength", None) if spec.unit is RangeUnit.LENGTH else COUNT_KEYS
                for key, bound in zip(keys, (spec.min, spec.max, spec.exact)):
                    if key is not None and bound is not None:
                        data[key] = bound
            if spec.severity is not None:
                data["severity"] = spec.severity.value
        fields[field_name] = data
    return fields


def _section_to_dict(section: SectionConfig) -> Dict[str, Any]:
    data: Dict[str, Any] = {"name": section.name, "level": section.level}
    if section.order is not None:
        data["order"] = section.order
    data["min"] = section.min
    if section.max is not None:
        data["max"] = section.max
    if section.title is not None:
        title: Dict[str, Any] = {"severity": section.title.severity.value}
        if section.title.exact_match is not None:
            title["exactMatch"] = section.title.exact_match
        else:
            title["pattern"] = section.title.pattern
        data["title"] = title
    if section.blocks:
        blocks = []
        for block in section.blocks:
            body: Dict[str, Any] = {"severity": block.severity.value}
            if block.name:
                body["name"] = block.name
            if block.occurrence is not None:
                occurrence = {
                    key: value for key, value in (
                        ("min", block.occurrence.min),
                        ("max", block.occurrence.max),
                        ("exact", block.occurrence.exact),
                    ) if value is not None
                }
                if block.occurrence.severity is not None:
                    occurrence["severity"] = block.occurrence.severity.value
                body["occurrence"] = occurrence
            body.update(_rules_to_dict(block))
            blocks.append({block.kind.value: body})
        data["allowedBlocks"] = blocks
    if section.subsections:
        data["subsections"] = [_section_to_dict(child) for child in section.subsections]
    return data


def config_to_dict(config: DocumentConfig) -> Dict[str, Any]:
    """
    Render a loaded configuration as plain data, with every default resolved.

    Dotted fields are shown flat ("options.autoplay"). Used by the
    show-config command.
    """
    attributes = []
    for attribute in config.metadata.attributes:
        data: Dict[str, Any] = {"name": attribute.name, "severity": attribute.severity.value}
        if attribute.required:
            data["required"] = True
        if attribute.order is not None:
            data["order"] = attribute.order
        if attribute.min_length is not None:
            data["minLength"] = attribute.min_length
        if attribute.max_length is not None:
            data["maxLength"] = attribute.max_length
        if attribute.pattern is not None:
            data["pattern"] = attribute.pattern.pattern
        attributes.append(data)
    return {
        "document": {
            "metadata": {"attributes": attributes},
            "sections": [_section_to_dict(section) for section in config.sections],
        }
    }
