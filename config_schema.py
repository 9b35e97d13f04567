#!/usr/bin/env python3
"""
JSON Schema (Draft 7) for linter configuration files.

The schema checks the structure of a configuration before it is turned into
rule objects. Value-level checks with better messages (severity names, block
types, regex syntax, min <= max) happen when the rule objects are built.
"""

_BOUND = {"type": "integer", "minimum": 0}
_SEVERITY = {"type": "string"}
_SCALAR = {"type": ["string", "number", "boolean"]}

CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "AsciiDoc structure linter configuration",
    "type": "object",
    "required": ["document"],
    "properties": {
        "document": {
            "type": "object",
            "properties": {
                "metadata": {"$ref": "#/definitions/metadata"},
                "sections": {
                    "type": "array",
                    "items": {"$ref": "#/definitions/section"},
                },
            },
            "additionalProperties": False,
        },
    },
    "definitions": {
        "metadata": {
            "type": "object",
            "properties": {
                "attributes": {
                    "type": "array",
                    "items": {"$ref": "#/definitions/attribute"},
                },
            },
            "additionalProperties": False,
        },
        "attribute": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "order": {"type": "integer"},
                "required": {"type": "boolean"},
                "minLength": _BOUND,
                "maxLength": _BOUND,
                "pattern": {"type": "string"},
                "severity": _SEVERITY,
            },
            "additionalProperties": False,
        },
        "section": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "order": {"type": "integer"},
                "level": {"type": "integer", "minimum": 1},
                "min": _BOUND,
                "max": _BOUND,
                "title": {
                    "type": "object",
                    "properties": {
                        "pattern": {"type": "string"},
                        "exactMatch": {"type": "string"},
                        "severity": _SEVERITY,
                    },
                    "additionalProperties": False,
                },
                "allowedBlocks": {
                    "type": "array",
                    "items": {"$ref": "#/definitions/blockEntry"},
                },
                "subsections": {
                    "type": "array",
                    "items": {"$ref": "#/definitions/section"},
                },
            },
            "additionalProperties": False,
        },
        "blockEntry": {
            "type": "object",
            "minProperties": 1,
            "maxProperties": 1,
            "additionalProperties": {"$ref": "#/definitions/blockBody"},
        },
        "blockBody": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "severity": _SEVERITY,
                "occurrence": {
                    "type": "object",
                    "properties": {
                        "min": _BOUND,
                        "max": _BOUND,
                        "exact": _BOUND,
                        "severity": _SEVERITY,
                    },
                    "additionalProperties": False,
                },
            },
            "additionalProperties": {"$ref": "#/definitions/fieldRule"},
        },
        "fieldRule": {
            "type": "object",
            "properties": {
                "required": {"type": "boolean"},
                "pattern": {"type": "string"},
                "minLength": _BOUND,
                "maxLength": _BOUND,
                "min": _BOUND,
                "max": _BOUND,
                "exact": _BOUND,
                "allowed": {
                    "oneOf": [
                        {"type": "boolean"},
                        {"type": "array", "items": _SCALAR, "minItems": 1},
                    ],
                },
                "severity": _SEVERITY,
            },
            "additionalProperties": {
                "anyOf": [_SCALAR, {"$ref": "#/definitions/fieldRule"}],
            },
        },
    },
}
