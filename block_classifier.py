#!/usr/bin/env python3
"""
Block Classifier - Maps raw document nodes to a closed set of block kinds.

classify() is total: it inspects only the node's kind, style, attributes and
roles, treats anything missing or of an unexpected type as absent, and
returns BlockKind.UNKNOWN when nothing applies. A node that raises while
being inspected is also UNKNOWN; classify() never raises.

Precedence:
1. Unambiguous raw kinds (paragraph, listing, literal, table, image, pass,
   video, admonition)
2. verse/quote: Verse when an attribution or citetitle attribute is present or
   the style is "verse", Quote otherwise
3. Containers (example, sidebar, open): style source/listing -> Listing,
   style verse -> Verse, admonition style -> Admonition, role image -> Image
4. Everything else -> Unknown
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class BlockKind(Enum):
    PARAGRAPH = "paragraph"
    LISTING = "listing"
    LITERAL = "literal"
    TABLE = "table"
    IMAGE = "image"
    VERSE = "verse"
    QUOTE = "quote"
    ADMONITION = "admonition"
    PASS = "pass"
    VIDEO = "video"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str) -> "BlockKind":
        """
        Look up a configurable block kind by its configuration name.

        Raises:
            ValueError: For unknown names and for "unknown" itself
        """
        for member in cls:
            if member is not cls.UNKNOWN and member.value == str(name).strip().lower():
                return member
        raise ValueError(f"Unknown block type: '{name}'")


ADMONITION_STYLES = frozenset({"NOTE", "TIP", "IMPORTANT", "WARNING", "CAUTION"})
CONTAINER_KINDS = frozenset({"example", "sidebar", "open"})

DIRECT_KINDS: Dict[str, BlockKind] = {
    "listing": BlockKind.LISTING,
    "literal": BlockKind.LISTING,
    "table": BlockKind.TABLE,
    "image": BlockKind.IMAGE,
    "pass": BlockKind.PASS,
    "video": BlockKind.VIDEO,
    "admonition": BlockKind.ADMONITION,
}


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def raw_kind(node: Any) -> str:
    """Lower-cased native kind of a node, or an empty string."""
    kind = _text(getattr(node, "kind", None))
    return kind.lower() if kind else ""


def node_style(node: Any) -> str:
    style = _text(getattr(node, "style", None))
    return style or ""


def node_attributes(node: Any) -> Mapping:
    attributes = getattr(node, "attributes", None)
    return attributes if isinstance(attributes, Mapping) else {}


def node_roles(node: Any) -> List[str]:
    role = _text(node_attributes(node).get("role"))
    return role.split() if role else []


def classify(node: Any) -> BlockKind:
    """
    Classify a document node.

    Args:
        node: Any object; DocumentNode in practice

    Returns:
        The node's BlockKind (UNKNOWN when it cannot be determined)

    Example:
        >>> from document_model import DocumentNode
        >>> classify(DocumentNode(kind="quote", attributes={"attribution": "Twain"}))
        <BlockKind.VERSE: 'verse'>
        >>> classify(None)
        <BlockKind.UNKNOWN: 'unknown'>
    """
    try:
        return _classify(node)
    except Exception as e:
        logger.debug("Cannot classify %s node: %s", type(node).__name__, e)
        return BlockKind.UNKNOWN


def _classify(node: Any) -> BlockKind:
    kind = raw_kind(node)
    if not kind:
        return BlockKind.UNKNOWN

    style = node_style(node)

    if kind == "paragraph":
        if style.upper() in ADMONITION_STYLES:
            return BlockKind.ADMONITION
        return BlockKind.PARAGRAPH

    if kind in DIRECT_KINDS:
        return DIRECT_KINDS[kind]

    if kind in ("verse", "quote"):
        attributes = node_attributes(node)
        if "attribution" in attributes or "citetitle" in attributes or style.lower() == "verse":
            return BlockKind.VERSE
        return BlockKind.QUOTE

    if kind in CONTAINER_KINDS:
        lowered = style.lower()
        if lowered in ("source", "listing"):
            return BlockKind.LISTING
        if lowered == "verse":
            return BlockKind.VERSE
        if style.upper() in ADMONITION_STYLES:
            return BlockKind.ADMONITION
        if "image" in node_roles(node):
            return BlockKind.IMAGE

    return BlockKind.UNKNOWN
