#!/usr/bin/env python3
"""
Document Model - Read-only node tree consumed by the validators.

The reader builds one DocumentNode per document, section and block. The
validators never mutate nodes; they only read the kind, style, title,
attributes, content and children.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class DocumentNode:
    """
    A node of a parsed AsciiDoc document.

    Attributes:
        kind: Raw native kind ("document", "section", "paragraph", "listing", ...)
        style: Block style from the attribute list (e.g. "source", "NOTE", "verse")
        title: Document title, section title or block title (".Title" line)
        attributes: Block or header attributes
        content: Raw text content for leaf blocks
        children: Child nodes in document order
        line: 1-based source line where the node starts
        level: Section level (1 for "==", 2 for "===", ...), 0 otherwise
        source_lines: Raw lines of the block body
        attribute_lines: Line number of each header attribute (document only)
    """
    kind: str
    style: Optional[str] = None
    title: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    content: Optional[str] = None
    children: List["DocumentNode"] = field(default_factory=list)
    line: Optional[int] = None
    level: int = 0
    source_lines: List[str] = field(default_factory=list)
    attribute_lines: Dict[str, int] = field(default_factory=dict)

    def attribute(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    @property
    def roles(self) -> List[str]:
        role = self.attributes.get("role")
        return role.split() if isinstance(role, str) else []

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def options(self) -> List[str]:
        raw = self.attributes.get("options")
        if not isinstance(raw, str):
            return []
        return [opt.strip() for opt in raw.split(",") if opt.strip()]

    def has_option(self, option: str) -> bool:
        return option in self.options

    def sections(self) -> List["DocumentNode"]:
        """Direct child sections."""
        return [child for child in self.children if child.kind == "section"]

    def blocks(self) -> List["DocumentNode"]:
        """Direct child blocks, excluding subsections."""
        return [child for child in self.children if child.kind != "section"]

    def text(self) -> str:
        """
        Body text of the node.

        The first available of: the node's own content, the joined text of its
        children, or its raw source lines.
        """
        if self.content is not None:
            return self.content
        parts = [child.text() for child in self.children if child.kind != "section"]
        parts = [part for part in parts if part]
        if parts:
            return "\n".join(parts)
        return "\n".join(self.source_lines)
