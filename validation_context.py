#!/usr/bin/env python3
"""
Validation Context - Occurrence and encounter state for one validation scope.

A context lives for one scope (the blocks of one section, or the child
sections of one parent). Every matched node is tracked exactly once; the
occurrence bounds are checked after the scope has been fully walked.

Admonition type counts are different: they are scoped to the whole document,
so the section validator hands every context of a document the same
variant counter.

The context is plain mutable state and is not thread-safe; give each
concurrently validated document its own contexts.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Any, List, Mapping, NamedTuple, Optional

from block_classifier import BlockKind
from validation_result import SourceLocation


class OccurrenceKey(NamedTuple):
    """Structural occurrence key: the block kind (or "section") plus an optional rule name."""
    scope: str
    name: Optional[str] = None


@dataclass(frozen=True)
class Encounter:
    config: Any
    node: Any
    index: int


def occurrence_key(config: Any) -> OccurrenceKey:
    """
    Occurrence key of a block or section configuration.

    Block configs are keyed by kind, disambiguated by their optional name so
    two differently named rules for the same kind count independently.
    Section configs are keyed by their name.
    """
    kind = getattr(config, "kind", None)
    if isinstance(kind, BlockKind):
        return OccurrenceKey(kind.value, getattr(config, "name", None))
    return OccurrenceKey("section", getattr(config, "name", None))


class ValidationContext:
    """
    Mutable per-scope validation state.

    Attributes:
        filename: File name used for every location created by this context
        scope_node: Node owning the scope (section or document), may be None
        document_attributes: Header attributes of the document being validated
    """

    def __init__(self, filename: str = "unknown", scope_node: Any = None,
                 variant_counts: Optional[Counter] = None,
                 document_attributes: Optional[Mapping[str, str]] = None):
        self.filename = filename
        self.scope_node = scope_node
        self.document_attributes = document_attributes if document_attributes is not None else {}
        self._counts: Counter = Counter()
        self._encounters: List[Encounter] = []
        self._variant_counts = variant_counts if variant_counts is not None else Counter()

    def track(self, config: Any, node: Any) -> int:
        """
        Record that a node matched a configuration.

        Args:
            config: Matched BlockConfig or SectionConfig
            node: Matched document node

        Returns:
            Occurrence count for the config's key after this node
        """
        key = occurrence_key(config)
        self._encounters.append(Encounter(config, node, len(self._encounters)))
        self._counts[key] += 1
        return self._counts[key]

    def occurrence_count(self, config: Any) -> int:
        return self._counts.get(occurrence_key(config), 0)

    @property
    def encounters(self) -> List[Encounter]:
        return list(self._encounters)

    def nodes_for(self, config: Any) -> List[Any]:
        """Nodes tracked under the config's key, in encounter order."""
        key = occurrence_key(config)
        return [e.node for e in self._encounters if occurrence_key(e.config) == key]

    def first_encounters(self) -> List[Encounter]:
        """First encounter of every distinct key, in encounter order."""
        seen = set()
        firsts = []
        for encounter in self._encounters:
            key = occurrence_key(encounter.config)
            if key not in seen:
                seen.add(key)
                firsts.append(encounter)
        return firsts

    def count_variant(self, kind: BlockKind, variant: str) -> int:
        """Increment and return the document-wide count of a block variant (e.g. NOTE admonitions)."""
        key = OccurrenceKey(kind.value, variant)
        self._variant_counts[key] += 1
        return self._variant_counts[key]

    def variant_count(self, kind: BlockKind, variant: str) -> int:
        return self._variant_counts.get(OccurrenceKey(kind.value, variant), 0)

    def create_location(self, node: Any = None, line_offset: int = 0) -> SourceLocation:
        """
        Location of a node in this context's file.

        Falls back to line 1 when the node carries no usable line number.
        """
        line = getattr(node, "line", None)
        if not isinstance(line, int) or isinstance(line, bool) or line < 1:
            line = 1
        return SourceLocation(filename=self.filename, line=line + max(line_offset, 0))

    def scope_location(self) -> SourceLocation:
        return self.create_location(self.scope_node)

    @staticmethod
    def block_name(config: Any) -> str:
        """Display name of a block rule: "block 'name'" or "<kind> block"."""
        name = getattr(config, "name", None)
        if name:
            return f"block '{name}'"
        kind = getattr(config, "kind", None)
        label = kind.value if isinstance(kind, BlockKind) else "unknown"
        return f"{label} block"
