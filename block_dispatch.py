#!/usr/bin/env python3
"""
Block Dispatch - Validates the blocks of one section.

For every direct child block of a section: classify it, find the block rule
that applies, track it in the section's context, and run the validator of
the rule's kind. After the last block, the occurrence post-pass checks the
counted occurrences against each rule's bounds.

Rule lookup for a node of kind K:
1. a rule of kind K whose name equals the node's "name" (or "id") attribute
2. the first rule of kind K without a name
Raw literal blocks try literal rules before listing rules; quote blocks
classified as verse (because they carry an attribution) try verse rules
before quote rules. Nodes without an applicable rule are not validated.
"""

import logging
from collections import Counter
from typing import List, Mapping, Optional, Sequence

from block_classifier import BlockKind, classify, raw_kind
from block_validators import get_validator
from config_model import BlockConfig
from document_model import DocumentNode
from occurrence_validator import validate_block_occurrences
from validation_context import ValidationContext
from validation_result import ValidationMessage

logger = logging.getLogger(__name__)


def candidate_kinds(node: DocumentNode, kind: BlockKind) -> List[BlockKind]:
    """Block rule kinds that may apply to a classified node, most specific first."""
    native = raw_kind(node)
    if kind is BlockKind.LISTING and native == "literal":
        return [BlockKind.LITERAL, BlockKind.LISTING]
    if kind is BlockKind.VERSE and native == "quote" and (node.style or "").lower() != "verse":
        return [BlockKind.VERSE, BlockKind.QUOTE]
    return [kind]


def find_block_config(node: DocumentNode, kind: BlockKind,
                      configs: Sequence[BlockConfig]) -> Optional[BlockConfig]:
    """
    Find the block rule that applies to a node.

    Args:
        node: Classified block node
        kind: Its BlockKind
        configs: Block rules of the enclosing section

    Returns:
        Matching BlockConfig, or None when no rule applies
    """
    node_names = {node.attribute("name"), node.attribute("id")} - {None}
    for candidate in candidate_kinds(node, kind):
        of_kind = [config for config in configs if config.kind is candidate]
        for config in of_kind:
            if config.name and config.name in node_names:
                return config
        for config in of_kind:
            if not config.name:
                return config
    return None


def validate_blocks(section: DocumentNode, configs: Sequence[BlockConfig], filename: str,
                    variant_counts: Optional[Counter] = None,
                    document_attributes: Optional[Mapping[str, str]] = None) -> List[ValidationMessage]:
    """
    Validate the direct child blocks of a section.

    Args:
        section: Section node whose blocks are validated
        configs: Block rules configured for the section
        filename: File name used in message locations
        variant_counts: Document-wide counter shared by all sections of a document
        document_attributes: Header attributes of the document

    Returns:
        Messages from the per-kind validators followed by occurrence messages
    """
    context = ValidationContext(filename, section, variant_counts, document_attributes)
    messages: List[ValidationMessage] = []
    if not configs:
        return messages

    for node in section.blocks():
        kind = classify(node)
        if kind is BlockKind.UNKNOWN:
            logger.debug("%s:%s: skipping unclassified %s node", filename, node.line, node.kind)
            continue
        config = find_block_config(node, kind, configs)
        if config is None:
            logger.debug("%s:%s: no rule for %s block", filename, node.line, kind.value)
            continue
        context.track(config, node)
        messages.extend(get_validator(config.kind).validate(node, config, context))

    messages.extend(validate_block_occurrences(context, configs))
    return messages
