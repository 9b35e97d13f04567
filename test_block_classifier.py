#!/usr/bin/env python3
"""
Test suite for block_classifier module.

Tests the mapping of raw node kinds, styles and roles to BlockKind, and that
classification never raises on malformed input.
"""

import pytest

from block_classifier import BlockKind, classify
from document_model import DocumentNode


# ============================================================================
# Direct kinds
# ============================================================================

@pytest.mark.parametrize("raw, expected", [
    ("paragraph", BlockKind.PARAGRAPH),
    ("listing", BlockKind.LISTING),
    ("literal", BlockKind.LISTING),
    ("table", BlockKind.TABLE),
    ("image", BlockKind.IMAGE),
    ("pass", BlockKind.PASS),
    ("video", BlockKind.VIDEO),
    ("admonition", BlockKind.ADMONITION),
])
def test_direct_kinds(raw, expected):
    assert classify(DocumentNode(kind=raw)) is expected


def test_paragraph_with_admonition_style():
    assert classify(DocumentNode(kind="paragraph", style="TIP")) is BlockKind.ADMONITION


def test_raw_kind_is_case_insensitive():
    assert classify(DocumentNode(kind="Table")) is BlockKind.TABLE


# ============================================================================
# Verse and quote
# ============================================================================

def test_quote_without_attribution():
    assert classify(DocumentNode(kind="quote")) is BlockKind.QUOTE


def test_quote_with_attribution_is_verse():
    node = DocumentNode(kind="quote", attributes={"attribution": "Mark Twain"})
    assert classify(node) is BlockKind.VERSE


def test_quote_with_citetitle_is_verse():
    node = DocumentNode(kind="quote", attributes={"citetitle": "Letters"})
    assert classify(node) is BlockKind.VERSE


def test_verse_style():
    assert classify(DocumentNode(kind="verse", style="verse")) is BlockKind.VERSE


# ============================================================================
# Containers
# ============================================================================

@pytest.mark.parametrize("style, expected", [
    ("source", BlockKind.LISTING),
    ("listing", BlockKind.LISTING),
    ("verse", BlockKind.VERSE),
    ("WARNING", BlockKind.ADMONITION),
])
def test_container_styles(style, expected):
    assert classify(DocumentNode(kind="example", style=style)) is expected


def test_container_with_image_role():
    node = DocumentNode(kind="open", attributes={"role": "wide image"})
    assert classify(node) is BlockKind.IMAGE


def test_plain_container_is_unknown():
    assert classify(DocumentNode(kind="sidebar")) is BlockKind.UNKNOWN


def test_unrecognised_kinds_are_unknown():
    assert classify(DocumentNode(kind="ulist")) is BlockKind.UNKNOWN
    assert classify(DocumentNode(kind="section")) is BlockKind.UNKNOWN


# ============================================================================
# Totality
# ============================================================================

class _Broken:
    kind = 42
    style = ["not", "a", "string"]
    attributes = "not a mapping"


class _QuoteWithBadAttributes:
    kind = "quote"
    style = None
    attributes = None


@pytest.mark.parametrize("node", [None, object(), "listing", 17, _Broken(), _QuoteWithBadAttributes()])
def test_classify_never_raises(node):
    result = classify(node)
    assert isinstance(result, BlockKind)


class _RaisingStyle:
    kind = "paragraph"
    attributes = {}

    @property
    def style(self):
        raise RuntimeError("broken node")


class _RaisingAttributes:
    kind = "quote"
    style = None

    @property
    def attributes(self):
        raise KeyError("attributes")


class _RaisingKind:
    @property
    def kind(self):
        raise ValueError("no kind")


@pytest.mark.parametrize("node", [_RaisingStyle(), _RaisingAttributes(), _RaisingKind()])
def test_node_raising_during_inspection_is_unknown(node):
    assert classify(node) is BlockKind.UNKNOWN


def test_malformed_quote_is_quote():
    assert classify(_QuoteWithBadAttributes()) is BlockKind.QUOTE


def test_classification_covers_every_reader_kind():
    kinds = ["paragraph", "listing", "literal", "quote", "verse", "sidebar", "example",
             "pass", "open", "admonition", "table", "image", "video", "ulist", "olist", "colist"]
    for kind in kinds:
        assert classify(DocumentNode(kind=kind)) in set(BlockKind)


# ============================================================================
# BlockKind names
# ============================================================================

def test_from_name():
    assert BlockKind.from_name("listing") is BlockKind.LISTING
    assert BlockKind.from_name(" Table ") is BlockKind.TABLE


def test_from_name_rejects_unknown():
    with pytest.raises(ValueError, match="Unknown block type"):
        BlockKind.from_name("unknown")
    with pytest.raises(ValueError, match="Unknown block type"):
        BlockKind.from_name("diagram")
