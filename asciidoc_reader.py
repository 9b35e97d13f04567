#!/usr/bin/env python3
"""
AsciiDoc Reader - Line-oriented parser producing a DocumentNode tree.

This module turns AsciiDoc source into the node tree the validators consume.
It understands the structural subset of the language that the rules look at;
inline markup is kept verbatim in the node content.

Key Features:
- Document header: "= Title", author line, ":name: value" attribute entries
- Sections "==" to "======" nested by level
- Block attribute lists ("[source,java]", "[quote, Author, Source]", "[NOTE]")
  with "#id", ".role" and "%option" shorthand, block titles (".Title") and anchors
- Delimited blocks: listing, literal, quote/verse, sidebar, example, pass,
  open, comment and tables (with implicit or explicit header rows)
- Block macros (image::, video::), admonition paragraphs, lists
- Cache parsed documents per key
"""

import re
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from document_model import DocumentNode


ADMONITION_STYLES = ("NOTE", "TIP", "IMPORTANT", "WARNING", "CAUTION")

SECTION_RE = re.compile(r"^(={2,6})\s+(\S.*?)\s*$")
DOCUMENT_TITLE_RE = re.compile(r"^=\s+(\S.*?)\s*$")
ATTRIBUTE_ENTRY_RE = re.compile(r"^:(!?)([\w][\w-]*)(!?):(?:\s+(.*?))?\s*$")
ANCHOR_RE = re.compile(r"^\[\[([^\],]+)(?:,[^\]]*)?\]\]$")
BLOCK_ATTRIBUTES_RE = re.compile(r"^\[([^\[\]].*)?\]$")
BLOCK_TITLE_RE = re.compile(r"^\.([^\s.].*)$")
BLOCK_MACRO_RE = re.compile(r"^(image|video|audio|toc)::([^\[\s]*)\[(.*)\]$")
ADMONITION_PARAGRAPH_RE = re.compile(r"^(NOTE|TIP|IMPORTANT|WARNING|CAUTION):\s+(.*)$")
LIST_ITEM_RE = re.compile(r"^\s*(\*+|-|\.+|\d+\.|<\d+>)\s+\S")
DELIMITER_RE = re.compile(r"^(-{4,}|\.{4,}|_{4,}|\*{4,}|={4,}|\+{4,}|/{4,}|--|\|={3,})$")
AUTHOR_RE = re.compile(r"^([^<:]+?)\s*(?:<([^>]+)>)?$")
NAMED_ATTRIBUTE_RE = re.compile(r"^([\w-]+)\s*=\s*(.*)$")

DELIMITED_KINDS = {
    "-": "listing",
    ".": "literal",
    "_": "quote",
    "*": "sidebar",
    "=": "example",
    "+": "pass",
    "/": "comment",
}

COMPOUND_KINDS = {"quote", "sidebar", "example", "open", "admonition"}


class AsciiDocSyntaxError(ValueError):
    """Raised when the source cannot be turned into a node tree."""

    def __init__(self, message: str, line: int):
        super().__init__(f"line {line}: {message}")
        self.line = line


def _split_attribute_list(text: str) -> List[str]:
    """Split an attribute list on commas outside double quotes."""
    items = []
    current = []
    quoted = False
    for char in text:
        if char == '"':
            quoted = not quoted
            current.append(char)
        elif char == "," and not quoted:
            items.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    items.append("".join(current).strip())
    return items


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_attribute_list(text: str, shorthand: bool = True) -> Tuple[Optional[str], List[str], Dict[str, str]]:
    """
    Parse the inside of a block attribute list.

    Args:
        text: Text between the square brackets, e.g. 'source,java,title="Demo"'
        shorthand: Whether the first positional may carry #id.role%option shorthand

    Returns:
        Tuple of (style, positional values, named attributes)

    Example:
        >>> parse_attribute_list("source#main.wide%linenums,java")
        ('source', ['source', 'java'], {'id': 'main', 'role': 'wide', 'options': 'linenums'})
    """
    style = None
    positional: List[str] = []
    named: Dict[str, str] = {}
    roles: List[str] = []
    options: List[str] = []

    if not text or not text.strip():
        return style, positional, named

    for index, item in enumerate(_split_attribute_list(text)):
        match = NAMED_ATTRIBUTE_RE.match(item)
        if match and not item.startswith('"'):
            key, value = match.group(1), _unquote(match.group(2))
            if key in ("opts", "options"):
                options.extend(opt.strip() for opt in value.split(",") if opt.strip())
            elif key == "role":
                roles.extend(value.split())
            else:
                named[key] = value
            continue

        value = _unquote(item)
        if index == 0 and shorthand:
            head, rest = _partition_shorthand(value)
            for marker, token in rest:
                if marker == "#":
                    named["id"] = token
                elif marker == ".":
                    roles.append(token)
                else:
                    options.append(token)
            value = head
            style = head or None
        positional.append(value)

    if roles:
        named["role"] = " ".join(roles)
    if options:
        named["options"] = ",".join(options)
    return style, positional, named


def _partition_shorthand(value: str) -> Tuple[str, List[Tuple[str, str]]]:
    """Split "style#id.role%option" into the style and its (marker, token) pairs."""
    head = re.match(r"[^#.%]*", value).group(0)
    return head.strip(), re.findall(r"([#.%])([^#.%]+)", value[len(head):])


class _PendingMetadata:
    """Block attributes and title collected above the next block."""

    def __init__(self):
        self.style: Optional[str] = None
        self.positional: List[str] = []
        self.attributes: Dict[str, str] = {}
        self.title: Optional[str] = None

    def add_attribute_list(self, text: str):
        style, positional, named = parse_attribute_list(text)
        if style:
            self.style = style
        if positional:
            self.positional = positional
        for key, value in named.items():
            if key in ("role", "options") and key in self.attributes:
                separator = " " if key == "role" else ","
                self.attributes[key] = self.attributes[key] + separator + value
            else:
                self.attributes[key] = value


class AsciiDocReader:
    """
    AsciiDoc parser with document caching.

    Produces a tree of DocumentNode objects: the document at the root,
    sections nested by level, and blocks as children of the section (or
    container block) they appear in.
    """

    def __init__(self):
        """Initialize reader with an empty document cache."""
        self._cache: Dict[str, DocumentNode] = {}

    def read(self, text: str, filename: Optional[str] = None, cache_key: Optional[str] = None) -> DocumentNode:
        """
        Parse AsciiDoc text into a document node.

        Args:
            text: AsciiDoc source
            filename: Optional file name recorded as the "docfile" attribute
            cache_key: Optional key for caching the parsed tree

        Returns:
            Root DocumentNode of kind "document"

        Raises:
            AsciiDocSyntaxError: If a delimited block is never closed

        Example:
            >>> doc = AsciiDocReader().read("= Guide\\n\\n== Intro\\n\\nHello.")
            >>> doc.title, doc.sections()[0].title
            ('Guide', 'Intro')
        """
        if cache_key and cache_key in self._cache:
            return self._cache[cache_key]

        lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        document = DocumentNode(kind="document", line=1)
        body_start = self._read_header(lines, document)
        if filename:
            document.attributes["docfile"] = filename
        self._read_blocks(lines, body_start, len(lines), document, allow_sections=True)

        if cache_key:
            self._cache[cache_key] = document
        return document

    def read_file(self, path: str | Path, use_cache: bool = True) -> DocumentNode:
        """Parse an AsciiDoc file, caching by resolved path."""
        path = Path(path)
        key = str(path.resolve()) if use_cache else None
        text = path.read_text(encoding="utf-8")
        return self.read(text, filename=str(path), cache_key=key)

    def clear_cache(self):
        """Clear the document cache."""
        self._cache.clear()

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def _read_header(self, lines: List[str], document: DocumentNode) -> int:
        index = 0
        while index < len(lines) and self._is_skippable(lines[index]):
            index += 1
        if index >= len(lines):
            return index

        title_match = DOCUMENT_TITLE_RE.match(lines[index].rstrip())
        if title_match:
            document.title = title_match.group(1)
            document.line = index + 1
            document.attributes["doctitle"] = document.title
            index += 1
            index = self._read_author_and_revision(lines, index, document)
        elif not ATTRIBUTE_ENTRY_RE.match(lines[index].rstrip()):
            return index

        while index < len(lines):
            stripped = lines[index].rstrip()
            if not stripped:
                break
            if stripped.startswith("//"):
                index += 1
                continue
            entry = ATTRIBUTE_ENTRY_RE.match(stripped)
            if not entry:
                break
            self._apply_attribute_entry(entry, index + 1, document)
            index += 1
        return index

    def _read_author_and_revision(self, lines: List[str], index: int, document: DocumentNode) -> int:
        if index < len(lines):
            stripped = lines[index].strip()
            if stripped and not stripped.startswith((":", "//")):
                author = AUTHOR_RE.match(stripped)
                if author:
                    document.attributes["author"] = author.group(1).strip()
                    document.attribute_lines["author"] = index + 1
                    if author.group(2):
                        document.attributes["email"] = author.group(2).strip()
                        document.attribute_lines["email"] = index + 1
                index += 1
                if index < len(lines):
                    revision = lines[index].strip()
                    if revision and not revision.startswith((":", "//")):
                        number = revision.split(",")[0].strip().lstrip("v")
                        document.attributes["revnumber"] = number
                        document.attribute_lines["revnumber"] = index + 1
                        index += 1
        return index

    @staticmethod
    def _apply_attribute_entry(entry, line: int, document: DocumentNode):
        unset = bool(entry.group(1) or entry.group(3))
        name = entry.group(2)
        if unset:
            document.attributes.pop(name, None)
            document.attribute_lines.pop(name, None)
            return
        document.attributes[name] = entry.group(4) or ""
        document.attribute_lines[name] = line

    @staticmethod
    def _is_skippable(line: str) -> bool:
        stripped = line.strip()
        return not stripped or (stripped.startswith("//") and not stripped.startswith("////"))

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def _read_blocks(self, lines: List[str], start: int, end: int, parent: DocumentNode, allow_sections: bool):
        """Parse lines[start:end] and append the resulting nodes below parent."""
        stack = [parent]
        pending = _PendingMetadata()
        index = start

        while index < end:
            stripped = lines[index].rstrip()
            lineno = index + 1

            if not stripped.strip():
                index += 1
                continue

            if stripped.startswith("//") and not DELIMITER_RE.match(stripped):
                index += 1
                continue

            section = SECTION_RE.match(stripped) if allow_sections else None
            if section:
                level = len(section.group(1)) - 1
                node = DocumentNode(
                    kind="section",
                    title=section.group(2),
                    attributes=dict(pending.attributes),
                    line=lineno,
                    level=level,
                    style=pending.style,
                )
                while len(stack) > 1 and stack[-1].level >= level:
                    stack.pop()
                stack[-1].children.append(node)
                stack.append(node)
                pending = _PendingMetadata()
                index += 1
                continue

            anchor = ANCHOR_RE.match(stripped)
            if anchor:
                pending.attributes["id"] = anchor.group(1)
                index += 1
                continue

            attribute_list = BLOCK_ATTRIBUTES_RE.match(stripped)
            if attribute_list:
                pending.add_attribute_list(attribute_list.group(1) or "")
                index += 1
                continue

            if ATTRIBUTE_ENTRY_RE.match(stripped):
                index += 1
                continue

            title = BLOCK_TITLE_RE.match(stripped)
            if title and not LIST_ITEM_RE.match(stripped):
                pending.title = title.group(1).strip()
                index += 1
                continue

            if DELIMITER_RE.match(stripped):
                node, index = self._read_delimited(lines, index, end, pending)
            else:
                macro = BLOCK_MACRO_RE.match(stripped)
                if macro:
                    node = self._macro_node(macro, pending, lineno)
                    index += 1
                elif LIST_ITEM_RE.match(stripped) and not pending.style:
                    node, index = self._read_list(lines, index, end, pending)
                else:
                    node, index = self._read_paragraph(lines, index, end, pending)

            if node is not None:
                stack[-1].children.append(node)
            pending = _PendingMetadata()

    def _read_delimited(self, lines: List[str], index: int, end: int,
                        pending: _PendingMetadata) -> Tuple[Optional[DocumentNode], int]:
        delimiter = lines[index].rstrip()
        close = index + 1
        while close < end and lines[close].rstrip() != delimiter:
            close += 1
        if close >= end:
            raise AsciiDocSyntaxError(f"Unterminated delimited block '{delimiter}'", index + 1)

        body = lines[index + 1:close]
        next_index = close + 1

        if delimiter.startswith("|"):
            return self._table_node(body, index + 1, pending), next_index
        if delimiter == "--":
            kind = "open"
        else:
            kind = DELIMITED_KINDS[delimiter[0]]
        if kind == "comment":
            return None, next_index

        style = pending.style
        if kind == "quote" and style and style.lower() == "verse":
            kind = "verse"
        elif kind == "example" and style and style.upper() in ADMONITION_STYLES:
            kind = "admonition"
            style = style.upper()
        elif kind == "listing" and style is None and "language" in pending.attributes:
            style = "source"

        node = self._new_block(kind, style, pending, index + 1)
        node.source_lines = list(body)
        node.content = "\n".join(body)
        self._map_positional(node, pending.positional)
        if kind in COMPOUND_KINDS:
            self._read_blocks(lines, index + 1, close, node, allow_sections=False)
            if kind in ("example", "sidebar"):
                node.content = None
        return node, next_index

    def _read_paragraph(self, lines: List[str], index: int, end: int,
                        pending: _PendingMetadata) -> Tuple[DocumentNode, int]:
        start = index
        body = []
        while index < end:
            stripped = lines[index].rstrip()
            if not stripped.strip() or (index > start and DELIMITER_RE.match(stripped)):
                break
            body.append(stripped)
            index += 1

        style = pending.style
        kind = "paragraph"
        admonition = ADMONITION_PARAGRAPH_RE.match(body[0]) if style is None else None
        if admonition:
            kind, style = "admonition", admonition.group(1)
            body[0] = admonition.group(2)
        elif style and style.upper() in ADMONITION_STYLES:
            kind, style = "admonition", style.upper()
        elif style in ("quote", "verse", "literal", "pass", "listing"):
            kind = style
        elif style == "source":
            kind = "listing"
        elif style is None and body[0][:1] in (" ", "\t"):
            kind = "literal"
            body = textwrap.dedent("\n".join(body)).split("\n")

        node = self._new_block(kind, style, pending, start + 1)
        node.source_lines = body
        node.content = "\n".join(body)
        self._map_positional(node, pending.positional)
        return node, index

    def _read_list(self, lines: List[str], index: int, end: int,
                   pending: _PendingMetadata) -> Tuple[DocumentNode, int]:
        start = index
        marker = LIST_ITEM_RE.match(lines[index]).group(1)
        if marker.startswith("<"):
            kind = "colist"
        elif marker[0] in "*-":
            kind = "ulist"
        else:
            kind = "olist"
        body = []
        while index < end and lines[index].strip():
            body.append(lines[index].rstrip())
            index += 1
        node = self._new_block(kind, pending.style, pending, start + 1)
        node.source_lines = body
        node.content = "\n".join(body)
        return node, index

    def _macro_node(self, macro, pending: _PendingMetadata, lineno: int) -> DocumentNode:
        kind, target, attrlist = macro.group(1), macro.group(2), macro.group(3)
        node = self._new_block(kind, pending.style, pending, lineno)
        _, positional, named = parse_attribute_list(attrlist, shorthand=False)
        node.attributes["target"] = target
        names = {"image": ("alt", "width", "height"), "video": ("poster", "width", "height")}.get(kind, ())
        for name, value in zip(names, positional):
            if value:
                node.attributes[name] = value
        for key, value in named.items():
            if key == "options" and "options" in node.attributes:
                node.attributes["options"] += "," + value
            elif key == "role" and "role" in node.attributes:
                node.attributes["role"] += " " + value
            else:
                node.attributes[key] = value
        return node

    def _table_node(self, body: List[str], lineno: int, pending: _PendingMetadata) -> DocumentNode:
        node = self._new_block("table", pending.style, pending, lineno)
        node.source_lines = list(body)

        cells: List[str] = []
        first_line_cells = 0
        first_content = None
        for position, raw in enumerate(body):
            stripped = raw.strip()
            if not stripped:
                continue
            if first_content is None:
                first_content = position
            if stripped.startswith("|"):
                line_cells = [cell.strip() for cell in re.split(r"(?<!\\)\|", stripped)[1:]]
                if position == first_content:
                    first_line_cells = len(line_cells)
                cells.extend(line_cells)
            elif cells:
                cells[-1] = (cells[-1] + "\n" + stripped).strip()

        columns = self._column_count(node.attributes.get("cols")) or first_line_cells or 1
        rows = [cells[i:i + columns] for i in range(0, len(cells), columns)]

        options = node.options
        implicit_header = (
            first_content is not None
            and first_line_cells == columns
            and first_content + 1 < len(body)
            and not body[first_content + 1].strip()
        )
        has_header = "header" in options or (implicit_header and "noheader" not in options)

        for row_index, row in enumerate(rows):
            row_type = "header" if has_header and row_index == 0 else "body"
            row_node = DocumentNode(kind="row", attributes={"rowtype": row_type}, line=lineno)
            row_node.children = [DocumentNode(kind="cell", content=cell, line=lineno) for cell in row]
            node.children.append(row_node)

        node.attributes["colcount"] = str(columns)
        node.attributes["rowcount"] = str(len(rows))
        return node

    @staticmethod
    def _column_count(spec: Optional[str]) -> int:
        if not spec:
            return 0
        spec = spec.strip()
        if spec.isdigit():
            return int(spec)
        count = 0
        for item in spec.split(","):
            multiplier = re.match(r"^\s*(\d+)\*", item)
            count += int(multiplier.group(1)) if multiplier else 1
        return count

    @staticmethod
    def _new_block(kind: str, style: Optional[str], pending: _PendingMetadata, lineno: int) -> DocumentNode:
        return DocumentNode(
            kind=kind,
            style=style,
            title=pending.title,
            attributes=dict(pending.attributes),
            line=lineno,
        )

    @staticmethod
    def _map_positional(node: DocumentNode, positional: List[str]):
        """Give positional attributes their style-specific names."""
        for number, value in enumerate(positional, start=1):
            node.attributes.setdefault(str(number), value)
        style = (positional[0] if positional else "").lower()
        if style == "source" and len(positional) > 1 and positional[1]:
            node.attributes.setdefault("language", positional[1])
        elif style in ("quote", "verse"):
            if len(positional) > 1 and positional[1]:
                node.attributes.setdefault("attribution", positional[1])
            if len(positional) > 2 and positional[2]:
                node.attributes.setdefault("citetitle", positional[2])


# Global reader instance for module-level functions
_reader = AsciiDocReader()


def parse_asciidoc(text: str, filename: Optional[str] = None, cache_key: Optional[str] = None) -> DocumentNode:
    """
    Parse AsciiDoc text into a document node (module-level function).

    Args:
        text: AsciiDoc source
        filename: Optional file name recorded as the "docfile" attribute
        cache_key: Optional key for caching the parsed tree

    Returns:
        Root DocumentNode
    """
    return _reader.read(text, filename=filename, cache_key=cache_key)


def read_file(path: str | Path) -> DocumentNode:
    """Parse an AsciiDoc file (module-level function)."""
    return _reader.read_file(path)
