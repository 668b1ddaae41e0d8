"""Markdown parser that produces the document tree laid out on paper.

Uses mistune v3 to parse Markdown and converts the token stream into
a normalised AST representation defined by :class:`ASTNode`.  GitHub
alert blockquotes (``> [!NOTE]`` ...) are recognised after parsing; math and a
leading metadata block come out as code.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import mistune


# ---------------------------------------------------------------------------
# AST node definitions
# ---------------------------------------------------------------------------

class NodeType(Enum):
    DOCUMENT = "document"
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    TEXT = "text"
    BOLD = "bold"
    ITALIC = "italic"
    STRIKETHROUGH = "strikethrough"
    INLINE_CODE = "inline_code"
    CODE_BLOCK = "code_block"
    ORDERED_LIST = "ordered_list"
    UNORDERED_LIST = "unordered_list"
    LIST_ITEM = "list_item"
    TASK_LIST_ITEM = "task_list_item"
    TABLE = "table"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"
    BLOCKQUOTE = "blockquote"
    HORIZONTAL_RULE = "horizontal_rule"
    LINK = "link"
    IMAGE = "image"
    FOOTNOTE_REF = "footnote_ref"
    FOOTNOTE_DEF = "footnote_def"
    DEFINITION_LIST = "definition_list"
    DEFINITION_TERM = "definition_term"
    DEFINITION_DESCRIPTION = "definition_description"
    LINE_BREAK = "line_break"
    SOFT_BREAK = "soft_break"


INLINE_TYPES = frozenset({
    NodeType.TEXT,
    NodeType.BOLD,
    NodeType.ITALIC,
    NodeType.STRIKETHROUGH,
    NodeType.INLINE_CODE,
    NodeType.LINK,
    NodeType.IMAGE,
    NodeType.FOOTNOTE_REF,
    NodeType.LINE_BREAK,
    NodeType.SOFT_BREAK,
})

ALERT_KINDS = ("note", "tip", "important", "warning", "caution")

_ALERT_RE = re.compile(r"^\s*\[!(NOTE|TIP|IMPORTANT|WARNING|CAUTION)\][ \t]*", re.I)

# YAML (---) or TOML (+++) metadata at the very start of a document.
_FRONT_MATTER_RE = re.compile(
    r"\A(---|\+\+\+)[ \t]*\n(?P<body>[^\n]*\S.*?\n)(?:\1|\.\.\.)[ \t]*(?:\n|\Z)", re.S
)


@dataclass
class ASTNode:
    type: NodeType
    children: list[ASTNode] = field(default_factory=list)
    text: str = ""
    # Heading
    level: int = 0
    # Code block
    language: str = ""
    # Link / Image
    url: str = ""
    title: str = ""
    alt: str = ""
    # Table cell
    align: str = ""
    is_header: bool = False
    # Task list
    checked: bool = False
    # Footnote
    footnote_id: str = ""
    # Ordered list start
    start: int = 1
    # Lists without blank lines between items
    tight: bool = True
    # Blockquote alert kind ("" for a plain quote)
    kind: str = ""


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class MarkdownParser:
    """Parse Markdown text into an :class:`ASTNode` tree."""

    def __init__(self) -> None:
        self._md = mistune.create_markdown(
            renderer=None,  # AST mode
            plugins=["table", "strikethrough", "footnotes", "task_lists", "def_list", "math"],
        )

    # -- public API ---------------------------------------------------------

    def parse(self, markdown_text: str) -> ASTNode:
        """Return a *DOCUMENT* ``ASTNode`` for *markdown_text*.

        A metadata block at the very start of the text is kept verbatim as
        a code block without a language.
        """
        children: list[ASTNode] = []
        match = _FRONT_MATTER_RE.match(markdown_text)
        if match:
            children.append(ASTNode(type=NodeType.CODE_BLOCK, text=match.group("body")))
            markdown_text = markdown_text[match.end():]
        tokens: list[dict[str, Any]] = self._md(markdown_text)  # type: ignore[assignment]
        children.extend(self._convert_tokens(tokens))
        return ASTNode(type=NodeType.DOCUMENT, children=children)

    # -- token conversion ---------------------------------------------------

    def _convert_tokens(self, tokens: list[dict[str, Any]]) -> list[ASTNode]:
        nodes: list[ASTNode] = []
        for tok in tokens:
            ttype = tok.get("type", "")
            # Flatten footnotes container into individual definitions
            if ttype == "footnotes":
                for child in tok.get("children", []):
                    if child.get("type") == "footnote_item":
                        nodes.append(self._handle_footnote_item(child))
                continue
            node = self._convert_token(tok)
            if node is not None:
                nodes.append(node)
        return nodes

    def _convert_token(self, tok: dict[str, Any]) -> Optional[ASTNode]:
        ttype = tok.get("type", "")
        handler = getattr(self, f"_handle_{ttype}", None)
        if handler:
            return handler(tok)
        # Fallback – treat unknown tokens as plain text if they carry text.
        raw = tok.get("raw", tok.get("text", ""))
        if raw:
            return ASTNode(type=NodeType.TEXT, text=str(raw))
        return None

    # -- inline helpers -----------------------------------------------------

    def _convert_inline(self, children: Any) -> list[ASTNode]:
        if children is None:
            return []
        if isinstance(children, str):
            return [ASTNode(type=NodeType.TEXT, text=children)]
        if isinstance(children, list):
            return self._convert_tokens(children)
        return []

    def _convert_children(self, tok: dict) -> list[ASTNode]:
        children_raw = tok.get("children")
        if children_raw is None:
            children_raw = tok.get("text", "")
        if isinstance(children_raw, list):
            return self._convert_tokens(children_raw)
        return self._convert_inline(children_raw)

    # -- block handlers -----------------------------------------------------

    def _handle_heading(self, tok: dict) -> ASTNode:
        return ASTNode(
            type=NodeType.HEADING,
            level=tok.get("attrs", {}).get("level", tok.get("level", 1)),
            children=self._convert_children(tok),
        )

    def _handle_paragraph(self, tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.PARAGRAPH, children=self._convert_children(tok))

    def _handle_block_text(self, tok: dict) -> ASTNode:
        """Block text inside tight list items."""
        return self._handle_paragraph(tok)

    def _handle_thematic_break(self, _tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.HORIZONTAL_RULE)

    def _handle_block_code(self, tok: dict) -> ASTNode:
        """Fenced / indented code block."""
        attrs = tok.get("attrs", {})
        raw = tok.get("raw", tok.get("text", ""))
        info = (attrs.get("info", tok.get("info", "")) or "").strip()
        return ASTNode(
            type=NodeType.CODE_BLOCK,
            text=raw if isinstance(raw, str) else str(raw),
            language=info.split()[0] if info else "",
        )

    def _handle_block_math(self, tok: dict) -> ASTNode:
        """``$$ ... $$`` display math, shown like a code block."""
        return ASTNode(type=NodeType.CODE_BLOCK, text=str(tok.get("raw", tok.get("text", ""))))

    def _handle_block_html(self, tok: dict) -> None:
        return None

    def _handle_blank_line(self, _tok: dict) -> None:
        return None

    # -- inline handlers ----------------------------------------------------

    def _handle_text(self, tok: dict) -> ASTNode:
        raw = tok.get("raw", tok.get("text", tok.get("children", "")))
        if isinstance(raw, str):
            return ASTNode(type=NodeType.TEXT, text=raw)
        return ASTNode(type=NodeType.TEXT, children=self._convert_inline(raw))

    def _handle_strong(self, tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.BOLD, children=self._convert_children(tok))

    def _handle_emphasis(self, tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.ITALIC, children=self._convert_children(tok))

    def _handle_strikethrough(self, tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.STRIKETHROUGH, children=self._convert_children(tok))

    def _handle_codespan(self, tok: dict) -> ASTNode:
        raw = tok.get("raw", tok.get("text", tok.get("children", "")))
        return ASTNode(type=NodeType.INLINE_CODE, text=raw if isinstance(raw, str) else str(raw))

    def _handle_inline_math(self, tok: dict) -> ASTNode:
        return self._handle_codespan(tok)

    def _handle_inline_html(self, tok: dict) -> None:
        return None

    def _handle_linebreak(self, _tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.LINE_BREAK)

    def _handle_softbreak(self, _tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.SOFT_BREAK)

    # -- link / image -------------------------------------------------------

    def _handle_link(self, tok: dict) -> ASTNode:
        attrs = tok.get("attrs", {})
        return ASTNode(
            type=NodeType.LINK,
            url=attrs.get("url", tok.get("link", "")),
            title=attrs.get("title", "") or "",
            children=self._convert_children(tok),
        )

    def _handle_image(self, tok: dict) -> ASTNode:
        attrs = tok.get("attrs", {})
        alt = attrs.get("alt", tok.get("alt", ""))
        children_raw = tok.get("children")
        if not alt and children_raw:
            alt = self._extract_text(children_raw)
        return ASTNode(
            type=NodeType.IMAGE,
            url=attrs.get("url", tok.get("src", "")),
            title=attrs.get("title", "") or "",
            alt=alt,
        )

    # -- lists --------------------------------------------------------------

    def _handle_list(self, tok: dict) -> ASTNode:
        attrs = tok.get("attrs", {})
        ordered = attrs.get("ordered", False)
        children_raw = tok.get("children", [])
        return ASTNode(
            type=NodeType.ORDERED_LIST if ordered else NodeType.UNORDERED_LIST,
            children=self._convert_tokens(children_raw) if isinstance(children_raw, list) else [],
            start=attrs.get("start", 1) or 1,
            tight=bool(tok.get("tight", attrs.get("tight", True))),
        )

    def _handle_list_item(self, tok: dict) -> ASTNode:
        attrs = tok.get("attrs", {})
        if "checked" in attrs:
            return self._handle_task_list_item(tok)
        return ASTNode(type=NodeType.LIST_ITEM, children=self._convert_children(tok))

    def _handle_task_list_item(self, tok: dict) -> ASTNode:
        attrs = tok.get("attrs", {})
        return ASTNode(
            type=NodeType.TASK_LIST_ITEM,
            children=self._convert_children(tok),
            checked=bool(attrs.get("checked", False)),
        )

    # -- definition lists ---------------------------------------------------

    def _handle_def_list(self, tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.DEFINITION_LIST, children=self._convert_children(tok))

    def _handle_def_list_head(self, tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.DEFINITION_TERM, children=self._convert_children(tok))

    def _handle_def_list_item(self, tok: dict) -> ASTNode:
        return ASTNode(type=NodeType.DEFINITION_DESCRIPTION, children=self._convert_children(tok))

    # -- blockquote ---------------------------------------------------------

    def _handle_block_quote(self, tok: dict) -> ASTNode:
        children = self._convert_children(tok)
        kind = _extract_alert(children)
        return ASTNode(type=NodeType.BLOCKQUOTE, children=children, kind=kind)

    # -- table --------------------------------------------------------------

    def _handle_table(self, tok: dict) -> ASTNode:
        rows: list[ASTNode] = []
        children_raw = tok.get("children", [])

        # Collect alignment info from attrs
        aligns: list[str] = []
        attrs = tok.get("attrs", {})
        if "aligns" in attrs:
            aligns = [a or "" for a in attrs["aligns"]]

        for child in children_raw:
            ctype = child.get("type", "")
            if ctype in ("table_head", "thead"):
                rows.extend(self._handle_table_section(child, is_header=True, aligns=aligns))
            elif ctype in ("table_body", "tbody"):
                rows.extend(self._handle_table_section(child, is_header=False, aligns=aligns))
            elif ctype in ("table_row", "tr"):
                rows.append(self._make_table_row(child.get("children", []), is_header=False, aligns=aligns))

        return ASTNode(type=NodeType.TABLE, children=rows)

    def _handle_table_section(
        self, tok: dict, *, is_header: bool, aligns: list[str]
    ) -> list[ASTNode]:
        children = tok.get("children", [])
        if not children:
            return []

        # table_head has table_cell children directly (one implicit row)
        # table_body has table_row children, each with table_cell children
        if children[0].get("type", "") == "table_cell":
            return [self._make_table_row(children, is_header=is_header, aligns=aligns)]
        return [
            self._make_table_row(child.get("children", []), is_header=is_header, aligns=aligns)
            for child in children
        ]

    def _make_table_row(
        self, cell_tokens: list[dict], *, is_header: bool, aligns: list[str]
    ) -> ASTNode:
        cells: list[ASTNode] = []
        for idx, cell_tok in enumerate(cell_tokens):
            cell_attrs = cell_tok.get("attrs", {})
            align = cell_attrs.get("align", "")
            if not align and idx < len(aligns):
                align = aligns[idx]
            cells.append(ASTNode(
                type=NodeType.TABLE_CELL,
                children=self._convert_inline(cell_tok.get("children", [])),
                align=align or "",
                is_header=bool(cell_attrs.get("head", is_header)),
            ))
        return ASTNode(type=NodeType.TABLE_ROW, children=cells)

    # -- footnotes ----------------------------------------------------------

    def _handle_footnote_ref(self, tok: dict) -> ASTNode:
        attrs = tok.get("attrs", {})
        key = tok.get("raw", "") or str(attrs.get("key", attrs.get("index", "")))
        return ASTNode(type=NodeType.FOOTNOTE_REF, footnote_id=str(key))

    def _handle_footnote_item(self, tok: dict) -> ASTNode:
        attrs = tok.get("attrs", {})
        return ASTNode(
            type=NodeType.FOOTNOTE_DEF,
            footnote_id=str(attrs.get("key", attrs.get("index", ""))),
            children=self._convert_children(tok),
        )

    # -- helpers ------------------------------------------------------------

    def _extract_text(self, children: Any) -> str:
        if isinstance(children, str):
            return children
        if isinstance(children, list):
            parts: list[str] = []
            for c in children:
                if isinstance(c, dict):
                    parts.append(c.get("raw", c.get("text", "")))
                elif isinstance(c, str):
                    parts.append(c)
            return "".join(parts)
        return ""


def _extract_alert(children: list[ASTNode]) -> str:
    """Strip a leading ``[!KIND]`` marker from a quote and return the kind."""
    if not children or children[0].type != NodeType.PARAGRAPH:
        return ""
    para = children[0]
    leading: list[ASTNode] = []
    for node in para.children:
        if node.type != NodeType.TEXT or node.children:
            break
        leading.append(node)
    match = _ALERT_RE.match("".join(node.text for node in leading))
    if not match:
        return ""

    consumed = match.end()
    while consumed and para.children:
        first = para.children[0]
        if len(first.text) > consumed:
            first.text = first.text[consumed:]
            break
        consumed -= len(first.text)
        para.children.pop(0)
    while para.children and para.children[0].type in (NodeType.SOFT_BREAK, NodeType.LINE_BREAK):
        para.children.pop(0)
    if not para.children:
        children.pop(0)
    return match.group(1).lower()


def dump_tree(node: ASTNode, depth: int = 0) -> str:
    """Return an indented, one-node-per-line description of *node*."""
    details = []
    if node.type == NodeType.HEADING:
        details.append(f"level={node.level}")
    if node.type == NodeType.CODE_BLOCK and node.language:
        details.append(f"language={node.language!r}")
    if node.type in (NodeType.LINK, NodeType.IMAGE):
        details.append(f"url={node.url!r}")
        if node.alt:
            details.append(f"alt={node.alt!r}")
    if node.type == NodeType.ORDERED_LIST:
        details.append(f"start={node.start}")
    if node.type in (NodeType.ORDERED_LIST, NodeType.UNORDERED_LIST) and not node.tight:
        details.append("loose")
    if node.type == NodeType.TASK_LIST_ITEM:
        details.append(f"checked={node.checked}")
    if node.type == NodeType.TABLE_CELL:
        if node.is_header:
            details.append("header")
        if node.align:
            details.append(f"align={node.align}")
    if node.type in (NodeType.FOOTNOTE_REF, NodeType.FOOTNOTE_DEF):
        details.append(f"id={node.footnote_id!r}")
    if node.type == NodeType.BLOCKQUOTE and node.kind:
        details.append(f"kind={node.kind}")
    if node.text:
        details.append(repr(node.text))

    line = "  " * depth + " ".join([node.type.value, *details])
    return "\n".join([line, *(dump_tree(child, depth + 1) for child in node.children)])
