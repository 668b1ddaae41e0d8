"""Table layout for the terminal paper.

This module turns TABLE ASTNodes (from the parser) into rows of styled
spans drawn with box-drawing borders. It supports:
- Header rows, separated from the body by a double rule
- Cell alignment (left, center, right)
- Column widths shrunk to fit the available width, wrapping cell text
- Inline styles inside cells (bold, links, code, footnote references)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from md2paper.parser import NodeType
from md2paper.text import Span, display_width, split_words, wrap_spans

if TYPE_CHECKING:
    from md2paper.parser import ASTNode
    from md2paper.style_manager import StyleResolver, TextStyle

LOGGER = logging.getLogger(__name__)

InlineRenderer = Callable[[list["ASTNode"], tuple[str, ...]], list[Span]]

TOO_LARGE = "[Table too large to fit]"


def table_overhead(columns: int) -> int:
    """Columns taken by borders and padding: ``│ `` + `` │ `` x (n-1) + `` │``."""
    return 4 + 3 * (columns - 1)


def column_widths(
    natural: list[int],
    longest_words: list[int],
    width: int,
) -> Optional[list[int]]:
    """Fit columns into *width* total columns.

    Natural widths are used when they fit.  Otherwise every column is
    scaled by ``budget / total`` and floored, raised to its longest word
    while the total still fits, and the columns left over are handed out
    one at a time, left to right, to columns still below their natural
    width.

    Args:
        natural: Widest unwrapped content per column.
        longest_words: Widest single word per column.
        width: Width available for the whole table, borders included.

    Returns:
        One width per column, or ``None`` when not even one column per
        cell fits.
    """
    count = len(natural)
    budget = width - table_overhead(count)
    natural = [max(1, w) for w in natural]
    if budget < count:
        return None
    total = sum(natural)
    if total <= budget:
        return natural

    widths = [max(1, budget * w // total) for w in natural]

    for idx, word in enumerate(longest_words):
        want = min(word, natural[idx])
        if widths[idx] < want and sum(widths) - widths[idx] + want <= budget:
            widths[idx] = want

    remaining = budget - sum(widths)
    while remaining > 0 and any(w < n for w, n in zip(widths, natural)):
        for idx in range(count):
            if remaining and widths[idx] < natural[idx]:
                widths[idx] += 1
                remaining -= 1

    while sum(widths) > budget:
        widest = widths.index(max(widths))
        widths[widest] -= 1
    return widths


class TableHandler:
    """Converts Markdown TABLE ASTNodes into bordered rows of spans."""

    def __init__(self, resolver: StyleResolver, inline: InlineRenderer) -> None:
        """Initialize the handler.

        Args:
            resolver: Resolves border and padding styles.
            inline: Callback turning a cell's inline nodes into spans,
                styled under the scope names it is given.
        """
        self.resolver = resolver
        self.inline = inline

    def render_table(
        self,
        table_node: ASTNode,
        width: int,
        path: tuple[str, ...] = ("paper",),
    ) -> list[list[Span]]:
        """Convert a TABLE ASTNode to rows of spans.

        Args:
            table_node: TABLE ASTNode containing TABLE_ROW children
            width: Columns available for the whole table
            path: Scope path of the enclosing block

        Returns:
            One list of spans per output line, each at most *width*
            columns wide.

        Raises:
            ValueError: If table_node is not a TABLE type
        """
        if table_node.type != NodeType.TABLE:
            raise ValueError(f"Expected TABLE node, got {table_node.type}")

        rows = [row for row in table_node.children if row.type == NodeType.TABLE_ROW]
        col_count = max((len(row.children) for row in rows), default=0)
        if not col_count:
            return []

        cells = [self._row_cells(row, col_count) for row in rows]
        natural = [0] * col_count
        longest = [0] * col_count
        for row in cells:
            for idx, spans in enumerate(row):
                natural[idx] = max(natural[idx], _natural_width(spans))
                longest[idx] = max(longest[idx], _longest_word(spans))

        widths = column_widths(natural, longest, width)
        if widths is None:
            LOGGER.debug("Table with %d columns does not fit in %d columns", col_count, width)
            return [[Span(TOO_LARGE, self.resolver.resolve_path(path))]]

        border = self.resolver.resolve_path(path + ("table", "border"))
        lines = [[Span(_separator("┌", "─", "┬", "┐", widths), border)]]
        header_done = False
        for row, spans in zip(rows, cells):
            is_header = any(cell.is_header for cell in row.children)
            if not is_header and not header_done and len(lines) > 1:
                lines.append([Span(_separator("╞", "═", "╪", "╡", widths), border)])
            if not is_header:
                header_done = True
            lines.extend(self._render_row(row, spans, widths, path, border, is_header))
        lines.append([Span(_separator("└", "─", "┴", "┘", widths), border)])
        return lines

    def _row_cells(self, row_node: ASTNode, col_count: int) -> list[list[Span]]:
        """Render the inline content of every cell, padding short rows."""
        section = "th" if any(cell.is_header for cell in row_node.children) else "tr"
        cells = [
            self.inline(cell.children, ("table", section, "td"))
            for cell in row_node.children[:col_count]
        ]
        cells.extend([] for _ in range(col_count - len(cells)))
        return cells

    def _render_row(
        self,
        row_node: ASTNode,
        cells: list[list[Span]],
        widths: list[int],
        path: tuple[str, ...],
        border: TextStyle,
        is_header: bool,
    ) -> list[list[Span]]:
        """Render a single table row as one or more lines.

        Args:
            row_node: TABLE_ROW ASTNode
            cells: Spans for each cell of the row
            widths: Final column widths
            path: Scope path of the enclosing block
            border: Style of the border characters
            is_header: Whether the row belongs to the header

        Returns:
            The row's lines; the tallest cell sets the row height.
        """
        section = "th" if is_header else "tr"
        pad_style = self.resolver.resolve_path(path + ("table", section, "td"))
        aligns = [cell.align for cell in row_node.children] + [""] * len(widths)
        wrapped = [wrap_spans(spans, w) or [[]] for spans, w in zip(cells, widths)]
        height = max(len(lines) for lines in wrapped)

        out: list[list[Span]] = []
        for line_idx in range(height):
            line = [Span("│ ", border)]
            for col, (lines, w) in enumerate(zip(wrapped, widths)):
                if col:
                    line.append(Span(" │ ", border))
                content = lines[line_idx] if line_idx < len(lines) else []
                line.extend(_align(content, w, aligns[col], pad_style))
            line.append(Span(" │", border))
            out.append(line)
        return out


def _separator(left: str, fill: str, joint: str, right: str, widths: list[int]) -> str:
    return left + joint.join(fill * (w + 2) for w in widths) + right


def _align(content: list[Span], width: int, align: str, style: TextStyle) -> list[Span]:
    used = sum(span.width for span in content)
    spare = max(0, width - used)
    if align == "right":
        left = spare
    elif align == "center":
        left = spare // 2
    else:
        left = 0
    out = []
    if left:
        out.append(Span(" " * left, style))
    out.extend(content)
    if spare - left:
        out.append(Span(" " * (spare - left), style))
    return out


def _segments(spans: list[Span]) -> list[str]:
    text = "".join(span.text for span in spans)
    return text.split("\n")


def _natural_width(spans: list[Span]) -> int:
    return max(display_width(segment.strip()) for segment in _segments(spans))


def _longest_word(spans: list[Span]) -> int:
    words = [word.strip() for segment in _segments(spans) for word in split_words(segment)]
    return max((display_width(word) for word in words), default=0)
