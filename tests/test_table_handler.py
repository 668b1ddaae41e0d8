"""Tests for table layout."""

from __future__ import annotations

import pytest

from md2paper.parser import ASTNode, MarkdownParser, NodeType
from md2paper.style_manager import StyleResolver, StyleSheet
from md2paper.table_handler import TOO_LARGE, TableHandler, column_widths, table_overhead
from md2paper.text import Span


def plain_inline(nodes: list[ASTNode], names: tuple[str, ...]) -> list[Span]:
    return [Span(node.text) for node in nodes if node.text]


@pytest.fixture
def handler() -> TableHandler:
    return TableHandler(StyleResolver(StyleSheet.from_preset("default")), plain_inline)


def table(markdown: str) -> ASTNode:
    doc = MarkdownParser().parse(markdown)
    return next(node for node in doc.children if node.type == NodeType.TABLE)


def texts(lines: list[list[Span]]) -> list[str]:
    return ["".join(span.text for span in line) for line in lines]


# ---------------------------------------------------------------------------
# Column widths
# ---------------------------------------------------------------------------

class TestColumnWidths:
    def test_overhead(self) -> None:
        assert table_overhead(1) == 4
        assert table_overhead(3) == 10

    def test_natural_widths_when_they_fit(self) -> None:
        assert column_widths([3, 4], [3, 4], 20) == [3, 4]

    def test_proportional_shrink(self) -> None:
        widths = column_widths([10, 30], [4, 6], 30)
        assert widths == [6, 17]
        assert sum(widths) == 30 - table_overhead(2)

    def test_longest_word_is_kept_whole(self) -> None:
        assert column_widths([10, 10, 3], [1, 1, 3], 26) == [7, 6, 3]

    def test_leftover_goes_left_to_right(self) -> None:
        assert column_widths([5, 5], [5, 5], 10) == [2, 1]

    def test_too_narrow(self) -> None:
        assert column_widths([3, 3], [1, 1], 8) is None

    def test_empty_columns_get_one(self) -> None:
        assert column_widths([0, 2], [0, 2], 20) == [1, 2]


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class TestRenderTable:
    def test_header_and_body(self, handler: TableHandler) -> None:
        lines = handler.render_table(table("| a | bb |\n|---|---|\n| 1 | 2 |"), 40)
        assert texts(lines) == [
            "┌───┬────┐",
            "│ a │ bb │",
            "╞═══╪════╡",
            "│ 1 │ 2  │",
            "└───┴────┘",
        ]

    def test_right_alignment(self, handler: TableHandler) -> None:
        lines = handler.render_table(table("| Number |\n|-------:|\n| 7 |"), 40)
        assert texts(lines)[3] == "│      7 │"

    def test_center_alignment(self, handler: TableHandler) -> None:
        lines = handler.render_table(table("| Center |\n|:------:|\n| ab |"), 40)
        assert texts(lines)[3] == "│   ab   │"

    def test_cells_wrap(self, handler: TableHandler) -> None:
        md = "| a | b |\n|---|---|\n| one two three | x |"
        lines = handler.render_table(table(md), 15)
        assert all(sum(span.width for span in line) <= 15 for line in lines)
        assert texts(lines)[3:5] == ["│ one two │ x │", "│ three   │   │"]

    def test_border_style(self, handler: TableHandler) -> None:
        lines = handler.render_table(table("| a |\n|---|\n| 1 |"), 40)
        assert lines[0][0].style.color == "#babdb6"

    def test_too_large(self, handler: TableHandler) -> None:
        lines = handler.render_table(table("| a | b | c |\n|---|---|---|\n| 1 | 2 | 3 |"), 9)
        assert texts(lines) == [TOO_LARGE]

    def test_empty_table(self, handler: TableHandler) -> None:
        assert handler.render_table(ASTNode(type=NodeType.TABLE), 40) == []

    def test_rejects_other_nodes(self, handler: TableHandler) -> None:
        with pytest.raises(ValueError, match="TABLE"):
            handler.render_table(ASTNode(type=NodeType.PARAGRAPH), 40)
