"""Paper frame compositor.

Wraps laid-out lines in the paper: horizontal margins on both sides,
vertical margins above and below, an optional drop shadow one column to
the right and one row below, and leading blank space that places the
paper on the left, the right or the middle of the terminal.

The compositor never re-wraps.  Lines wider than the content width are a
layout bug and raise ``ValueError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from rich.color import ColorSystem

from md2paper.exceptions import LayoutOverflow
from md2paper.style_manager import StyleResolver, TextStyle
from md2paper.text import Line, char_width, is_combining

LOGGER = logging.getLogger(__name__)

PLACEMENTS = ("left", "center", "right")


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FrameGeometry:
    """Where the paper goes and how big it is.

    ``paper_width`` already accounts for the terminal: it is never wider
    than ``terminal_width - 1`` so the shadow column still fits.
    """

    terminal_width: int
    paper_width: int
    h_margin: int = 6
    v_margin: int = 6
    placement: str = "center"
    shadow: bool = True

    @classmethod
    def from_config(cls, config, terminal_width: int) -> FrameGeometry:
        """Build the geometry for *config* (a :class:`~md2paper.config.PaperConfig`)."""
        if config.placement not in PLACEMENTS:
            raise ValueError(
                f"Unknown placement {config.placement!r}. Choose from: {', '.join(PLACEMENTS)}"
            )
        h_margin = config.margin if config.h_margin is None else config.h_margin
        v_margin = config.margin if config.v_margin is None else config.v_margin
        paper_width = max(1, min(config.width, terminal_width - 1))
        return cls(
            terminal_width=terminal_width,
            paper_width=paper_width,
            h_margin=max(0, h_margin),
            v_margin=max(0, v_margin),
            placement=config.placement,
            shadow=config.shadow,
        )

    @property
    def margin(self) -> int:
        """Horizontal margin, reduced when it would leave no content column."""
        return max(0, min(self.h_margin, (self.paper_width - 1) // 2))

    @property
    def content_width(self) -> int:
        return max(1, self.paper_width - 2 * self.margin)

    @property
    def shadow_columns(self) -> int:
        return 1 if self.shadow else 0

    @property
    def leading(self) -> int:
        """Blank columns in front of the paper."""
        if self.placement == "left":
            return 0
        if self.placement == "right":
            return max(0, self.terminal_width - self.paper_width - self.shadow_columns)
        return max(0, (self.terminal_width - self.paper_width) // 2)

    def check(self) -> Optional[LayoutOverflow]:
        """Describe why the margins had to be reduced, if they were."""
        if self.margin == self.h_margin:
            return None
        return LayoutOverflow(
            f"margin {self.h_margin} leaves no room on a {self.paper_width}-column paper; "
            f"using {self.margin}"
        )


# ---------------------------------------------------------------------------
# Cell grid
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Cell:
    """One terminal cell.

    A wide character occupies its own cell plus one ``continuation`` cell
    that is never printed.
    """

    char: str = " "
    style: TextStyle = field(default_factory=TextStyle)
    continuation: bool = False


@dataclass
class Grid:
    """Rows of cells, ready to print."""

    rows: list[list[Cell]] = field(default_factory=list)

    def to_plain(self) -> str:
        return "".join(
            "".join(cell.char for cell in row if not cell.continuation).rstrip() + "\n"
            for row in self.rows
        )

    def to_ansi(self, color_system: ColorSystem = ColorSystem.TRUECOLOR) -> str:
        """Serialize with SGR escapes; consecutive cells sharing a style share one escape."""
        out: list[str] = []
        for row in self.rows:
            parts: list[str] = []
            run: list[str] = []
            current: Optional[TextStyle] = None
            for cell in row:
                if cell.continuation:
                    continue
                if cell.style != current and run:
                    parts.append(_paint("".join(run), current, color_system))
                    run = []
                current = cell.style
                run.append(cell.char)
            if run:
                parts.append(_paint("".join(run), current, color_system))
            out.append("".join(parts) + "\n")
        return "".join(out)


def _paint(text: str, style: Optional[TextStyle], color_system: ColorSystem) -> str:
    if style is None or style.is_plain:
        return text
    return style.to_rich().render(text, color_system=color_system)


def _cells(line: Line) -> list[Cell]:
    cells: list[Cell] = []
    for span in line:
        for ch in span.text:
            width = char_width(ch)
            if not width:
                if is_combining(ch):
                    _attach(cells, ch)
                continue
            cells.append(Cell(ch, span.style))
            cells.extend(Cell("", span.style, continuation=True) for _ in range(width - 1))
    return cells


def _attach(cells: list[Cell], mark: str) -> None:
    """Add a combining *mark* to the last printed cell, if there is one."""
    for idx in range(len(cells) - 1, -1, -1):
        if not cells[idx].continuation:
            cells[idx] = replace(cells[idx], char=cells[idx].char + mark)
            return


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def compose(lines: Iterable[Line], geometry: FrameGeometry, resolver: StyleResolver) -> Grid:
    """Frame *lines* on paper.

    Args:
        lines: Laid-out lines, each at most ``geometry.content_width`` wide.
        geometry: Paper size, margins, shadow and placement.
        resolver: Supplies the ``paper`` and ``shadow`` styles.

    Returns:
        The final :class:`Grid`.

    Raises:
        ValueError: A line is wider than the content width.
    """
    overflow = geometry.check()
    if overflow is not None:
        LOGGER.debug("%s", overflow)

    paper = resolver.paper_style()
    shadow = resolver.shadow_style()
    lead = [Cell()] * geometry.leading
    margin = [Cell(" ", paper)] * geometry.margin
    width = geometry.content_width

    body: list[list[Cell]] = []
    blank = [Cell(" ", paper)] * geometry.paper_width
    body.extend(list(blank) for _ in range(geometry.v_margin))
    for number, line in enumerate(lines, 1):
        cells = _cells(line)
        if len(cells) > width:
            raise ValueError(f"line {number} is {len(cells)} columns wide; content width is {width}")
        cells.extend([Cell(" ", paper)] * (width - len(cells)))
        body.append(margin + cells + margin)
    body.extend(list(blank) for _ in range(geometry.v_margin))

    rows: list[list[Cell]] = []
    for idx, row in enumerate(body):
        if geometry.shadow:
            # The shadow starts one row below the top of the paper.
            row = row + [Cell() if idx == 0 else Cell(" ", shadow)]
        rows.append(lead + row)
    if geometry.shadow:
        rows.append(lead + [Cell()] + [Cell(" ", shadow)] * geometry.paper_width)
    return Grid(rows)
