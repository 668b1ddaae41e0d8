"""Text metrics and styled runs.

Widths are terminal display widths as reported by :mod:`wcwidth`, so
East Asian wide characters count as two columns and combining marks as
zero.  Every wrapping helper here guarantees that no produced line is
wider than the requested width.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from rich.text import Text
from wcwidth import wcwidth

from md2paper.style_manager import TextStyle

# Words break at whitespace and right after a hyphen.
_WORD_RE = re.compile(r"(\s*)([^\s-]*-|[^\s-]+)")
_PLAIN_TOKEN_RE = re.compile(r"\s*\S+")

# Stands in for a character wider than the whole line.
WIDE_PLACEHOLDER = "?"


# ---------------------------------------------------------------------------
# Widths
# ---------------------------------------------------------------------------

def char_width(ch: str) -> int:
    """Return the number of columns *ch* occupies (control chars count 0)."""
    width = wcwidth(ch)
    return width if width > 0 else 0


def display_width(text: str) -> int:
    """Return the display width of *text* in terminal columns."""
    return sum(char_width(ch) for ch in text)


def is_combining(ch: str) -> bool:
    """Return True for zero-width characters drawn on the preceding cell."""
    return ch != "\0" and wcwidth(ch) == 0


def fit_chars(text: str, width: int) -> str:
    """Replace every character wider than *width* with :data:`WIDE_PLACEHOLDER`."""
    if width >= 2:
        return text
    return "".join(WIDE_PLACEHOLDER if char_width(ch) > width else ch for ch in text)


def expand_tabs(line: str, tab_length: int) -> str:
    """Replace tabs in *line* with spaces up to the next tab stop."""
    if "\t" not in line:
        return line
    tab_length = max(1, tab_length)
    out: list[str] = []
    column = 0
    for ch in line:
        if ch == "\t":
            missing = tab_length - (column % tab_length)
            out.append(" " * missing)
            column += missing
        else:
            out.append(ch)
            column += char_width(ch)
    return "".join(out)


def normalize(source: str, tab_length: int) -> str:
    """Strip ANSI escapes and expand tabs in every line of *source*."""
    lines = []
    for line in source.splitlines():
        if "\x1b" in line:
            line = Text.from_ansi(line).plain
        lines.append(expand_tabs(line, tab_length))
    return "".join(f"{line}\n" for line in lines)


def split_at_width(text: str, width: int) -> tuple[str, str]:
    """Split *text* so the head is at most *width* columns (and not empty)."""
    used = 0
    for idx, ch in enumerate(text):
        w = char_width(ch)
        if used + w > width and idx > 0:
            return text[:idx], text[idx:]
        used += w
    return text, ""


def split_words(text: str) -> list[str]:
    """Split *text* into wrap tokens.

    Each token carries a single leading space when whitespace preceded it
    in the source; trailing whitespace becomes a lone ``" "`` token.
    """
    words: list[str] = []
    end = 0
    for match in _WORD_RE.finditer(text):
        lead, word = match.groups()
        words.append((" " if lead else "") + word)
        end = match.end()
    if text[end:]:
        words.append(" ")
    return words


# ---------------------------------------------------------------------------
# Styled runs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Span:
    """A run of text drawn with one style."""

    text: str
    style: TextStyle = field(default_factory=TextStyle)

    @property
    def width(self) -> int:
        return display_width(self.text)


# Hard line-break marker inside an inline run sequence.
BREAK = Span("\n")


@dataclass
class Line:
    """One laid-out row of styled spans."""

    spans: list[Span] = field(default_factory=list)

    def append(self, span: Span) -> None:
        if not span.text:
            return
        if self.spans and self.spans[-1].style == span.style:
            last = self.spans[-1]
            self.spans[-1] = Span(last.text + span.text, last.style)
        else:
            self.spans.append(span)

    def extend(self, spans: Iterable[Span]) -> None:
        for span in spans:
            self.append(span)

    @property
    def width(self) -> int:
        return sum(span.width for span in self.spans)

    @property
    def plain(self) -> str:
        return "".join(span.text for span in self.spans)

    def __iter__(self) -> Iterator[Span]:
        return iter(self.spans)


def truncate_spans(spans: Iterable[Span], width: int) -> list[Span]:
    """Return the leading spans of *spans* that fit in *width* columns."""
    out: list[Span] = []
    remaining = width
    for span in spans:
        if remaining <= 0:
            break
        if span.width <= remaining:
            out.append(span)
            remaining -= span.width
            continue
        used = 0
        cut = 0
        for ch in span.text:
            if used + char_width(ch) > remaining:
                break
            used += char_width(ch)
            cut += 1
        if cut:
            out.append(Span(span.text[:cut], span.style))
        break
    return out


def hard_wrap(spans: Iterable[Span], width: int) -> list[list[Span]]:
    """Cut *spans* into lines of at most *width* columns, ignoring words."""
    width = max(1, width)
    lines: list[list[Span]] = [[]]
    used = 0
    for span in spans:
        text = fit_chars(span.text, width)
        while text:
            if used >= width:
                lines.append([])
                used = 0
            head, text = split_at_width(text, width - used)
            if display_width(head) > width - used and used > 0:
                # A wide character that does not fit in the remaining room.
                lines.append([])
                used = 0
                head, text = split_at_width(head + text, width)
            lines[-1].append(Span(head, span.style))
            used += display_width(head)
    return lines


def word_units(spans: Iterable[Span]) -> Iterator[Optional[list[Span]]]:
    """Group *spans* into words, yielding ``None`` for each :data:`BREAK`.

    A word is the list of styled pieces between two break opportunities,
    with the single space in front of it.  Adjacent spans that meet without
    whitespace (``cd**ef**``) contribute to the same word.
    """
    unit: list[Span] = []
    for span in spans:
        if span.text == "\n":
            if unit:
                yield unit
                unit = []
            yield None
            continue
        for idx, word in enumerate(split_words(span.text)):
            joins = (
                bool(unit)
                and idx == 0
                and not word[0].isspace()
                and not unit[-1].text.endswith("-")
            )
            if unit and not joins:
                yield unit
                unit = []
            unit.append(Span(word, span.style))
    if unit:
        yield unit


def wrap_spans(spans: Iterable[Span], width: int) -> list[list[Span]]:
    """Greedily word-wrap *spans* into lines of at most *width* columns.

    Words (see :func:`word_units`) are only split when a single word is
    wider than *width*.  :data:`BREAK` spans force a new line.
    """
    width = max(1, width)
    lines: list[list[Span]] = []
    current: list[Span] = []
    used = 0
    for unit in word_units(spans):
        if unit is None:
            lines.append(current)
            current, used = [], 0
            continue
        w = sum(piece.width for piece in unit)
        if used and used + w > width:
            lines.append(current)
            current, used = [], 0
        if not used:
            head = unit[0].text.lstrip()
            unit = ([Span(head, unit[0].style)] if head else []) + unit[1:]
            if not unit:
                continue
            w = sum(piece.width for piece in unit)
        if w > width:
            parts = hard_wrap(unit, width)
            lines.extend(parts[:-1])
            unit = parts[-1]
            w = sum(piece.width for piece in unit)
        current.extend(unit)
        used += w
    if current:
        lines.append(current)
    return lines


def wrap_plain(line: str, width: int) -> list[str]:
    """Wrap one line of plain text, repeating its indentation on continuations."""
    width = max(1, width)
    line = fit_chars(line, width)
    indent = line[: len(line) - len(line.lstrip())]
    if display_width(indent) >= width:
        indent = ""
    out: list[str] = []
    current = ""
    for token in _PLAIN_TOKEN_RE.findall(line):
        if current and display_width(current) + display_width(token) > width:
            out.append(current)
            current = ""
        piece = token if current else indent + token.strip()
        while display_width(current) + display_width(piece) > width:
            head, piece = split_at_width(piece, width - display_width(current))
            out.append(current + head)
            current = ""
        current += piece
    out.append(current)
    return out
