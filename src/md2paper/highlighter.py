"""Bridge to an external syntax highlighter.

The layout engine only sees the :class:`Highlighter` protocol: a code
snippet goes in, lines of styled spans come out, or
:class:`~md2paper.exceptions.HighlighterUnavailable` is raised.
:class:`CommandHighlighter` implements it by piping the snippet through a
program (``syncat`` by default) and decoding the ANSI escapes it prints.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Optional, Protocol, Sequence

from rich.style import Style
from rich.text import Text

from md2paper.exceptions import HighlighterUnavailable
from md2paper.style_manager import TextStyle
from md2paper.text import Line, Span

LOGGER = logging.getLogger(__name__)


class Highlighter(Protocol):
    def highlight(
        self,
        code: str,
        language: str,
        width: int,
        stylesheet: Optional[str] = None,
    ) -> list[list[Span]]:
        """Return *code* as lines of styled spans."""
        ...


class CommandHighlighter:
    """Run a highlighting program once per snippet.

    *command* is an argv template; ``{language}``, ``{width}`` and
    ``{stylesheet}`` placeholders are substituted before each call.  An
    argument whose placeholders expand to an empty string is dropped.
    """

    DEFAULT_COMMAND = ("syncat", "-l", "{language}", "-w", "{width}")

    def __init__(self, command: Sequence[str] = DEFAULT_COMMAND, *, timeout: float = 10.0) -> None:
        if not command:
            raise ValueError("highlighter command must not be empty")
        self.command = tuple(command)
        self.timeout = timeout

    def argv(self, language: str, width: int, stylesheet: Optional[str] = None) -> list[str]:
        """Expand the command template.

        Raises:
            HighlighterUnavailable: An argument has an unknown or malformed
                placeholder.
        """
        values = {"language": language or "txt", "width": width, "stylesheet": stylesheet or ""}
        argv = []
        for part in self.command:
            try:
                expanded = part.format(**values)
            except (KeyError, IndexError, ValueError) as exc:
                raise HighlighterUnavailable(f"bad placeholder in {part!r}: {exc}") from exc
            if expanded or not part:
                argv.append(expanded)
        return argv

    def highlight(
        self,
        code: str,
        language: str,
        width: int,
        stylesheet: Optional[str] = None,
    ) -> list[list[Span]]:
        argv = self.argv(language, width, stylesheet)
        try:
            proc = subprocess.run(
                argv,
                input=code,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise HighlighterUnavailable(f"{argv[0]}: {exc}") from exc
        if proc.returncode != 0:
            detail = proc.stderr.strip() or f"exit status {proc.returncode}"
            raise HighlighterUnavailable(f"{argv[0]}: {detail}")
        return decode_ansi(proc.stdout)


def decode_ansi(output: str) -> list[list[Span]]:
    """Split ANSI-escaped *output* into lines of :class:`Span`."""
    lines: list[list[Span]] = []
    for raw in output.splitlines():
        text = Text.from_ansi(raw)
        plain = text.plain
        styles = [_as_style(text.style)] * len(plain)
        for span in text.spans:
            span_style = _as_style(span.style)
            for idx in range(span.start, min(span.end, len(plain))):
                styles[idx] = styles[idx] + span_style
        line = Line()
        for ch, style in zip(plain, styles):
            line.append(Span(ch, TextStyle.from_rich(style)))
        lines.append(line.spans)
    return lines


def _as_style(value: str | Style) -> Style:
    if isinstance(value, Style):
        return value
    return Style.parse(value) if value else Style()
