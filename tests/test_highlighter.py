"""Tests for the external highlighter bridge."""

from __future__ import annotations

import sys

import pytest

from md2paper.exceptions import HighlighterUnavailable
from md2paper.highlighter import CommandHighlighter, decode_ansi
from md2paper.text import Span


class TestArgv:
    def test_default_command(self) -> None:
        assert CommandHighlighter().argv("python", 40) == ["syncat", "-l", "python", "-w", "40"]

    def test_missing_language_is_txt(self) -> None:
        assert CommandHighlighter().argv("", 40)[2] == "txt"

    def test_empty_placeholder_drops_argument(self) -> None:
        highlighter = CommandHighlighter(["hl", "{stylesheet}", "--lang={language}"])
        assert highlighter.argv("rust", 10) == ["hl", "--lang=rust"]
        assert highlighter.argv("rust", 10, "my.paper") == ["hl", "my.paper", "--lang=rust"]

    def test_empty_command(self) -> None:
        with pytest.raises(ValueError):
            CommandHighlighter([])

    @pytest.mark.parametrize("part", ["{nope}", "{0}", "{"])
    def test_bad_placeholder(self, part: str) -> None:
        highlighter = CommandHighlighter(["hl", part])
        with pytest.raises(HighlighterUnavailable, match="bad placeholder"):
            highlighter.argv("python", 10)
        with pytest.raises(HighlighterUnavailable):
            highlighter.highlight("x", "python", 10)


class TestHighlight:
    def test_runs_program(self) -> None:
        script = "import sys; sys.stdout.write(sys.stdin.read().upper())"
        highlighter = CommandHighlighter([sys.executable, "-c", script])
        assert highlighter.highlight("hello\nworld", "txt", 20) == [[Span("HELLO")], [Span("WORLD")]]

    def test_missing_program(self) -> None:
        highlighter = CommandHighlighter(["md2paper-no-such-highlighter"])
        with pytest.raises(HighlighterUnavailable, match="md2paper-no-such-highlighter"):
            highlighter.highlight("x", "txt", 20)

    def test_failure_status(self) -> None:
        highlighter = CommandHighlighter([sys.executable, "-c", "import sys; sys.exit(3)"])
        with pytest.raises(HighlighterUnavailable, match="exit status 3"):
            highlighter.highlight("x", "txt", 20)


class TestDecodeAnsi:
    def test_plain_text(self) -> None:
        assert decode_ansi("one\ntwo\n") == [[Span("one")], [Span("two")]]

    def test_truecolor(self) -> None:
        lines = decode_ansi("\x1b[38;2;255;0;0mred\x1b[0m plain")
        spans = lines[0]
        assert spans[0].text == "red"
        assert spans[0].style.color == "#ff0000"
        assert spans[1].text == " plain"
        assert spans[1].style.color is None

    def test_bold(self) -> None:
        spans = decode_ansi("\x1b[1mloud\x1b[0m")[0]
        assert spans[0].style.bold is True

    def test_empty_line_kept(self) -> None:
        assert decode_ansi("a\n\nb") == [[Span("a")], [], [Span("b")]]
