"""High-level Markdown-to-paper rendering orchestrator.

Ties together the parser, style sheet, layout engine and compositor into a
single public API for rendering Markdown (or plain text) as a paper grid.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from md2paper.compositor import FrameGeometry, Grid, compose
from md2paper.config import PaperConfig, get_user_stylesheet_path
from md2paper.exceptions import InputError
from md2paper.highlighter import CommandHighlighter, Highlighter
from md2paper.layout import ImageLoader, LayoutEngine, LayoutOptions
from md2paper.parser import MarkdownParser, dump_tree
from md2paper.style_manager import PRESETS, StyleResolver, StyleSheet
from md2paper.text import Line, normalize

LOGGER = logging.getLogger(__name__)


class Converter:
    """Render Markdown content on terminal paper.

    Usage::

        converter = Converter(PaperConfig(style="dark"), terminal_width=120)
        print(converter.render_file("README.md").to_ansi(), end="")

        # or from string
        grid = converter.render_text("# Hello")
    """

    STYLE_PRESETS = PRESETS

    def __init__(
        self,
        config: Optional[PaperConfig] = None,
        *,
        terminal_width: Optional[int] = None,
        highlighter: Optional[Highlighter] = None,
        stylesheet: Optional[StyleSheet] = None,
        image_loader: Optional[ImageLoader] = None,
    ) -> None:
        self.config = config or PaperConfig()
        self.stylesheet = stylesheet or self._load_stylesheet()
        self.resolver = StyleResolver(self.stylesheet)
        self.parser = MarkdownParser()
        self.geometry = FrameGeometry.from_config(
            self.config, terminal_width or self.config.width + 1
        )
        if highlighter is None and self.config.highlight:
            highlighter = CommandHighlighter(self.config.highlighter_command)
        self.highlighter = highlighter
        self.image_loader = image_loader

    # -- style sheet --------------------------------------------------------

    def _load_stylesheet(self) -> StyleSheet:
        """Preset, then the user's sheet, then an explicit ``config.stylesheet``."""
        sheet = StyleSheet.from_preset(self.config.style)
        user_sheet = get_user_stylesheet_path()
        if user_sheet.is_file():
            try:
                sheet = sheet.extend(StyleSheet.from_file(user_sheet))
            except (OSError, UnicodeDecodeError) as exc:
                LOGGER.warning("Ignoring style sheet %s: %s", user_sheet, exc)
        if self.config.stylesheet is not None:
            try:
                sheet = sheet.extend(StyleSheet.from_file(self.config.stylesheet))
            except (OSError, UnicodeDecodeError) as exc:
                raise InputError(f"cannot read style sheet {self.config.stylesheet}: {exc}") from exc
        return sheet

    # -- public API ---------------------------------------------------------

    def layout_text(self, text: str, *, base_dir: Optional[Path] = None) -> list[Line]:
        """Lay out *text* without framing it.

        Args:
            text: Markdown source, or literal text when ``config.plain`` is set.
            base_dir: Directory that relative image paths are resolved against.

        Returns:
            Lines no wider than ``geometry.content_width``.
        """
        engine = LayoutEngine(
            self.resolver,
            self._options(base_dir),
            highlighter=self.highlighter,
            image_loader=self.image_loader,
        )
        source = normalize(text, self.config.tab_length)
        if self.config.plain:
            return engine.layout_plain(source)
        return engine.layout(self.parser.parse(source))

    def render_text(self, text: str, *, base_dir: Optional[Path] = None) -> Grid:
        """Render *text* as a framed paper grid."""
        lines = self.layout_text(text, base_dir=base_dir)
        return compose(lines, self.geometry, self.resolver)

    def render_file(self, input_path: str | Path, *, encoding: str = "utf-8") -> Grid:
        """Read a Markdown file and render it.

        Args:
            input_path: Path to the input file.
            encoding: Text encoding of the source file.

        Raises:
            InputError: The file cannot be read or decoded.
        """
        input_path = Path(input_path)
        text = read_source(input_path, encoding=encoding)
        return self.render_text(text, base_dir=input_path.parent)

    def dump_text(self, text: str) -> str:
        """Return the parsed document tree of *text*, one node per line."""
        return dump_tree(self.parser.parse(normalize(text, self.config.tab_length)))

    def _options(self, base_dir: Optional[Path]) -> LayoutOptions:
        stylesheet = self.config.stylesheet or self.stylesheet.path
        return LayoutOptions(
            width=self.geometry.content_width,
            tab_length=self.config.tab_length,
            hide_urls=self.config.hide_urls,
            no_images=self.config.no_images,
            plain=self.config.plain,
            highlight=self.config.highlight,
            stylesheet_path=stylesheet,
            base_dir=base_dir,
        )


def read_source(path: Path, *, encoding: str = "utf-8") -> str:
    """Read a source document, turning I/O and decoding errors into :class:`InputError`."""
    try:
        return path.read_text(encoding=encoding)
    except FileNotFoundError as exc:
        raise InputError(f"file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"cannot read {path}: {exc}") from exc
