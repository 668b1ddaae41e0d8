"""Custom exceptions for md2paper.

Only :class:`InputError` is fatal to a render.  The other errors describe
local degradations: they are logged and the affected element falls back
to a simpler rendering.
"""
from __future__ import annotations


class Md2PaperError(RuntimeError):
    """Base class for all md2paper exceptions."""


class InputError(Md2PaperError):
    """Raised when an input document cannot be read."""


class StyleSheetError(Md2PaperError):
    """A style sheet rule could not be understood and was dropped."""

    def __init__(self, message: str, *, source: str = "<string>", line: int = 0) -> None:
        self.message = message
        self.source = source
        self.line = line
        location = f"{source}:{line}" if line else source
        super().__init__(f"{location}: {message}")


class HighlighterUnavailable(Md2PaperError):
    """The external highlighter is missing or exited with a failure status."""


class ImageDecodeError(Md2PaperError):
    """An image could not be loaded or decoded."""


class LayoutOverflow(Md2PaperError):
    """Configured widths leave no usable room for content."""
