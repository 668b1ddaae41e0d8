"""md2paper - print Markdown documents on paper in your terminal."""

from __future__ import annotations

__version__ = "0.1.0"

from md2paper.converter import Converter  # noqa: E402
from md2paper.config import PaperConfig  # noqa: E402

__all__ = ["Converter", "PaperConfig", "__version__"]
