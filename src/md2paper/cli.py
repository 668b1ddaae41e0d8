"""Command-line interface for md2paper.

Usage::

    md2paper README.md                   # render on centred paper
    md2paper -p notes.txt                # plain text, no Markdown
    cat doc.md | md2paper -l -w 72       # stdin, left edge, narrower paper
    md2paper doc.md --style dark -s      # dark preset, highlight code blocks
    md2paper --list-styles               # list available presets
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path

from md2paper import __version__
from md2paper.config import PaperConfig, load_config
from md2paper.converter import Converter, read_source
from md2paper.exceptions import Md2PaperError
from md2paper.style_manager import PRESETS

LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="md2paper",
        description="Print Markdown documents on paper in your terminal.",
    )
    parser.add_argument(
        "files",
        nargs="*",
        metavar="FILE",
        help="Files to print. Reads stdin when none are given.",
    )
    parser.add_argument(
        "-m", "--margin",
        type=int,
        help="Horizontal and vertical margin (default: 6).",
    )
    parser.add_argument("--h-margin", type=int, help="Horizontal margin (overrides --margin).")
    parser.add_argument("--v-margin", type=int, help="Vertical margin (overrides --margin).")
    parser.add_argument(
        "-w", "--width",
        type=int,
        help="Paper width, margins included (default: 92).",
    )
    parser.add_argument(
        "-p", "--plain",
        action="store_true",
        default=None,
        help="Print the input as plain text instead of Markdown.",
    )
    parser.add_argument(
        "-t", "--tab-length",
        type=int,
        help="Columns per tab stop (default: 4).",
    )
    parser.add_argument("-U", "--hide-urls", action="store_true", default=None, help="Hide link URLs.")
    parser.add_argument("-I", "--no-images", action="store_true", default=None, help="Do not draw images.")
    place = parser.add_mutually_exclusive_group()
    place.add_argument(
        "-l", "--left",
        dest="placement",
        action="store_const",
        const="left",
        help="Put the paper on the left edge of the terminal.",
    )
    place.add_argument(
        "-r", "--right",
        dest="placement",
        action="store_const",
        const="right",
        help="Put the paper on the right edge of the terminal.",
    )
    parser.add_argument(
        "-s", "--syncat",
        dest="highlight",
        action="store_true",
        default=None,
        help="Highlight code blocks with syncat (must be installed).",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=None,
        help="Print the parsed document tree instead of the paper.",
    )
    parser.add_argument(
        "--style",
        choices=PRESETS,
        help="Style preset (default: default).",
    )
    parser.add_argument(
        "--stylesheet",
        type=Path,
        help="Extra style sheet whose rules override the preset.",
    )
    parser.add_argument(
        "--no-shadow",
        dest="shadow",
        action="store_false",
        default=None,
        help="Do not draw the drop shadow.",
    )
    parser.add_argument(
        "--list-styles",
        action="store_true",
        help="List available style presets and exit.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log diagnostics to stderr.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def _apply_args(config: PaperConfig, args: argparse.Namespace) -> PaperConfig:
    """Let every flag that was given override the loaded config."""
    for name in (
        "margin", "h_margin", "v_margin", "width", "plain", "tab_length",
        "hide_urls", "no_images", "placement", "highlight", "dev", "style",
        "stylesheet", "shadow",
    ):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)
    return config


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.list_styles:
        print("Available style presets:")
        for preset in PRESETS:
            print(f"  - {preset}")
        return 0

    config = _apply_args(load_config(), args)
    terminal_width = shutil.get_terminal_size((config.width + 1, 24)).columns

    try:
        converter = Converter(config, terminal_width=terminal_width)
    except (Md2PaperError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    status = 0
    sources = [Path(name) for name in args.files] or [None]
    for path in sources:
        try:
            if path is None:
                text, base_dir = sys.stdin.read(), Path.cwd()
            else:
                text, base_dir = read_source(path), path.parent
            if config.dev:
                sys.stdout.write(converter.dump_text(text) + "\n")
                continue
            grid = converter.render_text(text, base_dir=base_dir)
        except Md2PaperError as exc:
            # One unreadable file does not stop the others.
            print(f"Error: {exc}", file=sys.stderr)
            status = 1
            continue
        sys.stdout.write(grid.to_ansi())

    return status


if __name__ == "__main__":
    sys.exit(main())
