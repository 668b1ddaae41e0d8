"""FastAPI web service that renders Markdown on terminal paper.

Endpoints::

    POST /render        Upload a .md file, receive the paper as text.
    POST /render/text   Send raw Markdown text, receive the paper as text.
    GET  /health        Health check.
    GET  /styles        List available style presets.

Both render endpoints answer ``text/plain``: ANSI-coloured by default, or
uncoloured with ``color=false``.

Run::

    uvicorn md2paper.server:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import PlainTextResponse

from md2paper import __version__
from md2paper.config import PaperConfig
from md2paper.converter import Converter
from md2paper.style_manager import PRESETS

LOGGER = logging.getLogger(__name__)

app = FastAPI(
    title="md2paper",
    description="Markdown to terminal paper rendering service",
    version=__version__,
)


def _render(markdown: str, *, style: str, width: int, plain: bool, color: bool) -> PlainTextResponse:
    if style not in PRESETS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown style {style!r}. Choose from: {', '.join(PRESETS)}",
        )
    if width < 1:
        raise HTTPException(status_code=400, detail="width must be positive")
    # Image paths would be resolved on the server, so images are never loaded.
    config = PaperConfig(style=style, width=width, plain=plain, placement="left", no_images=True)
    converter = Converter(config, terminal_width=width + 1)
    grid = converter.render_text(markdown)
    return PlainTextResponse(grid.to_ansi() if color else grid.to_plain())


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.get("/styles")
async def list_styles() -> dict[str, list[str]]:
    """List available style presets."""
    return {"presets": PRESETS}


@app.post("/render")
async def render_file(
    file: UploadFile = File(...),
    style: str = Form("default"),
    width: int = Form(92),
    plain: bool = Form(False),
    color: bool = Form(True),
    encoding: str = Form("utf-8"),
) -> PlainTextResponse:
    """Upload a Markdown file and receive the rendered paper.

    - **file**: Markdown file (.md)
    - **style**: Style preset name (default, dark, mono)
    - **width**: Paper width, margins included
    - **plain**: Treat the upload as plain text
    - **color**: Include ANSI colour escapes
    - **encoding**: Source file encoding
    """
    raw = await file.read()
    try:
        text = raw.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise HTTPException(status_code=400, detail=f"cannot decode upload: {exc}") from exc
    LOGGER.debug("Rendering upload %s (%d bytes)", file.filename, len(raw))
    return _render(text, style=style, width=width, plain=plain, color=color)


@app.post("/render/text")
async def render_text(
    markdown: str = Form(...),
    style: str = Form("default"),
    width: int = Form(92),
    plain: bool = Form(False),
    color: bool = Form(True),
) -> PlainTextResponse:
    """Send raw Markdown text and receive the rendered paper.

    - **markdown**: Markdown source text
    - **style**: Style preset name
    """
    return _render(markdown, style=style, width=width, plain=plain, color=color)
