"""
Configuration for md2paper.

Loaded from, in increasing priority:
1. Defaults (this file)
2. Config file ($XDG_CONFIG_HOME/md2paper/config.toml) if it exists
3. Environment variables (MD2PAPER_*)
4. CLI flags
"""

from __future__ import annotations

import logging
import os
import tomllib  # stdlib in 3.11+
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)


@dataclass
class PaperConfig:
    """Every setting that shapes a render."""
    margin: int = 6
    h_margin: Optional[int] = None  # overrides margin
    v_margin: Optional[int] = None  # overrides margin
    width: int = 92  # paper width, margins included
    tab_length: int = 4
    plain: bool = False
    hide_urls: bool = False
    no_images: bool = False
    placement: str = "center"  # left / center / right
    shadow: bool = True
    highlight: bool = False
    dev: bool = False
    style: str = "default"
    stylesheet: Optional[Path] = None  # extra sheet appended after the preset
    highlighter_command: list[str] = field(
        default_factory=lambda: ["syncat", "-l", "{language}", "-w", "{width}"]
    )


_TRUE = ("true", "1", "yes", "on")


def get_config_dir() -> Path:
    """Get the md2paper config directory, respecting XDG."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "md2paper"
    return Path.home() / ".config" / "md2paper"


def get_config_path() -> Path:
    return get_config_dir() / "config.toml"


def get_user_stylesheet_path() -> Path:
    """Style sheet whose rules are appended after every preset."""
    return get_config_dir() / "paper.style"


def load_config(path: Optional[Path] = None) -> PaperConfig:
    """Load config from *path* (default: :func:`get_config_path`) and the environment.

    An unreadable or invalid file is logged and ignored.
    """
    config = PaperConfig()
    path = path or get_config_path()

    if path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            config = _apply_toml(config, data)
        except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as exc:
            LOGGER.warning("Ignoring config file %s: %s", path, exc)

    return _apply_env(config)


def _apply_toml(config: PaperConfig, data: dict) -> PaperConfig:
    """Apply toml data to config.

    Keys may sit at the top level or in a ``[paper]`` table.
    """
    data = {**data, **data.get("paper", {})}
    for f in fields(config):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.name in ("h_margin", "v_margin", "margin", "width", "tab_length"):
            value = int(value)
        elif f.name in ("plain", "hide_urls", "no_images", "shadow", "highlight", "dev"):
            if not isinstance(value, bool):
                raise TypeError(f"{f.name} must be true or false")
        elif f.name == "stylesheet":
            value = Path(str(value)).expanduser()
        elif f.name == "highlighter_command":
            value = [str(part) for part in value]
        else:
            value = str(value)
        setattr(config, f.name, value)
    return config


def _apply_env(config: PaperConfig) -> PaperConfig:
    """Apply environment variable overrides."""
    env_map: dict[str, tuple[str, type]] = {
        "MD2PAPER_MARGIN": ("margin", int),
        "MD2PAPER_H_MARGIN": ("h_margin", int),
        "MD2PAPER_V_MARGIN": ("v_margin", int),
        "MD2PAPER_WIDTH": ("width", int),
        "MD2PAPER_TAB_LENGTH": ("tab_length", int),
        "MD2PAPER_PLAIN": ("plain", bool),
        "MD2PAPER_HIDE_URLS": ("hide_urls", bool),
        "MD2PAPER_NO_IMAGES": ("no_images", bool),
        "MD2PAPER_PLACEMENT": ("placement", str),
        "MD2PAPER_SHADOW": ("shadow", bool),
        "MD2PAPER_HIGHLIGHT": ("highlight", bool),
        "MD2PAPER_STYLE": ("style", str),
        "MD2PAPER_STYLESHEET": ("stylesheet", Path),
        "MD2PAPER_HIGHLIGHTER": ("highlighter_command", str.split),
    }

    for env_key, (attr, conv) in env_map.items():
        val = os.environ.get(env_key)
        if val is None:
            continue
        try:
            converted = val.lower() in _TRUE if conv is bool else conv(val)
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: expected %s", env_key, val, getattr(conv, "__name__", conv))
            continue
        setattr(config, attr, converted)

    return config
