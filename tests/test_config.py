"""Tests for configuration loading."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from md2paper.config import (
    PaperConfig,
    get_config_path,
    get_user_stylesheet_path,
    load_config,
)


class TestPaths:
    def test_respects_xdg(self, isolated_config: Path) -> None:
        assert get_config_path() == isolated_config / "md2paper" / "config.toml"
        assert get_user_stylesheet_path() == isolated_config / "md2paper" / "paper.style"

    def test_home_fallback(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("XDG_CONFIG_HOME")
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_config_path() == tmp_path / ".config" / "md2paper" / "config.toml"


class TestLoadConfig:
    def test_defaults_without_file(self) -> None:
        assert load_config() == PaperConfig()

    def test_toml_top_level_and_table(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text(
            'width = 72\nstyle = "dark"\n\n[paper]\nhide_urls = true\nstylesheet = "~/x.paper"\n',
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.width == 72
        assert config.style == "dark"
        assert config.hide_urls is True
        assert config.stylesheet == Path("~/x.paper").expanduser()

    def test_default_location(self, isolated_config: Path) -> None:
        (isolated_config / "md2paper").mkdir()
        get_config_path().write_text("margin = 2\n", encoding="utf-8")
        assert load_config().margin == 2

    def test_invalid_file_is_ignored(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = tmp_path / "config.toml"
        path.write_text("width = [", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="md2paper.config"):
            config = load_config(path)
        assert config == PaperConfig()
        assert "Ignoring config file" in caplog.text

    def test_wrong_type_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('plain = "sometimes"\n', encoding="utf-8")
        assert load_config(path).plain is False


class TestEnvironment:
    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.toml"
        path.write_text("width = 72\n", encoding="utf-8")
        monkeypatch.setenv("MD2PAPER_WIDTH", "60")
        assert load_config(path).width == 60

    def test_booleans(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MD2PAPER_NO_IMAGES", "yes")
        monkeypatch.setenv("MD2PAPER_SHADOW", "0")
        config = load_config()
        assert config.no_images is True
        assert config.shadow is False

    def test_highlighter_command(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MD2PAPER_HIGHLIGHTER", "bat --language {language}")
        assert load_config().highlighter_command == ["bat", "--language", "{language}"]

    def test_bad_number_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MD2PAPER_MARGIN", "wide")
        assert load_config().margin == 6
