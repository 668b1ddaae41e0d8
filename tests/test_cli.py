"""Tests for the CLI module."""

from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

from md2paper import __version__
from md2paper.cli import main

FIXTURE_DIR = Path(__file__).parent / "fixtures"
SAMPLE_MD = FIXTURE_DIR / "sample.md"


@pytest.fixture(autouse=True)
def terminal(monkeypatch):
    """Pretend the terminal is 100 columns wide."""
    monkeypatch.setenv("COLUMNS", "100")
    monkeypatch.setenv("LINES", "40")


class TestCLIMain:
    """Test the main() entry point."""

    def test_list_styles(self, capsys):
        ret = main(["--list-styles"])
        assert ret == 0
        out = capsys.readouterr().out
        assert "default" in out
        assert "mono" in out

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert __version__ in capsys.readouterr().out

    def test_file_not_found(self, capsys):
        ret = main(["nonexistent.md"])
        assert ret == 1
        err = capsys.readouterr().err
        assert "not found" in err

    def test_render_sample(self, capsys):
        ret = main([str(SAMPLE_MD), "-I"])
        assert ret == 0
        out = capsys.readouterr().out
        assert "Paper Sample" in out
        assert "\x1b[" in out

    def test_paper_is_centered(self, tmp_path, capsys):
        md_file = tmp_path / "doc.md"
        md_file.write_text("Hello", encoding="utf-8")
        ret = main([str(md_file), "--style", "mono", "-w", "50", "-m", "1"])
        assert ret == 0
        rows = capsys.readouterr().out.splitlines()
        assert rows[1].startswith(" " * 25 + " Hello")

    def test_left_placement(self, tmp_path, capsys):
        md_file = tmp_path / "doc.md"
        md_file.write_text("Hello", encoding="utf-8")
        ret = main([str(md_file), "--style", "mono", "-l", "-m", "0"])
        assert ret == 0
        assert capsys.readouterr().out.splitlines()[0].startswith("Hello")

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "stdin", io.StringIO("# From stdin"))
        ret = main(["-l"])
        assert ret == 0
        assert "From stdin" in capsys.readouterr().out

    def test_dev_dumps_tree(self, capsys):
        ret = main([str(SAMPLE_MD), "--dev"])
        assert ret == 0
        out = capsys.readouterr().out
        assert out.startswith("document\n")
        assert "definition_list" in out

    def test_one_bad_file_does_not_stop_others(self, tmp_path, capsys):
        md_file = tmp_path / "doc.md"
        md_file.write_text("Still printed", encoding="utf-8")
        ret = main([str(tmp_path / "missing.md"), str(md_file)])
        assert ret == 1
        captured = capsys.readouterr()
        assert "Error:" in captured.err
        assert "Still printed" in captured.out

    def test_missing_stylesheet(self, tmp_path, capsys):
        ret = main(["--stylesheet", str(tmp_path / "nope.paper"), str(SAMPLE_MD)])
        assert ret == 1
        assert "style sheet" in capsys.readouterr().err

    def test_invalid_style_rejected(self):
        with pytest.raises(SystemExit):
            main(["--style", "neon"])

    def test_left_and_right_conflict(self):
        with pytest.raises(SystemExit):
            main(["-l", "-r"])

    def test_env_config(self, monkeypatch, capsys):
        monkeypatch.setenv("MD2PAPER_PLACEMENT", "sideways")
        ret = main([str(SAMPLE_MD)])
        assert ret == 1
        assert "placement" in capsys.readouterr().err
