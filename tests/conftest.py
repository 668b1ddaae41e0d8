"""Shared fixtures: keep the user's config and environment out of the tests."""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point XDG_CONFIG_HOME at an empty directory and drop MD2PAPER_* overrides."""
    config_home = tmp_path / "config"
    config_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    for key in list(os.environ):
        if key.startswith("MD2PAPER_"):
            monkeypatch.delenv(key)
    return config_home
