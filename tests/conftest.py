"""Test fixtures for the PinDL test suite."""

from __future__ import annotations

import pytest

from pindl.config import get_settings
from tests.utils import FakeSession


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep environment flags and cached settings from leaking between tests."""

    for name in ("ENABLE_FFMPEG", "PINDL_ENABLE_FFMPEG", "PINDL_OUTPUT_DIR", "PINDL_MAX_PAGES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_session():
    return FakeSession()
