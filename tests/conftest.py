from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


@pytest.fixture(autouse=True)
def _isolated_provider_config(monkeypatch, tmp_path):
    # Keep a developer's ~/.nstakeover/providers.json or env out of the tests.
    monkeypatch.delenv("NSTAKEOVER_PROVIDERS", raising=False)
    monkeypatch.setattr("nstakeover.engine.providers.PROVIDERS_PATH", tmp_path / "missing-providers.json")
