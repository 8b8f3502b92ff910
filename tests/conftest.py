"""Shared fixtures for eisenbox tests."""

import pytest

from eisenbox.policy import default_policy


@pytest.fixture(autouse=True)
def _no_sops(monkeypatch):
    """Ensure tests never try to invoke SOPS."""
    monkeypatch.setenv("EISENBOX_USE_SOPS", "false")


@pytest.fixture()
def policy():
    """The built-in category/quadrant policy."""
    return default_policy()
