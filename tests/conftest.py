"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

# Re-export all fixtures from fixtures modules
from tests.fixtures.auth import *  # noqa: F401, F403


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    """Use the minimum bcrypt cost so hashing does not dominate test time."""
    monkeypatch.setattr("osmora.core.auth.password.BCRYPT_ROUNDS", 4)
