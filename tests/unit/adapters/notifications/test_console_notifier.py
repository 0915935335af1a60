"""Tests for the console notifier."""

import pytest

from osmora.adapters.notifications.console import ConsoleNotifier
from osmora.core.auth import AuthNotifier


class TestConsoleNotifier:
    """Test ConsoleNotifier."""

    def test_implements_protocol(self) -> None:
        """Should satisfy AuthNotifier."""
        assert isinstance(ConsoleNotifier(), AuthNotifier)

    @pytest.mark.asyncio
    async def test_prints_verification_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        """The code is printed so developers can use it."""
        assert await ConsoleNotifier().send_verification_code("a@example.com", "123456", 24)

        out = capsys.readouterr().out
        assert "a@example.com" in out
        assert "123456" in out
        assert "24 hours" in out

    @pytest.mark.asyncio
    async def test_prints_reset_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Reset codes are printed with their TTL."""
        assert await ConsoleNotifier().send_reset_code("a@example.com", "654321", 10)

        out = capsys.readouterr().out
        assert "PASSWORD RESET" in out
        assert "654321" in out

    @pytest.mark.asyncio
    async def test_welcome(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Welcome notices are printed."""
        assert await ConsoleNotifier().send_welcome("a@example.com", "Ada")
        assert "Hello Ada" in capsys.readouterr().out
