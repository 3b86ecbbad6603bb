"""
Unit tests for command parsing and the message event handler chain.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from voicerecap.events import MessageEventHandler
from voicerecap.utils import parse_command

# -------------------------------------------------------------- #
# Command Parsing Tests
# -------------------------------------------------------------- #


@pytest.mark.unit
class TestParseCommand:
    def test_parses_command_and_arguments(self):
        assert parse_command("!Join  now please", "!") == ("join", ["now", "please"])

    def test_ignores_plain_messages(self):
        assert parse_command("join", "!") is None

    def test_ignores_bare_prefix(self):
        assert parse_command("!   ", "!") is None

    def test_supports_longer_prefixes(self):
        assert parse_command("vr!leave", "vr!") == ("leave", [])


# -------------------------------------------------------------- #
# Message Event Handler Tests
# -------------------------------------------------------------- #


@pytest.mark.unit
class TestMessageEventHandler:
    """Test filter-based dispatch."""

    async def test_handler_runs_when_filter_accepts(self):
        events = MessageEventHandler()
        handler = AsyncMock()
        events.register_handler(AsyncMock(return_value=True), handler)
        message = MagicMock()

        await events.process_message(message)

        handler.assert_awaited_once_with(message)

    async def test_handler_skipped_when_filter_rejects(self):
        events = MessageEventHandler()
        handler = AsyncMock()
        events.register_handler(AsyncMock(return_value=False), handler)

        await events.process_message(MagicMock())

        handler.assert_not_awaited()

    async def test_stop_propagation(self):
        events = MessageEventHandler()
        second = AsyncMock()
        events.register_handler(AsyncMock(return_value=True), AsyncMock(), pass_through=False)
        events.register_handler(AsyncMock(return_value=True), second)

        await events.process_message(MagicMock())

        second.assert_not_awaited()

    async def test_handler_returning_false_stops_propagation(self):
        events = MessageEventHandler()
        second = AsyncMock()
        events.register_handler(AsyncMock(return_value=True), AsyncMock(return_value=False))
        events.register_handler(AsyncMock(return_value=True), second)

        await events.process_message(MagicMock())

        second.assert_not_awaited()

    async def test_handler_error_does_not_stop_chain(self):
        events = MessageEventHandler()
        second = AsyncMock()
        events.register_handler(
            AsyncMock(return_value=True), AsyncMock(side_effect=RuntimeError("boom"))
        )
        events.register_handler(AsyncMock(return_value=True), second)

        await events.process_message(MagicMock())

        second.assert_awaited_once()
