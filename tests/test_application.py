"""
Tests for the terminal application and its command-line interface.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from logos_client.application import Application, main, parse_arguments
from logos_client.client import LogosClient
from logos_client.config.options import ClientOptions
from logos_client.domain.session.state import PersonaMode, SessionStatus
from logos_client.events.event_interface import EventType, TextEvent
from logos_client.presentation.cli import CliInterface
from logos_client.services.storage import MemoryStore


@pytest.fixture
def options():
    return ClientOptions(server_url="http://localhost:8000")


@pytest.fixture
def client(options, channel, microphone, encoder_factory):
    return LogosClient(
        options,
        microphone=microphone,
        encoder_factory=encoder_factory,
        store=MemoryStore(),
        channel=channel,
    )


@pytest.fixture
def cli(client):
    return CliInterface(client, color_output=False)


def test_parse_command(cli):
    """Commands start with a slash and may carry arguments."""
    assert cli.parse_command("/mode Senior ") == (True, "mode", "Senior")
    assert cli.parse_command("/HELP") == (True, "help", None)
    assert cli.parse_command("hello there") == (False, None, None)
    assert cli.parse_command("") == (False, None, None)


def test_process_command_builtins(cli, capsys):
    """help and status are handled by the interface itself."""
    assert cli.process_command("help") is True
    assert cli.process_command("status") is True

    output = capsys.readouterr().out
    assert "/listen" in output
    assert "Status: DISCONNECTED" in output


def test_process_command_quit(cli):
    """quit and exit end the input loop."""
    assert cli.process_command("quit") is False
    assert cli.process_command("exit") is False


def test_process_command_callback(cli):
    """Registered commands receive their arguments."""
    callback = MagicMock()

    assert cli.process_command("mode", "senior", {"mode": callback}) is True

    callback.assert_called_once_with("senior")


def test_process_command_callback_error(cli, capsys):
    """A failing command is reported, not raised."""
    callback = MagicMock(side_effect=ValueError("Usage: /mode <child|senior>"))

    assert cli.process_command("mode", "pirate", {"mode": callback}) is True

    assert "Usage: /mode" in capsys.readouterr().out


def test_unknown_command(cli, capsys):
    """Unknown commands print a hint."""
    assert cli.process_command("dance") is True

    assert "Unknown command: /dance" in capsys.readouterr().out


def test_streamed_reply(cli, client, capsys):
    """Text chunks are streamed on one line until the final chunk."""
    client.event_bus.emit(EventType.TEXT, TextEvent(ai_text="Once ", is_final=False, user_text="story please"))
    client.event_bus.emit(EventType.TEXT, TextEvent(ai_text="upon a time.", is_final=True))

    output = capsys.readouterr().out
    assert "You: story please" in output
    assert "Logos: Once upon a time.\n" in output


def test_cleanup_unregisters_handlers(cli, client):
    """Cleanup removes every handler the interface registered."""
    cli._cleanup_event_handlers()

    for event_type, handler in cli._registered_handlers:
        assert handler not in client.event_bus.handlers(event_type)


def test_parse_arguments():
    """Command-line flags map to overrides."""
    args = parse_arguments(["--server-url", "https://logos.example", "--mode", "senior", "--no-listen"])

    assert args.server_url == "https://logos.example"
    assert args.mode == "senior"
    assert args.role is None
    assert args.no_listen is True


def test_main_rejects_invalid_configuration():
    """An invalid configuration exits with status 2."""
    with patch("logos_client.application.settings") as settings:
        settings.debug_mode = False
        settings.to_client_options.side_effect = ValueError("server_url is required")

        assert main([]) == 2


def test_change_mode(options, client):
    """The mode command switches the persona."""
    app = Application(options, client=client)

    app._change_mode(" Senior")

    assert client.current_mode == PersonaMode.SENIOR


def test_change_mode_rejects_unknown(options, client):
    """An unknown mode raises with usage help."""
    app = Application(options, client=client)

    with pytest.raises(ValueError, match="Usage"):
        app._change_mode("pirate")


@pytest.mark.asyncio
async def test_start_connects_and_listens(options, client, microphone):
    """Starting connects and begins listening."""
    app = Application(options, client=client)

    assert await app.start() is True

    assert client.status == SessionStatus.LISTENING
    assert len(microphone.streams) == 1

    await app.stop()
    assert client.status == SessionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_start_without_listening(options, client, microphone):
    """With auto-listen off the application only connects."""
    app = Application(options, auto_listen=False, client=client)

    assert await app.start() is True

    assert client.status == SessionStatus.IDLE
    assert microphone.streams == []

    await app.stop()


@pytest.mark.asyncio
async def test_start_fails_when_connect_fails(options):
    """A failed connection is reported to the caller."""
    client = MagicMock()
    client.connect = AsyncMock(return_value=False)
    client.start_listening = AsyncMock()
    client.status = SessionStatus.DISCONNECTED
    app = Application(options, client=client)

    assert await app.start() is False
    client.start_listening.assert_not_awaited()


@pytest.mark.asyncio
async def test_resume_listening_after_reply(options):
    """Listening resumes when a reply finishes."""
    client = MagicMock()
    client.status = SessionStatus.LISTENING
    client.start_listening = AsyncMock(return_value=True)
    app = Application(options, client=client)

    app._handle_status(SessionStatus.THINKING)
    app._handle_status(SessionStatus.IDLE)
    await app.task_manager.cancel_all()

    client.start_listening.assert_called_once()


@pytest.mark.asyncio
async def test_no_resume_from_listening(options):
    """A discarded recording does not trigger an extra start."""
    client = MagicMock()
    client.status = SessionStatus.LISTENING
    client.start_listening = AsyncMock(return_value=True)
    app = Application(options, client=client)

    app._handle_status(SessionStatus.IDLE)

    client.start_listening.assert_not_called()
