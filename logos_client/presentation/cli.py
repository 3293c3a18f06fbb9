"""
Command-line interface for the Logos client.

This module provides a terminal interface that renders client events
(status, streamed text, speech to play, errors) and turns typed input into
commands or text messages.
"""

import asyncio
import os
import signal
import sys
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from logos_client.client import LogosClient
from logos_client.config import settings
from logos_client.config.logging_config import get_logger
from logos_client.domain.session.state import SessionStatus
from logos_client.events.event_interface import AudioEvent, EventType, SettingsEvent, TextEvent
from logos_client.utils.error_handling import AppError

logger = get_logger(__name__)

ANSI_CODES = {
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
    "RED": "\033[31m",
    "GREEN": "\033[32m",
    "YELLOW": "\033[33m",
    "BLUE": "\033[34m",
    "MAGENTA": "\033[35m",
    "CYAN": "\033[36m",
    "GRAY": "\033[90m",
}

COMMAND_HELP = (
    ("/listen", "Start listening"),
    ("/stop", "Stop listening"),
    ("/mode <child|senior>", "Switch persona mode"),
    ("/status", "Show connection and session status"),
    ("/help", "Show this list"),
    ("/quit", "Leave the client"),
)


class CliInterface:
    """
    Terminal front end for a ``LogosClient``.

    Lines starting with '/' are commands; every other line goes to the
    backend as typed text. AI replies are streamed onto a single line.
    """

    def __init__(
        self,
        client: LogosClient,
        show_timestamps: bool = False,
        color_output: bool = True,
    ):
        """
        Set up the interface and subscribe to the client's events.

        Args:
            client: The client to render
            show_timestamps: Prefix every line with the local time
            color_output: Use ANSI colors when the terminal allows it
        """
        self.client = client
        self.show_timestamps = show_timestamps
        self.color_output = color_output and self._terminal_has_color()

        for name, code in ANSI_CODES.items():
            setattr(self, name, code if self.color_output else "")

        # True while an AI reply is being written on the current line
        self._streaming = False

        self.shutdown_event = asyncio.Event()
        self._stopping = False

        self._registered_handlers: List[Tuple[EventType, Callable]] = []
        for event_type, handler in (
            (EventType.CONNECTED, self._on_connected),
            (EventType.DISCONNECTED, self._on_disconnected),
            (EventType.STATUS, self._on_status),
            (EventType.TEXT, self._on_text),
            (EventType.AUDIO, self._on_audio),
            (EventType.SETTINGS, self._on_settings),
            (EventType.ERROR, self._on_error),
        ):
            self.client.on(event_type, handler)
            self._registered_handlers.append((event_type, handler))

    # Event rendering

    def _on_connected(self) -> None:
        self._print_line(f"{self.GREEN}Connected{self.RESET} {self.GRAY}(device {self.client.device_id}){self.RESET}")

    def _on_disconnected(self) -> None:
        self._print_line(f"{self.GRAY}Disconnected{self.RESET}")

    def _on_status(self, status: SessionStatus) -> None:
        labels = {
            SessionStatus.DISCONNECTED: f"{self.GRAY}Disconnected{self.RESET}",
            SessionStatus.CONNECTING: f"{self.YELLOW}Connecting...{self.RESET}",
            SessionStatus.IDLE: f"{self.GRAY}Idle{self.RESET}",
            SessionStatus.LISTENING: f"{self.BLUE}Listening...{self.RESET}",
            SessionStatus.THINKING: f"{self.YELLOW}Thinking...{self.RESET}",
            SessionStatus.SPEAKING: f"{self.GREEN}Speaking...{self.RESET}",
        }
        # Don't break a reply mid-line for status noise
        if not self._streaming:
            self._print_line(labels.get(status, status.value))

    def _on_text(self, event: TextEvent) -> None:
        """
        Append a chunk of the AI reply.

        The user's transcript, when present, is shown once before the reply
        starts. The final chunk ends the line.
        """
        if not self._streaming:
            if event.user_text:
                self._print_line(f"{self.BOLD}{self.BLUE}You: {self.RESET}{event.user_text}")
            self._write(f"{self._stamp()}{self.BOLD}{self.GREEN}Logos: {self.RESET}", end="", flush=True)
            self._streaming = True

        self._write(event.ai_text, end="", flush=True)

        if event.is_final:
            self._write("")
            self._streaming = False

    def _on_audio(self, event: AudioEvent) -> None:
        kind = "Intercom" if event.is_intercom else "Speak"
        self._print_line(f"{self.MAGENTA}[{kind} p{event.priority}]{self.RESET} {event.text}")

    def _on_settings(self, event: SettingsEvent) -> None:
        self._print_line(f"{self.CYAN}Settings updated:{self.RESET} {event.to_wire()}")

    def _on_error(self, error: AppError) -> None:
        code = error.error_code or type(error).__name__
        self._print_line(f"{self.BOLD}{self.RED}Error ({code}): {self.RESET}{error.message}")

    # Output helpers

    def _print_line(self, text: str) -> None:
        """Print a full line, closing any reply that is still streaming."""
        if self._streaming:
            self._write("")
            self._streaming = False
        self._write(f"{self._stamp()}{text}")

    def _stamp(self) -> str:
        if not self.show_timestamps:
            return ""
        return f"{self.GRAY}[{time.strftime('%H:%M:%S')}] {self.RESET}"

    @staticmethod
    def _terminal_has_color() -> bool:
        # https://no-color.org/
        if os.environ.get("NO_COLOR"):
            return False
        if sys.platform == "win32" and "ANSICON" not in os.environ:
            return False
        return bool(getattr(sys.stdout, "isatty", None) and sys.stdout.isatty())

    def _write(self, *args, **kwargs) -> None:
        """print() that tolerates a closed or broken stdout."""
        try:
            print(*args, **kwargs)
        except (IOError, BrokenPipeError) as e:
            logger.debug(f"Could not write to stdout: {e}")

    def display_welcome_message(self) -> None:
        self._write(f"\n{self.BOLD}{self.CYAN}=== {settings.app_name} ==={self.RESET}")
        self._write(f"{self.GRAY}Version: {settings.app_version}{self.RESET}")
        self._write(f"{self.GRAY}Speak naturally or type a message; /help lists the commands{self.RESET}\n")

    def display_help(self) -> None:
        self._write(f"\n{self.BOLD}Commands:{self.RESET}")
        for usage, description in COMMAND_HELP:
            self._write(f"  {self.BOLD}{usage}{self.RESET} - {description}")
        self._write("")

    def display_status(self) -> None:
        """Show the client's current state on one line."""
        self._print_line(
            f"Status: {self.client.status.value} | "
            f"Connected: {'yes' if self.client.is_connected else 'no'} | "
            f"Mode: {self.client.current_mode.value} | "
            f"Noise floor: {self.client.noise_floor:.1f}"
        )

    # Input handling

    def parse_command(self, text: str) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Split a line into command and arguments.

        Args:
            text: The raw input line

        Returns:
            Tuple of (is_command, command, args); command is lower-cased
        """
        text = (text or "").strip()
        if not text.startswith("/"):
            return False, None, None

        name, _, rest = text[1:].partition(" ")
        return True, name.lower(), rest.strip() or None

    def process_command(
        self,
        command: str,
        args: Optional[str] = None,
        command_callbacks: Optional[Dict[str, Callable]] = None
    ) -> bool:
        """
        Run one command.

        ``help`` and ``status`` are built in; anything else is looked up in
        ``command_callbacks``. A callback that raises is reported on screen.

        Returns:
            False when the user asked to quit, True otherwise
        """
        if command in ("quit", "exit"):
            self._write("Goodbye.")
            return False

        builtins = {"help": self.display_help, "status": self.display_status}
        if command in builtins:
            builtins[command]()
            return True

        callback = (command_callbacks or {}).get(command)
        if callback is None:
            self._write(f"{self.YELLOW}Unknown command: /{command}{self.RESET} (try {self.BOLD}/help{self.RESET})")
            return True

        try:
            callback(args)
        except Exception as e:
            logger.error(f"Command /{command} failed: {e}")
            self._write(f"{self.RED}{e}{self.RESET}")
        return True

    async def run_input_loop(
        self,
        command_callbacks: Optional[Dict[str, Callable]] = None,
        text_callback: Optional[Callable[[str], None]] = None
    ) -> None:
        """
        Read stdin until the user quits, stdin closes or a signal arrives.

        Args:
            command_callbacks: Handlers for application commands, keyed by name
            text_callback: Receives every non-command line
        """
        self.display_welcome_message()
        self._install_signal_handlers()

        async def read_lines():
            while not self.shutdown_event.is_set():
                try:
                    line = (await asyncio.to_thread(input)).strip()
                except EOFError:
                    logger.info("stdin closed, shutting down")
                    break

                if not line:
                    continue

                is_command, command, args = self.parse_command(line)
                if not is_command:
                    if text_callback is not None:
                        text_callback(line)
                elif not self.process_command(command, args, command_callbacks):
                    break

            self.shutdown_event.set()

        reader = asyncio.create_task(read_lines())
        try:
            await self.shutdown_event.wait()
        finally:
            if not reader.done():
                reader.cancel()
                try:
                    await reader
                except asyncio.CancelledError:
                    pass
            self._cleanup_event_handlers()

    def _install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to a clean shutdown (main thread only)."""
        if threading.current_thread() is not threading.main_thread():
            return

        signals = (signal.SIGINT, signal.SIGTERM)
        try:
            loop = asyncio.get_running_loop()
            for sig in signals:
                loop.add_signal_handler(sig, self._request_shutdown, sig)
        except (NotImplementedError, RuntimeError):
            # No loop signal support on Windows
            for sig in signals:
                signal.signal(sig, lambda s, _frame: self._request_shutdown(s))

    def _request_shutdown(self, sig: int) -> None:
        if self._stopping:
            return
        self._stopping = True
        logger.info(f"Received signal {sig}, shutting down")
        self.shutdown_event.set()

    def _cleanup_event_handlers(self) -> None:
        """Unsubscribe everything this interface registered."""
        for event_type, handler in self._registered_handlers:
            self.client.off(event_type, handler)
        self._registered_handlers = []


def print_cli_header(version: str = "0.1.0") -> None:
    """Print the banner shown at start-up."""
    width = 46
    rows = ("Logos Client", f"Version: {version}", "Voice interaction client")
    border = "+" + "-" * width + "+"
    print("\n".join([border] + [f"| {row.ljust(width - 1)}|" for row in rows] + [border]))
