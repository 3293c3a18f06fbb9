"""
Main application for the Logos client.

This module brings together the client, persistent device identity and the
command-line interface into a runnable terminal application.
"""

import argparse
import asyncio
from typing import Callable, Dict, Optional

from logos_client.client import LogosClient
from logos_client.config import settings
from logos_client.config.logging_config import LoggingManager, get_logger
from logos_client.config.options import ClientOptions
from logos_client.domain.session.state import PersonaMode, SessionStatus
from logos_client.presentation.cli import CliInterface, print_cli_header
from logos_client.services.storage import JsonFileStore
from logos_client.utils.async_helpers import TaskManager
from logos_client.utils.error_handling import AppError, ErrorSeverity

logger = get_logger(__name__)

# Statuses after which the application listens again on its own
RESUME_FROM = (SessionStatus.THINKING, SessionStatus.SPEAKING)


class Application:
    """
    Terminal host for ``LogosClient``.

    Connects, listens hands-free and prints what the backend sends back.
    """

    def __init__(
        self,
        options: ClientOptions,
        auto_listen: bool = True,
        client: Optional[LogosClient] = None,
    ):
        """
        Initialize the application.

        Args:
            options: Client options
            auto_listen: Whether to listen after connecting and after each reply
            client: Optional pre-built client (defaults to one with a JSON device store)
        """
        self.auto_listen = auto_listen
        self.client = client or LogosClient(options, store=JsonFileStore(settings.get_store_path()))
        self.cli = CliInterface(self.client, show_timestamps=settings.debug_mode)
        self.task_manager = TaskManager("application")
        self._last_status = self.client.status

        self.client.on("status", self._handle_status)

        logger.info("Application initialized")

    async def start(self) -> bool:
        """
        Connect and, if enabled, start listening.

        Returns:
            bool: True if the client connected
        """
        logger.info("Starting application")

        if not await self.client.connect():
            logger.error("Failed to connect to the Logos server")
            return False

        if self.auto_listen:
            await self.client.start_listening()

        logger.info("Application started successfully")
        return True

    async def stop(self) -> None:
        """Disconnect and clean up."""
        logger.info("Stopping application")

        try:
            await self.client.disconnect()
            await self.task_manager.cancel_all()
            logger.info("Application stopped")
        except Exception as e:
            error = AppError(
                f"Error during application shutdown: {str(e)}",
                severity=ErrorSeverity.ERROR,
                cause=e
            )
            error.log()

    async def run(self) -> None:
        """Run the application until the user quits."""
        print_cli_header(settings.app_version)

        if not await self.start():
            logger.error("Application failed to start")
            await self.stop()
            return

        try:
            await self.cli.run_input_loop(
                self._get_command_handlers(),
                text_callback=self._send_text
            )
        finally:
            await self.stop()

    def _get_command_handlers(self) -> Dict[str, Callable]:
        """
        Get handlers for CLI commands.

        Returns:
            Dict of command handlers
        """
        return {
            "listen": lambda _: self.task_manager.create_task(self.client.start_listening(), "start_listening"),
            "stop": lambda _: self.client.stop_listening(),
            "mode": self._change_mode,
        }

    def _send_text(self, text: str) -> None:
        self.task_manager.create_task(self.client.send_text(text), "send_text")

    def _change_mode(self, args: Optional[str]) -> None:
        """
        Switch the persona mode.

        Args:
            args: The mode name
        """
        try:
            mode = PersonaMode((args or "").strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in PersonaMode)
            raise ValueError(f"Usage: /mode <{valid.replace(', ', '|')}>") from None

        self.client.update_settings({"mode": mode.value})
        logger.info(f"Persona mode set to {mode.value}")

    def _handle_status(self, status: SessionStatus) -> None:
        """
        Resume listening once a reply has been delivered.

        Args:
            status: The new status
        """
        previous, self._last_status = self._last_status, status
        if self.auto_listen and status == SessionStatus.IDLE and previous in RESUME_FROM:
            self.task_manager.create_task(self.client.start_listening(), "resume_listening")


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Logos voice client")

    parser.add_argument(
        "--server-url",
        type=str,
        default=None,
        help="Logos server URL (default: LOGOS_SERVER_URL)"
    )

    parser.add_argument(
        "--api-key",
        type=str,
        default=None,
        help="API key (default: LOGOS_API_KEY)"
    )

    parser.add_argument(
        "--role",
        choices=["doll", "dev", "guardian"],
        default=None,
        help="Device role"
    )

    parser.add_argument(
        "--mode",
        choices=["child", "senior"],
        default=None,
        help="Persona mode"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level"
    )

    parser.add_argument(
        "--no-listen",
        action="store_true",
        help="Do not start listening automatically"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )

    return parser.parse_args(argv)


async def run_application(options: ClientOptions, auto_listen: bool = True) -> None:
    """
    Run the application with the given options.

    Args:
        options: Client options
        auto_listen: Whether to listen automatically
    """
    app = Application(options, auto_listen=auto_listen)
    await app.run()


def main(argv=None) -> int:
    """
    Entry point for running the application from the command line.

    Returns:
        int: Exit code (0 for success, non-zero for error)
    """
    args = parse_arguments(argv)

    if args.debug:
        settings.debug_mode = True

    log_level = "DEBUG" if settings.debug_mode else args.log_level
    if log_level:
        LoggingManager.setup_logging(level=log_level)

    try:
        options = settings.to_client_options(
            server_url=args.server_url,
            api_key=args.api_key,
            role=args.role,
            mode=args.mode,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        asyncio.run(run_application(options, auto_listen=not args.no_listen))
        return 0
    except KeyboardInterrupt:
        logger.info("Application terminated by user")
        return 0
    except Exception as e:
        logger.critical(f"Fatal error: {e}")
        return 1
