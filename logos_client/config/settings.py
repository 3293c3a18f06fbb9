"""
Settings for the bundled terminal application.

Values come from the environment (a .env file is loaded first) with
hard-coded defaults behind them. Invalid values fall back to the default
with a printed warning rather than failing start-up.

The SDK itself never reads these settings directly; host applications (such as
the bundled CLI) turn them into ``ClientOptions`` via ``Settings.to_client_options``.
"""

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

# Base directories
ROOT_DIR = Path.cwd()
LOG_DIR = Path(os.environ.get("LOG_DIR", ROOT_DIR / "logs"))
DATA_DIR = Path(os.environ.get("DATA_DIR", ROOT_DIR / "data"))

VALID_ROLES = ("doll", "dev", "guardian")
VALID_MODES = ("child", "senior")


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes", "y")


class ServerSettings(BaseModel):
    """Backend connection settings."""

    server_url: str = Field(
        default_factory=lambda: os.environ.get("LOGOS_SERVER_URL", "http://localhost:8000"),
        description="Logos backend URL"
    )

    api_key: Optional[str] = Field(
        default_factory=lambda: os.environ.get("LOGOS_API_KEY") or None,
        description="API key for commercial authentication"
    )

    device_id: Optional[str] = Field(
        default_factory=lambda: os.environ.get("LOGOS_DEVICE_ID") or None,
        description="Device identifier (generated and persisted when missing)"
    )

    role: str = Field(
        default_factory=lambda: os.environ.get("LOGOS_ROLE", "doll"),
        description="Device role reported in the handshake"
    )

    mode: str = Field(
        default_factory=lambda: os.environ.get("LOGOS_MODE", "child"),
        description="Persona mode"
    )

    auto_reconnect: bool = Field(
        default_factory=lambda: _env_bool("LOGOS_AUTO_RECONNECT", "true"),
        description="Whether the channel reconnects after an unexpected drop"
    )

    reconnect_attempts: int = Field(
        default_factory=lambda: int(os.environ.get("LOGOS_RECONNECT_ATTEMPTS", "5")),
        description="Maximum reconnection attempts"
    )

    @field_validator("role")
    @classmethod
    def role_must_be_valid(cls, v):
        """Validate that the role is a known device role."""
        if v not in VALID_ROLES:
            print(f"WARNING: Invalid role '{v}'. Using default 'doll'.")
            return "doll"
        return v

    @field_validator("mode")
    @classmethod
    def mode_must_be_valid(cls, v):
        """Validate that the mode is a known persona mode."""
        if v not in VALID_MODES:
            print(f"WARNING: Invalid mode '{v}'. Using default 'child'.")
            return "child"
        return v


class VadSettings(BaseModel):
    """Voice Activity Detection settings."""

    sensitivity: int = Field(
        default_factory=lambda: int(os.environ.get("LOGOS_VAD_SENSITIVITY", "5")),
        description="VAD sensitivity (1-10)"
    )

    auto_calibrate: bool = Field(
        default_factory=lambda: _env_bool("LOGOS_VAD_AUTO_CALIBRATE", "true"),
        description="Derive thresholds from the ambient noise floor"
    )

    timeout: int = Field(
        default_factory=lambda: int(os.environ.get("LOGOS_VAD_TIMEOUT", "700")),
        description="Silence duration in ms before an utterance is considered over"
    )

    @field_validator("sensitivity")
    @classmethod
    def validate_sensitivity(cls, v):
        """Validate that sensitivity is within the valid range."""
        if not 1 <= v <= 10:
            print(f"WARNING: VAD sensitivity {v} is outside valid range (1-10). Using 5.")
            return 5
        return v


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LoggingSettings(BaseModel):
    """Where and how the package logs."""

    level: str = Field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"),
        description="Package log level name"
    )

    console_enabled: bool = Field(
        default_factory=lambda: _env_bool("LOG_CONSOLE_ENABLED", "true"),
        description="Log to stderr"
    )

    file_enabled: bool = Field(
        default_factory=lambda: _env_bool("LOG_FILE_ENABLED", "false"),
        description="Write a rotating log file per session"
    )

    format: str = Field(
        default="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        description="Console record format"
    )

    detailed_format: str = Field(
        default="%(asctime)s %(levelname)-8s %(name)s [%(filename)s:%(lineno)d]: %(message)s",
        description="File record format, with source location"
    )

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v):
        """Upper-case the level; unknown names become INFO."""
        if v.upper() in LOG_LEVELS:
            return v.upper()
        print(f"WARNING: Unknown log level '{v}'. Using INFO.")
        return "INFO"


class Settings(BaseModel):
    """Main application settings."""

    # Application info
    app_name: str = Field(
        default="Logos Client",
        description="Application name"
    )

    app_version: str = Field(
        default="0.1.0",
        description="Application version"
    )

    # Sub-configurations
    server: ServerSettings = Field(default_factory=ServerSettings)
    vad: VadSettings = Field(default_factory=VadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    # Paths
    root_dir: Path = ROOT_DIR
    logs_dir: Path = LOG_DIR
    data_dir: Path = DATA_DIR

    # Runtime configs
    debug_mode: bool = Field(
        default_factory=lambda: _env_bool("DEBUG_MODE", "false"),
        description="Enable debug mode"
    )

    def __init__(self, **data: Any):
        """Initialize settings and create any required directories."""
        super().__init__(**data)
        self._create_required_directories()

    def _create_required_directories(self) -> None:
        """Create the session log directory when file logging is on."""
        if self.logging.file_enabled:
            session_log_dir = self.logs_dir / "sessions"
            session_log_dir.mkdir(parents=True, exist_ok=True)

    def get_session_log_path(self, session_id: str) -> Path:
        """Get path for session-specific log file."""
        return self.logs_dir / "sessions" / f"{session_id}.log"

    def get_store_path(self) -> Path:
        """Get path of the JSON key-value store used for the device identifier."""
        return self.data_dir / "logos_client.json"

    def to_client_options(self, **overrides: Any):
        """
        Build client options from these settings.

        Args:
            **overrides: Option fields that take precedence over the settings

        Returns:
            ClientOptions: Options ready to pass to ``LogosClient``
        """
        from logos_client.config.options import ClientOptions, VadOptions

        values = {
            "server_url": self.server.server_url,
            "api_key": self.server.api_key,
            "device_id": self.server.device_id,
            "role": self.server.role,
            "mode": self.server.mode,
            "vad": VadOptions(
                sensitivity=self.vad.sensitivity,
                auto_calibrate=self.vad.auto_calibrate,
                timeout=self.vad.timeout,
            ),
            "auto_reconnect": self.server.auto_reconnect,
            "reconnect_attempts": self.server.reconnect_attempts,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ClientOptions(**values)
