"""
Client options for ``LogosClient``.

All defaults are resolved here, once, when the options object is built.
Nothing downstream falls back to its own defaults.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from logos_client.config.logging_config import get_logger

logger = get_logger(__name__)

MIN_SENSITIVITY = 1
MAX_SENSITIVITY = 10


class VadOptions(BaseModel):
    """Voice Activity Detection options."""

    model_config = ConfigDict(frozen=True)

    sensitivity: int = Field(
        default=5,
        description="Sensitivity 1-10; higher values lower the fixed thresholds"
    )

    auto_calibrate: bool = Field(
        default=True,
        description="Derive thresholds from the background noise floor"
    )

    timeout: int = Field(
        default=700,
        gt=0,
        description="Silence duration (ms) before concluding speech"
    )

    @field_validator("sensitivity")
    @classmethod
    def clamp_sensitivity(cls, v):
        """Clamp sensitivity into its valid range."""
        clamped = max(MIN_SENSITIVITY, min(MAX_SENSITIVITY, v))
        if clamped != v:
            logger.warning(f"VAD sensitivity {v} is outside valid range (1-10). Using {clamped}.")
        return clamped


class ClientOptions(BaseModel):
    """Initialization options for ``LogosClient``."""

    model_config = ConfigDict(frozen=True)

    server_url: str = Field(description="Backend server URL")

    api_key: Optional[str] = Field(
        default=None,
        description="API key (for commercial authentication)"
    )

    device_id: Optional[str] = Field(
        default=None,
        description="Device ID, generated and persisted if not provided"
    )

    role: Literal["doll", "dev", "guardian"] = Field(
        default="doll",
        description="Device role"
    )

    mode: Literal["child", "senior"] = Field(
        default="child",
        description="Persona mode"
    )

    vad: VadOptions = Field(default_factory=VadOptions)

    auto_reconnect: bool = Field(
        default=True,
        description="Reconnect automatically after an unexpected drop"
    )

    reconnect_attempts: int = Field(
        default=5,
        ge=0,
        description="Reconnection attempts before giving up"
    )

    reconnect_delay: float = Field(
        default=1.0,
        ge=0,
        description="Fixed delay between reconnection attempts, in seconds"
    )

    @field_validator("server_url")
    @classmethod
    def server_url_must_not_be_empty(cls, v):
        """Validate that a server URL is provided."""
        if not v or not v.strip():
            raise ValueError("server_url is required")
        return v.strip()

    def __repr__(self) -> str:
        masked = "********" if self.api_key else None
        return (
            f"ClientOptions(server_url={self.server_url!r}, api_key={masked!r}, "
            f"device_id={self.device_id!r}, role={self.role!r}, mode={self.mode!r}, "
            f"vad={self.vad!r}, auto_reconnect={self.auto_reconnect}, "
            f"reconnect_attempts={self.reconnect_attempts})"
        )

    __str__ = __repr__
