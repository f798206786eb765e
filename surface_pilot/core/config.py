"""Application configuration settings."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


SurfaceKind = Literal["vnc", "adb"]

# Logical resolution and response cap per surface kind
DEFAULT_LOGICAL_SIZE: dict[str, tuple[int, int]] = {
    "vnc": (800, 600),
    "adb": (1000, 1000),
}
DEFAULT_MAX_ACTIONS: dict[str, int] = {
    "vnc": 20,
    "adb": 100,
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env.

    Uses Pydantic Settings 2.x. All fields are validated and typed.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PILOT_", extra="ignore")

    # Service Info
    service_name: str = "surface-pilot"
    service_version: str = "0.1.0"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3000

    # Which remote surface drives the agent
    surface_kind: SurfaceKind = "vnc"

    # Display protocol (VNC / RFB)
    vnc_host: str = "localhost"
    vnc_port: int = 5900
    vnc_password: Optional[str] = None
    connect_timeout: float = Field(default=30.0, description="Handshake budget in seconds")
    rfb_update_wait: float = Field(
        default=0.1,
        description="Seconds to wait for update rectangles after a capture request",
    )

    # Device bridge (adb)
    adb_container: Optional[str] = Field(
        default="bua-android-tablet",
        description="Docker container running adb; empty to call adb directly",
    )
    adb_serial: Optional[str] = None
    adb_binary: str = "adb"
    display_density: Optional[int] = 200
    boot_retries: int = 60
    boot_retry_interval: float = 2.0

    # Logical resolution exposed to the decision service (defaults per kind)
    logical_width: Optional[int] = None
    logical_height: Optional[int] = None
    max_actions: Optional[int] = None

    # Decision service (OpenAI-compatible chat completions)
    llm_base_url: str = "http://localhost:11434/v1"
    llm_api_key: str = ""
    llm_model: str = "bua"
    llm_temperature: float = 0.8
    llm_timeout: float = 120.0
    goal: str = "Continue without Google account."
    history_turns: int = 10

    # Agent loop tuning
    action_delay_ms: int = 150
    screenshot_delay_ms: int = 300
    error_backoff: float = 2.0
    reconnect_backoff: float = 5.0
    capture_interval: float = 0.1
    frame_source: Literal["surface", "cache"] = "surface"
    stop_timeout: float = 10.0

    # Autostart at process startup
    agent_autostart: bool = True
    agent_start_delay: float = 5.0
    agent_start_retry: float = 10.0

    # Logging
    log_level: str = "INFO"

    @property
    def logical_size(self) -> tuple[int, int]:
        """Logical resolution the decision service works in."""
        default_w, default_h = DEFAULT_LOGICAL_SIZE[self.surface_kind]
        return (self.logical_width or default_w, self.logical_height or default_h)

    @property
    def response_cap(self) -> int:
        """Maximum number of actions accepted in one response."""
        return self.max_actions or DEFAULT_MAX_ACTIONS[self.surface_kind]


settings = Settings()
