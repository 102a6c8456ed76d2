"""
Configuration management for procedure-app.

Handles environment variables, defaults, and configuration validation
for the server, the procedure runtime and the browser scenarios.
"""

import os
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_PORT = 9732
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARN", "ERROR"]


@dataclass
class Config:
    """Configuration class for procedure-app with environment variable support."""

    # Environment detection
    ci_mode: bool = field(default=False)

    # Browser settings
    headless_mode: Optional[bool] = field(default=None)
    expect_timeout_ms: int = field(default=5000)

    # Logging configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")

    # Server settings
    host: str = field(default="localhost")
    port: int = field(default=DEFAULT_PORT)
    max_sessions: int = field(default=100)

    # Delay before the asynchronous message port answers, in seconds
    async_port_delay: float = field(default=0.3)

    # Directory paths
    logs_dir: Path = field(default_factory=lambda: Path.cwd() / "logs")
    artifacts_dir: Path = field(default_factory=lambda: Path.cwd() / "artifacts")

    def __post_init__(self):
        """Apply environment overrides while respecting explicit constructor args."""
        ci_env = os.getenv("CI", "").lower() == "true"
        if ci_env and self.ci_mode is False:
            self.ci_mode = True

        headless_env = os.getenv("PROCEDURE_APP_HEADLESS")
        if headless_env is not None:
            self.headless_mode = headless_env.lower() == "true"

        log_env = os.getenv("PROCEDURE_APP_LOG_LEVEL")
        if log_env:
            self.log_level = log_env
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            self.log_level = "INFO"
        else:
            self.log_level = self.log_level.upper()

        if self.ci_mode and self.log_format == "text":
            self.log_format = "json"

        host_env = os.getenv("PROCEDURE_APP_HOST")
        if host_env:
            self.host = host_env

        port_env = os.getenv("PROCEDURE_APP_PORT")
        if port_env is not None:
            try:
                self.port = int(port_env)
            except ValueError:
                pass

        delay_env = os.getenv("PROCEDURE_APP_ASYNC_DELAY")
        if delay_env is not None:
            try:
                self.async_port_delay = max(0.0, float(delay_env))
            except ValueError:
                pass

    @property
    def is_ci_mode(self) -> bool:
        """Check if running in CI environment."""
        return self.ci_mode

    @property
    def debug_enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self.log_level == "DEBUG"

    @property
    def base_url(self) -> str:
        """URL the server is reachable at."""
        return f"http://{self.host}:{self.port}"

    def get_effective_headless_mode(self) -> bool:
        """Get effective headless mode based on CI and override settings."""
        if self.headless_mode is not None:
            return self.headless_mode
        return self.ci_mode

    def get_log_file_path(self) -> Path:
        """Get the main log file path."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        return self.logs_dir / "procedure-app.log"

    def get_debug_log_dir(self) -> Path:
        """Get the debug log directory path."""
        debug_dir = self.logs_dir / "debug"
        debug_dir.mkdir(parents=True, exist_ok=True)
        return debug_dir

    def get_screenshot_dir(self) -> Path:
        """Directory failed scenarios write their screenshots to."""
        screenshots = self.artifacts_dir / "screenshots"
        screenshots.mkdir(parents=True, exist_ok=True)
        return screenshots

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging."""
        return {
            "ci_mode": self.ci_mode,
            "headless_mode": self.headless_mode,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "host": self.host,
            "port": self.port,
            "max_sessions": self.max_sessions,
            "async_port_delay": self.async_port_delay,
            "expect_timeout_ms": self.expect_timeout_ms,
            "logs_dir": str(self.logs_dir),
            "artifacts_dir": str(self.artifacts_dir),
        }

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        ci = os.getenv("CI", "").lower() == "true"
        return cls(
            ci_mode=ci,
            log_level=os.getenv("PROCEDURE_APP_LOG_LEVEL", "INFO").upper(),
            log_format="json" if ci else "text",
        )

    def validate(self) -> None:
        """Validate configuration and raise ValidationError if invalid."""
        from .exceptions import ValidationError

        errors = []

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

        if self.log_format not in ("text", "json"):
            errors.append(
                f"Invalid log format: {self.log_format}. Must be 'text' or 'json'"
            )

        if not 0 < self.port < 65536:
            errors.append(f"Invalid port: {self.port}. Must be between 1 and 65535")

        if not self.host:
            errors.append("Host must not be empty")

        if self.max_sessions < 1:
            errors.append(f"max_sessions must be at least 1, got {self.max_sessions}")

        if self.async_port_delay < 0:
            errors.append(
                f"async_port_delay must not be negative, got {self.async_port_delay}"
            )

        if self.expect_timeout_ms < 100:
            errors.append(
                f"expect_timeout_ms must be at least 100, got {self.expect_timeout_ms}"
            )

        if errors:
            message = "Configuration validation failed: " + "; ".join(errors)
            raise ValidationError(
                message,
                validation_type="config",
                violations=errors,
            )
