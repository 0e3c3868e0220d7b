"""Configuration management for the simulator server."""

import os
from dataclasses import dataclass


@dataclass
class SimulatorConfig:
    """Configuration class for the simulator server."""

    # MCP Server Configuration
    server_name: str = "wavesim"
    transport: str = "stdio"

    # Simulation Configuration
    locale: str = "en-US"
    max_loop_iterations: int = 0  # 0 means unbounded
    max_auto_steps: int = 0  # 0 means unbounded
    debug_log_limit: int = 500
    max_sessions: int = 50
    workflow_definitions_path: str = "./workflows/"

    # Mock data generation
    mock_model: str = "gpt-4.1-mini"

    # Runtime Configuration
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "SimulatorConfig":
        """Create configuration from environment variables."""
        return cls(
            # Server Configuration
            server_name=os.getenv("WAVESIM_SERVER_NAME", "wavesim"),
            transport=os.getenv("WAVESIM_TRANSPORT", "stdio"),

            # Simulation Configuration
            locale=os.getenv("WAVESIM_LOCALE", "en-US"),
            max_loop_iterations=int(os.getenv("WAVESIM_MAX_LOOP_ITERATIONS", "0")),
            max_auto_steps=int(os.getenv("WAVESIM_MAX_AUTO_STEPS", "0")),
            debug_log_limit=int(os.getenv("WAVESIM_DEBUG_LOG_LIMIT", "500")),
            max_sessions=int(os.getenv("WAVESIM_MAX_SESSIONS", "50")),
            workflow_definitions_path=os.getenv("WAVESIM_WORKFLOWS_PATH", "./workflows/"),

            # Mock data generation
            mock_model=os.getenv("WAVESIM_MOCK_MODEL", "gpt-4.1-mini"),

            # Runtime Configuration
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """Validate configuration settings."""
        errors = []

        if self.max_loop_iterations < 0:
            errors.append("max_loop_iterations cannot be negative")

        if self.max_auto_steps < 0:
            errors.append("max_auto_steps cannot be negative")

        if self.debug_log_limit <= 0:
            errors.append("debug_log_limit must be positive")

        if self.max_sessions <= 0:
            errors.append("max_sessions must be positive")

        if not self.locale:
            errors.append("locale cannot be empty")

        if self.transport not in ("stdio", "http", "sse", "streamable-http"):
            errors.append(f"unsupported transport: {self.transport}")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            errors.append(f"log_level must be one of {valid_log_levels}")

        return len(errors) == 0, errors

    def __post_init__(self):
        """Post-initialization validation."""
        is_valid, errors = self.validate()
        if not is_valid:
            raise ValueError(f"Invalid configuration: {', '.join(errors)}")


# Global configuration instance
_config: SimulatorConfig | None = None


def get_config() -> SimulatorConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = SimulatorConfig.from_environment()
    return _config


def set_config(config: SimulatorConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
