"""
Configuration schema using Pydantic.

Configuration is loaded from a YAML file; FEATUREDEV_* environment
variables override individual values.
"""

from pathlib import Path
from typing import Optional, List, Dict, Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required values."""

    def __init__(self, message: str, field: Optional[str] = None, suggestions: Optional[List[str]] = None):
        self.message = message
        self.field = field
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [self.message]
        if self.field:
            lines.append(f"  Field: {self.field}")
        if self.suggestions:
            lines.append("  Suggestions:")
            for s in self.suggestions:
                lines.append(f"    - {s}")
        return "\n".join(lines)


class CodeGenerationConfig(BaseModel):
    """Code generation workflow configuration."""

    retry_limit: int = Field(default=3, ge=0, le=10, description="Retry follow-ups offered per conversation")
    low_iteration_threshold: int = Field(
        default=2, ge=0, le=10,
        description="At or below this many remaining iterations the exact counts are shown",
    )


class TelemetryConfig(BaseModel):
    """Telemetry recording configuration."""

    enabled: bool = Field(default=True)
    output_path: str = Field(default="~/.featuredev-agent/telemetry.jsonl")
    lock_timeout_seconds: float = Field(default=5.0, ge=0.1, le=60.0)


class NotificationConfig(BaseModel):
    """Out-of-band notification configuration."""

    enabled: bool = Field(default=True)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR)$")
    file: Optional[str] = Field(default=None)


class AgentConfig(BaseModel):
    """Root configuration for the feature development agent."""

    codegen: CodeGenerationConfig = Field(default_factory=CodeGenerationConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def telemetry_path(self) -> Optional[Path]:
        """Get resolved telemetry file path, or None when disabled."""
        if not self.telemetry.enabled:
            return None
        return Path(self.telemetry.output_path).expanduser()

    @property
    def log_file(self) -> Optional[Path]:
        """Get resolved log file path."""
        if not self.logging.file:
            return None
        return Path(self.logging.file).expanduser()

    @model_validator(mode="after")
    def validate_consistency(self) -> "AgentConfig":
        """Validate cross-field consistency."""
        if self.telemetry.enabled and not self.telemetry.output_path.strip():
            raise ValueError("telemetry.output_path must be set when telemetry is enabled")
        return self


class EnvOverrides(BaseSettings):
    """Environment variable overrides (FEATUREDEV_*)."""

    model_config = SettingsConfigDict(env_prefix="FEATUREDEV_", extra="ignore")

    retry_limit: Optional[int] = None
    low_iteration_threshold: Optional[int] = None
    telemetry_enabled: Optional[bool] = None
    telemetry_path: Optional[str] = None
    log_level: Optional[str] = None
    log_file: Optional[str] = None


# Maps EnvOverrides fields to config paths
_ENV_MAPPINGS = {
    "retry_limit": ("codegen", "retry_limit"),
    "low_iteration_threshold": ("codegen", "low_iteration_threshold"),
    "telemetry_enabled": ("telemetry", "enabled"),
    "telemetry_path": ("telemetry", "output_path"),
    "log_level": ("logging", "level"),
    "log_file": ("logging", "file"),
}


def get_default_config_path() -> Path:
    """Get default config file path."""
    return Path.home() / ".featuredev-agent" / "config.yaml"


def load_config(config_path: Optional[str] = None) -> AgentConfig:
    """
    Load configuration from YAML file.

    Falls back to defaults if the default file doesn't exist.
    Environment variables override config file values.

    Args:
        config_path: Path to config file (optional)

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If config file is missing or invalid
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(
                f"Config file not found: {path}",
                suggestions=[
                    f"Create the config file at {path}",
                    "Use 'featuredev config --init' to create a default config",
                    "Or run without --config to use defaults",
                ],
            )
    else:
        path = get_default_config_path()

    data: Dict[str, Any] = {}

    if path.exists():
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            raise ConfigurationError(
                f"Invalid YAML in config file: {path}",
                suggestions=[
                    f"Check syntax at line {mark.line + 1 if mark else 'unknown'}",
                    "Use a YAML validator to check your config",
                ],
            ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file must contain a mapping: {path}",
            suggestions=["See 'featuredev config --show' for the expected layout"],
        )

    data = _deep_merge(data, _get_env_overrides())

    try:
        config = AgentConfig(**data)
    except Exception as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            suggestions=[
                "Check field names and values in your config",
                "Run 'featuredev config --show' to see the defaults",
            ],
        ) from e

    return config


def _get_env_overrides() -> Dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: Dict[str, Any] = {}

    try:
        env = EnvOverrides()
    except Exception as e:
        raise ConfigurationError(
            f"Invalid FEATUREDEV_* environment variable: {e}",
            suggestions=["Unset or correct the offending variable"],
        ) from e

    for name, (section, field) in _ENV_MAPPINGS.items():
        value = getattr(env, name)
        if value is not None:
            overrides.setdefault(section, {})[field] = value

    return overrides


def _deep_merge(base: Dict, overlay: Dict) -> Dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def save_config(config: AgentConfig, config_path: Optional[str] = None) -> Path:
    """Save configuration to YAML file."""
    path = Path(config_path) if config_path else get_default_config_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False)

    return path
