"""Configuration management for the AI calculator."""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import ConfigurationError
from .models import AngleMode


class LLMConfig(BaseModel):
    """LLM provider settings for the remote normalizer."""

    provider: Literal["anthropic", "openai"] = "openai"
    api_key: SecretStr = Field(..., description="API key for LLM provider")
    model: str = "gpt-4o-mini"
    max_tokens: int = Field(default=256, ge=1, le=4096)
    temperature: float = Field(default=0.0, ge=0.0, le=1.0)
    timeout: float = Field(default=15.0, gt=0, description="Seconds before the request is abandoned")
    max_retries: int = Field(default=0, ge=0, le=5)


class ServerConfig(BaseModel):
    """HTTP API settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=3001, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class CalculatorConfig(BaseModel):
    """Evaluation behavior settings."""

    round_digits: int | None = Field(default=14, ge=0, le=15)
    history_size: int = Field(default=20, ge=1)
    max_input_length: int = Field(default=300, ge=1)
    default_angle_mode: AngleMode = AngleMode.RAD

    @field_validator("default_angle_mode", mode="before")
    @classmethod
    def _parse_angle_mode(cls, value):
        return AngleMode.parse(value)


class Config(BaseModel):
    """Root configuration model. Without ``llm`` the calculator is local-only."""

    llm: LLMConfig | None = None
    server: ServerConfig = ServerConfig()
    calculator: CalculatorConfig = CalculatorConfig()


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ConfigurationError: If config is invalid or a referenced environment
            variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    # Expand environment variables in the format ${VAR_NAME}
    def expand_env_vars(obj):
        if isinstance(obj, dict):
            return {k: expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env_vars(item) for item in obj]
        elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            value = os.getenv(env_var)
            if value is None:
                raise ConfigurationError(f"Environment variable '{env_var}' is not set")
            return value
        return obj

    raw_config = expand_env_vars(raw_config)

    try:
        return Config(**raw_config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}:\n{e}") from e
