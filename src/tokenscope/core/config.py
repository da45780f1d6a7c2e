"""
tokenscope Configuration Management

Provides centralized configuration management with validation and environment support.
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size: int = Field(
        default=10_000_000, description="Max log file size in bytes"
    )
    backup_count: int = Field(default=5, description="Number of backup log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class AnalysisConfig(BaseModel):
    """Analysis engine configuration."""

    significance_level: float = Field(
        default=0.01, description="Alpha for the SP 800-22 battery"
    )
    pooled_significance_level: float = Field(
        default=0.05,
        description="Warning threshold for the pooled chi-squared and runs checks",
    )
    recommended_minimum_bits: int = Field(
        default=128, description="Recommended effective security for session tokens"
    )
    collision_sample_size: int = Field(
        default=1000, description="Tokens sampled for pairwise Hamming distances"
    )
    max_workers: int = Field(
        default=1, description="Thread pool size for per-token statistical tests"
    )

    @field_validator("significance_level", "pooled_significance_level")
    @classmethod
    def validate_alpha(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError(f"Significance level must be between 0 and 1, got {v}")
        return v

    @field_validator("collision_sample_size", "max_workers", "recommended_minimum_bits")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be at least 1, got {v}")
        return v

    @model_validator(mode="after")
    def check_alpha_order(self) -> "AnalysisConfig":
        if self.pooled_significance_level < self.significance_level:
            raise ValueError(
                "pooled_significance_level must not be below significance_level"
            )
        return self


class TokenscopeConfig(BaseSettings):
    """Main tokenscope configuration."""

    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    model_config = SettingsConfigDict(
        env_prefix="TOKENSCOPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )


# Global configuration instance
_config: Optional[TokenscopeConfig] = None


def get_config() -> TokenscopeConfig:
    """
    Get the global configuration instance.

    Returns:
        The global TokenscopeConfig instance
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def load_config(config_file: Optional[Path] = None) -> TokenscopeConfig:
    """
    Load configuration from an env file and environment variables.

    Args:
        config_file: Optional path to a dotenv-style configuration file

    Returns:
        Loaded configuration instance
    """
    if config_file is not None and config_file.exists():
        return TokenscopeConfig(_env_file=str(config_file))
    return TokenscopeConfig()


def reload_config(config_file: Optional[Path] = None) -> TokenscopeConfig:
    """
    Reload the global configuration.

    Args:
        config_file: Optional path to configuration file

    Returns:
        Reloaded configuration instance
    """
    global _config
    _config = load_config(config_file)
    return _config


def update_config(**kwargs: Any) -> None:
    """
    Update configuration values at runtime.

    Args:
        **kwargs: Configuration values to update
    """
    from .exceptions import ConfigurationError

    config = get_config()
    for key, value in kwargs.items():
        if key not in TokenscopeConfig.model_fields:
            raise ConfigurationError(
                f"Unknown configuration key: {key}", {"key": key}
            )
        setattr(config, key, value)
