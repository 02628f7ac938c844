"""Settings model and loader for apkg-srs."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .utils.logging import get_logger

ErrorHandlingMode = Literal["strict", "best-effort"]

CONFIG_ENV_VAR = "APKG_SRS_CONFIG"


class Settings(BaseSettings):
    """Converter configuration using pydantic-settings.

    Values come from (highest first) explicit keyword arguments, environment
    variables prefixed with ``APKG_SRS_``, a ``.env`` file, then defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="APKG_SRS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    scratch_root: Path | None = Field(
        default=None,
        description="Directory under which per-package scratch directories are created",
    )
    error_handling: ErrorHandlingMode = Field(
        default="best-effort",
        description="Default issue policy when a caller passes no options",
    )
    allowed_extensions: list[str] = Field(
        default_factory=lambda: [".apkg", ".colpkg"],
        description="File extensions accepted when opening an Anki export",
    )
    log_level: str = Field(default="INFO")
    log_file: Path | None = Field(default=None)

    @field_validator("scratch_root", "log_file", mode="before")
    @classmethod
    def parse_path(cls, v: Any) -> Path | None:
        """Convert string to Path, treating empty strings as unset."""
        if v is None or v == "":
            return None
        if isinstance(v, (str, Path)):
            return Path(v).expanduser()
        msg = f"expected a path, got {type(v).__name__}"
        raise ValueError(msg)

    @field_validator("allowed_extensions", mode="before")
    @classmethod
    def parse_extensions(cls, v: Any) -> list[str]:
        """Accept a comma separated string and normalise the leading dot."""
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",") if part.strip()]
        if not isinstance(v, list) or not v:
            msg = "allowed_extensions must be a non-empty list"
            raise ValueError(msg)
        return [ext if ext.startswith(".") else f".{ext}" for ext in (str(e).lower() for e in v)]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            msg = f"log_level must be one of {sorted(valid)}, got {v!r}"
            raise ValueError(msg)
        return v.upper()


_config: Settings | None = None


def load_config(config_path: Path | None = None) -> Settings:
    """Load settings, overlaying a YAML file when one is found.

    The YAML file is ``config_path`` if given, otherwise the file named by
    ``$APKG_SRS_CONFIG``, otherwise ``./apkg-srs.yaml`` when it exists.
    Keys in the YAML file are the settings field names.
    """
    import yaml

    logger = get_logger(__name__)

    candidate_paths: list[Path] = []
    if config_path:
        candidate_paths.append(config_path.expanduser())
    else:
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            candidate_paths.append(Path(env_path).expanduser())
        candidate_paths.append(Path.cwd() / "apkg-srs.yaml")

    resolved_config_path = next((p for p in candidate_paths if p.exists()), None)

    if config_path and resolved_config_path is None:
        msg = f"Config file not found: {config_path}"
        raise ConfigurationError(msg, suggestion="Check the --config path.")

    yaml_data: dict[str, Any] = {}
    if resolved_config_path:
        try:
            with open(resolved_config_path, encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(
                "config_yaml_load_error",
                config_path=str(resolved_config_path),
                error=str(e),
                error_type=type(e).__name__,
            )
            msg = f"Failed to parse config file: {resolved_config_path}"
            suggestion = (
                "Check YAML syntax (indentation, colons, quotes). "
                f"Original error: {e}"
            )
            raise ConfigurationError(msg, suggestion=suggestion) from e

        if not isinstance(yaml_data, dict):
            msg = f"Config file must contain a mapping: {resolved_config_path}"
            raise ConfigurationError(
                msg, suggestion="Use 'key: value' pairs named after the settings fields."
            )
        logger.debug(
            "config_yaml_loaded",
            config_path=str(resolved_config_path),
            keys_count=len(yaml_data),
        )

    try:
        config = Settings(**yaml_data)
    except ValidationError as e:
        logger.error(
            "config_validation_error",
            error=str(e),
            config_path=str(resolved_config_path) if resolved_config_path else None,
        )
        msg = "Invalid apkg-srs configuration"
        raise ConfigurationError(msg, suggestion=str(e)) from e

    logger.debug(
        "config_loaded",
        error_handling=config.error_handling,
        scratch_root=str(config.scratch_root) if config.scratch_root else None,
    )
    return config


def get_config() -> Settings:
    """Get singleton config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Settings) -> None:
    """Set singleton config instance (for testing)."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset global config instance (for testing only)."""
    global _config
    _config = None
