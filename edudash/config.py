"""
Application configuration module.

Settings are read from the environment (and a ``.env`` file). A YAML or
JSON file named by ``CONFIG_PATH`` may override them.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API settings
    PROJECT_NAME: str = "EduDash Assessments"
    API_V1_STR: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["*"]

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./edudash.db"
    SQL_ECHO: bool = False
    REPOSITORY_BACKEND: Literal["memory", "database"] = "memory"

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    # Assessment settings
    STRUCTURAL_EDIT_POLICY: Literal["version", "block"] = "version"
    MAX_GENERATED_QUESTIONS: int = Field(default=50, ge=1)
    DEFAULT_PASSING_SCORE: int = Field(default=70, ge=0, le=100)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


def _load_file(path: Path) -> Dict[str, Any]:
    """
    Load overrides from a config file.

    Args:
        path: Path to a YAML or JSON file

    Returns:
        Loaded configuration dictionary (empty if the file is missing)
    """
    if not path.exists():
        logger.warning(f"Config file not found: {path}")
        return {}

    with open(path, 'r') as f:
        if path.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        if path.suffix.lower() == '.json':
            return json.load(f)

    logger.warning(f"Unsupported config file format: {path.suffix}")
    return {}


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build settings from the environment, overlaid with a config file.

    Args:
        config_path: Path to a YAML/JSON file; defaults to ``CONFIG_PATH``

    Returns:
        Loaded settings
    """
    config_path = config_path or os.environ.get("CONFIG_PATH")
    overrides = _load_file(Path(config_path)) if config_path else {}
    return Settings(**overrides)


# Create global settings instance
settings = load_settings()
