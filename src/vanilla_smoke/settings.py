"""
Harness settings.

Settings come from environment variables (optionally loaded from a .env
file), from a YAML profile, and from explicit overrides such as CLI flags,
in that order of precedence.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "VANILLA_"

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_DATABASE_URL = "mysql+pymysql://root@localhost/vanilla_test"


class SmokeSettings(BaseModel):
    """Where the forum under test lives and how to impersonate its users."""

    base_url: str = DEFAULT_BASE_URL
    database_url: str = DEFAULT_DATABASE_URL
    table_prefix: str = "GDN_"
    config_path: Optional[Path] = None
    cookie_name: str = "Vanilla"
    cookie_salt: str = ""
    cookie_hash_method: str = "md5"
    timeout: float = 30.0
    max_retries: int = 3

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @field_validator("max_retries")
    @classmethod
    def _at_least_one_attempt(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_retries must be at least 1")
        return value

    @field_validator("cookie_hash_method")
    @classmethod
    def _known_hash(cls, value: str) -> str:
        value = value.lower()
        if value not in hashlib.algorithms_available:
            raise ValueError(f"unknown cookie hash method: {value}")
        return value

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "SmokeSettings":
        """
        Build settings from ``VANILLA_*`` environment variables.

        Args:
            env_file: .env file to load first. Defaults to ./.env when present.
                Variables already set in the environment win.
        """
        return cls(**_read_env(env_file))

    @classmethod
    def from_profile(cls, path: Union[str, Path]) -> "SmokeSettings":
        """Build settings from a YAML profile file."""
        return cls(**_read_profile(path))


def _read_env(env_file: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    if env_file is not None:
        env_path = Path(env_file)
        if not env_path.exists():
            raise FileNotFoundError(f".env file not found: {env_path}")
        load_dotenv(env_path)
    elif Path(".env").exists():
        load_dotenv(Path(".env"))

    values = {}
    for field_name in SmokeSettings.model_fields:
        raw = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw is not None and raw != "":
            values[field_name] = raw
    return values


def _read_profile(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, "r") as file:
        data = yaml.safe_load(file)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Profile {path} must contain a mapping, got {type(data).__name__}")

    unknown = set(data) - set(SmokeSettings.model_fields)
    if unknown:
        logger.warning("Ignoring unknown profile keys in %s: %s", path, ", ".join(sorted(unknown)))
    return {k: v for k, v in data.items() if k in SmokeSettings.model_fields}


def load_settings(
    env_file: Optional[Union[str, Path]] = None,
    profile: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> SmokeSettings:
    """
    Layer environment, profile and explicit overrides into one settings object.

    Overrides whose value is None are ignored so that unset CLI options do
    not mask the environment.
    """
    values = _read_env(env_file)
    if profile is not None:
        values.update(_read_profile(profile))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return SmokeSettings(**values)
