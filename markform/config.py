import os
import re
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from markform.errors import ConfigurationError

# $VAR, ${VAR} and ${VAR:-default} references in YAML string values
ENV_VAR_PATTERN = re.compile(
    r"\$(?:\{(?P<braced>[A-Z_][A-Z0-9_]*)(?::-(?P<default>[^}]*))?\}|(?P<bare>[A-Z_][A-Z0-9_]*))"
)

CONFIG_ENV_VAR = "MARKFORM_CONFIG"
DEFAULT_CONFIG_FILE = "markform.yaml"

_config_path_override: Path | None = None


def _env_value(match: re.Match) -> str:
    name = match.group("braced") or match.group("bare")
    value = os.environ.get(name, match.group("default"))
    if value is None:
        raise ConfigurationError(f"Config references ${name}, which is not set")
    return value


def interpolate_env_vars(value):
    """Substitute environment variables in every string of a loaded YAML tree.

    Raises:
        ConfigurationError: a referenced variable is unset and has no default.
    """
    if isinstance(value, str):
        return ENV_VAR_PATTERN.sub(_env_value, value)
    if isinstance(value, dict):
        return {key: interpolate_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return list(map(interpolate_env_vars, value))
    return value


def set_config_path(path: Path | None) -> None:
    """Force a specific config file (used by the CLI's -f option)."""
    global _config_path_override
    _config_path_override = path


def get_config_path() -> Path:
    """Resolve the YAML config file: override, then $MARKFORM_CONFIG, then ./markform.yaml."""
    if _config_path_override is not None:
        return _config_path_override

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    return Path.cwd() / DEFAULT_CONFIG_FILE


def load_app_config() -> dict:
    """Load and parse the YAML config with environment variable interpolation."""
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"{config_path.name} not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class CaptchaConfig(BaseModel):
    """Captcha challenge and image configuration."""

    length: int = 5
    # No 0/O, 1/l/I to keep the image readable
    alphabet: str = "abcdefghjkmnpqrstuvwxyz23456789"
    width: int = 120
    height: int = 40
    noise_lines: int = 6


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MARKFORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Process-wide CSRF secret; checked lazily by Form.get_token()
    secret_key: str | None = None

    # Extra directories searched for relative template paths
    template_dirs: list[Path] = []

    captcha: CaptchaConfig = CaptchaConfig()


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment, .env and the YAML config file."""
    load_dotenv(Path.cwd() / ".env")

    base_settings = Settings()

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        return base_settings

    updates = {}

    if "secret_key" in app_config:
        updates["secret_key"] = str(app_config["secret_key"])

    if "template_dirs" in app_config:
        updates["template_dirs"] = [Path(p) for p in app_config["template_dirs"]]

    if "captcha" in app_config:
        updates["captcha"] = CaptchaConfig(**app_config["captcha"])

    if updates:
        return base_settings.model_copy(update=updates)

    return base_settings


def clear_settings_cache() -> None:
    get_settings.cache_clear()
