"""Configuration loading for npmstats."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .api import DEFAULT_BATCH_PAUSE, DEFAULT_BATCH_SIZE, DEFAULT_TIMEOUT
from .exceptions import ConfigError
from .report import DEFAULT_TIMEZONE
from .utils import validate_package_name

logger = logging.getLogger("npmstats")

DEFAULT_CONFIG_FILE = "npmstats.yml"


def get_config_dir() -> Path:
    """Get the npmstats config directory (~/.npmstats)."""
    return Path.home() / ".npmstats"


@dataclass
class Config:
    """Settings for one npmstats run."""

    username: str | None = None
    packages: list[str] = field(default_factory=list)
    repository: str | None = None
    timezone: str = DEFAULT_TIMEZONE
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_pause: float = DEFAULT_BATCH_PAUSE
    timeout: float = DEFAULT_TIMEOUT
    github_token: str | None = None


def find_config_file() -> Path | None:
    """Locate the config file in the working directory or the config dir."""
    for candidate in (Path(DEFAULT_CONFIG_FILE), get_config_dir() / "config.yml"):
        if candidate.is_file():
            return candidate
    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of settings")
    return data


def _number(data: dict[str, Any], key: str, kind: type, allow_zero: bool = False) -> Any:
    value = data[key]
    try:
        number = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from e
    if number < 0 or (number == 0 and not allow_zero):
        raise ConfigError(f"'{key}' is out of range: {value!r}")
    return number


def _validate_timezone(name: Any) -> str:
    try:
        ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone '{name}'") from e
    return str(name)


def _validate_packages(packages: Any) -> list[str]:
    if not isinstance(packages, list):
        raise ConfigError("'packages' must be a list of package names")

    names = [str(p).strip() for p in packages]
    for name in names:
        valid, error = validate_package_name(name)
        if not valid:
            raise ConfigError(f"Invalid package name '{name}': {error}")
    return names


def load_config(path: str | None = None) -> Config:
    """Load settings from a YAML file and the environment.

    Without an explicit ``path`` the default locations are searched and a
    missing file simply yields the defaults. Environment variables
    ``NPMSTATS_USERNAME``, ``GITHUB_REPOSITORY`` and ``GITHUB_TOKEN`` take
    precedence over the file.

    Raises:
        ConfigError: If the file is missing (explicit path only), malformed,
            or holds invalid values.
    """
    if path is not None:
        config_path: Path | None = Path(path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {path}")
    else:
        config_path = find_config_file()

    data = _read_yaml(config_path) if config_path is not None else {}

    known = {f.name for f in fields(Config)}
    for key in sorted(set(data) - known):
        logger.warning("Ignoring unknown config key '%s'", key)

    config = Config()
    if data.get("username"):
        config.username = str(data["username"])
    if data.get("packages"):
        config.packages = _validate_packages(data["packages"])
    if data.get("repository"):
        config.repository = str(data["repository"])
    if data.get("timezone"):
        config.timezone = _validate_timezone(data["timezone"])
    if data.get("github_token"):
        config.github_token = str(data["github_token"])
    if "batch_size" in data:
        config.batch_size = _number(data, "batch_size", int)
    if "batch_pause" in data:
        config.batch_pause = _number(data, "batch_pause", float, allow_zero=True)
    if "timeout" in data:
        config.timeout = _number(data, "timeout", float)

    config.username = os.environ.get("NPMSTATS_USERNAME") or config.username
    config.repository = os.environ.get("GITHUB_REPOSITORY") or config.repository
    config.github_token = os.environ.get("GITHUB_TOKEN") or config.github_token

    return config


def resolve_token(token: str | None, config: Config) -> str | None:
    """Pick the GitHub token: command line first, then config/environment."""
    return token or config.github_token
