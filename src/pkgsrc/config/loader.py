"""
Configuration loader with deep merge.

Precedence order (lowest to highest):
1. Defaults (defined in the Pydantic schemas)
2. YAML file
3. Environment variables
4. CLI arguments

The merge is recursive so every key is preserved at every level.
"""

import os
from pathlib import Path
from typing import Any

import yaml

from .schema import AppConfig

# Environment variable naming the pkgsrc checkout
ROOT_ENV_VAR = "PKGSRCLOC"

MISSING_ROOT_MESSAGE = f"""\
{ROOT_ENV_VAR} is not defined
clone https://github.com/NetBSD/pkgsrc into a location
and set {ROOT_ENV_VAR} to that location.

For Example:
    ~$ git clone https://github.com/NetBSD/pkgsrc ~/.local/pkgsrc
    ~$ export {ROOT_ENV_VAR}=~/.local/pkgsrc"""


class MissingRootError(Exception):
    """The pkgsrc tree location was not configured."""

    def __init__(self) -> None:
        super().__init__(MISSING_ROOT_MESSAGE)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dictionary merge.

    Args:
        base: Base dictionary
        override: Dictionary whose values override base

    Returns:
        New dictionary with merged values. Override wins on leaf conflicts.

    Example:
        >>> deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"b": 99}, "e": 4})
        {'a': {'b': 99, 'c': 2}, 'e': 4}
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_config(config_path: Path | None) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file, or None to skip

    Returns:
        Dictionary with the configuration, or empty dict if there is no file
    """
    if not config_path:
        return {}

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if data else {}


def load_env_overrides() -> dict[str, Any]:
    """Load overrides from environment variables.

    Supported variables:
        PKGSRCLOC: overrides pkgsrc.root
        PKGSRC_MAKE: overrides build.make
        PKGSRC_LOG_LEVEL: overrides logging.level

    Returns:
        Dictionary with overrides from env vars
    """
    overrides: dict[str, Any] = {}

    if root := os.environ.get(ROOT_ENV_VAR):
        overrides.setdefault("pkgsrc", {})["root"] = root

    if make := os.environ.get("PKGSRC_MAKE"):
        overrides.setdefault("build", {})["make"] = make

    if log_level := os.environ.get("PKGSRC_LOG_LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level.lower()

    return overrides


def apply_cli_overrides(config_dict: dict[str, Any], cli_args: dict[str, Any]) -> dict[str, Any]:
    """Apply overrides from CLI arguments.

    Args:
        config_dict: Base configuration (already merged with YAML and env)
        cli_args: Dictionary with CLI arguments

    Returns:
        Configuration with CLI overrides applied
    """
    overrides: dict[str, Any] = {}

    if cli_args.get("make"):
        overrides.setdefault("build", {})["make"] = cli_args["make"]

    if cli_args.get("unique"):
        overrides.setdefault("search", {})["unique"] = True

    if cli_args.get("log_file"):
        overrides.setdefault("logging", {})["file"] = cli_args["log_file"]

    if cli_args.get("verbose") is not None:
        overrides.setdefault("logging", {})["verbose"] = cli_args["verbose"]

    return deep_merge(config_dict, overrides)


def load_config(
    config_path: Path | None = None,
    cli_args: dict[str, Any] | None = None,
) -> AppConfig:
    """Load and validate the complete application configuration.

    Args:
        config_path: Path to the YAML configuration file
        cli_args: Dictionary with CLI arguments

    Returns:
        Validated and complete AppConfig

    Raises:
        FileNotFoundError: If config_path does not exist
        ValidationError: If the final configuration is not valid
    """
    cli_args = cli_args or {}

    yaml_config = load_yaml_config(config_path)
    merged = deep_merge(yaml_config, load_env_overrides())
    merged = apply_cli_overrides(merged, cli_args)

    return AppConfig(**merged)


def require_root(config: AppConfig) -> Path:
    """Return the configured pkgsrc root or raise MissingRootError."""
    if config.pkgsrc.root is None:
        raise MissingRootError()
    return config.pkgsrc.root
