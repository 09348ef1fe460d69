"""
config.py - Configuration management for flowlyt

This module handles loading, validating, and managing configuration for the flowlyt tool.
"""

import copy
import logging
import os
from typing import Any, Dict, List, Optional, cast

import yaml

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS = {
    "strict_mode": False,
    "ignore_info_level": False,
    "focus_on_security": False,
    "skip_documentation_checks": False,
    "require_job_names": True,
    "require_step_names": True,
    "require_error_handling": True,
    "require_caching": True,
}

PROFILES: Dict[str, Dict[str, bool]] = {
    "default": {},
    "strict": {
        "strict_mode": True,
        "require_job_names": True,
        "require_step_names": True,
        "require_error_handling": True,
        "require_caching": True,
    },
    "security": {
        "ignore_info_level": True,
        "focus_on_security": True,
        "skip_documentation_checks": True,
        "require_job_names": False,
        "require_step_names": False,
        "require_error_handling": True,
        "require_caching": False,
    },
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "profile": "default",
    "rules": {},
    "analysis": dict(DEFAULT_ANALYSIS),
    "known_actions_file": None,
    "known_actions": {},
    "max_workers": 4,
    "report": {
        "color_output": True,
        "show_snippets": True,
        "verbose": False,
    },
}


class ConfigurationError(Exception):
    """Exception raised for configuration errors"""

    pass


def get_config_paths() -> List[str]:
    """
    Get list of possible config file locations in priority order

    Returns:
        List of config file paths to check
    """
    paths = []

    paths.append(os.path.join(os.getcwd(), "flowlyt.yml"))
    paths.append(os.path.join(os.getcwd(), "flowlyt.yaml"))
    paths.append(os.path.join(os.getcwd(), ".flowlyt.yml"))
    paths.append(os.path.join(os.getcwd(), ".flowlyt.yaml"))

    home_dir = os.path.expanduser("~")
    paths.append(os.path.join(home_dir, ".flowlyt.yml"))
    paths.append(os.path.join(home_dir, ".flowlyt.yaml"))
    paths.append(os.path.join(home_dir, ".config", "flowlyt", "config.yml"))
    paths.append(os.path.join(home_dir, ".config", "flowlyt", "config.yaml"))

    if os.name == "posix":
        paths.append("/etc/flowlyt/config.yml")
        paths.append("/etc/flowlyt/config.yaml")

    return paths


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two config dictionaries

    Args:
        base: Base configuration
        override: Configuration to override base

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, override_value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(override_value, dict):
            result[key] = merge_configs(result[key], override_value)
        else:
            result[key] = override_value

    return result


def apply_profile(config: Dict[str, Any], profile: str) -> Dict[str, Any]:
    """
    Apply an analysis profile to a configuration

    Profile values replace the analysis defaults; explicit ``analysis``
    values in ``config`` that differ from the defaults are kept.

    Raises:
        ConfigurationError: If the profile is unknown
    """
    if profile not in PROFILES:
        valid = ", ".join(PROFILES)
        raise ConfigurationError(f"Unknown profile '{profile}'. Must be one of: {valid}")

    updated = copy.deepcopy(config)
    analysis = updated.get("analysis", {}) or {}
    explicit = {k: v for k, v in analysis.items() if DEFAULT_ANALYSIS.get(k) != v}

    updated["profile"] = profile
    updated["analysis"] = merge_configs(merge_configs(DEFAULT_ANALYSIS, PROFILES[profile]), explicit)
    return updated


def _validate_rules(config: Dict[str, Any]) -> None:
    """Validate rule toggles"""

    if "rules" in config:
        if not isinstance(config["rules"], dict):
            raise ConfigurationError("'rules' must be a dictionary")

        for rule, enabled in config["rules"].items():
            if not isinstance(enabled, bool):
                raise ConfigurationError(f"Rule '{rule}' must be a boolean (true/false)")


def _validate_analysis(config: Dict[str, Any]) -> None:
    """Validate analysis options"""

    if "analysis" in config:
        if not isinstance(config["analysis"], dict):
            raise ConfigurationError("'analysis' must be a dictionary")

        for option, value in config["analysis"].items():
            if option not in DEFAULT_ANALYSIS:
                raise ConfigurationError(f"Unknown analysis option '{option}'")
            if not isinstance(value, bool):
                raise ConfigurationError(f"'analysis.{option}' must be a boolean")

    if "profile" in config and config["profile"] not in PROFILES:
        valid = ", ".join(PROFILES)
        raise ConfigurationError(f"Unknown profile '{config['profile']}'. Must be one of: {valid}")


def _validate_defaults(config: Dict[str, Any]) -> None:
    """Validate default configuration values"""

    if "max_workers" in config:
        workers = config["max_workers"]
        if isinstance(workers, bool) or not isinstance(workers, int) or workers <= 0:
            raise ConfigurationError("'max_workers' must be a positive integer")

    if "known_actions" in config and not isinstance(config["known_actions"], dict):
        raise ConfigurationError("'known_actions' must be a dictionary")

    if config.get("known_actions_file") is not None and not isinstance(
        config["known_actions_file"], str
    ):
        raise ConfigurationError("'known_actions_file' must be a path")

    if "report" in config and not isinstance(config["report"], dict):
        raise ConfigurationError("'report' must be a dictionary")


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration structure and values"""

    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a mapping")

    for key in config.keys():
        if key not in DEFAULT_CONFIG:
            raise ConfigurationError(f"Unknown configuration option '{key}'")

    _validate_rules(config)
    _validate_analysis(config)
    _validate_defaults(config)


def _read_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing YAML configuration: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Error loading configuration: {e}") from e

    if not user_config:
        return {}
    validate_config(user_config)
    return cast(Dict[str, Any], user_config)


def load_config(config_path: Optional[str] = None, profile: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file or use defaults

    Args:
        config_path: Path to configuration file, or None to auto-detect
        profile: Analysis profile overriding the one in the file

    Returns:
        Loaded configuration dictionary

    Raises:
        ConfigurationError: If configuration file is invalid
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    user_config: Dict[str, Any] = {}

    if config_path:
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        user_config = _read_config_file(config_path)
    else:
        for path in get_config_paths():
            if os.path.exists(path):
                user_config = _read_config_file(path)
                logger.debug("Loaded configuration from %s", path)
                break

    config = merge_configs(config, user_config)

    selected = profile or config.get("profile", "default")
    if selected != "default" or profile:
        config = apply_profile(config, selected)

    return config


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """
    Save configuration to file

    Args:
        config: Configuration dictionary to save
        config_path: Path to save configuration to

    Raises:
        ConfigurationError: If configuration cannot be saved
    """
    try:
        os.makedirs(os.path.dirname(os.path.abspath(config_path)), exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Error saving configuration: {e}") from e


def generate_default_config(output_path: Optional[str] = None) -> str:
    """
    Generate default configuration YAML

    Args:
        output_path: Path to save default configuration to, or None to return as string

    Returns:
        Default configuration YAML

    Raises:
        ConfigurationError: If configuration cannot be saved
    """
    default_config_yaml = cast(
        str,
        yaml.dump(DEFAULT_CONFIG, default_flow_style=False, sort_keys=False),
    )

    if output_path:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

            with open(output_path, "w", encoding="utf-8") as f:
                f.write(default_config_yaml)
        except OSError as e:
            raise ConfigurationError(f"Error saving default configuration: {e}") from e

    return default_config_yaml


def disable_rules(config: Dict[str, Any], rules: List[str]) -> Dict[str, Any]:
    """
    Disable specific rules in a configuration

    Args:
        config: Configuration dictionary
        rules: List of rule IDs to disable

    Returns:
        Updated configuration dictionary
    """
    updated_config = copy.deepcopy(config)
    toggles = updated_config.setdefault("rules", {})

    for rule in rules:
        toggles[rule] = False

    return updated_config
