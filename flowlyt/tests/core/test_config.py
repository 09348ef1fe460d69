"""
test_config.py - Tests for the configuration module
"""

import os

import pytest
import yaml

from flowlyt.core.config import (
    DEFAULT_CONFIG,
    PROFILES,
    ConfigurationError,
    _validate_analysis,
    _validate_defaults,
    _validate_rules,
    apply_profile,
    disable_rules,
    generate_default_config,
    load_config,
    merge_configs,
    save_config,
    validate_config,
)


def test_default_config():
    """Test that DEFAULT_CONFIG contains expected keys."""
    assert "rules" in DEFAULT_CONFIG
    assert "analysis" in DEFAULT_CONFIG
    assert "profile" in DEFAULT_CONFIG
    assert "known_actions_file" in DEFAULT_CONFIG
    assert "max_workers" in DEFAULT_CONFIG
    assert DEFAULT_CONFIG["analysis"]["require_caching"] is True


def test_load_config_default():
    """Test loading config with no file specified."""
    config = load_config()
    assert config is not None
    assert isinstance(config, dict)
    assert config["profile"] == "default"
    assert config["analysis"] == DEFAULT_CONFIG["analysis"]


def test_load_config_with_path(temp_dir):
    """Test loading config from specified path."""
    config_path = os.path.join(temp_dir, "flowlyt.yml")
    test_config = {
        "rules": {"timeout": False},
        "analysis": {"ignore_info_level": True},
    }

    with open(config_path, "w") as f:
        yaml.dump(test_config, f)

    config = load_config(config_path)

    assert config["rules"]["timeout"] is False
    assert config["analysis"]["ignore_info_level"] is True
    assert config["analysis"]["require_job_names"] is True
    assert "max_workers" in config


def test_load_config_discovers_working_directory(tmp_path):
    """Test that flowlyt.yml in the working directory is picked up."""
    (tmp_path / "flowlyt.yml").write_text(yaml.dump({"rules": {"documentation": False}}))

    config = load_config()

    assert config["rules"] == {"documentation": False}


def test_load_config_nonexistent():
    """Test error handling when config file doesn't exist."""
    with pytest.raises(ConfigurationError):
        load_config("/path/to/nonexistent/config.yml")


def test_load_config_invalid_yaml(temp_dir):
    """Test error handling for invalid YAML."""
    config_path = os.path.join(temp_dir, "invalid.yml")
    with open(config_path, "w") as f:
        f.write("This is not valid YAML: [unclosed bracket")

    with pytest.raises(ConfigurationError):
        load_config(config_path)


def test_load_config_empty_file(temp_dir):
    """Test that an empty config file yields the defaults."""
    config_path = os.path.join(temp_dir, "empty.yml")
    open(config_path, "w").close()

    assert load_config(config_path) == DEFAULT_CONFIG


def test_auto_discovery_invalid_yaml_raises(monkeypatch, temp_dir):
    """Ensure auto-discovered configs with invalid YAML raise an error."""
    config_path = os.path.join(temp_dir, "flowlyt.yml")
    with open(config_path, "w") as f:
        f.write("invalid: [yaml")

    monkeypatch.setattr("flowlyt.core.config.get_config_paths", lambda: [config_path])

    with pytest.raises(ConfigurationError):
        load_config()


def test_auto_discovery_invalid_config_raises(monkeypatch, temp_dir):
    """Ensure auto-discovered configs with validation errors are not ignored."""
    config_path = os.path.join(temp_dir, "flowlyt.yml")
    with open(config_path, "w") as f:
        yaml.dump({"unknown_option": True}, f)

    monkeypatch.setattr("flowlyt.core.config.get_config_paths", lambda: [config_path])

    with pytest.raises(ConfigurationError):
        load_config()


@pytest.mark.parametrize("profile", sorted(PROFILES))
def test_profiles(profile):
    """Test that every profile produces a valid configuration."""
    config = load_config(profile=profile)

    assert config["profile"] == profile
    validate_config(config)
    for option, value in PROFILES[profile].items():
        assert config["analysis"][option] is value


def test_security_profile_from_file(temp_dir):
    """Test selecting a profile in the config file."""
    config_path = os.path.join(temp_dir, "flowlyt.yml")
    with open(config_path, "w") as f:
        yaml.dump({"profile": "security"}, f)

    config = load_config(config_path)

    assert config["analysis"]["focus_on_security"] is True
    assert config["analysis"]["require_caching"] is False


def test_explicit_analysis_values_survive_profile():
    """Test that non-default analysis values win over the profile."""
    config = merge_configs(DEFAULT_CONFIG, {"analysis": {"require_caching": False}})

    strict = apply_profile(config, "strict")

    assert strict["analysis"]["strict_mode"] is True
    assert strict["analysis"]["require_caching"] is False


def test_unknown_profile():
    """Test that unknown profiles are rejected."""
    with pytest.raises(ConfigurationError):
        load_config(profile="paranoid")


def test_validate_config_valid():
    """Test config validation with valid config."""
    valid_config = {
        "profile": "strict",
        "rules": {"timeout": True, "documentation": False},
        "analysis": {"strict_mode": True},
        "known_actions": {"actions/checkout": "v4"},
        "max_workers": 2,
    }

    validate_config(valid_config)


@pytest.mark.parametrize(
    "invalid_config",
    [
        {"rules": {"timeout": "not_a_boolean"}},
        {"rules": ["timeout"]},
        {"analysis": {"strict_mode": "yes"}},
        {"analysis": {"unknown_option": True}},
        {"profile": "paranoid"},
        {"max_workers": 0},
        {"max_workers": True},
        {"known_actions": ["actions/checkout"]},
        {"known_actions_file": 42},
        {"report": "verbose"},
        {"unknown_key": True},
    ],
)
def test_validate_config_invalid(invalid_config):
    """Test config validation with invalid values."""
    with pytest.raises(ConfigurationError):
        validate_config(invalid_config)


def test_validate_config_not_a_mapping():
    """Test that a non-mapping config is rejected."""
    with pytest.raises(ConfigurationError):
        validate_config(["rules"])


def test_validate_rules_helper():
    """Test helper for validating rule toggles."""
    _validate_rules({"rules": {"timeout": False}})

    with pytest.raises(ConfigurationError):
        _validate_rules({"rules": {"timeout": "off"}})


def test_validate_analysis_helper():
    """Test helper for validating analysis options."""
    _validate_analysis({"analysis": {"focus_on_security": True}})

    with pytest.raises(ConfigurationError):
        _validate_analysis({"analysis": "strict"})


def test_validate_defaults_helper():
    """Test helper for validating default values."""
    _validate_defaults({"max_workers": 8, "known_actions": {}})

    with pytest.raises(ConfigurationError):
        _validate_defaults({"max_workers": -1})


def test_merge_configs():
    """Test merging configurations."""
    base_config = {
        "rules": {"timeout": True, "documentation": True},
        "analysis": {"strict_mode": False},
        "simple_key": "base_value",
    }

    override_config = {
        "rules": {"timeout": False},
        "new_key": "new_value",
        "simple_key": "override_value",
    }

    merged = merge_configs(base_config, override_config)

    assert merged["rules"]["timeout"] is False
    assert merged["rules"]["documentation"] is True
    assert merged["simple_key"] == "override_value"
    assert merged["analysis"]["strict_mode"] is False
    assert merged["new_key"] == "new_value"


def test_generate_default_config():
    """Test generating default config."""
    config_str = generate_default_config()

    config = yaml.safe_load(config_str)
    assert config == DEFAULT_CONFIG
    validate_config(config)


def test_generate_default_config_to_file(temp_dir):
    """Test generating default config to a file."""
    output_path = os.path.join(temp_dir, "output_config.yml")
    generate_default_config(output_path)

    assert os.path.exists(output_path)

    with open(output_path, "r") as f:
        config = yaml.safe_load(f)

    assert config is not None
    assert "analysis" in config


def test_load_config_returns_deep_copy():
    """Mutating a loaded config should not affect DEFAULT_CONFIG."""
    config = load_config()

    config["analysis"]["strict_mode"] = True
    config["rules"]["timeout"] = False

    assert DEFAULT_CONFIG["analysis"]["strict_mode"] is False
    assert DEFAULT_CONFIG["rules"] == {}


def test_save_config(temp_dir):
    """Test saving config to file."""
    output_path = os.path.join(temp_dir, "saved_config.yml")
    config = {"rules": {"timeout": False}, "profile": "strict"}

    save_config(config, output_path)

    with open(output_path, "r") as f:
        loaded_config = yaml.safe_load(f)

    assert loaded_config == config


def test_save_config_nonexistent_dir(temp_dir):
    """Test saving config to a non-existent directory."""
    output_path = os.path.join(temp_dir, "nonexistent", "saved_config.yml")

    save_config({"rules": {"timeout": False}}, output_path)

    assert os.path.exists(output_path)


def test_disable_rules():
    """Test disabling specific rules."""
    config = {"rules": {"timeout": True, "documentation": True}}

    updated = disable_rules(config, ["timeout", "step_name"])

    assert config["rules"]["timeout"] is True
    assert "step_name" not in config["rules"]

    assert updated["rules"]["timeout"] is False
    assert updated["rules"]["step_name"] is False
    assert updated["rules"]["documentation"] is True


def test_disable_rules_without_rules_section():
    """Test disabling rules on a config without toggles."""
    updated = disable_rules({}, ["timeout"])

    assert updated == {"rules": {"timeout": False}}
