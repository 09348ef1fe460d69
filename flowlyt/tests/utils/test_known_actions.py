"""
test_known_actions.py - Tests for the known-actions database
"""

import logging

import pytest
import yaml

from flowlyt.utils.known_actions import DEFAULT_LATEST_TAGS, KnownAction, KnownActionsDatabase

SHA = "d632683dd7b4114ad314bca15554477dd762a938"


def test_default_database():
    """Test the built-in latest tags."""
    database = KnownActionsDatabase.default()

    assert len(database) == len(DEFAULT_LATEST_TAGS)
    checkout = database.lookup("actions/checkout")
    assert checkout == KnownAction(name="actions/checkout", latest_tag="v4")
    assert checkout.sha is None
    assert "Actions/Checkout" in database
    assert database.lookup("some-org/unknown") is None


def test_from_mapping(caplog):
    """Test building a database from plain data."""
    with caplog.at_level(logging.WARNING, logger="flowlyt.utils.known_actions"):
        database = KnownActionsDatabase.from_mapping(
            {
                "actions/checkout": {"tag": "v4.2.2", "sha": SHA},
                "docker/login-action": "v3",
                "broken/entry": {"sha": SHA},
            }
        )

    assert database.lookup("actions/checkout").sha == SHA
    assert database.lookup("docker/login-action").latest_tag == "v3"
    assert "broken/entry" not in database
    assert "Ignoring malformed known-actions entry for broken/entry" in caplog.text


def test_from_file(tmp_path):
    """Test loading a database file."""
    path = tmp_path / "known-actions.yml"
    path.write_text(yaml.dump({"actions/cache": {"tag": "v4.1.2", "sha": SHA}}))

    database = KnownActionsDatabase.from_file(str(path))

    assert database.lookup("actions/cache").latest_tag == "v4.1.2"


def test_from_file_not_a_mapping(tmp_path):
    """Test that a non-mapping file yields an empty database."""
    path = tmp_path / "known-actions.yml"
    path.write_text("- actions/checkout\n")

    assert len(KnownActionsDatabase.from_file(str(path))) == 0


def test_from_file_missing(tmp_path):
    """Test that a missing file raises."""
    with pytest.raises(OSError):
        KnownActionsDatabase.from_file(str(tmp_path / "missing.yml"))


def test_merged():
    """Test that merged entries override the base database."""
    base = KnownActionsDatabase.default()
    override = KnownActionsDatabase.from_mapping({"actions/checkout": {"tag": "v5", "sha": SHA}})

    merged = base.merged(override)

    assert merged.lookup("actions/checkout").latest_tag == "v5"
    assert merged.lookup("actions/cache").latest_tag == "v4"
    assert base.lookup("actions/checkout").latest_tag == "v4"
