"""
known_actions.py - Known-actions database

Optional lookup from ``owner/repo`` to the action's latest release tag and,
where known, the commit SHA that tag resolves to. The database only enriches
suggestions; a missing or stale entry never blocks a finding.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnownAction:
    name: str
    latest_tag: str
    sha: Optional[str] = None


# Latest major tags of common actions. SHAs are supplied by the host through
# a database file since they go stale with every release.
DEFAULT_LATEST_TAGS = {
    "actions/checkout": "v4",
    "actions/setup-node": "v4",
    "actions/setup-python": "v5",
    "actions/setup-java": "v4",
    "actions/setup-go": "v5",
    "actions/setup-dotnet": "v4",
    "actions/cache": "v4",
    "actions/upload-artifact": "v4",
    "actions/download-artifact": "v4",
    "actions/github-script": "v7",
    "docker/build-push-action": "v6",
    "docker/setup-buildx-action": "v3",
    "docker/login-action": "v3",
    "codecov/codecov-action": "v5",
    "hashicorp/setup-terraform": "v3",
    "aws-actions/configure-aws-credentials": "v4",
    "azure/login": "v2",
}


class KnownActionsDatabase:
    """In-memory ``owner/repo`` → KnownAction lookup"""

    def __init__(self, entries: Optional[Dict[str, KnownAction]] = None) -> None:
        self._entries: Dict[str, KnownAction] = {}
        for name, entry in (entries or {}).items():
            self._entries[name.lower()] = entry

    @classmethod
    def default(cls) -> "KnownActionsDatabase":
        return cls(
            {name: KnownAction(name=name, latest_tag=tag) for name, tag in DEFAULT_LATEST_TAGS.items()}
        )

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "KnownActionsDatabase":
        """
        Build a database from a plain mapping

        Each value is either a tag string or a mapping with ``tag`` and an
        optional ``sha``. Malformed entries are skipped with a warning.
        """
        entries: Dict[str, KnownAction] = {}
        for name, value in data.items():
            if isinstance(value, str):
                entries[str(name)] = KnownAction(name=str(name), latest_tag=value)
            elif isinstance(value, dict) and value.get("tag"):
                sha = value.get("sha")
                entries[str(name)] = KnownAction(
                    name=str(name),
                    latest_tag=str(value["tag"]),
                    sha=str(sha) if sha else None,
                )
            else:
                logger.warning("Ignoring malformed known-actions entry for %s", name)
        return cls(entries)

    @classmethod
    def from_file(cls, path: str) -> "KnownActionsDatabase":
        """
        Load a database from a YAML file

        Raises:
            OSError: If the file cannot be read
            yaml.YAMLError: If the file is not valid YAML
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning("Known-actions database %s is not a mapping; ignoring it", path)
            return cls()
        return cls.from_mapping(data)

    def merged(self, other: "KnownActionsDatabase") -> "KnownActionsDatabase":
        """Return a new database where ``other``'s entries win"""
        combined = dict(self._entries)
        combined.update(other._entries)
        return KnownActionsDatabase(combined)

    def lookup(self, name: str) -> Optional[KnownAction]:
        return self._entries.get(name.lower())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)
