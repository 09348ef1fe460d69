"""
version.py - Version management utilities

This module provides version information for flowlyt together with the
helpers used to parse action references and compare action versions.
"""

import re
from typing import Any, Dict, Optional, Tuple

from ..core.models import ActionRef

# Version information
__version__ = "0.3.0"
__release_date__ = "2025-06-02"

SHA_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")
SEMVER_PATTERN = re.compile(r"^v?(\d+)(?:\.(\d+)(?:\.(\d+))?)?$")
UNSTABLE_BRANCHES = {"main", "master", "develop", "dev", "trunk", "latest", "head"}


def get_version() -> str:
    """
    Get flowlyt version

    Returns:
        Version string
    """
    return __version__


def get_version_info() -> Dict[str, Any]:
    """
    Get detailed version information

    Returns:
        Dictionary with version, release date, etc.
    """
    return {
        "version": __version__,
        "release_date": __release_date__,
        "release_year": int(__release_date__.split("-")[0]),
    }


def parse_version(version_str: str) -> Tuple[int, int, int]:
    """
    Parse a semantic version string

    Accepts an optional leading ``v`` and missing minor/patch components,
    so ``v4`` parses as ``(4, 0, 0)``.

    Raises:
        ValueError: If the version string is invalid
    """
    match = SEMVER_PATTERN.match(version_str.strip())
    if not match:
        raise ValueError(f"Invalid version format: {version_str}")

    return (
        int(match.group(1)),
        int(match.group(2) or 0),
        int(match.group(3) or 0),
    )


def compare_versions(version1: str, version2: str) -> int:
    """
    Compare two semantic version strings

    Returns:
        -1 if version1 < version2, 0 if equal, 1 if version1 > version2

    Raises:
        ValueError: If either version string is invalid
    """
    v1 = parse_version(version1)
    v2 = parse_version(version2)

    if v1 < v2:
        return -1
    elif v1 > v2:
        return 1
    else:
        return 0


def classify_ref(ref: Optional[str]) -> str:
    """Classify a ref as ``sha``, ``tag``, ``branch`` or ``missing``"""
    if not ref:
        return "missing"
    if SHA_PATTERN.match(ref):
        return "sha"
    if SEMVER_PATTERN.match(ref) or re.match(r"^v\d", ref):
        return "tag"
    return "branch"


def parse_action_ref(uses: str) -> ActionRef:
    """
    Parse a ``uses:`` reference

    Args:
        uses: Reference string, e.g. ``actions/checkout@v4`` or
            ``github/codeql-action/init@<sha>``

    Returns:
        ActionRef with owner, repo, optional sub-path, ref and ref type
    """
    uses = uses.strip()

    if uses.startswith("./") or uses.startswith("../"):
        return ActionRef(raw=uses, ref_type="local")
    if uses.startswith("docker://"):
        return ActionRef(raw=uses, ref_type="docker")

    name, _, ref = uses.partition("@")
    parts = name.split("/")
    owner = parts[0] or None
    repo = parts[1] if len(parts) > 1 and parts[1] else None
    path = "/".join(parts[2:]) if len(parts) > 2 else None

    return ActionRef(
        raw=uses,
        owner=owner,
        repo=repo,
        path=path or None,
        ref=ref or None,
        ref_type=classify_ref(ref or None),
    )


def is_sha_pinned(action_ref: str) -> bool:
    """
    Check if an action reference is pinned to a specific SHA

    Args:
        action_ref: Action reference string

    Returns:
        True if pinned to a SHA, False otherwise
    """
    return parse_action_ref(action_ref).is_sha_pinned


def is_unstable_reference(action_ref: str) -> bool:
    """Check if an action reference points at a well-known moving branch"""
    parsed = parse_action_ref(action_ref)
    return parsed.ref_type == "branch" and (parsed.ref or "").lower() in UNSTABLE_BRANCHES


def major_version(ref: Optional[str]) -> Optional[int]:
    """Major component of a tag-like ref, or None when it is not a version"""
    if not ref:
        return None
    match = re.match(r"^v?(\d+)(?:[.\-].*)?$", ref)
    return int(match.group(1)) if match else None
