"""
yaml_handler.py - Utilities for YAML processing

This module provides position-aware YAML loading for flowlyt, plus the
line-oriented text scanning helpers used when a tree carries no position
metadata and for code snippet extraction.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Union, cast

import yaml
from yaml.constructor import ConstructorError
from yaml.nodes import MappingNode, Node, ScalarNode

LINE_KEY = "__line__"
COLUMN_KEY = "__column__"
KEY_LINES_KEY = "__key_lines__"
POSITION_KEYS = (LINE_KEY, COLUMN_KEY, KEY_LINES_KEY)

MERGE_TAG = "tag:yaml.org,2002:merge"
BOOL_TAG = "tag:yaml.org,2002:bool"


class LineColumnLoader(yaml.SafeLoader):
    """Custom YAML loader that tracks line and column information"""

    def __init__(self, stream: Union[TextIO, str]) -> None:
        super().__init__(stream)

    def construct_mapping(self, node: MappingNode, deep: bool = False) -> Dict[Any, Any]:
        """Add line/column information to dictionaries and reject duplicate keys"""
        seen: Dict[Any, Node] = {}
        for key_node, _ in node.value:
            if not isinstance(key_node, ScalarNode) or key_node.tag == MERGE_TAG:
                continue
            if key_node.value in seen:
                raise ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key '{key_node.value}'",
                    key_node.start_mark,
                )
            seen[key_node.value] = key_node

        mapping = cast(Dict[Any, Any], super().construct_mapping(node, deep=deep))

        key_lines: Dict[str, int] = {}
        for key_node, _ in node.value:
            if isinstance(key_node, ScalarNode) and key_node.tag != MERGE_TAG:
                key_lines.setdefault(str(key_node.value), key_node.start_mark.line + 1)

        mapping[LINE_KEY] = node.start_mark.line + 1
        mapping[COLUMN_KEY] = node.start_mark.column
        mapping[KEY_LINES_KEY] = key_lines
        return mapping


# PyYAML follows YAML 1.1, where plain ``on``, ``off``, ``yes`` and ``no``
# resolve to booleans. Workflows use ``on`` as the trigger key, so the loader
# only resolves the YAML 1.2 boolean spellings. The resolver table is copied
# so yaml.SafeLoader itself keeps its default behaviour.
LineColumnLoader.yaml_implicit_resolvers = {
    first_char: [(tag, regexp) for tag, regexp in resolvers if tag != BOOL_TAG]
    for first_char, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

LineColumnLoader.add_implicit_resolver(
    BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def load_yaml_with_positions(content: str) -> Any:
    """
    Load YAML content and preserve line/column positions

    Args:
        content: YAML content as string

    Returns:
        Parsed YAML tree; every mapping carries position metadata

    Raises:
        yaml.YAMLError: If YAML parsing fails
    """
    return yaml.load(content, Loader=LineColumnLoader)


def load_yaml_file_with_positions(file_path: str) -> Any:
    """
    Load YAML file and preserve line/column positions

    Raises:
        FileNotFoundError: If file is not found
        yaml.YAMLError: If YAML parsing fails
    """
    with open(file_path, "r", encoding="utf-8") as f:
        return load_yaml_with_positions(f.read())


def clean_positions(obj: Any) -> Any:
    """
    Remove position information from a YAML object

    Args:
        obj: YAML object (dict, list, etc.)

    Returns:
        Cleaned object without position information
    """
    if isinstance(obj, dict):
        return {k: clean_positions(v) for k, v in obj.items() if k not in POSITION_KEYS}
    elif isinstance(obj, list):
        return [clean_positions(item) for item in obj]
    return obj


def get_key_line(mapping: Any, key: str) -> Optional[int]:
    """Line of ``key`` inside ``mapping`` when the loader recorded it"""
    if isinstance(mapping, dict):
        key_lines = mapping.get(KEY_LINES_KEY)
        if isinstance(key_lines, dict):
            return key_lines.get(key)
    return None


def get_line(mapping: Any) -> Optional[int]:
    if isinstance(mapping, dict):
        line = mapping.get(LINE_KEY)
        if isinstance(line, int):
            return line
    return None


def problem_line(error: yaml.YAMLError) -> Optional[int]:
    """Best-guess 1-based line number for a YAML error"""
    mark = getattr(error, "problem_mark", None) or getattr(error, "context_mark", None)
    if mark is not None:
        return int(mark.line) + 1
    return None


def find_github_workflow_files(repo_path: str) -> List[Path]:
    """
    Find GitHub Actions workflow files in a repository

    Args:
        repo_path: Path to repository

    Returns:
        List of paths to workflow files
    """
    path = Path(repo_path) / ".github" / "workflows"
    if not path.is_dir():
        return []

    return sorted(path.glob("*.y*ml"))


def find_gitlab_ci_files(repo_path: str) -> List[Path]:
    """Find GitLab CI definitions at the repository root"""
    root = Path(repo_path)
    candidates = [".gitlab-ci.yml", ".gitlab-ci.yaml", "gitlab-ci.yml", "gitlab-ci.yaml"]
    return [root / name for name in candidates if (root / name).is_file()]


# Line-oriented scanning


def find_line_number(content: str, search_text: str, start_line: int = 1) -> Optional[int]:
    """
    Find the first line containing ``search_text``

    Args:
        content: Source text
        search_text: Text to look for
        start_line: 1-based line to start searching from

    Returns:
        1-based line number, or None if not found
    """
    if not search_text:
        return None
    lines = content.splitlines()
    for idx in range(max(0, start_line - 1), len(lines)):
        if search_text in lines[idx]:
            return idx + 1
    return None


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


_KEY_LINE = re.compile(r"^[\"']?[A-Za-z0-9_.\-]+[\"']?\s*:")


def find_job_line_number(content: str, job_id: str) -> Optional[int]:
    """Line of the key defining ``job_id``"""
    pattern = re.compile(rf"^\s*[\"']?{re.escape(job_id)}[\"']?\s*:")
    for idx, line in enumerate(content.splitlines()):
        if pattern.match(line):
            return idx + 1
    return None


def find_step_line_number(content: str, job_id: str, step_index: int) -> Optional[int]:
    """
    Find the line where step ``step_index`` of ``job_id`` starts

    Steps are located by counting sequence entries under the job's
    ``steps:`` key.
    """
    lines = content.splitlines()
    job_line = find_job_line_number(content, job_id)
    if job_line is None:
        return None

    job_indent = _indent(lines[job_line - 1])
    steps_indent: Optional[int] = None
    item_indent: Optional[int] = None
    count = 0

    for idx in range(job_line, len(lines)):
        line = lines[idx]
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        indent = _indent(line)
        if indent <= job_indent and _KEY_LINE.match(stripped):
            break

        if steps_indent is None:
            if stripped.startswith("steps:"):
                steps_indent = indent
            continue

        if indent <= steps_indent and not stripped.startswith("-"):
            break
        if stripped.startswith("-"):
            if item_indent is None:
                item_indent = indent
            if indent == item_indent:
                if count == step_index:
                    return idx + 1
                count += 1
    return None


def extract_code_snippet(
    content: str, target_line: Optional[int], context: int = 2
) -> Optional[Dict[str, Any]]:
    """
    Extract a code snippet around a specific line number

    Args:
        content: Source text
        target_line: 1-based line to centre the snippet on
        context: Number of context lines before and after

    Returns:
        Dictionary with ``content``, ``start_line``, ``end_line`` and
        ``highlight_line`` (relative to the snippet), or None
    """
    if not target_line or target_line < 1:
        return None

    lines = content.splitlines()
    if target_line > len(lines):
        return None

    start = max(1, target_line - context)
    end = min(len(lines), target_line + context)

    return {
        "content": "\n".join(lines[start - 1 : end]),
        "start_line": start,
        "end_line": end,
        "highlight_line": target_line - start + 1,
    }


def has_comments(content: str) -> bool:
    """True if the YAML source contains at least one comment"""
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("#") or re.search(r"\s#", line):
            return True
    return False
