"""
parser.py - Canonical model builder

This module turns GitHub Actions workflows and GitLab CI definitions into the
dialect-independent WorkflowDocument consumed by the rest of flowlyt.
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional

import yaml

from ..utils.version import parse_action_ref
from ..utils.yaml_handler import (
    POSITION_KEYS,
    clean_positions,
    find_job_line_number,
    find_line_number,
    find_step_line_number,
    get_key_line,
    get_line,
    load_yaml_with_positions,
    problem_line,
)
from .models import Dialect, Job, Step, TriggerSpec, WorkflowDocument

logger = logging.getLogger(__name__)

GITLAB_FILE_NAMES = {".gitlab-ci.yml", ".gitlab-ci.yaml", "gitlab-ci.yml", "gitlab-ci.yaml"}

GITLAB_RESERVED_KEYS = {
    "image",
    "services",
    "stages",
    "types",
    "before_script",
    "after_script",
    "variables",
    "cache",
    "include",
    "workflow",
    "default",
    "spec",
}

GITLAB_JOB_MARKERS = ("script", "trigger", "extends", "stage")

# CI_PIPELINE_SOURCE values and only: keywords mapped to GitHub event names
GITLAB_TRIGGER_MAP = {
    "push": "push",
    "branches": "push",
    "tags": "push",
    "schedule": "schedule",
    "schedules": "schedule",
    "merge_request_event": "merge_request",
    "merge_requests": "merge_request",
    "external_pull_request_event": "merge_request",
    "web": "workflow_dispatch",
    "api": "repository_dispatch",
    "trigger": "repository_dispatch",
    "triggers": "repository_dispatch",
    "pipeline": "repository_dispatch",
    "pipelines": "repository_dispatch",
    "parent_pipeline": "repository_dispatch",
}

PIPELINE_SOURCE_PATTERN = re.compile(r"\$CI_PIPELINE_SOURCE\s*==\s*[\"']([A-Za-z_]+)[\"']")


class WorkflowParseError(Exception):
    """Raised when a pipeline definition cannot be turned into a document"""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line is not None:
            return f"{self.message} (line {self.line})"
        return self.message


def detect_dialect(file_name: str) -> str:
    """
    Guess the dialect of a pipeline file from its name

    Args:
        file_name: File name or path

    Returns:
        ``gitlab-ci`` for GitLab CI definitions, ``github-actions`` otherwise
    """
    base = os.path.basename(file_name).lower()
    if base in GITLAB_FILE_NAMES or base.endswith((".gitlab-ci.yml", ".gitlab-ci.yaml")):
        return Dialect.GITLAB_CI.value
    return Dialect.GITHUB_ACTIONS.value


def parse(source: str, file_name: str, dialect: Optional[str] = None) -> WorkflowDocument:
    """
    Parse pipeline YAML into a WorkflowDocument

    Args:
        source: Raw YAML text
        file_name: Name used for findings and dialect detection
        dialect: ``github-actions`` or ``gitlab-ci``; detected when omitted

    Returns:
        Canonical workflow document

    Raises:
        WorkflowParseError: If the YAML is malformed or the workflow is
            structurally invalid
    """
    try:
        tree = load_yaml_with_positions(source)
    except yaml.YAMLError as e:
        problem = getattr(e, "problem", None) or str(e)
        raise WorkflowParseError(f"Invalid YAML: {problem}", problem_line(e)) from e

    return build_document(tree, source, dialect or detect_dialect(file_name), file_name)


def build_document(tree: Any, source: str, dialect: str, file_name: str) -> WorkflowDocument:
    """
    Build a WorkflowDocument from an already parsed YAML tree

    Trees loaded without position metadata are accepted; lines are then
    recovered by scanning ``source``.

    Raises:
        WorkflowParseError: If the tree is not a valid workflow
    """
    if not isinstance(tree, dict):
        raise WorkflowParseError("Invalid YAML structure", 1)

    if dialect == Dialect.GITLAB_CI.value:
        document = _build_gitlab_document(tree, source, file_name)
    elif dialect == Dialect.GITHUB_ACTIONS.value:
        document = _build_github_document(tree, source, file_name)
    else:
        raise WorkflowParseError(f"Unsupported dialect: {dialect}")

    logger.debug(
        "Parsed %s (%s): %d jobs, %d steps",
        file_name,
        dialect,
        len(document.jobs),
        document.total_steps,
    )
    return document


def _condition(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).strip()
    return text or None


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _as_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return {str(k): v for k, v in clean_positions(value).items()}
    return {}


# GitHub Actions


def _github_triggers(tree: Dict[Any, Any]) -> Any:
    if "on" in tree:
        return tree["on"]
    # Trees loaded with a YAML 1.1 loader carry the trigger key as True
    if True in tree:
        return tree[True]
    return None


def _build_github_document(tree: Dict[Any, Any], source: str, file_name: str) -> WorkflowDocument:
    jobs_raw = tree.get("jobs")
    if not isinstance(jobs_raw, dict) or not any(k not in POSITION_KEYS for k in jobs_raw):
        raise WorkflowParseError("Workflow must contain jobs", get_key_line(tree, "jobs"))

    triggers_raw = _github_triggers(tree)
    if triggers_raw is None:
        raise WorkflowParseError("Workflow must specify triggers (on)", get_key_line(tree, "on"))

    jobs: Dict[str, Job] = {}
    for job_id, job_raw in jobs_raw.items():
        if job_id in POSITION_KEYS:
            continue
        job_id = str(job_id)
        job_line = get_key_line(jobs_raw, job_id) or find_job_line_number(source, job_id)
        if not isinstance(job_raw, dict):
            raise WorkflowParseError(f"Job '{job_id}' must be a mapping", job_line)
        jobs[job_id] = _build_github_job(job_id, job_raw, source, job_line)

    name = tree.get("name")
    return WorkflowDocument(
        file_name=file_name,
        dialect=Dialect.GITHUB_ACTIONS.value,
        name=str(name) if name is not None else None,
        on=TriggerSpec.from_raw(clean_positions(triggers_raw)),
        permissions=clean_positions(tree.get("permissions")),
        env=_as_dict(tree.get("env")),
        concurrency=clean_positions(tree.get("concurrency")),
        jobs=jobs,
    )


def _build_github_job(job_id: str, raw: Dict[str, Any], source: str, job_line: Optional[int]) -> Job:
    steps: List[Step] = []
    for index, step_raw in enumerate(_as_list(raw.get("steps"))):
        # Non-mapping entries are skipped but still consume an index
        if not isinstance(step_raw, dict):
            continue
        steps.append(_build_github_step(job_id, index, step_raw, source))

    name = raw.get("name")
    return Job(
        id=job_id,
        name=str(name) if name is not None else None,
        runs_on=clean_positions(raw.get("runs-on")),
        needs=[str(need) for need in _as_list(clean_positions(raw.get("needs")))],
        steps=steps,
        permissions=clean_positions(raw.get("permissions")),
        env=_as_dict(raw.get("env")),
        if_condition=_condition(raw.get("if")),
        concurrency=clean_positions(raw.get("concurrency")),
        timeout=raw.get("timeout-minutes"),
        continue_on_error=raw.get("continue-on-error"),
        strategy=_as_dict(raw.get("strategy")),
        outputs=_as_dict(raw.get("outputs")),
        environment=clean_positions(raw.get("environment")),
        secrets=clean_positions(raw.get("secrets")),
        uses=raw.get("uses"),
        with_args=_as_dict(raw.get("with")),
        line=job_line,
    )


def _build_github_step(job_id: str, index: int, raw: Dict[str, Any], source: str) -> Step:
    uses = raw.get("uses")
    run = raw.get("run")
    name = raw.get("name")
    line = get_line(raw) or find_step_line_number(source, job_id, index)
    return Step(
        index=index,
        name=str(name) if name is not None else None,
        uses=str(uses) if uses is not None else None,
        run=str(run) if run is not None else None,
        with_args=_as_dict(raw.get("with")),
        env=_as_dict(raw.get("env")),
        if_condition=_condition(raw.get("if")),
        id=raw.get("id"),
        shell=raw.get("shell"),
        continue_on_error=raw.get("continue-on-error"),
        action=parse_action_ref(str(uses)) if uses else None,
        line=line,
    )


# GitLab CI


def _is_gitlab_job(key: Any, value: Any) -> bool:
    if not isinstance(key, str) or key in POSITION_KEYS:
        return False
    if key in GITLAB_RESERVED_KEYS or key.startswith("."):
        return False
    return isinstance(value, dict) and any(marker in value for marker in GITLAB_JOB_MARKERS)


def _script_lines(value: Any) -> List[str]:
    """Flatten a GitLab script entry (string or nested lists) into lines"""
    if value is None:
        return []
    if isinstance(value, list):
        lines: List[str] = []
        for item in value:
            lines.extend(_script_lines(item))
        return lines
    return [str(value)]


def _gitlab_variables(value: Any) -> Dict[str, Any]:
    env: Dict[str, Any] = {}
    for key, item in _as_dict(value).items():
        # Expanded form: {value: ..., description: ...}
        if isinstance(item, dict):
            item = item.get("value")
        env[key] = item
    return env


def _gitlab_needs(value: Any) -> List[str]:
    needs: List[str] = []
    for entry in _as_list(value):
        if isinstance(entry, dict):
            if "job" in entry:
                needs.append(str(entry["job"]))
        else:
            needs.append(str(entry))
    return needs


def _gitlab_condition(raw: Dict[str, Any]) -> Optional[str]:
    when = raw.get("when")
    if when == "never":
        return "false"

    conditions = [
        str(rule["if"]).strip()
        for rule in _as_list(raw.get("rules"))
        if isinstance(rule, dict) and rule.get("if")
    ]
    if conditions:
        return " || ".join(conditions)
    if when == "manual":
        return "manual"
    return None


def _gitlab_triggers(tree: Dict[str, Any], source: str) -> List[str]:
    events: List[str] = []

    def add(keyword: str) -> None:
        event = GITLAB_TRIGGER_MAP.get(keyword, "push")
        if event not in events:
            events.append(event)

    for match in PIPELINE_SOURCE_PATTERN.finditer(source):
        add(match.group(1))

    for key, value in tree.items():
        if not isinstance(value, dict) or key in POSITION_KEYS:
            continue
        only = value.get("only")
        if isinstance(only, dict):
            only = only.get("refs")
        for entry in _as_list(only):
            add(str(entry))

    return events or ["push"]


def _build_gitlab_document(tree: Dict[str, Any], source: str, file_name: str) -> WorkflowDocument:
    defaults = tree.get("default") if isinstance(tree.get("default"), dict) else {}
    before = tree.get("before_script", defaults.get("before_script"))
    after = tree.get("after_script", defaults.get("after_script"))
    cache = tree.get("cache", defaults.get("cache"))

    jobs: Dict[str, Job] = {}
    for key, value in tree.items():
        if not _is_gitlab_job(key, value):
            continue
        job_line = get_key_line(tree, key) or find_job_line_number(source, key)
        jobs[key] = _build_gitlab_job(key, value, source, job_line, before, after, cache, defaults)

    if not jobs:
        raise WorkflowParseError("Workflow must contain jobs", 1)

    workflow_section = tree.get("workflow") if isinstance(tree.get("workflow"), dict) else {}
    name = workflow_section.get("name")
    events = _gitlab_triggers(tree, source)

    return WorkflowDocument(
        file_name=file_name,
        dialect=Dialect.GITLAB_CI.value,
        name=str(name) if name is not None else None,
        on=TriggerSpec(kind="list", raw=events, events=tuple(events)),
        env=_gitlab_variables(tree.get("variables")),
        jobs=jobs,
    )


def _build_gitlab_job(
    job_id: str,
    raw: Dict[str, Any],
    source: str,
    job_line: Optional[int],
    before: Any,
    after: Any,
    cache: Any,
    defaults: Dict[str, Any],
) -> Job:
    commands = (
        _script_lines(raw.get("before_script", before))
        + _script_lines(raw.get("script"))
        + _script_lines(raw.get("after_script", after))
    )

    steps: List[Step] = []
    search_from = job_line or 1
    for index, command in enumerate(commands):
        first_line = command.strip().splitlines()[0] if command.strip() else command
        line = find_line_number(source, first_line, search_from) or find_line_number(
            source, first_line
        )
        if line is not None and line >= search_from:
            search_from = line + 1
        steps.append(Step(index=index, run=command, line=line))

    tags = raw.get("tags", defaults.get("tags"))
    return Job(
        id=job_id,
        runs_on=[str(tag) for tag in _as_list(clean_positions(tags))] or None,
        needs=_gitlab_needs(clean_positions(raw.get("needs"))),
        steps=steps,
        env=_gitlab_variables(raw.get("variables")),
        if_condition=_gitlab_condition(raw),
        timeout=raw.get("timeout", defaults.get("timeout")),
        continue_on_error=raw.get("allow_failure"),
        strategy=_as_dict(raw.get("parallel")) if isinstance(raw.get("parallel"), dict) else {},
        environment=clean_positions(raw.get("environment")),
        secrets=clean_positions(raw.get("secrets")),
        stage=raw.get("stage"),
        cache=clean_positions(raw.get("cache", cache)),
        artifact_dependencies=[str(dep) for dep in _as_list(raw.get("dependencies"))],
        line=job_line,
    )
