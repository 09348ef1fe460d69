"""
test_parser.py - Tests for the canonical model builder
"""

import textwrap

import pytest

from flowlyt.core.models import Dialect
from flowlyt.core.parser import WorkflowParseError, build_document, detect_dialect, parse


BASIC_WORKFLOW = textwrap.dedent(
    """\
    name: CI
    on:
      push:
        branches: [main]
    jobs:
      build:
        runs-on: ubuntu-latest
        steps:
          - uses: actions/checkout@v4
          - name: Test
            run: pytest
    """
)


def test_parse_github_workflow():
    """Test building a document from a GitHub Actions workflow."""
    document = parse(BASIC_WORKFLOW, "ci.yml")

    assert document.dialect == Dialect.GITHUB_ACTIONS.value
    assert document.name == "CI"
    assert document.triggers == ["push"]
    assert document.on.kind == "map"
    assert document.on.raw["push"] == {"branches": ["main"]}

    job = document.jobs["build"]
    assert job.runs_on == "ubuntu-latest"
    assert job.line == 6
    assert len(job.steps) == 2

    checkout, test = job.steps
    assert checkout.action.owner == "actions"
    assert checkout.action.repo == "checkout"
    assert checkout.action.ref == "v4"
    assert checkout.action.ref_type == "tag"
    assert checkout.line == 9
    assert test.name == "Test"
    assert test.run == "pytest"
    assert test.line == 10


@pytest.mark.parametrize(
    "on_value,kind,events",
    [
        ("push", "single", ["push"]),
        ("[push, pull_request]", "list", ["push", "pull_request"]),
        ("{workflow_dispatch: {}, schedule: [{cron: '0 0 * * *'}]}", "map", ["workflow_dispatch", "schedule"]),
    ],
)
def test_trigger_shapes(on_value, kind, events):
    """Test that every shape of the on: field normalizes to a list of events."""
    source = f"on: {on_value}\njobs:\n  a:\n    runs-on: x\n    steps:\n      - run: echo\n"
    document = parse(source, "wf.yml")

    assert document.on.kind == kind
    assert document.triggers == events


def test_yaml_11_booleans_are_not_resolved():
    """Test that on/yes/no stay strings while true/false stay booleans."""
    source = textwrap.dedent(
        """\
        on: push
        env:
          FLAG: yes
          ENABLED: true
        jobs:
          a:
            runs-on: x
            steps:
              - run: echo
        """
    )
    document = parse(source, "wf.yml")

    assert document.triggers == ["push"]
    assert document.env == {"FLAG": "yes", "ENABLED": True}


def test_missing_jobs():
    """Test that a workflow without jobs is rejected."""
    with pytest.raises(WorkflowParseError) as exc_info:
        parse("name: x\non: push\n", "wf.yml")

    assert exc_info.value.message == "Workflow must contain jobs"


def test_missing_triggers():
    """Test that a workflow without triggers is rejected."""
    source = "jobs:\n  a:\n    runs-on: x\n    steps:\n      - run: echo\n"
    with pytest.raises(WorkflowParseError) as exc_info:
        parse(source, "wf.yml")

    assert exc_info.value.message == "Workflow must specify triggers (on)"


def test_invalid_yaml_reports_line():
    """Test that malformed YAML becomes a parse error with a line."""
    source = "on: push\njobs: [unclosed\n"
    with pytest.raises(WorkflowParseError) as exc_info:
        parse(source, "wf.yml")

    assert str(exc_info.value).startswith("Invalid YAML")
    assert exc_info.value.line is not None


def test_duplicate_keys_rejected():
    """Test that duplicate mapping keys are a parse error."""
    source = "on: push\non: pull_request\njobs:\n  a:\n    runs-on: x\n"
    with pytest.raises(WorkflowParseError):
        parse(source, "wf.yml")


def test_non_mapping_root():
    """Test that a YAML list is not a workflow."""
    with pytest.raises(WorkflowParseError) as exc_info:
        parse("- a\n- b\n", "wf.yml")

    assert exc_info.value.message == "Invalid YAML structure"
    assert str(exc_info.value) == "Invalid YAML structure (line 1)"


def test_job_must_be_mapping():
    """Test that a scalar job definition is rejected."""
    with pytest.raises(WorkflowParseError) as exc_info:
        parse("on: push\njobs:\n  build: echo\n", "wf.yml")

    assert exc_info.value.message == "Job 'build' must be a mapping"
    assert exc_info.value.line == 3


def test_non_mapping_steps_keep_indices():
    """Test that invalid step entries are skipped without renumbering."""
    source = textwrap.dedent(
        """\
        on: push
        jobs:
          a:
            runs-on: x
            steps:
              - just a string
              - run: echo hi
        """
    )
    document = parse(source, "wf.yml")

    steps = document.jobs["a"].steps
    assert len(steps) == 1
    assert steps[0].index == 1
    assert steps[0].run == "echo hi"


def test_mapping_needs_has_no_position_keys():
    """Test that a malformed mapping-valued needs carries no loader metadata."""
    source = textwrap.dedent(
        """\
        on: push
        jobs:
          a:
            runs-on: x
            needs: {b: 1}
            steps:
              - run: echo hi
        """
    )
    document = parse(source, "wf.yml")

    assert document.jobs["a"].needs == ["{'b': 1}"]


def test_build_document_from_plain_tree():
    """Test building from a tree without position metadata."""
    source = "on: push\njobs:\n  build:\n    runs-on: x\n    steps:\n      - run: echo\n"
    tree = {"on": "push", "jobs": {"build": {"runs-on": "x", "steps": [{"run": "echo"}]}}}

    document = build_document(tree, source, Dialect.GITHUB_ACTIONS.value, "wf.yml")

    assert document.jobs["build"].line == 3
    assert document.jobs["build"].steps[0].line == 6


def test_unsupported_dialect():
    """Test that unknown dialects are rejected."""
    with pytest.raises(WorkflowParseError):
        build_document({"on": "push"}, "", "jenkins", "Jenkinsfile")


@pytest.mark.parametrize(
    "file_name,dialect",
    [
        (".gitlab-ci.yml", Dialect.GITLAB_CI.value),
        ("ci/.gitlab-ci.yaml", Dialect.GITLAB_CI.value),
        (".github/workflows/ci.yml", Dialect.GITHUB_ACTIONS.value),
        ("release.yaml", Dialect.GITHUB_ACTIONS.value),
    ],
)
def test_detect_dialect(file_name, dialect):
    """Test dialect detection from file names."""
    assert detect_dialect(file_name) == dialect


def test_parse_gitlab_pipeline(gitlab_ci_content):
    """Test building a document from a GitLab CI pipeline."""
    document = parse(gitlab_ci_content, ".gitlab-ci.yml")

    assert document.dialect == Dialect.GITLAB_CI.value
    assert list(document.jobs) == ["build-job", "test-job", "deploy-job"]
    assert document.env == {"APP_ENV": "staging"}
    assert document.triggers == ["push"]

    build = document.jobs["build-job"]
    assert build.stage == "build"
    assert [step.run for step in build.steps] == ['echo "preparing"', "make build"]
    assert all(step.line is not None for step in build.steps)

    test = document.jobs["test-job"]
    assert test.needs == ["build-job"]

    deploy = document.jobs["deploy-job"]
    assert deploy.artifact_dependencies == ["build-job"]
    assert deploy.if_condition == '$CI_PIPELINE_SOURCE == "push"'


def test_gitlab_conditions_and_triggers():
    """Test when:, rules: and only: handling for GitLab jobs."""
    source = textwrap.dedent(
        """\
        variables:
          DB_PASSWORD:
            value: example
            description: database password
        nightly:
          script: ./nightly.sh
          only:
            - schedules
        disabled:
          script: echo off
          when: never
        release:
          script: ./release.sh
          when: manual
          tags: [shell]
          allow_failure: true
        """
    )
    document = parse(source, ".gitlab-ci.yml")

    assert document.env == {"DB_PASSWORD": "example"}
    assert document.triggers == ["schedule"]
    assert document.jobs["disabled"].if_condition == "false"
    assert document.jobs["release"].if_condition == "manual"
    assert document.jobs["release"].runs_on == ["shell"]
    assert document.jobs["release"].continue_on_error is True


def test_gitlab_without_jobs():
    """Test that a GitLab file with only global keywords is rejected."""
    with pytest.raises(WorkflowParseError) as exc_info:
        parse("stages: [build]\nvariables:\n  A: b\n", ".gitlab-ci.yml")

    assert exc_info.value.message == "Workflow must contain jobs"


def test_forced_dialect():
    """Test that an explicit dialect wins over file name detection."""
    source = "build:\n  script:\n    - make\n"
    document = parse(source, "pipeline.yml", dialect=Dialect.GITLAB_CI.value)

    assert document.dialect == Dialect.GITLAB_CI.value
    assert "build" in document.jobs
