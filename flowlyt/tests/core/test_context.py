"""
test_context.py - Tests for workflow context classification
"""

import textwrap

import pytest

from flowlyt.core.context import classify_workflow, references_secrets
from flowlyt.core.models import WorkflowType
from flowlyt.core.parser import parse


def context_for(source: str, file_name: str = "wf.yml"):
    source = textwrap.dedent(source)
    return classify_workflow(parse(source, file_name), source)


def test_deploy_workflow_is_cd():
    """Test that deploy steps classify a workflow as CD."""
    context = context_for(
        """\
        on: push
        jobs:
          ship:
            runs-on: ubuntu-latest
            steps:
              - run: npm run deploy
        """
    )

    assert context.workflow_type == WorkflowType.CD.value
    assert context.has_production_indicators


def test_test_workflow_is_ci():
    """Test that test steps classify a workflow as CI."""
    context = context_for(
        """\
        on: pull_request
        jobs:
          check:
            runs-on: ubuntu-latest
            steps:
              - run: pytest
        """
    )

    assert context.workflow_type == WorkflowType.CI.value
    assert not context.has_production_indicators


def test_scheduled_workflow_is_automation():
    """Test that scheduled workflows without CI/CD keywords are automation."""
    context = context_for(
        """\
        on:
          schedule:
            - cron: "0 0 * * *"
        jobs:
          cleanup:
            runs-on: ubuntu-latest
            steps:
              - run: echo cleaning
        """
    )

    assert context.workflow_type == WorkflowType.AUTOMATION.value
    assert context.has_automation


def test_small_workflow_is_utility():
    """Test that a single small job is a utility workflow."""
    context = context_for(
        """\
        on: push
        jobs:
          greet:
            runs-on: ubuntu-latest
            steps:
              - run: echo hello
        """
    )

    assert context.workflow_type == WorkflowType.UTILITY.value
    assert context.total_jobs == 1
    assert context.total_steps == 1
    assert not context.is_complex


def test_execution_facts():
    """Test privileged triggers, secrets and conditional jobs."""
    context = context_for(
        """\
        on:
          pull_request_target:
          workflow_dispatch:
        env:
          TOKEN: ${{ secrets.API_TOKEN }}
        jobs:
          first:
            if: github.actor == 'octocat'
            runs-on: ubuntu-latest
            steps:
              - run: echo one
          second:
            runs-on: ubuntu-latest
            steps:
              - run: echo two
        """
    )

    assert context.has_privileged_triggers
    assert context.has_secrets
    assert context.conditional_jobs == 1
    assert context.triggers == ("pull_request_target", "workflow_dispatch")

    execution = context.execution_context()
    assert execution.has_privileged_triggers
    assert execution.conditional_jobs == 1


@pytest.mark.parametrize(
    "snippet,expected",
    [
        ("      - run: echo ${{ secrets.TOKEN }}\n", True),
        ("      - uses: some/action@v1\n        with:\n          key: ${{ secrets.KEY }}\n", True),
        ("      - run: echo ${{ github.sha }}\n", False),
    ],
)
def test_references_secrets(snippet, expected):
    """Test secret detection in step fields."""
    source = "on: push\njobs:\n  a:\n    runs-on: x\n    steps:\n" + snippet
    assert references_secrets(parse(source, "wf.yml")) is expected


def test_gitlab_secret_variables():
    """Test secret detection for GitLab predefined variables."""
    source = "publish:\n  script:\n    - docker login -p $CI_REGISTRY_PASSWORD registry\n"
    document = parse(source, ".gitlab-ci.yml")

    assert references_secrets(document)
