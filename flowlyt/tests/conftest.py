"""
conftest.py - Pytest fixtures for flowlyt tests
"""

import tempfile
from pathlib import Path

import pytest
import yaml

from flowlyt.core.parser import parse


@pytest.fixture
def temp_dir():
    """Create a temporary directory that is removed after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user and working-directory config files out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def sample_workflow_content():
    """Sample GitHub Actions workflow content."""
    return """
name: Sample Workflow

on:
  push:
    branches: [ main ]
  pull_request:
    branches: [ main ]

jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v3
      - name: Set up Python
        uses: actions/setup-python@v4
        with:
          python-version: '3.10'
      - name: Install dependencies
        run: |
          python -m pip install --upgrade pip
          pip install -e .
      - name: Run tests
        run: pytest
"""


@pytest.fixture
def insecure_workflow_content():
    """Sample workflow with security issues."""
    return """
name: Insecure Workflow

on:
  pull_request_target:
    branches: [ main ]

jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v3
        with:
          ref: ${{ github.event.pull_request.head.ref }}
      - name: Set up Python
        uses: actions/setup-python@v1
      - name: Run command
        run: |
          echo "Running with input ${{ github.event.pull_request.title }}"
          eval "${{ github.event.comment.body }}"
      - name: Install tooling
        run: curl -sSL https://example.com/install.sh | bash
"""


@pytest.fixture
def gitlab_ci_content():
    """Sample GitLab CI pipeline."""
    return """
stages:
  - build
  - test
  - deploy

variables:
  APP_ENV: staging

before_script:
  - echo "preparing"

build-job:
  stage: build
  script:
    - make build
  artifacts:
    paths:
      - dist/

test-job:
  stage: test
  needs: [build-job]
  script:
    - make test

deploy-job:
  stage: deploy
  dependencies: [build-job]
  script:
    - ./deploy.sh
  rules:
    - if: '$CI_PIPELINE_SOURCE == "push"'

.template:
  script:
    - echo "hidden"
"""


def _write_workflow(temp_dir, name, content):
    workflows_dir = Path(temp_dir) / ".github" / "workflows"
    workflows_dir.mkdir(parents=True, exist_ok=True)

    workflow_file = workflows_dir / name
    workflow_file.write_text(content)
    return str(workflow_file)


@pytest.fixture
def sample_workflow_file(temp_dir, sample_workflow_content):
    """Create a sample workflow file in a temporary directory."""
    return _write_workflow(temp_dir, "sample.yml", sample_workflow_content)


@pytest.fixture
def insecure_workflow_file(temp_dir, insecure_workflow_content):
    """Create an insecure workflow file in a temporary directory."""
    return _write_workflow(temp_dir, "insecure.yml", insecure_workflow_content)


@pytest.fixture
def mock_repo(temp_dir, sample_workflow_file, insecure_workflow_file, gitlab_ci_content):
    """Create a mock repository with GitHub workflows and a GitLab pipeline."""

    readme_file = Path(temp_dir) / "README.md"
    readme_file.write_text("# Mock Repository\n\nThis is a mock repository for testing flowlyt.")

    (Path(temp_dir) / ".gitlab-ci.yml").write_text(gitlab_ci_content)

    config_file = Path(temp_dir) / "flowlyt.yml"
    with open(config_file, "w") as f:
        yaml.dump({"rules": {"documentation": False}}, f)

    return temp_dir


@pytest.fixture
def check_rule():
    """Run a single rule against YAML source."""

    def _check(rule, source, file_name="workflow.yml"):
        document = parse(source, file_name)
        return rule.check(document, source, file_name)

    return _check
