"""
best_practices.py - Best practice rules

This module provides rules focused on maintainability and readability rather
than strict security issues.
"""

import re
from typing import Any, Dict, List

from ..core.models import Dialect, Finding, FindingType, Job, Step, WorkflowDocument
from ..utils.yaml_handler import find_line_number, has_comments
from . import patterns
from .base import JobRule, Rule, StepRule

BEST_PRACTICE = FindingType.BEST_PRACTICE.value
GITHUB_ONLY = (Dialect.GITHUB_ACTIONS.value,)

FAILURE_CONDITION = re.compile(r"\b(?:failure|always|cancelled)\(\)")


def handles_errors(job: Job) -> bool:
    """True if the job has any step dealing with failures"""
    if job.continue_on_error is not None:
        return True
    return any(
        step.continue_on_error is not None
        or (step.if_condition and FAILURE_CONDITION.search(step.if_condition))
        for step in job.steps
    )


class WorkflowNameRule(Rule):
    """Rule for checking workflow name"""

    dialects = GITHUB_ONLY

    def __init__(self) -> None:
        super().__init__(
            rule_id="workflow_name",
            finding_type=BEST_PRACTICE,
            severity="warning",
            title="Missing workflow name",
            description="Workflow should have a descriptive name",
            remediation='Add a "name" field at the top of your workflow file',
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        if document.name and document.name.strip():
            return []
        return [self.create_finding(file_name, source, line=1)]


class JobNameRule(JobRule):
    """Rule for checking job display names"""

    dialects = GITHUB_ONLY

    def __init__(self) -> None:
        super().__init__(
            rule_id="job_name",
            finding_type=BEST_PRACTICE,
            severity="info",
            title="Missing job name",
            description="Job should have a descriptive name",
            remediation='Add a "name" field to make the job purpose clear in the UI',
        )

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        if job.name and job.name.strip():
            return []
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Job '{job.id}' should have a descriptive name",
                job=job.id,
                line=job.line,
            )
        ]


class StepNameRule(StepRule):
    """Rule for checking step names"""

    dialects = GITHUB_ONLY

    def __init__(self) -> None:
        super().__init__(
            rule_id="step_name",
            finding_type=BEST_PRACTICE,
            severity="info",
            title="Missing step name",
            description="Step should have a name",
            remediation="Add descriptive names to steps for better readability",
        )

    def check_step(
        self, document: WorkflowDocument, job: Job, step: Step, source: str, file_name: str
    ) -> List[Finding]:
        if step.name or not (step.uses or step.run):
            return []
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Step {step.index + 1} in job '{job.id}' should have a name",
                job=job.id,
                step=step.index,
                line=step.line,
            )
        ]


class TimeoutRule(JobRule):
    """Rule for checking job timeouts"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="timeout",
            finding_type=BEST_PRACTICE,
            severity="info",
            title="Missing job timeout",
            description="Jobs should have a timeout set to prevent hanging",
            remediation="Add timeout-minutes to jobs, especially those with many steps",
        )
        self.min_steps = 5
        self.strict = False

    def configure(self, options: Dict[str, Any]) -> None:
        self.strict = bool(options.get("strict_mode", False))

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        # Reusable workflow calls take their timeout from the callee
        if job.timeout is not None or job.uses:
            return []
        if not self.strict and len(job.steps) <= self.min_steps:
            return []

        suggestion = self.remediation
        if document.dialect == Dialect.GITLAB_CI.value:
            suggestion = "Add a timeout: to the job"
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Job '{job.id}' has {len(job.steps)} steps but no timeout",
                job=job.id,
                line=job.line,
                suggestion=suggestion,
            )
        ]


class ErrorHandlingRule(JobRule):
    """Rule for jobs and risky steps without failure handling"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="error_handling",
            finding_type=BEST_PRACTICE,
            severity="info",
            title="No error handling detected",
            description="Job may benefit from error handling strategies",
            remediation="Consider adding continue-on-error or conditional steps for error scenarios",
        )
        self.min_steps = 3

    def is_risky(self, step: Step) -> bool:
        text = " ".join(value for value in (step.name, step.uses, step.run) if value)
        return bool(patterns.DEPLOY_KEYWORDS.search(text))

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        if handles_errors(job):
            return []

        findings: List[Finding] = []
        if len(job.steps) > self.min_steps:
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    description=f"Job '{job.id}' may benefit from error handling strategies",
                    job=job.id,
                    line=job.line,
                )
            )

        for step in job.steps:
            if step.if_condition or not self.is_risky(step):
                continue
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    title="Risky step without error handling",
                    description=f"Step {step.index + 1} in job '{job.id}' deploys or publishes without a failure path",
                    job=job.id,
                    step=step.index,
                    line=step.line,
                    suggestion="Add a follow-up step with if: failure() to notify or roll back",
                )
            )

        return findings


class DocumentationRule(Rule):
    """Rule for workflows without any comments"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="documentation",
            finding_type=BEST_PRACTICE,
            severity="info",
            title="No inline documentation",
            description="Workflow could benefit from comments explaining complex logic",
            remediation="Add YAML comments to explain workflow purpose and complex steps",
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        if has_comments(source):
            return []
        return [self.create_finding(file_name, source)]


class EnvShadowingRule(JobRule):
    """Rule for job or step env entries that redefine workflow-level variables"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="env_shadowing",
            finding_type=BEST_PRACTICE,
            severity="info",
            title="Environment variable shadowing",
            description="A job redefines a workflow-level environment variable",
            remediation="Consider using a different variable name to avoid confusion",
        )

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        if not document.env:
            return []

        names: List[str] = list(job.env)
        for step in job.steps:
            names.extend(name for name in step.env if name not in names)

        findings: List[Finding] = []
        for name in names:
            if name not in document.env:
                continue
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    description=f"Job '{job.id}' redefines global environment variable '{name}'",
                    job=job.id,
                    line=find_line_number(source, f"{name}:", job.line or 1) or job.line,
                    key=name,
                )
            )
        return findings
