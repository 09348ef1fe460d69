"""
structure.py - Workflow structure rules
"""

from typing import List

from ..core.models import Finding, FindingType, Job, WorkflowDocument
from ..utils.yaml_handler import find_job_line_number, find_line_number
from .base import JobRule, Rule

STRUCTURE = FindingType.STRUCTURE.value


class MissingDependencyRule(JobRule):
    """Rule for needs entries that reference jobs which do not exist"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="missing_dependency",
            finding_type=STRUCTURE,
            severity="error",
            title="Missing job dependency",
            description="A job depends on a job that does not exist",
            remediation="Check job name spelling or remove the dependency",
        )

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        findings: List[Finding] = []
        for dependency in job.needs + job.artifact_dependencies:
            if dependency in document.jobs:
                continue
            line = find_line_number(source, dependency, (job.line or 0) + 1) or job.line
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    title=f"Missing job dependency '{dependency}'",
                    description=f"Job '{job.id}' depends on '{dependency}' which doesn't exist",
                    job=job.id,
                    line=line,
                    key=dependency,
                )
            )
        return findings


class ComplexWorkflowRule(Rule):
    """Rule for workflows with very many steps"""

    MAX_STEPS = 50

    def __init__(self) -> None:
        super().__init__(
            rule_id="complex_workflow",
            finding_type=STRUCTURE,
            severity="warning",
            title="Complex workflow structure",
            description="The workflow has a large number of steps",
            remediation="Consider breaking this into multiple workflows or using reusable workflows",
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        total = document.total_steps
        if total <= self.MAX_STEPS:
            return []
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Workflow has {total} total steps across {len(document.jobs)} jobs",
                line=find_line_number(source, "jobs:"),
            )
        ]


class ComplexTriggersRule(Rule):
    """Rule for workflows reacting to many different events"""

    MAX_TRIGGERS = 5

    def __init__(self) -> None:
        super().__init__(
            rule_id="complex_triggers",
            finding_type=STRUCTURE,
            severity="info",
            title="Complex trigger configuration",
            description="The workflow reacts to many different events",
            remediation="Consider if all triggers are necessary or if some could be moved to separate workflows",
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        triggers = document.triggers
        if len(triggers) <= self.MAX_TRIGGERS:
            return []
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Workflow has {len(triggers)} different trigger types",
                line=find_job_line_number(source, "on"),
            )
        ]


class ExcessiveJobsRule(Rule):
    """Rule for workflows with a very high number of jobs"""

    MAX_JOBS = 20

    def __init__(self) -> None:
        super().__init__(
            rule_id="excessive_jobs",
            finding_type=STRUCTURE,
            severity="warning",
            title="High number of jobs",
            description="The workflow defines many jobs",
            remediation="Consider splitting the workflow or using reusable workflows",
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        count = len(document.jobs)
        if count <= self.MAX_JOBS:
            return []
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Workflow has {count} jobs",
                line=find_line_number(source, "jobs:"),
            )
        ]
