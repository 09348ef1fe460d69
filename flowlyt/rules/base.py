"""
base.py - Base classes for flowlyt rules

This module provides the foundation for implementing rules in flowlyt.
Rules inspect a canonical WorkflowDocument and report findings with the
location evidence needed to show them in context.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..core.models import CodeSnippet, Dialect, Finding, Job, Location, Step, WorkflowDocument
from ..utils.yaml_handler import extract_code_snippet


class Rule(ABC):
    """Base class for all flowlyt rules"""

    #: Dialects the rule applies to
    dialects: Sequence[str] = (Dialect.GITHUB_ACTIONS.value, Dialect.GITLAB_CI.value)

    def __init__(
        self,
        rule_id: str,
        finding_type: str,
        severity: str,
        title: str,
        description: str,
        remediation: str,
        links: Optional[List[str]] = None,
    ):
        """
        Initialize a rule

        Args:
            rule_id: Unique identifier for the rule
            finding_type: Finding type reported by the rule (security, performance, ...)
            severity: Default severity level (error, warning, info)
            title: Default finding title
            description: Human-readable description of the rule
            remediation: Generic remediation advice for this rule
            links: Reference documentation links
        """
        self.rule_id = rule_id
        self.finding_type = finding_type
        self.severity = severity
        self.title = title
        self.description = description
        self.remediation = remediation
        self.links = list(links or [])
        self.enabled = True

    @abstractmethod
    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        """
        Check a workflow document

        Args:
            document: Canonical workflow document
            source: Raw YAML text, used for snippets and line lookups
            file_name: File name reported on findings

        Returns:
            List of findings
        """
        pass

    def configure(self, options: Dict[str, Any]) -> None:
        """Receive engine-wide options; rules without options ignore them"""

    def applies_to(self, document: WorkflowDocument) -> bool:
        return document.dialect in self.dialects

    def create_finding(
        self,
        file_name: str,
        source: str,
        description: Optional[str] = None,
        title: Optional[str] = None,
        severity: Optional[str] = None,
        job: Optional[str] = None,
        step: Optional[int] = None,
        line: Optional[int] = None,
        suggestion: Optional[str] = None,
        links: Optional[List[str]] = None,
        key: Optional[str] = None,
    ) -> Finding:
        """
        Create a Finding object for this rule

        Args:
            file_name: File the finding belongs to
            source: Raw YAML text used to extract the code snippet
            description: Specific description (defaults to the rule's)
            title: Specific title (defaults to the rule's)
            severity: Specific severity (defaults to the rule's)
            job: Job id the finding is located in
            step: Step index within the job
            line: 1-based line of the evidence
            suggestion: Specific remediation (defaults to the rule's)
            links: Specific links (defaults to the rule's)
            key: Extra discriminator for the finding id

        Returns:
            Finding object
        """
        location = None
        if job is not None or step is not None or line is not None:
            location = Location(job=job, step=step, line=line)

        snippet = None
        raw_snippet = extract_code_snippet(source, line)
        if raw_snippet:
            snippet = CodeSnippet(**raw_snippet)

        parts = [self.rule_id, job, str(step) if step is not None else None, key]
        finding_id = "-".join(part for part in parts if part)

        return Finding(
            id=finding_id,
            rule_id=self.rule_id,
            type=self.finding_type,
            severity=severity or self.severity,
            title=title or self.title,
            description=description or self.description,
            file=file_name,
            location=location,
            suggestion=suggestion or self.remediation,
            links=tuple(links if links is not None else self.links),
            code_snippet=snippet,
        )


class JobRule(Rule):
    """Base class for rules that check one job at a time"""

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        findings: List[Finding] = []
        for job in document.jobs.values():
            findings.extend(self.check_job(document, job, source, file_name))
        return findings

    @abstractmethod
    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        pass


class StepRule(Rule):
    """Base class for rules that check one step at a time"""

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        findings: List[Finding] = []
        for job, step in document.iter_steps():
            findings.extend(self.check_step(document, job, step, source, file_name))
        return findings

    @abstractmethod
    def check_step(
        self, document: WorkflowDocument, job: Job, step: Step, source: str, file_name: str
    ) -> List[Finding]:
        pass

    def step_label(self, job: Job, step: Step) -> str:
        if step.name:
            return f"'{step.name}' in job '{job.id}'"
        return f"#{step.index + 1} in job '{job.id}'"
