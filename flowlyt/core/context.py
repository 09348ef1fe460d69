"""
context.py - Workflow context classification

Derives what kind of pipeline a document is (CI, CD, automation, utility)
and the execution facts the reachability pass and the aggregator rely on.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Tuple

from ..rules import patterns
from .models import Dialect, ExecutionContext, WorkflowDocument, WorkflowType


@dataclass
class WorkflowContext:
    """Execution context of a single workflow"""

    workflow_type: str = WorkflowType.UNKNOWN.value
    total_jobs: int = 0
    total_steps: int = 0
    is_complex: bool = False
    has_production_indicators: bool = False
    has_automation: bool = False
    has_privileged_triggers: bool = False
    has_secrets: bool = False
    conditional_jobs: int = 0
    triggers: Tuple[str, ...] = field(default_factory=tuple)

    def execution_context(self) -> ExecutionContext:
        return ExecutionContext(
            triggers=self.triggers,
            has_privileged_triggers=self.has_privileged_triggers,
            has_secrets=self.has_secrets,
            conditional_jobs=self.conditional_jobs,
        )


def _step_texts(document: WorkflowDocument) -> Iterator[str]:
    for _, step in document.iter_steps():
        if step.uses:
            yield step.uses
        if step.run:
            yield step.run


def _values(mapping: Any) -> List[str]:
    if isinstance(mapping, dict):
        return [str(value) for value in mapping.values() if value is not None]
    if mapping is None:
        return []
    return [str(mapping)]


def references_secrets(document: WorkflowDocument) -> bool:
    """
    True if any step can see a secret

    Steps inherit the env of their job and of the workflow, so secrets
    referenced there count as well.
    """
    if document.dialect == Dialect.GITLAB_CI.value:
        pattern = patterns.GITLAB_SECRET_VARIABLES
        if any(job.secrets for job in document.jobs.values()):
            return True
    else:
        pattern = patterns.SECRET_REFERENCE

    texts = _values(document.env)
    for job in document.jobs.values():
        texts.extend(_values(job.env))
        texts.extend(_values(job.with_args))
        # Reusable workflow calls: ``secrets: inherit`` or an explicit mapping
        if job.uses and job.secrets:
            return True
        for step in job.steps:
            texts.extend(step.text_fields())

    return any(pattern.search(text) for text in texts)


def classify_type(document: WorkflowDocument, source: str) -> str:
    """Pick the workflow type; the first matching rule wins"""
    step_text = "\n".join(_step_texts(document))

    if patterns.DEPLOY_KEYWORDS.search(step_text) or patterns.DEPLOY_KEYWORDS.search(source):
        return WorkflowType.CD.value
    if patterns.CI_KEYWORDS.search(step_text) or patterns.CI_KEYWORDS.search(source):
        return WorkflowType.CI.value
    if set(document.triggers) & patterns.AUTOMATION_TRIGGERS:
        return WorkflowType.AUTOMATION.value
    if len(document.jobs) == 1 and document.total_steps <= 5:
        return WorkflowType.UTILITY.value
    return WorkflowType.UNKNOWN.value


def classify_workflow(document: WorkflowDocument, source: str = "") -> WorkflowContext:
    """
    Classify a workflow's execution context

    Args:
        document: Canonical workflow document
        source: Raw YAML text; keyword matches also consider it

    Returns:
        WorkflowContext describing the workflow
    """
    total_jobs = len(document.jobs)
    total_steps = document.total_steps
    triggers = tuple(document.triggers)
    workflow_type = classify_type(document, source)

    has_production_indicators = workflow_type == WorkflowType.CD.value or bool(
        patterns.PRODUCTION_KEYWORDS.search(source)
    )

    return WorkflowContext(
        workflow_type=workflow_type,
        total_jobs=total_jobs,
        total_steps=total_steps,
        is_complex=total_jobs > 2 or total_steps > 10,
        has_production_indicators=has_production_indicators,
        has_automation=bool(set(triggers) & patterns.AUTOMATION_TRIGGERS),
        has_privileged_triggers=bool(set(triggers) & patterns.PRIVILEGED_TRIGGERS),
        has_secrets=references_secrets(document),
        conditional_jobs=sum(1 for job in document.jobs.values() if job.if_condition),
        triggers=triggers,
    )
