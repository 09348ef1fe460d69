"""
performance.py - Performance rules

Rules that point at wasted runner time: repeated work, missing caches and
oversized job fan-out.
"""

from collections import Counter
from typing import Any, Dict, List

from ..core.callgraph import artifact_name, is_artifact_download, is_artifact_upload
from ..core.models import Dialect, Finding, FindingType, Job, WorkflowDocument
from . import patterns
from .base import JobRule, Rule

PERFORMANCE = FindingType.PERFORMANCE.value

CACHING_LINK = "https://docs.github.com/en/actions/using-workflows/caching-dependencies-to-speed-up-workflows"


class MissingCacheRule(JobRule):
    """Rule for package installs that run without a dependency cache"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="missing_cache",
            finding_type=PERFORMANCE,
            severity="warning",
            title="Missing dependency caching",
            description="Dependencies are downloaded on every run",
            remediation="Add actions/cache or enable the cache input of the setup action",
            links=[CACHING_LINK],
        )

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        cached = bool(job.cache)

        for step in job.steps:
            slug = step.action.slug.lower() if step.action else ""
            if step.action and step.action.name.lower() in patterns.CACHE_ACTIONS:
                cached = True
            elif slug in patterns.SETUP_ACTIONS_WITH_CACHE and step.with_args.get("cache"):
                cached = True

            if cached or not step.run:
                continue

            ecosystem = patterns.install_ecosystem(step.run)
            if ecosystem:
                suggestion = self.remediation
                if document.dialect == Dialect.GITLAB_CI.value:
                    suggestion = "Add a cache: section keyed on the dependency lock file"
                return [
                    self.create_finding(
                        file_name,
                        source,
                        description=f"Job '{job.id}' installs {ecosystem} dependencies without caching",
                        job=job.id,
                        step=step.index,
                        line=step.line,
                        suggestion=suggestion,
                    )
                ]

        return []


class RedundantCheckoutRule(JobRule):
    """Rule for jobs that check out the same repository more than once"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="redundant_checkout",
            finding_type=PERFORMANCE,
            severity="warning",
            title="Multiple checkout steps",
            description="The repository is checked out more than once",
            remediation="Remove redundant checkout steps",
        )

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        # Checkouts of other repositories are expected
        checkouts = [
            step
            for step in job.steps
            if step.action
            and step.action.slug.lower() == "actions/checkout"
            and not step.with_args.get("repository")
        ]
        if len(checkouts) < 2:
            return []

        second = checkouts[1]
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Job '{job.id}' has {len(checkouts)} checkout steps",
                job=job.id,
                step=second.index,
                line=second.line,
            )
        ]


def matrix_combinations(matrix: Dict[str, Any]) -> int:
    """Number of jobs a matrix expands to, or 0 when it is computed at runtime"""
    dimensions = [
        value for key, value in matrix.items() if key not in ("include", "exclude")
    ]
    if any(not isinstance(value, list) for value in dimensions):
        return 0

    total = 1
    for value in dimensions:
        total *= len(value)
    if not dimensions:
        total = 0

    include = matrix.get("include")
    exclude = matrix.get("exclude")
    total -= len(exclude) if isinstance(exclude, list) else 0
    total += len(include) if isinstance(include, list) else 0
    return max(total, 0)


class LargeMatrixRule(JobRule):
    """Rule for matrix strategies that fan out into many jobs"""

    MAX_COMBINATIONS = 20

    def __init__(self) -> None:
        super().__init__(
            rule_id="large_matrix",
            finding_type=PERFORMANCE,
            severity="info",
            title="Large matrix strategy",
            description="Large matrices consume many runner minutes",
            remediation="Consider reducing matrix dimensions or using include/exclude to limit combinations",
            links=["https://docs.github.com/en/actions/using-jobs/using-a-matrix-for-your-jobs"],
        )

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        matrix = job.strategy.get("matrix")
        if not isinstance(matrix, dict):
            return []

        combinations = matrix_combinations(matrix)
        if combinations <= self.MAX_COMBINATIONS:
            return []

        return [
            self.create_finding(
                file_name,
                source,
                description=f"Job '{job.id}' has {combinations} matrix combinations",
                job=job.id,
                line=job.line,
            )
        ]


class UnusedArtifactRule(Rule):
    """Rule for artifacts that are uploaded but never downloaded"""

    dialects = (Dialect.GITHUB_ACTIONS.value,)

    def __init__(self) -> None:
        super().__init__(
            rule_id="unused_artifact",
            finding_type=PERFORMANCE,
            severity="warning",
            title="Unused artifact",
            description="An artifact is uploaded but no job downloads it",
            remediation="Remove the unused artifact upload or add download steps where needed",
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        uploads = []
        downloaded = set()
        downloads_everything = False

        for job, step in document.iter_steps():
            if is_artifact_upload(step):
                uploads.append((job, step, artifact_name(step)))
            elif is_artifact_download(step):
                name = step.with_args.get("name")
                if name:
                    downloaded.add(str(name))
                else:
                    downloads_everything = True

        if downloads_everything:
            return []

        findings: List[Finding] = []
        for job, step, name in uploads:
            if name in downloaded:
                continue
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    description=f"Artifact '{name}' is uploaded but never downloaded",
                    job=job.id,
                    step=step.index,
                    line=step.line,
                )
            )
        return findings


class HeavyActionUsageRule(Rule):
    """Rule for actions used many times across one workflow"""

    MAX_USES = 5

    def __init__(self) -> None:
        super().__init__(
            rule_id="heavy_action_usage",
            finding_type=PERFORMANCE,
            severity="info",
            title="Heavy action usage",
            description="The same action runs many times in one workflow",
            remediation="Consider consolidating steps or using composite actions to reduce duplication",
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        counts: Counter = Counter()
        first_use = {}
        for job, step in document.iter_steps():
            if step.action is None:
                continue
            counts[step.action.name] += 1
            first_use.setdefault(step.action.name, (job, step))

        findings: List[Finding] = []
        for name, count in sorted(counts.items()):
            if count <= self.MAX_USES:
                continue
            job, step = first_use[name]
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    description=f"Action '{name}' is used {count} times across the workflow",
                    job=job.id,
                    step=step.index,
                    line=step.line,
                    key=name,
                )
            )
        return findings
