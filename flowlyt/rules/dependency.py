"""
dependency.py - Action dependency rules

Rules about the actions a workflow depends on: deprecated releases, versions
behind the latest known major, and heavy reuse of the same action.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

from ..core.models import Dialect, Finding, FindingType, Job, Step, WorkflowDocument
from ..utils.known_actions import KnownActionsDatabase
from ..utils.version import major_version
from . import patterns
from .base import Rule, StepRule

DEPENDENCY = FindingType.DEPENDENCY.value
GITHUB_ONLY = (Dialect.GITHUB_ACTIONS.value,)


def deprecation_of(step: Step) -> Optional[Dict[str, Any]]:
    """Describe why ``step``'s action is deprecated, or None"""
    action = step.action
    if action is None or not action.is_external:
        return None

    name = action.name.lower()
    if name in patterns.DEPRECATED_ACTIONS:
        return {"severity": "warning", "replacement": patterns.DEPRECATED_ACTIONS[name]}

    if name in patterns.DEPRECATED_ACTION_VERSIONS and action.ref:
        versions, replacement = patterns.DEPRECATED_ACTION_VERSIONS[name]
        major = major_version(action.ref)
        if major is not None and f"v{major}" in versions:
            return {"severity": "error", "replacement": replacement}

    return None


class DeprecatedActionRule(StepRule):
    """Rule for deprecated actions and deprecated action versions"""

    dialects = GITHUB_ONLY

    def __init__(self) -> None:
        super().__init__(
            rule_id="deprecated_action",
            finding_type=DEPENDENCY,
            severity="error",
            title="Deprecated action version",
            description="The action version runs on a deprecated runtime",
            remediation="Update to a supported alternative action",
        )

    def check_step(
        self, document: WorkflowDocument, job: Job, step: Step, source: str, file_name: str
    ) -> List[Finding]:
        deprecation = deprecation_of(step)
        if deprecation is None:
            return []

        if deprecation["severity"] == "error":
            title = self.title
            description = f"'{step.action.raw}' is a deprecated version"
        else:
            title = "Deprecated action"
            description = f"Action '{step.action.name}' is deprecated and should be replaced"

        return [
            self.create_finding(
                file_name,
                source,
                title=title,
                description=description,
                severity=deprecation["severity"],
                job=job.id,
                step=step.index,
                line=step.line,
                suggestion=f"Replace with {deprecation['replacement']}",
            )
        ]


class OutdatedActionRule(StepRule):
    """Rule for actions whose major version is behind the latest known release"""

    dialects = GITHUB_ONLY

    def __init__(self) -> None:
        super().__init__(
            rule_id="outdated_action",
            finding_type=DEPENDENCY,
            severity="warning",
            title="Outdated action version",
            description="A newer major version of the action is available",
            remediation="Update to the latest major version",
        )
        self.known_actions = KnownActionsDatabase.default()

    def configure(self, options: Dict[str, Any]) -> None:
        if options.get("known_actions") is not None:
            self.known_actions = options["known_actions"]

    def check_step(
        self, document: WorkflowDocument, job: Job, step: Step, source: str, file_name: str
    ) -> List[Finding]:
        action = step.action
        # Deprecated versions are already reported with a stronger message
        if action is None or action.ref_type != "tag" or deprecation_of(step) is not None:
            return []

        known = self.known_actions.lookup(action.slug)
        if known is None:
            return []

        current = major_version(action.ref)
        latest = major_version(known.latest_tag)
        if current is None or latest is None or current >= latest:
            return []

        suggestion = f"Update to {action.name}@{known.latest_tag}"
        if known.sha:
            suggestion = f"Update to {action.name}@{known.sha} # {known.latest_tag}"
        return [
            self.create_finding(
                file_name,
                source,
                description=f"'{action.raw}' is behind the latest release {known.latest_tag}",
                job=job.id,
                step=step.index,
                line=step.line,
                suggestion=suggestion,
            )
        ]


class FrequentActionRule(Rule):
    """Rule for actions referenced many times in one workflow"""

    dialects = GITHUB_ONLY
    MAX_USES = 3

    def __init__(self) -> None:
        super().__init__(
            rule_id="frequent_action",
            finding_type=DEPENDENCY,
            severity="info",
            title="Frequently used action",
            description="The action is a significant dependency of this workflow",
            remediation="Keep the action's version consistent across all usages",
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        counts: Counter = Counter()
        versions: Dict[str, List[str]] = {}
        first_use = {}
        for job, step in document.iter_steps():
            if step.action is None or not step.action.is_external:
                continue
            name = step.action.name
            counts[name] += 1
            versions.setdefault(name, [])
            if step.action.ref and step.action.ref not in versions[name]:
                versions[name].append(step.action.ref)
            first_use.setdefault(name, (job, step))

        findings: List[Finding] = []
        for name, count in sorted(counts.items()):
            if count <= self.MAX_USES:
                continue
            job, step = first_use[name]
            description = f"Action '{name}' is used {count} times"
            if len(versions[name]) > 1:
                description += f" with {len(versions[name])} different versions ({', '.join(versions[name])})"
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    description=description,
                    job=job.id,
                    step=step.index,
                    line=step.line,
                    key=name,
                )
            )
        return findings
