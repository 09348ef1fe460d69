"""
security.py - Security-focused rules

This module provides rules focused on security issues in GitHub Actions
workflows and GitLab CI pipelines.
"""

import re
from typing import Any, Dict, List, Optional

from ..core.models import Dialect, Finding, FindingType, Job, Step, WorkflowDocument
from ..utils.known_actions import KnownActionsDatabase
from ..utils.yaml_handler import find_line_number
from . import patterns
from .base import JobRule, Rule, StepRule

SECURITY = FindingType.SECURITY.value
GITHUB_ONLY = (Dialect.GITHUB_ACTIONS.value,)

HARDENING_LINK = "https://docs.github.com/en/actions/security-guides/security-hardening-for-github-actions"
SECRETS_LINK = "https://docs.github.com/en/actions/security-guides/encrypted-secrets"


def job_at_line(document: WorkflowDocument, line: int) -> Optional[str]:
    """Id of the job whose definition encloses ``line``"""
    owner: Optional[Job] = None
    for job in document.jobs.values():
        if job.line is not None and job.line <= line:
            if owner is None or job.line >= (owner.line or 0):
                owner = job
    return owner.id if owner else None


def has_privileged_trigger(document: WorkflowDocument) -> bool:
    return bool(set(document.triggers) & patterns.PRIVILEGED_TRIGGERS)


class HardcodedCredentialsRule(Rule):
    """Rule for detecting credentials committed in the pipeline definition"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="hardcoded_credentials",
            finding_type=SECURITY,
            severity="error",
            title="Hardcoded credential detected",
            description="Credentials must not be stored in pipeline definitions",
            remediation="Store sensitive values in GitHub Secrets and reference them using ${{ secrets.SECRET_NAME }}",
            links=[SECRETS_LINK],
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        findings = self.check_source_lines(document, source, file_name)
        findings.extend(self.check_secret_like_values(document, source, file_name))
        findings.extend(self.check_secret_exfiltration(document, source, file_name))
        return findings

    def check_source_lines(
        self, document: WorkflowDocument, source: str, file_name: str
    ) -> List[Finding]:
        """Scan every source line for token prefixes and quoted secret assignments"""
        findings: List[Finding] = []

        for number, text in enumerate(source.splitlines(), start=1):
            entry = next(
                (
                    p
                    for p in patterns.CREDENTIAL_PATTERNS + patterns.SECRET_ASSIGNMENT_PATTERNS
                    if p.search(text)
                ),
                None,
            )
            if entry is not None:
                findings.append(
                    self.create_finding(
                        file_name,
                        source,
                        description=f"Found a potential hardcoded {entry.description} in the workflow",
                        job=job_at_line(document, number),
                        line=number,
                        key=f"L{number}",
                    )
                )

            if patterns.TOJSON_SECRETS.search(text):
                findings.append(
                    self.create_finding(
                        file_name,
                        source,
                        title="All secrets serialized with toJSON",
                        description="toJSON(secrets) exposes every repository secret to the step",
                        job=job_at_line(document, number),
                        line=number,
                        suggestion="Pass only the individual secrets the step needs",
                        key=f"tojson-L{number}",
                    )
                )

        return findings

    def check_secret_like_values(
        self, document: WorkflowDocument, source: str, file_name: str
    ) -> List[Finding]:
        """Flag high-entropy literals stored under secret-looking keys"""
        findings: List[Finding] = []

        def literal_secrets(mapping: Dict[str, Any]) -> List[str]:
            return [
                key
                for key, value in mapping.items()
                if patterns.SECRET_LIKE_KEY.search(key) and patterns.is_high_entropy_literal(value)
            ]

        for key in literal_secrets(document.env):
            line = find_line_number(source, f"{key}:")
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    description=f"Environment variable '{key}' holds a literal secret value",
                    line=line,
                    key=key,
                )
            )

        for job in document.jobs.values():
            for key in literal_secrets(job.env):
                line = find_line_number(source, f"{key}:", job.line or 1)
                findings.append(
                    self.create_finding(
                        file_name,
                        source,
                        description=f"Environment variable '{key}' of job '{job.id}' holds a literal secret value",
                        job=job.id,
                        line=line,
                        key=key,
                    )
                )
            for step in job.steps:
                for key in literal_secrets(step.env) + literal_secrets(step.with_args):
                    line = find_line_number(source, f"{key}:", step.line or job.line or 1)
                    findings.append(
                        self.create_finding(
                            file_name,
                            source,
                            description=f"'{key}' of step #{step.index + 1} in job '{job.id}' holds a literal secret value",
                            job=job.id,
                            step=step.index,
                            line=line or step.line,
                            key=key,
                        )
                    )

        return findings

    def check_secret_exfiltration(
        self, document: WorkflowDocument, source: str, file_name: str
    ) -> List[Finding]:
        """Flag secrets interpolated into network commands"""
        findings: List[Finding] = []

        for job, step in document.iter_steps():
            if not step.run:
                continue
            for command in step.run.splitlines():
                if patterns.SECRET_REFERENCE.search(command) and patterns.EXTERNAL_COMMAND.search(
                    command
                ):
                    line = find_line_number(source, command.strip(), step.line or 1) or step.line
                    findings.append(
                        self.create_finding(
                            file_name,
                            source,
                            title="Secret passed to external command",
                            severity="warning",
                            description=f"Step #{step.index + 1} in job '{job.id}' sends a secret to a network command",
                            job=job.id,
                            step=step.index,
                            line=line,
                            suggestion="Pass secrets through environment variables and avoid placing them on the command line",
                            key="exfiltration",
                        )
                    )
                    break

        return findings


class UnpinnedActionRule(StepRule):
    """Rule for checking that third-party actions are pinned to a commit SHA"""

    dialects = GITHUB_ONLY

    def __init__(self) -> None:
        super().__init__(
            rule_id="unpinned_action",
            finding_type=SECURITY,
            severity="warning",
            title="Action not pinned to commit SHA",
            description="Tags and branches can be moved to point at different code",
            remediation="Pin the action to a full-length commit SHA and keep the tag in a comment, e.g. owner/repo@<sha> # v1.2.3",
            links=[HARDENING_LINK],
        )
        self.known_actions = KnownActionsDatabase.default()

    def configure(self, options: Dict[str, Any]) -> None:
        if options.get("known_actions") is not None:
            self.known_actions = options["known_actions"]

    def suggestion_for(self, step: Step) -> str:
        action = step.action
        known = self.known_actions.lookup(action.slug) if action else None
        if action and known and known.sha:
            return f"Pin to {action.name}@{known.sha} # {known.latest_tag}"
        return self.remediation

    def check_step(
        self, document: WorkflowDocument, job: Job, step: Step, source: str, file_name: str
    ) -> List[Finding]:
        action = step.action
        if action is None or not action.is_external or action.is_sha_pinned:
            return []

        if action.ref_type == "branch":
            severity = "error"
            description = f"Step {self.step_label(job, step)} uses '{action.raw}', which tracks the branch '{action.ref}'"
        elif action.ref_type == "missing":
            severity = "warning"
            description = f"Step {self.step_label(job, step)} uses '{action.raw}' without a specific version"
        else:
            severity = "warning"
            description = f"Step {self.step_label(job, step)} uses '{action.raw}', pinned to a mutable tag"

        return [
            self.create_finding(
                file_name,
                source,
                description=description,
                severity=severity,
                job=job.id,
                step=step.index,
                line=step.line,
                suggestion=self.suggestion_for(step),
            )
        ]


class PermissionsRule(Rule):
    """Rule for checking workflow and job permissions"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="permissions",
            finding_type=SECURITY,
            severity="warning",
            title="Overly permissive workflow permissions",
            description="Workflow has write permissions that may be unnecessary",
            remediation="Use minimal required permissions. Consider using job-level permissions instead.",
            links=[
                "https://docs.github.com/en/actions/using-workflows/workflow-syntax-for-github-actions#permissions"
            ],
        )

    @staticmethod
    def is_overly_permissive(permissions: Any) -> bool:
        if isinstance(permissions, str):
            return permissions.strip().lower() == "write-all"
        if isinstance(permissions, dict):
            return str(permissions.get("contents", "")).lower() == "write"
        return False

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        findings: List[Finding] = []
        severity = "error" if has_privileged_trigger(document) else self.severity

        if self.is_overly_permissive(document.permissions):
            findings.append(
                self.create_finding(
                    file_name,
                    source,
                    severity=severity,
                    line=find_line_number(source, "permissions:"),
                )
            )

        for job in document.jobs.values():
            if self.is_overly_permissive(job.permissions):
                findings.append(
                    self.create_finding(
                        file_name,
                        source,
                        description=f"Job '{job.id}' has write permissions that may be unnecessary",
                        severity=severity,
                        job=job.id,
                        line=find_line_number(source, "permissions:", job.line or 1),
                    )
                )

        return findings


class UnsafeScriptRule(StepRule):
    """Rule for detecting remote scripts piped into an interpreter"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="unsafe_script",
            finding_type=SECURITY,
            severity="error",
            title="Unsafe script execution: remote script piped to shell",
            description="Downloading a script and executing it directly runs unreviewed code",
            remediation="Download the script, verify its checksum or signature, then execute it",
            links=[HARDENING_LINK],
        )

    def check_step(
        self, document: WorkflowDocument, job: Job, step: Step, source: str, file_name: str
    ) -> List[Finding]:
        if not step.run:
            return []

        for entry in patterns.REMOTE_SCRIPT_PATTERNS:
            if entry.search(step.run):
                return [
                    self.create_finding(
                        file_name,
                        source,
                        description=f"Step {self.step_label(job, step)} executes a {entry.description}",
                        job=job.id,
                        step=step.index,
                        line=step.line,
                    )
                ]
        return []


class CommandInjectionRule(StepRule):
    """Rule for detecting untrusted input interpolated into scripts"""

    def __init__(self) -> None:
        super().__init__(
            rule_id="command_injection",
            finding_type=SECURITY,
            severity="error",
            title="Potential expression injection",
            description="Attacker-controlled data is interpolated directly into a script",
            remediation="Pass untrusted values through an intermediate environment variable and quote it in the script",
            links=[
                "https://securitylab.github.com/research/github-actions-untrusted-input/",
                HARDENING_LINK,
            ],
        )

    def script_text(self, step: Step) -> str:
        texts = [step.run or ""]
        if step.action and step.action.slug.lower() == "actions/github-script":
            texts.append(str(step.with_args.get("script", "")))
        return "\n".join(text for text in texts if text)

    def check_step(
        self, document: WorkflowDocument, job: Job, step: Step, source: str, file_name: str
    ) -> List[Finding]:
        text = self.script_text(step)
        if not text:
            return []

        if document.dialect == Dialect.GITLAB_CI.value:
            matches = list(patterns.iter_untrusted_inputs(text, document.dialect))
        else:
            matches = patterns.untrusted_in_expression(text)
        if not matches:
            return []

        inputs = ", ".join(entry.description for entry in matches)
        severity = "error" if any(entry.severity == "error" for entry in matches) else "warning"
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Step {self.step_label(job, step)} interpolates untrusted input ({inputs}) into a script",
                severity=severity,
                job=job.id,
                step=step.index,
                line=step.line,
            )
        ]


class PrivilegedCheckoutRule(Rule):
    """Rule for detecting checkouts of untrusted code in privileged contexts"""

    dialects = GITHUB_ONLY

    UNTRUSTED_REF = re.compile(
        r"github\.event\.(?:pull_request\.head|workflow_run\.head)|github\.head_ref|refs/pull/"
    )

    def __init__(self) -> None:
        super().__init__(
            rule_id="privileged_checkout",
            finding_type=SECURITY,
            severity="error",
            title="Dangerous checkout with privileged trigger",
            description="Untrusted pull request code is checked out in a workflow with access to secrets",
            remediation="Use the pull_request trigger for untrusted code, or never build the checked-out head in a privileged workflow",
            links=["https://securitylab.github.com/research/github-actions-preventing-pwn-requests/"],
        )

    def check(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        triggers = set(document.triggers) & patterns.UNTRUSTED_CODE_TRIGGERS
        if not triggers:
            return []

        findings: List[Finding] = []
        for job, step in document.iter_steps():
            if not step.action or step.action.slug.lower() != "actions/checkout":
                continue
            ref = str(step.with_args.get("ref", ""))
            if self.UNTRUSTED_REF.search(ref):
                findings.append(
                    self.create_finding(
                        file_name,
                        source,
                        description=(
                            f"Step {step.index + 1} of job '{job.id}' checks out '{ref}' "
                            f"in a workflow triggered by {', '.join(sorted(triggers))}"
                        ),
                        job=job.id,
                        step=step.index,
                        line=step.line,
                    )
                )
        return findings


class SelfHostedRunnerRule(JobRule):
    """Rule for flagging jobs on self-hosted runners"""

    dialects = GITHUB_ONLY

    def __init__(self) -> None:
        super().__init__(
            rule_id="self_hosted_runner",
            finding_type=SECURITY,
            severity="warning",
            title="Self-hosted runner detected",
            description="Self-hosted runners can persist state between jobs",
            remediation="Use ephemeral self-hosted runners and never run them for public repositories",
            links=[
                "https://docs.github.com/en/actions/hosting-your-own-runners/managing-self-hosted-runners/about-self-hosted-runners#self-hosted-runner-security"
            ],
        )

    def check_job(
        self, document: WorkflowDocument, job: Job, source: str, file_name: str
    ) -> List[Finding]:
        if not any(label.lower() == "self-hosted" for label in job.runner_labels):
            return []
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Job '{job.id}' runs on a self-hosted runner",
                job=job.id,
                line=job.line,
            )
        ]


class ThirdPartyActionRule(StepRule):
    """Rule for flagging actions from outside the trusted publishers"""

    dialects = GITHUB_ONLY

    def __init__(self) -> None:
        super().__init__(
            rule_id="third_party_action",
            finding_type=SECURITY,
            severity="info",
            title="Third-party action usage",
            description="Actions from third parties run with the job's permissions",
            remediation="Review the action source code and pin to a specific version",
            links=[HARDENING_LINK],
        )

    def check_step(
        self, document: WorkflowDocument, job: Job, step: Step, source: str, file_name: str
    ) -> List[Finding]:
        action = step.action
        if action is None or not action.is_external or not action.owner:
            return []
        if action.owner.lower() in patterns.TRUSTED_OWNERS:
            return []
        return [
            self.create_finding(
                file_name,
                source,
                description=f"Using action from '{action.owner}' - verify trustworthiness",
                job=job.id,
                step=step.index,
                line=step.line,
            )
        ]
