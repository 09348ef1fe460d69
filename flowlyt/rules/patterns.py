"""
patterns.py - Text heuristics used by the rule set

Every regular expression a rule matches against free text lives here, so the
table can be reviewed and versioned independently of the rule logic. Bump
RULE_TABLE_VERSION whenever a pattern's meaning changes.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterator, List, Optional, Pattern, Tuple

RULE_TABLE_VERSION = "2025.06.1"

GITHUB = "github-actions"
GITLAB = "gitlab-ci"
ALL_DIALECTS = (GITHUB, GITLAB)


@dataclass(frozen=True)
class TextPattern:
    """A single pattern → category → severity entry"""

    pattern_id: str
    regex: Pattern[str]
    category: str
    severity: str
    description: str
    dialects: Tuple[str, ...] = ALL_DIALECTS

    def applies_to(self, dialect: str) -> bool:
        return dialect in self.dialects

    def search(self, text: str) -> Optional["re.Match[str]"]:
        return self.regex.search(text)


def _p(
    pattern_id: str,
    regex: str,
    category: str,
    severity: str,
    description: str,
    dialects: Tuple[str, ...] = ALL_DIALECTS,
    flags: int = 0,
) -> TextPattern:
    return TextPattern(pattern_id, re.compile(regex, flags), category, severity, description, dialects)


# Credentials

CREDENTIAL_PATTERNS: List[TextPattern] = [
    _p("github-token", r"\bgh[pousr]_[A-Za-z0-9]{36,}\b", "credential", "error", "GitHub token"),
    _p("github-pat", r"\bgithub_pat_[A-Za-z0-9_]{22,}\b", "credential", "error", "GitHub fine-grained token"),
    _p("gitlab-token", r"\bglpat-[A-Za-z0-9_\-]{20,}\b", "credential", "error", "GitLab personal access token"),
    _p("aws-access-key", r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b", "credential", "error", "AWS access key id"),
    _p("slack-token", r"\bxox[abprs]-[A-Za-z0-9\-]{10,}\b", "credential", "error", "Slack token"),
    _p("stripe-live-key", r"\bsk_live_[A-Za-z0-9]{20,}\b", "credential", "error", "Stripe live secret key"),
    _p("private-key", r"-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----", "credential", "error", "private key block"),
    _p("google-api-key", r"\bAIza[0-9A-Za-z_\-]{35}\b", "credential", "error", "Google API key"),
    _p("npm-token", r"\bnpm_[A-Za-z0-9]{36}\b", "credential", "error", "npm access token"),
]

SECRET_ASSIGNMENT_PATTERNS: List[TextPattern] = [
    _p(
        f"assigned-{name.replace(' ', '-')}",
        rf"\b{key}\s*[:=]\s*['\"][A-Za-z0-9_\-./+]{{4,}}['\"]",
        "credential",
        "error",
        name,
        flags=re.IGNORECASE,
    )
    for key, name in (
        ("password", "password"),
        ("passwd", "password"),
        ("token", "token"),
        ("api[_\\-]?key", "API key"),
        ("secret", "secret"),
    )
]

SECRET_LIKE_KEY = re.compile(
    r"(?:password|passwd|secret|token|api[_\-]?key|private[_\-]?key|credential|auth)",
    re.IGNORECASE,
)

EXPRESSION = re.compile(r"\$\{\{.*?\}\}|\$[A-Za-z_][A-Za-z0-9_]*|\$\{[A-Za-z_][A-Za-z0-9_]*\}")

MIN_SECRET_LENGTH = 16
MIN_SECRET_ENTROPY = 3.5


def shannon_entropy(value: str) -> float:
    """Shannon entropy of ``value`` in bits per character"""
    if not value:
        return 0.0
    counts = Counter(value)
    length = len(value)
    return -sum((count / length) * math.log2(count / length) for count in counts.values())


def is_high_entropy_literal(value: object) -> bool:
    """True if ``value`` looks like a literal secret rather than a reference"""
    if not isinstance(value, str):
        return False
    text = value.strip()
    if len(text) < MIN_SECRET_LENGTH or " " in text or EXPRESSION.search(text):
        return False
    return shannon_entropy(text) >= MIN_SECRET_ENTROPY


# Secret references

SECRET_REFERENCE = re.compile(r"\$\{\{[^}]*\bsecrets\.[A-Za-z0-9_]+[^}]*\}\}")
GITLAB_SECRET_VARIABLES = re.compile(
    r"\$\{?(?:CI_JOB_TOKEN|CI_REGISTRY_PASSWORD|CI_DEPLOY_PASSWORD|[A-Z0-9_]*(?:TOKEN|PASSWORD|SECRET|API_KEY))\}?"
)
TOJSON_SECRETS = re.compile(r"toJSON\(\s*secrets\s*\)", re.IGNORECASE)
EXTERNAL_COMMAND = re.compile(r"(?<![\w\-])(curl|wget|nc|netcat|ssh|scp)(?![\w\-])")


# Remote scripts

REMOTE_SCRIPT_PATTERNS: List[TextPattern] = [
    _p("curl-pipe-shell", r"\b(?:curl|wget)\b[^|\n]*\|\s*(?:sudo\s+)?(?:ba|z|da)?sh\b", "remote-script", "error", "download piped to a shell"),
    _p("shell-process-substitution", r"\b(?:ba|z)?sh\s+<\(\s*(?:curl|wget)\b", "remote-script", "error", "shell reading a download"),
    _p("shell-command-substitution", r"\b(?:ba|z)?sh\s+-c\s+[\"']?\$\(\s*(?:curl|wget)\b", "remote-script", "error", "shell executing a download"),
    _p("powershell-iex", r"\b(?:iex|Invoke-Expression)\b.*\b(?:iwr|Invoke-WebRequest|DownloadString)\b|\b(?:iwr|Invoke-WebRequest)\b[^|\n]*\|\s*iex\b", "remote-script", "error", "PowerShell download executed", flags=re.IGNORECASE),
    _p("curl-pipe-python", r"\b(?:curl|wget)\b[^|\n]*\|\s*(?:sudo\s+)?python[0-9.]*\b", "remote-script", "error", "download piped to python"),
]


# Untrusted input

UNTRUSTED_INPUT_PATTERNS: List[TextPattern] = [
    _p("issue-title", r"github\.event\.issue\.title", "untrusted-input", "error", "issue title", (GITHUB,)),
    _p("issue-body", r"github\.event\.issue\.body", "untrusted-input", "error", "issue body", (GITHUB,)),
    _p("pr-title", r"github\.event\.pull_request\.title", "untrusted-input", "error", "pull request title", (GITHUB,)),
    _p("pr-body", r"github\.event\.pull_request\.body", "untrusted-input", "error", "pull request body", (GITHUB,)),
    _p("pr-head-ref", r"github\.event\.pull_request\.head\.(?:ref|label)", "untrusted-input", "error", "pull request head branch", (GITHUB,)),
    _p("comment-body", r"github\.event\.comment\.body", "untrusted-input", "error", "comment body", (GITHUB,)),
    _p("review-body", r"github\.event\.review\.body", "untrusted-input", "error", "review body", (GITHUB,)),
    _p("review-comment-body", r"github\.event\.review_comment\.body", "untrusted-input", "error", "review comment body", (GITHUB,)),
    _p("head-commit", r"github\.event\.head_commit\.(?:message|author\.(?:email|name))", "untrusted-input", "error", "head commit metadata", (GITHUB,)),
    _p("commits", r"github\.event\.commits\b", "untrusted-input", "error", "pushed commit metadata", (GITHUB,)),
    _p("workflow-run", r"github\.event\.workflow_run\.(?:head_branch|head_commit|display_title)", "untrusted-input", "error", "triggering workflow run metadata", (GITHUB,)),
    _p("discussion", r"github\.event\.discussion\.(?:title|body)", "untrusted-input", "error", "discussion content", (GITHUB,)),
    _p("pages", r"github\.event\.pages\b", "untrusted-input", "error", "wiki page names", (GITHUB,)),
    _p("head-ref", r"github\.head_ref", "untrusted-input", "error", "head branch name", (GITHUB,)),
    _p("gitlab-mr-title", r"\$\{?CI_MERGE_REQUEST_TITLE\}?", "untrusted-input", "warning", "merge request title", (GITLAB,)),
    _p("gitlab-mr-description", r"\$\{?CI_MERGE_REQUEST_DESCRIPTION\}?", "untrusted-input", "warning", "merge request description", (GITLAB,)),
    _p("gitlab-mr-source-branch", r"\$\{?CI_MERGE_REQUEST_SOURCE_BRANCH_NAME\}?", "untrusted-input", "warning", "merge request source branch", (GITLAB,)),
    _p("gitlab-commit-message", r"\$\{?CI_COMMIT_(?:MESSAGE|TITLE|DESCRIPTION)\}?", "untrusted-input", "warning", "commit message", (GITLAB,)),
    _p("gitlab-commit-branch", r"\$\{?CI_COMMIT_(?:BRANCH|REF_NAME)\}?", "untrusted-input", "warning", "branch name", (GITLAB,)),
]


def iter_untrusted_inputs(text: str, dialect: str) -> Iterator[TextPattern]:
    """Yield the untrusted-input patterns that match ``text``"""
    for entry in UNTRUSTED_INPUT_PATTERNS:
        if entry.applies_to(dialect) and entry.search(text):
            yield entry


def untrusted_in_expression(text: str) -> List[TextPattern]:
    """GitHub untrusted inputs that appear inside ``${{ }}`` expressions"""
    matches: List[TextPattern] = []
    for expression in re.findall(r"\$\{\{(.*?)\}\}", text, re.DOTALL):
        for entry in iter_untrusted_inputs(expression, GITHUB):
            if entry not in matches:
                matches.append(entry)
    return matches


# Dependency installs

INSTALL_COMMANDS = {
    "npm": re.compile(r"\b(?:npm\s+(?:ci|install|i)\b|yarn(?:\s+install)?\s*(?:$|--)|pnpm\s+(?:i|install)\b)", re.MULTILINE),
    "pip": re.compile(r"\b(?:pip3?|python[0-9.]*\s+-m\s+pip)\s+install\b|\bpoetry\s+install\b|\bpipenv\s+install\b"),
    "maven": re.compile(r"\bmvn\b"),
    "gradle": re.compile(r"\b(?:gradle|\./gradlew)\b"),
    "go": re.compile(r"\bgo\s+(?:mod\s+download|build|get)\b"),
    "bundler": re.compile(r"\bbundle\s+install\b"),
    "cargo": re.compile(r"\bcargo\s+(?:build|fetch)\b"),
    "composer": re.compile(r"\bcomposer\s+install\b"),
}

SETUP_ACTIONS_WITH_CACHE = {
    "actions/setup-node",
    "actions/setup-python",
    "actions/setup-java",
    "actions/setup-go",
    "actions/setup-dotnet",
    "ruby/setup-ruby",
}

CACHE_ACTIONS = {"actions/cache", "actions/cache/restore"}


def install_ecosystem(command: str) -> Optional[str]:
    for ecosystem, pattern in INSTALL_COMMANDS.items():
        if pattern.search(command):
            return ecosystem
    return None


# Workflow intent

DEPLOY_KEYWORDS = re.compile(r"(?<![a-z])(?:deploy|publish|release)", re.IGNORECASE)
CI_KEYWORDS = re.compile(
    r"(?<![a-z])(?:test|lint|build)|\b(?:pytest|tox|jest|eslint|flake8|ruff|mypy)\b",
    re.IGNORECASE,
)
PRODUCTION_KEYWORDS = re.compile(r"(?<![a-z])(?:prod|production|live)(?![a-z])", re.IGNORECASE)

PRIVILEGED_TRIGGERS = {"workflow_run", "pull_request_target", "repository_dispatch"}
AUTOMATION_TRIGGERS = {"schedule", "workflow_dispatch", "repository_dispatch"}
UNTRUSTED_CODE_TRIGGERS = {"pull_request_target", "workflow_run"}

ALWAYS_FALSE_CONDITION = re.compile(r"^\s*(?:\$\{\{\s*)?false(?:\s*\}\})?\s*$", re.IGNORECASE)
ALWAYS_FUNCTION = re.compile(r"\balways\(\)")
EVENT_CONDITION = re.compile(r"github\.event|CI_PIPELINE_SOURCE|CI_MERGE_REQUEST")


def is_always_false(condition: Optional[str]) -> bool:
    return bool(condition) and bool(ALWAYS_FALSE_CONDITION.match(str(condition)))


# Trusted action owners

TRUSTED_OWNERS = {"actions", "github", "docker"}

# Outdated/deprecated actions: name → (versions considered deprecated, replacement)
DEPRECATED_ACTION_VERSIONS = {
    "actions/checkout": (("v1", "v2"), "actions/checkout@v4"),
    "actions/setup-node": (("v1", "v2"), "actions/setup-node@v4"),
    "actions/setup-python": (("v1", "v2", "v3"), "actions/setup-python@v5"),
    "actions/cache": (("v1", "v2"), "actions/cache@v4"),
    "actions/upload-artifact": (("v1", "v2", "v3"), "actions/upload-artifact@v4"),
    "actions/download-artifact": (("v1", "v2", "v3"), "actions/download-artifact@v4"),
}

DEPRECATED_ACTIONS = {
    "actions/create-release": "softprops/action-gh-release",
    "actions/upload-release-asset": "softprops/action-gh-release",
    "actions/setup-ruby": "ruby/setup-ruby",
    "actions-rs/toolchain": "dtolnay/rust-toolchain",
    "actions-rs/cargo": "a plain `cargo` run step",
}

