"""
models.py - Canonical data model for flowlyt

This module defines the dialect-independent workflow representation built by
the parser, the Finding value object emitted by rules, and the call graph,
reachability and report structures assembled by the analysis pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class FindingType(Enum):
    """Closed set of finding categories."""

    SECURITY = "security"
    PERFORMANCE = "performance"
    BEST_PRACTICE = "best-practice"
    DEPENDENCY = "dependency"
    STRUCTURE = "structure"


class Severity(Enum):
    """Enumeration of finding severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


SEVERITY_LEVELS = [level.value for level in Severity]
FINDING_TYPES = [finding_type.value for finding_type in FindingType]


class Dialect(Enum):
    GITHUB_ACTIONS = "github-actions"
    GITLAB_CI = "gitlab-ci"


class WorkflowType(Enum):
    CI = "ci"
    CD = "cd"
    AUTOMATION = "automation"
    UTILITY = "utility"
    UNKNOWN = "unknown"


class EdgeType(Enum):
    NEEDS = "needs"
    ARTIFACT = "artifact"
    OUTPUT = "output"
    ENV = "env"


class Verdict(Enum):
    """Reachability verdicts assigned to security findings."""

    HIGH_RISK = "reachable-high-risk"
    REACHABLE = "reachable"
    LOW_IMPACT = "reachable-low-impact"
    CONDITIONAL = "conditionally-reachable"
    MITIGATED = "mitigated"


# Canonical workflow model


@dataclass(frozen=True)
class TriggerSpec:
    """
    Tagged view over the raw ``on:`` value

    ``kind`` is one of ``single``, ``list``, ``map`` or ``none``. Downstream
    consumers only ever look at ``events``.
    """

    kind: str
    raw: Any = None
    events: Tuple[str, ...] = ()

    @classmethod
    def from_raw(cls, raw: Any) -> "TriggerSpec":
        if raw is None:
            return cls(kind="none")
        if isinstance(raw, str):
            return cls(kind="single", raw=raw, events=(raw,))
        if isinstance(raw, list):
            return cls(kind="list", raw=raw, events=tuple(str(item) for item in raw))
        if isinstance(raw, dict):
            return cls(kind="map", raw=raw, events=tuple(str(key) for key in raw.keys()))
        return cls(kind="single", raw=raw, events=(str(raw),))


@dataclass(frozen=True)
class ActionRef:
    """A parsed ``uses:`` reference (``owner/repo[/path]@ref``)"""

    raw: str
    owner: Optional[str] = None
    repo: Optional[str] = None
    path: Optional[str] = None
    ref: Optional[str] = None
    ref_type: str = "missing"

    @property
    def slug(self) -> str:
        if self.owner and self.repo:
            return f"{self.owner}/{self.repo}"
        return self.raw.split("@", 1)[0]

    @property
    def name(self) -> str:
        """Action name without the ref, including any sub-path"""
        return self.raw.split("@", 1)[0]

    @property
    def is_sha_pinned(self) -> bool:
        return self.ref_type == "sha"

    @property
    def is_external(self) -> bool:
        return self.ref_type not in ("local", "docker")


@dataclass
class Step:
    index: int
    name: Optional[str] = None
    uses: Optional[str] = None
    run: Optional[str] = None
    with_args: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, Any] = field(default_factory=dict)
    if_condition: Optional[str] = None
    id: Optional[str] = None
    shell: Optional[str] = None
    continue_on_error: Any = None
    action: Optional[ActionRef] = None
    line: Optional[int] = None

    def text_fields(self) -> List[str]:
        """All free-text values of the step that expressions may appear in"""
        values: List[str] = []
        for value in (self.uses, self.run, self.if_condition):
            if value:
                values.append(str(value))
        for mapping in (self.with_args, self.env):
            values.extend(str(value) for value in mapping.values() if value is not None)
        return values


@dataclass
class Job:
    id: str
    name: Optional[str] = None
    runs_on: Union[str, List[str], None] = None
    needs: List[str] = field(default_factory=list)
    steps: List[Step] = field(default_factory=list)
    permissions: Any = None
    env: Dict[str, Any] = field(default_factory=dict)
    if_condition: Optional[str] = None
    concurrency: Any = None
    timeout: Any = None
    continue_on_error: Any = None
    strategy: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    environment: Any = None
    secrets: Any = None
    uses: Optional[str] = None
    with_args: Dict[str, Any] = field(default_factory=dict)
    stage: Optional[str] = None
    cache: Any = None
    artifact_dependencies: List[str] = field(default_factory=list)
    line: Optional[int] = None

    @property
    def runner_labels(self) -> List[str]:
        if isinstance(self.runs_on, list):
            return [str(label) for label in self.runs_on]
        if isinstance(self.runs_on, dict):
            labels = self.runs_on.get("labels", [])
            return [str(labels)] if isinstance(labels, str) else [str(lb) for lb in labels]
        if self.runs_on:
            return [str(self.runs_on)]
        return []


@dataclass
class WorkflowDocument:
    """Canonical, dialect-independent pipeline definition"""

    file_name: str
    dialect: str = Dialect.GITHUB_ACTIONS.value
    name: Optional[str] = None
    on: TriggerSpec = field(default_factory=lambda: TriggerSpec(kind="none"))
    permissions: Any = None
    env: Dict[str, Any] = field(default_factory=dict)
    concurrency: Any = None
    jobs: Dict[str, Job] = field(default_factory=dict)

    @property
    def triggers(self) -> List[str]:
        return list(self.on.events)

    @property
    def total_steps(self) -> int:
        return sum(len(job.steps) for job in self.jobs.values())

    def iter_steps(self):
        """Yield ``(job, step)`` pairs in document order"""
        for job in self.jobs.values():
            for step in job.steps:
                yield job, step


# Findings


@dataclass(frozen=True)
class Location:
    job: Optional[str] = None
    step: Optional[int] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class CodeSnippet:
    content: str
    start_line: int
    end_line: int
    highlight_line: Optional[int] = None


@dataclass(frozen=True)
class ReachabilityInfo:
    """Reachability annotation attached to a security finding"""

    verdict: str
    source: str
    path: Tuple[str, ...]
    sink: str
    guard: str = "none"
    conditions: Tuple[str, ...] = ()
    mitigating_factors: Tuple[str, ...] = ()

    @property
    def is_reachable(self) -> bool:
        return self.verdict != Verdict.MITIGATED.value

    @property
    def narrative(self) -> str:
        return f"{self.source} → {' → '.join(self.path)} → {self.sink}"


@dataclass(frozen=True)
class Finding:
    """Represents a single issue found in a pipeline definition"""

    type: Union[str, FindingType]
    severity: Union[str, Severity]
    title: str
    description: str
    file: str
    location: Optional[Location] = None
    suggestion: Optional[str] = None
    links: Tuple[str, ...] = ()
    code_snippet: Optional[CodeSnippet] = None
    rule_id: str = ""
    id: str = ""
    origin: str = "rule"
    reachability: Optional[ReachabilityInfo] = None

    def __post_init__(self) -> None:
        """Normalize and validate type and severity"""
        if isinstance(self.type, FindingType):
            object.__setattr__(self, "type", self.type.value)
        if isinstance(self.severity, Severity):
            object.__setattr__(self, "severity", self.severity.value)
        if self.type not in FINDING_TYPES:
            raise ValueError(f"Invalid finding type: {self.type}")
        if self.severity not in SEVERITY_LEVELS:
            raise ValueError(f"Invalid severity level: {self.severity}")
        if not isinstance(self.links, tuple):
            object.__setattr__(self, "links", tuple(self.links))

    @property
    def dedup_key(self) -> Tuple[str, str, Optional[Location]]:
        return (str(self.type), self.title, self.location)


# Call graph


@dataclass(frozen=True)
class JobDependency:
    source: str
    target: str
    type: str
    details: Optional[str] = None


@dataclass(frozen=True)
class ActionUsage:
    action: str
    version: str
    job_id: str
    step_index: int
    step_name: Optional[str] = None


@dataclass(frozen=True)
class CallGraphData:
    job_dependencies: Tuple[JobDependency, ...] = ()
    action_usage: Tuple[ActionUsage, ...] = ()
    critical_paths: Tuple[Tuple[str, ...], ...] = ()
    isolated_jobs: Tuple[str, ...] = ()
    levels: Tuple[Tuple[str, ...], ...] = ()
    cyclic_jobs: Tuple[str, ...] = ()

    def predecessors(self, job_id: str) -> List[str]:
        return sorted({dep.source for dep in self.job_dependencies if dep.target == job_id})

    def successors(self, job_id: str) -> List[str]:
        return sorted({dep.target for dep in self.job_dependencies if dep.source == job_id})


# Reachability and reports


@dataclass(frozen=True)
class ReachabilityStats:
    total_issues: int = 0
    reachable_issues: int = 0
    high_risk_issues: int = 0
    mitigated_issues: int = 0


@dataclass(frozen=True)
class ExecutionContext:
    triggers: Tuple[str, ...] = ()
    has_privileged_triggers: bool = False
    has_secrets: bool = False
    conditional_jobs: int = 0


@dataclass(frozen=True)
class ReachabilityData:
    stats: ReachabilityStats
    execution_context: ExecutionContext
    insights: Tuple[Finding, ...] = ()


@dataclass(frozen=True)
class Summary:
    total_issues: int = 0
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    score: int = 100


@dataclass(frozen=True)
class AnalysisReport:
    file_id: str
    file_name: str
    findings: Tuple[Finding, ...] = ()
    call_graph: Optional[CallGraphData] = None
    reachability: Optional[ReachabilityData] = None
    summary: Summary = field(default_factory=Summary)
    workflow_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
