"""
callgraph.py - Job dependency graph

Builds the job-level dependency graph of a workflow (needs, artifact and
output edges), orders it into topological levels, and derives the critical
paths, isolated jobs and dependency cycles.
"""

import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from ..utils.yaml_handler import extract_code_snippet
from .models import (
    ActionUsage,
    CallGraphData,
    CodeSnippet,
    Dialect,
    EdgeType,
    Finding,
    FindingType,
    JobDependency,
    Location,
    Severity,
    Step,
    WorkflowDocument,
)

logger = logging.getLogger(__name__)

UPLOAD_ARTIFACT_ACTION = "actions/upload-artifact"
DOWNLOAD_ARTIFACT_ACTION = "actions/download-artifact"
DEFAULT_ARTIFACT_NAME = "artifact"

OUTPUT_REFERENCE = re.compile(r"needs\.([A-Za-z_][A-Za-z0-9_\-]*)\.outputs\.([A-Za-z0-9_\-]+)")


def is_artifact_upload(step: Step) -> bool:
    return step.action is not None and step.action.slug.lower() == UPLOAD_ARTIFACT_ACTION


def is_artifact_download(step: Step) -> bool:
    return step.action is not None and step.action.slug.lower() == DOWNLOAD_ARTIFACT_ACTION


def artifact_name(step: Step) -> str:
    return str(step.with_args.get("name") or DEFAULT_ARTIFACT_NAME)


class _GraphBuilder:
    """Accumulates de-duplicated edges in insertion order"""

    def __init__(self, job_ids: List[str]) -> None:
        self.job_ids = job_ids
        self.edges: List[JobDependency] = []
        self._seen: Set[Tuple[str, str, str]] = set()

    def add(self, source: str, target: str, edge_type: EdgeType, details: Optional[str] = None) -> None:
        key = (source, target, edge_type.value)
        if key in self._seen:
            return
        self._seen.add(key)
        self.edges.append(JobDependency(source=source, target=target, type=edge_type.value, details=details))

    def successors(self) -> Dict[str, List[str]]:
        successors: Dict[str, List[str]] = {job_id: [] for job_id in self.job_ids}
        for edge in self.edges:
            if edge.target not in successors[edge.source]:
                successors[edge.source].append(edge.target)
        return successors


def _add_needs_edges(document: WorkflowDocument, graph: _GraphBuilder) -> None:
    for job in document.jobs.values():
        for need in job.needs:
            # Dangling needs are reported by the structure rules
            if need in document.jobs:
                graph.add(need, job.id, EdgeType.NEEDS)


def _add_artifact_edges(document: WorkflowDocument, graph: _GraphBuilder) -> None:
    if document.dialect == Dialect.GITLAB_CI.value:
        for job in document.jobs.values():
            for dependency in job.artifact_dependencies:
                if dependency in document.jobs and dependency != job.id:
                    graph.add(dependency, job.id, EdgeType.ARTIFACT, dependency)
        return

    producers: Dict[str, List[str]] = {}
    for job, step in document.iter_steps():
        if is_artifact_upload(step):
            owners = producers.setdefault(artifact_name(step), [])
            if job.id not in owners:
                owners.append(job.id)

    for job, step in document.iter_steps():
        if not is_artifact_download(step):
            continue
        requested = step.with_args.get("name")
        # An unnamed download fetches every artifact of the run
        names = [str(requested)] if requested else list(producers)
        for name in names:
            for producer in producers.get(name, []):
                if producer != job.id:
                    graph.add(producer, job.id, EdgeType.ARTIFACT, name)


def _add_output_edges(document: WorkflowDocument, graph: _GraphBuilder) -> None:
    for job in document.jobs.values():
        texts: List[str] = []
        if job.if_condition:
            texts.append(job.if_condition)
        for mapping in (job.env, job.with_args, job.outputs):
            texts.extend(str(value) for value in mapping.values() if value is not None)
        for step in job.steps:
            texts.extend(step.text_fields())

        for text in texts:
            for match in OUTPUT_REFERENCE.finditer(text):
                producer = match.group(1)
                if producer in document.jobs and producer != job.id:
                    graph.add(producer, job.id, EdgeType.OUTPUT, match.group(0))


def _topological_levels(
    job_ids: List[str], successors: Dict[str, List[str]]
) -> Tuple[List[Tuple[str, ...]], List[str]]:
    """Kahn's algorithm; returns the levels and the nodes left in cycles"""
    order = {job_id: index for index, job_id in enumerate(job_ids)}
    in_degree = {job_id: 0 for job_id in job_ids}
    for targets in successors.values():
        for target in targets:
            in_degree[target] += 1

    levels: List[Tuple[str, ...]] = []
    placed: Set[str] = set()
    current = [job_id for job_id in job_ids if in_degree[job_id] == 0]
    while current:
        levels.append(tuple(current))
        placed.update(current)
        ready: List[str] = []
        for job_id in current:
            for target in successors[job_id]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    ready.append(target)
        current = sorted(ready, key=order.__getitem__)

    remaining = [job_id for job_id in job_ids if job_id not in placed]
    return levels, remaining


def _find_cycle(remaining: List[str], edges: List[JobDependency]) -> List[str]:
    """Walk predecessors inside the blocked set until a node repeats"""
    blocked = set(remaining)
    predecessors: Dict[str, List[str]] = {job_id: [] for job_id in remaining}
    for edge in edges:
        if edge.source in blocked and edge.target in blocked:
            if edge.source not in predecessors[edge.target]:
                predecessors[edge.target].append(edge.source)

    path: List[str] = []
    position: Dict[str, int] = {}
    current = remaining[0]
    while current not in position:
        position[current] = len(path)
        path.append(current)
        current = predecessors[current][0]

    return list(reversed(path[position[current]:]))


def _critical_paths(
    levels: List[Tuple[str, ...]], successors: Dict[str, List[str]], has_incoming: Set[str]
) -> List[Tuple[str, ...]]:
    """Longest node-weighted path from every source job that has dependents"""
    placed = {job_id for level in levels for job_id in level}
    longest: Dict[str, Tuple[str, ...]] = {}

    for level in reversed(levels):
        for job_id in level:
            best: Tuple[str, ...] = (job_id,)
            for target in successors[job_id]:
                if target not in placed:
                    continue
                candidate = (job_id,) + longest[target]
                if len(candidate) > len(best) or (len(candidate) == len(best) and candidate < best):
                    best = candidate
            longest[job_id] = best

    paths: List[Tuple[str, ...]] = []
    for level in levels:
        for job_id in level:
            if job_id in has_incoming or not successors[job_id]:
                continue
            path = longest[job_id]
            if len(path) > 1 and path not in paths:
                paths.append(path)

    return sorted(paths, key=lambda path: (-len(path), path))


def _graph_finding(
    document: WorkflowDocument,
    source: str,
    finding_id: str,
    rule_id: str,
    finding_type: FindingType,
    severity: Severity,
    title: str,
    description: str,
    suggestion: str,
    job_id: Optional[str] = None,
) -> Finding:
    line = document.jobs[job_id].line if job_id in document.jobs else None
    snippet = extract_code_snippet(source, line) if source else None
    return Finding(
        id=finding_id,
        rule_id=rule_id,
        type=finding_type,
        severity=severity,
        title=title,
        description=description,
        file=document.file_name,
        location=Location(job=job_id, line=line) if job_id else None,
        suggestion=suggestion,
        code_snippet=CodeSnippet(**snippet) if snippet else None,
        origin="graph",
    )


def build_call_graph(
    document: WorkflowDocument, source: str = ""
) -> Tuple[CallGraphData, List[Finding]]:
    """
    Build the job dependency graph of a workflow

    Args:
        document: Canonical workflow document
        source: Raw YAML text, used for code snippets on graph findings

    Returns:
        Tuple of the graph data and the graph-derived findings (cycle
        reports and graph insights)
    """
    job_ids = list(document.jobs)
    graph = _GraphBuilder(job_ids)

    _add_needs_edges(document, graph)
    _add_artifact_edges(document, graph)
    _add_output_edges(document, graph)

    successors = graph.successors()
    levels, remaining = _topological_levels(job_ids, successors)

    findings: List[Finding] = []
    cycle: List[str] = []
    if remaining:
        cycle = _find_cycle(remaining, graph.edges)
        blocked = [job_id for job_id in remaining if job_id not in cycle]
        description = f"Jobs form a dependency cycle: {' → '.join(cycle + [cycle[0]])}"
        if blocked:
            description += f". Jobs blocked by the cycle: {', '.join(blocked)}"
        logger.debug("Dependency cycle in %s: %s", document.file_name, cycle)
        findings.append(
            _graph_finding(
                document,
                source,
                "circular-dependency",
                "circular_dependency",
                FindingType.STRUCTURE,
                Severity.ERROR,
                "Circular job dependency",
                description,
                "Remove one of the needs entries to break the cycle",
                job_id=cycle[0],
            )
        )

    has_incoming = {edge.target for edge in graph.edges}
    has_outgoing = {edge.source for edge in graph.edges}
    critical_paths = _critical_paths(levels, successors, has_incoming)
    isolated = [
        job_id for job_id in job_ids if job_id not in has_incoming and job_id not in has_outgoing
    ]

    if critical_paths:
        longest = critical_paths[0]
        findings.append(
            _graph_finding(
                document,
                source,
                "critical-path",
                "critical_path",
                FindingType.PERFORMANCE,
                Severity.INFO,
                "Critical path analysis",
                f"Longest dependency chain has {len(longest)} jobs: {' → '.join(longest)}",
                "Shorten the critical path by moving independent work out of the chain",
                job_id=longest[0],
            )
        )

    if graph.edges and isolated:
        findings.append(
            _graph_finding(
                document,
                source,
                "isolated-jobs",
                "isolated_jobs",
                FindingType.PERFORMANCE,
                Severity.INFO,
                "Parallelizable isolated jobs",
                f"{len(isolated)} job(s) have no dependencies and run in parallel: {', '.join(isolated)}",
                "Make sure isolated jobs do not need outputs of other jobs",
            )
        )

    action_usage = tuple(
        ActionUsage(
            action=step.action.name,
            version=step.action.ref or "",
            job_id=job.id,
            step_index=step.index,
            step_name=step.name,
        )
        for job, step in document.iter_steps()
        if step.action is not None
    )

    data = CallGraphData(
        job_dependencies=tuple(graph.edges),
        action_usage=action_usage,
        critical_paths=tuple(critical_paths),
        isolated_jobs=tuple(isolated),
        levels=tuple(levels),
        cyclic_jobs=tuple(remaining),
    )
    return data, findings
