"""
reachability.py - Reachability analysis for security findings

Annotates each security finding with how an attacker-influenced run could
reach it: the triggering source, the job path through the dependency graph,
the sink the issue exposes, and a verdict. Severities are never changed here.
"""

import dataclasses
import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..rules import patterns
from .context import WorkflowContext
from .models import (
    CallGraphData,
    Finding,
    FindingType,
    Job,
    ReachabilityData,
    ReachabilityInfo,
    ReachabilityStats,
    Step,
    Verdict,
    WorkflowDocument,
)

logger = logging.getLogger(__name__)

GUARD_NONE = "none"
GUARD_CONDITIONAL = "conditional"
GUARD_ALWAYS_FALSE = "always-false"

ATTACKER_CONTROLLED_RULES = {"command_injection", "privileged_checkout", "unsafe_script"}

SINKS: Dict[str, str] = {
    "hardcoded_credentials": "credential disclosure",
    "command_injection": "arbitrary code execution",
    "unsafe_script": "arbitrary code execution",
    "unpinned_action": "supply-chain compromise",
    "third_party_action": "supply-chain compromise",
    "permissions": "token privilege abuse",
    "self_hosted_runner": "runner persistence",
    "privileged_checkout": "repository takeover",
}
DEFAULT_SINK = "workflow integrity"


def _find_step(job: Job, index: Optional[int]) -> Optional[Step]:
    if index is None:
        return None
    for step in job.steps:
        if step.index == index:
            return step
    return None


def upstream_jobs(document: WorkflowDocument, job_id: str) -> List[str]:
    """All jobs ``job_id`` transitively needs, nearest first"""
    seen: Set[str] = set()
    order: List[str] = []
    queue = [need for need in document.jobs[job_id].needs if need in document.jobs]
    while queue:
        current = queue.pop(0)
        if current in seen or current == job_id:
            continue
        seen.add(current)
        order.append(current)
        queue.extend(need for need in document.jobs[current].needs if need in document.jobs)
    return order


def detect_guard(
    document: WorkflowDocument, job_id: Optional[str], step_index: Optional[int]
) -> Tuple[str, List[str]]:
    """
    Determine how the job/step ``if`` chain guards a location

    Returns:
        Tuple of the guard kind and the conditions that make it up
    """
    job = document.jobs.get(job_id) if job_id else None
    if job is None:
        return GUARD_NONE, []

    step = _find_step(job, step_index)
    conditions = [c for c in (job.if_condition, step.if_condition if step else None) if c]

    if any(patterns.is_always_false(condition) for condition in conditions):
        return GUARD_ALWAYS_FALSE, conditions

    # A skipped dependency skips its dependents unless they opt in with always()
    runs_always = bool(job.if_condition and patterns.ALWAYS_FUNCTION.search(job.if_condition))
    if not runs_always:
        for upstream in upstream_jobs(document, job.id):
            condition = document.jobs[upstream].if_condition
            if patterns.is_always_false(condition):
                return GUARD_ALWAYS_FALSE, conditions + [f"{upstream}: {condition}"]

    if conditions:
        return GUARD_CONDITIONAL, conditions
    return GUARD_NONE, []


def decide_verdict(
    guard: str,
    privileged: bool,
    secrets: bool,
    attacker_controlled: bool,
    conditions: Sequence[str] = (),
) -> str:
    """Apply the reachability decision table"""
    if guard == GUARD_ALWAYS_FALSE:
        return Verdict.MITIGATED.value

    if privileged and (secrets or attacker_controlled):
        # Only conditions on the event itself can be steered by the attacker
        event_guarded = any(patterns.EVENT_CONDITION.search(c) for c in conditions)
        if guard == GUARD_CONDITIONAL and not event_guarded:
            return Verdict.CONDITIONAL.value
        return Verdict.HIGH_RISK.value

    if guard == GUARD_CONDITIONAL:
        return Verdict.CONDITIONAL.value
    if privileged or secrets:
        return Verdict.REACHABLE.value
    return Verdict.LOW_IMPACT.value


def _upstream_chain(job_id: str, call_graph: Optional[CallGraphData]) -> List[str]:
    if call_graph is None:
        return []
    chain: List[str] = []
    seen = {job_id}
    current = job_id
    while True:
        predecessors = [p for p in call_graph.predecessors(current) if p not in seen]
        if not predecessors:
            break
        current = predecessors[0]
        seen.add(current)
        chain.append(current)
    return list(reversed(chain))


def build_path(
    document: WorkflowDocument, finding: Finding, call_graph: Optional[CallGraphData]
) -> Tuple[str, ...]:
    location = finding.location
    if location is None or location.job is None or location.job not in document.jobs:
        return ("workflow",)

    path = _upstream_chain(location.job, call_graph) + [location.job]
    step = _find_step(document.jobs[location.job], location.step)
    if step is not None:
        path.append(f"step '{step.name}'" if step.name else f"step {step.index + 1}")
    return tuple(path)


def annotate(
    finding: Finding,
    context: WorkflowContext,
    document: WorkflowDocument,
    call_graph: Optional[CallGraphData] = None,
) -> ReachabilityInfo:
    """Compute the reachability annotation for one security finding"""
    location = finding.location
    guard, conditions = detect_guard(
        document,
        location.job if location else None,
        location.step if location else None,
    )
    attacker_controlled = finding.rule_id in ATTACKER_CONTROLLED_RULES
    verdict = decide_verdict(
        guard,
        context.has_privileged_triggers,
        context.has_secrets,
        attacker_controlled,
        conditions,
    )

    triggers = ", ".join(context.triggers) or "no trigger"
    source = f"untrusted input ({triggers})" if attacker_controlled else f"trigger ({triggers})"

    mitigating: List[str] = []
    if guard != GUARD_NONE:
        mitigating.extend(f"condition: {condition}" for condition in conditions)
    if not context.has_privileged_triggers:
        mitigating.append("no privileged trigger")
    if not context.has_secrets:
        mitigating.append("no secrets in scope")

    return ReachabilityInfo(
        verdict=verdict,
        source=source,
        path=build_path(document, finding, call_graph),
        sink=SINKS.get(finding.rule_id, DEFAULT_SINK),
        guard=guard,
        conditions=tuple(conditions),
        mitigating_factors=tuple(mitigating),
    )


def analyze_reachability(
    findings: Sequence[Finding],
    context: WorkflowContext,
    document: WorkflowDocument,
    call_graph: Optional[CallGraphData] = None,
) -> Tuple[List[Finding], ReachabilityData]:
    """
    Annotate security findings with reachability information

    Args:
        findings: Findings to process; only security findings are annotated
        context: Workflow context from the classifier
        document: Canonical workflow document
        call_graph: Optional call graph used for upstream path narratives

    Returns:
        Tuple of the findings (security ones annotated, others unchanged)
        and the reachability data for the report
    """
    result: List[Finding] = []
    insights: List[Finding] = []

    for finding in findings:
        if finding.type != FindingType.SECURITY.value:
            result.append(finding)
            continue
        annotated = dataclasses.replace(
            finding, reachability=annotate(finding, context, document, call_graph)
        )
        result.append(annotated)
        insights.append(annotated)

    stats = reachability_stats(insights)
    logger.debug(
        "Reachability for %s: %d security findings, %d high risk, %d mitigated",
        document.file_name,
        stats.total_issues,
        stats.high_risk_issues,
        stats.mitigated_issues,
    )

    data = ReachabilityData(
        stats=stats,
        execution_context=context.execution_context(),
        insights=tuple(insights),
    )
    return result, data


def reachability_stats(findings: Sequence[Finding]) -> ReachabilityStats:
    """Stats over annotated security findings"""
    security = [f for f in findings if f.type == FindingType.SECURITY.value]
    mitigated = sum(
        1 for f in security if f.reachability and f.reachability.verdict == Verdict.MITIGATED.value
    )
    high_risk = sum(
        1 for f in security if f.reachability and f.reachability.verdict == Verdict.HIGH_RISK.value
    )
    return ReachabilityStats(
        total_issues=len(security),
        reachable_issues=len(security) - mitigated,
        high_risk_issues=high_risk,
        mitigated_issues=mitigated,
    )
