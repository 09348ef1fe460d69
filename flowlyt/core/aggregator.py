"""
aggregator.py - Finding aggregation and scoring

Merges rule, graph and reachability output into the final AnalysisReport:
context filtering, contextual advisories, analysis options, de-duplication,
unique ids and the summary score.
"""

import dataclasses
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..rules.engine import deduplicate_findings
from .context import WorkflowContext
from .models import (
    AnalysisReport,
    CallGraphData,
    Finding,
    FindingType,
    ReachabilityData,
    Severity,
    Summary,
    WorkflowType,
)
from .reachability import reachability_stats

ERROR_WEIGHT = 10
WARNING_WEIGHT = 5
SCORE_SCALE = 50

UTILITY_SUPPRESSED_TITLES = ("Missing job name", "Missing step name")


def merge_findings(
    rule_findings: Iterable[Finding],
    graph_findings: Iterable[Finding],
    annotated: Iterable[Finding] = (),
) -> List[Finding]:
    """Combine rule and graph findings, preferring annotated security findings"""
    annotated_by_key = {finding.dedup_key: finding for finding in annotated}
    merged: List[Finding] = []
    for finding in list(rule_findings) + list(graph_findings):
        if finding.type == FindingType.SECURITY.value:
            finding = annotated_by_key.get(finding.dedup_key, finding)
        merged.append(finding)
    return merged


def _is_documentation(finding: Finding) -> bool:
    return "documentation" in finding.title.lower()


def apply_context_filter(findings: Iterable[Finding], context: WorkflowContext) -> List[Finding]:
    """
    Drop findings that do not matter for this kind of workflow and raise the
    severity of findings that matter more for production workflows
    """
    result: List[Finding] = []
    for finding in findings:
        if context.workflow_type == WorkflowType.UTILITY.value:
            if finding.type == FindingType.BEST_PRACTICE.value and (
                finding.title in UTILITY_SUPPRESSED_TITLES or _is_documentation(finding)
            ):
                continue

        if (
            context.workflow_type == WorkflowType.AUTOMATION.value
            and context.total_steps <= 3
            and _is_documentation(finding)
        ):
            continue

        if context.has_production_indicators and finding.severity == Severity.INFO.value:
            if (
                finding.type == FindingType.SECURITY.value
                or "error handling" in finding.title.lower()
            ):
                finding = dataclasses.replace(finding, severity=Severity.WARNING.value)

        result.append(finding)
    return result


def contextual_advisories(context: WorkflowContext, file_name: str) -> List[Finding]:
    """Advisories derived from the workflow context rather than from a rule"""
    advisories: List[Finding] = []

    if context.has_production_indicators and context.total_jobs > 1:
        advisories.append(
            Finding(
                id="production-workflow",
                rule_id="production_workflow",
                type=FindingType.BEST_PRACTICE,
                severity=Severity.INFO,
                title="Production workflow detected",
                description="This appears to be a production deployment workflow. Consider implementing additional safeguards.",
                file=file_name,
                suggestion="Add environment protection rules, manual approvals, and comprehensive testing before production deployment",
                links=(
                    "https://docs.github.com/en/actions/deployment/targeting-different-environments/using-environments-for-deployment",
                ),
                origin="context",
            )
        )

    if context.is_complex and context.total_jobs > 5:
        advisories.append(
            Finding(
                id="workflow-decomposition",
                rule_id="workflow_decomposition",
                type=FindingType.STRUCTURE,
                severity=Severity.INFO,
                title="Consider workflow decomposition",
                description=f"This workflow has {context.total_jobs} jobs which may be difficult to maintain and debug.",
                file=file_name,
                suggestion="Consider breaking this into multiple workflows or using reusable workflows for better maintainability",
                origin="context",
            )
        )

    return advisories


def apply_analysis_options(findings: Iterable[Finding], options: Dict[str, Any]) -> List[Finding]:
    """Apply the ignore_info_level and focus_on_security options"""
    result = list(findings)
    if options.get("ignore_info_level"):
        result = [f for f in result if f.severity != Severity.INFO.value]
    if options.get("focus_on_security"):
        kept = (FindingType.SECURITY.value, FindingType.DEPENDENCY.value)
        result = [f for f in result if f.type in kept]
    return result


def assign_ids(findings: Iterable[Finding]) -> List[Finding]:
    """Give every finding a unique id, suffixing repeats with -2, -3, ..."""
    counts: Dict[str, int] = {}
    result: List[Finding] = []
    for index, finding in enumerate(findings):
        base = finding.id or f"{finding.rule_id or finding.type}-{index}"
        counts[base] = counts.get(base, 0) + 1
        unique = base if counts[base] == 1 else f"{base}-{counts[base]}"
        if unique != finding.id:
            finding = dataclasses.replace(finding, id=unique)
        result.append(finding)
    return result


def calculate_score(error_count: int, warning_count: int, total: int) -> int:
    """
    Score a single file from 0 to 100

    Any file without findings scores 100. Otherwise each error costs 10 and
    each warning 5 points out of 50, scaled to a percentage.
    """
    if total == 0:
        return 100
    penalty = (ERROR_WEIGHT * error_count + WARNING_WEIGHT * warning_count) / SCORE_SCALE
    return max(0, int(round((1 - penalty) * 100)))


def summarize(findings: Sequence[Finding]) -> Summary:
    errors = sum(1 for f in findings if f.severity == Severity.ERROR.value)
    warnings = sum(1 for f in findings if f.severity == Severity.WARNING.value)
    infos = sum(1 for f in findings if f.severity == Severity.INFO.value)
    return Summary(
        total_issues=len(findings),
        error_count=errors,
        warning_count=warnings,
        info_count=infos,
        score=calculate_score(errors, warnings, len(findings)),
    )


def aggregate(
    file_id: str,
    file_name: str,
    rule_findings: Iterable[Finding],
    context: WorkflowContext,
    graph_findings: Iterable[Finding] = (),
    annotated: Iterable[Finding] = (),
    call_graph: Optional[CallGraphData] = None,
    reachability: Optional[ReachabilityData] = None,
    analysis_options: Optional[Dict[str, Any]] = None,
) -> AnalysisReport:
    """
    Build the final report for one file

    Args:
        file_id: Identifier of the analyzed file
        file_name: File name
        rule_findings: Findings from the rule engine
        context: Workflow context from the classifier
        graph_findings: Findings from the call graph builder
        annotated: Security findings annotated by the reachability pass
        call_graph: Call graph data attached to the report
        reachability: Reachability data; its stats and insights are
            recomputed from the final findings
        analysis_options: ``analysis`` section of the configuration

    Returns:
        Frozen AnalysisReport
    """
    findings = merge_findings(rule_findings, graph_findings, annotated)
    findings = apply_context_filter(findings, context)
    findings.extend(contextual_advisories(context, file_name))
    findings = apply_analysis_options(findings, analysis_options or {})
    findings = assign_ids(deduplicate_findings(findings))

    if reachability is not None:
        security = [f for f in findings if f.type == FindingType.SECURITY.value]
        reachability = dataclasses.replace(
            reachability, stats=reachability_stats(security), insights=tuple(security)
        )

    return AnalysisReport(
        file_id=file_id,
        file_name=file_name,
        findings=tuple(findings),
        call_graph=call_graph,
        reachability=reachability,
        summary=summarize(findings),
        workflow_type=context.workflow_type,
    )
