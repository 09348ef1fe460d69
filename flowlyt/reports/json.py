"""
json.py - JSON reporting for flowlyt

This module provides functionality for formatting analysis reports as JSON,
suitable for machine processing or integration with other tools.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..core.models import (
    AnalysisReport,
    CallGraphData,
    Finding,
    ReachabilityData,
    ReachabilityInfo,
)
from ..rules.patterns import RULE_TABLE_VERSION
from ..utils.version import __version__


def reachability_info_to_dict(info: ReachabilityInfo) -> Dict[str, Any]:
    return {
        "verdict": info.verdict,
        "source": info.source,
        "path": list(info.path),
        "sink": info.sink,
        "guard": info.guard,
        "conditions": list(info.conditions),
        "mitigating_factors": list(info.mitigating_factors),
        "narrative": info.narrative,
    }


def finding_to_dict(finding: Finding) -> Dict[str, Any]:
    """
    Convert a Finding object to a dictionary suitable for JSON serialization

    Args:
        finding: Finding to convert

    Returns:
        Dictionary representation of the finding
    """
    result: Dict[str, Any] = {
        "id": finding.id,
        "rule_id": finding.rule_id,
        "type": finding.type,
        "severity": finding.severity,
        "title": finding.title,
        "description": finding.description,
        "file": finding.file,
        "origin": finding.origin,
    }

    if finding.location is not None:
        result["location"] = {
            key: value
            for key, value in (
                ("job", finding.location.job),
                ("step", finding.location.step),
                ("line", finding.location.line),
            )
            if value is not None
        }
    if finding.suggestion:
        result["suggestion"] = finding.suggestion
    if finding.links:
        result["links"] = list(finding.links)
    if finding.code_snippet is not None:
        result["code_snippet"] = {
            "content": finding.code_snippet.content,
            "start_line": finding.code_snippet.start_line,
            "end_line": finding.code_snippet.end_line,
            "highlight_line": finding.code_snippet.highlight_line,
        }
    if finding.reachability is not None:
        result["reachability"] = reachability_info_to_dict(finding.reachability)

    return result


def call_graph_to_dict(call_graph: CallGraphData) -> Dict[str, Any]:
    return {
        "job_dependencies": [
            {"from": dep.source, "to": dep.target, "type": dep.type, "details": dep.details}
            for dep in call_graph.job_dependencies
        ],
        "action_usage": [
            {
                "action": usage.action,
                "version": usage.version,
                "job_id": usage.job_id,
                "step_index": usage.step_index,
                "step_name": usage.step_name,
            }
            for usage in call_graph.action_usage
        ],
        "critical_paths": [list(path) for path in call_graph.critical_paths],
        "isolated_jobs": list(call_graph.isolated_jobs),
        "levels": [list(level) for level in call_graph.levels],
        "cyclic_jobs": list(call_graph.cyclic_jobs),
    }


def reachability_to_dict(data: ReachabilityData) -> Dict[str, Any]:
    context = data.execution_context
    return {
        "stats": {
            "total_issues": data.stats.total_issues,
            "reachable_issues": data.stats.reachable_issues,
            "high_risk_issues": data.stats.high_risk_issues,
            "mitigated_issues": data.stats.mitigated_issues,
        },
        "execution_context": {
            "triggers": list(context.triggers),
            "has_privileged_triggers": context.has_privileged_triggers,
            "has_secrets": context.has_secrets,
            "conditional_jobs": context.conditional_jobs,
        },
        "insights": [finding.id for finding in data.insights],
    }


def report_to_dict(report: AnalysisReport) -> Dict[str, Any]:
    """Convert an AnalysisReport to a JSON-serializable dictionary"""
    result: Dict[str, Any] = {
        "file_id": report.file_id,
        "file_name": report.file_name,
        "workflow_type": report.workflow_type,
        "summary": {
            "total_issues": report.summary.total_issues,
            "error_count": report.summary.error_count,
            "warning_count": report.summary.warning_count,
            "info_count": report.summary.info_count,
            "score": report.summary.score,
        },
        "findings": [finding_to_dict(finding) for finding in report.findings],
    }

    if report.error is not None:
        result["error"] = report.error
    if report.call_graph is not None:
        result["call_graph"] = call_graph_to_dict(report.call_graph)
    if report.reachability is not None:
        result["reachability"] = reachability_to_dict(report.reachability)

    return result


def generate_json_report(
    reports: Sequence[AnalysisReport],
    include_metadata: bool = True,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Generate a JSON report for one or more analyzed files

    Args:
        reports: Analysis reports
        include_metadata: Whether to include tool version and timestamp
        generated_at: Timestamp to record (defaults to now)

    Returns:
        JSON string representation of the reports
    """
    files: List[Dict[str, Any]] = [report_to_dict(report) for report in reports]

    output: Dict[str, Any] = {}
    if include_metadata:
        output["flowlyt_version"] = __version__
        output["rule_table_version"] = RULE_TABLE_VERSION
        output["generated_at"] = (generated_at or datetime.now()).isoformat()
    output["files"] = files

    return json.dumps(output, indent=2)


def save_json_report(reports: Sequence[AnalysisReport], output_path: str) -> None:
    """
    Generate a JSON report and save it to a file

    Raises:
        IOError: If the file cannot be written
    """
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(generate_json_report(reports))
