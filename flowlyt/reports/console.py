"""
console.py - Console/terminal reporting for flowlyt

This module provides functionality for formatting and displaying analysis
results in a human-readable format for terminal output.
"""

import os
import sys
from typing import Dict, List, Optional, Sequence, TextIO

import click

from ..core.models import SEVERITY_LEVELS, AnalysisReport, CallGraphData, Finding, ReachabilityData

COLORS = {
    "error": "red",
    "warning": "yellow",
    "info": "blue",
    "ok": "green",
}

SYMBOLS = {
    "error": "✖",
    "warning": "⚠",
    "info": "ℹ",
}


def get_severity_symbol(severity: str) -> str:
    """Get a symbol representing the severity level"""
    return SYMBOLS.get(severity, "✓")


def colorize(text: str, color: Optional[str] = None, bold: bool = False) -> str:
    """
    Apply color to text if color output is enabled

    Args:
        text: Text to colorize
        color: Foreground color to apply
        bold: Whether to render bold

    Returns:
        Colorized text or original text if color is disabled
    """
    if os.environ.get("NO_COLOR"):
        return text

    return click.style(text, fg=color, bold=bold)


def format_finding(finding: Finding, verbose: bool = False, show_snippets: bool = True) -> str:
    """
    Format a single finding for console output

    Args:
        finding: Finding to format
        verbose: Whether to include additional details
        show_snippets: Whether to include the code snippet

    Returns:
        Formatted finding as string
    """
    severity = finding.severity
    symbol = get_severity_symbol(severity)

    formatted = f"{symbol} {colorize(severity.upper(), COLORS.get(severity))} [{finding.type}] {finding.title}\n"
    formatted += f"  {finding.description}\n"

    where = finding.file
    if finding.location is not None:
        if finding.location.line is not None:
            where += f":{finding.location.line}"
        if finding.location.job is not None:
            where += f" (job: {finding.location.job}"
            if finding.location.step is not None:
                where += f", step: {finding.location.step + 1}"
            where += ")"
    formatted += f"  Location: {where}\n"

    if finding.reachability is not None:
        formatted += f"  Reachability: {finding.reachability.verdict}\n"
        if verbose:
            formatted += f"    {finding.reachability.narrative}\n"

    if finding.suggestion:
        formatted += f"  Suggestion: {finding.suggestion}\n"

    if verbose:
        formatted += f"  Rule: {finding.rule_id or '-'} ({finding.origin})\n"
        for link in finding.links:
            formatted += f"  See: {link}\n"

    if show_snippets and finding.code_snippet is not None:
        snippet = finding.code_snippet
        for offset, line in enumerate(snippet.content.splitlines()):
            number = snippet.start_line + offset
            marker = ">" if snippet.highlight_line == offset + 1 else " "
            formatted += f"    {marker} {number:4d} | {line}\n"

    return formatted


def format_call_graph(call_graph: CallGraphData) -> str:
    """Format call graph data as an indented summary"""
    output = f"\n{colorize('Job Dependencies', bold=True)}\n"
    output += "=" * 50 + "\n"

    if not call_graph.job_dependencies:
        output += "No dependencies between jobs.\n"
    for dep in call_graph.job_dependencies:
        details = f" ({dep.details})" if dep.details else ""
        output += f"  {dep.source} → {dep.target} [{dep.type}]{details}\n"

    if call_graph.levels:
        output += "\nExecution levels:\n"
        for index, level in enumerate(call_graph.levels, start=1):
            output += f"  {index}. {', '.join(level)}\n"
    if call_graph.critical_paths:
        output += f"\nCritical path: {' → '.join(call_graph.critical_paths[0])}\n"
    if call_graph.isolated_jobs:
        output += f"Isolated jobs: {', '.join(call_graph.isolated_jobs)}\n"
    if call_graph.cyclic_jobs:
        output += colorize(f"Jobs in or behind a cycle: {', '.join(call_graph.cyclic_jobs)}", "red") + "\n"

    return output


def format_reachability(data: ReachabilityData) -> str:
    """Format reachability stats and the execution context"""
    stats = data.stats
    context = data.execution_context

    output = f"\n{colorize('Reachability', bold=True)}\n"
    output += "=" * 50 + "\n"
    output += f"Triggers: {', '.join(context.triggers) or '-'}\n"
    output += f"Privileged triggers: {'yes' if context.has_privileged_triggers else 'no'}\n"
    output += f"Secrets in scope: {'yes' if context.has_secrets else 'no'}\n"
    output += f"Conditional jobs: {context.conditional_jobs}\n"
    output += (
        f"Security issues: {stats.total_issues} total, {stats.reachable_issues} reachable, "
        f"{stats.high_risk_issues} high risk, {stats.mitigated_issues} mitigated\n"
    )
    return output


def format_report(
    report: AnalysisReport,
    verbose: bool = False,
    show_snippets: bool = True,
    show_graph: bool = False,
) -> str:
    """
    Format the report of a single file

    Args:
        report: Report to format
        verbose: Whether to include additional details
        show_snippets: Whether to include code snippets
        show_graph: Whether to include call graph and reachability sections

    Returns:
        Formatted report as string
    """
    output = f"\n{colorize('File: ' + report.file_name, bold=True)}\n"

    if report.failed:
        output += colorize(f"  Analysis failed: {report.error}", "red") + "\n"
        return output

    if report.workflow_type:
        output += f"  Workflow type: {report.workflow_type}\n"

    if not report.findings:
        output += "  No issues found.\n"

    for level in reversed(SEVERITY_LEVELS):
        for finding in report.findings:
            if finding.severity == level:
                output += "\n" + format_finding(finding, verbose, show_snippets)

    if show_graph and report.call_graph is not None:
        output += format_call_graph(report.call_graph)
    if show_graph and report.reachability is not None:
        output += format_reachability(report.reachability)

    return output


def score_color(score: int) -> str:
    if score >= 80:
        return COLORS["ok"]
    if score >= 50:
        return COLORS["warning"]
    return COLORS["error"]


def format_summary(reports: Sequence[AnalysisReport]) -> str:
    """
    Format summary statistics across reports

    Args:
        reports: Analysis reports

    Returns:
        Formatted summary as string
    """
    output = f"\n{colorize('Analysis Summary', bold=True)}\n"
    output += "=" * 50 + "\n"

    output += f"Total files analyzed: {len(reports)}\n"
    failed = [report for report in reports if report.failed]
    if failed:
        output += f"Files that could not be analyzed: {len(failed)}\n"
    output += f"Total issues found: {sum(r.summary.total_issues for r in reports)}\n"

    counts: Dict[str, int] = {
        "error": sum(r.summary.error_count for r in reports),
        "warning": sum(r.summary.warning_count for r in reports),
        "info": sum(r.summary.info_count for r in reports),
    }
    output += "\nIssues by severity:\n"
    for level in reversed(SEVERITY_LEVELS):
        if counts[level] > 0:
            output += f"  {colorize(level, COLORS.get(level))}: {counts[level]}\n"

    output += "\nScores:\n"
    for report in reports:
        score = report.summary.score
        output += f"  {report.file_name}: {colorize(str(score), score_color(score))}/100\n"

    return output


def format_console_report(
    reports: Sequence[AnalysisReport],
    verbose: bool = False,
    show_snippets: bool = True,
    show_graph: bool = False,
    show_summary: bool = True,
) -> str:
    """
    Generate a complete console report

    Args:
        reports: Analysis reports
        verbose: Whether to include additional details
        show_snippets: Whether to include code snippets
        show_graph: Whether to include call graph and reachability sections
        show_summary: Whether to include summary statistics

    Returns:
        Complete formatted report as string
    """
    parts: List[str] = [
        format_report(report, verbose, show_snippets, show_graph) for report in reports
    ]
    if show_summary:
        parts.append(format_summary(reports))
    return "".join(parts)


def print_console_report(
    reports: Sequence[AnalysisReport],
    verbose: bool = False,
    show_snippets: bool = True,
    show_graph: bool = False,
    show_summary: bool = True,
    output_stream: Optional[TextIO] = None,
) -> None:
    """
    Print console report to output stream

    Args:
        reports: Analysis reports
        verbose: Whether to include additional details
        show_snippets: Whether to include code snippets
        show_graph: Whether to include call graph and reachability sections
        show_summary: Whether to include summary statistics
        output_stream: Output stream to write to (defaults to sys.stdout)
    """
    report = format_console_report(
        reports,
        verbose=verbose,
        show_snippets=show_snippets,
        show_graph=show_graph,
        show_summary=show_summary,
    )

    if output_stream is None:
        output_stream = sys.stdout

    output_stream.write(report)
    output_stream.flush()
