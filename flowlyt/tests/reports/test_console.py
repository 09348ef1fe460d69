"""
test_console.py - Tests for console reporting
"""

import io

import pytest

from flowlyt.core.models import (
    AnalysisReport,
    CallGraphData,
    CodeSnippet,
    ExecutionContext,
    Finding,
    JobDependency,
    Location,
    ReachabilityData,
    ReachabilityInfo,
    ReachabilityStats,
    Summary,
)
from flowlyt.reports.console import (
    colorize,
    format_console_report,
    format_finding,
    format_report,
    format_summary,
    get_severity_symbol,
    print_console_report,
)


@pytest.fixture(autouse=True)
def no_color(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")


@pytest.fixture
def security_finding():
    return Finding(
        id="unpinned_action-build-0",
        rule_id="unpinned_action",
        type="security",
        severity="error",
        title="Action not pinned to commit SHA",
        description="Action 'actions/checkout' uses branch 'main'",
        file="ci.yml",
        location=Location(job="build", step=0, line=7),
        suggestion="Pin the action to a full-length commit SHA",
        links=("https://docs.github.com/actions/security-guides",),
        code_snippet=CodeSnippet(
            content="    steps:\n      - uses: actions/checkout@main",
            start_line=6,
            end_line=7,
            highlight_line=2,
        ),
        reachability=ReachabilityInfo(
            verdict="reachable-high-risk",
            source="untrusted input (pull_request_target)",
            path=("build", "step 1"),
            sink="mutable action code",
        ),
    )


@pytest.fixture
def info_finding():
    return Finding(
        type="best-practice",
        severity="info",
        title="No inline documentation",
        description="Workflow has no comments",
        file="ci.yml",
        rule_id="documentation",
    )


def test_severity_symbols():
    """Test severity symbols."""
    assert get_severity_symbol("error") == "✖"
    assert get_severity_symbol("warning") == "⚠"
    assert get_severity_symbol("info") == "ℹ"
    assert get_severity_symbol("other") == "✓"


def test_colorize(monkeypatch):
    """Test that NO_COLOR disables styling."""
    assert colorize("text", "red") == "text"

    monkeypatch.delenv("NO_COLOR")
    styled = colorize("text", "red", bold=True)
    assert styled != "text"
    assert "\x1b[" in styled
    assert "text" in styled


def test_format_finding(security_finding):
    """Test formatting a single finding."""
    output = format_finding(security_finding)

    lines = output.splitlines()
    assert lines[0] == "✖ ERROR [security] Action not pinned to commit SHA"
    assert lines[1] == "  Action 'actions/checkout' uses branch 'main'"
    assert lines[2] == "  Location: ci.yml:7 (job: build, step: 1)"
    assert lines[3] == "  Reachability: reachable-high-risk"
    assert lines[4] == "  Suggestion: Pin the action to a full-length commit SHA"
    assert "    >    7 |       - uses: actions/checkout@main" in lines
    assert "Rule:" not in output


def test_format_finding_verbose(security_finding):
    """Test verbose details."""
    output = format_finding(security_finding, verbose=True, show_snippets=False)

    assert (
        "    untrusted input (pull_request_target) → build → step 1 → mutable action code" in output
    )
    assert "  Rule: unpinned_action (rule)" in output
    assert "  See: https://docs.github.com/actions/security-guides" in output
    assert "actions/checkout@main" not in output.split("Suggestion")[1]


def test_format_finding_without_location(info_finding):
    """Test a workflow-level finding."""
    output = format_finding(info_finding)

    assert output.startswith("ℹ INFO [best-practice] No inline documentation\n")
    assert "  Location: ci.yml\n" in output
    assert "Reachability" not in output


def test_format_report_orders_by_severity(security_finding, info_finding):
    """Test that errors are listed before info findings."""
    report = AnalysisReport(
        file_id="abc",
        file_name="ci.yml",
        findings=(info_finding, security_finding),
        workflow_type="ci",
    )

    output = format_report(report)

    assert "File: ci.yml" in output
    assert "  Workflow type: ci" in output
    assert output.index("ERROR") < output.index("INFO")


def test_format_report_no_issues():
    """Test a report without findings."""
    output = format_report(AnalysisReport(file_id="abc", file_name="ci.yml"))

    assert "  No issues found.\n" in output


def test_format_report_failed():
    """Test a report for a file that could not be analyzed."""
    report = AnalysisReport(
        file_id="abc",
        file_name="broken.yml",
        summary=Summary(score=0),
        error="Invalid YAML: mapping values are not allowed here",
    )

    output = format_report(report)

    assert "  Analysis failed: Invalid YAML: mapping values are not allowed here" in output
    assert "No issues found" not in output


def test_format_report_with_graph():
    """Test call graph and reachability sections."""
    report = AnalysisReport(
        file_id="abc",
        file_name="ci.yml",
        call_graph=CallGraphData(
            job_dependencies=(JobDependency("build", "deploy", "needs"),),
            critical_paths=(("build", "deploy"),),
            isolated_jobs=("lint",),
            levels=(("build", "lint"), ("deploy",)),
        ),
        reachability=ReachabilityData(
            stats=ReachabilityStats(total_issues=2, reachable_issues=1, high_risk_issues=1, mitigated_issues=1),
            execution_context=ExecutionContext(triggers=("push",), has_secrets=True, conditional_jobs=1),
        ),
    )

    assert "Job Dependencies" not in format_report(report)

    output = format_report(report, show_graph=True)

    assert "  build → deploy [needs]" in output
    assert "  1. build, lint" in output
    assert "Critical path: build → deploy" in output
    assert "Isolated jobs: lint" in output
    assert "Triggers: push" in output
    assert "Privileged triggers: no" in output
    assert "Secrets in scope: yes" in output
    assert "Security issues: 2 total, 1 reachable, 1 high risk, 1 mitigated" in output


def test_format_summary(security_finding, info_finding):
    """Test summary statistics across reports."""
    reports = [
        AnalysisReport(
            file_id="a",
            file_name="ci.yml",
            findings=(security_finding, info_finding),
            summary=Summary(total_issues=2, error_count=1, info_count=1, score=80),
        ),
        AnalysisReport(file_id="b", file_name="broken.yml", summary=Summary(score=0), error="boom"),
    ]

    output = format_summary(reports)

    assert "Total files analyzed: 2" in output
    assert "Files that could not be analyzed: 1" in output
    assert "Total issues found: 2" in output
    assert "  error: 1" in output
    assert "  info: 1" in output
    assert "warning:" not in output
    assert "  ci.yml: 80/100" in output
    assert "  broken.yml: 0/100" in output


def test_print_console_report(security_finding):
    """Test writing the console report to a stream."""
    reports = [AnalysisReport(file_id="a", file_name="ci.yml", findings=(security_finding,))]
    stream = io.StringIO()

    print_console_report(reports, output_stream=stream, show_summary=False)

    assert stream.getvalue() == format_console_report(reports, show_summary=False)
    assert "Analysis Summary" not in stream.getvalue()
    assert "Analysis Summary" in format_console_report(reports)
