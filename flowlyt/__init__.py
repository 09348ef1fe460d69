"""
flowlyt - CI/CD pipeline analyzer

A static analyzer for GitHub Actions workflows and GitLab CI pipelines. It
builds a canonical model of the pipeline, runs security, performance,
best-practice, dependency and structure rules, derives the job call graph,
estimates whether security findings are reachable, and scores the result.
"""

# core must load before utils.version, which depends on core.models
from .core import (
    SEVERITY_LEVELS,
    AnalysisReport,
    ConfigurationError,
    Finding,
    WorkflowDocument,
    WorkflowParseError,
    disable_rules,
    generate_default_config,
    load_config,
    parse,
    save_config,
)
from .core.scanner import WorkflowAnalyzer, analyze, analyze_source
from .reports import generate_json_report, print_console_report
from .rules import Rule, RuleEngine, create_rule_engine
from .utils.version import __version__, get_version, get_version_info

__all__ = [
    "__version__",
    "get_version",
    "get_version_info",
    "parse",
    "analyze",
    "analyze_source",
    "WorkflowAnalyzer",
    "WorkflowDocument",
    "WorkflowParseError",
    "AnalysisReport",
    "Finding",
    "SEVERITY_LEVELS",
    "load_config",
    "generate_default_config",
    "save_config",
    "disable_rules",
    "ConfigurationError",
    "generate_json_report",
    "print_console_report",
    "Rule",
    "RuleEngine",
    "create_rule_engine",
]


def main() -> None:
    """Main entry point for the flowlyt CLI tool"""
    from .cli import cli

    cli()
