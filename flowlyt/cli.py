"""
cli.py - Command-line interface for flowlyt

This module provides the command-line interface for the flowlyt tool,
allowing users to analyze GitHub Actions workflows and GitLab CI pipelines.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import click

from .core import (
    SEVERITY_LEVELS,
    AnalysisReport,
    ConfigurationError,
    Dialect,
    disable_rules,
    generate_default_config,
    load_config,
)
from .core.config import PROFILES
from .core.scanner import WorkflowAnalyzer
from .reports import print_console_report, save_json_report, generate_json_report
from .rules import create_rule_engine
from .utils.known_actions import KnownActionsDatabase
from .utils.version import __version__
from .utils.yaml_handler import find_github_workflow_files, find_gitlab_ci_files

OUTPUT_FORMATS = ["text", "json"]
DIALECTS = [dialect.value for dialect in Dialect]
FAIL_ON_LEVELS = ["info", "warning", "error", "none"]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

TYPE_COLORS = {
    "security": "red",
    "performance": "magenta",
    "best-practice": "cyan",
    "dependency": "yellow",
    "structure": "blue",
}


def _load_config(
    config: Optional[str], profile: Optional[str], disable: Sequence[str] = ()
) -> Dict[str, Any]:
    """Load the configuration, exiting with a message when it is invalid"""
    try:
        config_data = load_config(config, profile=profile)
    except ConfigurationError as e:
        click.echo(f"Error loading config file: {e}", err=True)
        sys.exit(1)

    if disable:
        config_data = disable_rules(config_data, list(disable))
    return config_data


def _collect_files(paths: Sequence[str]) -> List[Path]:
    """Expand files and repository directories into pipeline files"""
    files: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(find_github_workflow_files(str(path)))
            files.extend(find_gitlab_ci_files(str(path)))
        else:
            files.append(path)
    return files


def _exceeds_threshold(reports: Sequence[AnalysisReport], fail_on: str) -> bool:
    """Whether any report has a finding at or above ``fail_on`` or failed outright"""
    if fail_on == "none":
        return False

    threshold = SEVERITY_LEVELS.index(fail_on)
    for report in reports:
        if report.failed:
            return True
        for finding in report.findings:
            if SEVERITY_LEVELS.index(finding.severity) >= threshold:
                return True
    return False


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="flowlyt")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Logging verbosity",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str) -> None:
    """flowlyt - CI/CD pipeline analyzer

    Analyzes GitHub Actions workflows and GitLab CI pipelines for security,
    performance, best-practice, dependency and structure issues.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--dialect", type=click.Choice(DIALECTS), help="Force the pipeline dialect")
@click.option("--config", type=click.Path(), help="Path to YAML config file")
@click.option("--profile", type=click.Choice(list(PROFILES)), help="Analysis profile")
@click.option("--disable", multiple=True, help="Disable specific rule(s)")
@click.option("--strict", is_flag=True, help="Enable strict mode (extra checks)")
@click.option(
    "--output",
    type=click.Choice(OUTPUT_FORMATS),
    default="text",
    help="Output format for results",
)
@click.option("--output-file", type=click.Path(), help="Write output to file instead of stdout")
@click.option(
    "--fail-on",
    type=click.Choice(FAIL_ON_LEVELS),
    default="error",
    help="Exit with status 1 when findings at or above this severity exist",
)
@click.option("--graph", is_flag=True, help="Include call graph and reachability sections")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--verbose", is_flag=True, help="Show detailed information for each finding")
def scan(
    paths: Tuple[str, ...],
    dialect: Optional[str],
    config: Optional[str],
    profile: Optional[str],
    disable: Tuple[str, ...],
    strict: bool,
    output: str,
    output_file: Optional[str],
    fail_on: str,
    graph: bool,
    no_color: bool,
    verbose: bool,
) -> None:
    """Analyze pipeline files and repositories

    PATHS: Pipeline files or repository roots
    """
    config_data = _load_config(config, profile, disable)
    report_options = config_data.get("report", {}) or {}

    if no_color or not report_options.get("color_output", True):
        os.environ["NO_COLOR"] = "1"

    files = _collect_files(paths)
    if not files:
        click.echo("No pipeline files found", err=True)
        sys.exit(1)

    if output == "text" and not output_file:
        click.echo(f"Analyzing {len(files)} pipeline file(s)")

    analyzer = WorkflowAnalyzer(config=config_data, strict=strict, dialect=dialect)
    reports = analyzer.scan_files(files)

    if output_file:
        if output == "json":
            save_json_report(reports, output_file)
        else:
            with open(output_file, "w", encoding="utf-8") as f:
                print_console_report(
                    reports,
                    verbose=verbose or report_options.get("verbose", False),
                    show_snippets=report_options.get("show_snippets", True),
                    show_graph=graph,
                    output_stream=f,
                )
        total = sum(report.summary.total_issues for report in reports)
        click.echo(f"Results written to {output_file} ({total} issues found)")
    elif output == "json":
        click.echo(generate_json_report(reports))
    else:
        print_console_report(
            reports,
            verbose=verbose or report_options.get("verbose", False),
            show_snippets=report_options.get("show_snippets", True),
            show_graph=graph,
        )

    if _exceeds_threshold(reports, fail_on):
        sys.exit(1)


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--dialect", type=click.Choice(DIALECTS), help="Force the pipeline dialect")
@click.option("--config", type=click.Path(), help="Path to YAML config file")
@click.option("--profile", type=click.Choice(list(PROFILES)), help="Analysis profile")
def analyze(
    file_path: str, dialect: Optional[str], config: Optional[str], profile: Optional[str]
) -> None:
    """Analyze a single pipeline file with detailed explanation"""
    config_data = _load_config(config, profile)

    analyzer = WorkflowAnalyzer(config=config_data, dialect=dialect)
    report = analyzer.scan_file(file_path)

    click.echo(f"Analysis of {file_path}:")
    print_console_report([report], verbose=True, show_graph=True)

    if report.failed:
        sys.exit(1)


@cli.command()
@click.option(
    "--format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
def rules(format: str) -> None:
    """List all available rules and what they do"""

    rule_engine = create_rule_engine(known_actions=KnownActionsDatabase.default())
    rules_list = rule_engine.list_rules()

    if format == "json":
        click.echo(json.dumps(rules_list, indent=2))
        return

    click.echo("flowlyt supports the following rules:")

    by_type: Dict[str, List[Dict[str, Any]]] = {}
    for rule in rules_list:
        by_type.setdefault(rule["type"], []).append(rule)

    for finding_type, type_rules in by_type.items():
        click.echo("\n" + click.style(finding_type.upper(), fg=TYPE_COLORS.get(finding_type), bold=True))

        for rule in sorted(type_rules, key=lambda r: r["id"]):
            enabled_text = "enabled" if rule["enabled"] else "disabled"
            dialects = ", ".join(rule["dialects"])
            click.echo(f" - {rule['id']}: {enabled_text} [{rule['severity']}] ({dialects})")
            click.echo(f"   {rule['description']}")


@cli.command()
@click.option("--config", type=click.Path(exists=True), help="Path to YAML config file to validate")
@click.option("--profile", type=click.Choice(list(PROFILES)), help="Analysis profile to apply")
@click.option("--generate", is_flag=True, help="Generate a default config file")
@click.option("--output", type=click.Path(), help="Output path for generated config")
def config(config: Optional[str], profile: Optional[str], generate: bool, output: Optional[str]) -> None:
    """View or validate current config"""
    if generate:
        try:
            config_str = generate_default_config(output_path=output)
        except ConfigurationError as e:
            click.echo(f"Could not write config: {e}", err=True)
            sys.exit(1)

        if output:
            click.echo(f"Default config written to {output}")
        else:
            click.echo(config_str)
        return

    try:
        config_data = load_config(config, profile=profile)
    except ConfigurationError as e:
        click.echo(f"Config validation failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"Config loaded and valid (profile: {config_data.get('profile', 'default')}).")

    click.echo("\nAnalysis options:")
    for option, value in sorted((config_data.get("analysis") or {}).items()):
        click.echo(f" - {option}: {value}")

    click.echo("\nRules:")
    rule_engine = create_rule_engine(config_data, known_actions=KnownActionsDatabase.default())
    for rule_info in rule_engine.list_rules():
        click.echo(
            f" - {rule_info['id']}: "
            f"{'enabled' if rule_info['enabled'] else 'disabled'} "
            f"[{rule_info['severity']}]"
        )


if __name__ == "__main__":
    cli()
