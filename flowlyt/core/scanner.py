"""
scanner.py - Analysis pipeline driver

This module wires the canonical model builder, rule engine, call graph
builder, context classifier, reachability analyzer and aggregator into the
per-file analysis pipeline, and provides the WorkflowAnalyzer used to scan
files and repositories.
"""

import copy
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml

from ..rules.engine import RuleEngine
from ..utils.known_actions import KnownActionsDatabase
from ..utils.yaml_handler import find_github_workflow_files, find_gitlab_ci_files
from .aggregator import aggregate
from .callgraph import build_call_graph
from .config import DEFAULT_CONFIG
from .context import classify_workflow
from .models import AnalysisReport, Summary, WorkflowDocument
from .parser import WorkflowParseError, parse
from .reachability import analyze_reachability

logger = logging.getLogger(__name__)


def load_known_actions(config: Dict[str, Any]) -> KnownActionsDatabase:
    """
    Build the known-actions database for a configuration

    Built-in entries are extended by ``known_actions_file`` and then by the
    inline ``known_actions`` mapping. An unreadable file is logged and
    ignored.
    """
    database = KnownActionsDatabase.default()

    path = config.get("known_actions_file")
    if path:
        try:
            database = database.merged(KnownActionsDatabase.from_file(path))
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load known-actions database %s: %s", path, e)

    inline = config.get("known_actions")
    if inline:
        database = database.merged(KnownActionsDatabase.from_mapping(inline))

    return database


def failed_report(file_id: str, file_name: str, error: str) -> AnalysisReport:
    """Report for a file that could not be read or parsed"""
    return AnalysisReport(
        file_id=file_id,
        file_name=file_name,
        summary=Summary(score=0),
        error=error,
    )


def analyze(
    document: WorkflowDocument,
    source: str,
    file_name: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
    engine: Optional[RuleEngine] = None,
    known_actions: Optional[KnownActionsDatabase] = None,
    file_id: Optional[str] = None,
) -> AnalysisReport:
    """
    Run the analysis pipeline on a parsed document

    Args:
        document: Canonical workflow document
        source: Raw YAML text the document was built from
        file_name: File name for findings (defaults to the document's)
        config: Configuration dictionary (defaults to DEFAULT_CONFIG)
        engine: Pre-built rule engine; built from ``config`` when omitted
        known_actions: Known-actions database for a newly built engine
        file_id: Report identifier (defaults to the file name)

    Returns:
        AnalysisReport for the document
    """
    config = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
    file_name = file_name or document.file_name
    if engine is None:
        engine = RuleEngine(config, known_actions=known_actions or load_known_actions(config))

    rule_findings = engine.scan_workflow(document, source, file_name)
    call_graph, graph_findings = build_call_graph(document, source)
    context = classify_workflow(document, source)
    _, reachability = analyze_reachability(rule_findings, context, document, call_graph)

    report = aggregate(
        file_id or file_name,
        file_name,
        rule_findings,
        context,
        graph_findings=graph_findings,
        annotated=reachability.insights,
        call_graph=call_graph,
        reachability=reachability,
        analysis_options=config.get("analysis"),
    )
    logger.info(
        "Analyzed %s: %d findings, score %d",
        file_name,
        report.summary.total_issues,
        report.summary.score,
    )
    return report


def analyze_source(
    source: str,
    file_name: str,
    dialect: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
    engine: Optional[RuleEngine] = None,
    known_actions: Optional[KnownActionsDatabase] = None,
    file_id: Optional[str] = None,
) -> AnalysisReport:
    """
    Parse and analyze pipeline YAML

    A parse failure does not raise; it yields a report with ``error`` set,
    no findings and a score of 0.
    """
    try:
        document = parse(source, file_name, dialect)
    except WorkflowParseError as e:
        logger.warning("Could not parse %s: %s", file_name, e)
        return failed_report(file_id or file_name, file_name, str(e))

    return analyze(
        document,
        source,
        file_name,
        config=config,
        engine=engine,
        known_actions=known_actions,
        file_id=file_id,
    )


class WorkflowAnalyzer:
    """Analyzer for pipeline files and repositories"""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        strict: bool = False,
        dialect: Optional[str] = None,
    ) -> None:
        """
        Initialize the analyzer

        Args:
            config: Configuration dictionary (defaults to DEFAULT_CONFIG)
            strict: Enable strict mode checks
            dialect: Force a dialect instead of detecting it per file
        """
        self.config = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
        self.dialect = dialect
        self.max_workers = int(self.config.get("max_workers", 4) or 1)
        self.known_actions = load_known_actions(self.config)
        self.engine = RuleEngine(self.config, strict=strict, known_actions=self.known_actions)

    def scan_source(self, source: str, file_name: str) -> AnalysisReport:
        return analyze_source(
            source,
            file_name,
            dialect=self.dialect,
            config=self.config,
            engine=self.engine,
        )

    def scan_file(self, file_path: Union[str, Path]) -> AnalysisReport:
        """
        Scan a single pipeline file

        Args:
            file_path: Path to the file

        Returns:
            AnalysisReport; read failures produce a failed report
        """
        file_name = str(file_path)
        try:
            with open(file_name, "r", encoding="utf-8") as f:
                source = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Could not read %s: %s", file_name, e)
            return failed_report(file_name, file_name, f"Could not read file: {e}")

        return self.scan_source(source, file_name)

    def scan_files(self, file_paths: Sequence[Union[str, Path]]) -> List[AnalysisReport]:
        """
        Scan several files concurrently

        Returns:
            Reports in the same order as ``file_paths``
        """
        if not file_paths:
            return []

        workers = max(1, min(self.max_workers, len(file_paths)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.scan_file, file_paths))

    def scan_repository(self, repo_path: Union[str, Path]) -> List[AnalysisReport]:
        """
        Scan the GitHub Actions workflows and GitLab CI files of a local repository

        Args:
            repo_path: Path to the repository root

        Returns:
            One report per discovered file
        """
        files = find_github_workflow_files(str(repo_path)) + find_gitlab_ci_files(str(repo_path))
        logger.info("Found %d pipeline files in %s", len(files), repo_path)
        return self.scan_files(files)
