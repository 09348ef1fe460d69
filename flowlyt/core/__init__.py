"""
core package for flowlyt - CI/CD pipeline analyzer

This package contains the canonical workflow model, the parser, the analysis
pipeline stages and configuration management.
"""

from .models import (
    SEVERITY_LEVELS,
    FINDING_TYPES,
    AnalysisReport,
    CallGraphData,
    Dialect,
    Finding,
    FindingType,
    Job,
    Location,
    Severity,
    Step,
    Verdict,
    WorkflowDocument,
    WorkflowType,
)
from .parser import WorkflowParseError, build_document, detect_dialect, parse
from .config import (
    DEFAULT_CONFIG,
    ConfigurationError,
    load_config,
    save_config,
    generate_default_config,
    disable_rules,
)

__all__ = [
    "SEVERITY_LEVELS",
    "FINDING_TYPES",
    "AnalysisReport",
    "CallGraphData",
    "Dialect",
    "Finding",
    "FindingType",
    "Job",
    "Location",
    "Severity",
    "Step",
    "Verdict",
    "WorkflowDocument",
    "WorkflowType",
    "WorkflowParseError",
    "build_document",
    "detect_dialect",
    "parse",
    "DEFAULT_CONFIG",
    "ConfigurationError",
    "load_config",
    "save_config",
    "generate_default_config",
    "disable_rules",
]
