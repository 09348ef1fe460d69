"""
reports package for flowlyt - CI/CD pipeline analyzer

This package contains reporting functionality for presenting analysis
results on the console and as JSON.
"""

from .console import (
    format_console_report,
    print_console_report,
    format_report,
    format_finding,
    format_summary,
)

from .json import (
    finding_to_dict,
    report_to_dict,
    generate_json_report,
    save_json_report,
)

__all__ = [
    "format_console_report",
    "print_console_report",
    "format_report",
    "format_finding",
    "format_summary",
    "finding_to_dict",
    "report_to_dict",
    "generate_json_report",
    "save_json_report",
]
