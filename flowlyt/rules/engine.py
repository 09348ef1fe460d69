"""
engine.py - Rule engine for flowlyt

This module provides the core rule engine that manages and runs rules.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..core.models import Finding, WorkflowDocument
from ..utils.known_actions import KnownActionsDatabase
from .base import Rule
from .best_practices import (
    DocumentationRule,
    EnvShadowingRule,
    ErrorHandlingRule,
    JobNameRule,
    StepNameRule,
    TimeoutRule,
    WorkflowNameRule,
)
from .dependency import DeprecatedActionRule, FrequentActionRule, OutdatedActionRule
from .performance import (
    HeavyActionUsageRule,
    LargeMatrixRule,
    MissingCacheRule,
    RedundantCheckoutRule,
    UnusedArtifactRule,
)
from .security import (
    CommandInjectionRule,
    HardcodedCredentialsRule,
    PermissionsRule,
    PrivilegedCheckoutRule,
    SelfHostedRunnerRule,
    ThirdPartyActionRule,
    UnpinnedActionRule,
    UnsafeScriptRule,
)
from .structure import (
    ComplexTriggersRule,
    ComplexWorkflowRule,
    ExcessiveJobsRule,
    MissingDependencyRule,
)

logger = logging.getLogger(__name__)

# analysis option → (rule id, value that disables the rule)
ANALYSIS_TOGGLES = {
    "require_job_names": ("job_name", False),
    "require_step_names": ("step_name", False),
    "require_error_handling": ("error_handling", False),
    "require_caching": ("missing_cache", False),
    "skip_documentation_checks": ("documentation", True),
}


def deduplicate_findings(findings: Iterable[Finding]) -> List[Finding]:
    """Drop findings with the same type, title and location, keeping the first"""
    seen: Set[Tuple[Any, ...]] = set()
    unique: List[Finding] = []
    for finding in findings:
        if finding.dedup_key in seen:
            continue
        seen.add(finding.dedup_key)
        unique.append(finding)
    return unique


class RuleEngine:
    """Engine for managing and running pipeline rules"""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        strict: bool = False,
        known_actions: Optional[KnownActionsDatabase] = None,
    ) -> None:
        """
        Initialize the rule engine

        Args:
            config: Configuration dictionary
            strict: Whether to use strict mode (enable additional checks)
            known_actions: Known-actions database used for suggestions
        """
        self.config = config or {}
        analysis = self.config.get("analysis", {}) or {}
        self.strict = strict or bool(analysis.get("strict_mode", False))
        self.known_actions = known_actions or KnownActionsDatabase.default()
        self.rules: List[Rule] = []

        self._register_default_rules()

        self._apply_config()

    def _register_default_rules(self) -> None:
        """Register the default set of rules"""

        self.rules.append(HardcodedCredentialsRule())
        self.rules.append(UnpinnedActionRule())
        self.rules.append(PermissionsRule())
        self.rules.append(UnsafeScriptRule())
        self.rules.append(CommandInjectionRule())
        self.rules.append(PrivilegedCheckoutRule())
        self.rules.append(SelfHostedRunnerRule())
        self.rules.append(ThirdPartyActionRule())

        self.rules.append(MissingCacheRule())
        self.rules.append(RedundantCheckoutRule())
        self.rules.append(LargeMatrixRule())
        self.rules.append(UnusedArtifactRule())
        self.rules.append(HeavyActionUsageRule())

        self.rules.append(WorkflowNameRule())
        self.rules.append(JobNameRule())
        self.rules.append(StepNameRule())
        self.rules.append(TimeoutRule())
        self.rules.append(ErrorHandlingRule())
        self.rules.append(DocumentationRule())
        self.rules.append(EnvShadowingRule())

        self.rules.append(DeprecatedActionRule())
        self.rules.append(OutdatedActionRule())
        self.rules.append(FrequentActionRule())

        self.rules.append(MissingDependencyRule())
        self.rules.append(ComplexWorkflowRule())
        self.rules.append(ComplexTriggersRule())
        self.rules.append(ExcessiveJobsRule())

    def _options(self) -> Dict[str, Any]:
        return {"strict_mode": self.strict, "known_actions": self.known_actions}

    def _apply_config(self) -> None:
        """Apply configuration to rules"""
        options = self._options()
        for rule in self.rules:
            rule.configure(options)

        if not self.config:
            return

        analysis = self.config.get("analysis", {}) or {}
        for option, (rule_id, disabling_value) in ANALYSIS_TOGGLES.items():
            if option in analysis and bool(analysis[option]) == disabling_value:
                self.disable_rule(rule_id)

        # Explicit rule toggles win over analysis options
        for rule_id, enabled in (self.config.get("rules", {}) or {}).items():
            rule = self.get_rule_by_id(rule_id)
            if rule is None:
                logger.warning("Ignoring configuration for unknown rule '%s'", rule_id)
                continue
            rule.enabled = bool(enabled)

    def register_rule(self, rule: Rule) -> None:
        """
        Register a custom rule

        Args:
            rule: Rule instance to register
        """
        rule.configure(self._options())
        self.rules.append(rule)

    def get_rule_by_id(self, rule_id: str) -> Optional[Rule]:
        """
        Get a rule by its ID

        Args:
            rule_id: Rule ID to look for

        Returns:
            Rule instance or None if not found
        """
        for rule in self.rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def list_rules(self) -> List[Dict[str, Any]]:
        """
        Get information about all registered rules

        Returns:
            List of rule information dictionaries
        """
        return [
            {
                "id": rule.rule_id,
                "enabled": rule.enabled,
                "type": rule.finding_type,
                "severity": rule.severity,
                "title": rule.title,
                "description": rule.description,
                "remediation": rule.remediation,
                "dialects": list(rule.dialects),
            }
            for rule in self.rules
        ]

    def enable_rule(self, rule_id: str) -> bool:
        """
        Enable a rule

        Returns:
            True if rule was found and enabled, False otherwise
        """
        rule = self.get_rule_by_id(rule_id)
        if rule:
            rule.enabled = True
            return True
        return False

    def disable_rule(self, rule_id: str) -> bool:
        """
        Disable a rule

        Returns:
            True if rule was found and disabled, False otherwise
        """
        rule = self.get_rule_by_id(rule_id)
        if rule:
            rule.enabled = False
            return True
        return False

    def scan_workflow(self, document: WorkflowDocument, source: str, file_name: str) -> List[Finding]:
        """
        Scan a workflow document with all enabled rules

        A rule that raises is logged and skipped; the other rules still run.

        Args:
            document: Canonical workflow document
            source: Raw YAML text
            file_name: File name reported on findings

        Returns:
            De-duplicated list of findings
        """
        findings: List[Finding] = []

        for rule in self.rules:
            if not rule.enabled or not rule.applies_to(document):
                continue

            try:
                findings.extend(rule.check(document, source, file_name))
            except Exception as e:
                logger.warning("Rule %s failed on %s: %s", rule.rule_id, file_name, e)

        return deduplicate_findings(findings)


def create_rule_engine(
    config: Optional[Dict[str, Any]] = None,
    strict: bool = False,
    known_actions: Optional[KnownActionsDatabase] = None,
) -> RuleEngine:
    """
    Create a rule engine with the specified configuration

    Args:
        config: Configuration dictionary
        strict: Whether to use strict mode
        known_actions: Known-actions database used for suggestions

    Returns:
        Configured RuleEngine instance
    """
    return RuleEngine(config, strict, known_actions)
