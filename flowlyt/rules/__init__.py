"""
rules package for flowlyt - CI/CD pipeline analyzer

This package contains the rules and rule engine used to find security,
performance, dependency, structure and best-practice issues in pipelines.
"""

from .base import Rule, JobRule, StepRule
from .engine import RuleEngine, create_rule_engine, deduplicate_findings
from .patterns import RULE_TABLE_VERSION
from .security import (
    HardcodedCredentialsRule,
    UnpinnedActionRule,
    PermissionsRule,
    UnsafeScriptRule,
    CommandInjectionRule,
    PrivilegedCheckoutRule,
    SelfHostedRunnerRule,
    ThirdPartyActionRule,
)
from .performance import (
    MissingCacheRule,
    RedundantCheckoutRule,
    LargeMatrixRule,
    UnusedArtifactRule,
    HeavyActionUsageRule,
)
from .best_practices import (
    WorkflowNameRule,
    JobNameRule,
    StepNameRule,
    TimeoutRule,
    ErrorHandlingRule,
    DocumentationRule,
    EnvShadowingRule,
)
from .dependency import DeprecatedActionRule, OutdatedActionRule, FrequentActionRule
from .structure import (
    MissingDependencyRule,
    ComplexWorkflowRule,
    ComplexTriggersRule,
    ExcessiveJobsRule,
)

__all__ = [
    # Base classes
    "Rule",
    "JobRule",
    "StepRule",
    # Rule engine
    "RuleEngine",
    "create_rule_engine",
    "deduplicate_findings",
    "RULE_TABLE_VERSION",
    # Security rules
    "HardcodedCredentialsRule",
    "UnpinnedActionRule",
    "PermissionsRule",
    "UnsafeScriptRule",
    "CommandInjectionRule",
    "PrivilegedCheckoutRule",
    "SelfHostedRunnerRule",
    "ThirdPartyActionRule",
    # Performance rules
    "MissingCacheRule",
    "RedundantCheckoutRule",
    "LargeMatrixRule",
    "UnusedArtifactRule",
    "HeavyActionUsageRule",
    # Best practice rules
    "WorkflowNameRule",
    "JobNameRule",
    "StepNameRule",
    "TimeoutRule",
    "ErrorHandlingRule",
    "DocumentationRule",
    "EnvShadowingRule",
    # Dependency rules
    "DeprecatedActionRule",
    "OutdatedActionRule",
    "FrequentActionRule",
    # Structure rules
    "MissingDependencyRule",
    "ComplexWorkflowRule",
    "ComplexTriggersRule",
    "ExcessiveJobsRule",
]
