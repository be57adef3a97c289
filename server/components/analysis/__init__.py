"""
Analysis Components

Pure, synchronous analysis over a parsed program's symbol table.

Components:
- tag_usage: used / unused tag partition, paging, usage breakdown
- naming_rules: naming convention validation and scope conflicts
- health_scorer: composite health score and comment coverage
- export_types: partial-export detection
"""

from .models import (
    ExportFile,
    HealthScoreRecord,
    NamingRule,
    NamingRuleSet,
    ProjectSnapshot,
    Routine,
    Rung,
    Tag,
    TagReference,
    VersionStats,
    VersionSummary,
)
from .tag_usage import TagUsageResult, list_unused_tags, resolve_tag_usage
from .naming_rules import NamingValidationResult, resolve_effective_rule_set, validate_naming
from .health_scorer import ProjectHealth, compute_health_scores, score_project

__all__ = [
    "ExportFile",
    "HealthScoreRecord",
    "NamingRule",
    "NamingRuleSet",
    "ProjectSnapshot",
    "Routine",
    "Rung",
    "Tag",
    "TagReference",
    "VersionStats",
    "VersionSummary",
    "TagUsageResult",
    "list_unused_tags",
    "resolve_tag_usage",
    "NamingValidationResult",
    "resolve_effective_rule_set",
    "validate_naming",
    "ProjectHealth",
    "compute_health_scores",
    "score_project",
]
