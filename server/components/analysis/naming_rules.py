"""
Naming Rule Validation

Checks declared tags against user-authored naming conventions. Each rule is
a "must conform to" regular expression with a scope selector; a tag violates
every applicable rule whose pattern it does not match. Patterns are compiled
lazily per validation pass so that one invalid pattern only disables its own
rule.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Set, Tuple

from loguru import logger

from components.analysis.models import NamingRule, NamingRuleSet, Tag, is_controller_scope

SEVERITIES = ("error", "warning", "info")


@dataclass(frozen=True)
class NamingViolation:
    rule_id: str
    rule_name: str
    severity: str
    tag_name: str
    tag_scope: str
    message: str

    def to_dict(self):
        return {
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
            "severity": self.severity,
            "tagName": self.tag_name,
            "tagScope": self.tag_scope,
            "message": self.message,
        }


@dataclass(frozen=True)
class RuleViolationCount:
    rule_id: str
    rule_name: str
    severity: str
    count: int


@dataclass(frozen=True)
class ScopeConflict:
    """Tag name declared at controller scope and shadowed in programs."""
    tag_name: str
    programs: Tuple[str, ...]


@dataclass
class NamingValidationResult:
    violations: List[NamingViolation] = field(default_factory=list)
    violating_tag_names: List[str] = field(default_factory=list)
    rule_violation_counts: List[RuleViolationCount] = field(default_factory=list)
    tags_checked: int = 0
    rules_applied: int = 0
    invalid_rule_ids: List[str] = field(default_factory=list)

    @property
    def violating_tag_count(self) -> int:
        return len(self.violating_tag_names)

    def top_violated_rules(self, top_n: int = 5) -> List[RuleViolationCount]:
        """Most-violated rules; ties keep rule order."""
        ranked = sorted(
            (entry for entry in self.rule_violation_counts if entry.count > 0),
            key=lambda entry: -entry.count,
        )
        return ranked[:top_n]

    def severity_summary(self) -> Dict[str, int]:
        summary = {"errors": 0, "warnings": 0, "info": 0}
        for violation in self.violations:
            if violation.severity == "error":
                summary["errors"] += 1
            elif violation.severity == "warning":
                summary["warnings"] += 1
            elif violation.severity == "info":
                summary["info"] += 1
        summary["total"] = len(self.violations)
        return summary


def _compile_rules(rules: Sequence[NamingRule]) -> Tuple[List[Tuple[NamingRule, Pattern]], List[str]]:
    compiled: List[Tuple[NamingRule, Pattern]] = []
    invalid: List[str] = []
    for rule in rules:
        if not rule.is_active:
            continue
        try:
            compiled.append((rule, re.compile(rule.pattern)))
        except re.error as e:
            invalid.append(rule.id)
            logger.warning(f"[NamingRules] Skipping rule {rule.name!r}: invalid pattern {rule.pattern!r} ({e})")
    return compiled, invalid


def validate_naming(tags: Sequence[Tag], rules: Sequence[NamingRule]) -> NamingValidationResult:
    """Validate every tag against every applicable active rule."""
    compiled, invalid = _compile_rules(rules)
    result = NamingValidationResult(
        tags_checked=len(tags),
        rules_applied=len(compiled),
        invalid_rule_ids=invalid,
    )
    if not compiled:
        return result

    counts: Dict[str, int] = {rule.id: 0 for rule, _ in compiled}
    violating: Set[str] = set()

    for tag in tags:
        for rule, pattern in compiled:
            if not rule.applies_to_scope(tag.scope):
                continue
            if pattern.search(tag.name):
                continue
            counts[rule.id] += 1
            result.violations.append(NamingViolation(
                rule_id=rule.id,
                rule_name=rule.name,
                severity=rule.severity,
                tag_name=tag.name,
                tag_scope=tag.scope,
                message=f'Tag "{tag.name}" does not match rule "{rule.name}"',
            ))
            if tag.name not in violating:
                violating.add(tag.name)
                result.violating_tag_names.append(tag.name)

    result.rule_violation_counts = [
        RuleViolationCount(rule.id, rule.name, rule.severity, counts[rule.id])
        for rule, _ in compiled
    ]
    return result


def filter_violations(violations: Iterable[NamingViolation], severity: Optional[str] = None) -> List[NamingViolation]:
    if not severity or severity == "all":
        return list(violations)
    return [v for v in violations if v.severity == severity]


def resolve_effective_rule_set(
    project_rule_set: Optional[NamingRuleSet],
    organization_default: Optional[NamingRuleSet],
) -> NamingRuleSet:
    """Project override wins over the organization default; active rules only."""
    chosen = project_rule_set or organization_default
    if chosen is None:
        return NamingRuleSet(name="", rules=())
    return NamingRuleSet(
        id=chosen.id,
        name=chosen.name,
        rules=chosen.active_rules,
        is_default=chosen.is_default,
    )


def detect_scope_conflicts(tags: Iterable[Tag]) -> List[ScopeConflict]:
    scopes_by_name: Dict[str, Set[str]] = {}
    for tag in tags:
        scopes_by_name.setdefault(tag.name, set()).add(tag.scope)

    conflicts = []
    for name, scopes in scopes_by_name.items():
        if len(scopes) < 2 or not any(is_controller_scope(s) for s in scopes):
            continue
        programs = tuple(sorted(s for s in scopes if not is_controller_scope(s)))
        if programs:
            conflicts.append(ScopeConflict(tag_name=name, programs=programs))
    return sorted(conflicts, key=lambda c: c.tag_name)
