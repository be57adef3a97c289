"""
Health Scoring

Pure arithmetic over tag, reference and rung counts. The composite score
uses one of two fixed weight sets depending on whether naming compliance
participates. The x200 efficiency penalty and x20 reference-density factor
are empirical constants kept for compatibility with existing scores.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from components.analysis.models import HealthScoreRecord, NamingRule, Rung, Tag, TagReference, VersionStats
from components.analysis.naming_rules import NamingValidationResult, validate_naming
from components.analysis.tag_usage import TagUsageResult, resolve_tag_usage

WEIGHTS = {
    "tagEfficiency": 0.40,
    "documentation": 0.35,
    "tagUsage": 0.25,
}

WEIGHTS_WITH_NAMING = {
    "tagEfficiency": 0.30,
    "documentation": 0.30,
    "namingCompliance": 0.20,
    "tagUsage": 0.20,
}

UNUSED_PENALTY = 200
REFERENCE_DENSITY_FACTOR = 20


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def metric_weights(naming_enabled: bool) -> Dict[str, float]:
    return dict(WEIGHTS_WITH_NAMING if naming_enabled else WEIGHTS)


def weight_label(weight: float) -> str:
    return f"{round_half_up(weight * 100)}%"


@dataclass
class ProjectHealth:
    """Numeric record plus the partitions it was derived from."""
    scores: HealthScoreRecord
    usage: TagUsageResult
    naming: Optional[NamingValidationResult] = None
    total_rungs: int = 0
    commented_rungs: int = 0
    total_references: int = 0


@dataclass
class CoverageEntry:
    name: str
    program: str
    total_rungs: int
    commented_rungs: int
    coverage_percent: int


@dataclass
class CoverageReport:
    total_rungs: int = 0
    commented_rungs: int = 0
    coverage_percent: int = 0
    by_program: List[CoverageEntry] = field(default_factory=list)
    by_routine: List[CoverageEntry] = field(default_factory=list)


def compute_health_scores(
    total_tags: int,
    unused_tags: int,
    total_rungs: int,
    commented_rungs: int,
    total_references: int,
    naming_enabled: bool = False,
    violating_tags: int = 0,
) -> HealthScoreRecord:
    """Combine the per-metric formulas into one record."""
    if total_tags > 0:
        tag_efficiency = max(0.0, 100 - (unused_tags / total_tags) * UNUSED_PENALTY)
        tag_usage = min(100.0, (total_references / total_tags) * REFERENCE_DENSITY_FACTOR)
    else:
        tag_efficiency = 100.0
        tag_usage = 0.0

    documentation = round_half_up(commented_rungs / total_rungs * 100) if total_rungs > 0 else 0

    naming_compliance: Optional[float] = None
    if naming_enabled:
        if total_tags > 0:
            naming_compliance = max(0.0, (total_tags - violating_tags) / total_tags * 100)
        else:
            naming_compliance = 100.0
        weights = WEIGHTS_WITH_NAMING
        overall = (
            tag_efficiency * weights["tagEfficiency"]
            + documentation * weights["documentation"]
            + naming_compliance * weights["namingCompliance"]
            + tag_usage * weights["tagUsage"]
        )
    else:
        weights = WEIGHTS
        overall = (
            tag_efficiency * weights["tagEfficiency"]
            + documentation * weights["documentation"]
            + tag_usage * weights["tagUsage"]
        )

    return HealthScoreRecord(
        overall=round_half_up(overall),
        tag_efficiency=round_half_up(tag_efficiency),
        documentation=documentation,
        tag_usage=round_half_up(tag_usage),
        naming_compliance=round_half_up(naming_compliance) if naming_compliance is not None else None,
    )


def score_project(
    tags: Sequence[Tag],
    references: Sequence[TagReference],
    rungs: Sequence[Rung],
    naming_enabled: bool = False,
    rules: Sequence[NamingRule] = (),
) -> ProjectHealth:
    usage = resolve_tag_usage(tags, references)
    naming = validate_naming(tags, rules) if naming_enabled else None
    commented = sum(1 for rung in rungs if rung.is_commented)

    scores = compute_health_scores(
        total_tags=len(tags),
        unused_tags=len(usage.unused),
        total_rungs=len(rungs),
        commented_rungs=commented,
        total_references=len(references),
        naming_enabled=naming_enabled,
        violating_tags=naming.violating_tag_count if naming else 0,
    )
    return ProjectHealth(
        scores=scores,
        usage=usage,
        naming=naming,
        total_rungs=len(rungs),
        commented_rungs=commented,
        total_references=len(references),
    )


def _coverage(commented: int, total: int) -> int:
    return round_half_up(commented / total * 100) if total > 0 else 0


def comment_coverage(rungs: Sequence[Rung]) -> CoverageReport:
    """Overall, per-program and per-routine comment coverage."""
    programs: Dict[str, List[int]] = {}
    routines: Dict[tuple, List[int]] = {}
    commented_total = 0

    for rung in rungs:
        commented = 1 if rung.is_commented else 0
        commented_total += commented
        program_stats = programs.setdefault(rung.program, [0, 0])
        program_stats[0] += 1
        program_stats[1] += commented
        routine_stats = routines.setdefault((rung.program, rung.routine), [0, 0])
        routine_stats[0] += 1
        routine_stats[1] += commented

    report = CoverageReport(
        total_rungs=len(rungs),
        commented_rungs=commented_total,
        coverage_percent=_coverage(commented_total, len(rungs)),
    )
    report.by_program = sorted(
        (CoverageEntry(name, name, total, commented, _coverage(commented, total))
         for name, (total, commented) in programs.items()),
        key=lambda e: e.name,
    )
    report.by_routine = sorted(
        (CoverageEntry(routine, program, total, commented, _coverage(commented, total))
         for (program, routine), (total, commented) in routines.items()),
        key=lambda e: (e.program, e.name),
    )
    return report


def routine_coverage(rungs: Sequence[Rung]) -> List[CoverageEntry]:
    """Per-routine coverage, worst documented first (stable)."""
    routines: Dict[tuple, List[int]] = {}
    for rung in rungs:
        stats = routines.setdefault((rung.program, rung.routine), [0, 0])
        stats[0] += 1
        if rung.is_commented:
            stats[1] += 1

    entries = [
        CoverageEntry(f"{program}/{routine}", program, total, commented, _coverage(commented, total))
        for (program, routine), (total, commented) in routines.items()
    ]
    return sorted(entries, key=lambda e: e.coverage_percent)


def version_stats(tags: Sequence[Tag], references: Sequence[TagReference], rungs: Sequence[Rung]) -> VersionStats:
    usage = resolve_tag_usage(tags, references)
    return VersionStats(
        total_tags=len(tags),
        unused_tags=len(usage.unused),
        total_rungs=len(rungs),
        commented_rungs=sum(1 for rung in rungs if rung.is_commented),
        total_references=len(references),
    )
