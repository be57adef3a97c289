"""
Unit tests for health scoring
"""

import pytest

from components.analysis.health_scorer import (
    WEIGHTS,
    WEIGHTS_WITH_NAMING,
    comment_coverage,
    compute_health_scores,
    metric_weights,
    round_half_up,
    routine_coverage,
    score_project,
    version_stats,
    weight_label,
)
from components.analysis.models import Rung, Tag, TagReference


class TestComputeHealthScores:
    """Metric formulas and the composite"""

    def test_worked_example(self):
        scores = compute_health_scores(
            total_tags=10, unused_tags=2, total_rungs=20, commented_rungs=15, total_references=8,
        )

        assert scores.tag_efficiency == 60
        assert scores.documentation == 75
        assert scores.tag_usage == 16
        assert scores.overall == 54
        assert scores.naming_compliance is None

    def test_zero_denominators(self):
        scores = compute_health_scores(0, 0, 0, 0, 0, naming_enabled=True)

        assert scores.tag_efficiency == 100
        assert scores.documentation == 0
        assert scores.tag_usage == 0
        assert scores.naming_compliance == 100

    def test_scores_are_clamped(self):
        scores = compute_health_scores(
            total_tags=10, unused_tags=9, total_rungs=4, commented_rungs=4, total_references=500,
        )

        assert scores.tag_efficiency == 0
        assert scores.tag_usage == 100
        assert scores.documentation == 100

    def test_naming_changes_weights(self):
        scores = compute_health_scores(
            total_tags=10, unused_tags=2, total_rungs=20, commented_rungs=15, total_references=8,
            naming_enabled=True, violating_tags=5,
        )

        assert scores.naming_compliance == 50
        # 60*0.3 + 75*0.3 + 50*0.2 + 16*0.2 = 53.7
        assert scores.overall == 54

    def test_all_scores_within_bounds(self):
        for unused in range(0, 11):
            for refs in (0, 3, 50, 1000):
                scores = compute_health_scores(10, unused, 7, 3, refs, naming_enabled=True, violating_tags=unused)
                for value in scores.to_dict().values():
                    assert 0 <= value <= 100

    def test_to_dict_omits_naming_when_disabled(self):
        scores = compute_health_scores(10, 2, 20, 15, 8)

        assert scores.to_dict() == {"overall": 54, "tagEfficiency": 60, "documentation": 75, "tagUsage": 16}


class TestWeights:
    """Weight tables"""

    def test_weight_sets_sum_to_one(self):
        assert sum(WEIGHTS.values()) == pytest.approx(1.0)
        assert sum(WEIGHTS_WITH_NAMING.values()) == pytest.approx(1.0)

    def test_metric_weights_selects_table(self):
        assert "namingCompliance" not in metric_weights(False)
        assert metric_weights(True)["namingCompliance"] == 0.20

    def test_weight_label(self):
        assert weight_label(0.40) == "40%"
        assert weight_label(0.35) == "35%"

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(54.25) == 54


class TestScoreProject:
    """End-to-end scoring from records"""

    def test_worked_example_from_records(self, sample_tags, sample_references, sample_rungs):
        health = score_project(sample_tags, sample_references, sample_rungs)

        assert health.scores.overall == 54
        assert len(health.usage.unused) == 2
        assert health.naming is None
        assert health.commented_rungs == 15

    def test_empty_rule_set_gives_full_compliance(self, sample_tags, sample_references, sample_rungs):
        health = score_project(sample_tags, sample_references, sample_rungs, naming_enabled=True, rules=())

        assert health.scores.naming_compliance == 100
        assert health.naming.violations == []

    def test_naming_rules_feed_compliance(self, sample_tags, sample_references, sample_rungs, naming_rule_set):
        health = score_project(sample_tags, sample_references, sample_rungs,
                               naming_enabled=True, rules=naming_rule_set.rules)

        assert health.scores.naming_compliance == 50

    def test_blank_comment_is_not_documentation(self):
        rungs = [Rung("P", "R", comment="   "), Rung("P", "R", comment="Start"), Rung("P", "R")]
        health = score_project([Tag("A")], [TagReference("A")], rungs)

        assert health.scores.documentation == 33


class TestCoverage:
    """Comment coverage breakdowns"""

    def _rungs(self):
        return [
            Rung("Line1", "Main", comment="a"),
            Rung("Line1", "Main", comment=None),
            Rung("Line1", "Faults", comment=None),
            Rung("Aux", "Main", comment="b"),
        ]

    def test_comment_coverage_report(self):
        report = comment_coverage(self._rungs())

        assert report.total_rungs == 4
        assert report.commented_rungs == 2
        assert report.coverage_percent == 50
        assert [(e.name, e.coverage_percent) for e in report.by_program] == [("Aux", 100), ("Line1", 33)]
        assert [(e.program, e.name) for e in report.by_routine] == [
            ("Aux", "Main"), ("Line1", "Faults"), ("Line1", "Main"),
        ]

    def test_routine_coverage_worst_first(self):
        entries = routine_coverage(self._rungs())

        assert [(e.name, e.coverage_percent) for e in entries] == [
            ("Line1/Faults", 0), ("Line1/Main", 50), ("Aux/Main", 100),
        ]

    def test_empty_rungs(self):
        report = comment_coverage([])

        assert report.coverage_percent == 0
        assert report.by_routine == []


class TestVersionStats:
    def test_uses_prefix_resolution(self):
        tags = [Tag("Pump.Speed"), Tag("Pump.Run"), Tag("Spare")]
        stats = version_stats(tags, [TagReference("Pump")], [Rung("P", "R", comment="x"), Rung("P", "R")])

        assert stats.to_dict() == {
            "totalTags": 3, "unusedTags": 1, "totalRungs": 2, "commentedRungs": 1, "totalReferences": 1,
        }
