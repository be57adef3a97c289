"""
Integration tests for the recommendation orchestrator
"""

import dataclasses
import sqlite3
from unittest.mock import Mock

import httpx
import pytest

from components.analysis.models import (
    ExportFile,
    HealthScoreRecord,
    ProjectSnapshot,
    Tag,
    TagReference,
    VersionStats,
    VersionSummary,
)
from components.health.analysis_cache import AnalysisCache, AnalysisCacheEntry
from components.health.history_store import HistoryStore
from components.health.project_repository import (
    InMemoryProjectRepository,
    NoAnalysisDataError,
    ProjectNotFoundError,
)
from services.generation_client import (
    GenerationClient,
    GenerationRequestError,
    GenerationResponse,
    GenerationUnavailableError,
)
from services.health_orchestrator import FAILED_MESSAGE, HealthOrchestrator


@pytest.fixture
def orchestrator(test_config, repository, mock_client, analysis_cache, history_store):
    return HealthOrchestrator(repository, mock_client, analysis_cache, history_store, test_config)


def _seed_history(store, runs=3):
    for overall in range(runs):
        store.append("plant_a", "health", HealthScoreRecord(40 + overall, 50, 60, 10), {"summary": f"Run {overall}"})


def _prompt(mock_client, call=-1):
    return mock_client.complete.call_args_list[call][0][1]


class TestAnalyze:
    """Full pipeline"""

    def test_first_run_generates_and_records(self, orchestrator, mock_client, history_store):
        analysis = orchestrator.analyze("plant_a")

        assert analysis.cached is False
        assert analysis.error is None
        assert analysis.scores.overall == 54
        assert analysis.unused_tag_count == 2
        assert [s.metric for s in analysis.result.sections] == ["tagEfficiency", "documentation"]
        mock_client.complete.assert_called_once()

        runs = history_store.recent("plant_a")
        assert len(runs) == 1
        assert runs[0].scores.overall == 54
        assert runs[0].tokens_used == 2000
        assert history_store.usage_totals("org_1") == {"requests": 1, "total_tokens": 2000, "cached_requests": 0}

    def test_second_request_is_served_from_cache(self, orchestrator, mock_client, history_store):
        _seed_history(history_store)

        first = orchestrator.analyze("plant_a")
        second = orchestrator.analyze("plant_a")

        assert first.cached is False
        assert second.cached is True
        assert second.fingerprint == first.fingerprint
        assert second.result.to_dict() == first.result.to_dict()
        mock_client.complete.assert_called_once()
        assert history_store.usage_totals("org_1")["cached_requests"] == 1
        assert len(history_store.recent("plant_a", limit=50)) == 5

    def test_new_history_run_invalidates_until_saturated(self, orchestrator, mock_client):
        for _ in range(5):
            orchestrator.analyze("plant_a")

        # prior-run counts 0, 1, 2, 3 miss; from then on the count stays at 3
        assert mock_client.complete.call_count == 4

    def test_language_is_part_of_the_key(self, orchestrator, mock_client, history_store):
        _seed_history(history_store)

        orchestrator.analyze("plant_a", language="en")
        analysis = orchestrator.analyze("plant_a", language="it")

        assert analysis.cached is False
        assert mock_client.complete.call_count == 2
        assert "Respond in Italian" in _prompt(mock_client)

    def test_unsupported_language_falls_back_to_english(self, orchestrator, mock_client):
        orchestrator.analyze("plant_a", language="de")

        assert "IMPORTANT: Respond in" not in _prompt(mock_client)

    def test_prompt_carries_context(self, test_config, sample_snapshot, mock_client, analysis_cache, history_store):
        snapshot = dataclasses.replace(
            sample_snapshot,
            export_files=(ExportFile("Program", "Line1"),),
            version_history=(VersionSummary(1, "2026-01-01"), VersionSummary(2, "2026-02-01", "Added alarms")),
        )
        repo = InMemoryProjectRepository()
        repo.add(snapshot)
        _seed_history(history_store, runs=1)
        orchestrator = HealthOrchestrator(repo, mock_client, analysis_cache, history_store, test_config)

        orchestrator.analyze("plant_a")
        prompt = _prompt(mock_client)

        assert "Tag_8" in prompt and "Tag_9" in prompt
        assert "MainProgram/MainRoutine: 75%" in prompt
        assert "Version history (2 versions" in prompt
        assert "Added alarms" in prompt
        assert "Previous analyses" in prompt
        assert "partial exports" in prompt

    def test_version_stats_derived_from_parsed_versions(self, test_config, sample_snapshot, mock_client,
                                                        analysis_cache, history_store):
        first = VersionSummary(1, "2026-01-01", tags=(Tag("Valve[1]"), Tag("Spare")),
                               references=(TagReference("Valve", "read"),))
        second = VersionSummary(2, "2026-02-01", stats=VersionStats(10, 2, 20, 15, 8))
        repo = InMemoryProjectRepository()
        repo.add(dataclasses.replace(sample_snapshot, version_history=(first, second)))
        orchestrator = HealthOrchestrator(repo, mock_client, analysis_cache, history_store, test_config)

        orchestrator.analyze("plant_a")
        prompt = _prompt(mock_client)

        assert "- v1 uploaded 2026-01-01: 2 tags, 1 unused, 0 rungs" in prompt
        assert "- v2 uploaded 2026-02-01: 10 tags, 2 unused, 20 rungs" in prompt

    def test_estimated_tokens_when_usage_missing(self, orchestrator, mock_client, history_store, health_response_text):
        mock_client.complete.return_value = GenerationResponse(text=health_response_text)

        orchestrator.analyze("plant_a")

        assert history_store.recent("plant_a")[0].tokens_used == 2000
        assert history_store.usage_totals()["total_tokens"] == 2000

    def test_malformed_response_is_recovered(self, orchestrator, mock_client, analysis_cache):
        mock_client.complete.return_value = GenerationResponse(
            text='Here is the analysis:\n```json\n{"summary": "Partial", "quickWins": ["One", "Two", "Thr'
        )

        analysis = orchestrator.analyze("plant_a")

        assert analysis.error is None
        assert analysis.result.summary == "Partial"
        assert analysis.result.quick_wins == ["One", "Two"]
        cached = analysis_cache.get("plant_a", "health", analysis.fingerprint)
        assert cached.result["quickWins"] == ["One", "Two"]
        assert cached.result["sections"] == []


class TestAnalyzeNaming:
    """Naming compliance participation"""

    def test_naming_enabled_per_project(self, test_config, sample_snapshot, naming_rule_set, mock_client,
                                        analysis_cache, history_store):
        snapshot = dataclasses.replace(
            sample_snapshot, naming_affects_health_score=True, organization_default_rule_set=naming_rule_set,
        )
        repo = InMemoryProjectRepository()
        repo.add(snapshot)
        orchestrator = HealthOrchestrator(repo, mock_client, analysis_cache, history_store, test_config)

        analysis = orchestrator.analyze("plant_a")
        data = analysis.to_dict()

        assert analysis.scores.naming_compliance == 50
        assert analysis.naming.violating_tag_count == 5
        assert data["healthScores"]["namingCompliance"] == 50
        assert data["naming"]["topViolatedRules"][0]["ruleId"] == "r_even"
        assert "Naming conventions: 5 of 10 tags" in _prompt(mock_client)

    def test_naming_enabled_by_configuration(self, orchestrator, test_config):
        test_config.analysis.naming_affects_health_score = True

        health = orchestrator.score("plant_a")

        assert health.scores.naming_compliance == 100


class TestAnalyzeFailures:
    """Degraded responses keep the numeric record"""

    def test_unavailable_service(self, orchestrator, mock_client, history_store):
        mock_client.complete.side_effect = GenerationUnavailableError("not configured")

        analysis = orchestrator.analyze("plant_a")

        assert analysis.error_kind == "unavailable"
        assert analysis.result is None
        assert analysis.scores.overall == 54
        assert history_store.recent("plant_a") == []

    def test_request_failure(self, orchestrator, mock_client):
        mock_client.complete.side_effect = GenerationRequestError("HTTP 500", status_code=500)

        analysis = orchestrator.analyze("plant_a")

        assert analysis.error_kind == "failed"
        assert analysis.error == FAILED_MESSAGE
        assert analysis.to_dict()["errorKind"] == "failed"

    def test_cache_hit_needs_no_service(self, orchestrator, mock_client, history_store):
        _seed_history(history_store)
        orchestrator.analyze("plant_a")
        mock_client.complete.side_effect = GenerationUnavailableError("gone")

        analysis = orchestrator.analyze("plant_a")

        assert analysis.cached is True
        assert analysis.error is None

    def test_corrupt_cache_entry_regenerates(self, orchestrator, mock_client, history_store, analysis_cache):
        _seed_history(history_store)
        orchestrator.analyze("plant_a")
        analysis_cache.conn.execute("UPDATE analysis_cache SET result = 'not json{'")
        analysis_cache.conn.commit()

        analysis = orchestrator.analyze("plant_a")

        assert analysis.cached is False
        assert analysis.result is not None
        assert mock_client.complete.call_count == 2

    def test_cached_result_of_wrong_shape_is_a_miss(self, test_config, repository, mock_client, history_store):
        cache = Mock(spec=AnalysisCache)
        cache.get.return_value = AnalysisCacheEntry("plant_a", "health", "f", ["not", "a", "dict"], 0, 0.0, 1.0)
        orchestrator = HealthOrchestrator(repository, mock_client, cache, history_store, test_config)

        analysis = orchestrator.analyze("plant_a")

        assert analysis.cached is False
        mock_client.complete.assert_called_once()

    def test_malformed_service_body_is_a_failure(self, test_config, repository, analysis_cache, history_store):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["not", "an", "object"]))
        client = GenerationClient(test_config.generation, http_client=httpx.Client(transport=transport))
        orchestrator = HealthOrchestrator(repository, client, analysis_cache, history_store, test_config)

        analysis = orchestrator.analyze("plant_a")

        assert analysis.error_kind == "failed"
        assert analysis.scores.overall == 54

    def test_unknown_project(self, orchestrator):
        with pytest.raises(ProjectNotFoundError):
            orchestrator.analyze("missing")

    def test_project_without_data(self, test_config, mock_client, analysis_cache, history_store):
        repo = InMemoryProjectRepository()
        repo.add(ProjectSnapshot(project_id="empty"))
        orchestrator = HealthOrchestrator(repo, mock_client, analysis_cache, history_store, test_config)

        with pytest.raises(NoAnalysisDataError):
            orchestrator.analyze("empty")
        mock_client.complete.assert_not_called()

    def test_store_failures_are_swallowed(self, test_config, repository, mock_client):
        cache = Mock(spec=AnalysisCache)
        cache.get.side_effect = sqlite3.OperationalError("database is locked")
        cache.put.side_effect = sqlite3.OperationalError("database is locked")
        history = Mock(spec=HistoryStore)
        history.recent.side_effect = sqlite3.OperationalError("disk I/O error")
        history.append.side_effect = sqlite3.OperationalError("disk I/O error")
        history.log_usage.side_effect = sqlite3.OperationalError("disk I/O error")
        orchestrator = HealthOrchestrator(repository, mock_client, cache, history, test_config)

        analysis = orchestrator.analyze("plant_a")

        assert analysis.error is None
        assert analysis.result is not None
        cache.put.assert_called_once()
        history.append.assert_called_once()


class TestOtherOperations:
    """Score-only, listing and async entry points"""

    def test_score_makes_no_generation_call(self, orchestrator, mock_client):
        health = orchestrator.score("plant_a")

        assert health.scores.overall == 54
        mock_client.complete.assert_not_called()

    def test_history_listing(self, orchestrator):
        orchestrator.analyze("plant_a")

        entries = orchestrator.history("plant_a", limit=10)

        assert len(entries) == 1
        assert entries[0].result["summary"].startswith("Documentation is solid")
        with pytest.raises(ProjectNotFoundError):
            orchestrator.history("missing")

    def test_unused_tags_page(self, orchestrator):
        page = orchestrator.unused_tags("plant_a", page_size=1)

        assert page.total_count == 2
        assert [t.name for t in page.tags] == ["Tag_8"]

    def test_coverage(self, orchestrator):
        report = orchestrator.coverage("plant_a")

        assert report.coverage_percent == 75

    @pytest.mark.asyncio
    async def test_analyze_async(self, orchestrator, mock_client):
        analysis = await orchestrator.analyze_async("plant_a")

        assert analysis.scores.overall == 54
        assert analysis.cached is False
        mock_client.complete.assert_called_once()
