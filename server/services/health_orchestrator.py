"""
Recommendation Orchestrator
===========================

Runs the project health pipeline end to end:

    snapshot -> usage / naming / scores -> fingerprint -> cache
        hit:  stored narrative
        miss: prompt -> generation service -> recovery parser -> cache

The numeric record is always returned; the narrative is best-effort. Cache
writes, usage logging and history appends never fail the response.
"""

import asyncio
import dataclasses
import functools
import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from components.analysis.export_types import analyze_export_types
from components.analysis.health_scorer import (
    CoverageReport,
    ProjectHealth,
    comment_coverage,
    routine_coverage,
    score_project,
    version_stats,
)
from components.analysis.models import HealthScoreRecord, ProjectSnapshot, VersionSummary
from components.analysis.naming_rules import NamingValidationResult, resolve_effective_rule_set
from components.analysis.tag_usage import UnusedTagPage, list_unused_tags, top_referenced_tags, usage_breakdown
from components.health.analysis_cache import AnalysisCache
from components.health.fingerprint import FingerprintInputs, compute_fingerprint
from components.health.history_store import HistoryEntry, HistoryStore, UsageRecord
from components.health.project_repository import NoAnalysisDataError, ProjectRepository
from core.config import SUPPORTED_LANGUAGES, Config, get_config
from services.generation_client import GenerationClient, GenerationRequestError, GenerationUnavailableError
from services.generation_models import HealthRecommendationResult
from services.prompts import SYSTEM_PROMPT, HealthPromptContext, build_health_prompt
from services.response_parser import parse_health_response

ANALYSIS_KIND = "health"
UNAVAILABLE_MESSAGE = "Recommendations are not configured. Please contact support."
FAILED_MESSAGE = "Could not generate recommendations right now."


@dataclass
class HealthAnalysis:
    """Numeric record plus the (possibly cached) recommendation narrative"""
    project_id: str
    scores: HealthScoreRecord
    naming: Optional[NamingValidationResult]
    unused_tag_count: int
    result: Optional[HealthRecommendationResult] = None
    cached: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None  # None | "unavailable" | "failed"
    fingerprint: Optional[str] = None

    def to_dict(self, top_rules: int = 5) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "projectId": self.project_id,
            "healthScores": self.scores.to_dict(),
            "unusedTagCount": self.unused_tag_count,
            "result": self.result.to_dict() if self.result else None,
            "cached": self.cached,
        }
        if self.naming is not None:
            payload["naming"] = {
                "violatingTagCount": self.naming.violating_tag_count,
                "topViolatedRules": [
                    {"ruleId": r.rule_id, "ruleName": r.rule_name, "severity": r.severity, "count": r.count}
                    for r in self.naming.top_violated_rules(top_rules)
                ],
            }
        if self.error:
            payload["error"] = self.error
            payload["errorKind"] = self.error_kind
        return payload


class HealthOrchestrator:
    """Project health analysis with cached, history-aware recommendations"""

    def __init__(self, repository: ProjectRepository, client: Optional[GenerationClient] = None,
                 cache: Optional[AnalysisCache] = None, history: Optional[HistoryStore] = None,
                 config: Optional[Config] = None):
        self.config = config or get_config()
        self.repository = repository
        self.client = client or GenerationClient(self.config.generation)
        self.cache = cache or AnalysisCache(
            self.config.storage.sqlite_path,
            ttl_seconds=self.config.analysis.cache_ttl_days * 24 * 60 * 60,
        )
        self.history_store = history or HistoryStore(self.config.storage.sqlite_path)

    # Snapshot helpers -----------------------------------------------------

    def _load(self, project_id: str) -> ProjectSnapshot:
        snapshot = self.repository.load(project_id)
        if not snapshot.tags and not snapshot.routines:
            raise NoAnalysisDataError(project_id)
        return snapshot

    def _naming_enabled(self, snapshot: ProjectSnapshot) -> bool:
        return snapshot.naming_affects_health_score or self.config.analysis.naming_affects_health_score

    def _language(self, snapshot: ProjectSnapshot, requested: Optional[str]) -> str:
        language = requested or snapshot.language or self.config.analysis.language
        if language not in SUPPORTED_LANGUAGES:
            logger.warning(f"[HealthOrchestrator] Unsupported language {language!r}, using English")
            return "en"
        return language

    def _score(self, snapshot: ProjectSnapshot) -> ProjectHealth:
        naming_enabled = self._naming_enabled(snapshot)
        rules = ()
        if naming_enabled:
            rule_set = resolve_effective_rule_set(snapshot.project_rule_set, snapshot.organization_default_rule_set)
            rules = rule_set.active_rules
        return score_project(
            snapshot.tags, snapshot.references, snapshot.rungs,
            naming_enabled=naming_enabled, rules=rules,
        )

    def _version_context(self, snapshot: ProjectSnapshot, limit: int) -> Tuple[VersionSummary, ...]:
        """Most recent versions for trend context, with stats derived from parsed content"""
        if len(snapshot.version_history) <= 1:
            return ()
        history = snapshot.version_history
        context = list(history[:-limit])
        for version in history[-limit:]:
            if version.stats is None and version.has_parsed_data:
                version = dataclasses.replace(
                    version, stats=version_stats(version.tags, version.references, version.rungs)
                )
            context.append(version)
        return tuple(context)

    def _best_effort(self, action: str, operation: Callable, *args, **kwargs):
        try:
            return operation(*args, **kwargs)
        except (sqlite3.Error, OSError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"[HealthOrchestrator] {action} failed: {e}")
            return None

    # Public operations ----------------------------------------------------

    def score(self, project_id: str) -> ProjectHealth:
        """Numeric record only; no cache, history or generation I/O"""
        return self._score(self._load(project_id))

    def unused_tags(self, project_id: str, search: Optional[str] = None, scope: Optional[str] = None,
                    data_type: Optional[str] = None, page: int = 1, page_size: int = 50) -> UnusedTagPage:
        health = self._score(self._load(project_id))
        return list_unused_tags(health.usage.unused, search=search, scope=scope, data_type=data_type,
                                page=page, page_size=page_size)

    def coverage(self, project_id: str) -> CoverageReport:
        return comment_coverage(self._load(project_id).rungs)

    def history(self, project_id: str, limit: int = 10, offset: int = 0) -> List[HistoryEntry]:
        """Past runs for display, newest first"""
        self.repository.load(project_id)
        return self.history_store.recent(project_id, ANALYSIS_KIND, limit=limit, offset=offset)

    def analyze(self, project_id: str, language: Optional[str] = None) -> HealthAnalysis:
        snapshot = self._load(project_id)
        language = self._language(snapshot, language)
        bounds = self.config.analysis

        health = self._score(snapshot)
        coverage = routine_coverage(snapshot.rungs)
        usage = usage_breakdown(snapshot.references)
        partial_exports = analyze_export_types(snapshot.export_files)
        versions = self._version_context(snapshot, bounds.version_summaries)
        previous_runs = self._best_effort(
            "Loading previous runs", self.history_store.recent, project_id, ANALYSIS_KIND, limit=bounds.previous_runs
        ) or []

        naming_enabled = health.naming is not None
        fingerprint = compute_fingerprint(FingerprintInputs(
            unused_tag_names=[t.name for t in health.usage.unused],
            routine_coverage=coverage,
            usage=usage,
            version_count=min(len(versions), bounds.version_summaries),
            previous_run_count=len(previous_runs),
            has_partial_exports=partial_exports.has_partial_exports,
            naming_violation_count=health.naming.violating_tag_count if health.naming else 0,
            naming_enabled=naming_enabled,
            language=language,
        ))

        analysis = HealthAnalysis(
            project_id=project_id,
            scores=health.scores,
            naming=health.naming,
            unused_tag_count=len(health.usage.unused),
            fingerprint=fingerprint,
        )

        cached = self._best_effort("Cache lookup", self.cache.get, project_id, ANALYSIS_KIND, fingerprint)
        cached_result = self._best_effort("Cached result decode", HealthRecommendationResult.from_dict,
                                          cached.result) if cached is not None else None
        if cached_result is not None:
            logger.info(f"[HealthOrchestrator] Cache hit for {project_id} ({fingerprint})")
            analysis.result = cached_result
            analysis.cached = True
            self._record(snapshot, health.scores, cached.result, cached.tokens_used, cached=True)
            return analysis

        prompt = build_health_prompt(HealthPromptContext(
            scores=health.scores,
            unused_tags=health.usage.unused,
            routine_coverage=coverage,
            usage=usage,
            top_tags=top_referenced_tags(snapshot.references, bounds.top_tags),
            routines=snapshot.routines,
            version_history=versions,
            previous_runs=previous_runs,
            partial_exports=partial_exports if partial_exports.has_partial_exports else None,
            naming=health.naming,
            naming_enabled=naming_enabled,
            language=language,
        ), bounds)

        try:
            response = self.client.complete(SYSTEM_PROMPT, prompt)
        except GenerationUnavailableError as e:
            logger.warning(f"[HealthOrchestrator] Generation unavailable for {project_id}: {e}")
            analysis.error, analysis.error_kind = UNAVAILABLE_MESSAGE, "unavailable"
            return analysis
        except GenerationRequestError as e:
            logger.error(f"[HealthOrchestrator] Generation failed for {project_id}: {e}")
            analysis.error, analysis.error_kind = FAILED_MESSAGE, "failed"
            return analysis

        result = parse_health_response(response.text)
        payload = result.to_dict()
        if response.usage_reported:
            usage_record = (response.input_tokens, response.output_tokens, response.total_tokens)
        else:
            estimate = bounds.estimated_tokens
            usage_record = (estimate // 2, estimate - estimate // 2, estimate)

        self._best_effort("Cache write", self.cache.put, project_id, ANALYSIS_KIND, fingerprint, payload,
                          tokens_used=usage_record[2])
        self._record(snapshot, health.scores, payload, usage_record[2], cached=False,
                     input_tokens=usage_record[0], output_tokens=usage_record[1])

        logger.info(
            f"[HealthOrchestrator] Generated recommendations for {project_id}: "
            f"overall={health.scores.overall}, {len(result.sections)} sections, {usage_record[2]} tokens"
        )
        analysis.result = result
        return analysis

    async def analyze_async(self, project_id: str, language: Optional[str] = None) -> HealthAnalysis:
        """``analyze`` on the default executor; cancelling the await abandons the result"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self.analyze, project_id, language))

    def _record(self, snapshot: ProjectSnapshot, scores: HealthScoreRecord, payload: Dict[str, Any],
                tokens_used: int, cached: bool, input_tokens: int = 0, output_tokens: int = 0) -> None:
        self._best_effort("Usage log", self.history_store.log_usage, UsageRecord(
            subject_id=snapshot.project_id,
            analysis_kind=ANALYSIS_KIND,
            organization_id=snapshot.organization_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=tokens_used,
            cached=cached,
        ))
        self._best_effort("History append", self.history_store.append,
                          snapshot.project_id, ANALYSIS_KIND, scores, payload, tokens_used)
