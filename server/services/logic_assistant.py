"""
Logic assistant: rung explanations, project issue scans and natural-language
search over the symbol table. Each call sends one bounded prompt through the
shared generation client and decodes the reply with the matching recovery
parser. When a cache and a subject id are supplied, identical prompts are
served from the cache.
"""

import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Sequence, TypeVar

from loguru import logger

from components.analysis.models import Routine, Rung, Tag
from components.health.analysis_cache import AnalysisCache
from components.health.fingerprint import generate_hash
from components.health.history_store import HistoryStore, UsageRecord
from core.config import get_config
from services.generation_client import GenerationClient
from services.generation_models import ExplanationResult, IssueResult, SearchResult
from services.prompts import SYSTEM_PROMPT, build_explain_prompt, build_issues_prompt, build_search_prompt
from services.response_parser import parse_explanation_response, parse_issue_response, parse_search_response

R = TypeVar("R")

# Output token limits per request kind
EXPLAIN_MAX_TOKENS = 4096
ISSUES_MAX_TOKENS = 8192
SEARCH_MAX_TOKENS = 1536

ISSUES_MAX_ROUTINES = 20
ISSUES_MAX_TAGS = 50
ISSUES_MAX_RUNGS = 50
SEARCH_MAX_TAGS = 300
SEARCH_MAX_ROUTINES = 50
SEARCH_MAX_TYPES = 20


@dataclass
class AssistantAnswer(Generic[R]):
    result: R
    cached: bool = False
    tokens_used: int = 0


class LogicAssistant:
    """Explain / issues / search requests; generation errors propagate to the caller"""

    def __init__(self, client: Optional[GenerationClient] = None, cache: Optional[AnalysisCache] = None,
                 history: Optional[HistoryStore] = None, language: Optional[str] = None):
        config = get_config()
        self.client = client or GenerationClient(config.generation)
        self.cache = cache
        self.history = history
        self.language = language or config.analysis.language
        self.estimated_tokens = config.analysis.estimated_tokens

    def _run(self, kind: str, prompt: str, max_tokens: int, parse: Callable[[str], R],
             from_dict: Callable[[Dict[str, Any]], R], subject_id: Optional[str],
             organization_id: Optional[str]) -> AssistantAnswer[R]:
        fingerprint = generate_hash(prompt)

        if self.cache is not None and subject_id:
            try:
                entry = self.cache.get(subject_id, kind, fingerprint)
            except sqlite3.Error as e:
                logger.warning(f"[LogicAssistant] Cache lookup failed: {e}")
                entry = None
            if entry is not None:
                logger.debug(f"[LogicAssistant] {kind} cache hit for {subject_id}")
                self._log_usage(subject_id, organization_id, kind, entry.tokens_used, cached=True)
                return AssistantAnswer(from_dict(entry.result), cached=True, tokens_used=entry.tokens_used)

        response = self.client.complete(SYSTEM_PROMPT, prompt, max_tokens=max_tokens)
        result = parse(response.text)
        tokens = response.total_tokens if response.usage_reported else self.estimated_tokens

        if self.cache is not None and subject_id:
            try:
                self.cache.put(subject_id, kind, fingerprint, result.to_dict(), tokens_used=tokens)
            except sqlite3.Error as e:
                logger.warning(f"[LogicAssistant] Cache write failed: {e}")
        if subject_id:
            self._log_usage(subject_id, organization_id, kind, tokens, cached=False,
                            input_tokens=response.input_tokens, output_tokens=response.output_tokens)

        return AssistantAnswer(result, cached=False, tokens_used=tokens)

    def _log_usage(self, subject_id: str, organization_id: Optional[str], kind: str, tokens: int,
                   cached: bool, input_tokens: int = 0, output_tokens: int = 0) -> None:
        if self.history is None:
            return
        try:
            self.history.log_usage(UsageRecord(
                subject_id=subject_id, analysis_kind=kind, organization_id=organization_id,
                input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=tokens, cached=cached,
            ))
        except sqlite3.Error as e:
            logger.warning(f"[LogicAssistant] Usage log failed: {e}")

    def explain_logic(self, routine_name: str, rung_content: str, rung_comment: Optional[str] = None,
                      tags: Sequence[Tag] = (), subject_id: Optional[str] = None,
                      organization_id: Optional[str] = None) -> AssistantAnswer[ExplanationResult]:
        prompt = build_explain_prompt(routine_name, rung_content, rung_comment, tags, self.language)
        return self._run("explain", prompt, EXPLAIN_MAX_TOKENS, parse_explanation_response,
                         ExplanationResult.from_dict, subject_id, organization_id)

    def find_issues(self, routines: Sequence[Routine], tags: Sequence[Tag], rungs: Sequence[Rung] = (),
                    subject_id: Optional[str] = None,
                    organization_id: Optional[str] = None) -> AssistantAnswer[IssueResult]:
        prompt = build_issues_prompt(
            routines, tags, rungs, self.language,
            max_routines=ISSUES_MAX_ROUTINES, max_tags=ISSUES_MAX_TAGS, max_rungs=ISSUES_MAX_RUNGS,
        )
        return self._run("issues", prompt, ISSUES_MAX_TOKENS, parse_issue_response,
                         IssueResult.from_dict, subject_id, organization_id)

    def natural_language_search(self, query: str, tags: Sequence[Tag], routines: Sequence[Routine],
                                udts: Sequence[Dict[str, Optional[str]]] = (),
                                aois: Sequence[Dict[str, Optional[str]]] = (),
                                subject_id: Optional[str] = None,
                                organization_id: Optional[str] = None) -> AssistantAnswer[SearchResult]:
        if not query or not query.strip():
            raise ValueError("Search query cannot be empty")
        prompt = build_search_prompt(
            query.strip(), tags, routines, udts, aois, self.language,
            max_tags=SEARCH_MAX_TAGS, max_routines=SEARCH_MAX_ROUTINES, max_types=SEARCH_MAX_TYPES,
        )
        return self._run("search", prompt, SEARCH_MAX_TOKENS, parse_search_response,
                         SearchResult.from_dict, subject_id, organization_id)
