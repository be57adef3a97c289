"""
Response Recovery Parser
========================

Turns raw generation text into typed results without ever raising.

Recovery layers, tried in order:
1. strict JSON parse of the trimmed text
2. the body of a fenced code block (```json ... ```)
3. the substring between the first "{" and the last "}"
4. shape-specific regex extraction of whatever fields survived truncation
5. plain text with fences, keys and JSON punctuation stripped

Only JSON objects count as a successful decode; arrays or scalars fall
through to the next layer.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional, TypeVar

from loguru import logger

from services.generation_models import (
    ActionLink,
    ExplanationResult,
    HealthRecommendationResult,
    Issue,
    IssueResult,
    MetricSection,
    Recommendation,
    SearchMatch,
    SearchResult,
)

T = TypeVar("T")

EMPTY_RESPONSE_MESSAGE = "The analysis service returned an empty response. Please try again."

# A JSON string body, allowing escaped characters
_STRING = r'"((?:[^"\\]|\\.)*)"'
_NUMBER = r"(-?\d+(?:\.\d+)?)"

_FENCE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_FENCE_MARKERS = re.compile(r"```(?:json)?\s*")
_JSON_KEYS = re.compile(r'"[a-zA-Z]+"\s*:')
_JSON_PUNCTUATION = re.compile(r'[{}\[\]",]')
_WHITESPACE = re.compile(r"\s+")

_ISSUE_OBJECT = re.compile(
    r'\{\s*"severity"\s*:\s*"(error|warning|info)"\s*,\s*"type"\s*:\s*' + _STRING
    + r'\s*,\s*"description"\s*:\s*' + _STRING
)
_MATCH_OBJECT = re.compile(
    r'\{\s*"name"\s*:\s*' + _STRING + r'\s*,\s*"type"\s*:\s*"(tag|routine|rung|udt|aoi)"\s*,\s*"relevance"\s*:\s*'
    + _NUMBER + r'\s*,\s*"description"\s*:\s*' + _STRING
)
_METRIC_KEY = re.compile(r'"metric"\s*:')
_PRIORITY_KEY = re.compile(r'"priority"\s*:\s*"(high|medium|low)"')
_STRING_TOKEN = re.compile(_STRING)
_ESCAPE = re.compile(r'\\(["n\\])')
_ESCAPES = {'"': '"', "n": "\n", "\\": "\\"}


def unescape(value: str) -> str:
    return _ESCAPE.sub(lambda m: _ESCAPES[m.group(1)], value)


def _loads_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        decoded = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return decoded if isinstance(decoded, dict) else None


def extract_json(text: str) -> Optional[Dict[str, Any]]:
    """Layers 1-3: first JSON object that decodes cleanly, or None"""
    trimmed = (text or "").strip()
    if not trimmed:
        return None

    decoded = _loads_object(trimmed)
    if decoded is not None:
        return decoded

    fence = _FENCE_BLOCK.search(trimmed)
    if fence:
        decoded = _loads_object(fence.group(1).strip())
        if decoded is not None:
            return decoded

    first = trimmed.find("{")
    last = trimmed.rfind("}")
    if first != -1 and last > first:
        decoded = _loads_object(trimmed[first:last + 1])
        if decoded is not None:
            return decoded

    return None


def _strip_fences(text: str) -> str:
    return _FENCE_MARKERS.sub("", text or "").replace("```", "").strip()


def _strip_json_syntax(text: str) -> str:
    text = _JSON_KEYS.sub("", text)
    text = _JSON_PUNCTUATION.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def strip_markdown_artifacts(text: str) -> str:
    """Readable plain text from a raw response; never empty"""
    cleaned = _strip_fences(text)
    if cleaned.startswith("{"):
        cleaned = _strip_json_syntax(cleaned)
    return cleaned or EMPTY_RESPONSE_MESSAGE


# Field extraction helpers -------------------------------------------------

def _string_field(text: str, key: str) -> Optional[str]:
    match = re.search(rf'"{key}"\s*:\s*' + _STRING, text)
    return unescape(match.group(1)) if match else None


def _number_field(text: str, key: str) -> Optional[float]:
    match = re.search(rf'"{key}"\s*:\s*' + _NUMBER, text)
    return float(match.group(1)) if match else None


def _container_body(text: str, start: int, closer: str) -> str:
    """Text from ``start`` up to the first ``closer`` outside a string, or to the end"""
    position = start
    while position < len(text):
        char = text[position]
        if char == closer:
            return text[start:position]
        if char == '"':
            token = _STRING_TOKEN.match(text, position)
            if token is None:
                # unterminated string: truncated here
                return text[start:position]
            position = token.end()
            continue
        position += 1
    return text[start:]


def _string_array(text: str, key: str) -> Optional[List[str]]:
    """String items of a named array; a truncated array yields its complete items"""
    match = re.search(rf'"{key}"\s*:\s*\[', text)
    if not match:
        return None
    body = _container_body(text, match.end(), "]")
    return [unescape(item) for item in _STRING_TOKEN.findall(body)]


def _string_object(text: str, key: str) -> Optional[Dict[str, str]]:
    match = re.search(rf'"{key}"\s*:\s*\{{', text)
    if not match:
        return None
    body = _container_body(text, match.end(), "}")
    pairs = re.findall(_STRING + r"\s*:\s*" + _STRING, body)
    return {unescape(k): unescape(v) for k, v in pairs}


def _split_at(text: str, pattern: re.Pattern) -> List[str]:
    starts = [m.start() for m in pattern.finditer(text)]
    return [text[start:end] for start, end in zip(starts, starts[1:] + [len(text)])]


# Shape-specific partial recovery ------------------------------------------

def _partial_recommendation(chunk: str) -> Optional[Recommendation]:
    title = _string_field(chunk, "title")
    if title is None:
        return None
    priority = _PRIORITY_KEY.search(chunk)
    action_link = None
    link_match = re.search(r'"actionLink"\s*:\s*\{([^}]*)\}', chunk)
    if link_match:
        action_link = ActionLink.from_dict({
            "tool": _string_field(link_match.group(1), "tool"),
            "label": _string_field(link_match.group(1), "label"),
        })
    return Recommendation(
        priority=priority.group(1) if priority else "medium",
        title=title,
        description=_string_field(chunk, "description") or "",
        impact=_string_field(chunk, "impact") or "",
        specific_items=_string_array(chunk, "specificItems"),
        action_link=action_link,
    )


def _partial_section(chunk: str) -> Optional[MetricSection]:
    metric = _string_field(chunk, "metric")
    if metric is None:
        return None
    header = chunk.split('"recommendations"', 1)[0]
    score = _number_field(header, "currentScore")
    recommendations = [
        rec for rec in (_partial_recommendation(part) for part in _split_at(chunk, _PRIORITY_KEY)) if rec
    ]
    return MetricSection(
        metric=metric,
        current_score=int(round(score)) if score is not None else 0,
        weight=_string_field(header, "weight") or "",
        recommendations=recommendations,
    )


def extract_partial_health(text: str) -> Optional[HealthRecommendationResult]:
    cleaned = _strip_fences(text)
    summary = _string_field(cleaned.split('"sections"', 1)[0], "summary")
    quick_wins = _string_array(cleaned, "quickWins") or []
    sections = [s for s in (_partial_section(chunk) for chunk in _split_at(cleaned, _METRIC_KEY)) if s]
    if summary is None and not quick_wins and not sections:
        return None
    return HealthRecommendationResult(summary=summary or "", quick_wins=quick_wins, sections=sections)


def extract_partial_explanation(text: str) -> Optional[ExplanationResult]:
    cleaned = _strip_fences(text)
    summary = _string_field(cleaned, "summary")
    if summary is None:
        return None
    return ExplanationResult(
        summary=summary,
        step_by_step=_string_array(cleaned, "stepByStep") or [],
        tags_purpose=_string_object(cleaned, "tagsPurpose") or {},
        potential_issues=_string_array(cleaned, "potentialIssues"),
    )


def extract_partial_issues(text: str) -> Optional[IssueResult]:
    cleaned = _strip_fences(text)
    matches = list(_ISSUE_OBJECT.finditer(cleaned))
    if not matches:
        return None

    issues: List[Issue] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(cleaned)
        remaining = cleaned[match.end():end]
        location = re.match(r'\s*,\s*"location"\s*:\s*' + _STRING, remaining)
        issues.append(Issue(
            severity=match.group(1),
            type=unescape(match.group(2)),
            description=unescape(match.group(3)),
            location=unescape(location.group(1)) if location else None,
            suggestion=_string_field(remaining, "suggestion"),
        ))

    summary = _string_field(cleaned[matches[-1].end():], "summary") or _string_field(cleaned, "summary")
    return IssueResult(issues=issues, summary=summary or f"Found {len(issues)} potential issues.")


def extract_partial_search(text: str) -> Optional[SearchResult]:
    cleaned = _strip_fences(text)
    matches = list(_MATCH_OBJECT.finditer(cleaned))
    if not matches:
        return None

    results: List[SearchMatch] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(cleaned)
        location = re.match(r'\s*,\s*"location"\s*:\s*' + _STRING, cleaned[match.end():end])
        results.append(SearchMatch(
            name=unescape(match.group(1)),
            type=match.group(2),
            relevance=min(1.0, max(0.0, float(match.group(3)))),
            description=unescape(match.group(4)),
            location=unescape(location.group(1)) if location else None,
        ))

    summary = _string_field(cleaned[matches[-1].end():], "summary") or _string_field(cleaned, "summary")
    return SearchResult(matches=results, summary=summary or f"Found {len(results)} matching items.")


# Public entry points ------------------------------------------------------

def _parse(text: str, kind: str, from_dict: Callable[[Dict[str, Any]], T],
           partial: Callable[[str], Optional[T]], fallback: Callable[[str], T]) -> T:
    if not text or not text.strip():
        logger.warning(f"[ResponseParser] Empty {kind} response")
        return fallback("")

    document = extract_json(text)
    if document is not None:
        try:
            return from_dict(document)
        except (TypeError, ValueError, AttributeError) as e:
            logger.debug(f"[ResponseParser] {kind} document did not fit the result shape: {e}")

    try:
        recovered = partial(text)
    except re.error as e:
        logger.debug(f"[ResponseParser] {kind} partial extraction failed: {e}")
        recovered = None
    if recovered is not None:
        logger.info(f"[ResponseParser] Recovered partial {kind} result from malformed response")
        return recovered

    logger.warning(f"[ResponseParser] Falling back to plain text for {kind} response ({len(text)} chars)")
    return fallback(text)


def parse_health_response(text: str) -> HealthRecommendationResult:
    return _parse(
        text, "health", HealthRecommendationResult.from_dict, extract_partial_health,
        lambda raw: HealthRecommendationResult(summary=strip_markdown_artifacts(raw)),
    )


def parse_explanation_response(text: str) -> ExplanationResult:
    return _parse(
        text, "explanation", ExplanationResult.from_dict, extract_partial_explanation,
        lambda raw: ExplanationResult(summary=_strip_json_syntax(_strip_fences(raw)) or EMPTY_RESPONSE_MESSAGE),
    )


def parse_issue_response(text: str) -> IssueResult:
    return _parse(
        text, "issues", IssueResult.from_dict, extract_partial_issues,
        lambda raw: IssueResult(issues=[], summary=strip_markdown_artifacts(raw)),
    )


def parse_search_response(text: str) -> SearchResult:
    return _parse(
        text, "search", SearchResult.from_dict, extract_partial_search,
        lambda raw: SearchResult(matches=[], summary=strip_markdown_artifacts(raw)),
    )
