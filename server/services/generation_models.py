"""
Generation result shapes

Typed views over the JSON documents the generation service returns. Every
``from_dict`` is forgiving: missing lists become empty, numbers are coerced
and unknown enum values fall back to a default, because the documents come
from a non-deterministic model. ``to_dict`` emits the camelCase wire form
that the UI destructures directly.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

PRIORITIES = ("high", "medium", "low")
ISSUE_SEVERITIES = ("error", "warning", "info")
MATCH_TYPES = ("tag", "routine", "rung", "udt", "aoi")
ACTION_TOOLS = ("issues", "explainer", "tag-xref", "unused-tags", "comment-coverage")


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def _as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [_as_str(item) for item in value if item is not None]


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class ActionLink:
    """Deep link into one of the analysis tools"""
    tool: str
    label: str

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ActionLink"]:
        if not isinstance(data, dict):
            return None
        tool = _as_str(data.get("tool")).strip()
        if tool not in ACTION_TOOLS:
            return None
        return cls(tool=tool, label=_as_str(data.get("label"), tool))

    def to_dict(self) -> Dict[str, str]:
        return {"tool": self.tool, "label": self.label}


@dataclass
class Recommendation:
    priority: str
    title: str
    description: str
    impact: str = ""
    specific_items: Optional[List[str]] = None
    action_link: Optional[ActionLink] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendation":
        priority = _as_str(data.get("priority"), "medium").strip().lower()
        specific_items = data.get("specificItems")
        return cls(
            priority=priority if priority in PRIORITIES else "medium",
            title=_as_str(data.get("title")),
            description=_as_str(data.get("description")),
            impact=_as_str(data.get("impact")),
            specific_items=_as_str_list(specific_items) if isinstance(specific_items, list) else None,
            action_link=ActionLink.from_dict(data.get("actionLink")),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "priority": self.priority,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
        }
        if self.specific_items is not None:
            payload["specificItems"] = list(self.specific_items)
        if self.action_link is not None:
            payload["actionLink"] = self.action_link.to_dict()
        return payload


@dataclass
class MetricSection:
    """Recommendations grouped under one scored metric"""
    metric: str
    current_score: int
    weight: str
    recommendations: List[Recommendation] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricSection":
        recommendations = data.get("recommendations")
        return cls(
            metric=_as_str(data.get("metric")),
            current_score=_as_int(data.get("currentScore")),
            weight=_as_str(data.get("weight")),
            recommendations=[
                Recommendation.from_dict(r) for r in (recommendations if isinstance(recommendations, list) else [])
                if isinstance(r, dict)
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "currentScore": self.current_score,
            "weight": self.weight,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


@dataclass
class HealthRecommendationResult:
    summary: str
    quick_wins: List[str] = field(default_factory=list)
    sections: List[MetricSection] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthRecommendationResult":
        sections = data.get("sections")
        return cls(
            summary=_as_str(data.get("summary")),
            quick_wins=_as_str_list(data.get("quickWins")),
            sections=[
                MetricSection.from_dict(s) for s in (sections if isinstance(sections, list) else [])
                if isinstance(s, dict)
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "quickWins": list(self.quick_wins),
            "sections": [s.to_dict() for s in self.sections],
        }


@dataclass
class ExplanationResult:
    """Plain-language explanation of one rung"""
    summary: str
    step_by_step: List[str] = field(default_factory=list)
    tags_purpose: Dict[str, str] = field(default_factory=dict)
    potential_issues: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExplanationResult":
        tags_purpose = data.get("tagsPurpose")
        potential_issues = data.get("potentialIssues")
        return cls(
            summary=_as_str(data.get("summary")),
            step_by_step=_as_str_list(data.get("stepByStep")),
            tags_purpose={
                _as_str(k): _as_str(v) for k, v in tags_purpose.items()
            } if isinstance(tags_purpose, dict) else {},
            potential_issues=_as_str_list(potential_issues) if isinstance(potential_issues, list) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "summary": self.summary,
            "stepByStep": list(self.step_by_step),
            "tagsPurpose": dict(self.tags_purpose),
        }
        if self.potential_issues is not None:
            payload["potentialIssues"] = list(self.potential_issues)
        return payload


@dataclass
class Issue:
    severity: str
    type: str
    description: str
    location: Optional[str] = None
    suggestion: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        severity = _as_str(data.get("severity"), "info").strip().lower()
        location = data.get("location")
        suggestion = data.get("suggestion")
        return cls(
            severity=severity if severity in ISSUE_SEVERITIES else "info",
            type=_as_str(data.get("type")),
            description=_as_str(data.get("description")),
            location=_as_str(location) if location is not None else None,
            suggestion=_as_str(suggestion) if suggestion is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"severity": self.severity, "type": self.type, "description": self.description}
        if self.location is not None:
            payload["location"] = self.location
        if self.suggestion is not None:
            payload["suggestion"] = self.suggestion
        return payload


@dataclass
class IssueResult:
    issues: List[Issue] = field(default_factory=list)
    summary: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssueResult":
        issues = data.get("issues")
        return cls(
            issues=[Issue.from_dict(i) for i in (issues if isinstance(issues, list) else []) if isinstance(i, dict)],
            summary=_as_str(data.get("summary")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"issues": [i.to_dict() for i in self.issues], "summary": self.summary}


@dataclass
class SearchMatch:
    name: str
    type: str
    relevance: float
    description: str
    location: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchMatch":
        match_type = _as_str(data.get("type"), "tag").strip().lower()
        location = data.get("location")
        relevance = min(1.0, max(0.0, _as_float(data.get("relevance"))))
        return cls(
            name=_as_str(data.get("name")),
            type=match_type if match_type in MATCH_TYPES else "tag",
            relevance=relevance,
            description=_as_str(data.get("description")),
            location=_as_str(location) if location is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "relevance": self.relevance,
            "description": self.description,
        }
        if self.location is not None:
            payload["location"] = self.location
        return payload


@dataclass
class SearchResult:
    matches: List[SearchMatch] = field(default_factory=list)
    summary: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResult":
        matches = data.get("matches")
        return cls(
            matches=[
                SearchMatch.from_dict(m) for m in (matches if isinstance(matches, list) else []) if isinstance(m, dict)
            ],
            summary=_as_str(data.get("summary")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"matches": [m.to_dict() for m in self.matches], "summary": self.summary}
