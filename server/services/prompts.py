"""
Prompt builders for the generation service.

All builders are pure: they take already-computed analysis data, apply the
size bounds and return the user prompt text. The system prompt is shared.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from components.analysis.export_types import PartialExportInfo
from components.analysis.health_scorer import CoverageEntry, metric_weights, weight_label
from components.analysis.models import HealthScoreRecord, Routine, Rung, Tag, VersionSummary
from components.analysis.naming_rules import NamingValidationResult
from components.analysis.tag_usage import UsageBreakdown
from components.health.history_store import HistoryEntry
from core.config import SUPPORTED_LANGUAGES, AnalysisConfig

SYSTEM_PROMPT = (
    "You are an expert PLC programmer and industrial automation specialist. You analyze "
    "Studio 5000 / RSLogix 5000 ladder logic projects and provide clear, accurate explanations and insights.\n\n"
    "When analyzing ladder logic:\n"
    "- Explain the purpose and function of the code in plain language\n"
    "- Identify what each tag represents and its role in the logic\n"
    "- Note any safety-critical or timing-sensitive operations\n"
    "- Point out potential issues, anti-patterns, or improvements\n"
    "- Use terminology familiar to PLC programmers\n\n"
    "Always respond with valid JSON matching the requested format."
)

METRIC_LABELS = {
    "tagEfficiency": "Tag Efficiency",
    "documentation": "Documentation",
    "namingCompliance": "Naming Compliance",
    "tagUsage": "Tag Usage",
}


def language_instruction(language: Optional[str]) -> str:
    """Directive appended to every prompt; English needs none."""
    if not language or language == "en" or language not in SUPPORTED_LANGUAGES:
        return ""
    name = SUPPORTED_LANGUAGES[language]
    return (
        f"\n\nIMPORTANT: Respond in {name}. All text content in your response "
        f"(summaries, descriptions, explanations, suggestions) must be written in {name}."
    )


def _format_date(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d")


@dataclass
class HealthPromptContext:
    """Everything the health recommendation prompt is built from"""
    scores: HealthScoreRecord
    unused_tags: Sequence[Tag] = ()
    routine_coverage: Sequence[CoverageEntry] = ()
    usage: UsageBreakdown = field(default_factory=UsageBreakdown)
    top_tags: Sequence[Tuple[str, int]] = ()
    routines: Sequence[Routine] = ()
    version_history: Sequence[VersionSummary] = ()
    previous_runs: Sequence[HistoryEntry] = ()
    partial_exports: Optional[PartialExportInfo] = None
    naming: Optional[NamingValidationResult] = None
    naming_enabled: bool = False
    language: str = "en"


def _scores_block(scores: HealthScoreRecord, naming_enabled: bool) -> List[str]:
    weights = metric_weights(naming_enabled)
    values = scores.to_dict()
    lines = [f"Overall: {scores.overall}/100"]
    for metric, weight in weights.items():
        lines.append(f"- {METRIC_LABELS[metric]} ({metric}): {values.get(metric, 0)}/100, weight {weight_label(weight)}")
    return lines


def _version_block(versions: Sequence[VersionSummary], limit: int) -> List[str]:
    lines = [f"Version history ({len(versions)} versions, showing last {min(limit, len(versions))}):"]
    for version in list(versions)[-limit:]:
        line = f"- v{version.version_number} uploaded {version.uploaded_at}"
        if version.comment:
            line += f" ({version.comment})"
        if version.stats:
            s = version.stats
            line += (
                f": {s.total_tags} tags, {s.unused_tags} unused, {s.total_rungs} rungs, "
                f"{s.commented_rungs} commented, {s.total_references} references"
            )
        lines.append(line)
    return lines


def _previous_runs_block(runs: Sequence[HistoryEntry], limit: int) -> List[str]:
    lines = ["Previous analyses (newest first):"]
    for run in list(runs)[:limit]:
        scores = run.scores.to_dict() if run.scores else {}
        score_text = ", ".join(f"{k}={v}" for k, v in scores.items()) or "no scores"
        lines.append(f"- {_format_date(run.created_at)}: {score_text}")
        summary = run.result.get("summary") if isinstance(run.result, dict) else None
        if summary:
            lines.append(f"  Summary: {summary}")
        quick_wins = run.result.get("quickWins") if isinstance(run.result, dict) else None
        if quick_wins:
            lines.append(f"  Quick wins suggested: {'; '.join(str(q) for q in quick_wins)}")
    lines.append(
        "Compare the current scores with these runs: call out improvements, regressions and "
        "recommendations that were not acted upon."
    )
    return lines


def _partial_export_block(info: PartialExportInfo) -> List[str]:
    lines = [
        "NOTE: This project contains partial exports (Program or Routine level files). "
        "Tags declared in the full controller may be missing, so unused-tag and reference "
        "counts can be inaccurate. Mention this caveat where it affects a recommendation.",
    ]
    for target_type, target_name in info.partial_files[:10]:
        lines.append(f"- {target_type} export: {target_name or 'unnamed'}")
    return lines


def build_health_prompt(context: HealthPromptContext, bounds: Optional[AnalysisConfig] = None) -> str:
    """User prompt for the health recommendation narrative."""
    bounds = bounds or AnalysisConfig()
    sections: List[str] = ["Analyze the health of this PLC project and recommend improvements.", ""]

    sections.append("Health scores:")
    sections.extend(_scores_block(context.scores, context.naming_enabled))
    sections.append("")

    unused_sample = list(context.unused_tags)[:bounds.unused_tag_sample]
    sections.append(f"Unused tags ({len(context.unused_tags)} total, showing {len(unused_sample)}):")
    sections.extend(f"- {t.name} ({t.data_type}, {t.scope})" for t in unused_sample)
    sections.append("")

    worst = list(context.routine_coverage)[:bounds.worst_routines]
    sections.append("Least documented routines:")
    sections.extend(f"- {e.name}: {e.coverage_percent}% ({e.commented_rungs}/{e.total_rungs} rungs commented)" for e in worst)
    sections.append("")

    usage = context.usage
    sections.append(f"Reference usage: {usage.read} read, {usage.write} write, {usage.both} read/write")
    if context.top_tags:
        sections.append("Most referenced tags:")
        sections.extend(f"- {name}: {count} references" for name, count in list(context.top_tags)[:bounds.top_tags])
    sections.append("")

    routines = list(context.routines)[:bounds.routine_summaries]
    sections.append(f"Routines ({len(context.routines)} total):")
    sections.extend(f"- {r.program}/{r.name} ({r.type}, {r.rung_count or 0} rungs)" for r in routines)
    sections.append("")

    if context.naming_enabled and context.naming is not None:
        naming = context.naming
        sections.append(
            f"Naming conventions: {naming.violating_tag_count} of {naming.tags_checked} tags violate at least one rule."
        )
        for rule in naming.top_violated_rules(bounds.top_violated_rules):
            sections.append(f"- {rule.rule_name} ({rule.severity}): {rule.count} violations")
        sections.append("")

    if len(context.version_history) > 1:
        sections.extend(_version_block(context.version_history, bounds.version_summaries))
        sections.append("")

    if context.previous_runs:
        sections.extend(_previous_runs_block(context.previous_runs, bounds.previous_runs))
        sections.append("")

    if context.partial_exports is not None and context.partial_exports.has_partial_exports:
        sections.extend(_partial_export_block(context.partial_exports))
        sections.append("")

    metrics = ", ".join(f'"{m}"' for m in metric_weights(context.naming_enabled))
    sections.append(
        "Respond with JSON:\n"
        "{\n"
        '  "summary": "Two or three sentences on the overall health of the project",\n'
        '  "quickWins": ["Short, concrete action that improves a score quickly", ...],\n'
        '  "sections": [\n'
        "    {\n"
        f'      "metric": one of {metrics},\n'
        '      "currentScore": 0-100,\n'
        '      "weight": "40%",\n'
        '      "recommendations": [\n'
        "        {\n"
        '          "priority": "high|medium|low",\n'
        '          "title": "Short title",\n'
        '          "description": "What to do and why",\n'
        '          "impact": "Expected effect on the score",\n'
        '          "specificItems": ["Tag or routine names (optional)"],\n'
        '          "actionLink": {"tool": "issues|explainer|tag-xref|unused-tags|comment-coverage", "label": "Button text"}\n'
        "        }\n"
        "      ]\n"
        "    }\n"
        "  ]\n"
        "}\n"
        "Include one section per metric, in the order listed."
    )
    return "\n".join(sections) + language_instruction(context.language)


def build_explain_prompt(routine_name: str, rung_content: str, rung_comment: Optional[str] = None,
                         tags: Sequence[Tag] = (), language: str = "en") -> str:
    tag_context = "\n".join(
        f"- {t.name} ({t.data_type})" + (f": {t.description}" if t.description else "") for t in tags
    )
    parts = [f'Analyze this ladder logic rung from routine "{routine_name}":', ""]
    if rung_comment:
        parts.append(f"Comment: {rung_comment}")
    parts.extend(["Ladder Logic:", "```", rung_content, "```", ""])
    if tag_context:
        parts.extend(["Tags used:", tag_context, ""])
    parts.append(
        "Provide your analysis as JSON with this structure:\n"
        "{\n"
        '  "summary": "One paragraph explaining what this rung does overall",\n'
        '  "stepByStep": ["Step 1...", "Step 2...", ...],\n'
        '  "tagsPurpose": {"TagName": "What this tag represents", ...},\n'
        '  "potentialIssues": ["Any issues or concerns (optional)"]\n'
        "}"
    )
    return "\n".join(parts) + language_instruction(language)


def build_issues_prompt(routines: Sequence[Routine], tags: Sequence[Tag], rungs: Sequence[Rung] = (),
                        language: str = "en", max_routines: int = 20, max_tags: int = 50,
                        max_rungs: int = 50) -> str:
    rung_sample = [r for r in rungs if r.content][:max_rungs]
    if rung_sample:
        rung_summary = "\n".join(
            f"{r.routine}:{r.number if r.number is not None else '?'} - {(r.content or '')[:100]}..." for r in rung_sample
        )
    else:
        rung_summary = "No rung content available"

    parts = [
        "Analyze this PLC project for potential issues:",
        "",
        f"Routines ({len(routines)} total):",
        *(f"- {r.program}/{r.name} ({r.type}, {r.rung_count or 0} rungs)" for r in list(routines)[:max_routines]),
        "",
        f"Tags ({len(tags)} total, showing {min(len(tags), max_tags)}):",
        *(f"- {t.name} ({t.data_type}) in {t.scope}" for t in list(tags)[:max_tags]),
        "",
        "Sample Rungs:",
        rung_summary,
        "",
        "Look for:\n"
        "1. Potential logic errors or anti-patterns\n"
        "2. Missing or unclear documentation\n"
        "3. Naming convention violations\n"
        "4. Unused or redundant code patterns\n"
        "5. Safety concerns\n"
        "6. Performance issues",
        "",
        "Respond with JSON:\n"
        "{\n"
        '  "issues": [\n'
        "    {\n"
        '      "severity": "error|warning|info",\n'
        '      "type": "Category of issue",\n'
        '      "description": "Description of the issue",\n'
        '      "location": "Where the issue was found (optional)",\n'
        '      "suggestion": "How to fix it (optional)"\n'
        "    }\n"
        "  ],\n"
        '  "summary": "Overall assessment of the project"\n'
        "}",
    ]
    return "\n".join(parts) + language_instruction(language)


def _described(name: str, description: Optional[str]) -> str:
    return f"- {name}: {description}" if description else f"- {name}"


def build_search_prompt(query: str, tags: Sequence[Tag], routines: Sequence[Routine],
                        udts: Sequence[Dict[str, Optional[str]]] = (), aois: Sequence[Dict[str, Optional[str]]] = (),
                        language: str = "en", max_tags: int = 300, max_routines: int = 50,
                        max_types: int = 20) -> str:
    parts = [
        f'A user is searching for: "{query}"',
        "",
        "Available items in this PLC project:",
        "",
        f"Tags ({len(tags)} total):",
        *(f"- {t.name} ({t.data_type}, {t.scope})" + (f": {t.description}" if t.description else "")
          for t in list(tags)[:max_tags]),
        "",
        f"Routines ({len(routines)} total):",
        *(_described(f"{r.program}/{r.name}", r.description) for r in list(routines)[:max_routines]),
        "",
    ]
    if udts:
        parts.extend(["UDTs:", *(_described(u.get("name") or "", u.get("description")) for u in list(udts)[:max_types]), ""])
    if aois:
        parts.extend(["AOIs:", *(_described(a.get("name") or "", a.get("description")) for a in list(aois)[:max_types]), ""])
    parts.append(
        "Find items that match the user's search intent. Consider:\n"
        "- Direct name matches\n"
        "- Related functionality\n"
        "- Description matches\n"
        "- Implied relationships\n\n"
        "Respond with JSON:\n"
        "{\n"
        '  "matches": [\n'
        "    {\n"
        '      "name": "Item name",\n'
        '      "type": "tag|routine|rung|udt|aoi",\n'
        '      "relevance": 0.0-1.0,\n'
        '      "description": "Why this matches the search",\n'
        '      "location": "Where to find it (optional)"\n'
        "    }\n"
        "  ],\n"
        '  "summary": "Brief explanation of search results"\n'
        "}\n\n"
        "Return up to 20 most relevant matches, sorted by relevance."
    )
    return "\n".join(parts) + language_instruction(language)
