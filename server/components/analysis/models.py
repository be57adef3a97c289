"""
Analysis Data Model

Immutable records for the parsed symbol table (tags, references, rungs,
routines), naming rules, version context and computed health scores.

Rows arrive from the program-file parser as plain dictionaries in either
snake_case or camelCase; every record exposes ``from_dict`` to accept both.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

CONTROLLER_SCOPE = "Controller"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def is_controller_scope(scope: Optional[str]) -> bool:
    """True for the project-wide scope, regardless of case."""
    return (scope or "").strip().lower() == CONTROLLER_SCOPE.lower()


@dataclass(frozen=True)
class Tag:
    """Declared tag from the symbol table."""
    name: str
    data_type: str = ""
    scope: str = CONTROLLER_SCOPE
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tag":
        return cls(
            name=str(_pick(data, "name", default="")),
            data_type=str(_pick(data, "data_type", "dataType", default="")),
            scope=str(_pick(data, "scope", default=CONTROLLER_SCOPE)),
            description=_pick(data, "description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "dataType": self.data_type,
            "scope": self.scope,
            "description": self.description,
        }


@dataclass(frozen=True)
class TagReference:
    """One occurrence of a tag name inside logic."""
    tag_name: str
    usage_type: str = "read"  # read | write | both
    program: Optional[str] = None
    routine: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TagReference":
        return cls(
            tag_name=str(_pick(data, "tag_name", "tagName", "name", default="")),
            usage_type=str(_pick(data, "usage_type", "usageType", default="read")),
            program=_pick(data, "program", "program_name", "programName"),
            routine=_pick(data, "routine", "routine_name", "routineName"),
        )


@dataclass(frozen=True)
class Rung:
    """Ladder rung; only the comment matters for scoring."""
    program: str
    routine: str
    comment: Optional[str] = None
    number: Optional[int] = None
    content: Optional[str] = None

    @property
    def is_commented(self) -> bool:
        return bool(self.comment and self.comment.strip())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rung":
        number = _pick(data, "number", "rung_number", "rungNumber")
        return cls(
            program=str(_pick(data, "program", "program_name", "programName", default="")),
            routine=str(_pick(data, "routine", "routine_name", "routineName", default="")),
            comment=_pick(data, "comment"),
            number=int(number) if number is not None else None,
            content=_pick(data, "content"),
        )


@dataclass(frozen=True)
class Routine:
    """Routine summary used for prompt context."""
    name: str
    program: str
    type: str = "RLL"
    rung_count: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Routine":
        rung_count = _pick(data, "rung_count", "rungCount")
        return cls(
            name=str(_pick(data, "name", default="")),
            program=str(_pick(data, "program", "program_name", "programName", default="")),
            type=str(_pick(data, "type", default="RLL")),
            rung_count=int(rung_count) if rung_count is not None else None,
            description=_pick(data, "description"),
        )


@dataclass(frozen=True)
class NamingRule:
    """User-authored naming convention; pattern may be an invalid regex."""
    id: str
    name: str
    pattern: str
    applies_to: str = "all"  # all | controller | program
    severity: str = "warning"  # error | warning | info
    is_active: bool = True

    def applies_to_scope(self, scope: str) -> bool:
        if self.applies_to == "all":
            return True
        if self.applies_to == "controller":
            return is_controller_scope(scope)
        if self.applies_to == "program":
            return not is_controller_scope(scope)
        return False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NamingRule":
        return cls(
            id=str(_pick(data, "id", default="")),
            name=str(_pick(data, "name", default="")),
            pattern=str(_pick(data, "pattern", default="")),
            applies_to=str(_pick(data, "applies_to", "appliesTo", default="all")).lower(),
            severity=str(_pick(data, "severity", default="warning")).lower(),
            is_active=bool(_pick(data, "is_active", "isActive", default=True)),
        )


@dataclass(frozen=True)
class NamingRuleSet:
    """Named, ordered collection of naming rules."""
    id: Optional[str] = None
    name: str = ""
    rules: Tuple[NamingRule, ...] = ()
    is_default: bool = False

    @property
    def active_rules(self) -> Tuple[NamingRule, ...]:
        return tuple(rule for rule in self.rules if rule.is_active)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NamingRuleSet":
        return cls(
            id=_pick(data, "id"),
            name=str(_pick(data, "name", default="")),
            rules=tuple(NamingRule.from_dict(r) for r in _pick(data, "rules", default=[])),
            is_default=bool(_pick(data, "is_default", "isDefault", default=False)),
        )


@dataclass(frozen=True)
class HealthScoreRecord:
    """Composite and per-metric scores, all integers 0-100."""
    overall: int
    tag_efficiency: int
    documentation: int
    tag_usage: int
    naming_compliance: Optional[int] = None

    def to_dict(self) -> Dict[str, int]:
        payload = {
            "overall": self.overall,
            "tagEfficiency": self.tag_efficiency,
            "documentation": self.documentation,
            "tagUsage": self.tag_usage,
        }
        if self.naming_compliance is not None:
            payload["namingCompliance"] = self.naming_compliance
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthScoreRecord":
        naming = _pick(data, "naming_compliance", "namingCompliance")
        return cls(
            overall=int(_pick(data, "overall", default=0)),
            tag_efficiency=int(_pick(data, "tag_efficiency", "tagEfficiency", default=0)),
            documentation=int(_pick(data, "documentation", default=0)),
            tag_usage=int(_pick(data, "tag_usage", "tagUsage", default=0)),
            naming_compliance=int(naming) if naming is not None else None,
        )


@dataclass(frozen=True)
class VersionStats:
    """Parsed-data counts for one uploaded version."""
    total_tags: int
    unused_tags: int
    total_rungs: int
    commented_rungs: int
    total_references: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalTags": self.total_tags,
            "unusedTags": self.unused_tags,
            "totalRungs": self.total_rungs,
            "commentedRungs": self.commented_rungs,
            "totalReferences": self.total_references,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionStats":
        return cls(
            total_tags=int(_pick(data, "total_tags", "totalTags", default=0)),
            unused_tags=int(_pick(data, "unused_tags", "unusedTags", default=0)),
            total_rungs=int(_pick(data, "total_rungs", "totalRungs", default=0)),
            commented_rungs=int(_pick(data, "commented_rungs", "commentedRungs", default=0)),
            total_references=int(_pick(data, "total_references", "totalReferences", default=0)),
        )


@dataclass(frozen=True)
class VersionSummary:
    """One entry of a file's upload history."""
    version_number: int
    uploaded_at: str
    comment: Optional[str] = None
    stats: Optional[VersionStats] = None
    # Parsed content of this version, used to derive stats when none are given
    tags: Tuple[Tag, ...] = field(default=(), compare=False)
    references: Tuple[TagReference, ...] = field(default=(), compare=False)
    rungs: Tuple[Rung, ...] = field(default=(), compare=False)

    @property
    def has_parsed_data(self) -> bool:
        return bool(self.tags or self.rungs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionSummary":
        stats = _pick(data, "stats")
        return cls(
            version_number=int(_pick(data, "version_number", "versionNumber", default=1)),
            uploaded_at=str(_pick(data, "uploaded_at", "uploadedAt", default="")),
            comment=_pick(data, "comment"),
            stats=VersionStats.from_dict(stats) if isinstance(stats, dict) else None,
            tags=tuple(Tag.from_dict(t) for t in _pick(data, "tags", default=[])),
            references=tuple(TagReference.from_dict(r) for r in _pick(data, "references", default=[])),
            rungs=tuple(Rung.from_dict(r) for r in _pick(data, "rungs", default=[])),
        )


@dataclass(frozen=True)
class ExportFile:
    """Export target of one uploaded program file."""
    target_type: Optional[str] = None  # Controller | Program | Routine | None
    target_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExportFile":
        return cls(
            target_type=_pick(data, "target_type", "targetType"),
            target_name=_pick(data, "target_name", "targetName"),
        )


@dataclass(frozen=True)
class ProjectSnapshot:
    """Everything one analysis run reads about a project."""
    project_id: str
    organization_id: Optional[str] = None
    tags: Tuple[Tag, ...] = ()
    references: Tuple[TagReference, ...] = ()
    rungs: Tuple[Rung, ...] = ()
    routines: Tuple[Routine, ...] = ()
    export_files: Tuple[ExportFile, ...] = ()
    version_history: Tuple[VersionSummary, ...] = ()
    naming_affects_health_score: bool = False
    project_rule_set: Optional[NamingRuleSet] = None
    organization_default_rule_set: Optional[NamingRuleSet] = None
    language: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectSnapshot":
        project_rule_set = _pick(data, "project_rule_set", "projectRuleSet")
        default_rule_set = _pick(data, "organization_default_rule_set", "organizationDefaultRuleSet")
        return cls(
            project_id=str(_pick(data, "project_id", "projectId", "id", default="")),
            organization_id=_pick(data, "organization_id", "organizationId"),
            tags=tuple(Tag.from_dict(t) for t in _pick(data, "tags", default=[])),
            references=tuple(TagReference.from_dict(r) for r in _pick(data, "references", default=[])),
            rungs=tuple(Rung.from_dict(r) for r in _pick(data, "rungs", default=[])),
            routines=tuple(Routine.from_dict(r) for r in _pick(data, "routines", default=[])),
            export_files=tuple(ExportFile.from_dict(f) for f in _pick(data, "export_files", "exportFiles", default=[])),
            version_history=tuple(
                VersionSummary.from_dict(v) for v in _pick(data, "version_history", "versionHistory", default=[])
            ),
            naming_affects_health_score=bool(
                _pick(data, "naming_affects_health_score", "namingAffectsHealthScore", default=False)
            ),
            project_rule_set=NamingRuleSet.from_dict(project_rule_set) if project_rule_set else None,
            organization_default_rule_set=NamingRuleSet.from_dict(default_rule_set) if default_rule_set else None,
            language=_pick(data, "language"),
            metadata=dict(_pick(data, "metadata", default={})),
        )

    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]
