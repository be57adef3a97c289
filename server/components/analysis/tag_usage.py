"""
Tag Usage Resolution

Classifies declared tags as used or unused from the names referenced in
logic. Addressing is purely textual: a reference to a structured tag's
ancestor path, or to an array's base name, counts as a use of every member
or element below it. Scope never restricts matching.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from components.analysis.models import Tag, TagReference

MAX_PAGE_SIZE = 100


@dataclass
class TagUsageResult:
    """Disjoint used / unused partitions, input order preserved."""
    used: List[Tag] = field(default_factory=list)
    unused: List[Tag] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.used) + len(self.unused)


@dataclass
class UsageBreakdown:
    read: int = 0
    write: int = 0
    both: int = 0

    def to_dict(self):
        return {"read": self.read, "write": self.write, "both": self.both}


@dataclass
class UnusedTagPage:
    tags: List[Tag]
    total_count: int
    page: int
    page_size: int


def array_base(name: str) -> str:
    """Tag name cut at the first index bracket."""
    return name.split("[", 1)[0]


def is_tag_used(name: str, referenced: Set[str]) -> bool:
    if name in referenced:
        return True
    parts = name.split(".")
    for i in range(1, len(parts) + 1):
        if ".".join(parts[:i]) in referenced:
            return True
    return array_base(name) in referenced


def referenced_names(references: Iterable[TagReference]) -> Set[str]:
    return {ref.tag_name for ref in references}


def resolve_tag_usage(tags: Sequence[Tag], references: Iterable[TagReference]) -> TagUsageResult:
    """Partition tags into used and unused against the referenced names."""
    referenced = referenced_names(references)
    result = TagUsageResult()
    for tag in tags:
        if is_tag_used(tag.name, referenced):
            result.used.append(tag)
        else:
            result.unused.append(tag)
    return result


def list_unused_tags(
    unused: Sequence[Tag],
    search: Optional[str] = None,
    scope: Optional[str] = None,
    data_type: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> UnusedTagPage:
    """Filter, sort by name and paginate the unused partition."""
    page = max(1, int(page))
    page_size = min(MAX_PAGE_SIZE, max(1, int(page_size)))

    tags = list(unused)
    if search:
        needle = search.lower()
        tags = [t for t in tags if needle in t.name.lower()]
    if scope and scope != "all":
        tags = [t for t in tags if t.scope == scope]
    if data_type and data_type != "all":
        tags = [t for t in tags if t.data_type == data_type]

    tags.sort(key=lambda t: (t.name.lower(), t.name))
    start = (page - 1) * page_size
    return UnusedTagPage(
        tags=tags[start:start + page_size],
        total_count=len(tags),
        page=page,
        page_size=page_size,
    )


def usage_breakdown(references: Iterable[TagReference]) -> UsageBreakdown:
    """Count references by access kind; unknown kinds count as reads."""
    counts = UsageBreakdown()
    for ref in references:
        kind = (ref.usage_type or "").lower()
        if kind == "write":
            counts.write += 1
        elif kind == "both":
            counts.both += 1
        else:
            counts.read += 1
    return counts


def top_referenced_tags(references: Iterable[TagReference], limit: int = 10) -> List[Tuple[str, int]]:
    # Counter keeps first-seen order for equal counts
    counts = Counter(ref.tag_name for ref in references)
    return counts.most_common(limit)
