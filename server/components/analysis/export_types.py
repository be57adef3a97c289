"""Partial-export detection for uploaded program files."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from components.analysis.models import ExportFile


@dataclass
class PartialExportInfo:
    has_partial_exports: bool = False
    all_partial: bool = False
    file_breakdown: Dict[str, int] = field(default_factory=lambda: {"controller": 0, "program": 0, "routine": 0})
    partial_files: List[Tuple[str, Optional[str]]] = field(default_factory=list)


def analyze_export_types(files: Iterable[ExportFile]) -> PartialExportInfo:
    """Program- and Routine-level exports are partial.

    A missing target type (older files, L5K) counts as a full controller
    export so that legacy uploads are not flagged.
    """
    info = PartialExportInfo()
    for export in files:
        target_type = (export.target_type or "").lower()
        if target_type == "program":
            info.file_breakdown["program"] += 1
            info.partial_files.append(("Program", export.target_name))
        elif target_type == "routine":
            info.file_breakdown["routine"] += 1
            info.partial_files.append(("Routine", export.target_name))
        else:
            info.file_breakdown["controller"] += 1

    info.has_partial_exports = bool(info.partial_files)
    info.all_partial = info.has_partial_exports and info.file_breakdown["controller"] == 0
    return info
