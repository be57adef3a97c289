"""
Analysis Fingerprint

Deterministic cache key over a canonical projection of the analysis inputs.
Collections are sorted before serialization so that input ordering never
changes the key; anything that should invalidate a cached narrative (new
history runs, new versions, a language switch, naming state) is part of
the projection.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from components.analysis.health_scorer import CoverageEntry
from components.analysis.tag_usage import UsageBreakdown

UNUSED_SAMPLE_SIZE = 50
FINGERPRINT_LENGTH = 16


@dataclass
class FingerprintInputs:
    unused_tag_names: Sequence[str] = ()
    routine_coverage: Sequence[CoverageEntry] = ()
    usage: UsageBreakdown = field(default_factory=UsageBreakdown)
    version_count: int = 0
    previous_run_count: int = 0
    has_partial_exports: bool = False
    naming_violation_count: int = 0
    naming_enabled: bool = False
    language: str = "en"


def canonical_projection(inputs: FingerprintInputs) -> Dict[str, Any]:
    unused_sample: List[str] = sorted(inputs.unused_tag_names)[:UNUSED_SAMPLE_SIZE]
    coverage = sorted(f"{entry.name}:{entry.coverage_percent}" for entry in inputs.routine_coverage)
    return {
        "unused": unused_sample,
        "coverage": coverage,
        "usage": inputs.usage.to_dict(),
        "versions": int(inputs.version_count),
        "previousRuns": int(inputs.previous_run_count),
        "partialExports": bool(inputs.has_partial_exports),
        "namingViolations": int(inputs.naming_violation_count),
        "namingEnabled": bool(inputs.naming_enabled),
        "language": inputs.language,
    }


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def generate_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def compute_fingerprint(inputs: FingerprintInputs) -> str:
    return generate_hash(canonical_json(canonical_projection(inputs)))
