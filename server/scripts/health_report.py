#!/usr/bin/env python3
"""
Project health report from exported snapshot files.

Reads ``<project_id>.json`` snapshots from a directory and prints JSON.

Usage examples:

  # Numeric scores only (no generation service needed)
  health-report score plant_a --snapshots ./snapshots

  # Full analysis with cached recommendations, in Italian
  HEALTH_LLM_BASE_URL=http://127.0.0.1:1234/v1 health-report analyze plant_a --language it

  # Unused tags, second page, timers only
  health-report unused plant_a --data-type TIMER --page 2

  # Past runs
  health-report history plant_a --limit 5
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from loguru import logger

from components.analysis.naming_rules import (
    detect_scope_conflicts,
    filter_violations,
    resolve_effective_rule_set,
    validate_naming,
)
from components.health.project_repository import JsonProjectRepository, NoAnalysisDataError, ProjectNotFoundError
from core.config import get_config
from core.logging_setup import configure_logging
from services.health_orchestrator import HealthOrchestrator


def _coverage_entries(entries) -> List[Dict[str, Any]]:
    return [
        {"name": e.name, "program": e.program, "totalRungs": e.total_rungs,
         "commentedRungs": e.commented_rungs, "coverage": e.coverage_percent}
        for e in entries
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Project health analysis")
    parser.add_argument("--snapshots", default=None, help="Directory of <project_id>.json snapshots")
    parser.add_argument("--db", default=None, help="SQLite path for cache and history")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("score", help="Numeric health record")
    p.add_argument("project_id")

    p = sub.add_parser("analyze", help="Scores plus recommendations")
    p.add_argument("project_id")
    p.add_argument("--language", choices=["en", "it", "es"], default=None)

    p = sub.add_parser("unused", help="Paginated unused tags")
    p.add_argument("project_id")
    p.add_argument("--search", default=None)
    p.add_argument("--scope", default=None)
    p.add_argument("--data-type", default=None)
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--page-size", type=int, default=50)

    p = sub.add_parser("naming", help="Naming rule violations")
    p.add_argument("project_id")
    p.add_argument("--severity", choices=["all", "error", "warning", "info"], default="all")

    p = sub.add_parser("coverage", help="Rung comment coverage")
    p.add_argument("project_id")

    p = sub.add_parser("history", help="Past analyses, newest first")
    p.add_argument("project_id")
    p.add_argument("--limit", type=int, default=10)
    p.add_argument("--offset", type=int, default=0)

    return parser


def run(args: argparse.Namespace, orchestrator: HealthOrchestrator) -> Dict[str, Any]:
    if args.command == "score":
        health = orchestrator.score(args.project_id)
        return {"projectId": args.project_id, "healthScores": health.scores.to_dict(),
                "unusedTagCount": len(health.usage.unused), "totalTags": health.usage.total}

    if args.command == "analyze":
        return orchestrator.analyze(args.project_id, language=args.language).to_dict()

    if args.command == "unused":
        page = orchestrator.unused_tags(args.project_id, search=args.search, scope=args.scope,
                                        data_type=args.data_type, page=args.page, page_size=args.page_size)
        return {"tags": [t.to_dict() for t in page.tags], "totalCount": page.total_count,
                "page": page.page, "pageSize": page.page_size}

    if args.command == "naming":
        snapshot = orchestrator.repository.load(args.project_id)
        rule_set = resolve_effective_rule_set(snapshot.project_rule_set, snapshot.organization_default_rule_set)
        result = validate_naming(snapshot.tags, rule_set.active_rules)
        return {
            "ruleSet": rule_set.name or None,
            "violations": [v.to_dict() for v in filter_violations(result.violations, args.severity)],
            "summary": result.severity_summary(),
            "tagsChecked": result.tags_checked,
            "rulesApplied": result.rules_applied,
            "invalidRules": list(result.invalid_rule_ids),
            "scopeConflicts": [
                {"tagName": c.tag_name, "programs": list(c.programs)} for c in detect_scope_conflicts(snapshot.tags)
            ],
        }

    if args.command == "coverage":
        report = orchestrator.coverage(args.project_id)
        return {"totalRungs": report.total_rungs, "commentedRungs": report.commented_rungs,
                "coverage": report.coverage_percent, "byProgram": _coverage_entries(report.by_program),
                "byRoutine": _coverage_entries(report.by_routine)}

    if args.command == "history":
        entries = orchestrator.history(args.project_id, limit=args.limit, offset=args.offset)
        return {"history": [e.to_dict() for e in entries]}

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(config.logging)

    if args.snapshots:
        config.storage.snapshot_dir = args.snapshots
    if args.db:
        config.storage.sqlite_path = args.db

    orchestrator = HealthOrchestrator(JsonProjectRepository(config.storage.snapshot_dir), config=config)
    try:
        output = run(args, orchestrator)
    except (ProjectNotFoundError, NoAnalysisDataError) as e:
        logger.error(f"[HealthReport] {e}")
        return 2

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
