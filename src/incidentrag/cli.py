"""Command line entry point for ingesting reports and querying the index."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Sequence

from incidentrag.config import get_settings
from incidentrag.models import SearchFilters
from incidentrag.services.factory import build_incident_service
from incidentrag.services.incidents import IncidentService


async def _ingest(service: IncidentService, paths: Sequence[Path]) -> int:
    failures = 0
    for path in paths:
        if path.is_dir():
            results = await service.ingest_folder(path)
            for result in results:
                if result.ok and result.incident is not None:
                    print(f"ok\t{result.incident.incident_number}\t{result.path}")
                else:
                    failures += 1
                    print(f"error\t{result.path}\t{result.error}", file=sys.stderr)
            continue
        document = await service.ingest_file(path)
        print(f"ok\t{document.incident_number}\t{path}")
    return 1 if failures else 0


async def _search(service: IncidentService, args: argparse.Namespace) -> int:
    filters = SearchFilters(
        severity=tuple(args.severity or ()),
        status=tuple(args.status or ()),
        category=args.category,
        environment=args.environment,
        tags=tuple(args.tag or ()),
    )
    results = await service.search(args.query, filters, args.limit)
    payload: List[dict] = [
        {
            "incident_id": result.document.id,
            "incident_number": result.document.incident_number,
            "title": result.document.title,
            "score": round(result.score, 4),
            "chunks": [hit.chunk_id for hit in result.hits],
        }
        for result in results
    ]
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


async def _stats(service: IncidentService) -> int:
    stats = await service.stats()
    print(
        json.dumps(
            {
                "total_incidents": stats.total_incidents,
                "total_chunks": stats.total_chunks,
                "total_hours": stats.total_hours,
                "by_severity": dict(stats.by_severity),
                "by_status": dict(stats.by_status),
                "by_client": dict(stats.by_client),
                "top_participants": [list(item) for item in stats.top_participants],
            },
            ensure_ascii=False,
            indent=2,
        )
    )
    return 0


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest work reports and search the incident index.")
    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Ingest report files or folders of reports")
    ingest.add_argument("paths", nargs="+", type=Path, help="PDF/text files or directories")

    search = commands.add_parser("search", help="Search indexed reports")
    search.add_argument("query", type=str)
    search.add_argument("--limit", type=int, default=None, help="Maximum chunk hits before aggregation")
    search.add_argument("--severity", action="append", help="Restrict to a severity (repeatable)")
    search.add_argument("--status", action="append", help="Restrict to a status (repeatable)")
    search.add_argument("--category", type=str, default=None)
    search.add_argument("--environment", type=str, default=None)
    search.add_argument("--tag", action="append", help="Match any of these tags (repeatable)")

    commands.add_parser("stats", help="Print corpus statistics")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    service = build_incident_service(get_settings())
    await service.initialize()
    try:
        if args.command == "ingest":
            return await _ingest(service, args.paths)
        if args.command == "search":
            return await _search(service, args)
        return await _stats(service)
    finally:
        await service.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    return asyncio.run(_run(args))


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
