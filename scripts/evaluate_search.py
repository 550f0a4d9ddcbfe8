#!/usr/bin/env python3
"""Runs a query set through smart search and reports latency, result counts and parse mode."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import statistics
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dotenv import load_dotenv
from artisan_search.models import SearchOptions
from artisan_search.service import SearchOrchestrator, build_service


DEFAULT_QUERIES = [
    "blue pottery under 2000 for gifts",
    "traditional jewelry for wedding",
    "handwoven silk scarf",
    "wooden toys from karnataka",
    "brass items for pooja",
    "diwali decoration lamps",
    "customizable name plate",
    "madhubani painting below 5000",
    "eco-friendly bamboo baskets",
    "silver earrings",
]


def evaluate(service: SearchOrchestrator, queries: list[str], limit: int) -> dict:
    results = []
    latencies = []
    totals = []
    ai_parsed = 0

    for query in queries:
        result = service.search(query, SearchOptions(limit=limit))
        metadata = result.search_metadata
        latencies.append(float(metadata["processingTimeMs"]))
        totals.append(int(result.pagination["total"]))
        if metadata["searchMode"] == "ai":
            ai_parsed += 1

        results.append(
            {
                "query": query,
                "search_mode": metadata["searchMode"],
                "confidence": metadata["confidence"],
                "latency_ms": metadata["processingTimeMs"],
                "total": result.pagination["total"],
                "top": [ranked.item.name for ranked in result.items[:3]],
                "insights": result.insights,
            }
        )

    service.flush_analytics(timeout=30.0)
    summary = {
        "queries": len(queries),
        "latency_ms_avg": round(statistics.mean(latencies), 2) if latencies else 0.0,
        "latency_ms_max": round(max(latencies), 2) if latencies else 0.0,
        "results_avg": round(statistics.mean(totals), 2) if totals else 0.0,
        "zero_result_queries": sum(1 for total in totals if total == 0),
        "ai_parsed": ai_parsed,
        "fallback_parsed": len(queries) - ai_parsed,
    }

    return {
        "summary": summary,
        "results": results,
        "analytics": service.analytics_report(7),
    }


def main() -> int:
    load_dotenv(ROOT_DIR / ".env")
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="Evaluate smart search over a fixed query set.")
    parser.add_argument("--limit", type=int, default=5, help="Page size used for each query.")
    parser.add_argument(
        "--output",
        type=Path,
        default=ROOT_DIR / "docs" / "search_eval_last_run.json",
        help="Where to write JSON evaluation results.",
    )
    parser.add_argument(
        "--query",
        action="append",
        default=[],
        help="Custom query (can be passed multiple times).",
    )
    args = parser.parse_args()

    queries = args.query if args.query else DEFAULT_QUERIES
    service = build_service()

    payload = evaluate(service, queries, max(1, args.limit))
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    summary = payload["summary"]
    print("Smart Search Evaluation")
    print(f"queries: {summary['queries']}")
    print(f"latency avg/max: {summary['latency_ms_avg']} ms / {summary['latency_ms_max']} ms")
    print(f"results avg: {summary['results_avg']}")
    print(f"zero-result queries: {summary['zero_result_queries']}")
    print(f"parse mode (ai / fallback): {summary['ai_parsed']} / {summary['fallback_parsed']}")
    print(f"saved: {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
