#!/usr/bin/env python3
"""
Build Memory Graph
==================

Loads agent memory records from a JSON array or JSONL file, optionally
retrains the embedding networks on them, ingests them into a fresh
knowledge graph and prints a JSON report:

1. statistics: node/edge counts, average degree, relationship type counts
2. view: nodes and edges (optionally filtered by --agent-id)
3. similar: nearest memories to --query (when given)

Usage:
    python scripts/build_memory_graph.py memories.jsonl
    python scripts/build_memory_graph.py memories.json --train --query "database tuning" --query-type Task
    python scripts/build_memory_graph.py memories.jsonl --view --agent-id agent-1 --output report.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from neurograph.config import EmbeddingConfig, EngineConfig, GraphConfig
from neurograph.errors import NeuroGraphError
from neurograph.runtime.memory import LoggingTelemetryClient, MemoryGraphEngine, MemoryRecord, MemoryType

logger = logging.getLogger("build_memory_graph")


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Build a neural knowledge graph from memory records")
    p.add_argument("input", type=Path, help="JSON array or JSONL file of memory records")
    p.add_argument("--train", action="store_true", help="Retrain embedding networks before ingestion")
    p.add_argument("--epochs", type=int, default=None, help="Override training epochs")
    p.add_argument("--query", type=str, default=None, help="Text to search for similar memories")
    p.add_argument("--query-type", type=str, default="Context", help="Memory type of the query")
    p.add_argument("--top-k", type=int, default=5, help="Number of similar memories to report")
    p.add_argument("--view", action="store_true", help="Include the graph view in the report")
    p.add_argument("--agent-id", type=str, default=None, help="Restrict the view to one agent")
    p.add_argument("--seed", type=int, default=None, help="Seed for weight initialization")
    p.add_argument("--output", type=Path, default=None, help="Write the report here instead of stdout")
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return p.parse_args(argv)


def load_records(path: Path) -> List[MemoryRecord]:
    """Parse a JSON array or one-object-per-line JSONL file."""
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        rows = json.loads(text)
    else:
        rows = [json.loads(line) for line in text.splitlines() if line.strip()]
    return [MemoryRecord.model_validate(row) for row in rows]


async def build_report(args: argparse.Namespace, records: List[MemoryRecord]) -> Dict[str, Any]:
    embedding_config = EmbeddingConfig.from_env()
    if args.epochs is not None:
        embedding_config.training_epochs = args.epochs
    engine = MemoryGraphEngine(
        embedding_config.validate(),
        GraphConfig.from_env(),
        EngineConfig.from_env(),
        telemetry=LoggingTelemetryClient(),
        seed=args.seed,
    )
    async with engine:
        report: Dict[str, Any] = {"records": len(records)}
        if args.train and records:
            report["training_errors"] = await engine.train_on_memories(records)

        node_ids = await engine.rebuild(records)
        report["nodes"] = node_ids
        report["statistics"] = (await engine.get_statistics()).model_dump()

        if args.view:
            report["view"] = (await engine.get_neural_graph_view(args.agent_id)).model_dump(mode="json")

        if args.query:
            query = MemoryRecord.create("cli", MemoryType.parse(args.query_type), args.query)
            similar = await engine.find_similar_memories(query, args.top_k)
            report["similar"] = [{"node_id": node_id, "score": score} for node_id, score in similar]
    return report


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not args.input.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    try:
        records = load_records(args.input)
    except (ValueError, OSError) as exc:
        logger.error(f"Failed to load records: {exc}")
        return 1
    logger.info(f"Loaded {len(records)} memory records from {args.input}")

    try:
        report = asyncio.run(build_report(args, records))
    except NeuroGraphError as exc:
        logger.error(f"Graph build failed: {exc}")
        return 1

    payload = json.dumps(report, indent=2, default=str)
    if args.output:
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info(f"Report written to {args.output}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
