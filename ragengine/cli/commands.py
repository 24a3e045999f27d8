"""Command-line interface for indexing and querying collections.

Usage::

    python -m ragengine.cli index --collection handbook docs/policy.md docs/faq.pdf
    python -m ragengine.cli index --collection handbook --dir docs/
    python -m ragengine.cli query --collection handbook "How many vacation days do we get?"
    python -m ragengine.cli stats --collection handbook
    python -m ragengine.cli delete --collection handbook --document policy.md --yes
    python -m ragengine.cli health

Every command builds the same engine as the web app from
``config/config.yaml`` plus the environment (``--config`` picks another
file).  With the in-process store, set ``memory_persist_path`` so that
vectors survive between invocations.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Awaitable, Callable

import httpx

from ragengine.config.loader import DEFAULT_CONFIG_PATH, load_settings
from ragengine.config.settings import Settings
from ragengine.main import build_engine
from ragengine.models.document import Document, ProcessingStatus
from ragengine.models.retrieval import QueryOptions
from ragengine.services.engine import RAGEngine
from ragengine.services.text_extractor import extract_text, guess_content_type
from ragengine.utils.errors import RAGEngineError
from ragengine.utils.logging import configure_logging

_SUPPORTED_SUFFIXES = frozenset({".txt", ".md", ".markdown", ".json", ".csv", ".pdf"})

_Handler = Callable[[argparse.Namespace, RAGEngine], Awaitable[int]]


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _collect_files(args: argparse.Namespace) -> list[Path]:
    files = [Path(p) for p in args.files]
    if args.dir:
        root = Path(args.dir)
        files.extend(
            sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in _SUPPORTED_SUFFIXES)
        )
    return files


async def _handle_index(args: argparse.Namespace, engine: RAGEngine) -> int:
    files = _collect_files(args)
    if not files:
        print("Error: no input files given.", file=sys.stderr)
        return 1

    failures = 0
    for path in files:
        try:
            text = extract_text(path.read_bytes(), guess_content_type(path.name))
        except (OSError, RAGEngineError) as exc:
            print(f"  {path.name:<40} unreadable: {exc}", file=sys.stderr)
            failures += 1
            continue

        document = Document(
            document_id=args.document_id if len(files) == 1 and args.document_id else path.name,
            collection_id=args.collection,
            name=path.name,
            content=text,
            content_type=guess_content_type(path.name),
        )
        outcome = await engine.process_document(
            document,
            caller_id=args.caller,
            chunk_size=args.chunk_size,
            chunk_overlap=args.chunk_overlap,
        )
        line = (
            f"  {path.name:<40} {outcome.status.value:<10} "
            f"{outcome.chunks_indexed}/{outcome.chunks_created} chunks "
            f"in {outcome.elapsed_seconds:.2f}s"
        )
        if outcome.status == ProcessingStatus.FAILED:
            failures += 1
            line += f"  ({outcome.error})"
        print(line)

    print(f"\nIndexed {len(files) - failures} of {len(files)} file(s) into '{args.collection}'.")
    return 0 if failures == 0 else 2


async def _handle_query(args: argparse.Namespace, engine: RAGEngine, settings: Settings) -> int:
    options = QueryOptions.from_settings(
        settings,
        max_sources=args.max_sources,
        confidence_threshold=args.threshold,
        enable_expansion=True if args.expand else None,
        synthesis_mode=args.mode,
    )
    answer = await engine.query(args.text, args.collection, options, caller_id=args.caller)

    if args.json:
        print(answer.model_dump_json(indent=2))
        return 0

    print(answer.answer)
    print()
    print(f"Status: {answer.status.value}   Confidence: {answer.confidence:.2f}   "
          f"Retrieval: {answer.retrieval_mode}   Latency: {answer.latency_ms:.0f} ms")
    for index, source in enumerate(answer.sources, start=1):
        print(f"  [{index}] {source.document_name}  chunk={source.chunk_id}  "
              f"similarity={source.similarity_score:.3f}")
    return 0


async def _handle_stats(args: argparse.Namespace, engine: RAGEngine) -> int:
    stats = await engine.get_collection_stats(args.collection)
    print(f"Collection '{args.collection}'")
    print("=" * 40)
    for entry in stats:
        print(f"  {entry.provider:<10} vectors={entry.vector_count:<8} "
              f"dim={entry.dimensions:<6} bytes~{entry.storage_bytes}")
    return 0


async def _handle_delete(args: argparse.Namespace, engine: RAGEngine) -> int:
    if not args.yes:
        reply = input(f"Delete '{args.document}' from '{args.collection}'? [y/N] ")
        if reply.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return 1
    removed = await engine.delete_document(args.collection, args.document)
    print(f"Removed {removed} vector(s).")
    return 0


async def _handle_health(args: argparse.Namespace, engine: RAGEngine) -> int:
    health = await engine.health()
    print(json.dumps(health, indent=2))
    return 0 if all(health.values()) else 3


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m ragengine.cli",
        description="Index documents into collections and query them.",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="YAML config file")
    parser.add_argument("--caller", default=None, help="Caller id used for rate limiting")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    index = subparsers.add_parser("index", help="Extract, chunk, embed and store files")
    index.add_argument("files", nargs="*", help="Files to index")
    index.add_argument("--collection", required=True, help="Target collection id")
    index.add_argument("--dir", default=None, help="Also index supported files under this directory")
    index.add_argument("--document-id", default=None, help="Document id (single file only)")
    index.add_argument("--chunk-size", type=int, default=None)
    index.add_argument("--chunk-overlap", type=int, default=None)

    query = subparsers.add_parser("query", help="Ask a question")
    query.add_argument("text", help="Question text")
    query.add_argument("--collection", required=True)
    query.add_argument("--max-sources", type=int, default=None)
    query.add_argument("--threshold", type=float, default=None, help="Minimum similarity")
    query.add_argument("--expand", action="store_true", help="Search phrasing variants too")
    query.add_argument("--mode", choices=["extractive", "generative"], default=None)
    query.add_argument("--json", action="store_true", help="Print the full answer as JSON")

    stats = subparsers.add_parser("stats", help="Show collection statistics")
    stats.add_argument("--collection", required=True)

    delete = subparsers.add_parser("delete", help="Purge a document's chunks")
    delete.add_argument("--collection", required=True)
    delete.add_argument("--document", required=True, help="Document id")
    delete.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    subparsers.add_parser("health", help="Check vector store reachability")
    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    async with httpx.AsyncClient(timeout=settings.vector_store_timeout_seconds) as http_client:
        engine = build_engine(settings, http_client)
        await engine.repository.initialize()
        if args.command == "query":
            return await _handle_query(args, engine, settings)
        handlers: dict[str, _Handler] = {
            "index": _handle_index,
            "stats": _handle_stats,
            "delete": _handle_delete,
            "health": _handle_health,
        }
        return await handlers[args.command](args, engine)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args.config)
    except RAGEngineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    # Logs go to stderr; stdout carries command output such as --json.
    configure_logging(
        log_level=args.log_level or settings.log_level,
        stream=sys.stderr,
        cache_loggers=False,
    )

    try:
        return asyncio.run(_run(args, settings))
    except RAGEngineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
