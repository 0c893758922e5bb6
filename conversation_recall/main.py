#!/usr/bin/env python3
"""Conversation Recall - search past AI coding conversations.

Entry point for the CLI application.
"""

import argparse
import logging
import sys
from pathlib import Path

from .models import ALL, ALL_SOURCES, SEARCH_MODES


def _build_config(args):
    from .config import RecallConfig

    config = RecallConfig()
    if getattr(args, "db", None):
        config.archive_db_path = args.db
    return config


def cmd_search(args):
    """Search conversations from the CLI."""
    from .errors import ValidationError
    from .search import format_results, parse_sources_arg, search_conversations

    try:
        results = search_conversations(
            args.query,
            mode=args.mode,
            limit=args.limit,
            after=args.after,
            before=args.before,
            sources=parse_sources_arg(args.sources),
            config=_build_config(args),
        )
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_results(results))
    return 0


def cmd_index(args):
    """Index Claude Code transcripts into the archive."""
    from .index import ArchiveDatabase, ArchiveIndexer, EmbeddingGenerator
    from .models import CLAUDE_CODE
    from .sources import get_source

    config = _build_config(args)
    source = get_source(CLAUDE_CODE, config)
    embedder = EmbeddingGenerator(config.openai_api_key, environ=config.environ)

    if not embedder.available:
        print("⚠ OpenAI API key not configured - indexing without embeddings.")
        print("   Set OPENAI_API_KEY to enable vector search.")
        print()

    print(f"Indexing transcripts from {source.get_sessions_dir()}...")
    print()

    def progress_callback(current, total, message):
        pct = (current / total * 100) if total > 0 else 0
        bar_width = 40
        filled = int(bar_width * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_width - filled)
        print(f"\r[{bar}] {pct:3.0f}% ({current}/{total}) {message[:30]:<30}", end="", flush=True)

    with ArchiveDatabase(config.archive_db_path) as db:
        indexer = ArchiveIndexer(db, source, embedder)
        stats = indexer.index(progress_callback=progress_callback, force=args.force)
        embedded = indexer.embed_missing() if args.embed_missing else 0

    print()
    print()
    print("✓ Index complete!")
    print(f"  Transcripts scanned: {stats['files_scanned']}")
    print(f"  Transcripts indexed: {stats['files_indexed']}")
    print(f"  Exchanges indexed: {stats['exchanges_indexed']}")
    print(f"  Embeddings created: {stats['embeddings_created'] + embedded}")
    return 0


def cmd_sources(args):
    """List conversation sources."""
    from .sources import get_all_sources

    sources = get_all_sources(_build_config(args))

    if args.status:
        print("Source Status:")
        print("-" * 60)
        for s in sources:
            available = s.is_available()
            mark = "✓" if available else "✗"
            print(f"{mark} {s.icon} {s.display_name:<15} ({s.name})")
            print(f"    Location: {s.describe_location()}")
            print(f"    Status: {'available' if available else 'not found'}")
            print()
    else:
        print("Sources:")
        for s in sources:
            mark = "✓" if s.is_available() else "✗"
            print(f"  {mark} {s.icon} {s.display_name} ({s.name})")
    return 0


def cmd_stats(args):
    """Show archive statistics."""
    from .index import ArchiveDatabase

    config = _build_config(args)
    if not config.archive_db_path.exists():
        print(f"No archive found at {config.archive_db_path}. Run 'recall-conversations index' first.")
        return 1

    with ArchiveDatabase(config.archive_db_path) as db:
        total = db.count_exchanges()
        embedded = db.count_exchanges_with_embeddings()
        archives = db.count_archives()
        projects = db.project_counts()

    print("Archive Statistics")
    print("=" * 60)
    print()
    print(f"Transcripts: {archives}")
    print(f"Exchanges: {total}")
    print(f"  With embeddings: {embedded}")
    print(f"  Without embeddings: {total - embedded}")
    print()

    size_mb = config.archive_db_path.stat().st_size / (1024 * 1024)
    print(f"Database size: {size_mb:.2f} MB")
    print()

    if projects:
        print("Exchanges by project:")
        for project, count in projects:
            print(f"  {project:<40} {count}")
    return 0


def cmd_browse(args):
    """Launch the TUI browser."""
    from .app import RecallBrowser

    app = RecallBrowser(
        config=_build_config(args),
        initial_query=args.query,
        mode=args.mode,
    )
    app.run()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Search past conversations across AI coding assistants",
        prog="recall-conversations",
    )
    parser.add_argument(
        "--version", "-v",
        action="store_true",
        help="Show version"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log diagnostics to stderr"
    )
    parser.add_argument(
        "--db",
        type=lambda p: Path(p).expanduser(),
        help="Path to the Claude Code archive database"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    search_parser = subparsers.add_parser("search", help="Search conversations")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--mode", "-m", choices=SEARCH_MODES, default="vector", help="Retrieval mode")
    search_parser.add_argument("--limit", "-l", type=int, default=10, help="Max results to show")
    search_parser.add_argument("--after", help="Only conversations on or after YYYY-MM-DD")
    search_parser.add_argument("--before", help="Only conversations on or before YYYY-MM-DD")
    search_parser.add_argument(
        "--sources", "-s",
        default=ALL,
        help=f"Comma-separated sources: {', '.join(ALL_SOURCES)} or {ALL}",
    )

    index_parser = subparsers.add_parser("index", help="Index Claude Code transcripts")
    index_parser.add_argument("--force", action="store_true", help="Reindex unchanged transcripts")
    index_parser.add_argument("--embed-missing", action="store_true", help="Embed exchanges indexed without embeddings")

    sources_parser = subparsers.add_parser("sources", help="List conversation sources")
    sources_parser.add_argument("--status", "-s", action="store_true", help="Show detailed status")

    subparsers.add_parser("stats", help="Archive statistics")

    browse_parser = subparsers.add_parser("browse", help="Launch TUI browser")
    browse_parser.add_argument("query", nargs="?", default="", help="Initial search query")
    browse_parser.add_argument("--mode", "-m", choices=SEARCH_MODES, default="vector", help="Retrieval mode")

    return parser


def main(argv=None):
    """Main entry point for the recall-conversations CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.version:
        from . import __version__
        print(f"recall-conversations {__version__}")
        return 0

    if args.command == "search":
        return cmd_search(args)
    elif args.command == "index":
        return cmd_index(args)
    elif args.command == "sources":
        return cmd_sources(args)
    elif args.command == "stats":
        return cmd_stats(args)
    elif args.command == "browse":
        return cmd_browse(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
