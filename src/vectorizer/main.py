"""Main entry point for the vectorizer command line."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from vectorizer import __version__, pipeline
from vectorizer.config import LOG_FILE, Config, get_config_dir, set_config
from vectorizer.database import DEFAULT_SEARCH_LIMIT, VectorStore
from vectorizer.embedding import EmbeddingWorker
from vectorizer.errors import ConfigurationError, VectorizerError
from vectorizer.tools import register_tools

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str, log_file: Path | None = None) -> None:
    """Configure root logging once."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, handlers=handlers)


def _list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vectorizer",
        description="Qdrant file indexer/uploader",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-p", "--project", help="The project root path")
    parser.add_argument(
        "-e", "--extensions", type=_list, help="Comma separated file extensions to include"
    )
    parser.add_argument(
        "-d",
        "--directories",
        type=_list,
        help="Comma separated directories to include within the project root",
    )
    parser.add_argument(
        "-i", "--ignored", type=_list, help="Comma separated ignore rules (gitignore syntax)"
    )
    parser.add_argument("-c", "--collection", help="The collection to create/upload into")
    parser.add_argument("-u", "--url", help="The database url, ex: http://localhost:6334")
    parser.add_argument(
        "-m", "--metadata", help='Metadata applied to every file, ex: \'{"key": "value"}\''
    )
    model = parser.add_mutually_exclusive_group()
    model.add_argument("-l", "--local", metavar="PATH", help="Use a local model from PATH")
    model.add_argument(
        "-r",
        "--remote",
        choices=["L6", "L12"],
        help="all-MiniLM-*-v2 model to download (default: L12)",
    )
    parser.add_argument(
        "-t", "--tokenmax", type=int, help="The maximum amount of tokens per fragment"
    )
    parser.add_argument(
        "-L", "--level", choices=["error", "warn", "info", "debug"], help="The log level"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("upload", help="Index and upload files")
    commands.add_parser("index", help="Index files without uploading")
    commands.add_parser("test", help="Test the connection to Qdrant")
    search = commands.add_parser("search", help="Search the uploaded fragments")
    search.add_argument("-T", "--term", required=True, help="The search term")
    search.add_argument("--limit", type=int, default=DEFAULT_SEARCH_LIMIT)
    commands.add_parser("serve", help="Serve search over MCP (SSE)")
    return parser


def settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed arguments to settings keys."""
    overrides: dict[str, Any] = {
        "indexer.project": args.project,
        "indexer.extensions": args.extensions,
        "indexer.directories": args.directories,
        "indexer.ignored": args.ignored,
        "indexer.log_level": args.level,
        "database.url": args.url,
        "database.collection": args.collection,
        "database.metadata": args.metadata,
        "database.max_tokens": args.tokenmax,
    }
    if args.local:
        overrides["model.local"] = True
        overrides["model.location"] = args.local
    elif args.remote:
        overrides["model.local"] = False
        overrides["model.location"] = args.remote
    return overrides


def create_server(config: Config, worker: EmbeddingWorker, store: VectorStore) -> FastMCP:
    """Create the MCP server exposing search over the configured collection."""
    mcp = FastMCP(
        name="vectorizer",
        instructions=(
            "vectorizer provides semantic search over the files of an indexed project. "
            "Use the search tool with a natural language query to find relevant fragments."
        ),
    )

    logger.info("Registering tools...")
    register_tools(mcp, worker, store, config)

    logger.info("Server configured successfully")
    return mcp


def run_command(args: argparse.Namespace, config: Config) -> None:
    if args.command == "index":
        documents = pipeline.index(config)
        print(f"Indexed {len(documents)} documents ({documents.fragment_count} fragments)")
        return

    store = VectorStore.from_url(
        config.require_database(), api_key=config.api_key, dimension=config.dimension
    )
    try:
        if args.command == "upload":
            count = asyncio.run(pipeline.upload(config, store))
            print(f"Upsert complete: {count} points")

        elif args.command == "test":
            collections = store.list_collections()
            print(f"Connected to {config.database_url}: {len(collections)} collections")
            for name in collections:
                print(f"  {name}")

        elif args.command == "search":
            with EmbeddingWorker.from_config(config) as worker:
                results = asyncio.run(
                    pipeline.search(worker, store, config.collection, args.term, args.limit)
                )
            for result in results:
                print(f"{result.score:.4f}  {result.name}  {result.text[:80]}")

        elif args.command == "serve":
            with EmbeddingWorker.from_config(config) as worker:
                mcp = create_server(config, worker, store)
                logger.info("Starting MCP server on port %s...", config.server_port)
                mcp.run(transport="sse", host="0.0.0.0", port=config.server_port)
    finally:
        store.close()


def main(argv: list[str] | None = None) -> int:
    """Main function - parses arguments, reconciles settings and runs a command."""
    args = build_parser().parse_args(argv)

    try:
        config = Config.load(overrides=settings_overrides(args))
    except ConfigurationError as e:
        setup_logging(args.level or "warning")
        logger.error("%s", e)
        return 1

    setup_logging(config.log_level, get_config_dir() / LOG_FILE)
    set_config(config)

    logger.info("vectorizer %s starting...", __version__)
    logger.info("  PROJECT:    %s", config.project)
    logger.info("  COLLECTION: %s", config.collection)
    logger.info("  DATABASE:   %s", config.database_url or "not configured")
    logger.info("  MODEL:      %s", config.model_location)

    try:
        run_command(args, config)
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except VectorizerError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
