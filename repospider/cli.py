"""CLI entrypoints for repospider commands."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from .commands import GITHUB, LOCAL, SpiderRequest, run_spider
from .config import ConfigError, load_config
from .errors import EnumerationError
from .logging import configure_logging


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    _add_verbose_option(parser, suppress_default=True)
    parser.add_argument(
        "--workspace",
        dest="workspace_id",
        help="Workspace id used to namespace persisted analyses.",
    )
    parser.add_argument(
        "--update",
        action="store_true",
        help="Recompute analyses even when a stored record exists.",
    )
    parser.add_argument(
        "--store",
        dest="store_path",
        type=Path,
        help="Directory holding persisted analyses.",
    )
    parser.add_argument(
        "--pool-size",
        type=int,
        help="Number of repositories analyzed concurrently per batch.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a .repospider.yml file or the directory holding it.",
    )
    parser.add_argument(
        "--extractor",
        dest="extractors",
        action="append",
        default=[],
        help="Enable only the named extractor (repeatable).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write logs to this file.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repospider",
        description="Spider repositories, fingerprint them and persist the analyses.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    github_parser = subparsers.add_parser(
        "github",
        help="Spider repositories found by a GitHub search.",
    )
    _add_common_options(github_parser)
    github_parser.add_argument("--owner", help="GitHub organization or user to spider.")
    github_parser.add_argument(
        "--query",
        help="Custom GitHub search query; overrides --owner and --search.",
    )
    github_parser.add_argument(
        "--search",
        help="Only repositories whose name matches this term.",
    )
    github_parser.add_argument(
        "--clone-under",
        type=Path,
        help="Keep clones under this directory and reuse them on later runs.",
    )
    github_parser.add_argument("--max-examined", type=int, help="Stop a query after this many results.")
    github_parser.add_argument("--max-kept", type=int, help="Analyze at most this many repositories.")

    local_parser = subparsers.add_parser(
        "local",
        help="Spider every git repository below a local directory.",
    )
    _add_common_options(local_parser)
    local_parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        type=Path,
        help="Directory to search for repositories (defaults to current directory).",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def _request_from_args(args: argparse.Namespace) -> SpiderRequest:
    request = SpiderRequest(
        source=args.command,
        workspace_id=args.workspace_id,
        update=bool(args.update),
        store_path=args.store_path,
        pool_size=args.pool_size,
        extractors=list(args.extractors),
    )
    if args.command == GITHUB:
        request.owner = args.owner
        request.query = args.query
        request.search = args.search
        request.clone_under = args.clone_under
        request.max_examined = args.max_examined
        request.max_kept = args.max_kept
    elif args.command == LOCAL:
        request.local_directory = args.directory
    return request


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repospider commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        log_file=getattr(args, "log_file", None),
    )

    if args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
        return

    if args.command == GITHUB and not (args.owner or args.query):
        parser.exit(1, "repospider github requires --owner or --query\n")

    try:
        config = load_config(args.config or Path.cwd())
        summary = asyncio.run(run_spider(_request_from_args(args), config=config))
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")
    except EnumerationError as exc:
        parser.exit(1, f"repospider {args.command} failed: {exc}\nRun with --verbose for more details.\n")
    except ValueError as exc:
        parser.exit(1, f"{exc}\n")

    print(json.dumps(summary.as_dict(), indent=2))


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["main"]
