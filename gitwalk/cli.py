"""Command-line entry point.

    gitwalk clone            # step 1: clone GIT_REMOTE_URL over SSH
    gitwalk commit -m "msg"  # step 2: stage and commit everything
    gitwalk push             # step 3: push over SSH
    gitwalk serve            # run the MCP server (stdio)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from dotenv import find_dotenv, load_dotenv

from gitwalk import __version__, steps
from gitwalk.config import Configuration
from gitwalk.errors import GitWalkError

logger = logging.getLogger("gitwalk")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitwalk",
        description="Clone, commit and push to a Git remote over SSH using an in-memory key and a pinned host key.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="YAML configuration file (defaults to $GITWALK_CONFIG)")
    parser.add_argument("--env-file", help="dotenv file to load before reading the environment")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("clone", help="step 1: clone the remote repository")
    commit_parser = subparsers.add_parser("commit", help="step 2: stage and commit all changes")
    commit_parser.add_argument("-m", "--message", help="commit message (defaults to GIT_COMMIT_MESSAGE)")
    subparsers.add_parser("push", help="step 3: push the active branch")
    serve_parser = subparsers.add_parser("serve", help="run the MCP server")
    serve_parser.add_argument(
        "--transport",
        choices=("stdio", "sse", "streamable-http"),
        default="stdio",
        help="MCP transport (default: stdio)",
    )
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not verbose:
        # paramiko logs every transport negotiation step at INFO
        logging.getLogger("paramiko").setLevel(logging.WARNING)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    load_dotenv(args.env_file or find_dotenv(usecwd=True))

    if args.command == "serve":
        from gitwalk.server import mcp

        mcp.run(transport=args.transport)
        return 0

    try:
        configuration = Configuration.from_environment(config_path=args.config)
        if args.command == "clone":
            result = steps.clone(configuration)
        elif args.command == "commit":
            result = steps.commit(configuration, message=args.message)
        else:
            result = steps.push(configuration)
    except GitWalkError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
