#!/usr/bin/env python3
"""Command-line entry point for the github-tools-mcp server.

Serves GitHub issue, pull request, repository and search tools to an MCP client over stdio,
authenticated with the host-provided GITHUB_TOKEN.

Run:
  python -m github_tools_mcp                # start server (stdio)
  python -m github_tools_mcp --test         # list tools/resources, then exit
  github-tools-mcp                          # console script, same as the first form
"""

import argparse
import asyncio
import sys

from github_tools_mcp.server import run_server, test_server


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="github-tools-mcp",
        description="MCP server exposing GitHub REST operations as validated tools.",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Build the tool and resource listings, report their counts, then exit.",
    )
    return parser.parse_args(argv)


def main() -> None:
    """Run the stdio server, or the self test with --test."""
    args = parse_args(sys.argv[1:])
    try:
        asyncio.run(test_server() if args.test else run_server())
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        print(f"Server error: {exc}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
