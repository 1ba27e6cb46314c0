"""MCP server wiring for github-tools-mcp.

Exposes every tool in the registry over stdio and serializes each dispatch envelope as a
single JSON text block.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

try:
    from mcp.server import Server
    from mcp.types import Resource, TextContent, Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .errors import ToolError, internal_error
from .schemas import TOOL_METADATA
from .tools import dispatch_tool, initialize_runtime_from_env, shutdown_runtime

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

SERVER_NAME = "github-tools-mcp"
STATUS_URI = "github-tools-mcp://server-status"
CAPABILITIES_URI = "github-tools-mcp://capabilities"

server = Server(SERVER_NAME)


def build_tools() -> list[Tool]:
    return [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]


def build_resources() -> list[Resource]:
    return [
        Resource(
            uri=STATUS_URI,
            name="Server Status",
            description="Non-secret server configuration and limits",
        ),
        Resource(
            uri=CAPABILITIES_URI,
            name="Capabilities",
            description="Available tools and request semantics",
        ),
    ]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = build_tools()
    logger.info("Listed %s tools", len(tools))
    return tools


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Execute a tool and return MCP-compliant TextContent."""
    logger.info("Tool called: %s", name)

    try:
        raw_result = await dispatch_tool(name, arguments)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("Tool %s failed: %s", name, type(exc).__name__)
        raw_result = internal_error("Tool execution failed")
    return [TextContent(type="text", text=json.dumps(raw_result, indent=2, default=str))]


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return build_resources()


def capabilities() -> dict[str, Any]:
    return {
        "server": SERVER_NAME,
        "version": __version__,
        "tools": sorted(TOOL_METADATA),
        "read_only_tools": sorted(n for n, m in TOOL_METADATA.items() if m["readOnly"]),
        "semantics": {
            "retries": False,
            "client_side_rate_limiting": False,
            "max_per_page": 100,
            "list_replace_on_update": True,
        },
    }


def server_status() -> dict[str, Any]:
    status: dict[str, Any] = {
        "server": SERVER_NAME,
        "version": __version__,
        "tools_available": len(TOOL_METADATA),
        "configured": False,
    }
    try:
        runtime = initialize_runtime_from_env()
    except ToolError as err:
        status["config_error"] = err.message
        return status

    limits = runtime.config.limits
    status["configured"] = True
    status["api_base_url"] = runtime.config.api_base_url
    status["limits"] = {
        "total_timeout_s": limits.total_timeout_s,
        "connect_timeout_s": limits.connect_timeout_s,
        "read_timeout_s": limits.read_timeout_s,
        "get_file_max_bytes": limits.get_file_max_bytes,
    }
    status["audit"] = {"file_sink_enabled": runtime.config.audit_log_path is not None}
    return status


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read resource content."""
    uri_s = uri if isinstance(uri, str) else str(uri)

    if uri_s == CAPABILITIES_URI:
        return json.dumps(capabilities(), indent=2)
    if uri_s == STATUS_URI:
        return json.dumps(server_status(), indent=2)
    return json.dumps({"ok": False, "code": "NotFound", "message": "Unknown resource"}, indent=2)


async def run_server() -> None:
    """Run the server over stdio."""
    # Fail fast on invalid/missing host configuration.
    try:
        _ = initialize_runtime_from_env()
    except ToolError as exc:
        logger.error("Startup configuration error: %s", exc.message)
        raise

    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await shutdown_runtime()


async def test_server() -> None:
    """Lightweight self-test: build tool/resource listings and the capabilities document."""
    tools = build_tools()
    resources = build_resources()
    json.dumps(capabilities())
    print(f"{SERVER_NAME} {__version__}: {len(tools)} tools, {len(resources)} resources", file=sys.stderr)
