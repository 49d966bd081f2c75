#!/usr/bin/env python3
"""
ycmd-ide MCP Bridge

Exposes the supervised ycmd server to agents over MCP: completions, editor
events and server status. The bridge owns one YcmdClient; the server is
started on first use and torn down when the MCP server exits.
"""

import asyncio
import sys
from pathlib import Path

from mcp.server.fastmcp import FastMCP
from toon import encode as toon_encode

from .client import (
    BUFFER_UNLOAD,
    BUFFER_VISIT,
    CURRENT_IDENTIFIER_FINISHED,
    FILE_READY_TO_PARSE,
    YcmdClient,
)

# Shared MCP instance
mcp = FastMCP("ycmd-ide")

# Shared client
_client: YcmdClient | None = None

EVENTS = {
    FILE_READY_TO_PARSE: "file_ready_to_parse",
    BUFFER_UNLOAD: "buffer_unload",
    BUFFER_VISIT: "buffer_visit",
    CURRENT_IDENTIFIER_FINISHED: "current_identifier_finished",
}


def get_client() -> YcmdClient:
    """Get or create the client."""
    global _client
    if _client is None:
        _client = YcmdClient()
    return _client


def set_client(client: YcmdClient | None):
    global _client
    _client = client


async def ensure_connected() -> YcmdClient:
    """Start the server if it is not already connected."""
    client = get_client()
    if not client.connected:
        await asyncio.to_thread(client.initialize)
    return client


def format_result(result: dict) -> str:
    """Format result dict as TOON for token efficiency."""
    if "error" in result:
        return f"Error: {result['error']}"
    return toon_encode(result)


def _read_contents(filePath: str, contents: str | None) -> str:
    if contents is not None:
        return contents
    return Path(filePath).read_text(encoding="utf-8", errors="surrogateescape")


@mcp.tool()
async def server_status() -> str:
    """Report whether the ycmd server is running and connected."""
    return format_result(get_client().status())


@mcp.tool()
async def restart_server() -> str:
    """Restart the ycmd server with a fresh port and options file."""
    client = get_client()
    await asyncio.to_thread(client.restart_server)
    return format_result(client.status())


@mcp.tool()
async def complete(filePath: str, line: int, column: int, contents: str | None = None) -> str:
    """
    Get code completions at a position.

    Args:
        filePath: Absolute path to the source file
        line: Line number (1-indexed)
        column: Column number (0-indexed)
        contents: Unsaved buffer text (default: read the file)
    """
    client = await ensure_connected()
    if not client.connected:
        return format_result({"error": "ycmd server is not connected"})
    try:
        text = _read_contents(filePath, contents)
    except OSError as e:
        return format_result({"error": f"Error reading file: {e}"})

    result = await asyncio.to_thread(client.completions, line, column, filePath, text)
    if result.integrity_failed:
        return format_result({"error": "response failed HMAC verification; results discarded"})
    if not result.ok:
        return format_result({"error": f"completion request failed (status {result.status_code})"})
    return format_result({
        "start_column": result.start_column,
        "completions": [{"key": key, "text": text} for key, text in client.menu.items()],
    })


@mcp.tool()
async def select_completion(letter: str, line: str, column: int) -> str:
    """
    Accept a completion from the last completion list.

    Args:
        letter: Selector letter A-Z
        line: Current text of the line being edited
        column: Cursor column (0-indexed)
    """
    client = get_client()
    splice = client.select_completion(letter, line, column)
    if splice is None:
        return format_result({"error": f"no completion under {letter!r}"})
    return format_result({"line": splice.line, "column": splice.cursor_x, "inserted": splice.inserted})


@mcp.tool()
async def notify(event: str, filePath: str, line: int, column: int, contents: str | None = None) -> str:
    """
    Send an editor event to ycmd.

    Args:
        event: FileReadyToParse, BufferUnload, BufferVisit or CurrentIdentifierFinished
        filePath: Absolute path to the source file
        line: Line number (1-indexed)
        column: Column number (0-indexed)
        contents: Unsaved buffer text (default: read the file)
    """
    if event not in EVENTS:
        return format_result({"error": f"unknown event {event!r}; expected one of {sorted(EVENTS)}"})
    client = await ensure_connected()
    try:
        text = _read_contents(filePath, contents)
    except OSError as e:
        return format_result({"error": f"Error reading file: {e}"})

    handler = getattr(client, EVENTS[event])
    result = await asyncio.to_thread(handler, line, column, filePath, text)
    ok = result.ok if hasattr(result, "ok") else bool(result)
    return format_result({"event": event, "ok": ok})


def cleanup():
    """Stop the server and wipe the secret."""
    global _client
    if _client is not None:
        _client.destroy()
        _client = None


def main():
    """Run the MCP server."""
    print("Starting ycmd MCP Bridge Server", file=sys.stderr)
    try:
        mcp.run()
    finally:
        cleanup()


if __name__ == "__main__":
    main()
