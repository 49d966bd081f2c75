#!/usr/bin/env python3
"""
ycmd-ide - Stub completion server

A small stand-in for ycmd that speaks the same HMAC-authenticated HTTP
protocol. It accepts ycmd's command line, so the supervisor can launch it in
place of the real server during development and in the end-to-end tests.

Usage:
    python -m ycmd_ide.stub_server --port 8765 --options_file /tmp/opts.json \\
        [--idle_suicide_seconds 600] [--stdout /dev/null] [--stderr /dev/null]

Endpoints:
    GET  /healthy                       - true
    GET  /ready?subserver=<filetype>    - true
    POST /event_notification            - {}
    POST /completions                   - identifier completions from the buffer
    POST /load_extra_conf_file          - true
    POST /ignore_extra_conf_file        - true
    POST /semantic_completer_available  - false

Environment (test hooks):
    YCMD_STUB_COMPLETIONS   - raw JSON body returned by /completions
    YCMD_STUB_TAMPER_HMAC   - 1 to sign every response with a wrong digest
    YCMD_STUB_UNHEALTHY     - 1 to answer /healthy with HTTP 500
"""

import argparse
import asyncio
import base64
import hashlib
import hmac
import json
import logging
import os
import re
import sys
import time
from pathlib import Path

from aiohttp import web

HMAC_HEADER = "X-Ycm-Hmac"
IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

logger = logging.getLogger("ycmd_ide.stub_server")


def _hmac(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha256).digest()


def request_hmac(key: bytes, method: str, path: str, body: bytes) -> str:
    joined = _hmac(key, method.encode()) + _hmac(key, path.encode()) + _hmac(key, body)
    return base64.b64encode(_hmac(key, joined)).decode("ascii")


def response_hmac(key: bytes, body: bytes) -> str:
    return base64.b64encode(_hmac(key, body)).decode("ascii")


def identifier_completions(contents: str, line_num: int, column_num: int, limit: int = 10) -> dict:
    """Complete the identifier before the cursor from identifiers in the buffer."""
    lines = contents.split("\n")
    line = lines[line_num - 1] if 0 < line_num <= len(lines) else ""
    cursor = max(0, min(column_num - 1, len(line)))
    start = cursor
    while start > 0 and (line[start - 1].isalnum() or line[start - 1] == "_"):
        start -= 1
    prefix = line[start:cursor]

    seen = []
    for word in IDENTIFIER.findall(contents):
        if word != prefix and word.startswith(prefix) and word not in seen:
            seen.append(word)
    seen.sort(key=lambda w: (len(w), w))

    return {
        "completions": [
            {"insertion_text": word, "extra_menu_info": "[ID]"} for word in seen[:limit]
        ],
        "completion_start_column": start + 1,
        "errors": [],
    }


class StubYcmdServer:
    def __init__(self, port: int, options: dict, idle_suicide_seconds: int = 0):
        self.port = port
        self.options = options
        self.secret = base64.b64decode(options["hmac_secret"])
        self.idle_suicide_seconds = idle_suicide_seconds
        self._last_request = time.monotonic()
        self._request_count = 0
        self._shutdown = asyncio.Event()
        self.app = web.Application(middlewares=[self._authenticate])
        self._setup_routes()

    def _setup_routes(self):
        self.app.router.add_get("/healthy", self.handle_healthy)
        self.app.router.add_get("/ready", self.handle_ready)
        self.app.router.add_post("/event_notification", self.handle_event_notification)
        self.app.router.add_post("/completions", self.handle_completions)
        self.app.router.add_post("/load_extra_conf_file", self.handle_extra_conf)
        self.app.router.add_post("/ignore_extra_conf_file", self.handle_extra_conf)
        self.app.router.add_post("/semantic_completer_available", self.handle_semantic_available)

    def _signed_response(self, body: bytes, status: int = 200) -> web.Response:
        digest = response_hmac(self.secret, body)
        if os.environ.get("YCMD_STUB_TAMPER_HMAC") == "1":
            digest = response_hmac(b"not-the-secret", body)
        return web.Response(
            body=body,
            status=status,
            content_type="application/json",
            headers={HMAC_HEADER: digest},
        )

    def _json_response(self, data, status: int = 200) -> web.Response:
        return self._signed_response(json.dumps(data).encode("utf-8"), status=status)

    @web.middleware
    async def _authenticate(self, request: web.Request, handler):
        self._last_request = time.monotonic()
        self._request_count += 1
        body = await request.read()
        expected = request_hmac(self.secret, request.method, request.path, body)
        received = request.headers.get(HMAC_HEADER, "")
        if not hmac.compare_digest(expected.encode(), received.encode()):
            logger.warning("Rejected %s %s: bad HMAC", request.method, request.path)
            return self._json_response({"message": "Unauthorized, received bad HMAC."}, status=401)
        return await handler(request)

    async def _get_json_body(self, request: web.Request) -> dict:
        try:
            return json.loads(await request.read())
        except json.JSONDecodeError:
            return {}

    # --- Endpoints ---

    async def handle_healthy(self, request: web.Request) -> web.Response:
        if os.environ.get("YCMD_STUB_UNHEALTHY") == "1":
            return self._json_response(False, status=500)
        return self._json_response(True)

    async def handle_ready(self, request: web.Request) -> web.Response:
        return self._json_response(True)

    async def handle_event_notification(self, request: web.Request) -> web.Response:
        body = await self._get_json_body(request)
        logger.info("Event %s for %s", body.get("event_name"), body.get("filepath"))
        return self._json_response({})

    async def handle_completions(self, request: web.Request) -> web.Response:
        canned = os.environ.get("YCMD_STUB_COMPLETIONS")
        if canned:
            return self._signed_response(canned.encode("utf-8"))

        body = await self._get_json_body(request)
        filepath = body.get("filepath", "")
        file_data = body.get("file_data", {}).get(filepath, {})
        result = identifier_completions(
            file_data.get("contents", ""),
            int(body.get("line_num", 1)),
            int(body.get("column_num", 1)),
            int(self.options.get("max_num_identifier_candidates", 10)),
        )
        return self._json_response(result)

    async def handle_extra_conf(self, request: web.Request) -> web.Response:
        return self._json_response(True)

    async def handle_semantic_available(self, request: web.Request) -> web.Response:
        return self._json_response(False)

    async def _watch_idle(self):
        while not self._shutdown.is_set():
            await asyncio.sleep(1)
            idle = time.monotonic() - self._last_request
            if idle > self.idle_suicide_seconds:
                logger.info("Idle for %ds, shutting down", int(idle))
                self._shutdown.set()

    async def run(self):
        """Run the HTTP server until idle suicide."""
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, "127.0.0.1", self.port)
        await site.start()
        logger.info("Ready! Listening on http://127.0.0.1:%d", self.port)

        watcher = None
        if self.idle_suicide_seconds > 0:
            watcher = asyncio.create_task(self._watch_idle())
        try:
            await self._shutdown.wait()
        finally:
            if watcher:
                watcher.cancel()
            await runner.cleanup()


def load_options(path: str) -> dict:
    """Read the options file and delete it, as ycmd does."""
    options_file = Path(path)
    options = json.loads(options_file.read_text())
    options_file.unlink(missing_ok=True)
    return options


def _redirect(stream_name: str, path: str | None):
    if path:
        setattr(sys, stream_name, open(path, "a"))


async def main():
    parser = argparse.ArgumentParser(description="Stub ycmd server speaking the HMAC protocol")
    parser.add_argument("--port", type=int, required=True, help="HTTP port")
    parser.add_argument("--options_file", type=str, required=True, help="JSON options file (deleted on read)")
    parser.add_argument("--idle_suicide_seconds", type=int, default=0, help="Exit after this long without requests")
    parser.add_argument("--stdout", type=str, default=None, help="Redirect stdout to this file")
    parser.add_argument("--stderr", type=str, default=None, help="Redirect stderr to this file")
    args = parser.parse_args()

    _redirect("stdout", args.stdout)
    _redirect("stderr", args.stderr)
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    server = StubYcmdServer(args.port, load_options(args.options_file), args.idle_suicide_seconds)
    await server.run()


if __name__ == "__main__":
    asyncio.run(main())
