#!/usr/bin/env python3
"""
ycmd-ide - Client

Editor-facing API for a supervised ycmd server. Every public call returns a
success flag (or a CompletionResult) instead of raising; the reason for the
last failure is kept in `last_error` so an integrity failure can be told
apart from the server simply being unreachable.

Lines are 1-based. Columns are the host's 0-based cursor column and are
converted to ycmd's convention before sending (see filetypes.server_column).
"""

import atexit
import json
import logging
from dataclasses import dataclass, field

from . import payloads
from .completion import CompletionMenu, Splice
from .config import Settings
from .errors import (
    IntegrityError,
    PortExhaustionError,
    ProtocolParseError,
    SpawnFailure,
    TransportError,
    YcmdError,
)
from .filetypes import classify, server_column
from .hmac_auth import Authenticator
from .secret import Secret, crypto_self_check, generate_degraded
from .supervisor import ServerSupervisor
from .transport import RequestEnvelope, ResponseEnvelope, issue

logger = logging.getLogger(__name__)

# Event names understood by /event_notification
FILE_READY_TO_PARSE = "FileReadyToParse"
BUFFER_UNLOAD = "BufferUnload"
BUFFER_VISIT = "BufferVisit"
CURRENT_IDENTIFIER_FINISHED = "CurrentIdentifierFinished"

DEFAULT_COMPLETER_TARGET = "filetype_default"


@dataclass
class CompletionResult:
    ok: bool
    status_code: int = 0
    candidates: list[str] = field(default_factory=list)
    start_column: int | None = None
    error: YcmdError | None = None

    @property
    def integrity_failed(self) -> bool:
        return isinstance(self.error, IntegrityError)


def document_text(contents) -> str:
    """Accept either the full text or the buffer's lines."""
    if isinstance(contents, str):
        return contents
    return "\n".join(contents)


def parse_completions(body: bytes) -> tuple[list[str], int]:
    """Pull insertion texts and the start column out of a /completions body."""
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolParseError(f"completions response is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolParseError("completions response is not an object")
    if "completions" not in data or "completion_start_column" not in data:
        raise ProtocolParseError("completions response is missing required fields")

    start_column = data["completion_start_column"]
    if not isinstance(start_column, int) or isinstance(start_column, bool):
        raise ProtocolParseError("completion_start_column is not an integer")

    completions = data["completions"]
    if not isinstance(completions, list):
        raise ProtocolParseError("completions is not a list")

    texts = []
    for candidate in completions:
        if not isinstance(candidate, dict) or not isinstance(candidate.get("insertion_text"), str):
            raise ProtocolParseError("completion candidate has no insertion_text")
        texts.append(candidate["insertion_text"])
    return texts, start_column


class YcmdClient:
    def __init__(
        self,
        settings: Settings | None = None,
        secret: Secret | None = None,
        supervisor: ServerSupervisor | None = None,
        **supervisor_options,
    ):
        # The only error allowed to escape the client.
        crypto_self_check()

        self.settings = settings or Settings.from_env()
        self.secret = secret or generate_degraded(self.settings.entropy_source)
        self.authenticator = Authenticator(self.secret)
        self.supervisor = supervisor or ServerSupervisor(
            self.settings, self.secret, self.authenticator, **supervisor_options
        )
        self.menu = CompletionMenu(self.settings.visible_rows)
        self.last_error: YcmdError | None = None
        self._destroyed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.destroy()

    # --- Lifecycle ---

    @property
    def running(self) -> bool:
        return self.supervisor.running

    @property
    def connected(self) -> bool:
        return self.supervisor.connected

    def initialize(self) -> bool:
        """Restart the server until it connects, up to init_restart_attempts.

        A destroyed client has no secret left and never starts a server.
        """
        if self._destroyed:
            logger.warning("initialize() called on a destroyed client")
            return False
        atexit.register(self.destroy)
        for attempt in range(1, self.settings.init_restart_attempts + 1):
            if self.connected:
                break
            logger.debug("Server start attempt %d", attempt)
            self.restart_server()
        if not self.connected:
            logger.error("Could not connect to ycmd; check YCMD_IDE_YCMD_PATH and YCMD_IDE_PYTHON")
        return self.connected

    def restart_server(self) -> bool:
        try:
            return self.supervisor.restart()
        except (PortExhaustionError, SpawnFailure) as e:
            self._record(e)
            return False

    def stop_server(self):
        self.supervisor.stop()
        self.menu.clear()

    def destroy(self):
        """Wipe the secret and stop the server. Safe to call more than once."""
        if self._destroyed:
            return
        self._destroyed = True
        atexit.unregister(self.destroy)
        self.menu.clear()
        self.supervisor.destroy()

    def status(self) -> dict:
        status = self.supervisor.status()
        status["completions"] = [{"key": key, "text": text} for key, text in self.menu.items()]
        status["apply_column"] = self.menu.apply_column
        status["last_error"] = str(self.last_error) if self.last_error else None
        return status

    def _record(self, error: YcmdError):
        self.last_error = error
        if isinstance(error, IntegrityError):
            logger.error("%s", error)
        else:
            logger.warning("%s", error)

    # --- Transport ---

    def issue(self, method: str, path: str, body: str = "", params: dict | None = None) -> ResponseEnvelope:
        """Send one signed request through the supervised session.

        Raises TransportError; the response body is not verified here.
        """
        session = self.supervisor.session
        if session.http is None:
            raise TransportError("no open session to the server")
        if self.authenticator.released:
            raise TransportError("HMAC secret has been released")
        envelope = RequestEnvelope(method, path, body, params or {})
        return issue(session.http, session.base_url, self.authenticator, envelope, self.settings.read_timeout)

    def _request(self, method: str, path: str, body: str = "", params: dict | None = None) -> ResponseEnvelope | None:
        try:
            return self.issue(method, path, body, params)
        except TransportError as e:
            self._record(e)
            return None

    def _verified(self, response: ResponseEnvelope) -> bool:
        try:
            self.authenticator.check_response(response.body, response.remote_digest)
        except IntegrityError as e:
            self._record(e)
            return False
        return True

    def _post(self, path: str, payload: dict) -> bool:
        response = self._request("POST", path, payloads.encode(payload))
        return response is not None and response.ok

    # --- Endpoints ---

    def is_healthy_simple(self) -> bool:
        response = self._request("GET", "/healthy")
        return response is not None and response.ok

    def is_healthy(self, include_subservers: bool = False) -> bool:
        params = {"include_subservers": "1" if include_subservers else "0"}
        response = self._request("GET", "/healthy", params=params)
        return response is not None and response.ok

    def is_server_ready(self, filetype: str) -> bool:
        """GET /ready for one subserver. The answer must carry a valid HMAC."""
        response = self._request("GET", "/ready", params={"subserver": filetype})
        if response is None or not response.ok:
            return False
        return self._verified(response)

    def event_notification(self, line: int, column: int, filepath: str, event_name: str, contents) -> bool:
        if not self.connected:
            return False
        contents = document_text(contents)
        filetype = classify(filepath, contents)
        payload = payloads.event_notification(
            line, server_column(column, filetype), filepath, event_name, contents, filetype
        )
        return self._post("/event_notification", payload)

    def completions(
        self,
        line: int,
        column: int,
        filepath: str,
        contents,
        completer_target: str = DEFAULT_COMPLETER_TARGET,
    ) -> CompletionResult:
        """Request completions and load them into the menu.

        An unverified response is discarded: the menu is left untouched and
        the result carries the IntegrityError.
        """
        if not self.connected:
            return CompletionResult(ok=False)
        contents = document_text(contents)
        filetype = classify(filepath, contents)
        payload = payloads.completions(
            line, server_column(column, filetype), filepath, contents, completer_target, filetype
        )

        response = self._request("POST", "/completions", payloads.encode(payload))
        if response is None:
            return CompletionResult(ok=False, error=self.last_error)
        if not response.ok:
            return CompletionResult(ok=False, status_code=response.status_code)
        if not self._verified(response):
            return CompletionResult(ok=False, status_code=response.status_code, error=self.last_error)

        try:
            candidates, start_column = parse_completions(response.body)
        except ProtocolParseError as e:
            self._record(e)
            return CompletionResult(ok=False, status_code=response.status_code, error=e)

        filled = self.menu.fill(candidates, start_column)
        if filled:
            logger.info("Code completion triggered (%d candidates)", filled)
        return CompletionResult(
            ok=True,
            status_code=response.status_code,
            candidates=self.menu.candidates,
            start_column=start_column,
        )

    def load_extra_conf_file(self, filepath: str) -> bool:
        if not self.connected:
            return False
        return self._post("/load_extra_conf_file", payloads.simple_request(0, 0, filepath))

    def ignore_extra_conf_file(self, filepath: str) -> bool:
        if not self.connected:
            return False
        return self._post("/ignore_extra_conf_file", payloads.simple_request(0, 0, filepath))

    def semantic_completion_available(self, line: int, column: int, filepath: str, contents) -> bool:
        if not self.connected:
            return False
        contents = document_text(contents)
        filetype = classify(filepath, contents)
        payload = payloads.simple_request(
            line, server_column(column, filetype), filepath, contents, filetype
        )
        return self._post("/semantic_completer_available", payload)

    # --- Editor events ---

    def _ready_for(self, filepath: str, contents: str) -> bool:
        # Ask for a signed readiness answer before sending any source.
        ready = self.is_server_ready(classify(filepath, contents))
        return self.running and ready

    def _event(self, event_name: str, line: int, column: int, filepath: str, contents) -> bool:
        if not self.connected:
            return False
        contents = document_text(contents)
        if not self._ready_for(filepath, contents):
            return False
        return self.event_notification(line, column, filepath, event_name, contents)

    def file_ready_to_parse(self, line: int, column: int, filepath: str, contents) -> CompletionResult:
        """Parse notification followed by a default completion request."""
        if not self.connected:
            return CompletionResult(ok=False)
        contents = document_text(contents)
        if not self._ready_for(filepath, contents):
            return CompletionResult(ok=False, error=self.last_error)

        self.load_extra_conf_file(filepath)
        self.event_notification(line, column, filepath, FILE_READY_TO_PARSE, contents)
        result = self.completions(line, column, filepath, contents, DEFAULT_COMPLETER_TARGET)
        self.ignore_extra_conf_file(filepath)
        return result

    def buffer_unload(self, line: int, column: int, filepath: str, contents) -> bool:
        return self._event(BUFFER_UNLOAD, line, column, filepath, contents)

    def buffer_visit(self, line: int, column: int, filepath: str, contents) -> bool:
        return self._event(BUFFER_VISIT, line, column, filepath, contents)

    def current_identifier_finished(self, line: int, column: int, filepath: str, contents) -> bool:
        return self._event(CURRENT_IDENTIFIER_FINISHED, line, column, filepath, contents)

    def select_completion(self, letter: str, line: str, cursor_x: int) -> Splice | None:
        """Accept the candidate under `letter` into the current line."""
        if not self.connected:
            return None
        return self.menu.accept(letter, line, cursor_x)
