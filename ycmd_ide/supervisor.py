#!/usr/bin/env python3
"""
ycmd-ide - Server supervisor

Owns the one ycmd child process: picks a port, writes the options file,
spawns the server, waits for it to answer health checks, and tears all of it
down again. State moves STOPPED -> STARTING -> HEALTHY | FAILED -> STOPPED.
"""

import logging
import subprocess
import time
from dataclasses import dataclass
from enum import Enum

import requests

from .config import Settings
from .errors import PortExhaustionError, SpawnFailure
from .hmac_auth import Authenticator
from .options import default_options, remove_options_file, write_options_file
from .ports import find_unused_port
from .secret import Secret
from .transport import check_healthy

logger = logging.getLogger(__name__)

KILL_WAIT_TIMEOUT = 5  # seconds to reap a killed child


class ServerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    HEALTHY = "healthy"
    FAILED = "failed"


@dataclass
class ServerSession:
    """Live state of the supervised server. Only the supervisor mutates it."""
    scheme: str = "http"
    host: str = "127.0.0.1"
    port: int = 0
    process: subprocess.Popen | None = None
    http: requests.Session | None = None
    options_path: str | None = None
    running: bool = False
    connected: bool = False
    state: ServerState = ServerState.STOPPED

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None


class ServerSupervisor:
    def __init__(
        self,
        settings: Settings,
        secret: Secret,
        authenticator: Authenticator | None = None,
        popen=subprocess.Popen,
        sleep=time.sleep,
        port_finder=find_unused_port,
    ):
        self.settings = settings
        self.secret = secret
        self.authenticator = authenticator or Authenticator(secret)
        self.session = ServerSession(scheme=settings.scheme, host=settings.host)
        self._popen = popen
        self._sleep = sleep
        self._find_port = port_finder

    @property
    def running(self) -> bool:
        return self.session.running

    @property
    def connected(self) -> bool:
        return self.session.connected

    @property
    def state(self) -> ServerState:
        return self.session.state

    def is_alive(self) -> bool:
        """Non-blocking check that the child has not exited."""
        process = self.session.process
        return process is not None and process.poll() is None

    def is_healthy(self) -> bool:
        """Simple authenticated GET /healthy against the current session."""
        if self.session.http is None:
            return False
        return check_healthy(
            self.session.http,
            self.session.base_url,
            self.authenticator,
            self.settings.read_timeout,
        )

    def start(self) -> bool:
        """Start the server and poll it until healthy.

        Returns whether the server ended up connected. Raises
        PortExhaustionError or SpawnFailure when no server could be started;
        the session is back in STOPPED with nothing left behind in that case.
        """
        session = self.session
        if (
            session.state is not ServerState.STOPPED
            or session.process is not None
            or session.http is not None
            or session.options_path is not None
        ):
            self.stop()

        session.state = ServerState.STARTING
        try:
            session.port = self._find_port(self.settings.host)
            logger.info("Server will be running on %s", session.base_url)

            options = default_options(self.secret.base64, self.settings.tools)
            session.options_path = write_options_file(options)

            self._spawn()
            session.running = True
            session.http = requests.Session()
            # Loopback only: HTTP_PROXY and friends must not reroute the source text.
            session.http.trust_env = False

            self._sleep(self.settings.startup_delay)
            return self._wait_until_healthy()
        except BaseException:
            self.stop()
            raise

    def _spawn(self):
        session = self.session
        command = self.settings.server_command(session.port, session.options_path)
        logger.debug("Spawning server: %s", " ".join(command))
        try:
            session.process = self._popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnFailure(f"could not execute {command[0]}: {e}") from e

        returncode = session.process.poll()
        if returncode is not None:
            session.running = False
            raise SpawnFailure(
                f"server exited immediately with status {returncode}",
                returncode=returncode,
            )
        logger.info("Server process started (PID %s)", session.process.pid)

    def _wait_until_healthy(self) -> bool:
        session = self.session
        for attempt in range(1, self.settings.health_attempts + 1):
            if self.is_healthy():
                session.connected = True
                session.state = ServerState.HEALTHY
                logger.info("Connected to server after %d health check(s)", attempt)
                return True
            if not self.is_alive():
                logger.warning("Server process exited while waiting for it to become healthy")
                session.running = False
                break
            logger.debug("Health check %d/%d failed, retrying", attempt, self.settings.health_attempts)
            self._sleep(self.settings.health_interval)

        session.connected = False
        session.state = ServerState.FAILED
        logger.warning("Server did not become healthy on %s", session.base_url)
        return False

    def stop(self):
        """Release the HTTP session, options file and child. Idempotent."""
        session = self.session

        if session.http is not None:
            session.http.close()
            session.http = None

        remove_options_file(session.options_path)
        session.options_path = None

        if session.process is not None:
            process = session.process
            session.process = None
            if process.poll() is None:
                process.kill()
                logger.info("Killed server (PID %s)", process.pid)
            try:
                process.wait(timeout=KILL_WAIT_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.warning("Server (PID %s) did not exit after SIGKILL", process.pid)

        session.port = 0
        session.running = False
        session.connected = False
        session.state = ServerState.STOPPED

    def restart(self) -> bool:
        self.stop()
        return self.start()

    def destroy(self):
        """Final teardown: wipe the secret and stop the server."""
        self.secret.release()
        self.stop()

    def status(self) -> dict:
        session = self.session
        return {
            "state": session.state.value,
            "running": session.running,
            "connected": session.connected,
            "pid": session.pid,
            "port": session.port or None,
            "url": session.base_url if session.port else None,
        }
