"""
ycmd-ide - HTTP transport

One signed request out, one (possibly unverified) response back. Nothing here
retries; the caller decides what a failure means.
"""

import logging
from dataclasses import dataclass, field

import requests

from .errors import TransportError
from .hmac_auth import HMAC_HEADER, Authenticator

logger = logging.getLogger(__name__)

CHUNK_SIZE = 512
JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class RequestEnvelope:
    method: str
    path: str
    body: str = ""
    params: dict = field(default_factory=dict)

    @property
    def idempotent(self) -> bool:
        return self.method in ("GET", "HEAD")


@dataclass
class ResponseEnvelope:
    status_code: int
    body: bytes = b""
    remote_digest: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def read_all(response, chunk_size: int = CHUNK_SIZE) -> bytes:
    """Accumulate a streamed response body.

    Only 2xx responses are read. A read error or running out of memory ends
    accumulation early and returns what was collected so far.
    """
    buffer = bytearray()
    if response.status_code // 100 != 2:
        logger.debug("Status %s is not success; discarding body", response.status_code)
        return bytes(buffer)
    try:
        for chunk in response.iter_content(chunk_size=chunk_size):
            if not chunk:
                break
            buffer.extend(chunk)
    except requests.RequestException as e:
        logger.debug("Response read stopped after %d bytes: %s", len(buffer), e)
    except MemoryError:
        logger.warning("Out of memory growing response buffer at %d bytes", len(buffer))
    return bytes(buffer)


def issue(
    http: requests.Session,
    base_url: str,
    authenticator: Authenticator,
    envelope: RequestEnvelope,
    timeout: float,
    sign: bool = True,
) -> ResponseEnvelope:
    """Send `envelope` once and collect the response.

    Raises TransportError on connection failures and timeouts.
    """
    headers = {}
    if not envelope.idempotent:
        headers["content-type"] = JSON_CONTENT_TYPE
    if sign:
        headers[HMAC_HEADER] = authenticator.sign_request(
            envelope.method, envelope.path, envelope.body
        )

    url = f"{base_url}{envelope.path}"
    data = envelope.body.encode("utf-8") if envelope.body else None
    try:
        response = http.request(
            envelope.method,
            url,
            params=envelope.params or None,
            data=data,
            headers=headers,
            timeout=timeout,
            stream=True,
        )
    except requests.RequestException as e:
        raise TransportError(f"{envelope.method} {envelope.path} failed: {e}") from e

    try:
        body = read_all(response)
        remote_digest = response.headers.get(HMAC_HEADER)
        status_code = response.status_code
    finally:
        response.close()

    logger.debug("%s %s -> %s (%d bytes)", envelope.method, envelope.path, status_code, len(body))
    return ResponseEnvelope(status_code=status_code, body=body, remote_digest=remote_digest)


def check_healthy(
    http: requests.Session,
    base_url: str,
    authenticator: Authenticator,
    timeout: float,
    params: dict | None = None,
) -> bool:
    """GET /healthy; True on HTTP 200."""
    envelope = RequestEnvelope("GET", "/healthy", "", params or {})
    try:
        response = issue(http, base_url, authenticator, envelope, timeout)
    except TransportError as e:
        logger.debug("Health check failed: %s", e)
        return False
    return response.ok
