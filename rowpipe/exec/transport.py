"""
HTTP transport for request steps.
Wraps a requests session carrying the JSON content type and API key headers.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "rowpipe/1.0"


@dataclass
class HttpResponse:
    """Status code and parsed body of a successful call."""
    status_code: int
    body: Any = None


class TransportError(Exception):
    """
    Raised on non-2xx responses and network failures.

    Attributes:
        status_code: HTTP status when a response was received
        body: Parsed response body when one was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


def new_session(api_key: str, headers: Optional[Dict[str, str]] = None) -> requests.Session:
    """Create a requests session with the default JSON and API key headers."""
    session = requests.Session()
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
        "Content-Type": "application/json",
        "x-api-key": api_key,
    })
    if headers:
        session.headers.update(headers)
    return session


def parse_body(response: requests.Response) -> Any:
    """Parse a response body as JSON, falling back to text (None when empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpTransport:
    """
    Sends one request at a time and returns the parsed JSON body.

    No retries and no timeout unless one is configured.
    """

    def __init__(
        self,
        api_key: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the transport.

        Args:
            api_key: Credential sent as the x-api-key header
            headers: Extra headers sent with every request
            timeout: Per-request timeout in seconds (None waits indefinitely)
            session: Pre-built session (default: new_session)
        """
        self.session = session or new_session(api_key, headers)
        self.timeout = timeout

    def send(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None
    ) -> HttpResponse:
        """
        Send a request.

        Args:
            method: HTTP verb
            url: Fully resolved URL
            body: JSON body, or None to send no body
            headers: Per-request header overrides

        Returns:
            HttpResponse for 2xx responses

        Raises:
            TransportError: On non-2xx responses or network failures
        """
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": self.timeout}
        if body is not None:
            kwargs["json"] = body

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"HTTP request failed for {url}: {e}") from e

        parsed = parse_body(response)
        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"HTTP {response.status_code} {response.reason or ''}".strip(),
                status_code=response.status_code,
                body=parsed,
            )

        return HttpResponse(status_code=response.status_code, body=parsed)

    def close(self):
        self.session.close()


class DryRunTransport:
    """Logs resolved requests instead of sending them."""

    def __init__(self):
        self.requests_logged = 0

    def send(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None
    ) -> HttpResponse:
        self.requests_logged += 1
        logger.info(f"[DRY RUN] {method} {url}")
        if body is not None:
            logger.info(f"[DRY RUN] Payload: {json.dumps(body, indent=2, default=str)}")
        return HttpResponse(status_code=200, body=None)

    def close(self):
        pass
