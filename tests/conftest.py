"""Shared fixtures: a transport that records calls instead of sending them."""

from typing import Any, Dict, List, Optional

import pytest

from rowpipe.exec.transport import HttpResponse, TransportError


class RecordingTransport:
    """Replays queued responses and records every call made."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.responses: List[Any] = []
        self.closed = False

    def queue(self, *responses: Any):
        """Queue HttpResponse objects or TransportError instances, in call order."""
        self.responses.extend(responses)

    def send(self, method: str, url: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> HttpResponse:
        self.calls.append({"method": method, "url": url, "body": body, "headers": headers})
        if not self.responses:
            return HttpResponse(status_code=200, body={})
        response = self.responses.pop(0)
        if isinstance(response, TransportError):
            raise response
        return response

    def close(self):
        self.closed = True


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture(autouse=True)
def _restore_root_handler_filters():
    """Undo masking filters a CLI run attaches to the root logger's handlers.

    pytest reuses its log-capture handlers across tests, so filters installed
    by one test would otherwise leak into the captured logs of later ones.
    """
    import logging

    root = logging.getLogger()
    saved = {handler: list(handler.filters) for handler in root.handlers}
    yield
    for handler in root.handlers:
        if handler in saved:
            handler.filters[:] = saved[handler]
