"""
Execution module for rowpipe.
Handles HTTP transport and request step execution.
"""

from .transport import HttpTransport, DryRunTransport, HttpResponse, TransportError
from .step_executor import RequestStepExecutor

__all__ = [
    "HttpTransport",
    "DryRunTransport",
    "HttpResponse",
    "TransportError",
    "RequestStepExecutor",
]
