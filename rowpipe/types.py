"""
Request sequence type definitions.

Steps are immutable once loaded; the engine only reads them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from enum import Enum


class HttpMethod(str, Enum):
    """Supported HTTP verbs."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def sends_body(self) -> bool:
        """GET and DELETE never carry a request body."""
        return self not in (HttpMethod.GET, HttpMethod.DELETE)

    @classmethod
    def parse(cls, value: Any) -> Optional["HttpMethod"]:
        """Return the matching method, or None when unrecognized."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class Condition:
    """
    Comparison deciding whether a step runs.

    Attributes:
        left: Left operand, literal or "$name"
        operator: One of >, >=, <, <=, ==, ===, !=, !==, exists, not_exists
        right: Right operand (unused by exists/not_exists)
        source: Original expression text, for logging
    """
    left: Any
    operator: str
    right: Any = None
    source: str = ""


@dataclass(frozen=True)
class ExtractionSpec:
    """Copy the value at json_path in the response body into field."""
    field: str
    json_path: str


@dataclass(frozen=True)
class RequestStep:
    """
    One entry in the request sequence.

    Attributes:
        name: Label used in logs and failure records
        method: HTTP verb
        endpoint: URL template; None means the global endpoint is required
        payload: Payload template (nested structure)
        condition: Optional gate evaluated before the step runs
        for_each_secondary_row: Repeat the call once per secondary row
        extractions: Fields to copy out of the response body
        headers: Extra request headers
    """
    name: str
    method: HttpMethod = HttpMethod.POST
    endpoint: Optional[str] = None
    payload: Any = None
    condition: Optional[Condition] = None
    for_each_secondary_row: bool = False
    extractions: Tuple[ExtractionSpec, ...] = ()
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RequestSequence:
    """
    Ordered request steps plus sequence-wide settings.

    Attributes:
        steps: Steps in execution order
        array_fields: Names coerced as embedded array literals
        headers: Extra headers sent with every request
    """
    steps: Tuple[RequestStep, ...]
    array_fields: Tuple[str, ...] = ()
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def uses_secondary_rows(self) -> bool:
        return any(step.for_each_secondary_row for step in self.steps)
