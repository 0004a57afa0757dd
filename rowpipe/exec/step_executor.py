"""
Step executor module for sending request steps and extracting results.
Implements endpoint/payload resolution, secondary-row loops and failure capture.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from ..exceptions import StepError, StepFailure
from ..interactive import Confirmer
from ..pipeline.extraction import ResponseExtractor
from ..sources import Row
from ..types import RequestStep
from ..variables.substitution import LayeredLookup, PlaceholderResolver
from .transport import TransportError

logger = logging.getLogger(__name__)


class RequestStepExecutor:
    """
    Executes request steps.
    Handles endpoint precedence, method body rules, secondary-row loops
    and response extraction.
    """

    def __init__(
        self,
        transport,
        resolver: Optional[PlaceholderResolver] = None,
        extractor: Optional[ResponseExtractor] = None,
        endpoint_override: Optional[str] = None,
        confirmer: Optional[Confirmer] = None
    ):
        """
        Initialize step executor.

        Args:
            transport: Object with send(method, url, body, headers) -> HttpResponse
            resolver: Placeholder resolver (default: no array fields)
            extractor: Response extractor
            endpoint_override: Global endpoint template replacing every step's own
            confirmer: Interactive gate consulted before each call
        """
        self.transport = transport
        self.resolver = resolver or PlaceholderResolver()
        self.extractor = extractor or ResponseExtractor()
        self.endpoint_override = endpoint_override or None
        self.confirmer = confirmer

    def execute(
        self,
        step: RequestStep,
        row: Row,
        extracted: Mapping[str, Any],
        secondary_rows: Optional[Sequence[Row]] = None
    ) -> Dict[str, Any]:
        """
        Execute one request step.

        Loop steps repeat the call once per secondary row; each repetition
        sees the fields extracted by the previous ones.

        Args:
            step: Step definition
            row: Primary row
            extracted: Values extracted by earlier steps (not modified)
            secondary_rows: Secondary table rows for loop steps

        Returns:
            Fields extracted by this step

        Raises:
            StepFailure: On configuration, HTTP or network errors
        """
        if not step.for_each_secondary_row:
            return self._dispatch(step, row, extracted)

        if secondary_rows is None:
            raise StepFailure(step.name, StepError(
                type='configuration',
                message="Step loops over secondary rows but no secondary table was supplied"
            ))

        working = dict(extracted)
        written: Dict[str, Any] = {}
        total = len(secondary_rows)
        for position, secondary_row in enumerate(secondary_rows, start=1):
            logger.info(f"Step '{step.name}': secondary row {position}/{total}")
            fields = self._dispatch(step, row, working, secondary_row)
            # Later repetitions overwrite fields set by earlier ones
            working.update(fields)
            written.update(fields)

        return written

    def _dispatch(
        self,
        step: RequestStep,
        row: Row,
        extracted: Mapping[str, Any],
        secondary_row: Optional[Row] = None
    ) -> Dict[str, Any]:
        """Resolve, send and extract one call."""
        lookup = self.resolver.build_lookup(
            extracted,
            row.values,
            secondary_row.values if secondary_row is not None else None
        )

        url = self.resolve_url(step, lookup)

        body = None
        if step.method.sends_body and step.payload is not None:
            body = self.resolver.resolve_payload(step.payload, lookup)

        logger.info(f"Step '{step.name}': {step.method.value} {url}")
        if body is not None:
            logger.debug(f"Step '{step.name}' payload: {json.dumps(body, indent=2, default=str)}")

        if self.confirmer is not None:
            if not self.confirmer.confirm(f"Send {step.method.value} {url}?"):
                logger.info(f"Step '{step.name}': call skipped by operator")
                return {}

        try:
            response = self.transport.send(step.method.value, url, body, headers=step.headers or None)
        except TransportError as e:
            raise StepFailure(step.name, StepError(
                type='http_error' if e.status_code is not None else 'network_error',
                message=str(e),
                status_code=e.status_code,
                body=e.body if e.body is not None else str(e)
            )) from e

        logger.info(f"Step '{step.name}': response {response.status_code}")
        if response.body is not None:
            logger.debug(f"Step '{step.name}' response data: {json.dumps(response.body, indent=2, default=str)}")

        written: Dict[str, Any] = {}
        if step.extractions:
            self.extractor.extract(response.body, step.extractions, written, step.name)
        return written

    def resolve_url(self, step: RequestStep, lookup: LayeredLookup) -> str:
        """
        Resolve the endpoint for a step.

        The global override, when set, replaces the step's own template.

        Raises:
            StepFailure: If no endpoint is configured or it resolves to an empty string
        """
        template = self.endpoint_override or step.endpoint
        if not template:
            raise StepFailure(step.name, StepError(
                type='configuration',
                message="No endpoint configured for step and no global endpoint supplied"
            ))

        url = self.resolver.resolve_endpoint(template, lookup).strip()
        if not url:
            raise StepFailure(step.name, StepError(
                type='configuration',
                message=f"Endpoint '{template}' resolved to an empty string"
            ))
        return url
