"""
Response field extraction.
Copies values at dot paths in a response body into the row's extracted values.
"""

import logging
from typing import Any, Dict, Iterable, MutableMapping, Optional, Tuple

from ..types import ExtractionSpec

logger = logging.getLogger(__name__)


class ResponseExtractor:
    """
    Resolves dot paths against response bodies following the grammar:
    - key              - top-level field
    - key.nested.path  - nested object fields
    - items.0.id       - numeric parts index into arrays

    Extraction failures never abort the row: the field is set to None
    and a warning is logged.
    """

    def extract(
        self,
        body: Any,
        specs: Iterable[ExtractionSpec],
        extracted: MutableMapping[str, Any],
        step_name: str = ""
    ) -> Dict[str, Any]:
        """
        Apply extraction specs to a response body.

        Each extraction is applied independently; a failure in one does not
        block the others.

        Args:
            body: Parsed response body
            specs: Extraction specs for the step
            extracted: Mapping updated in place
            step_name: Step name for log messages

        Returns:
            The (field, value) pairs written
        """
        written: Dict[str, Any] = {}

        for spec in specs:
            found, value, error = self.resolve_safe(body, spec.json_path)
            if not found:
                logger.warning(
                    f"Step '{step_name}': could not extract '{spec.json_path}' into '{spec.field}': {error}. Using null"
                )
                value = None
            elif value is None:
                logger.warning(
                    f"Step '{step_name}': '{spec.json_path}' is null in the response; '{spec.field}' set to null"
                )
            else:
                logger.debug(f"Step '{step_name}': extracted '{spec.json_path}' into '{spec.field}': {value!r}")

            extracted[spec.field] = value
            written[spec.field] = value

        return written

    def resolve(self, body: Any, path: str) -> Any:
        """
        Resolve a dot path within a response body.

        Args:
            body: Parsed response body
            path: Dot path like "data.account.id"

        Returns:
            Value at the path

        Raises:
            ValueError: If a key is missing or an intermediate value is not a container
        """
        parts = [part for part in path.split('.') if part]
        if not parts:
            raise ValueError(f"Invalid extraction path: '{path}'")

        current = body
        for i, part in enumerate(parts):
            walked = '.'.join(parts[:i]) or '<body>'
            if current is None:
                raise ValueError(f"'{walked}' is null")
            if isinstance(current, dict):
                if part not in current:
                    raise ValueError(f"missing key '{part}'")
                current = current[part]
            elif isinstance(current, list):
                if not part.isdigit() or int(part) >= len(current):
                    raise ValueError(f"'{walked}' has no index '{part}'")
                current = current[int(part)]
            else:
                raise ValueError(f"'{walked}' is not an object")

        return current

    def resolve_safe(self, body: Any, path: str) -> Tuple[bool, Any, Optional[str]]:
        """
        Safely resolve a path, returning success status and error message.

        Args:
            body: Parsed response body
            path: Dot path to resolve

        Returns:
            (success, value, error_message) tuple
        """
        try:
            value = self.resolve(body, path)
            return True, value, None
        except ValueError as e:
            return False, None, str(e)
