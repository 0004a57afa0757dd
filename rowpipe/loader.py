"""Request sequence loader and strict configuration validation."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import yaml

from rowpipe.exceptions import ValidationError, ConfigValidationError
from rowpipe.pipeline.conditions import KNOWN_OPERATORS, parse_condition
from rowpipe.types import Condition, ExtractionSpec, HttpMethod, RequestSequence, RequestStep

logger = logging.getLogger(__name__)


class PreservingLoader(yaml.SafeLoader):
    """Custom YAML loader that keeps words like 'on', 'off', 'yes', 'no' and dates as strings."""
    pass


# Drop the implicit bool resolvers for YAML 1.1 words so payload values like
# "on" or "no" survive; true/false are re-added below. Timestamps are dropped
# too so dates such as 2024-01-01 stay strings in JSON bodies.
DROPPED_TAGS = {'tag:yaml.org,2002:bool', 'tag:yaml.org,2002:timestamp'}
PreservingLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in DROPPED_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
PreservingLoader.add_implicit_resolver(
    'tag:yaml.org,2002:bool',
    re.compile(r'^(?:true|True|TRUE|false|False|FALSE)$'),
    list('tTfF')
)


class RequestSequenceLoader:
    """Loads and validates request sequence configuration (JSON or YAML)."""

    TOP_LEVEL_FIELDS = {'requests', 'arrayFields', 'headers'}
    STEP_FIELDS = {
        'name', 'method', 'endpoint', 'payloadTemplate', 'condition',
        'forEachSecondaryRow', 'extractFromResponse', 'headers'
    }
    # Single-step form: step fields at the top level, no 'requests' wrapper
    LEGACY_FIELDS = STEP_FIELDS

    def __init__(self):
        """Initialize loader."""
        self.errors: List[ValidationError] = []

    def load(self, config_path: Path) -> RequestSequence:
        """Load and validate a configuration file."""
        config_path = Path(config_path)
        self.errors = []
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if config_path.suffix.lower() == '.json':
                    config = json.load(f)
                else:
                    config = yaml.load(f, Loader=PreservingLoader)
        except (OSError, ValueError, yaml.YAMLError) as e:
            self._add_error(f"Failed to load configuration: {e}")
            self._raise_validation_errors()

        return self.load_dict(config)

    def load_dict(self, config: Any) -> RequestSequence:
        """Validate an already parsed configuration."""
        self.errors = []

        if config is None or not isinstance(config, dict):
            self._add_error("Configuration must be a JSON/YAML object")
            self._raise_validation_errors()

        legacy = 'requests' not in config
        if legacy:
            # Legacy single-step form, normalized to a one-element list
            if 'payloadTemplate' not in config:
                self._add_error("Configuration must contain a 'requests' list or a payloadTemplate object")
                self._raise_validation_errors()
            step_fields = {k: v for k, v in config.items() if k in self.LEGACY_FIELDS and k != 'headers'}
            raw_steps: Any = [step_fields]
            known_fields = self.LEGACY_FIELDS | (self.TOP_LEVEL_FIELDS - {'requests'})
        else:
            raw_steps = config['requests']
            known_fields = self.TOP_LEVEL_FIELDS

        for key in config.keys():
            if key not in known_fields:
                self._add_error(f"Unknown field '{key}' in configuration")

        array_fields = self._validate_array_fields(config.get('arrayFields', []))
        headers = self._validate_headers(config.get('headers', {}), "configuration")
        steps = self._validate_steps(raw_steps)

        if self.errors:
            self._raise_validation_errors()

        return RequestSequence(
            steps=tuple(steps),
            array_fields=tuple(array_fields),
            headers=headers
        )

    def _validate_array_fields(self, array_fields: Any) -> List[str]:
        if not isinstance(array_fields, list) or not all(isinstance(f, str) and f for f in array_fields):
            self._add_error("'arrayFields' must be a list of field names")
            return []
        return array_fields

    def _validate_headers(self, headers: Any, context: str) -> Dict[str, str]:
        if not isinstance(headers, dict):
            self._add_error(f"{context}: 'headers' must be a dictionary")
            return {}
        return {str(k): str(v) for k, v in headers.items()}

    def _validate_steps(self, steps: Any) -> List[RequestStep]:
        """Validate step definitions."""
        if not isinstance(steps, list):
            self._add_error("'requests' must be a list")
            return []
        if not steps:
            self._add_error("'requests' must not be empty")
            return []

        step_names = set()
        result = []

        for i, step in enumerate(steps):
            if not isinstance(step, dict):
                self._add_error(f"Request {i + 1} must be a dictionary")
                continue

            name = step.get('name')
            if name is None:
                # Positional label
                name = f"request_{i + 1}"
            elif not isinstance(name, str) or not name:
                self._add_error(f"Request {i + 1} name must be a non-empty string")
                name = f"request_{i + 1}"

            if name in step_names:
                self._add_error(f"Duplicate request name '{name}'")
            step_names.add(name)

            for key in step.keys():
                if key not in self.STEP_FIELDS:
                    self._add_error(f"Request '{name}': unknown field '{key}'")

            endpoint = step.get('endpoint')
            if endpoint is not None and not isinstance(endpoint, str):
                self._add_error(f"Request '{name}': endpoint must be a string")
                endpoint = None

            for_each = step.get('forEachSecondaryRow', False)
            if not isinstance(for_each, bool):
                self._add_error(f"Request '{name}': forEachSecondaryRow must be true or false")
                for_each = False

            result.append(RequestStep(
                name=name,
                method=self._validate_method(step.get('method'), name),
                endpoint=endpoint or None,
                payload=step.get('payloadTemplate'),
                condition=self._validate_condition(step.get('condition'), name),
                for_each_secondary_row=for_each,
                extractions=self._validate_extractions(step.get('extractFromResponse'), name),
                headers=self._validate_headers(step.get('headers', {}), f"Request '{name}'"),
            ))

        return result

    def _validate_method(self, method: Any, step_name: str) -> HttpMethod:
        """Absent or unrecognized methods default to POST."""
        if method is None:
            return HttpMethod.POST
        parsed = HttpMethod.parse(method)
        if parsed is None:
            logger.warning(f"Request '{step_name}': unsupported method {method!r}, using POST")
            return HttpMethod.POST
        return parsed

    def _validate_condition(self, condition: Any, step_name: str) -> Optional[Condition]:
        if condition is None:
            return None
        try:
            parsed = parse_condition(condition)
        except ValueError as e:
            self._add_error(f"Request '{step_name}': {e}")
            return None
        if parsed.operator not in KNOWN_OPERATORS:
            logger.warning(f"Request '{step_name}': unknown condition operator '{parsed.operator}' will always pass")
        return parsed

    def _validate_extractions(self, extract: Any, step_name: str) -> Tuple[ExtractionSpec, ...]:
        """Accept a single {field, jsonPath} mapping or a list of them."""
        if extract is None:
            return ()
        items = extract if isinstance(extract, list) else [extract]

        specs = []
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                self._add_error(f"Request '{step_name}': extractFromResponse[{i}] must be a dictionary")
                continue
            field_name = item.get('field')
            json_path = item.get('jsonPath')
            if not isinstance(field_name, str) or not field_name:
                self._add_error(f"Request '{step_name}': extractFromResponse[{i}] missing 'field'")
                continue
            if not isinstance(json_path, str) or not json_path:
                self._add_error(f"Request '{step_name}': extractFromResponse[{i}] missing 'jsonPath'")
                continue
            unknown = set(item) - {'field', 'jsonPath'}
            if unknown:
                self._add_error(f"Request '{step_name}': extractFromResponse[{i}] unknown fields {sorted(unknown)}")
            specs.append(ExtractionSpec(field=field_name, json_path=json_path))

        return tuple(specs)

    def _add_error(self, message: str, path: str = "", exit_code: int = 2):
        """Add validation error."""
        self.errors.append(ValidationError(message, path, exit_code))

    def _raise_validation_errors(self):
        """Raise ConfigValidationError with accumulated errors."""
        raise ConfigValidationError(self.errors)
