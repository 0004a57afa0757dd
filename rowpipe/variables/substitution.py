"""
Placeholder substitution implementation.
Handles $name resolution against extracted values and row columns.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set
from urllib.parse import quote

from .coercion import coerce_array_literal, coerce_value, to_text

logger = logging.getLogger(__name__)

# Sentinel for names absent from every layer (None is a legitimate value)
MISSING = object()

# encodeURIComponent leaves these unescaped
URL_SAFE_CHARS = "-_.!~*'()"


class LayeredLookup:
    """
    Two-or-more layer name lookup with explicit precedence.

    Layers are checked in order: extracted values first, so later steps can
    override row data with fresher results, then the secondary row (loop
    steps only), then the primary row.
    """

    def __init__(
        self,
        extracted: Mapping[str, Any],
        rows: Iterable[Mapping[str, Any]] = (),
        array_fields: Iterable[str] = ()
    ):
        """
        Initialize the lookup.

        Args:
            extracted: Values extracted by earlier steps
            rows: Row column mappings, most specific first
            array_fields: Names whose values are embedded array literals
        """
        self.extracted = extracted
        self.layers: List[Mapping[str, Any]] = [extracted, *rows]
        self.array_fields: Set[str] = set(array_fields)

    def get(self, name: str) -> Any:
        """
        Resolve a name to its typed value.

        Args:
            name: Placeholder name without the leading '$'

        Returns:
            Coerced value, or MISSING if no layer has it
        """
        if '.' in name:
            found = self._walk(self.extracted, name.split('.'))
            if found is not MISSING:
                return self._coerce(name, found)

        for layer in self.layers:
            if name in layer:
                return self._coerce(name, layer[name])

        return MISSING

    def _walk(self, obj: Any, parts: List[str]) -> Any:
        """Walk nested structures part by part; MISSING if any part is absent."""
        current = obj
        for part in parts:
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                return MISSING
        return current

    def _coerce(self, name: str, value: Any) -> Any:
        if name in self.array_fields:
            return coerce_array_literal(value, name)
        return coerce_value(value)


class PlaceholderResolver:
    """
    Substitutes $name placeholders in payload and endpoint templates.

    Payload templates: a string leaf equal to exactly "$name" is replaced by
    the typed value. Other strings pass through unchanged.

    Endpoint templates: every embedded $name token is replaced by the
    URL-encoded string form of its value.

    Unresolved names are left in place and logged as warnings.
    """

    # Whole-leaf placeholder in payload bodies
    LEAF_PATTERN = re.compile(r'^\$([A-Za-z_][^$]*)$')

    # Embedded placeholder in endpoint templates, handling escaped $$
    TOKEN_PATTERN = re.compile(r'(?<!\$)\$([A-Za-z_]\w*(?:\.\w+)*)')

    def __init__(self, array_fields: Iterable[str] = ()):
        """
        Initialize the resolver.

        Args:
            array_fields: Names coerced as embedded array literals
        """
        self.array_fields = list(array_fields)

    def build_lookup(
        self,
        extracted: Mapping[str, Any],
        row: Mapping[str, Any],
        secondary_row: Optional[Mapping[str, Any]] = None
    ) -> LayeredLookup:
        """
        Build a lookup from the available layers.

        Args:
            extracted: Values extracted by earlier steps
            row: Primary row columns
            secondary_row: Secondary row columns for loop steps

        Returns:
            LayeredLookup with extracted > secondary > primary precedence
        """
        rows = [secondary_row, row] if secondary_row is not None else [row]
        return LayeredLookup(extracted, rows, self.array_fields)

    def resolve_payload(self, template: Any, lookup: LayeredLookup) -> Any:
        """
        Produce a substituted copy of a payload template.

        The template itself is never modified.

        Args:
            template: String, list, dict or scalar template
            lookup: Layered name lookup

        Returns:
            Fresh structure with placeholders replaced
        """
        return self._resolve_tree(template, lookup)

    def _resolve_tree(self, value: Any, lookup: LayeredLookup) -> Any:
        if isinstance(value, dict):
            return {k: self._resolve_tree(v, lookup) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._resolve_tree(item, lookup) for item in value]
        elif isinstance(value, str):
            return self._resolve_leaf(value, lookup)
        else:
            # Non-string scalars pass through unchanged
            return value

    def _resolve_leaf(self, text: str, lookup: LayeredLookup) -> Any:
        if text.startswith('$$'):
            # Escaped literal dollar
            return text[1:]

        match = self.LEAF_PATTERN.match(text)
        if not match:
            return text

        name = match.group(1)
        value = lookup.get(name)
        if value is MISSING:
            self._warn_unresolved(name)
            return text
        return value

    def resolve_endpoint(self, template: str, lookup: LayeredLookup) -> str:
        """
        Substitute embedded placeholders in an endpoint template.

        Args:
            template: URL template such as "https://api/acct/$acctId"
            lookup: Layered name lookup

        Returns:
            URL with resolved values percent-encoded
        """
        # First handle escape sequences: $$ -> $
        text = template.replace('$$', '\x00')

        def replace_token(match):
            name = match.group(1)
            value = lookup.get(name)
            if value is MISSING:
                self._warn_unresolved(name)
                return match.group(0)
            return quote(to_text(value), safe=URL_SAFE_CHARS)

        result = self.TOKEN_PATTERN.sub(replace_token, text)

        return result.replace('\x00', '$')

    def resolve_operand(self, operand: Any, lookup: LayeredLookup) -> Any:
        """
        Resolve a condition operand.

        A "$name" operand resolves through the lookup (None when missing);
        anything else is returned unchanged.
        """
        if isinstance(operand, str):
            match = self.LEAF_PATTERN.match(operand)
            if match:
                value = lookup.get(match.group(1))
                return None if value is MISSING else value
        return operand

    def _warn_unresolved(self, name: str):
        logger.warning(f"Unresolved placeholder '${name}': not found in extracted values or row")


def find_placeholders(value: Any) -> Dict[str, None]:
    """
    Collect placeholder names used by a template, in first-seen order.

    Args:
        value: Payload or endpoint template

    Returns:
        Ordered dict of names (values unused)
    """
    names: Dict[str, None] = {}
    if isinstance(value, dict):
        for v in value.values():
            names.update(find_placeholders(v))
    elif isinstance(value, list):
        for item in value:
            names.update(find_placeholders(item))
    elif isinstance(value, str):
        match = PlaceholderResolver.LEAF_PATTERN.match(value)
        if match and not value.startswith('$$'):
            names[match.group(1)] = None
        else:
            for token in PlaceholderResolver.TOKEN_PATTERN.finditer(value.replace('$$', '\x00')):
                names[token.group(1)] = None
    return names
