"""
Placeholder substitution module.
Implements typed coercion and layered $name resolution.
"""

from .coercion import coerce_value, coerce_array_literal
from .substitution import LayeredLookup, PlaceholderResolver, MISSING

__all__ = ['coerce_value', 'coerce_array_literal', 'LayeredLookup', 'PlaceholderResolver', 'MISSING']
