"""CLI command handlers."""

from .run import run_batch
from .init import scaffold_config

__all__ = ['run_batch', 'scaffold_config']
