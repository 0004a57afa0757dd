"""Row pipeline execution module."""

from .orchestrator import RowPipeline
from .batch import BatchRunner
from .conditions import ConditionEvaluator
from .extraction import ResponseExtractor

__all__ = ['RowPipeline', 'BatchRunner', 'ConditionEvaluator', 'ResponseExtractor']
