"""
Row pipeline execution.
Runs the ordered request steps for one row as a small state machine:
pending -> running(step i) -> succeeded | failed(step i).
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from ..exceptions import StepFailure
from ..sources import Row
from ..state import RowOutcome
from ..types import RequestSequence
from .conditions import ConditionEvaluator

if TYPE_CHECKING:
    from ..exec.step_executor import RequestStepExecutor

logger = logging.getLogger(__name__)


class RowPipeline:
    """
    Executes the request sequence for one row at a time.

    Steps run strictly in declared order. A false condition skips the step;
    a step failure stops the row and leaves the remaining steps unrun.
    """

    def __init__(
        self,
        sequence: RequestSequence,
        step_executor: "RequestStepExecutor",
        condition_evaluator: Optional[ConditionEvaluator] = None
    ):
        """
        Initialize row pipeline.

        Args:
            sequence: Loaded request sequence
            step_executor: Executor performing the HTTP calls
            condition_evaluator: Evaluator sharing the executor's resolver
        """
        self.sequence = sequence
        self.steps = sequence.steps
        self.step_executor = step_executor
        self.resolver = step_executor.resolver
        self.condition_evaluator = condition_evaluator or ConditionEvaluator(self.resolver)

    def run(self, row: Row, secondary_rows: Optional[Sequence[Row]] = None) -> RowOutcome:
        """
        Run every step for a row.

        Args:
            row: Primary row
            secondary_rows: Secondary table rows for loop steps

        Returns:
            RowOutcome; step failures are recorded, never raised
        """
        outcome = RowOutcome(row_index=row.index)
        # Cleared per row; never shared between rows
        extracted: Dict[str, Any] = {}

        outcome.status = "running"
        for step_index, step in enumerate(self.steps):
            if step.condition is not None:
                lookup = self.resolver.build_lookup(extracted, row.values)
                if not self.condition_evaluator.evaluate(step.condition, lookup):
                    logger.info(f"Row {row.index}: skipping step '{step.name}' (condition '{step.condition.source}' not met)")
                    outcome.steps[step.name] = "skipped"
                    continue

            logger.debug(f"Row {row.index}: running step {step_index + 1}/{len(self.steps)} '{step.name}'")
            try:
                written = self.step_executor.execute(step, row, extracted, secondary_rows)
            except StepFailure as e:
                logger.error(f"Row {row.index}: step '{e.step_name}' failed: {e.error.message}")
                outcome.steps[step.name] = "failed"
                outcome.status = "failed"
                outcome.failed_step = e.step_name
                outcome.error = e.error
                outcome.extracted = dict(extracted)
                return outcome

            extracted.update(written)
            outcome.steps[step.name] = "completed"

        outcome.status = "succeeded"
        outcome.extracted = dict(extracted)
        return outcome
