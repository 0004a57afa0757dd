"""
Batch execution over all primary rows.
Handles the inter-row delay, failure logging, interactive halting and the
final summary.
"""

import json
import logging
import time
from typing import Callable, Optional, Sequence

from ..interactive import Confirmer
from ..sources import Row
from ..state import BatchSummary, FailureLog, RowOutcome
from .orchestrator import RowPipeline

logger = logging.getLogger(__name__)


class BatchRunner:
    """
    Processes rows strictly one at a time.

    A failed row never aborts the batch. The delay applies only between rows,
    never after the last one and never between steps.
    """

    def __init__(
        self,
        pipeline: RowPipeline,
        delay_ms: int = 0,
        failure_log: Optional[FailureLog] = None,
        confirmer: Optional[Confirmer] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize batch runner.

        Args:
            pipeline: Row pipeline for each row
            delay_ms: Delay between rows in milliseconds
            failure_log: Sink receiving one record per failed row
            confirmer: Asked after each row whether to continue (interactive mode)
            sleep: Sleep function (seconds)
        """
        self.pipeline = pipeline
        self.delay_ms = delay_ms
        self.failure_log = failure_log
        self.confirmer = confirmer
        self.sleep = sleep

    def run(self, rows: Sequence[Row], secondary_rows: Optional[Sequence[Row]] = None) -> BatchSummary:
        """
        Run the pipeline for every row.

        Args:
            rows: Primary rows in order
            secondary_rows: Secondary table rows shared by loop steps

        Returns:
            BatchSummary with processed/succeeded/failed counts
        """
        summary = BatchSummary(total=len(rows))
        logger.info(f"Processing {len(rows)} rows")
        if self.delay_ms > 0:
            logger.info(f"Delay between rows: {self.delay_ms}ms")

        for position, row in enumerate(rows, start=1):
            logger.info(f"Processing row {position}/{len(rows)}")

            outcome = self.pipeline.run(row, secondary_rows)
            summary.record(outcome)
            self._report(outcome)

            if not outcome.succeeded and self.failure_log is not None:
                try:
                    self.failure_log.record(outcome)
                except OSError as e:
                    logger.error(f"Could not write failure log {self.failure_log.path}: {e}")

            if position == len(rows):
                break

            if self.confirmer is not None and not self.confirmer.confirm("Continue to the next row?"):
                logger.warning(f"Stopped by operator after row {row.index}")
                summary.halted = True
                break

            if self.delay_ms > 0:
                self.sleep(self.delay_ms / 1000.0)

        self._report_summary(summary)
        return summary

    def _report(self, outcome: RowOutcome):
        logger.debug(f"Row {outcome.row_index} outcome: {json.dumps(outcome.to_dict(), default=str)}")
        if outcome.succeeded:
            skipped = [name for name, status in outcome.steps.items() if status == 'skipped']
            note = f" ({len(skipped)} skipped)" if skipped else ""
            logger.info(f"Row {outcome.row_index}: succeeded{note}")
        else:
            status = outcome.error.status_code if outcome.error and outcome.error.status_code is not None else "N/A"
            logger.error(f"Row {outcome.row_index}: failed at step '{outcome.failed_step}' (status {status})")
            if outcome.error is not None and outcome.error.body is not None:
                logger.error(f"Response data: {outcome.error.body}")

    def _report_summary(self, summary: BatchSummary):
        logger.info("Processing complete!")
        logger.info(f"Total rows processed: {summary.processed}")
        logger.info(f"Successful rows: {summary.succeeded}")
        logger.info(f"Failed rows: {summary.failed}")
        if summary.halted:
            logger.info(f"Rows not processed: {summary.total - summary.processed}")
