"""Row outcomes, batch counters and the failure log.

Row state lives only for the duration of one row; the batch keeps nothing but
monotonic counters and the append-only failure log.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional, Literal
from dataclasses import dataclass, field

from .exceptions import StepError

logger = logging.getLogger(__name__)


RowStatus = Literal["pending", "running", "succeeded", "failed"]
StepStatus = Literal["completed", "skipped", "failed"]


@dataclass
class RowOutcome:
    """Result of one row's pipeline run."""
    row_index: int
    status: RowStatus = "pending"
    extracted: Dict[str, Any] = field(default_factory=dict)
    steps: Dict[str, StepStatus] = field(default_factory=dict)
    failed_step: Optional[str] = None
    error: Optional[StepError] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, omitting None values."""
        result: Dict[str, Any] = {
            "row": self.row_index,
            "status": self.status,
            "extracted": self.extracted,
            "steps": dict(self.steps),
        }
        if self.failed_step is not None:
            result["failed_step"] = self.failed_step
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


@dataclass
class BatchSummary:
    """Counters for the final batch report."""
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    halted: bool = False

    def record(self, outcome: RowOutcome):
        self.processed += 1
        if outcome.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "halted": self.halted,
        }


class FailureLog:
    """Appends one JSON line per failed row.

    Each record holds timestamp, row number, failing step name, HTTP status
    code (or "N/A") and the error message or response body.
    """

    def __init__(self, path: Path, mask=None):
        """Initialize failure log.

        Args:
            path: JSON-lines file to append to (parents created on first write)
            mask: Optional callable masking secrets in the record (e.g. SecretsManager.mask_value)
        """
        self.path = Path(path)
        self.mask = mask
        self.records_written = 0

    def record(self, outcome: RowOutcome):
        """Append a failure record for a failed row outcome."""
        error = outcome.error
        status_code = error.status_code if error and error.status_code is not None else "N/A"
        if error is None:
            detail: Any = None
        elif error.body is not None:
            detail = error.body
        else:
            detail = error.message

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "row": outcome.row_index,
            "step": outcome.failed_step,
            "status_code": status_code,
            "error": detail,
        }

        if self.mask:
            entry = self.mask(entry)
        line = json.dumps(entry, default=str)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(line + "\n")
        self.records_written += 1
