"""rowpipe exceptions."""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass


@dataclass
class ValidationError:
    """Single validation error."""
    message: str
    path: str = ""
    exit_code: int = 2


class ConfigValidationError(Exception):
    """Raised when the request sequence configuration is invalid.

    Raised by the loader (and by the run command for missing credentials or
    endpoints) before any row is processed, so the CLI can map it to exit
    code 2.
    """

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        self.exit_code = 2

        messages = []
        for error in errors:
            messages.append(f"Validation error: {error.message}")

        super().__init__("\n".join(messages))


@dataclass
class StepError:
    """Why a request step failed."""
    type: str
    message: str
    status_code: Optional[int] = None
    body: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, omitting None values."""
        result: Dict[str, Any] = {"type": self.type, "message": self.message}
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.body is not None:
            result["body"] = self.body
        return result


class StepFailure(Exception):
    """Raised by the step executor when a request step fails.

    Fatal for the remainder of the row only.
    """

    def __init__(self, step_name: str, error: StepError):
        self.step_name = step_name
        self.error = error
        super().__init__(f"Step '{step_name}' failed: {error.message}")
