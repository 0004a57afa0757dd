"""
API key resolution and masking.

- The key comes from --apikey, else from the ROWPIPE_API_KEY environment
  variable (a .env file is loaded by the run command)
- Empty strings count as missing
- Known secret values are masked as '***' in logs and failure records
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional, Set


API_KEY_ENV = 'ROWPIPE_API_KEY'


class SecretsManager:
    """
    Resolves the API credential and masks known secret values.
    """

    def __init__(self):
        """Initialize secrets manager."""
        self._masked_values: Set[str] = set()

    def resolve_api_key(self, cli_value: Optional[str] = None, env_var: str = API_KEY_ENV) -> Optional[str]:
        """
        Resolve the API key.

        Args:
            cli_value: Value passed on the command line (wins when non-empty)
            env_var: Environment variable consulted otherwise

        Returns:
            The key, or None when neither source supplies one
        """
        value = cli_value or os.environ.get(env_var) or None
        if value:
            self.register(value)
        return value

    def register(self, value: str):
        """Track a value for masking (empty strings are never masked)."""
        if value:
            self._masked_values.add(value)

    def mask_text(self, text: str) -> str:
        """
        Mask known secret values in text.

        Args:
            text: Text potentially containing secrets

        Returns:
            Text with secrets replaced by '***'
        """
        if not text or not self._masked_values:
            return text

        masked = text
        # Longer values first so a secret containing another is fully masked
        for secret_value in sorted(self._masked_values, key=len, reverse=True):
            if secret_value in masked:
                masked = re.sub(re.escape(secret_value), '***', masked)

        return masked

    def mask_value(self, value: Any) -> Any:
        """
        Recursively mask secrets in strings, dicts and lists.

        Args:
            value: Structure potentially containing secrets

        Returns:
            Copy with secrets masked
        """
        if not self._masked_values:
            return value
        if isinstance(value, str):
            return self.mask_text(value)
        if isinstance(value, dict):
            return {k: self.mask_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.mask_value(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.mask_value(item) for item in value)
        return value

    def clear_masked_values(self):
        """Clear the set of values to mask (useful for testing)."""
        self._masked_values.clear()


class SecretsMaskingFilter(logging.Filter):
    """
    Logging filter for masking secrets in log records.

    Attached to the root handlers by the run command.
    """

    def __init__(self, secrets_manager: SecretsManager):
        """
        Initialize filter with a secrets manager.

        Args:
            secrets_manager: Manager containing values to mask
        """
        super().__init__()
        self.secrets_manager = secrets_manager

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Mask secrets in the fully formatted message.

        Returns:
            True (always pass the record through)
        """
        message = record.getMessage()
        masked = self.secrets_manager.mask_text(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def install_masking_filter(secrets_manager: SecretsManager, logger: Optional[logging.Logger] = None) -> List[logging.Handler]:
    """
    Attach a masking filter to every handler of a logger (default: root).

    Returns:
        Handlers the filter was attached to
    """
    target = logger or logging.getLogger()
    masking = SecretsMaskingFilter(secrets_manager)
    for handler in target.handlers:
        handler.addFilter(masking)
    return list(target.handlers)
