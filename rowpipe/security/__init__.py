"""Security module for API key handling and masking."""

from .secrets import SecretsManager, SecretsMaskingFilter

__all__ = ['SecretsManager', 'SecretsMaskingFilter']
