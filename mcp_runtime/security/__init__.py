"""Security module for secret masking."""

from .secrets import SecretMasker, SecretsMaskingFilter, install_masking_filter

__all__ = ['SecretMasker', 'SecretsMaskingFilter', 'install_masking_filter']
