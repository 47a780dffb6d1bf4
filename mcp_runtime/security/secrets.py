"""
Secret masking for log output.

Registry passwords travel on stdin and never in argv, but they still pass
through error messages and debug output. Values registered with a
SecretMasker are replaced by '***' wherever they are logged.
"""

import logging
import re
from typing import Optional, Set


class SecretMasker:
    """Collects secret values and masks them in text."""

    def __init__(self):
        self._masked_values: Set[str] = set()

    def add(self, value: Optional[str]) -> None:
        """Register a value for masking. Empty values are ignored."""
        if value:
            self._masked_values.add(value)

    def mask_text(self, text: str) -> str:
        """Replace every registered value in text with '***'."""
        if not text or not self._masked_values:
            return text

        masked = text
        # Longest first so a secret containing another is fully masked
        for secret_value in sorted(self._masked_values, key=len, reverse=True):
            if secret_value in masked:
                masked = re.sub(re.escape(secret_value), '***', masked)

        return masked

    def clear(self):
        self._masked_values.clear()


class SecretsMaskingFilter:
    """
    Logging filter that masks secrets in log records.

    Attach to handlers (see install_masking_filter) so records are masked
    no matter which logger emitted them.
    """

    def __init__(self, masker: SecretMasker):
        self.masker = masker

    def filter(self, record):
        """Mask the fully formatted message. Always passes the record."""
        record.msg = self.masker.mask_text(record.getMessage())
        record.args = None
        return True


def install_masking_filter(masker: SecretMasker,
                           logger: Optional[logging.Logger] = None) -> SecretsMaskingFilter:
    """Attach a masking filter to every handler of ``logger`` (root by default)."""
    target = logger or logging.getLogger()
    masking_filter = SecretsMaskingFilter(masker)
    for handler in target.handlers:
        handler.addFilter(masking_filter)
    return masking_filter
