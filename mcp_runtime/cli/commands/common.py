"""Helpers shared by the CLI commands."""

import logging
from argparse import Namespace
from typing import Optional

from mcp_runtime.exceptions import ProvisionError
from mcp_runtime.security.secrets import SecretMasker, install_masking_filter


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(args: Namespace, masker: Optional[SecretMasker] = None) -> SecretMasker:
    """Set the log level from the command's flags and mask secrets in output."""
    log_level = getattr(logging, getattr(args, 'log_level', 'info').upper())
    if getattr(args, 'debug', False):
        log_level = logging.DEBUG
    elif getattr(args, 'quiet', False):
        log_level = logging.ERROR
    elif getattr(args, 'verbose', False):
        log_level = logging.DEBUG

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    masker = masker or SecretMasker()
    install_masking_filter(masker)
    return masker


def report_error(error: ProvisionError) -> int:
    """Log a provisioning error with its cause chain. Returns the exit code."""
    logger.error(str(error))
    cause = error.__cause__
    while cause is not None:
        logger.debug(f"caused by {type(cause).__name__}: {cause}")
        cause = cause.__cause__
    return error.exit_code
