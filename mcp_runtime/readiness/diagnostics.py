"""Best-effort diagnostics for deployments that never became ready."""

import logging
import sys
from typing import IO, Any, Optional

from ..exec.clients import CommandClient


logger = logging.getLogger(__name__)


class DiagnosticsReporter:
    """Dumps pod state for a deployment's selector.

    Nothing raised while collecting diagnostics ever reaches the caller; the
    readiness error that triggered the report is what matters.
    """

    def __init__(self, kubectl: CommandClient, stdout: Optional[IO[Any]] = None,
                 stderr: Optional[IO[Any]] = None):
        self.kubectl = kubectl
        self.stdout = stdout
        self.stderr = stderr

    def report(self, deployment: str, namespace: str, selector: str) -> None:
        logger.warning(f"Deployment {deployment} in {namespace} is not ready. Showing pod statuses:")
        try:
            self.kubectl.run_with_output(
                ["get", "pods", "-n", namespace, "-l", selector, "-o", "wide"],
                self.stdout or sys.stdout,
                self.stderr or sys.stderr,
            )
        except Exception as e:
            logger.debug(f"Could not collect diagnostics for deployment/{deployment}: {e}")
