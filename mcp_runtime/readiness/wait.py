"""Deployment readiness polling.

Blocks until a deployment reports at least one available replica, or until
a wall-clock deadline passes.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..exceptions import ProvisionError, ReadinessTimeoutError
from ..exec.clients import CommandClient


logger = logging.getLogger(__name__)

POLL_INTERVAL_SEC = 5.0
PROGRESS_INTERVAL_SEC = 10.0


@dataclass
class WaitResult:
    """Result of a successful readiness wait."""
    name: str
    namespace: str
    available_replicas: int
    poll_count: int
    wait_duration_ms: int


def format_timeout(timeout_sec: float) -> str:
    """Render a timeout the way the progress message reports it (``5m0s``)."""
    total = int(round(timeout_sec))
    if total <= 0:
        return "0s"
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


class DeploymentWaiter:
    """Polls ``kubectl get deployment`` until it has available replicas.

    Probe failures of any kind (rejected arguments, a missing deployment,
    kubectl errors, unparseable output) count as "not ready yet".
    """

    def __init__(
        self,
        kubectl: CommandClient,
        poll_interval_sec: float = POLL_INTERVAL_SEC,
        progress_interval_sec: float = PROGRESS_INTERVAL_SEC,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the waiter.

        Args:
            kubectl: Client used for the availability probe
            poll_interval_sec: Delay between probes
            progress_interval_sec: Minimum gap between progress messages
            clock: Monotonic time source
            sleep: Blocking sleep function
        """
        self.kubectl = kubectl
        self.poll_interval_sec = poll_interval_sec
        self.progress_interval_sec = progress_interval_sec
        self.clock = clock
        self.sleep = sleep

    def probe(self, name: str, namespace: str) -> int:
        """Return the deployment's available replica count, or 0 when unknown."""
        try:
            out = self.kubectl.output([
                "get", "deployment", name, "-n", namespace,
                "-o", "jsonpath={.status.availableReplicas}",
            ])
        except ProvisionError as e:
            logger.debug(f"Readiness probe for deployment/{name} failed: {e}")
            return 0
        value = out.strip() or "0"
        try:
            return int(value)
        except ValueError:
            logger.debug(f"Unexpected availableReplicas value for deployment/{name}: {value!r}")
            return 0

    def wait(self, name: str, namespace: str, selector: str, timeout_sec: float) -> WaitResult:
        """Block until the deployment is available.

        Raises:
            ReadinessTimeoutError: if the deadline passes first. A timeout of
                zero or less fails right after the first unsuccessful probe.
        """
        start = self.clock()
        deadline = start + timeout_sec
        last_log: Optional[float] = None
        poll_count = 0

        while True:
            poll_count += 1
            replicas = self.probe(name, namespace)
            if replicas > 0:
                elapsed_ms = int((self.clock() - start) * 1000)
                logger.debug(f"deployment/{name} in {namespace} available ({replicas} replicas)")
                return WaitResult(
                    name=name,
                    namespace=namespace,
                    available_replicas=replicas,
                    poll_count=poll_count,
                    wait_duration_ms=elapsed_ms,
                )

            now = self.clock()
            if last_log is None or now - last_log > self.progress_interval_sec:
                logger.info(
                    f"Still waiting for deployment/{name} in {namespace} "
                    f"(selector {selector}, timeout {format_timeout(timeout_sec)})"
                )
                last_log = now

            if now > deadline or timeout_sec <= 0:
                logger.error("Deployment timeout")
                raise ReadinessTimeoutError(name, namespace, timeout_sec)

            self.sleep(self.poll_interval_sec)
