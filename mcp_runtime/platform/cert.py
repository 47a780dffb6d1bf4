"""TLS for the registry via cert-manager.

Requires cert-manager to be installed and the CA secret to exist already.
"""

import logging
import sys
from typing import IO, Any, Optional

from ..exceptions import ProvisionError, SetupError
from ..exec.clients import CommandClient
from .cluster import NAMESPACE_REGISTRY, ClusterManager


logger = logging.getLogger(__name__)

CERT_MANAGER_NAMESPACE = "cert-manager"
CERT_MANAGER_CRD_NAME = "certificates.cert-manager.io"
CA_SECRET_NAME = "mcp-runtime-ca"
CLUSTER_ISSUER_MANIFEST = "config/cert-manager/cluster-issuer.yaml"
REGISTRY_CERTIFICATE_MANIFEST = "config/cert-manager/example-registry-certificate.yaml"
REGISTRY_CERTIFICATE_NAME = "registry-cert"


def format_kubectl_timeout(timeout_sec: float) -> str:
    return f"{max(int(round(timeout_sec)), 1)}s"


class CertManager:
    def __init__(self, kubectl: CommandClient, cluster: ClusterManager,
                 cert_timeout_sec: float = 60.0,
                 stdout: Optional[IO[Any]] = None, stderr: Optional[IO[Any]] = None):
        self.kubectl = kubectl
        self.cluster = cluster
        self.cert_timeout_sec = cert_timeout_sec
        self.stdout = stdout
        self.stderr = stderr

    def _stream(self, args) -> None:
        self.kubectl.run_with_output(args, self.stdout or sys.stdout, self.stderr or sys.stderr)

    def setup_tls(self) -> None:
        """Issue the registry certificate and wait until it is Ready."""
        logger.info("Checking cert-manager installation")
        try:
            self.kubectl.run(["get", "crd", CERT_MANAGER_CRD_NAME])
        except ProvisionError as e:
            raise SetupError(
                "cert_manager_missing",
                "cert-manager not installed; install it first "
                "(https://cert-manager.io/docs/installation/)",
            ) from e

        logger.info("Checking CA secret")
        try:
            self.kubectl.run(["get", "secret", CA_SECRET_NAME, "-n", CERT_MANAGER_NAMESPACE])
        except ProvisionError as e:
            raise SetupError(
                "ca_secret_missing",
                f"CA secret {CA_SECRET_NAME!r} not found in namespace {CERT_MANAGER_NAMESPACE!r}",
            ) from e

        logger.info("Applying ClusterIssuer")
        try:
            self._stream(["apply", "-f", CLUSTER_ISSUER_MANIFEST])
        except ProvisionError as e:
            raise SetupError("apply_cluster_issuer", f"failed to apply ClusterIssuer: {e}") from e

        try:
            self.cluster.ensure_namespace(NAMESPACE_REGISTRY)
        except ProvisionError as e:
            raise SetupError("ensure_namespace", f"failed to create registry namespace: {e}") from e

        logger.info("Applying Certificate for registry")
        try:
            self._stream(["apply", "-f", REGISTRY_CERTIFICATE_MANIFEST])
        except ProvisionError as e:
            raise SetupError("apply_certificate", f"failed to apply Certificate: {e}") from e

        timeout = format_kubectl_timeout(self.cert_timeout_sec)
        logger.info(f"Waiting for certificate to be issued (timeout: {timeout})")
        try:
            self._stream([
                "wait", "--for=condition=Ready",
                f"certificate/{REGISTRY_CERTIFICATE_NAME}",
                "-n", NAMESPACE_REGISTRY, f"--timeout={timeout}",
            ])
        except ProvisionError as e:
            raise SetupError(
                "certificate_not_ready",
                f"certificate not ready after {timeout}. Check cert-manager logs: "
                f"kubectl logs -n {CERT_MANAGER_NAMESPACE} deployment/cert-manager",
            ) from e
        logger.info("Certificate issued")
