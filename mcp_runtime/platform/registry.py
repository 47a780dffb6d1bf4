"""Container registry: deployment, login, address lookup and in-cluster push."""

import json
import logging
import os
import sys
import tempfile
import time
from typing import IO, Any, Optional

from ..exceptions import ConfigurationError, ProvisionError, SetupError
from ..exec.clients import CommandClient
from .cluster import NAMESPACE_REGISTRY, ClusterManager


logger = logging.getLogger(__name__)

REGISTRY_DEPLOYMENT = "registry"
REGISTRY_SELECTOR = "app=registry"
REGISTRY_PVC = "registry-storage"
SUPPORTED_REGISTRY_TYPES = ("docker",)


class RegistryManager:
    """Manages the platform's in-cluster registry."""

    def __init__(
        self,
        kubectl: CommandClient,
        docker: CommandClient,
        cluster: ClusterManager,
        registry_port: int = 5000,
        skopeo_image: str = "quay.io/skopeo/stable:v1.14",
        workdir: Optional[str] = None,
        stdout: Optional[IO[Any]] = None,
        stderr: Optional[IO[Any]] = None,
    ):
        """
        Initialize the registry manager.

        Args:
            kubectl: kubectl client
            docker: docker client
            cluster: Used for namespace creation
            registry_port: Fallback port when the service cannot be queried
            skopeo_image: Image for the in-cluster push helper pod
            workdir: Directory for temporary image archives (default: cwd).
                Must be inside kubectl's path confinement root.
            stdout: Writer for user-facing command output
            stderr: Writer for user-facing command errors
        """
        self.kubectl = kubectl
        self.docker = docker
        self.cluster = cluster
        self.registry_port = registry_port
        self.skopeo_image = skopeo_image
        self.workdir = workdir
        self.stdout = stdout
        self.stderr = stderr

    def _stream(self, client: CommandClient, args, stdin=None) -> None:
        client.run_with_output(args, self.stdout or sys.stdout, self.stderr or sys.stderr, stdin=stdin)

    def deploy_registry(self, namespace: str, port: int, registry_type: str,
                        storage_size: str, manifest: str) -> None:
        """Apply the registry manifests and reconcile the storage size.

        Does not wait for availability; callers poll readiness separately.
        """
        registry_type = registry_type or "docker"
        logger.info(f"Deploying container registry (namespace={namespace}, type={registry_type}, port={port})")
        if registry_type not in SUPPORTED_REGISTRY_TYPES:
            raise ConfigurationError(
                f"unsupported registry type {registry_type!r} (supported: docker)"
            )

        try:
            self.cluster.ensure_namespace(namespace)
        except ProvisionError as e:
            raise SetupError("ensure_namespace", f"failed to ensure namespace: {e}") from e

        logger.info("Applying registry manifests")
        try:
            self._stream(self.kubectl, ["apply", "-k", manifest, "-n", namespace])
        except ProvisionError as e:
            raise SetupError("deploy_registry", f"failed to deploy registry: {e}") from e

        self.ensure_storage_size(namespace, storage_size)

    def ensure_storage_size(self, namespace: str, storage_size: str) -> None:
        """Patch the registry PVC when its requested size differs."""
        size = (storage_size or "").strip()
        if not size:
            return

        try:
            current = self.kubectl.output([
                "get", "pvc", REGISTRY_PVC, "-n", namespace,
                "-o", "jsonpath={.spec.resources.requests.storage}",
            ]).strip()
        except ProvisionError as e:
            raise SetupError(
                "read_storage_size", f"failed to read current registry storage size: {e}"
            ) from e

        if current == size:
            logger.debug(f"Registry storage already {size}")
            return

        logger.info(f"Updating registry storage from {current or 'unset'} to {size}")
        payload = json.dumps({"spec": {"resources": {"requests": {"storage": size}}}},
                             separators=(",", ":"))
        try:
            self._stream(self.kubectl, ["patch", "pvc", REGISTRY_PVC, "-n", namespace, "-p", payload])
        except ProvisionError as e:
            raise SetupError(
                "update_storage_size", f"failed to update registry storage size to {size}: {e}"
            ) from e

    def login(self, url: str, username: str, password: str) -> None:
        """``docker login`` with the password passed on stdin."""
        logger.info(f"Logging into registry {url}")
        try:
            self._stream(self.docker, ["login", "-u", username, "--password-stdin", url], stdin=password)
        except ProvisionError as e:
            raise SetupError("registry_login", f"failed to login to registry: {e}") from e
        logger.info("Successfully logged into registry")

    def platform_registry_url(self) -> str:
        """Address of the in-cluster registry as seen from inside the cluster."""
        cluster_ip = self._service_field("{.spec.clusterIP}")
        port = self._service_field("{.spec.ports[0].port}")
        if cluster_ip and port:
            return f"{cluster_ip}:{port}"
        return f"registry.{NAMESPACE_REGISTRY}.svc.cluster.local:{port or self.registry_port}"

    def _service_field(self, jsonpath: str) -> str:
        try:
            return self.kubectl.output([
                "get", "service", "registry", "-n", NAMESPACE_REGISTRY, "-o", f"jsonpath={jsonpath}",
            ]).strip()
        except ProvisionError as e:
            logger.debug(f"Could not read registry service {jsonpath}: {e}")
            return ""

    def show_registry_info(self) -> None:
        cluster_ip = self._service_field("{.spec.clusterIP}")
        port = self._service_field("{.spec.ports[0].port}")
        if not (cluster_ip and port):
            logger.warning("Registry service not found. Deploy it with: mcp-runtime setup")
            return
        logger.info("=== Registry Information ===")
        logger.info(f"Internal URL: {cluster_ip}:{port}")
        logger.info(f"Service URL: registry.{NAMESPACE_REGISTRY}.svc.cluster.local:{port}")
        logger.info(f"To push from this machine add \"{cluster_ip}:{port}\" to insecure-registries, "
                    f"or run: kubectl port-forward -n {NAMESPACE_REGISTRY} svc/registry {port}:{port}")

    def push_in_cluster(self, source: str, target: str, helper_namespace: str) -> None:
        """Push a local image to a registry only reachable from inside the cluster.

        The image is saved to a tarball, copied into a short-lived skopeo pod
        and pushed from there. The helper pod is deleted even on failure.
        """
        helper = f"registry-pusher-{time.time_ns()}"

        try:
            self.kubectl.run(["get", "namespace", helper_namespace])
        except ProvisionError as e:
            raise SetupError(
                "helper_namespace",
                f"helper namespace {helper_namespace!r} not found: {e}",
            ) from e

        fd, tar_path = tempfile.mkstemp(prefix="mcp-img-", suffix=".tar",
                                        dir=self.workdir or os.getcwd())
        os.close(fd)
        tar_arg = os.path.relpath(tar_path, self.workdir or os.getcwd())
        try:
            try:
                self._stream(self.docker, ["save", "-o", tar_path, source])
            except ProvisionError as e:
                raise SetupError("save_image", f"failed to save image: {e}") from e

            try:
                self._stream(self.kubectl, [
                    "run", helper, "-n", helper_namespace,
                    f"--image={self.skopeo_image}", "--restart=Never",
                    "--command", "--", "sh", "-c", "while true; do sleep 3600; done",
                ])
            except ProvisionError as e:
                raise SetupError("start_helper", f"failed to start helper pod: {e}") from e

            try:
                self._push_from_helper(helper, helper_namespace, tar_arg, target)
            finally:
                try:
                    self.kubectl.run(["delete", "pod", helper, "-n", helper_namespace, "--ignore-not-found"])
                except ProvisionError as e:
                    logger.warning(f"Could not delete helper pod {helper}: {e}")
        finally:
            os.remove(tar_path)

        logger.info(f"Pushed {target} via in-cluster helper")

    def _push_from_helper(self, helper: str, namespace: str, tar_arg: str, target: str) -> None:
        try:
            self._stream(self.kubectl, [
                "wait", "--for=condition=Ready", f"pod/{helper}", "-n", namespace, "--timeout=60s",
            ])
        except ProvisionError as e:
            raise SetupError("helper_not_ready", f"helper pod not ready: {e}") from e

        try:
            self._stream(self.kubectl, ["cp", tar_arg, f"{namespace}/{helper}:/tmp/image.tar"])
        except ProvisionError as e:
            raise SetupError("copy_image", f"failed to copy image tar to helper pod: {e}") from e

        try:
            self._stream(self.kubectl, [
                "exec", "-n", namespace, helper, "--",
                "skopeo", "copy", "--dest-tls-verify=false",
                "docker-archive:/tmp/image.tar", f"docker://{target}",
            ])
        except ProvisionError as e:
            raise SetupError("push_image", f"failed to push image from helper pod: {e}") from e
