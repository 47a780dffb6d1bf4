"""
Operator image and manifests.

Builds and pushes the control-plane operator image, applies its CRD, RBAC
and manager deployment, and wires external registry credentials into it.
"""

import base64
import json
import logging
import os
import re
import sys
import tempfile
from pathlib import Path
from typing import IO, Any, Callable, Optional

import yaml

from ..config import ExternalRegistryConfig
from ..exceptions import ProvisionError, SetupError
from ..exec.clients import CommandClient
from .cluster import (
    MCP_SERVER_CRD_MANIFEST,
    NAMESPACE_MCP_RUNTIME,
    NAMESPACE_MCP_SERVERS,
    ClusterManager,
)


logger = logging.getLogger(__name__)

OPERATOR_DEPLOYMENT = "mcp-runtime-operator-controller-manager"
OPERATOR_SELECTOR = "control-plane=controller-manager"
OPERATOR_IMAGE_NAME = "mcp-runtime-operator:latest"
# Loaded into kind by the e2e script; test mode never builds or pushes.
TEST_MODE_OPERATOR_IMAGE = "docker.io/library/mcp-runtime-operator:latest"
DEFAULT_REGISTRY_SECRET_NAME = "mcp-runtime-registry-creds"
RBAC_KUSTOMIZATION = "config/rbac/"
MANAGER_MANIFEST = "config/manager/manager.yaml"

_IMAGE_LINE = re.compile(r"^(\s*)image:\s*\S+", re.MULTILINE)


def replace_manager_image(manifest: str, image: str) -> str:
    """Point the first ``image:`` field (the manager container) at ``image``."""
    return _IMAGE_LINE.sub(lambda m: f"{m.group(1)}image: {image}", manifest, count=1)


def render_registry_env_file(username: str, password: str) -> str:
    lines = []
    if username:
        lines.append(f"PROVISIONED_REGISTRY_USERNAME={username}\n")
    if password:
        lines.append(f"PROVISIONED_REGISTRY_PASSWORD={password}\n")
    return "".join(lines)


def render_image_pull_secret(namespace: str, name: str, registry: str,
                             username: str, password: str) -> str:
    auth = base64.b64encode(f"{username}:{password}".encode()).decode()
    docker_config = {
        "auths": {
            registry: {"username": username, "password": password, "auth": auth},
        },
    }
    encoded = base64.b64encode(json.dumps(docker_config).encode()).decode()
    return yaml.safe_dump(
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": name, "namespace": namespace},
            "type": "kubernetes.io/dockerconfigjson",
            "data": {".dockerconfigjson": encoded},
        },
        default_flow_style=False,
        sort_keys=False,
    )


class OperatorManager:
    """Builds, pushes and deploys the platform operator."""

    def __init__(
        self,
        kubectl: CommandClient,
        docker: CommandClient,
        make: CommandClient,
        cluster: ClusterManager,
        platform_registry_url: Callable[[], str],
        image_override: str = "",
        workdir: Optional[str] = None,
        stdout: Optional[IO[Any]] = None,
        stderr: Optional[IO[Any]] = None,
    ):
        self.kubectl = kubectl
        self.docker = docker
        self.make = make
        self.cluster = cluster
        self.platform_registry_url = platform_registry_url
        self.image_override = image_override
        self.workdir = workdir
        self.stdout = stdout
        self.stderr = stderr

    def _stream(self, client: CommandClient, args, stdin=None) -> None:
        client.run_with_output(args, self.stdout or sys.stdout, self.stderr or sys.stderr, stdin=stdin)

    def image_for(self, ext: Optional[ExternalRegistryConfig], test_mode: bool = False) -> str:
        """Pick the operator image reference.

        Order: explicit override, test-mode pre-loaded image, external
        registry, then the in-cluster registry.
        """
        if self.image_override:
            return self.image_override
        if test_mode:
            return TEST_MODE_OPERATOR_IMAGE
        if ext is not None and ext.url:
            return f"{ext.url.rstrip('/')}/{OPERATOR_IMAGE_NAME}"
        return f"{self.platform_registry_url()}/{OPERATOR_IMAGE_NAME}"

    def build_image(self, image: str) -> None:
        self._stream(self.make, ["-f", "Makefile.operator", "docker-build-operator", f"IMG={image}"])

    def push_image(self, image: str) -> None:
        self._stream(self.docker, ["push", image])

    def deploy_manifests(self, image: str) -> None:
        """Apply CRD, RBAC and the manager deployment running ``image``."""
        logger.info("Applying CRD manifests")
        try:
            self._stream(self.kubectl, ["apply", "--validate=false", "-f", MCP_SERVER_CRD_MANIFEST])
        except ProvisionError as e:
            raise SetupError("apply_crd", f"failed to apply CRD: {e}") from e

        logger.info("Applying RBAC manifests")
        try:
            self.cluster.ensure_namespace(NAMESPACE_MCP_RUNTIME)
        except ProvisionError as e:
            raise SetupError("ensure_namespace", f"failed to ensure operator namespace: {e}") from e
        try:
            self._stream(self.kubectl, ["apply", "-k", RBAC_KUSTOMIZATION])
        except ProvisionError as e:
            raise SetupError("apply_rbac", f"failed to apply RBAC: {e}") from e

        logger.info("Applying operator deployment")
        workdir = Path(self.workdir or os.getcwd())
        manager_path = workdir / MANAGER_MANIFEST
        try:
            manifest = manager_path.read_text()
        except OSError as e:
            raise SetupError("read_manager", f"failed to read {MANAGER_MANIFEST}: {e}") from e

        # Temp file stays under the working directory so kubectl path confinement accepts it
        fd, tmp_path = tempfile.mkstemp(prefix="manager-", suffix=".yaml", dir=str(workdir))
        try:
            with os.fdopen(fd, 'w') as f:
                f.write(replace_manager_image(manifest, image))

            # Selector fields are immutable; drop the old deployment before reapplying
            try:
                self.kubectl.run([
                    "delete", f"deployment/{OPERATOR_DEPLOYMENT}",
                    "-n", NAMESPACE_MCP_RUNTIME, "--ignore-not-found",
                ])
            except ProvisionError as e:
                logger.debug(f"Ignoring failed delete of old operator deployment: {e}")

            try:
                self._stream(self.kubectl, ["apply", "-f", os.path.relpath(tmp_path, str(workdir))])
            except ProvisionError as e:
                raise SetupError("apply_manager", f"failed to apply manager deployment: {e}") from e
        finally:
            os.remove(tmp_path)

        logger.info("Operator manifests deployed successfully")

    def configure_registry_env(self, ext: Optional[ExternalRegistryConfig], secret_name: str) -> None:
        """Point the operator at an external registry.

        Credentials go into Secrets and reach the deployment through
        ``--from=secret/...``, never as literal arguments.
        """
        if ext is None or not ext.url:
            return

        args = [
            "set", "env", f"deployment/{OPERATOR_DEPLOYMENT}",
            "-n", NAMESPACE_MCP_RUNTIME,
            f"PROVISIONED_REGISTRY_URL={ext.url}",
        ]
        if ext.has_credentials:
            secret_name = secret_name or DEFAULT_REGISTRY_SECRET_NAME
            self.ensure_registry_secret(secret_name, ext.username, ext.password)
            self.ensure_image_pull_secret(NAMESPACE_MCP_SERVERS, secret_name, ext.url,
                                          ext.username, ext.password)
            args.append(f"PROVISIONED_REGISTRY_SECRET_NAME={secret_name}")
            args.append(f"--from=secret/{secret_name}")

        self._stream(self.kubectl, args)

    def ensure_registry_secret(self, name: str, username: str, password: str) -> None:
        env_file = render_registry_env_file(username, password)
        if not env_file:
            return

        try:
            rendered = self.kubectl.output([
                "create", "secret", "generic", name,
                "--from-env-file=-",
                "-n", NAMESPACE_MCP_RUNTIME,
                "--dry-run=client",
                "-o", "yaml",
            ], stdin=env_file)
        except ProvisionError as e:
            raise SetupError(
                "render_secret", f"render secret manifest: {e}",
                {"secret_name": name, "namespace": NAMESPACE_MCP_RUNTIME},
            ) from e

        try:
            self._stream(self.kubectl, ["apply", "-f", "-"], stdin=rendered)
        except ProvisionError as e:
            raise SetupError(
                "apply_secret", f"apply secret manifest: {e}",
                {"secret_name": name, "namespace": NAMESPACE_MCP_RUNTIME},
            ) from e

    def ensure_image_pull_secret(self, namespace: str, name: str, registry: str,
                                 username: str, password: str) -> None:
        if not username and not password:
            return
        manifest = render_image_pull_secret(namespace, name, registry, username, password)
        try:
            self._stream(self.kubectl, ["apply", "-f", "-"], stdin=manifest)
        except ProvisionError as e:
            raise SetupError(
                "apply_pull_secret", f"apply imagePullSecret: {e}",
                {"secret_name": name, "namespace": namespace, "registry": registry},
            ) from e

    def restart_deployment(self, name: str, namespace: str) -> None:
        self._stream(self.kubectl, ["rollout", "restart", f"deployment/{name}", "-n", namespace])

    def check_crd_installed(self, name: str) -> None:
        self._stream(self.kubectl, ["get", "crd", name])
