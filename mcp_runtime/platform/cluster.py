"""Cluster bootstrap: kubeconfig, CRD install, namespaces and ingress."""

import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Optional

import yaml

from ..exceptions import ConfigurationError, ProvisionError, SetupError
from ..exec.clients import CommandClient


logger = logging.getLogger(__name__)

DEFAULT_CLUSTER_NAME = "mcp-runtime"
NAMESPACE_MCP_RUNTIME = "mcp-runtime"
NAMESPACE_MCP_SERVERS = "mcp-servers"
NAMESPACE_REGISTRY = "registry"
MCP_SERVER_CRD_NAME = "mcpservers.mcpruntime.org"
MCP_SERVER_CRD_MANIFEST = "config/crd/bases/mcpruntime.org_mcpservers.yaml"
DEFAULT_INGRESS_MANIFEST = "config/ingress/overlays/prod"


@dataclass(frozen=True)
class IngressOptions:
    """How the ingress controller should be installed."""
    mode: str = "traefik"
    manifest: str = DEFAULT_INGRESS_MANIFEST
    force: bool = False


def render_namespace(name: str) -> str:
    return yaml.safe_dump(
        {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}},
        default_flow_style=False,
        sort_keys=False,
    )


def render_kind_config(node_count: int) -> str:
    nodes = [{"role": "control-plane"}]
    nodes.extend({"role": "worker"} for _ in range(1, node_count))
    return yaml.safe_dump(
        {"kind": "Cluster", "apiVersion": "kind.x-k8s.io/v1alpha4", "nodes": nodes},
        default_flow_style=False,
        sort_keys=False,
    )


def resolve_kubeconfig_path(kubeconfig: Optional[str] = None) -> Path:
    if kubeconfig:
        return Path(kubeconfig)
    return Path.home() / ".kube" / "config"


class ClusterManager:
    """Prepares a Kubernetes cluster for the platform."""

    def __init__(
        self,
        kubectl: CommandClient,
        kind: Optional[CommandClient] = None,
        aws: Optional[CommandClient] = None,
        eksctl: Optional[CommandClient] = None,
        stdout: Optional[IO[Any]] = None,
        stderr: Optional[IO[Any]] = None,
    ):
        self.kubectl = kubectl
        self.kind = kind
        self.aws = aws
        self.eksctl = eksctl
        self.stdout = stdout
        self.stderr = stderr

    def _stream(self, client: CommandClient, args, stdin=None) -> None:
        client.run_with_output(args, self.stdout or sys.stdout, self.stderr or sys.stderr, stdin=stdin)

    def init_cluster(self, kubeconfig: Optional[str] = None, context: Optional[str] = None) -> None:
        """Point kubectl at the cluster, install the CRD and create namespaces."""
        logger.info("Initializing cluster configuration")
        self.configure_kubeconfig(kubeconfig, context)

        logger.info("Installing CRD")
        try:
            self.kubectl.run(["apply", "--validate=false", "-f", MCP_SERVER_CRD_MANIFEST])
        except ProvisionError as e:
            raise SetupError("install_crd", f"failed to install CRD: {e}") from e

        for namespace in (NAMESPACE_MCP_RUNTIME, NAMESPACE_MCP_SERVERS):
            logger.info(f"Creating {namespace} namespace")
            try:
                self.ensure_namespace(namespace)
            except ProvisionError as e:
                raise SetupError(
                    "ensure_namespace",
                    f"failed to ensure {namespace} namespace: {e}",
                    {"namespace": namespace, "component": "cluster"},
                ) from e

        logger.info("Cluster initialized successfully")

    def configure_kubeconfig(self, kubeconfig: Optional[str] = None,
                             context: Optional[str] = None) -> Path:
        """Export KUBECONFIG for child processes and optionally switch context."""
        path = resolve_kubeconfig_path(kubeconfig)
        if not path.exists():
            raise ConfigurationError(f"kubeconfig {str(path)!r} not found or not readable")

        os.environ["KUBECONFIG"] = str(path)

        if context:
            try:
                self.kubectl.run(["config", "use-context", context])
            except ProvisionError as e:
                raise SetupError(
                    "set_context", f"failed to set context: {e}",
                    {"context": context, "component": "cluster"},
                ) from e
        return path

    def configure_kubeconfig_from_provider(self, provider: str, region: str,
                                           cluster_name: str = DEFAULT_CLUSTER_NAME,
                                           kubeconfig: Optional[str] = None) -> None:
        provider = provider.lower()
        if provider == "eks":
            if self.aws is None:
                raise ConfigurationError("aws client not configured")
            args = ["eks", "update-kubeconfig",
                    "--name", cluster_name or DEFAULT_CLUSTER_NAME,
                    "--region", region]
            if kubeconfig:
                args.extend(["--kubeconfig", kubeconfig])
            self._stream(self.aws, args)
        elif provider == "aks":
            raise ConfigurationError(
                "AKS kubeconfig not yet implemented; use "
                "`az aks get-credentials --name <cluster> --resource-group <rg>`"
            )
        elif provider == "gke":
            raise ConfigurationError(
                "GKE kubeconfig not yet implemented; use "
                "`gcloud container clusters get-credentials <cluster> --region <region> --project <project>`"
            )
        else:
            raise ConfigurationError(f"unsupported provider: {provider}")

    def configure_cluster(self, ingress: IngressOptions) -> None:
        """Install the ingress controller unless one is already present."""
        mode = ingress.mode.lower()
        if mode == "none":
            logger.info("Skipping ingress controller install (ingress=none)")
            return
        if mode != "traefik":
            raise ConfigurationError(f"unsupported ingress controller: {ingress.mode}")

        try:
            existing = self.kubectl.combined_output(["get", "ingressclass", "-o", "name"])
        except ProvisionError as e:
            logger.debug(f"Could not list ingress classes: {e}")
            existing = ""
        if existing.strip() and not ingress.force:
            logger.info("Ingress controller already present, skipping install (use --force-ingress-install to override)")
            return

        manifest = ingress.manifest or DEFAULT_INGRESS_MANIFEST
        manifest_path = Path(manifest)
        if manifest_path.is_dir():
            args = ["apply", "-k", manifest]
        elif manifest_path.is_file() and manifest_path.name.lower() == "kustomization.yaml":
            args = ["apply", "-k", str(manifest_path.parent)]
        else:
            args = ["apply", "-f", manifest]

        logger.info(f"Installing ingress controller ({mode}) from {manifest}")
        try:
            self._stream(self.kubectl, args)
        except ProvisionError as e:
            raise SetupError(
                "install_ingress",
                f"failed to install ingress controller ({ingress.mode}): {e}",
                {"ingress_mode": ingress.mode, "manifest": manifest, "component": "cluster"},
            ) from e
        logger.info("Cluster configuration complete")

    def ensure_namespace(self, name: str) -> None:
        """Create the namespace if missing. Safe to repeat."""
        self.kubectl.run(["apply", "-f", "-"], stdin=render_namespace(name))

    def check_cluster_status(self) -> str:
        info = self.kubectl.combined_output(["cluster-info"])
        for args in (["get", "nodes"],
                     ["get", "crd", MCP_SERVER_CRD_NAME],
                     ["get", "pods", "-n", NAMESPACE_MCP_RUNTIME]):
            try:
                self._stream(self.kubectl, args)
            except ProvisionError as e:
                logger.warning(f"kubectl {' '.join(args)} failed: {e}")
        return info

    def provision_cluster(self, provider: str, region: str, node_count: int,
                          cluster_name: str = DEFAULT_CLUSTER_NAME) -> None:
        name = cluster_name or DEFAULT_CLUSTER_NAME
        if provider == "kind":
            self._provision_kind(node_count, name)
        elif provider == "eks":
            if self.eksctl is None:
                raise ConfigurationError("eksctl client not configured")
            logger.info(f"Provisioning EKS cluster {name} in {region}")
            try:
                self._stream(self.eksctl, [
                    "create", "cluster", "--name", name,
                    "--region", region, "--nodes", str(node_count),
                ])
            except ProvisionError as e:
                raise SetupError(
                    "provision_eks", f"failed to provision EKS cluster: {e}",
                    {"cluster_name": name, "region": region, "node_count": node_count},
                ) from e
        elif provider in ("gke", "aks"):
            raise ConfigurationError(f"{provider.upper()} provisioning not yet implemented")
        else:
            raise ConfigurationError(f"unsupported provider: {provider}")

    def _provision_kind(self, node_count: int, name: str) -> None:
        if self.kind is None:
            raise ConfigurationError("kind client not configured")
        logger.info("Provisioning Kind cluster")
        fd, config_path = tempfile.mkstemp(prefix="mcp-kind-config-", suffix=".yaml")
        try:
            with os.fdopen(fd, 'w') as f:
                f.write(render_kind_config(node_count))
            self._stream(self.kind, ["create", "cluster", "--config", config_path, "--name", name])
        except ProvisionError as e:
            raise SetupError(
                "create_kind_cluster", f"failed to create kind cluster: {e}",
                {"cluster_name": name, "node_count": node_count},
            ) from e
        finally:
            os.remove(config_path)
        logger.info("Kind cluster provisioned successfully")
