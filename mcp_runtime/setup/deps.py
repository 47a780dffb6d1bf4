"""
Dependency bag for setup steps.

Every side effect a step can cause goes through one of these fields. The
bag is always fully constructed: production code builds it with
build_default_deps(), tests build it from recording fakes.
"""

import os
import sys
from dataclasses import dataclass
from typing import IO, Any, Callable, Optional, Protocol

from ..config import CLIConfig, ExternalRegistryConfig, resolve_external_registry_config
from ..exec.clients import (
    aws_client,
    docker_client,
    eksctl_client,
    kind_client,
    kubectl_client,
    make_client,
)
from ..exec.executor import Executor
from ..platform.cert import CertManager
from ..platform.cluster import ClusterManager, IngressOptions
from ..platform.operator import OperatorManager
from ..platform.registry import RegistryManager
from ..readiness.diagnostics import DiagnosticsReporter
from ..readiness.wait import DeploymentWaiter


class ClusterManagerAPI(Protocol):
    def init_cluster(self, kubeconfig: Optional[str] = None, context: Optional[str] = None) -> None: ...

    def configure_cluster(self, ingress: IngressOptions) -> None: ...


class RegistryManagerAPI(Protocol):
    def show_registry_info(self) -> None: ...

    def push_in_cluster(self, source: str, target: str, helper_namespace: str) -> None: ...


@dataclass
class SetupDeps:
    resolve_external_registry_config: Callable[[Optional[ExternalRegistryConfig]], Optional[ExternalRegistryConfig]]
    cluster_manager: ClusterManagerAPI
    registry_manager: RegistryManagerAPI
    login_registry: Callable[[str, str, str], None]
    deploy_registry: Callable[[str, int, str, str, str], None]
    wait_for_deployment_available: Callable[[str, str, str, float], Any]
    print_deployment_diagnostics: Callable[[str, str, str], None]
    setup_tls: Callable[[], None]
    build_operator_image: Callable[[str], None]
    push_operator_image: Callable[[str], None]
    ensure_namespace: Callable[[str], None]
    get_platform_registry_url: Callable[[], str]
    push_operator_image_to_internal: Callable[[str, str, str], None]
    deploy_operator_manifests: Callable[[str], None]
    configure_provisioned_registry_env: Callable[[Optional[ExternalRegistryConfig], str], None]
    restart_deployment: Callable[[str, str], None]
    check_crd_installed: Callable[[str], None]
    get_deployment_timeout: Callable[[], float]
    get_registry_port: Callable[[], int]
    operator_image_for: Callable[[Optional[ExternalRegistryConfig], bool], str]


def build_default_deps(
    executor: Executor,
    config: CLIConfig,
    workdir: Optional[str] = None,
    stdout: Optional[IO[Any]] = None,
    stderr: Optional[IO[Any]] = None,
) -> SetupDeps:
    """Wire the real managers and clients into a SetupDeps.

    Args:
        executor: The executor every client spawns processes through
        config: Environment-derived tunables
        workdir: Repository root holding config/ manifests (default: cwd).
            kubectl arguments are confined to this directory.
        stdout: Writer for command output shown to the user
        stderr: Writer for command errors shown to the user
    """
    root = workdir or os.getcwd()
    out = stdout or sys.stdout
    err = stderr or sys.stderr

    kubectl = kubectl_client(executor, root)
    docker = docker_client(executor)

    cluster = ClusterManager(
        kubectl,
        kind=kind_client(executor),
        aws=aws_client(executor),
        eksctl=eksctl_client(executor),
        stdout=out,
        stderr=err,
    )
    registry = RegistryManager(
        kubectl, docker, cluster,
        registry_port=config.registry_port,
        skopeo_image=config.skopeo_image,
        workdir=root,
        stdout=out,
        stderr=err,
    )
    cert = CertManager(kubectl, cluster, cert_timeout_sec=config.cert_timeout_sec,
                       stdout=out, stderr=err)
    operator = OperatorManager(
        kubectl, docker, make_client(executor), cluster,
        platform_registry_url=registry.platform_registry_url,
        image_override=config.operator_image,
        workdir=root,
        stdout=out,
        stderr=err,
    )
    waiter = DeploymentWaiter(kubectl)
    diagnostics = DiagnosticsReporter(kubectl, stdout=out, stderr=err)

    return SetupDeps(
        resolve_external_registry_config=resolve_external_registry_config,
        cluster_manager=cluster,
        registry_manager=registry,
        login_registry=registry.login,
        deploy_registry=registry.deploy_registry,
        wait_for_deployment_available=waiter.wait,
        print_deployment_diagnostics=diagnostics.report,
        setup_tls=cert.setup_tls,
        build_operator_image=operator.build_image,
        push_operator_image=operator.push_image,
        ensure_namespace=cluster.ensure_namespace,
        get_platform_registry_url=registry.platform_registry_url,
        push_operator_image_to_internal=registry.push_in_cluster,
        deploy_operator_manifests=operator.deploy_manifests,
        configure_provisioned_registry_env=operator.configure_registry_env,
        restart_deployment=operator.restart_deployment,
        check_crd_installed=operator.check_crd_installed,
        get_deployment_timeout=lambda: config.deployment_timeout_sec,
        get_registry_port=lambda: config.registry_port,
        operator_image_for=operator.image_for,
    )
