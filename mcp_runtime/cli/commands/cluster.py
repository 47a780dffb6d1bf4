"""Cluster commands: init, status, config and provisioning."""

import logging
import os
import sys
from argparse import Namespace
from typing import Optional

from mcp_runtime.exceptions import ProvisionError
from mcp_runtime.exec.clients import aws_client, eksctl_client, kind_client, kubectl_client
from mcp_runtime.exec.executor import Executor
from mcp_runtime.platform.cluster import ClusterManager, IngressOptions

from .common import configure_logging, report_error


logger = logging.getLogger(__name__)


def default_cluster_manager(executor: Executor) -> ClusterManager:
    return ClusterManager(
        kubectl_client(executor, os.getcwd()),
        kind=kind_client(executor),
        aws=aws_client(executor),
        eksctl=eksctl_client(executor),
    )


def configure_cluster(args: Namespace, manager: ClusterManager) -> None:
    """Apply ``cluster config``: provider kubeconfig, then context, then ingress."""
    kubeconfig = args.kubeconfig or None
    if args.provider:
        manager.configure_kubeconfig_from_provider(args.provider, args.region, args.name, kubeconfig)
    if args.kubeconfig or args.context or args.provider:
        manager.configure_kubeconfig(kubeconfig, args.context or None)
    manager.configure_cluster(IngressOptions(
        mode=args.ingress,
        manifest=args.ingress_manifest,
        force=args.force_ingress_install,
    ))


def run_cluster(args: Namespace, manager: Optional[ClusterManager] = None) -> int:
    """Dispatch the ``cluster`` subcommands."""
    configure_logging(args)
    manager = manager or default_cluster_manager(Executor(cwd=os.getcwd()))

    try:
        if args.cluster_command == 'init':
            manager.init_cluster(args.kubeconfig or None, args.context or None)
        elif args.cluster_command == 'status':
            logger.info("Checking cluster status")
            sys.stdout.write(manager.check_cluster_status())
        elif args.cluster_command == 'config':
            configure_cluster(args, manager)
        elif args.cluster_command == 'provision':
            manager.provision_cluster(args.provider, args.region, args.nodes, args.name)
        else:
            logger.error(f"Unknown cluster command: {args.cluster_command}")
            return 1
        return 0
    except ProvisionError as e:
        return report_error(e)
