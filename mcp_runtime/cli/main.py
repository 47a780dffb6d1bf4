"""Main CLI entry point for mcp-runtime."""

import argparse
import sys
from typing import Optional

from .commands import provision_registry, run_cluster, run_setup


def add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warn', 'error'],
        default='info',
        help='Set logging level'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Show command details'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Only show errors'
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the mcp-runtime CLI."""
    parser = argparse.ArgumentParser(
        prog='mcp-runtime',
        description='MCP runtime platform provisioning'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Setup command
    setup_parser = subparsers.add_parser(
        'setup',
        help='Set up the complete MCP platform',
        description='Initialize the cluster, configure ingress and optional TLS, '
                    'deploy the registry and the operator, then verify.'
    )
    setup_parser.add_argument(
        '--registry-type',
        default='docker',
        help='Registry type (docker)'
    )
    setup_parser.add_argument(
        '--registry-storage',
        default='20Gi',
        help='Registry storage size (default: 20Gi)'
    )
    setup_parser.add_argument(
        '--ingress',
        default='traefik',
        help='Ingress controller to install (traefik|none)'
    )
    setup_parser.add_argument(
        '--ingress-manifest',
        default=None,
        help='Manifest to apply when installing the ingress controller '
             '(default: config/ingress/overlays/http, or the prod overlay with --with-tls)'
    )
    setup_parser.add_argument(
        '--force-ingress-install',
        action='store_true',
        help='Install ingress even if an ingress class already exists'
    )
    setup_parser.add_argument(
        '--with-tls',
        action='store_true',
        help='Enable TLS overlays (ingress/registry); default is HTTP for dev'
    )
    setup_parser.add_argument(
        '--test-mode',
        action='store_true',
        help='Use the pre-loaded operator image instead of building and pushing one'
    )
    add_logging_arguments(setup_parser)

    # Registry commands
    registry_parser = subparsers.add_parser('registry', help='Manage the container registry')
    registry_sub = registry_parser.add_subparsers(dest='registry_command', help='Registry commands')
    provision_parser = registry_sub.add_parser('provision', help='Configure an external registry')
    provision_parser.add_argument('--url', default='', help='External registry URL (e.g., registry.example.com)')
    provision_parser.add_argument('--username', default='', help='Registry username (optional)')
    provision_parser.add_argument('--password', default='', help='Registry password (optional)')
    provision_parser.add_argument(
        '--operator-image',
        default='',
        help='Build and push the operator image to this reference'
    )
    add_logging_arguments(provision_parser)

    # Cluster commands
    cluster_parser = subparsers.add_parser('cluster', help='Manage the Kubernetes cluster')
    cluster_sub = cluster_parser.add_subparsers(dest='cluster_command', help='Cluster commands')
    init_parser = cluster_sub.add_parser(
        'init',
        help='Initialize cluster configuration',
        description='Point kubectl at the cluster, install the CRD and create the platform namespaces.'
    )
    init_parser.add_argument('--kubeconfig', default='', help='Path to kubeconfig file (default: ~/.kube/config)')
    init_parser.add_argument('--context', default='', help='Kubernetes context to use')
    add_logging_arguments(init_parser)

    status_parser = cluster_sub.add_parser('status', help='Check cluster status')
    add_logging_arguments(status_parser)

    config_parser = cluster_sub.add_parser(
        'config',
        help='Configure cluster settings',
        description='Configure kubeconfig (optionally from a cloud provider) and install ingress.'
    )
    config_parser.add_argument('--ingress', default='traefik', help='Ingress controller to install (traefik|none)')
    config_parser.add_argument(
        '--ingress-manifest',
        default='config/ingress/overlays/prod',
        help='Manifest to apply when installing the ingress controller'
    )
    config_parser.add_argument(
        '--force-ingress-install',
        action='store_true',
        help='Install ingress even if an ingress class already exists'
    )
    config_parser.add_argument('--kubeconfig', default='', help='Path to kubeconfig file (default: ~/.kube/config)')
    config_parser.add_argument('--context', default='', help='Kubernetes context to use')
    config_parser.add_argument('--provider', default='', help='Cloud provider for kubeconfig (eks; aks/gke planned)')
    config_parser.add_argument('--region', default='us-west-1', help='Region for cloud provider kubeconfig')
    config_parser.add_argument('--name', default='mcp-runtime', help='Cluster name for cloud provider kubeconfig')
    add_logging_arguments(config_parser)

    cluster_provision = cluster_sub.add_parser('provision', help='Provision a new cluster')
    cluster_provision.add_argument('--provider', default='kind', help='Cluster provider (kind, eks)')
    cluster_provision.add_argument('--region', default='us-west-1', help='Region for cluster')
    cluster_provision.add_argument('--nodes', type=int, default=3, help='Number of nodes')
    cluster_provision.add_argument('--name', default='mcp-runtime', help='Cluster name')
    add_logging_arguments(cluster_provision)

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'setup':
        return run_setup(parsed_args)
    elif parsed_args.command == 'registry' and parsed_args.registry_command == 'provision':
        return provision_registry(parsed_args)
    elif parsed_args.command == 'cluster' and parsed_args.cluster_command:
        return run_cluster(parsed_args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
