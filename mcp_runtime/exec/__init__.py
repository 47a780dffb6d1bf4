"""
Execution module for the provisioner.
Handles validated process execution and the per-tool clients built on it.
"""

from .validators import (
    ExecSpec,
    Validator,
    allowlist_bins,
    no_control_chars,
    no_shell_meta,
    path_under,
)
from .executor import Command, Executor
from .clients import (
    CommandClient,
    aws_client,
    docker_client,
    eksctl_client,
    kind_client,
    kubectl_client,
    make_client,
)

__all__ = [
    "ExecSpec",
    "Validator",
    "allowlist_bins",
    "no_control_chars",
    "no_shell_meta",
    "path_under",
    "Command",
    "Executor",
    "CommandClient",
    "aws_client",
    "docker_client",
    "eksctl_client",
    "kind_client",
    "kubectl_client",
    "make_client",
]
