"""CLI command handlers."""

from .setup import run_setup
from .registry import provision_registry
from .cluster import run_cluster

__all__ = ['run_setup', 'provision_registry', 'run_cluster']
