"""
Platform components provisioned during setup.
Each manager wraps the external tools for one concern.
"""

from .cluster import ClusterManager, IngressOptions
from .registry import RegistryManager
from .cert import CertManager
from .operator import OperatorManager

__all__ = [
    "ClusterManager",
    "IngressOptions",
    "RegistryManager",
    "CertManager",
    "OperatorManager",
]
