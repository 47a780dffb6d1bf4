"""State shared across the steps of one setup run."""

from dataclasses import dataclass
from typing import Optional

from ..config import ExternalRegistryConfig
from ..platform.operator import DEFAULT_REGISTRY_SECRET_NAME
from .plan import SetupPlan


@dataclass
class SetupContext:
    """Created once per run and mutated only by steps, in order."""
    plan: SetupPlan
    external_registry: Optional[ExternalRegistryConfig] = None
    using_external_registry: bool = False
    registry_secret_name: str = DEFAULT_REGISTRY_SECRET_NAME
    operator_image: str = ""  # set by the operator-image step
