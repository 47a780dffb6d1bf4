"""Entry point for a full platform setup run."""

import logging
from typing import Optional, Tuple

from ..config import ExternalRegistryConfig
from ..platform.operator import DEFAULT_REGISTRY_SECRET_NAME
from .context import SetupContext
from .deps import SetupDeps
from .pipeline import PipelineResult, build_setup_steps, run_setup_steps
from .plan import SetupPlan


logger = logging.getLogger(__name__)

STEP_LOGGER_NAME = "mcp_runtime.setup"


def resolve_registry_setup(deps: SetupDeps) -> Tuple[Optional[ExternalRegistryConfig], bool, str]:
    """Return (external registry, using external, secret name).

    Raises:
        ConfigurationError: if registry credentials were given without a url
    """
    ext = deps.resolve_external_registry_config(None)
    return ext, ext is not None, DEFAULT_REGISTRY_SECRET_NAME


def setup_platform(plan: SetupPlan, deps: SetupDeps,
                   step_logger: Optional[logging.Logger] = None) -> PipelineResult:
    """Run every setup step for ``plan``.

    Returns:
        The completed PipelineResult.

    Raises:
        ConfigurationError: if the external registry config is invalid
        StepFailedError: naming the first step that failed
    """
    logger.info("MCP Runtime Setup")

    ext, using_external, secret_name = resolve_registry_setup(deps)
    ctx = SetupContext(
        plan=plan,
        external_registry=ext,
        using_external_registry=using_external,
        registry_secret_name=secret_name,
    )

    steps = build_setup_steps(ctx)
    result = run_setup_steps(step_logger or logging.getLogger(STEP_LOGGER_NAME), deps, ctx, steps)
    result.raise_for_failure()

    logger.info("Platform setup complete")
    return result
