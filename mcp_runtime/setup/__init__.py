"""Platform setup: plan, context, steps and the pipeline that runs them."""

from .plan import SetupPlan, SetupPlanInput, build_setup_plan
from .context import SetupContext
from .deps import SetupDeps, build_default_deps
from .steps import SetupStep
from .pipeline import (
    PipelineResult,
    PipelineState,
    SetupPipeline,
    StepOutcome,
    build_setup_steps,
    run_setup_steps,
)
from .runner import setup_platform

__all__ = [
    "SetupPlan",
    "SetupPlanInput",
    "build_setup_plan",
    "SetupContext",
    "SetupDeps",
    "build_default_deps",
    "SetupStep",
    "PipelineResult",
    "PipelineState",
    "SetupPipeline",
    "StepOutcome",
    "build_setup_steps",
    "run_setup_steps",
    "setup_platform",
]
