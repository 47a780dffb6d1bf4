"""
Setup pipeline: a conditionally assembled step list and its runner.

Runner state moves NOT_STARTED -> RUNNING -> COMPLETED | FAILED. Steps run
strictly in order; the first failure halts the run and nothing is rolled
back. Each step's outcome is recorded as a StepOutcome.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..exceptions import StepFailedError
from .context import SetupContext
from .deps import SetupDeps
from .steps import (
    ClusterStep,
    OperatorDeployStep,
    OperatorImageStep,
    RegistryStep,
    SetupStep,
    TLSStep,
    VerifyStep,
)


logger = logging.getLogger(__name__)


class PipelineState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class OutcomeStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StepOutcome:
    """Result of one step: completed, or failed with its cause."""
    step_name: str
    status: OutcomeStatus
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.COMPLETED


@dataclass
class PipelineResult:
    state: PipelineState = PipelineState.NOT_STARTED
    outcomes: List[StepOutcome] = field(default_factory=list)

    @property
    def failed_step(self) -> Optional[StepOutcome]:
        for outcome in self.outcomes:
            if not outcome.ok:
                return outcome
        return None

    @property
    def completed_steps(self) -> List[str]:
        return [o.step_name for o in self.outcomes if o.ok]

    def raise_for_failure(self) -> None:
        """Raise StepFailedError naming the failed step, if any."""
        failed = self.failed_step
        if failed is not None:
            raise StepFailedError(failed.step_name, failed.error) from failed.error


class SetupPipeline:
    """Fluent builder for the ordered step list."""

    def __init__(self):
        self._steps: List[SetupStep] = []

    def with_step(self, step: SetupStep) -> "SetupPipeline":
        self._steps.append(step)
        return self

    def with_step_if(self, condition: bool, step: SetupStep) -> "SetupPipeline":
        if condition:
            self._steps.append(step)
        return self

    def build(self) -> List[SetupStep]:
        return list(self._steps)


def build_setup_steps(ctx: SetupContext) -> List[SetupStep]:
    """Canonical order. Inclusion of optional steps is decided here, once."""
    return (
        SetupPipeline()
        .with_step(ClusterStep())
        .with_step_if(ctx.plan.tls_enabled, TLSStep())
        .with_step(RegistryStep())
        .with_step(OperatorImageStep())
        .with_step(OperatorDeployStep())
        .with_step(VerifyStep())
        .build()
    )


def run_setup_steps(step_logger: logging.Logger, deps: SetupDeps, ctx: SetupContext,
                    steps: List[SetupStep]) -> PipelineResult:
    """Run steps in order, stopping at the first failure.

    Never raises for step failures; inspect the result or call
    ``raise_for_failure()``.
    """
    result = PipelineResult(state=PipelineState.RUNNING)
    for index, step in enumerate(steps):
        logger.debug(f"Running setup step {index + 1}/{len(steps)}: {step.name}")
        try:
            step.run(step_logger, deps, ctx)
        except Exception as e:
            logger.debug(f"Setup step {step.name!r} failed: {e}")
            result.outcomes.append(StepOutcome(step.name, OutcomeStatus.FAILED, e))
            result.state = PipelineState.FAILED
            return result
        result.outcomes.append(StepOutcome(step.name, OutcomeStatus.COMPLETED))

    result.state = PipelineState.COMPLETED
    return result
