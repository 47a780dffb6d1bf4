"""Readiness polling and diagnostics."""

from .wait import DeploymentWaiter, WaitResult
from .diagnostics import DiagnosticsReporter

__all__ = ['DeploymentWaiter', 'WaitResult', 'DiagnosticsReporter']
