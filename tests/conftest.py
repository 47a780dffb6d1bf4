"""Shared fixtures."""

import pytest

from tests.fakes import DepsRecorder, RecordingExecutor


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def recorder():
    return DepsRecorder()
