"""Provisioner exceptions.

Every error carries an ``exit_code`` so the CLI can map it to a process
exit status without inspecting the type.
"""

from typing import Any, Dict, Optional, Sequence


class ProvisionError(Exception):
    """Base class for all provisioning failures."""

    exit_code = 1


class CommandValidationError(ProvisionError):
    """Raised when a validator rejects an invocation. No process was started."""

    exit_code = 2

    def __init__(self, program: str, message: str, arg: Optional[str] = None):
        self.program = program
        self.arg = arg
        self.reason = message
        if arg is not None:
            super().__init__(f"{program}: {message}: {arg!r}")
        else:
            super().__init__(f"{program}: {message}")


class CommandExecutionError(ProvisionError):
    """Raised when an external command fails to start, exits non-zero or times out."""

    def __init__(
        self,
        program: str,
        args: Sequence[str],
        returncode: Optional[int] = None,
        stderr: str = "",
        message: Optional[str] = None,
    ):
        self.program = program
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        if returncode == 124:
            self.exit_code = 124

        if message is None:
            message = f"{program} exited with status {returncode}"
            detail = stderr.strip()
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)


class ReadinessTimeoutError(ProvisionError):
    """Raised when a deployment does not become available before its deadline."""

    exit_code = 124

    def __init__(self, name: str, namespace: str, timeout_sec: float):
        self.name = name
        self.namespace = namespace
        self.timeout_sec = timeout_sec
        super().__init__(
            f"timed out waiting for deployment {name} in namespace {namespace}"
        )


class ConfigurationError(ProvisionError):
    """Raised for invalid or incomplete configuration (flags, env, files)."""

    exit_code = 2


class SetupError(ProvisionError):
    """A step-level failure with a short description and structured context.

    The underlying error, when there is one, is attached via ``raise ... from``.
    """

    def __init__(self, kind: str, message: str, context: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.context = context or {}
        super().__init__(message)

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        cause = self.__cause__
        if isinstance(cause, ProvisionError):
            return cause.exit_code
        return 1


class StepFailedError(ProvisionError):
    """Raised by the pipeline when a step fails. Names the failing step."""

    def __init__(self, step_name: str, cause: BaseException):
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"setup step {step_name!r} failed: {cause}")

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        if isinstance(self.cause, ProvisionError):
            return self.cause.exit_code
        return 1
