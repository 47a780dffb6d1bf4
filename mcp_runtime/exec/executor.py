"""
Guarded executor for external commands.

Commands are always spawned in argv form (never through a shell), and only
after every validator in the chain has accepted the invocation.
"""

import io
import logging
import os
import shlex
import subprocess
from typing import IO, Any, Dict, List, Optional, Sequence, Union

from ..exceptions import CommandExecutionError
from .validators import ExecSpec, Validator, describe, validate


logger = logging.getLogger(__name__)

StdinData = Union[str, bytes, IO[Any], None]

TIMEOUT_EXIT_CODE = 124


def _encode(data: StdinData) -> Optional[bytes]:
    if data is None:
        return None
    if hasattr(data, "read"):
        data = data.read()
    if isinstance(data, bytes):
        return data
    return data.encode("utf-8")


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _has_fileno(stream: Optional[IO[Any]]) -> bool:
    if stream is None:
        return False
    try:
        stream.fileno()
    except (AttributeError, OSError, ValueError):
        return False
    return True


def _write(stream: IO[Any], data: Optional[bytes]) -> None:
    if not data:
        return
    if isinstance(stream, io.TextIOBase):
        stream.write(_decode(data))
    else:
        stream.write(data)
    stream.flush()


class Command:
    """A validated invocation, ready to run.

    Instances are produced by :meth:`Executor.command`; holding one means the
    validator chain has already passed.
    """

    def __init__(self, spec: ExecSpec, cwd: Optional[str] = None,
                 env: Optional[Dict[str, str]] = None,
                 timeout_sec: Optional[float] = None):
        self.spec = spec
        self.cwd = cwd
        self.env = env
        self.timeout_sec = timeout_sec

    @property
    def argv(self) -> List[str]:
        return [self.spec.program, *self.spec.args]

    def __repr__(self) -> str:
        return f"Command({shlex.join(self.argv)})"

    def _spawn(self, stdin: StdinData, stdout: Any, stderr: Any) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {shlex.join(self.argv)}")
        env = None
        if self.env is not None:
            env = os.environ.copy()
            env.update(self.env)
        # Streams with a descriptor are inherited by the child; others are read into memory
        if _has_fileno(stdin):
            stdin_arg, input_data = stdin, None
        else:
            stdin_arg = subprocess.DEVNULL if stdin is None else None
            input_data = _encode(stdin)
        try:
            return subprocess.run(
                self.argv,
                input=input_data,
                stdin=stdin_arg,
                stdout=stdout,
                stderr=stderr,
                cwd=self.cwd,
                env=env,
                timeout=self.timeout_sec,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandExecutionError(
                self.spec.program,
                self.spec.args,
                returncode=TIMEOUT_EXIT_CODE,
                stderr=_decode(e.stderr),
                message=f"{self.spec.program} timed out after {self.timeout_sec}s",
            ) from e
        except OSError as e:
            raise CommandExecutionError(
                self.spec.program,
                self.spec.args,
                message=f"failed to start {self.spec.program}: {e}",
            ) from e

    def _check(self, result: subprocess.CompletedProcess, stderr_text: str) -> None:
        if result.returncode != 0:
            raise CommandExecutionError(
                self.spec.program,
                self.spec.args,
                returncode=result.returncode,
                stderr=stderr_text,
            )

    def output(self, stdin: StdinData = None) -> str:
        """Run and return captured stdout. Raises on non-zero exit."""
        result = self._spawn(stdin, subprocess.PIPE, subprocess.PIPE)
        self._check(result, _decode(result.stderr))
        return _decode(result.stdout)

    def combined_output(self, stdin: StdinData = None) -> str:
        """Run and return stdout and stderr interleaved. Raises on non-zero exit."""
        result = self._spawn(stdin, subprocess.PIPE, subprocess.STDOUT)
        combined = _decode(result.stdout)
        self._check(result, combined)
        return combined

    def run(self, stdout: Optional[IO[Any]] = None, stderr: Optional[IO[Any]] = None,
            stdin: StdinData = None) -> None:
        """Run to completion, streaming into the given writers.

        Writers backed by a real file descriptor receive the child's output
        directly; anything else is filled after the process exits. When a
        writer is omitted its output is captured and logged at debug level.
        """
        out_target = stdout if _has_fileno(stdout) else subprocess.PIPE
        err_target = stderr if _has_fileno(stderr) else subprocess.PIPE

        result = self._spawn(stdin, out_target, err_target)

        captured_err = _decode(result.stderr)
        if out_target is subprocess.PIPE:
            if stdout is not None:
                _write(stdout, result.stdout)
            elif result.stdout:
                logger.debug(f"{self.spec.program} stdout: {_decode(result.stdout).rstrip()}")
        if err_target is subprocess.PIPE:
            if stderr is not None:
                _write(stderr, result.stderr)
            elif result.stderr:
                logger.debug(f"{self.spec.program} stderr: {captured_err.rstrip()}")

        self._check(result, captured_err)


class Executor:
    """Builds :class:`Command` objects after running their validator chain.

    One executor is created by the caller (normally the CLI) and injected into
    every client that needs to spawn processes.
    """

    def __init__(self, cwd: Optional[str] = None, env: Optional[Dict[str, str]] = None,
                 timeout_sec: Optional[float] = None):
        """
        Initialize the executor.

        Args:
            cwd: Working directory for spawned processes (default: inherit)
            env: Extra environment variables layered over os.environ
            timeout_sec: Per-command timeout; None waits indefinitely
        """
        self.cwd = cwd
        self.env = env
        self.timeout_sec = timeout_sec

    def command(self, program: str, args: Sequence[str], *validators: Validator) -> Command:
        """Validate an invocation and return a runnable command.

        Raises:
            CommandValidationError: if any validator rejects the invocation.
                Nothing is spawned in that case.
        """
        spec = ExecSpec(program, tuple(args))
        if validators:
            logger.debug(f"Validating {program} with [{describe(validators)}]")
        validate(spec, validators)
        return Command(spec, cwd=self.cwd, env=self.env, timeout_sec=self.timeout_sec)
