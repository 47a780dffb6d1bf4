"""
Typed clients for the external tools used during setup.

Each client binds one program to a fixed validator chain and routes every
call through the injected :class:`Executor`.
"""

import os
from typing import IO, Any, List, Optional, Sequence

from .executor import Command, Executor, StdinData
from .validators import Validator, allowlist_bins, no_control_chars, no_shell_meta, path_under


class CommandClient:
    """Client for a single external program."""

    def __init__(self, executor: Executor, program: str, validators: Sequence[Validator] = ()):
        self.executor = executor
        self.program = program
        self.validators: List[Validator] = list(validators)

    def command(self, args: Sequence[str]) -> Command:
        """Return the validated command without running it."""
        return self.executor.command(self.program, args, *self.validators)

    def run(self, args: Sequence[str], stdin: StdinData = None) -> None:
        self.command(args).run(stdin=stdin)

    def output(self, args: Sequence[str], stdin: StdinData = None) -> str:
        return self.command(args).output(stdin=stdin)

    def combined_output(self, args: Sequence[str]) -> str:
        return self.command(args).combined_output()

    def run_with_output(self, args: Sequence[str], stdout: Optional[IO[Any]],
                        stderr: Optional[IO[Any]], stdin: StdinData = None) -> None:
        self.command(args).run(stdout=stdout, stderr=stderr, stdin=stdin)


def kubectl_client(executor: Executor, root: Optional[str] = None) -> CommandClient:
    """kubectl: arguments may not carry control characters or escape ``root``."""
    return CommandClient(
        executor, "kubectl",
        [no_control_chars(), path_under(root or os.getcwd())],
    )


def docker_client(executor: Executor) -> CommandClient:
    return CommandClient(executor, "docker", [no_control_chars()])


def make_client(executor: Executor) -> CommandClient:
    return CommandClient(executor, "make", [no_control_chars()])


def kind_client(executor: Executor) -> CommandClient:
    return CommandClient(executor, "kind", [no_control_chars()])


def aws_client(executor: Executor) -> CommandClient:
    """aws CLI: region and cluster names come straight from the user."""
    return CommandClient(
        executor, "aws",
        [allowlist_bins("aws"), no_shell_meta(), no_control_chars()],
    )


def eksctl_client(executor: Executor) -> CommandClient:
    return CommandClient(
        executor, "eksctl",
        [allowlist_bins("eksctl"), no_shell_meta(), no_control_chars()],
    )
