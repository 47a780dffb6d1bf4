"""Validators for external command invocations.

A validator is any callable taking an :class:`ExecSpec` and raising
:class:`CommandValidationError` when the invocation is not acceptable.
Validators are composed as an ordered chain; the first failure wins.
"""

import os
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence, Tuple

from ..exceptions import CommandValidationError


SHELL_META_CHARS = frozenset("&|;<>()$`")
CONTROL_CHARS = frozenset("\r\n\t")


@dataclass(frozen=True)
class ExecSpec:
    """A prospective invocation: program name plus argument list."""
    program: str
    args: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))


Validator = Callable[[ExecSpec], None]


def validate(spec: ExecSpec, validators: Iterable[Validator]) -> None:
    """Run validators in order. Raises on the first rejection."""
    for validator in validators:
        validator(spec)


def no_shell_meta() -> Validator:
    """Reject any argument containing a shell metacharacter."""
    def _check(spec: ExecSpec) -> None:
        for arg in spec.args:
            if any(ch in SHELL_META_CHARS for ch in arg):
                raise CommandValidationError(
                    spec.program, "argument contains shell metacharacters", arg
                )
    return _check


def no_control_chars() -> Validator:
    """Reject arguments containing carriage return, newline or tab."""
    def _check(spec: ExecSpec) -> None:
        for arg in spec.args:
            if any(ch in CONTROL_CHARS for ch in arg):
                raise CommandValidationError(
                    spec.program, "argument contains control characters", arg
                )
    return _check


def path_under(root: str) -> Validator:
    """Reject arguments that, read as paths, resolve outside ``root``.

    Relative arguments are joined to the absolute root before normalisation.
    The literal ``-`` (stdin/stdout) is always accepted.
    """
    abs_root = os.path.normpath(os.path.abspath(root))

    def _check(spec: ExecSpec) -> None:
        for arg in spec.args:
            if arg == "-":
                continue
            candidate = os.path.normpath(os.path.join(abs_root, arg))
            rel = os.path.relpath(candidate, abs_root)
            if rel == os.pardir or rel.startswith(os.pardir + os.sep):
                raise CommandValidationError(
                    spec.program, f"path escapes {abs_root}", arg
                )
    return _check


def allowlist_bins(*names: str) -> Validator:
    """Reject any program not named in the allow-list."""
    allowed = frozenset(names)

    def _check(spec: ExecSpec) -> None:
        if spec.program not in allowed:
            raise CommandValidationError(
                spec.program,
                f"program not in allow-list ({', '.join(sorted(allowed))})",
            )
    return _check


def describe(validators: Sequence[Validator]) -> str:
    """Short human-readable summary of a chain, for debug logging."""
    names = []
    for validator in validators:
        qualname = getattr(validator, "__qualname__", repr(validator))
        names.append(qualname.split(".<locals>")[0])
    return ", ".join(names) or "none"
