"""
Tests for the command validators.
"""

import os

import pytest

from mcp_runtime.exceptions import CommandValidationError
from mcp_runtime.exec.validators import (
    ExecSpec,
    allowlist_bins,
    no_control_chars,
    no_shell_meta,
    path_under,
    validate,
)


class TestNoShellMeta:
    """Shell metacharacters are rejected anywhere in an argument."""

    @pytest.mark.parametrize("arg", [
        "a;b", "a|b", "a&b", "$(x)", "`x`", "a>b", "a<b", "(x)",
    ])
    def test_rejects_metacharacters(self, arg):
        with pytest.raises(CommandValidationError) as exc_info:
            no_shell_meta()(ExecSpec("aws", ("eks", arg)))
        assert exc_info.value.arg == arg
        assert exc_info.value.exit_code == 2

    def test_accepts_plain_arguments(self):
        no_shell_meta()(ExecSpec("aws", ("eks", "update-kubeconfig", "--region", "us-west-1")))

    def test_accepts_backslash(self):
        no_shell_meta()(ExecSpec("aws", ("a\\b",)))


class TestNoControlChars:
    @pytest.mark.parametrize("arg", ["a\nb", "a\rb", "a\tb"])
    def test_rejects_control_characters(self, arg):
        with pytest.raises(CommandValidationError):
            no_control_chars()(ExecSpec("kubectl", ("get", arg)))

    def test_accepts_spaces_and_symbols(self):
        no_control_chars()(ExecSpec("kubectl", ("get", "pods", "-l", "app=registry", "a;b")))


class TestPathUnder:
    """Arguments read as paths must stay inside the root."""

    def test_stdin_dash_always_accepted(self, tmp_path):
        path_under(str(tmp_path))(ExecSpec("kubectl", ("apply", "-f", "-")))

    def test_rejects_parent_escape(self, tmp_path):
        with pytest.raises(CommandValidationError) as exc_info:
            path_under(str(tmp_path))(ExecSpec("kubectl", ("apply", "-f", "../../etc/passwd")))
        assert "escapes" in str(exc_info.value)

    def test_rejects_absolute_path_outside_root(self, tmp_path):
        with pytest.raises(CommandValidationError):
            path_under(str(tmp_path / "repo"))(ExecSpec("kubectl", ("apply", "-f", "/etc/passwd")))

    def test_accepts_relative_path_inside_root(self, tmp_path):
        path_under(str(tmp_path))(ExecSpec("kubectl", ("apply", "-f", "config/x.yaml")))

    def test_accepts_absolute_path_inside_root(self, tmp_path):
        inside = os.path.join(str(tmp_path), "config", "x.yaml")
        path_under(str(tmp_path))(ExecSpec("kubectl", ("apply", "-f", inside)))

    def test_accepts_dotdot_that_stays_inside(self, tmp_path):
        path_under(str(tmp_path))(ExecSpec("kubectl", ("apply", "-f", "config/../manifests/x.yaml")))

    def test_rejects_root_parent_itself(self, tmp_path):
        with pytest.raises(CommandValidationError):
            path_under(str(tmp_path))(ExecSpec("kubectl", ("cp", "..")))

    def test_sibling_with_common_prefix_rejected(self, tmp_path):
        root = tmp_path / "repo"
        with pytest.raises(CommandValidationError):
            path_under(str(root))(ExecSpec("kubectl", ("apply", "-f", "../repo-other/x.yaml")))


class TestAllowlistBins:
    def test_accepts_listed_program(self):
        allowlist_bins("aws", "eksctl")(ExecSpec("aws", ()))

    def test_rejects_unlisted_program(self):
        with pytest.raises(CommandValidationError) as exc_info:
            allowlist_bins("aws")(ExecSpec("curl", ("http://example.com",)))
        assert exc_info.value.program == "curl"


class TestValidateChain:
    def test_first_failure_wins(self):
        calls = []

        def first(spec):
            calls.append("first")
            raise CommandValidationError(spec.program, "first failed")

        def second(spec):
            calls.append("second")

        with pytest.raises(CommandValidationError, match="first failed"):
            validate(ExecSpec("x", ()), [first, second])
        assert calls == ["first"]

    def test_empty_chain_accepts(self):
        validate(ExecSpec("anything", ("a;b",)), [])

    def test_exec_spec_args_are_tuple(self):
        spec = ExecSpec("kubectl", ["get", "pods"])
        assert spec.args == ("get", "pods")
