"""
Recording test doubles for the executor and the setup dependency bag.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from mcp_runtime.config import ExternalRegistryConfig
from mcp_runtime.exceptions import CommandExecutionError
from mcp_runtime.exec.executor import Executor
from mcp_runtime.exec.validators import ExecSpec, validate
from mcp_runtime.setup.deps import SetupDeps


class FakeCommand:
    """Stands in for Command; replays a scripted response and records the call."""

    def __init__(self, executor: "RecordingExecutor", spec: ExecSpec):
        self.executor = executor
        self.spec = spec

    def _execute(self, stdin) -> str:
        self.executor.calls.append(self.spec)
        self.executor.stdins.append(stdin)
        output, error = self.executor.response_for(self.spec)
        if error is not None:
            raise error
        return output

    def output(self, stdin=None) -> str:
        return self._execute(stdin)

    def combined_output(self, stdin=None) -> str:
        return self._execute(stdin)

    def run(self, stdout=None, stderr=None, stdin=None) -> None:
        output = self._execute(stdin)
        if stdout is not None and output:
            stdout.write(output)


class RecordingExecutor(Executor):
    """Executor that validates like the real one but never spawns anything.

    Responses are matched by program and argument prefix; the most recently
    registered match wins. Unmatched commands succeed with empty output.
    """

    def __init__(self):
        super().__init__()
        self.calls: List[ExecSpec] = []
        self.stdins: List[Any] = []
        self._responses: List[Tuple[str, Tuple[str, ...], str, Optional[BaseException]]] = []

    def respond(self, program: str, args_prefix: Sequence[str] = (), output: str = "",
                error: Optional[BaseException] = None) -> None:
        self._responses.append((program, tuple(args_prefix), output, error))

    def fail(self, program: str, args_prefix: Sequence[str] = (), stderr: str = "boom") -> None:
        self.respond(program, args_prefix,
                     error=CommandExecutionError(program, list(args_prefix), returncode=1, stderr=stderr))

    def response_for(self, spec: ExecSpec) -> Tuple[str, Optional[BaseException]]:
        for program, prefix, output, error in reversed(self._responses):
            if spec.program == program and spec.args[:len(prefix)] == prefix:
                return output, error
        return "", None

    def command(self, program, args, *validators):
        spec = ExecSpec(program, tuple(args))
        validate(spec, validators)
        return FakeCommand(self, spec)

    def args_for(self, program: str) -> List[Tuple[str, ...]]:
        return [c.args for c in self.calls if c.program == program]

    def stdin_for(self, program: str, args_prefix: Sequence[str]) -> List[Any]:
        prefix = tuple(args_prefix)
        return [
            stdin for spec, stdin in zip(self.calls, self.stdins)
            if spec.program == program and spec.args[:len(prefix)] == prefix
        ]


class DepsRecorder:
    """Records every dependency call as (name, args), in order."""

    def __init__(self):
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.errors: Dict[str, BaseException] = {}

    def fn(self, name: str, result: Any = None):
        def _call(*args):
            self.calls.append((name, args))
            if name in self.errors:
                raise self.errors[name]
            return result
        return _call

    def fail(self, name: str, error: Optional[BaseException] = None) -> None:
        self.errors[name] = error or CommandExecutionError(name, [], returncode=1, stderr="boom")

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def calls_to(self, name: str) -> List[Tuple[Any, ...]]:
        return [args for n, args in self.calls if n == name]


class FakeClusterManager:
    def __init__(self, recorder: DepsRecorder):
        self.init_cluster = recorder.fn("init_cluster")
        self.configure_cluster = recorder.fn("configure_cluster")


class FakeRegistryManager:
    def __init__(self, recorder: DepsRecorder):
        self.show_registry_info = recorder.fn("show_registry_info")
        self.push_in_cluster = recorder.fn("push_in_cluster")


PLATFORM_REGISTRY_URL = "10.96.0.20:5000"


def make_deps(recorder: DepsRecorder, ext: Optional[ExternalRegistryConfig] = None,
              operator_image: str = "10.96.0.20:5000/mcp-runtime-operator:latest") -> SetupDeps:
    """A fully populated SetupDeps whose every call lands in ``recorder``."""
    return SetupDeps(
        resolve_external_registry_config=recorder.fn("resolve_external_registry_config", ext),
        cluster_manager=FakeClusterManager(recorder),
        registry_manager=FakeRegistryManager(recorder),
        login_registry=recorder.fn("login_registry"),
        deploy_registry=recorder.fn("deploy_registry"),
        wait_for_deployment_available=recorder.fn("wait_for_deployment_available"),
        print_deployment_diagnostics=recorder.fn("print_deployment_diagnostics"),
        setup_tls=recorder.fn("setup_tls"),
        build_operator_image=recorder.fn("build_operator_image"),
        push_operator_image=recorder.fn("push_operator_image"),
        ensure_namespace=recorder.fn("ensure_namespace"),
        get_platform_registry_url=recorder.fn("get_platform_registry_url", PLATFORM_REGISTRY_URL),
        push_operator_image_to_internal=recorder.fn("push_operator_image_to_internal"),
        deploy_operator_manifests=recorder.fn("deploy_operator_manifests"),
        configure_provisioned_registry_env=recorder.fn("configure_provisioned_registry_env"),
        restart_deployment=recorder.fn("restart_deployment"),
        check_crd_installed=recorder.fn("check_crd_installed"),
        get_deployment_timeout=lambda: 300.0,
        get_registry_port=lambda: 5000,
        operator_image_for=recorder.fn("operator_image_for", operator_image),
    )
