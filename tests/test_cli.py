"""Tests for argument parsing and the command handlers."""

import logging

import pytest
import yaml

from mcp_runtime.cli.commands.cluster import run_cluster
from mcp_runtime.cli.commands.registry import provision_registry
from mcp_runtime.cli.commands.setup import plan_input_from_args, run_setup
from mcp_runtime.cli.main import create_parser, main
from mcp_runtime.exceptions import ConfigurationError, ReadinessTimeoutError

from tests.fakes import make_deps


@pytest.fixture(autouse=True)
def clean_registry_env(monkeypatch):
    for key in ("PROVISIONED_REGISTRY_URL", "PROVISIONED_REGISTRY_USERNAME", "PROVISIONED_REGISTRY_PASSWORD"):
        monkeypatch.delenv(key, raising=False)


def parse(*argv):
    return create_parser().parse_args(list(argv))


class TestParser:
    def test_setup_defaults(self):
        args = parse("setup")
        plan_input = plan_input_from_args(args)
        assert plan_input.registry_storage_size == "20Gi"
        assert plan_input.ingress_mode == "traefik"
        assert plan_input.ingress_manifest_changed is False
        assert plan_input.tls_enabled is False

    def test_setup_explicit_manifest_marked_changed(self):
        args = parse("setup", "--ingress-manifest", "my/ingress.yaml", "--with-tls", "--test-mode")
        plan_input = plan_input_from_args(args)
        assert plan_input.ingress_manifest == "my/ingress.yaml"
        assert plan_input.ingress_manifest_changed is True
        assert plan_input.tls_enabled is True
        assert plan_input.test_mode is True

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_registry_without_subcommand(self, capsys):
        assert main(["registry"]) == 1


class TestRunSetup:
    def test_success_returns_zero(self, recorder):
        assert run_setup(parse("setup"), deps=make_deps(recorder)) == 0
        assert "check_crd_installed" in recorder.names()

    def test_step_failure_maps_exit_code(self, recorder, caplog):
        recorder.fail("wait_for_deployment_available", ReadinessTimeoutError("registry", "registry", 1))
        with caplog.at_level(logging.ERROR):
            code = run_setup(parse("setup"), deps=make_deps(recorder))
        assert code == 124
        assert "setup step 'registry' failed" in caplog.text

    def test_config_error_exit_code(self, recorder):
        recorder.fail("resolve_external_registry_config", ConfigurationError("registry url is required"))
        assert run_setup(parse("setup"), deps=make_deps(recorder)) == 2

    def test_resolved_password_is_masked(self, recorder, caplog):
        from mcp_runtime.config import ExternalRegistryConfig

        ext = ExternalRegistryConfig("registry.example.com", "ci", "hunter2")
        deps = make_deps(recorder, ext)
        with caplog.at_level(logging.INFO):
            assert run_setup(parse("setup"), deps=deps) == 0
            logging.getLogger("mcp_runtime.test").info("password is hunter2")
        records = [r for r in caplog.records if r.name == "mcp_runtime.test"]
        assert records and "hunter2" not in records[0].getMessage()


class TestProvisionRegistry:
    def test_saves_config_and_logs_in(self, recorder, tmp_path):
        path = tmp_path / "registry.yaml"
        args = parse("registry", "provision", "--url", "registry.example.com",
                     "--username", "ci", "--password", "pw")
        assert provision_registry(args, deps=make_deps(recorder), config_path=path) == 0

        saved = yaml.safe_load(path.read_text())
        assert saved["url"] == "registry.example.com"
        assert recorder.calls_to("login_registry") == [("registry.example.com", "ci", "pw")]
        assert "build_operator_image" not in recorder.names()

    def test_url_only_skips_login(self, recorder, tmp_path):
        args = parse("registry", "provision", "--url", "registry.example.com")
        assert provision_registry(args, deps=make_deps(recorder), config_path=tmp_path / "r.yaml") == 0
        assert recorder.calls_to("login_registry") == []

    def test_operator_image_built_and_pushed(self, recorder, tmp_path):
        args = parse("registry", "provision", "--url", "r.example.com", "--operator-image", "r.example.com/op:1")
        assert provision_registry(args, deps=make_deps(recorder), config_path=tmp_path / "r.yaml") == 0
        assert recorder.names() == ["build_operator_image", "push_operator_image"]

    def test_env_fills_missing_url(self, recorder, tmp_path, monkeypatch):
        monkeypatch.setenv("PROVISIONED_REGISTRY_URL", "env.example.com")
        args = parse("registry", "provision")
        assert provision_registry(args, deps=make_deps(recorder), config_path=tmp_path / "r.yaml") == 0
        assert yaml.safe_load((tmp_path / "r.yaml").read_text())["url"] == "env.example.com"

    def test_missing_url_is_config_error(self, recorder, tmp_path):
        args = parse("registry", "provision")
        assert provision_registry(args, deps=make_deps(recorder), config_path=tmp_path / "r.yaml") == 2
        assert not (tmp_path / "r.yaml").exists()

    def test_build_failure(self, recorder, tmp_path):
        recorder.fail("build_operator_image")
        args = parse("registry", "provision", "--url", "r.example.com", "--operator-image", "r.example.com/op:1")
        assert provision_registry(args, deps=make_deps(recorder), config_path=tmp_path / "r.yaml") == 1
        assert "push_operator_image" not in recorder.names()


class FakeCluster:
    def __init__(self, error=None):
        self.error = error
        self.provisioned = []
        self.calls = []

    def init_cluster(self, kubeconfig, context):
        self.calls.append(("init_cluster", kubeconfig, context))

    def configure_kubeconfig_from_provider(self, provider, region, name, kubeconfig):
        if self.error:
            raise self.error
        self.calls.append(("from_provider", provider, region, name, kubeconfig))

    def configure_kubeconfig(self, kubeconfig, context):
        self.calls.append(("kubeconfig", kubeconfig, context))

    def configure_cluster(self, ingress):
        self.calls.append(("ingress", ingress))

    def check_cluster_status(self):
        return "Kubernetes control plane is running\n"

    def provision_cluster(self, provider, region, nodes, name):
        if self.error:
            raise self.error
        self.provisioned.append((provider, region, nodes, name))


class TestRunCluster:
    def test_status(self, capsys):
        assert run_cluster(parse("cluster", "status"), manager=FakeCluster()) == 0
        assert "control plane" in capsys.readouterr().out

    def test_provision(self):
        manager = FakeCluster()
        assert run_cluster(parse("cluster", "provision", "--provider", "eks", "--nodes", "2"), manager=manager) == 0
        assert manager.provisioned == [("eks", "us-west-1", 2, "mcp-runtime")]

    def test_provision_error(self):
        manager = FakeCluster(ConfigurationError("unsupported provider: gke"))
        assert run_cluster(parse("cluster", "provision", "--provider", "gke"), manager=manager) == 2

    def test_init_passes_kubeconfig_and_context(self):
        manager = FakeCluster()
        args = parse("cluster", "init", "--kubeconfig", "/tmp/kc", "--context", "kind-dev")
        assert run_cluster(args, manager=manager) == 0
        assert manager.calls == [("init_cluster", "/tmp/kc", "kind-dev")]

    def test_init_defaults_to_none(self):
        manager = FakeCluster()
        assert run_cluster(parse("cluster", "init"), manager=manager) == 0
        assert manager.calls == [("init_cluster", None, None)]

    def test_config_ingress_only(self):
        manager = FakeCluster()
        assert run_cluster(parse("cluster", "config", "--ingress", "none"), manager=manager) == 0
        assert [c[0] for c in manager.calls] == ["ingress"]
        ingress = manager.calls[0][1]
        assert ingress.mode == "none"
        assert ingress.manifest == "config/ingress/overlays/prod"
        assert ingress.force is False

    def test_config_from_provider_then_kubeconfig(self):
        manager = FakeCluster()
        args = parse("cluster", "config", "--provider", "eks", "--region", "eu-west-1",
                     "--name", "prod", "--kubeconfig", "/tmp/kc", "--force-ingress-install")
        assert run_cluster(args, manager=manager) == 0
        assert manager.calls[:2] == [
            ("from_provider", "eks", "eu-west-1", "prod", "/tmp/kc"),
            ("kubeconfig", "/tmp/kc", None),
        ]
        assert manager.calls[2][1].force is True

    def test_config_context_without_provider(self):
        manager = FakeCluster()
        assert run_cluster(parse("cluster", "config", "--context", "kind-dev"), manager=manager) == 0
        assert manager.calls[0] == ("kubeconfig", None, "kind-dev")

    def test_config_provider_error_stops(self):
        manager = FakeCluster(ConfigurationError("GKE kubeconfig not yet implemented"))
        assert run_cluster(parse("cluster", "config", "--provider", "gke"), manager=manager) == 2
        assert manager.calls == []
