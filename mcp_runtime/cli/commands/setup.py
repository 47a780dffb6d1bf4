"""Setup command: provision the complete platform."""

import logging
import os
from argparse import Namespace
from dataclasses import replace
from typing import Callable, Optional

from mcp_runtime.config import ExternalRegistryConfig, load_cli_config
from mcp_runtime.exceptions import ProvisionError
from mcp_runtime.exec.executor import Executor
from mcp_runtime.security.secrets import SecretMasker
from mcp_runtime.setup import (
    SetupDeps,
    SetupPlanInput,
    build_default_deps,
    build_setup_plan,
    setup_platform,
)

from .common import configure_logging, report_error


logger = logging.getLogger(__name__)

Resolver = Callable[[Optional[ExternalRegistryConfig]], Optional[ExternalRegistryConfig]]


def masking_resolver(resolve: Resolver, masker: SecretMasker) -> Resolver:
    """Wrap a registry resolver so any resolved password is masked in logs."""
    def _resolve(flags: Optional[ExternalRegistryConfig]) -> Optional[ExternalRegistryConfig]:
        cfg = resolve(flags)
        if cfg is not None:
            masker.add(cfg.password)
        return cfg
    return _resolve


def plan_input_from_args(args: Namespace) -> SetupPlanInput:
    return SetupPlanInput(
        registry_type=args.registry_type,
        registry_storage_size=args.registry_storage,
        ingress_mode=args.ingress,
        ingress_manifest=args.ingress_manifest or "config/ingress/overlays/http",
        ingress_manifest_changed=args.ingress_manifest is not None,
        force_ingress_install=args.force_ingress_install,
        tls_enabled=args.with_tls,
        test_mode=args.test_mode,
    )


def run_setup(args: Namespace, deps: Optional[SetupDeps] = None) -> int:
    """
    Run the platform setup.

    Returns 0 on success, otherwise the failing error's exit code.
    """
    masker = configure_logging(args)

    try:
        plan = build_setup_plan(plan_input_from_args(args))

        if deps is None:
            config = load_cli_config()
            masker.add(config.provisioned_registry_password)
            workdir = os.getcwd()
            deps = build_default_deps(Executor(cwd=workdir), config, workdir=workdir)
        deps = replace(deps, resolve_external_registry_config=masking_resolver(
            deps.resolve_external_registry_config, masker
        ))

        result = setup_platform(plan, deps)
        logger.info(f"Completed steps: {', '.join(result.completed_steps)}")
        logger.info("Platform is ready. Use 'mcp-runtime cluster status' to check everything.")
        return 0

    except ProvisionError as e:
        return report_error(e)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
