"""Registry commands: configure an external registry."""

import logging
import os
from argparse import Namespace
from pathlib import Path
from typing import Optional

from mcp_runtime.config import (
    ExternalRegistryConfig,
    load_cli_config,
    resolve_external_registry_config,
    save_external_registry_config,
)
from mcp_runtime.exceptions import ConfigurationError, ProvisionError, SetupError
from mcp_runtime.exec.executor import Executor
from mcp_runtime.setup import SetupDeps, build_default_deps

from .common import configure_logging, report_error


logger = logging.getLogger(__name__)


def provision_registry(args: Namespace, deps: Optional[SetupDeps] = None,
                       config_path: Optional[Path] = None) -> int:
    """
    Save an external registry config, log in, and optionally publish the operator image.

    The url, username and password are merged with PROVISIONED_REGISTRY_*
    and any previously saved config before being written back.
    """
    masker = configure_logging(args)
    masker.add(args.password)

    try:
        flags = ExternalRegistryConfig(
            url=args.url or "", username=args.username or "", password=args.password or ""
        )
        cfg = resolve_external_registry_config(flags, path=config_path)
        if cfg is None:
            raise ConfigurationError(
                "registry url is required (flag, env PROVISIONED_REGISTRY_URL, or config file)"
            )
        masker.add(cfg.password)

        saved = save_external_registry_config(cfg, path=config_path)
        logger.info(f"Saved registry config to {saved}")

        if deps is None:
            workdir = os.getcwd()
            deps = build_default_deps(Executor(cwd=workdir), load_cli_config(), workdir=workdir)

        if cfg.has_credentials:
            logger.info(f"Performing docker login to external registry {cfg.url}")
            deps.login_registry(cfg.url, cfg.username, cfg.password)

        if args.operator_image:
            logger.info(f"Building and pushing operator image {args.operator_image}")
            try:
                deps.build_operator_image(args.operator_image)
            except ProvisionError as e:
                raise SetupError("operator_build", f"failed to build operator image: {e}") from e
            try:
                deps.push_operator_image(args.operator_image)
            except ProvisionError as e:
                raise SetupError("operator_push", f"failed to push operator image: {e}") from e

        logger.info(f"External registry configured: {cfg.url}")
        return 0

    except ProvisionError as e:
        return report_error(e)
    except OSError as e:
        logger.error(f"Failed to save registry config: {e}")
        return 1
