"""
The setup steps.

Each step is stateless: it reads the plan and earlier results from the
SetupContext, performs its side effects through SetupDeps, and records
anything later steps need back on the context. Failures are raised as
SetupError chained to the underlying cause.
"""

import logging

from ..exceptions import ProvisionError, SetupError
from ..platform.cluster import NAMESPACE_MCP_RUNTIME, NAMESPACE_REGISTRY, MCP_SERVER_CRD_NAME
from ..platform.operator import OPERATOR_DEPLOYMENT, OPERATOR_IMAGE_NAME, OPERATOR_SELECTOR
from ..platform.registry import REGISTRY_DEPLOYMENT, REGISTRY_SELECTOR
from .context import SetupContext
from .deps import SetupDeps


logger = logging.getLogger(__name__)


class SetupStep:
    """Base class for a named unit of setup work."""

    name = ""

    def run(self, logger: logging.Logger, deps: SetupDeps, ctx: SetupContext) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def _wait_with_diagnostics(deps: SetupDeps, deployment: str, namespace: str, selector: str,
                           kind: str, message: str) -> None:
    try:
        deps.wait_for_deployment_available(deployment, namespace, selector,
                                           deps.get_deployment_timeout())
    except ProvisionError as e:
        try:
            deps.print_deployment_diagnostics(deployment, namespace, selector)
        except Exception as diag_err:
            logger.debug(f"Diagnostics for {namespace}/{deployment} failed: {diag_err}")
        raise SetupError(
            kind, f"{message}: {e}",
            {"deployment": deployment, "namespace": namespace, "selector": selector},
        ) from e


class ClusterStep(SetupStep):
    name = "cluster"

    def run(self, logger, deps, ctx):
        logger.info("Step 1: Initialize cluster")
        try:
            deps.cluster_manager.init_cluster(None, None)
        except ProvisionError as e:
            raise SetupError("cluster_init", f"failed to initialize cluster: {e}") from e
        logger.info("Cluster initialized")

        logger.info("Step 2: Configure cluster")
        try:
            deps.cluster_manager.configure_cluster(ctx.plan.ingress)
        except ProvisionError as e:
            raise SetupError("cluster_config", f"cluster configuration failed: {e}") from e
        logger.info("Cluster configuration complete")


class TLSStep(SetupStep):
    name = "tls"

    def run(self, logger, deps, ctx):
        logger.info("Step 3: Configure TLS")
        if not ctx.plan.tls_enabled:
            logger.info("Skipped (TLS disabled, use --with-tls to enable)")
            return
        try:
            deps.setup_tls()
        except ProvisionError as e:
            raise SetupError("tls_setup", f"TLS setup failed: {e}") from e
        logger.info("TLS configured successfully")


class RegistryStep(SetupStep):
    """Log in to an external registry, or deploy the internal one and wait for it."""

    name = "registry"

    def run(self, logger, deps, ctx):
        logger.info("Step 4: Configure registry")
        ext = ctx.external_registry
        if ctx.using_external_registry and ext is not None:
            logger.info(f"Using external registry: {ext.url}")
            if ext.has_credentials:
                logger.info("Logging into external registry")
                try:
                    deps.login_registry(ext.url, ext.username, ext.password)
                except ProvisionError as e:
                    raise SetupError(
                        "registry_login", f"failed to login to registry {ext.url!r}: {e}"
                    ) from e
            return

        plan = ctx.plan
        port = deps.get_registry_port()
        logger.info(f"Type: {plan.registry_type}")
        logger.info("TLS: enabled (registry overlay)" if plan.tls_enabled
                    else "TLS: disabled (dev HTTP mode)")
        try:
            deps.deploy_registry(NAMESPACE_REGISTRY, port, plan.registry_type,
                                 plan.registry_storage_size, plan.registry_manifest)
        except ProvisionError as e:
            raise SetupError(
                "deploy_registry",
                f"failed to deploy registry (type: {plan.registry_type}, "
                f"manifest: {plan.registry_manifest}): {e}",
                {
                    "namespace": NAMESPACE_REGISTRY,
                    "registry_type": plan.registry_type,
                    "manifest_path": plan.registry_manifest,
                    "storage_size": plan.registry_storage_size,
                    "registry_port": port,
                },
            ) from e

        logger.info("Waiting for registry to be ready...")
        _wait_with_diagnostics(
            deps, REGISTRY_DEPLOYMENT, NAMESPACE_REGISTRY, REGISTRY_SELECTOR,
            "registry_not_ready",
            f"registry deployment not ready in namespace {NAMESPACE_REGISTRY!r}",
        )

        try:
            deps.registry_manager.show_registry_info()
        except ProvisionError as e:
            logger.warning(f"Failed to show registry info: {e}")


class OperatorImageStep(SetupStep):
    """Choose, build and push the operator image; records it on the context."""

    name = "operator-image"

    def run(self, logger, deps, ctx):
        logger.info("Step 5: Deploy operator")
        image = deps.operator_image_for(ctx.external_registry, ctx.plan.test_mode)
        logger.info(f"Image: {image}")

        if ctx.plan.test_mode:
            logger.info("Test mode: using pre-loaded operator image, skipping build and push")
            ctx.operator_image = image
            return

        logger.info("Building operator image")
        try:
            deps.build_operator_image(image)
        except ProvisionError as e:
            raise SetupError(
                "operator_build", f"operator image build failed for image {image!r}: {e}",
                {"image": image, "component": "operator"},
            ) from e

        if ctx.using_external_registry:
            logger.info("Pushing operator image to external registry")
            try:
                deps.push_operator_image(image)
            except ProvisionError as e:
                logger.warning(f"Could not push image to external registry: {e}")
            ctx.operator_image = image
            return

        logger.info("Pushing operator image to internal registry")
        internal_image = f"{deps.get_platform_registry_url()}/{OPERATOR_IMAGE_NAME}"
        try:
            deps.ensure_namespace(NAMESPACE_REGISTRY)
        except ProvisionError as e:
            raise SetupError(
                "ensure_namespace", f"failed to ensure registry namespace: {e}",
                {"namespace": NAMESPACE_REGISTRY, "component": "setup"},
            ) from e

        try:
            deps.push_operator_image_to_internal(image, internal_image, NAMESPACE_REGISTRY)
        except ProvisionError as e:
            raise SetupError(
                "operator_push_internal",
                f"failed to push operator image {image!r} to internal registry {internal_image!r}: {e}",
                {"source_image": image, "target_image": internal_image, "namespace": NAMESPACE_REGISTRY},
            ) from e
        logger.info(f"Using internal registry image: {internal_image}")
        ctx.operator_image = internal_image


class OperatorDeployStep(SetupStep):
    name = "operator-deploy"

    def run(self, logger, deps, ctx):
        logger.info("Deploying operator manifests")
        try:
            deps.deploy_operator_manifests(ctx.operator_image)
        except ProvisionError as e:
            raise SetupError(
                "operator_deploy", f"operator deployment failed for image {ctx.operator_image!r}: {e}",
                {"image": ctx.operator_image, "namespace": NAMESPACE_MCP_RUNTIME},
            ) from e

        ext = ctx.external_registry
        if ctx.using_external_registry and ext is not None:
            try:
                deps.configure_provisioned_registry_env(ext, ctx.registry_secret_name)
            except ProvisionError as e:
                raise SetupError(
                    "configure_registry_env",
                    f"failed to configure external registry env on operator "
                    f"(registry: {ext.url!r}, secret: {ctx.registry_secret_name!r}): {e}",
                    {"registry_url": ext.url, "secret_name": ctx.registry_secret_name},
                ) from e

        try:
            deps.restart_deployment(OPERATOR_DEPLOYMENT, NAMESPACE_MCP_RUNTIME)
        except ProvisionError as e:
            if ctx.using_external_registry:
                raise SetupError(
                    "operator_restart",
                    f"failed to restart operator deployment after registry env update: {e}",
                ) from e
            logger.warning(f"Could not restart operator deployment: {e}")


class VerifyStep(SetupStep):
    name = "verify"

    def run(self, logger, deps, ctx):
        logger.info("Step 6: Verify platform components")

        if ctx.using_external_registry:
            logger.info("Skipping internal registry availability check (using external registry)")
        else:
            logger.info("Waiting for registry deployment to be available")
            _wait_with_diagnostics(
                deps, REGISTRY_DEPLOYMENT, NAMESPACE_REGISTRY, REGISTRY_SELECTOR,
                "registry_not_ready", "registry not ready",
            )

        logger.info("Waiting for operator deployment to be available")
        _wait_with_diagnostics(
            deps, OPERATOR_DEPLOYMENT, NAMESPACE_MCP_RUNTIME, OPERATOR_SELECTOR,
            "operator_not_ready", "operator not ready",
        )

        logger.info("Checking MCPServer CRD presence")
        try:
            deps.check_crd_installed(MCP_SERVER_CRD_NAME)
        except ProvisionError as e:
            raise SetupError("crd_check", f"CRD check failed: {e}") from e
        logger.info("Verification complete")
