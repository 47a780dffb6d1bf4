"""Resolution of CLI inputs into an immutable setup plan."""

from dataclasses import dataclass

from ..platform.cluster import IngressOptions


INGRESS_MANIFEST_TLS = "config/ingress/overlays/prod"
INGRESS_MANIFEST_HTTP = "config/ingress/overlays/http"
REGISTRY_MANIFEST = "config/registry"
REGISTRY_MANIFEST_TLS = "config/registry/overlays/tls"


@dataclass(frozen=True)
class SetupPlanInput:
    """Raw setup inputs as given on the command line."""
    registry_type: str = "docker"
    registry_storage_size: str = "20Gi"
    ingress_mode: str = "traefik"
    ingress_manifest: str = INGRESS_MANIFEST_HTTP
    ingress_manifest_changed: bool = False
    force_ingress_install: bool = False
    tls_enabled: bool = False
    test_mode: bool = False


@dataclass(frozen=True)
class SetupPlan:
    """Resolved setup decisions. Never modified once built."""
    registry_type: str
    registry_storage_size: str
    ingress: IngressOptions
    registry_manifest: str
    tls_enabled: bool
    test_mode: bool


def build_setup_plan(plan_input: SetupPlanInput) -> SetupPlan:
    """Resolve manifests from the TLS toggle.

    An ingress manifest given explicitly always wins; otherwise TLS selects
    the prod overlay and plain HTTP the http overlay.
    """
    ingress_manifest = plan_input.ingress_manifest
    if not plan_input.ingress_manifest_changed:
        ingress_manifest = INGRESS_MANIFEST_TLS if plan_input.tls_enabled else INGRESS_MANIFEST_HTTP

    registry_manifest = REGISTRY_MANIFEST_TLS if plan_input.tls_enabled else REGISTRY_MANIFEST

    return SetupPlan(
        registry_type=plan_input.registry_type,
        registry_storage_size=plan_input.registry_storage_size,
        ingress=IngressOptions(
            mode=plan_input.ingress_mode,
            manifest=ingress_manifest,
            force=plan_input.force_ingress_install,
        ),
        registry_manifest=registry_manifest,
        tls_enabled=plan_input.tls_enabled,
        test_mode=plan_input.test_mode,
    )
