"""
Runtime configuration for the provisioner.

Two sources:
- CLIConfig: tunables read from MCP_* / PROVISIONED_REGISTRY_* environment
  variables, with defaults for anything missing or malformed
- ExternalRegistryConfig: an optional external registry, persisted as YAML
  under ~/.mcp-runtime/registry.yaml and overridable by env and flags
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_DEPLOYMENT_TIMEOUT_SEC = 5 * 60.0
DEFAULT_CERT_TIMEOUT_SEC = 60.0
DEFAULT_REGISTRY_PORT = 5000
DEFAULT_SKOPEO_IMAGE = "quay.io/skopeo/stable:v1.14"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse a duration such as ``90s``, ``5m`` or ``1h30m`` into seconds.

    Raises:
        ValueError: if the string is not a valid duration
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    sign = 1.0
    if text[0] in "+-":
        if text[0] == "-":
            sign = -1.0
        text = text[1:]
    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return sign * total


def _duration_env(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key, "")
    if raw:
        try:
            return parse_duration(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid {key}={raw!r}, using default")
    return default


def _positive_int_env(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key, "")
    if raw:
        try:
            parsed = int(raw)
        except ValueError:
            parsed = 0
        if parsed > 0:
            return parsed
        logger.warning(f"Ignoring invalid {key}={raw!r}, using default")
    return default


@dataclass
class CLIConfig:
    """Environment-derived tunables."""
    deployment_timeout_sec: float = DEFAULT_DEPLOYMENT_TIMEOUT_SEC
    cert_timeout_sec: float = DEFAULT_CERT_TIMEOUT_SEC
    registry_port: int = DEFAULT_REGISTRY_PORT
    skopeo_image: str = DEFAULT_SKOPEO_IMAGE
    operator_image: str = ""  # override; empty means derive from the registry
    provisioned_registry_url: str = ""
    provisioned_registry_username: str = ""
    provisioned_registry_password: str = ""


def load_cli_config(environ: Optional[Mapping[str, str]] = None) -> CLIConfig:
    """Build a CLIConfig from the environment (``os.environ`` by default)."""
    env = os.environ if environ is None else environ
    return CLIConfig(
        deployment_timeout_sec=_duration_env(env, "MCP_DEPLOYMENT_TIMEOUT", DEFAULT_DEPLOYMENT_TIMEOUT_SEC),
        cert_timeout_sec=_duration_env(env, "MCP_CERT_TIMEOUT", DEFAULT_CERT_TIMEOUT_SEC),
        registry_port=_positive_int_env(env, "MCP_REGISTRY_PORT", DEFAULT_REGISTRY_PORT),
        skopeo_image=env.get("MCP_SKOPEO_IMAGE") or DEFAULT_SKOPEO_IMAGE,
        operator_image=env.get("MCP_OPERATOR_IMAGE", ""),
        provisioned_registry_url=env.get("PROVISIONED_REGISTRY_URL", ""),
        provisioned_registry_username=env.get("PROVISIONED_REGISTRY_USERNAME", ""),
        provisioned_registry_password=env.get("PROVISIONED_REGISTRY_PASSWORD", ""),
    )


@dataclass
class ExternalRegistryConfig:
    """Connection details for a registry hosted outside the cluster."""
    url: str
    username: str = ""
    password: str = ""

    @property
    def has_credentials(self) -> bool:
        return bool(self.username or self.password)

    def to_dict(self) -> Dict[str, str]:
        data = {"url": self.url}
        if self.username:
            data["username"] = self.username
        if self.password:
            data["password"] = self.password
        return data

    def __repr__(self) -> str:
        masked = "***" if self.password else ""
        return (f"ExternalRegistryConfig(url={self.url!r}, "
                f"username={self.username!r}, password={masked!r})")


def registry_config_path() -> Path:
    return Path.home() / ".mcp-runtime" / "registry.yaml"


def load_external_registry_config(path: Optional[Path] = None) -> Optional[ExternalRegistryConfig]:
    """Read the saved registry config. Returns None when no file exists.

    Raises:
        ConfigurationError: if the file is malformed or has no url
    """
    config_path = path or registry_config_path()
    if not config_path.exists():
        return None

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid registry config {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"registry config {config_path} must be a mapping")

    url = str(data.get("url") or "").strip()
    if not url:
        raise ConfigurationError("registry url missing in config")

    return ExternalRegistryConfig(
        url=url,
        username=str(data.get("username") or ""),
        password=str(data.get("password") or ""),
    )


def save_external_registry_config(cfg: Optional[ExternalRegistryConfig],
                                  path: Optional[Path] = None) -> Path:
    """Persist the registry config with owner-only permissions."""
    if cfg is None or not cfg.url:
        raise ConfigurationError("registry url is required")

    config_path = path or registry_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.safe_dump(cfg.to_dict(), f, default_flow_style=False)
    os.chmod(config_path, 0o600)
    logger.debug(f"Saved registry config to {config_path}")
    return config_path


def resolve_external_registry_config(
    flags: Optional[ExternalRegistryConfig] = None,
    environ: Optional[Mapping[str, str]] = None,
    path: Optional[Path] = None,
) -> Optional[ExternalRegistryConfig]:
    """Merge the registry config from file, environment and flags.

    Later sources win field by field: file < PROVISIONED_REGISTRY_* env < flags.

    Returns:
        The merged config, or None when no source mentions a registry at all.

    Raises:
        ConfigurationError: if some source was given but no url resolved
    """
    env = os.environ if environ is None else environ
    url, username, password = "", "", ""
    source_found = False

    file_cfg = load_external_registry_config(path)
    if file_cfg is not None:
        url, username, password = file_cfg.url, file_cfg.username, file_cfg.password
        source_found = True

    env_url = env.get("PROVISIONED_REGISTRY_URL", "").strip()
    if env_url:
        url = env_url
        source_found = True
    if env.get("PROVISIONED_REGISTRY_USERNAME"):
        username = env["PROVISIONED_REGISTRY_USERNAME"]
        source_found = True
    if env.get("PROVISIONED_REGISTRY_PASSWORD"):
        password = env["PROVISIONED_REGISTRY_PASSWORD"]
        source_found = True

    if flags is not None:
        if flags.url:
            url = flags.url
            source_found = True
        if flags.username:
            username = flags.username
            source_found = True
        if flags.password:
            password = flags.password
            source_found = True

    if not url:
        if source_found:
            raise ConfigurationError("registry url is required")
        return None

    return ExternalRegistryConfig(url=url, username=username, password=password)
