from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

import yaml

from vendor_import.foundation.errors import ConfigError

VERSION_FILE = "version.yaml"
SOURCES_FILE = "sources.yaml"
SOURCES_LOCAL_FILE = "sources.local.yaml"
SOURCES_ENV_VAR = "VENDOR_IMPORT_SOURCES"


def load_yaml_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"{os.path.basename(path)} not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ConfigError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def deep_merge(base: Any, overlay: Any, *, path: str) -> Any:
    if overlay is None:
        return None

    if base is None:
        return overlay

    if isinstance(base, Mapping):
        if not isinstance(overlay, Mapping):
            raise ConfigError(
                f"Invalid config overlay merge at {path}: base is mapping but overlay is {type(overlay).__name__}"
            )
        merged: dict[str, Any] = dict(base)
        for key, overlay_value in overlay.items():
            next_path = f"{path}.{key}" if path else str(key)
            if key in base:
                merged[key] = deep_merge(base[key], overlay_value, path=next_path)
            else:
                merged[key] = overlay_value
        return merged

    if isinstance(base, (list, tuple)):
        if not isinstance(overlay, (list, tuple)):
            raise ConfigError(
                f"Invalid config overlay merge at {path}: base is list but overlay is {type(overlay).__name__}"
            )
        return list(overlay)

    if isinstance(overlay, (Mapping, list, tuple)):
        raise ConfigError(
            f"Invalid config overlay merge at {path}: base is {type(base).__name__} but overlay is {type(overlay).__name__}"
        )

    return overlay


def load_version(vendor_dir: str | os.PathLike[str]) -> dict[str, Any]:
    """Load the release declaration (`version.yaml`) from the vendored directory."""

    return load_yaml_mapping(os.path.join(os.fspath(vendor_dir), VERSION_FILE))


def load_sources(
    vendor_dir: str | os.PathLike[str],
    *,
    env_var: str | None = SOURCES_ENV_VAR,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the source-set declaration, returning (mapping, meta).

    Resolution order:
      - `env_var` (when set and non-empty) names a single file; no overlay is applied.
      - otherwise `sources.yaml` in the vendored directory, with `sources.local.yaml`
        deep-merged over it when present.
    """

    explicit_path = None
    if env_var:
        raw_env = os.environ.get(str(env_var), "")
        explicit_path = raw_env.strip() or None

    if explicit_path:
        expanded = os.path.abspath(os.path.expandvars(os.path.expanduser(explicit_path)))
        cfg = load_yaml_mapping(expanded)
        meta = {"mode": "env", "paths": [expanded], "env_var": env_var}
        return cfg, meta

    config_directory = os.path.abspath(os.fspath(vendor_dir))
    base_config_path = os.path.join(config_directory, SOURCES_FILE)
    local_overlay_path = os.path.join(config_directory, SOURCES_LOCAL_FILE)

    cfg = load_yaml_mapping(base_config_path)
    loaded_paths = [base_config_path]
    mode = "base"

    if os.path.exists(local_overlay_path):
        overlay = load_yaml_mapping(local_overlay_path)
        cfg = deep_merge(cfg, overlay, path="")
        loaded_paths.append(local_overlay_path)
        mode = "base+local"

    meta = {"mode": mode, "paths": loaded_paths, "env_var": env_var}
    return cfg, meta
