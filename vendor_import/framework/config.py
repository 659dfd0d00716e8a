from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Any, Mapping

from vendor_import.foundation.config_io import load_sources, load_version
from vendor_import.foundation.errors import ConfigError

ARCHITECTURES: tuple[str, ...] = ("arm", "x86", "x86_64", "mips")

VARIABLE_KINDS: tuple[str, ...] = ("defines", "includes", "sources", "excludes")

DEFAULT_PROBE_SCRIPT = "configure"
DEFAULT_PROBE_RECIPE = "Makefile"
DEFAULT_FLAG_GROUPS: tuple[str, ...] = ("CFLAG", "DEPFLAG")
DEFAULT_BUILD_CONFIG_NAME = "build-config.mk"


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts True/False, 0/1 and the strings true/false/1/0/yes/no
    (case-insensitive, surrounding whitespace ignored).
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ConfigError(f"Invalid boolean for {path}: {value!r}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
    raise ConfigError(f"Invalid boolean for {path}: {value!r}")


def parse_string_list(value: Any, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"Invalid config type for {path}: expected list[str]")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"Invalid config type for {path}: expected list[str]")
        trimmed = item.strip()
        if not trimmed:
            raise ConfigError(f"Invalid config value for {path}: empty string")
        items.append(trimmed)
    return tuple(items)


def parse_relative_path(value: str, path: str) -> str:
    """Normalize a tree-relative POSIX path; absolute paths and `..` escapes are rejected."""

    if value.startswith("/") or "\\" in value:
        raise ConfigError(f"Invalid path for {path}: {value!r} must be relative")
    normalized = posixpath.normpath(value)
    if normalized in (".", "") or normalized == ".." or normalized.startswith("../"):
        raise ConfigError(f"Invalid path for {path}: {value!r} escapes the source tree")
    return normalized


def parse_path_list(value: Any, path: str) -> tuple[str, ...]:
    return tuple(parse_relative_path(item, path) for item in parse_string_list(value, path))


def _require_str(cfg: Mapping[str, Any], key: str) -> str:
    raw = cfg.get(key)
    if raw is None:
        raise ConfigError(f"Missing required config: {key}")
    if not isinstance(raw, str):
        raise ConfigError(f"Invalid config type for {key}: expected string (quote numeric versions)")
    if not raw.strip():
        raise ConfigError(f"Missing required config: {key}")
    return raw.strip()


def _optional_str(cfg: Mapping[str, Any], key: str, path: str) -> str | None:
    raw = cfg.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ConfigError(f"Invalid config type for {path}: expected string")
    return raw.strip() or None


def _get_mapping(cfg: Mapping[str, Any], key: str, path: str) -> Mapping[str, Any]:
    raw = cfg.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Invalid config type for {path}: expected mapping")
    return raw


@dataclass(frozen=True)
class UpstreamRelease:
    library: str
    version: str

    @property
    def dir_name(self) -> str:
        """Top-level directory the release archive extracts to."""
        return f"{self.library}-{self.version}"

    @property
    def display_name(self) -> str:
        return self.library[:1].upper() + self.library[1:]

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> "UpstreamRelease":
        if not isinstance(cfg, Mapping):
            raise ConfigError("Invalid version.yaml: expected a mapping")

        library = _require_str(cfg, "library")
        version = _require_str(cfg, "version")
        if "/" in library or "/" in version:
            raise ConfigError("Invalid version.yaml: library and version must not contain '/'")

        unknown = sorted(str(key) for key in cfg.keys() if key not in {"library", "version"})
        if unknown:
            raise ConfigError("Unknown config keys in version.yaml: " + ", ".join(unknown))

        return UpstreamRelease(library=library, version=version)


@dataclass(frozen=True)
class VariableGroup:
    """One {defines, includes, sources, excludes} quadruple as declared."""

    defines: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProbeConfig:
    script: str = DEFAULT_PROBE_SCRIPT
    recipe: str = DEFAULT_PROBE_RECIPE
    flag_groups: tuple[str, ...] = DEFAULT_FLAG_GROUPS


@dataclass(frozen=True)
class OutputsConfig:
    build_config: str
    variables: str
    include_prefix: str
    license_marker: str | None = None


@dataclass(frozen=True)
class SourceSet:
    configure_args: tuple[str, ...]
    unneeded_sources: tuple[str, ...]
    needed_sources: tuple[str, ...]

    common: VariableGroup
    arch: Mapping[str, VariableGroup]

    patches: tuple[str, ...]
    patch_sources: Mapping[str, tuple[str, ...]]

    probe: ProbeConfig
    outputs: OutputsConfig

    warnings: tuple[str, ...] = field(default=(), compare=False)

    @staticmethod
    def from_dict(cfg: Mapping[str, Any], *, release: UpstreamRelease) -> "SourceSet":
        """
        Parse and validate the source-set declaration.

        Unknown keys are collected into `warnings` unless `strict: true`, in
        which case they raise.

        Raises:
            ConfigError: if required keys are missing or invalid.
        """

        if not isinstance(cfg, Mapping):
            raise ConfigError("Invalid sources.yaml: expected a mapping")

        strict_unknown_keys = False
        if "strict" in cfg:
            strict_unknown_keys = parse_bool(cfg.get("strict"), "strict")

        group_schema = {kind: None for kind in VARIABLE_KINDS}
        schema: Mapping[str, Any] = {
            "strict": None,
            "configure_args": None,
            "unneeded_sources": None,
            "needed_sources": None,
            **group_schema,
            "arch": {arch: group_schema for arch in ARCHITECTURES},
            "patches": None,
            "patch_sources": None,
            "probe": {"script": None, "recipe": None, "flag_groups": None},
            "outputs": {
                "build_config": None,
                "variables": None,
                "include_prefix": None,
                "license_marker": None,
            },
        }

        def collect_unknown_keys(mapping: Any, schema: Mapping[str, Any], *, prefix: str) -> list[str]:
            if not isinstance(mapping, Mapping):
                return []
            unknown: list[str] = []
            for key, value in mapping.items():
                dotted = f"{prefix}.{key}" if prefix else str(key)
                if key not in schema:
                    unknown.append(dotted)
                    continue
                subschema = schema.get(key)
                if isinstance(subschema, Mapping):
                    unknown.extend(collect_unknown_keys(value, subschema, prefix=dotted))
            return unknown

        warnings: list[str] = []
        unknown_keys = sorted(set(collect_unknown_keys(cfg, schema, prefix="")))
        if unknown_keys:
            if strict_unknown_keys:
                raise ConfigError("Unknown config keys: " + ", ".join(unknown_keys))
            warnings.extend(f"Unknown config key: {key}" for key in unknown_keys)

        configure_args = parse_string_list(cfg.get("configure_args"), "configure_args")
        unneeded_sources = parse_path_list(cfg.get("unneeded_sources"), "unneeded_sources")
        needed_sources = parse_path_list(cfg.get("needed_sources"), "needed_sources")
        for key, value in (
            ("configure_args", configure_args),
            ("unneeded_sources", unneeded_sources),
            ("needed_sources", needed_sources),
        ):
            if not value:
                raise ConfigError(f"Missing required config: {key}")

        def parse_group(mapping: Mapping[str, Any], prefix: str) -> VariableGroup:
            def dotted(kind: str) -> str:
                return f"{prefix}.{kind}" if prefix else kind

            return VariableGroup(
                defines=parse_string_list(mapping.get("defines"), dotted("defines")),
                includes=parse_path_list(mapping.get("includes"), dotted("includes")),
                sources=parse_path_list(mapping.get("sources"), dotted("sources")),
                excludes=parse_path_list(mapping.get("excludes"), dotted("excludes")),
            )

        common = parse_group(cfg, "")
        arch_cfg = _get_mapping(cfg, "arch", "arch")
        arch: dict[str, VariableGroup] = {}
        for name in ARCHITECTURES:
            arch[name] = parse_group(_get_mapping(arch_cfg, name, f"arch.{name}"), f"arch.{name}")

        patches = parse_string_list(cfg.get("patches"), "patches")
        seen: set[str] = set()
        for name in patches:
            if "/" in name:
                raise ConfigError(f"Invalid config value for patches: {name!r} must be a file name")
            if name in seen:
                raise ConfigError(f"Duplicate patch in patches: {name}")
            seen.add(name)

        raw_patch_sources = _get_mapping(cfg, "patch_sources", "patch_sources")
        patch_sources: dict[str, tuple[str, ...]] = {}
        for name, owned in raw_patch_sources.items():
            if name not in seen:
                raise ConfigError(f"patch_sources.{name} does not name a patch listed in patches")
            owned_paths = parse_path_list(owned, f"patch_sources.{name}")
            if not owned_paths:
                raise ConfigError(f"Invalid config value for patch_sources.{name}: expected at least one path")
            patch_sources[str(name)] = owned_paths

        probe_cfg = _get_mapping(cfg, "probe", "probe")
        flag_groups = parse_string_list(probe_cfg.get("flag_groups"), "probe.flag_groups")
        probe = ProbeConfig(
            script=parse_relative_path(
                _optional_str(probe_cfg, "script", "probe.script") or DEFAULT_PROBE_SCRIPT, "probe.script"
            ),
            recipe=parse_relative_path(
                _optional_str(probe_cfg, "recipe", "probe.recipe") or DEFAULT_PROBE_RECIPE, "probe.recipe"
            ),
            flag_groups=flag_groups or DEFAULT_FLAG_GROUPS,
        )

        outputs_cfg = _get_mapping(cfg, "outputs", "outputs")
        license_marker = _optional_str(outputs_cfg, "license_marker", "outputs.license_marker")
        outputs = OutputsConfig(
            build_config=parse_relative_path(
                _optional_str(outputs_cfg, "build_config", "outputs.build_config") or DEFAULT_BUILD_CONFIG_NAME,
                "outputs.build_config",
            ),
            variables=parse_relative_path(
                _optional_str(outputs_cfg, "variables", "outputs.variables")
                or f"{release.display_name}-config.mk",
                "outputs.variables",
            ),
            include_prefix=_optional_str(outputs_cfg, "include_prefix", "outputs.include_prefix")
            or f"external/{release.library}/",
            license_marker=(
                parse_relative_path(license_marker, "outputs.license_marker") if license_marker else None
            ),
        )

        return SourceSet(
            configure_args=configure_args,
            unneeded_sources=unneeded_sources,
            needed_sources=needed_sources,
            common=common,
            arch=arch,
            patches=patches,
            patch_sources=patch_sources,
            probe=probe,
            outputs=outputs,
            warnings=tuple(warnings),
        )


def load_declarations(vendor_dir: str) -> tuple[UpstreamRelease, SourceSet, dict[str, Any]]:
    """Load and validate both declarations from `vendor_dir`, returning (release, source_set, meta)."""

    release = UpstreamRelease.from_dict(load_version(vendor_dir))
    raw_sources, meta = load_sources(vendor_dir)
    return release, SourceSet.from_dict(raw_sources, release=release), meta
