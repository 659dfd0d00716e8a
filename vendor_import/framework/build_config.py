"""Build-variable derivation for the downstream make build.

Two artifacts are produced:

- the build-config file (`build-config.mk`): the `-D` defines the upstream
  configure probe chose, nothing else.
- the variables file (`<Library>-config.mk`): common and per-architecture
  {defines, includes, sources, excludes} from the source-set declaration, plus
  the selection rules a consumer evaluates for its target and host.

Every emitted list is deduplicated and sorted by codepoint, which matches the
C locale, so output is identical across machines.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from vendor_import.foundation.errors import StagingError
from vendor_import.foundation.tools import run_tool, stable_env
from vendor_import.framework.config import ARCHITECTURES, SourceSet, UpstreamRelease, VariableGroup
from vendor_import.framework.trees import WorkingTree

UNKNOWN_ARCH = "unknown_arch"
BIG_ENDIAN_UNSUPPORTED_ARCH = "mips"

_IGNORED_RECIPE_MARKERS = ("CONFIGURE_ARGS=", "OPTIONS=")


def c_sorted(values: Iterable[str]) -> tuple[str, ...]:
    """Deduplicate and sort with C-locale (byte/codepoint) collation."""
    return tuple(sorted(set(values), key=lambda value: value.encode("utf-8")))


def normalize_group(group: VariableGroup) -> VariableGroup:
    return VariableGroup(
        defines=c_sorted(group.defines),
        includes=c_sorted(group.includes),
        sources=c_sorted(group.sources),
        excludes=c_sorted(group.excludes),
    )


@dataclass(frozen=True)
class BuildVariableSet:
    common: VariableGroup
    arch: Mapping[str, VariableGroup]

    @staticmethod
    def from_source_set(source_set: SourceSet) -> "BuildVariableSet":
        return BuildVariableSet(
            common=normalize_group(source_set.common),
            arch={name: normalize_group(source_set.arch.get(name, VariableGroup())) for name in ARCHITECTURES},
        )

    def bucket(self, arch: str, *, big_endian: bool = False) -> VariableGroup:
        """The architecture-specific group a consumer selects for `arch`."""

        if arch == BIG_ENDIAN_UNSUPPORTED_ARCH and big_endian:
            return VariableGroup()
        return self.arch.get(arch, VariableGroup())


@dataclass(frozen=True)
class ResolvedVariables:
    defines: tuple[str, ...]
    includes: tuple[str, ...]
    sources: tuple[str, ...]

    @property
    def c_flags(self) -> tuple[str, ...]:
        return tuple(f"-D{define}" for define in self.defines)


def resolve(variable_set: BuildVariableSet, arch: str, *, big_endian: bool = False) -> ResolvedVariables:
    """
    Evaluate the consumer selection for one target: `common ∪ arch`, minus
    `common-excludes ∪ arch-excludes`.

    Big-endian mips and unknown architectures select the empty bucket, so only
    the common set remains.
    """

    common = variable_set.common
    bucket = variable_set.bucket(arch, big_endian=big_endian)
    excluded = set(common.excludes) | set(bucket.excludes)
    return ResolvedVariables(
        defines=c_sorted((*common.defines, *bucket.defines)),
        includes=c_sorted((*common.includes, *bucket.includes)),
        sources=tuple(source for source in c_sorted((*common.sources, *bucket.sources)) if source not in excluded),
    )


def parse_probe_recipe(text: str, flag_groups: Sequence[str]) -> tuple[str, ...]:
    """
    Extract `-D` tokens from the named flag groups of a generated make recipe.

    Continuation lines are joined first; lines that echo the configure
    arguments or options back are ignored. Flags keep first-seen order across
    groups (in `flag_groups` order) and are deduplicated.
    """

    lines = [
        line
        for line in text.replace("\\\n", " ").splitlines()
        if "-D" in line and not any(marker in line for marker in _IGNORED_RECIPE_MARKERS)
    ]

    flags: list[str] = []
    seen: set[str] = set()
    for group in flag_groups:
        pattern = re.compile(rf"^{re.escape(group)}\s*[:+?]?=(.*)$")
        for line in lines:
            match = pattern.match(line)
            if not match:
                continue
            for token in match.group(1).split():
                if token.startswith("-D") and token not in seen:
                    seen.add(token)
                    flags.append(token)
    return tuple(flags)


def _vardef(name: str, values: Sequence[str]) -> list[str]:
    if not values:
        return [f"{name} :=", ""]
    return [f"{name} := \\", *(f"  {value} \\" for value in values), ""]


def _defines_vardef(name: str, defines: Sequence[str]) -> list[str]:
    return _vardef(name, [f"-D{define}" for define in defines])


class BuildConfigGenerator:
    """Runs the configure probe and renders both build artifacts."""

    def __init__(
        self,
        release: UpstreamRelease,
        source_set: SourceSet,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.release = release
        self.source_set = source_set
        self.logger = logger or logging.getLogger(__name__)

    def header(self) -> list[str]:
        return [
            "# Auto-generated - DO NOT EDIT!",
            "# To regenerate, edit sources.yaml, then run:",
            f"#     vendor-import import /path/to/{self.release.dir_name}.tar.gz",
            "#",
        ]

    def probe(self, tree: WorkingTree) -> tuple[str, ...]:
        """Run the upstream configure probe in `tree` and return its `-D` flags."""

        probe = self.source_set.probe
        script = tree.path(probe.script)
        if not script.is_file():
            raise StagingError(f"Configure probe {probe.script} not found in {tree.root}")

        self.logger.info("Running %s %s", probe.script, " ".join(self.source_set.configure_args))
        run_tool(
            [os.path.join(".", probe.script), *self.source_set.configure_args],
            cwd=tree.root,
            env=stable_env(),
            log=self.logger,
        )

        recipe = tree.path(probe.recipe)
        if not recipe.is_file():
            raise StagingError(f"Configure probe did not produce {probe.recipe}")
        text = recipe.read_text(encoding="utf-8", errors="replace")
        flags = parse_probe_recipe(text, probe.flag_groups)
        self.logger.debug("Probe flags: %s", " ".join(flags))
        return flags

    def render_build_config(self, flags: Sequence[str]) -> str:
        lines = [*self.header(), *_vardef(f"{self.release.library}_cflags", flags)]
        return "\n".join(lines) + "\n"

    def render(self, variable_set: BuildVariableSet) -> str:
        artifact = self.source_set.outputs.variables
        prefix = self.source_set.outputs.include_prefix

        lines = [
            *self.header(),
            "# Before including this file, the local Android.mk must define the following",
            "# variables:",
            "#",
            "#    local_c_flags",
            "#    local_c_includes",
            "#    local_additional_dependencies",
            "#",
            "# This script will define the following variables:",
            "#",
            "#    target_c_flags",
            "#    target_c_includes",
            "#    target_src_files",
            "#",
            "#    host_c_flags",
            "#    host_c_includes",
            "#    host_src_files",
            "#",
            "",
            "# Ensure these are empty.",
            f"{UNKNOWN_ARCH}_c_flags :=",
            f"{UNKNOWN_ARCH}_c_includes :=",
            f"{UNKNOWN_ARCH}_src_files :=",
            f"{UNKNOWN_ARCH}_exclude_files :=",
            "",
        ]

        common = variable_set.common
        lines += _defines_vardef("common_c_flags", common.defines)
        lines += _vardef("common_src_files", common.sources)
        lines += _vardef("common_c_includes", common.includes)
        lines += _vardef("common_exclude_files", common.excludes)

        for arch in ARCHITECTURES:
            group = variable_set.arch.get(arch, VariableGroup())
            lines += _defines_vardef(f"{arch}_c_flags", group.defines)
            lines += _vardef(f"{arch}_src_files", group.sources)
            lines += _vardef(f"{arch}_c_includes", group.includes)
            lines += _vardef(f"{arch}_exclude_files", group.excludes)

        for side, arch_expr in (("target", "$(TARGET_ARCH)"), ("host", None)):
            var = f"{side}_arch"
            if arch_expr is not None:
                lines += [
                    f"{var} := {arch_expr}",
                    f"ifeq ($({var})-$(TARGET_HAS_BIGENDIAN),{BIG_ENDIAN_UNSUPPORTED_ARCH}-true)",
                    f"{var} := {UNKNOWN_ARCH}",
                    "endif",
                ]
            else:
                lines += [
                    "ifeq ($(HOST_OS)-$(HOST_ARCH),linux-x86)",
                    f"{var} := x86",
                    "else",
                    f"{var} := {UNKNOWN_ARCH}",
                    "endif",
                ]
            lines += [
                "",
                f"{side}_c_flags    := $(common_c_flags) $($({var})_c_flags) $(local_c_flags)",
                f"{side}_c_includes := $(addprefix {prefix},$(common_c_includes) $($({var})_c_includes)) $(local_c_includes)",
                f"{side}_src_files  := $(common_src_files) $($({var})_src_files)",
                f"{side}_src_files  := $(filter-out $(common_exclude_files) $($({var})_exclude_files), $({side}_src_files))",
                "",
            ]

        lines.append(f"local_additional_dependencies += $(LOCAL_PATH)/{os.path.basename(artifact)}")
        return "\n".join(lines) + "\n"

    def write(self, dest: Path, content: str) -> Path:
        self.logger.info("Generating %s", dest.name)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(content, encoding="utf-8", newline="\n")
        return dest
