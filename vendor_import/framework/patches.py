"""Patch series: identity, ordering, application and regeneration.

Patches are plain unified diffs stored under `<vendored>/patches/`. Each patch
owns a fixed list of tree-relative paths; regenerating a patch diffs exactly
those paths between the pristine baseline and the working tree.

Diff labels are `<library>-<version>.orig/<path>` and `<library>-<version>/<path>`
so `patch -p1` strips the staging directory name on apply.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from vendor_import.foundation.errors import ConfigError, DiffAnomaly, PatchApplyFailure, ToolError, UsageError
from vendor_import.foundation.tools import run_tool, stable_env
from vendor_import.framework.trees import PATCHES_DIR_NAME, StagingTrees, WorkingTree

BACKUP_SUFFIX = ".orig"
EDITOR_BACKUP_SUFFIX = "~"


@dataclass(frozen=True)
class PatchFile:
    name: str
    path: Path
    owned_paths: tuple[str, ...] = ()


@dataclass(frozen=True)
class PatchSeries:
    patches: tuple[PatchFile, ...]

    @staticmethod
    def from_config(
        names: Sequence[str],
        patch_sources: Mapping[str, Sequence[str]],
        *,
        patches_dir: Path,
    ) -> "PatchSeries":
        return PatchSeries(
            tuple(
                PatchFile(name=name, path=patches_dir / name, owned_paths=tuple(patch_sources.get(name, ())))
                for name in names
            )
        )

    def __iter__(self) -> Iterator[PatchFile]:
        return iter(self.patches)

    def __len__(self) -> int:
        return len(self.patches)

    def without(self, target: PatchFile) -> "PatchSeries":
        return PatchSeries(tuple(patch for patch in self.patches if patch != target))

    def find(self, patch_path: str | os.PathLike[str]) -> PatchFile:
        """Resolve a command-line patch path (e.g. `patches/foo.patch`) to its series entry."""

        wanted = Path(patch_path)
        for patch in self.patches:
            if wanted.name != patch.name:
                continue
            if wanted.parent in (Path("."), Path(PATCHES_DIR_NAME)) or wanted.resolve() == patch.path.resolve():
                return patch
        raise UsageError(f"{patch_path} is not part of the patch series")


def remove_stray_files(root: Path, suffixes: Sequence[str], *, include_symlinks: bool) -> list[Path]:
    removed: list[Path] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            if not filename.endswith(tuple(suffixes)):
                continue
            path = Path(dirpath) / filename
            if path.is_symlink() and not include_symlinks:
                continue
            path.unlink()
            removed.append(path)
    return removed


class PatchSeriesEngine:
    """Applies a patch series to a tree and regenerates single patches from a staging pair."""

    def __init__(
        self,
        *,
        patch_binary: str = "patch",
        diff_binary: str = "diff",
        logger: logging.Logger | None = None,
    ) -> None:
        self.patch_binary = patch_binary
        self.diff_binary = diff_binary
        self.logger = logger or logging.getLogger(__name__)

    def apply(self, tree: WorkingTree, series: PatchSeries, *, skip: PatchFile | None = None) -> None:
        """
        Apply `series` in order to `tree`, leaving out `skip`.

        A failing patch raises `PatchApplyFailure` immediately; the tree is left
        as-is for inspection.
        """

        active = series if skip is None else series.without(skip)
        for patch in series:
            if patch not in active.patches:
                self.logger.info("Skipping patch %s", patch.name)
                continue

            self.logger.info("Applying patch %s", patch.name)
            if not patch.path.is_file():
                raise PatchApplyFailure(patch.name, output=f"{patch.path} not found")
            try:
                run_tool(
                    [self.patch_binary, "-p1", "--merge", "-i", str(patch.path.resolve())],
                    cwd=tree.root,
                    env=stable_env(),
                    log=self.logger,
                )
            except ToolError as exc:
                if exc.returncode is None:
                    raise
                raise PatchApplyFailure(patch.name, output=exc.stdout + exc.stderr) from exc

        for path in remove_stray_files(tree.root, (BACKUP_SUFFIX,), include_symlinks=True):
            self.logger.debug("Removed patch backup %s", path)

    def diff_path(self, trees: StagingTrees, relpath: str) -> bytes:
        """Unified diff of one tree-relative path, labelled relative to the staging parent."""

        parent = trees.working.root.parent
        old = os.path.relpath(trees.pristine.path(relpath), parent)
        new = os.path.relpath(trees.working.path(relpath), parent)
        proc = run_tool(
            [self.diff_binary, "-aup", old, new],
            cwd=parent,
            env=stable_env(),
            ok_codes=(0, 1),
            text=False,
            log=self.logger,
        )
        return proc.stdout or b""

    def regenerate(self, trees: StagingTrees, patch: PatchFile) -> Path:
        """
        Rewrite `patch` from the differences between the pristine and working trees.

        Only the paths the patch owns are diffed. Every owned path must produce a
        non-empty diff body; the patch file is written only once all of them have.
        """

        if not patch.owned_paths:
            raise ConfigError(f"No patch_sources declared for {patch.name}")

        for path in remove_stray_files(
            trees.working.root, (BACKUP_SUFFIX, EDITOR_BACKUP_SUFFIX), include_symlinks=False
        ):
            self.logger.debug("Removed stray file %s", path)

        bodies: list[bytes] = []
        for relpath in patch.owned_paths:
            body = self.diff_path(trees, relpath)
            if not body.strip():
                raise DiffAnomaly(patch.name, relpath)
            bodies.append(body)

        patch.path.parent.mkdir(parents=True, exist_ok=True)
        patch.path.write_bytes(b"".join(bodies))

        self.logger.info("Generated patch %s", patch.path)
        self.logger.info(
            "NOTE To make sure there are not unwanted changes from conflicting patches, "
            "be sure to review the generated patch."
        )
        return patch.path
