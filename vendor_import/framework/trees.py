"""Typed handles for the three trees an import works with, and their lifecycle.

- `PristineTree`: the sealed diff baseline. It exposes no mutating methods and no
  mutating operation in this package accepts one.
- `WorkingTree`: the mutable copy that receives the patch series.
- `VendoredDir`: the durable monorepo directory holding declarations, patches,
  generated artifacts and committed needed sources.

The staging pair lives inside the vendored directory as `<library>-<version>`
(working) and `<library>-<version>.orig` (pristine). It is created by
`SnapshotManager.extract` and removed by `SnapshotManager.teardown`.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tarfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from vendor_import.foundation.encoding import convert_iso8859_to_utf8
from vendor_import.foundation.errors import StagingError, UsageError
from vendor_import.framework.config import UpstreamRelease

PRISTINE_SUFFIX = ".orig"
PATCHES_DIR_NAME = "patches"


@dataclass(frozen=True)
class PristineTree:
    root: Path

    def path(self, relpath: str) -> Path:
        return self.root / relpath


@dataclass(frozen=True)
class WorkingTree:
    root: Path

    def path(self, relpath: str) -> Path:
        return self.root / relpath


@dataclass(frozen=True)
class VendoredDir:
    root: Path

    @property
    def patches_dir(self) -> Path:
        return self.root / PATCHES_DIR_NAME

    def path(self, relpath: str) -> Path:
        return self.root / relpath


@dataclass(frozen=True)
class StagingTrees:
    pristine: PristineTree
    working: WorkingTree


def remove_path(path: Path) -> bool:
    """Recursively delete `path`; returns False when nothing was there."""

    if path.is_symlink() or path.is_file():
        path.unlink()
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    return False


def copy_path(src: Path, dest: Path) -> None:
    """Copy a file or directory tree from `src` to `dest`, preserving symlinks."""

    dest.parent.mkdir(parents=True, exist_ok=True)
    if src.is_dir() and not src.is_symlink():
        shutil.copytree(src, dest, symlinks=True)
    else:
        shutil.copy2(src, dest, follow_symlinks=False)


def seal_readonly(root: Path) -> None:
    """Drop write permission bits on every regular file under `root`."""

    write_bits = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            file_path = Path(dirpath) / filename
            if file_path.is_symlink():
                continue
            mode = file_path.stat().st_mode
            file_path.chmod(mode & ~write_bits)


class SnapshotManager:
    """Creates, locates and removes the pristine/working staging pair."""

    def __init__(
        self,
        vendored: VendoredDir,
        release: UpstreamRelease,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.vendored = vendored
        self.release = release
        self.logger = logger or logging.getLogger(__name__)

    @property
    def working_root(self) -> Path:
        return self.vendored.root / self.release.dir_name

    @property
    def pristine_root(self) -> Path:
        return self.vendored.root / (self.release.dir_name + PRISTINE_SUFFIX)

    def extract(
        self,
        archive: str | os.PathLike[str],
        *,
        prepare_baseline: Callable[[WorkingTree], None] | None = None,
    ) -> StagingTrees:
        """
        Unpack `archive` once and duplicate it into the staging pair.

        `prepare_baseline`, when given, receives a mutable handle on the
        baseline copy before it is sealed into the `PristineTree`.
        """

        archive_path = Path(archive)
        if not archive_path.is_file():
            raise UsageError(f"Archive not found: {archive_path}")

        self.teardown()

        self.logger.info("Extracting %s", archive_path)
        try:
            with tarfile.open(archive_path, "r:*") as tar:
                tar.extractall(self.vendored.root, filter="data")
        except tarfile.TarError as exc:
            raise StagingError(f"Could not extract {archive_path}: {exc}") from exc

        if not self.working_root.is_dir():
            raise StagingError(
                f"{archive_path} did not contain {self.release.dir_name}/; check version.yaml"
            )

        converted = convert_iso8859_to_utf8(self.working_root, log=self.logger)
        if converted:
            self.logger.info("Converted %d ISO-8859 file(s) to UTF-8", len(converted))

        shutil.copytree(self.working_root, self.pristine_root, symlinks=True)

        if prepare_baseline is not None:
            prepare_baseline(WorkingTree(self.pristine_root))

        seal_readonly(self.pristine_root)
        return StagingTrees(pristine=PristineTree(self.pristine_root), working=WorkingTree(self.working_root))

    def existing(self) -> StagingTrees:
        for root in (self.working_root, self.pristine_root):
            if not root.is_dir():
                raise UsageError(f"{root.name} not found, did you mean to use generate?")
        return StagingTrees(pristine=PristineTree(self.pristine_root), working=WorkingTree(self.working_root))

    def teardown(self) -> None:
        for root in (self.pristine_root, self.working_root):
            if remove_path(root):
                self.logger.debug("Removed staging tree %s", root)
