from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from vendor_import.foundation.errors import ConfigError, StagingError
from vendor_import.framework.build_config import BuildConfigGenerator, BuildVariableSet
from vendor_import.framework.config import SourceSet, UpstreamRelease
from vendor_import.framework.patches import PatchFile, PatchSeries, PatchSeriesEngine
from vendor_import.framework.pruner import SourcePruner
from vendor_import.framework.trees import SnapshotManager, StagingTrees, VendoredDir, copy_path, remove_path


@dataclass
class Orchestrator:
    """
    Composes the vendoring steps into the three commands.

    Staging trees are torn down only after a command succeeds (and not at all
    with `keep_staging`), so a failed run leaves them for inspection.
    """

    release: UpstreamRelease
    source_set: SourceSet
    vendored: VendoredDir
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    keep_staging: bool = False

    snapshots: SnapshotManager = field(init=False)
    engine: PatchSeriesEngine = field(init=False)
    pruner: SourcePruner = field(init=False)
    build_config: BuildConfigGenerator = field(init=False)
    series: PatchSeries = field(init=False)

    def __post_init__(self) -> None:
        self.snapshots = SnapshotManager(self.vendored, self.release, logger=self.logger)
        self.engine = PatchSeriesEngine(logger=self.logger)
        self.pruner = SourcePruner(logger=self.logger)
        self.build_config = BuildConfigGenerator(self.release, self.source_set, logger=self.logger)
        self.series = PatchSeries.from_config(
            self.source_set.patches,
            self.source_set.patch_sources,
            patches_dir=self.vendored.patches_dir,
        )

    def import_release(self, archive: str | os.PathLike[str]) -> StagingTrees:
        trees = self.snapshots.extract(archive)
        self.engine.apply(trees.working, self.series)

        outputs = self.source_set.outputs
        flags = self.build_config.probe(trees.working)
        self.build_config.write(self.vendored.path(outputs.build_config), self.build_config.render_build_config(flags))
        variable_set = BuildVariableSet.from_source_set(self.source_set)
        self.build_config.write(self.vendored.path(outputs.variables), self.build_config.render(variable_set))
        if outputs.license_marker:
            self.vendored.path(outputs.license_marker).touch()

        self.pruner.prune(trees, self.source_set.unneeded_sources)

        for relpath in self.source_set.needed_sources:
            upstream = trees.working.path(relpath)
            if not upstream.exists() and not upstream.is_symlink():
                raise StagingError(f"Needed source {relpath} not found in {trees.working.root.name}")
            self.logger.info("Updating %s", relpath)
            remove_path(self.vendored.path(relpath))
            copy_path(upstream, self.vendored.path(relpath))

        self._finish()
        return trees

    def generate(self, patch_path: str | os.PathLike[str], archive: str | os.PathLike[str]) -> PatchFile:
        patch = self._owned_patch(patch_path)
        trees = self.snapshots.extract(
            archive,
            prepare_baseline=lambda baseline: self.engine.apply(baseline, self.series, skip=patch),
        )
        self.pruner.prune(trees, self.source_set.unneeded_sources)

        for relpath in self.source_set.needed_sources:
            vendored = self.vendored.path(relpath)
            if not vendored.exists() and not vendored.is_symlink():
                raise StagingError(f"Needed source {relpath} is not vendored yet; run import first")
            self.logger.info("Restoring %s", relpath)
            remove_path(trees.working.path(relpath))
            copy_path(vendored, trees.working.path(relpath))

        self.engine.regenerate(trees, patch)
        self._finish()
        return patch

    def regenerate(self, patch_path: str | os.PathLike[str]) -> PatchFile:
        patch = self._owned_patch(patch_path)
        trees = self.snapshots.existing()
        self.engine.regenerate(trees, patch)
        return patch

    def _owned_patch(self, patch_path: str | os.PathLike[str]) -> PatchFile:
        patch = self.series.find(patch_path)
        if not patch.owned_paths:
            raise ConfigError(f"No patch_sources declared for {patch.name}")
        return patch

    def _finish(self) -> None:
        if self.keep_staging:
            self.logger.info("Keeping staging trees in %s", self.vendored.root)
            return
        self.snapshots.teardown()
