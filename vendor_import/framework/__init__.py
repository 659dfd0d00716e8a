"""Vendoring framework: declarations, staging trees, patch series and build variables.

Common entrypoints:

- `vendor_import.framework.config`: `UpstreamRelease` / `SourceSet` declarations
- `vendor_import.framework.trees`: typed tree handles + `SnapshotManager`
- `vendor_import.framework.patches`: `PatchSeries` + `PatchSeriesEngine`
- `vendor_import.framework.pruner`: `SourcePruner`
- `vendor_import.framework.build_config`: `BuildConfigGenerator` + `resolve`

The command-level composition lives in `vendor_import.app`.
"""
