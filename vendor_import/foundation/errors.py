"""Error taxonomy for vendoring operations.

Every failure aborts the running command. The CLI maps these to exit codes;
nothing here attempts recovery.
"""

from __future__ import annotations

from collections.abc import Sequence


class VendorImportError(Exception):
    """Base class for all vendoring failures."""


class ConfigError(VendorImportError, ValueError):
    """Missing or invalid version/source-set declaration."""


class UsageError(VendorImportError):
    """Bad command usage: unknown patch, missing staging trees, and similar."""


class StagingError(VendorImportError):
    """The archive or a staging tree does not have the expected layout."""


class PatchApplyFailure(VendorImportError):
    """A patch in the series did not apply cleanly."""

    def __init__(self, patch_name: str, *, output: str = "") -> None:
        self.patch_name = patch_name
        self.output = output
        super().__init__(
            f"Could not apply patches/{patch_name}. "
            f"Fix source and run: vendor-import regenerate patches/{patch_name}"
        )


class DiffAnomaly(VendorImportError):
    """Regenerating a patch produced no diff for a path the patch owns."""

    def __init__(self, patch_name: str, path: str) -> None:
        self.patch_name = patch_name
        self.path = path
        super().__init__(f"No diff for patch {patch_name} in file {path}")


class ToolError(VendorImportError, RuntimeError):
    """An external tool was missing or exited with an unexpected status."""

    def __init__(self, cmd: Sequence[str], returncode: int | None, *, stdout: str = "", stderr: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        if returncode is None:
            message = f"{self.cmd[0]} not found"
        else:
            message = (
                f"{' '.join(self.cmd)} failed. "
                f"returncode={returncode}. "
                f"stdout={stdout.strip()[-2000:]!r} stderr={stderr.strip()[-2000:]!r}"
            )
        super().__init__(message)
