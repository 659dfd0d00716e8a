from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from vendor_import.foundation.errors import UsageError, VendorImportError
from vendor_import.foundation.logging_utils import setup_operational_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vendor-import",
        description="Import an upstream release into a vendored directory and maintain its patch series.",
        add_help=True,
    )
    parser.add_argument(
        "--vendor-dir",
        default=".",
        help="Vendored directory holding version.yaml, sources.yaml and patches/ (default: current directory)",
    )
    parser.add_argument("--log-dir", default=None, help="Also write a DEBUG operational log under this directory")
    parser.add_argument("--verbose", action="store_true", help="Show DEBUG output (tool output) on stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    import_cmd = sub.add_parser("import", help="Import a release archive, apply all patches and regenerate build files")
    import_cmd.add_argument("archive", help="Path to <library>-<version>.tar.gz")
    import_cmd.add_argument("--keep-staging", action="store_true", help="Leave the staging trees for regenerate")

    regenerate = sub.add_parser("regenerate", help="Regenerate one patch from existing staging trees")
    regenerate.add_argument("patch", help="Patch path, e.g. patches/foo.patch")

    generate = sub.add_parser("generate", help="Rebuild one patch from a fresh extraction of the archive")
    generate.add_argument("patch", help="Patch path, e.g. patches/foo.patch")
    generate.add_argument("archive", help="Path to <library>-<version>.tar.gz")
    generate.add_argument("--keep-staging", action="store_true", help="Leave the staging trees for regenerate")

    return parser


def run_command(args: argparse.Namespace, logger: logging.Logger) -> None:
    from vendor_import.app.orchestrator import Orchestrator
    from vendor_import.framework.config import load_declarations
    from vendor_import.framework.trees import VendoredDir

    vendor_dir = Path(args.vendor_dir).resolve()
    if not (vendor_dir / "patches").is_dir():
        raise UsageError(f"Patch directory patches/ not found in {vendor_dir}")

    release, source_set, meta = load_declarations(str(vendor_dir))
    logger.debug("Loaded source set (%s): %s", meta["mode"], ", ".join(meta["paths"]))
    for warning in source_set.warnings:
        logger.warning(warning)

    orchestrator = Orchestrator(
        release=release,
        source_set=source_set,
        vendored=VendoredDir(vendor_dir),
        logger=logger,
        keep_staging=bool(getattr(args, "keep_staging", False)),
    )

    if args.command == "import":
        orchestrator.import_release(args.archive)
        return

    if args.command == "regenerate":
        orchestrator.regenerate(args.patch)
        return

    if args.command == "generate":
        orchestrator.generate(args.patch, args.archive)
        return

    raise AssertionError(f"Unhandled command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    logger, _log_file = setup_operational_logger(args.command, log_dir=args.log_dir, verbose=args.verbose)

    try:
        run_command(args, logger)
    except UsageError as exc:
        parser.print_usage(sys.stderr)
        logger.error("%s", exc)
        return 1
    except VendorImportError as exc:
        logger.error("%s", exc)
        return 1

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
