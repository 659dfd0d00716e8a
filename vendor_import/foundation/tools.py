"""Thin wrappers around the external tools the import flow shells out to.

Tools are invoked with `subprocess.run` and never through a shell. Output is
captured and logged at DEBUG; statuses outside `ok_codes` raise
`ToolError` so callers only see the results they asked for.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable, Mapping, Sequence

from vendor_import.foundation.errors import ToolError

logger = logging.getLogger(__name__)

# Stable collation, timestamps and messages for diff/patch output.
STABLE_LOCALE_ENV: Mapping[str, str] = {"LANG": "C", "LC_ALL": "C", "TZ": "UTC0"}


def stable_env(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ)
    env.update(STABLE_LOCALE_ENV)
    if extra:
        env.update(extra)
    return env


def _as_text(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


def run_tool(
    cmd: Sequence[str],
    *,
    cwd: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
    ok_codes: Iterable[int] = (0,),
    text: bool = True,
    log: logging.Logger | None = None,
) -> subprocess.CompletedProcess:
    """
    Run `cmd` and return the completed process when its status is in `ok_codes`.

    With `text=False` stdout/stderr are returned as raw bytes (no newline
    translation), which is what diff output needs.
    """

    log = log or logger
    argv = [os.fspath(part) for part in cmd]
    log.debug("Running %s (cwd=%s)", " ".join(argv), cwd or os.getcwd())

    try:
        proc = subprocess.run(
            argv,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            check=False,
            capture_output=True,
            text=text,
            errors="replace" if text else None,
        )
    except FileNotFoundError as exc:
        raise ToolError(argv, None) from exc

    stdout = _as_text(proc.stdout)
    stderr = _as_text(proc.stderr)
    if stdout:
        log.debug("%s stdout:\n%s", argv[0], stdout.rstrip())
    if stderr:
        log.debug("%s stderr:\n%s", argv[0], stderr.rstrip())

    if proc.returncode not in set(ok_codes):
        raise ToolError(argv, proc.returncode, stdout=stdout, stderr=stderr)
    return proc
