from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

# Bytes that never appear in ISO-8859 text (C0 controls other than whitespace).
_NON_TEXT_BYTES = frozenset(set(range(0x00, 0x20)) - {0x09, 0x0A, 0x0C, 0x0D}) | {0x7F}


def is_iso8859_text(data: bytes) -> bool:
    """True when `data` is text that only decodes as ISO-8859 (not as UTF-8 or ASCII)."""

    if not data or any(b in _NON_TEXT_BYTES for b in data):
        return False
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return False


def convert_iso8859_to_utf8(root: str | os.PathLike[str], *, log: logging.Logger | None = None) -> list[Path]:
    """Re-encode every ISO-8859-1 regular file under `root` as UTF-8, returning the converted paths."""

    log = log or logger
    converted: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.is_symlink() or not path.is_file():
                continue
            data = path.read_bytes()
            if not is_iso8859_text(data):
                continue
            tmp_path = path.with_name(path.name + ".tmp")
            tmp_path.write_bytes(data.decode("iso-8859-1").encode("utf-8"))
            shutil.copymode(path, tmp_path)
            os.replace(tmp_path, path)
            log.debug("Converted %s from ISO-8859-1 to UTF-8", path)
            converted.append(path)
    return converted
