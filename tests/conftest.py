import logging
import shutil
import tarfile
from pathlib import Path

import pytest
import yaml

from vendor_import.foundation.logging_utils import LOGGER_NAME

LIBRARY = "scrypt"
VERSION = "1.2.0"
RELEASE_DIR = f"{LIBRARY}-{VERSION}"

CONFIGURE_SCRIPT = """#!/bin/sh
cat > Makefile <<'EOF'
CONFIGURE_ARGS=-DIGNORED_ARG $*
OPTIONS=-DIGNORED_OPTION
CFLAG= -DHAVE_CONFIG_H -O2 \\
 -DSCRYPT_NO_DONKEYS -I../include
DEPFLAG= -DHAVE_CONFIG_H -DDEP_ONLY
LIBS= -lm
EOF
"""

SHARED_LINES = "".join(f"line{n}\n" for n in range(1, 10))

UPSTREAM_FILES = {
    "configure": CONFIGURE_SCRIPT,
    "lib/crypto_scrypt.c": "X",
    "lib/other.c": "int other = 1;\n",
    "lib/shared.c": SHARED_LINES,
    "tests/test_scrypt.sh": "#!/bin/sh\nexit 0\n",
}

OTHER_PATCH = f"""--- {RELEASE_DIR}.orig/lib/other.c
+++ {RELEASE_DIR}/lib/other.c
@@ -1 +1 @@
-int other = 1;
+int other = 2;
"""

SHARED_P1_PATCH = f"""--- {RELEASE_DIR}.orig/lib/shared.c
+++ {RELEASE_DIR}/lib/shared.c
@@ -2,7 +2,7 @@
 line2
 line3
 line4
-line5
+line5 p1
 line6
 line7
 line8
"""

SHARED_P2_PATCH = f"""--- {RELEASE_DIR}.orig/lib/shared.c
+++ {RELEASE_DIR}/lib/shared.c
@@ -4,6 +4,6 @@
 line4
 line5 p1
 line6
-line7
+line7 p2
 line8
 line9
"""

requires_patch = pytest.mark.skipif(
    shutil.which("patch") is None or shutil.which("sh") is None,
    reason="needs the patch tool and a POSIX shell",
)
requires_diff = pytest.mark.skipif(shutil.which("diff") is None, reason="needs the diff tool")


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    for relpath, content in files.items():
        path = root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8", newline="\n")
        if content.startswith("#!" if isinstance(content, str) else b"#!"):
            path.chmod(0o755)
    return root


def make_archive(tmp_path: Path, files: dict[str, str | bytes], *, top: str = RELEASE_DIR) -> Path:
    src = write_tree(tmp_path / "upstream" / top, files)
    archive = tmp_path / f"{top}.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(src, arcname=top)
    return archive


def sources_declaration(**overrides) -> dict:
    declaration = {
        "configure_args": ["--disable-static"],
        "unneeded_sources": ["tests"],
        "needed_sources": ["lib/crypto_scrypt.c", "lib/other.c", "lib/shared.c"],
        "defines": ["BASE"],
        "sources": ["lib/crypto_scrypt.c", "lib/other.c", "lib/shared.c"],
        "includes": ["lib"],
        "arch": {"arm": {"defines": ["ARM_OPT"]}},
        "patches": ["other.patch", "shared-p1.patch", "shared-p2.patch"],
        "patch_sources": {
            "other.patch": ["lib/other.c"],
            "shared-p1.patch": ["lib/shared.c"],
            "shared-p2.patch": ["lib/shared.c"],
        },
        "outputs": {"license_marker": "MODULE_LICENSE_BSD_LIKE"},
    }
    declaration.update(overrides)
    return declaration


def make_vendor_dir(tmp_path: Path, *, sources: dict | None = None, patches: dict[str, str] | None = None) -> Path:
    vendor = tmp_path / "vendor"
    (vendor / "patches").mkdir(parents=True)
    (vendor / "version.yaml").write_text(
        yaml.safe_dump({"library": LIBRARY, "version": VERSION}), encoding="utf-8"
    )
    (vendor / "sources.yaml").write_text(
        yaml.safe_dump(sources if sources is not None else sources_declaration(), sort_keys=False),
        encoding="utf-8",
    )
    if patches is None:
        patches = {
            "other.patch": OTHER_PATCH,
            "shared-p1.patch": SHARED_P1_PATCH,
            "shared-p2.patch": SHARED_P2_PATCH,
        }
    for name, content in patches.items():
        (vendor / "patches" / name).write_text(content, encoding="utf-8", newline="\n")
    return vendor


@pytest.fixture(autouse=True)
def _reset_operational_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def release_archive(tmp_path) -> Path:
    return make_archive(tmp_path, UPSTREAM_FILES)


@pytest.fixture
def vendor_dir(tmp_path, monkeypatch) -> Path:
    monkeypatch.delenv("VENDOR_IMPORT_SOURCES", raising=False)
    return make_vendor_dir(tmp_path)
