import pytest

from conftest import requires_diff, requires_patch
from vendor_import import cli


def test_cli_requires_a_command(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 2
    assert "usage: vendor-import" in capsys.readouterr().err


def test_cli_generate_requires_archive():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["generate", "patches/other.patch"])

    assert excinfo.value.code == 2


def test_cli_missing_patches_dir_is_usage_error(tmp_path, capsys):
    rc = cli.main(["--vendor-dir", str(tmp_path), "regenerate", "patches/other.patch"])

    assert rc == 1
    err = capsys.readouterr().err
    assert "usage: vendor-import" in err
    assert "Patch directory patches/ not found" in err


def test_cli_regenerate_without_staging_fails(vendor_dir, capsys):
    rc = cli.main(["--vendor-dir", str(vendor_dir), "regenerate", "patches/other.patch"])

    assert rc == 1
    assert "scrypt-1.2.0 not found, did you mean to use generate?" in capsys.readouterr().err


def test_cli_reports_config_errors(vendor_dir, capsys):
    (vendor_dir / "version.yaml").write_text("library: scrypt\nversion: 1.2\n", encoding="utf-8")

    rc = cli.main(["--vendor-dir", str(vendor_dir), "regenerate", "patches/other.patch"])

    assert rc == 1
    assert "quote numeric versions" in capsys.readouterr().err


@requires_patch
@requires_diff
def test_cli_import_smoke(vendor_dir, release_archive, tmp_path):
    log_dir = tmp_path / "logs"

    rc = cli.main(["--vendor-dir", str(vendor_dir), "--log-dir", str(log_dir), "import", str(release_archive)])

    assert rc == 0
    assert (vendor_dir / "lib" / "other.c").read_text(encoding="utf-8") == "int other = 2;\n"
    oplog = (log_dir / "import_oplog.log").read_text(encoding="utf-8")
    assert "Applying patch shared-p2.patch" in oplog
    assert "Generating Scrypt-config.mk" in oplog
