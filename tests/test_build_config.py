import pytest

from conftest import sources_declaration
from vendor_import.framework.build_config import (
    UNKNOWN_ARCH,
    BuildConfigGenerator,
    BuildVariableSet,
    c_sorted,
    parse_probe_recipe,
    resolve,
)
from vendor_import.framework.config import SourceSet, UpstreamRelease

RELEASE = UpstreamRelease(library="scrypt", version="1.2.0")


def _variable_set(**overrides) -> BuildVariableSet:
    source_set = SourceSet.from_dict(sources_declaration(**overrides), release=RELEASE)
    return BuildVariableSet.from_source_set(source_set)


def test_arm_target_selects_common_plus_arm_defines():
    variables = resolve(_variable_set(), "arm")

    assert variables.defines == ("ARM_OPT", "BASE")
    assert variables.c_flags == ("-DARM_OPT", "-DBASE")


def test_big_endian_mips_keeps_only_common_set():
    variable_set = _variable_set(arch={"mips": {"defines": ["MIPS_OPT"], "sources": ["lib/mips.c"]}})

    little = resolve(variable_set, "mips")
    big = resolve(variable_set, "mips", big_endian=True)

    assert little.defines == ("BASE", "MIPS_OPT")
    assert "lib/mips.c" in little.sources
    assert big.defines == ("BASE",)
    assert big.sources == ("lib/crypto_scrypt.c", "lib/other.c", "lib/shared.c")


def test_unknown_arch_selects_empty_bucket():
    variables = resolve(_variable_set(), "sparc")

    assert variables.defines == ("BASE",)


def test_excludes_from_common_and_arch_are_removed():
    variable_set = _variable_set(
        excludes=["lib/other.c"],
        arch={"x86": {"sources": ["lib/x86.c"], "excludes": ["lib/shared.c"]}},
    )

    assert resolve(variable_set, "x86").sources == ("lib/crypto_scrypt.c", "lib/x86.c")
    assert resolve(variable_set, "arm").sources == ("lib/crypto_scrypt.c", "lib/shared.c")


def test_lists_are_sorted_by_codepoint_and_deduplicated():
    assert c_sorted(["b", "B", "a", "_x", "b"]) == ("B", "_x", "a", "b")


def test_render_is_independent_of_declaration_order():
    generator = BuildConfigGenerator(RELEASE, SourceSet.from_dict(sources_declaration(), release=RELEASE))
    forward = _variable_set(defines=["A", "B", "C"], includes=["inc", "lib"])
    backward = _variable_set(defines=["C", "B", "A", "B"], includes=["lib", "inc"])

    assert generator.render(forward) == generator.render(backward)


def test_parse_probe_recipe_collects_defines_from_flag_groups():
    recipe = "\n".join(
        [
            "CONFIGURE_ARGS=-DFROM_ARGS",
            "OPTIONS=-DFROM_OPTIONS",
            "CFLAG= -DHAVE_CONFIG_H -O2 \\",
            "  -DSCRYPT_NO_DONKEYS -Iinclude",
            "DEPFLAG += -DHAVE_CONFIG_H -DDEP_ONLY",
            "OTHERFLAG= -DNOT_A_GROUP",
            "LIBS= -lm",
            "",
        ]
    )

    flags = parse_probe_recipe(recipe, ("CFLAG", "DEPFLAG"))

    assert flags == ("-DHAVE_CONFIG_H", "-DSCRYPT_NO_DONKEYS", "-DDEP_ONLY")


def test_render_build_config_lists_probe_flags():
    generator = BuildConfigGenerator(RELEASE, SourceSet.from_dict(sources_declaration(), release=RELEASE))

    text = generator.render_build_config(["-DHAVE_CONFIG_H", "-DDEP_ONLY"])

    assert text.startswith("# Auto-generated - DO NOT EDIT!\n")
    assert "scrypt_cflags := \\\n  -DHAVE_CONFIG_H \\\n  -DDEP_ONLY \\\n" in text


def test_render_variables_file_contents():
    source_set = SourceSet.from_dict(sources_declaration(), release=RELEASE)
    generator = BuildConfigGenerator(RELEASE, source_set)

    text = generator.render(BuildVariableSet.from_source_set(source_set))

    assert f"{UNKNOWN_ARCH}_c_flags :=\n" in text
    assert "common_c_flags := \\\n  -DBASE \\\n" in text
    assert "arm_c_flags := \\\n  -DARM_OPT \\\n" in text
    assert "x86_c_flags :=\n" in text
    assert "ifeq ($(target_arch)-$(TARGET_HAS_BIGENDIAN),mips-true)" in text
    assert "ifeq ($(HOST_OS)-$(HOST_ARCH),linux-x86)" in text
    assert "$(addprefix external/scrypt/,$(common_c_includes) $($(target_arch)_c_includes))" in text
    assert "$(filter-out $(common_exclude_files) $($(host_arch)_exclude_files), $(host_src_files))" in text
    assert text.rstrip().endswith("local_additional_dependencies += $(LOCAL_PATH)/Scrypt-config.mk")


@pytest.mark.parametrize("arch", ["arm", "x86", "x86_64", "mips"])
def test_render_declares_every_architecture(arch):
    source_set = SourceSet.from_dict(sources_declaration(), release=RELEASE)
    text = BuildConfigGenerator(RELEASE, source_set).render(BuildVariableSet.from_source_set(source_set))

    for suffix in ("c_flags", "src_files", "c_includes", "exclude_files"):
        assert f"{arch}_{suffix} :=" in text
