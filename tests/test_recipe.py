import shutil
from pathlib import Path

import pytest

from buildrepo.recipe import (
    Recipe,
    RecipeError,
    RecipeLoader,
    normalize_dep,
    parse_fields,
    recipe_from_fields,
    scan_aports,
)

from conftest import make_recipe


@pytest.mark.parametrize(
    "word, expected",
    [
        ("foo", "foo"),
        ("foo>=1.2", "foo"),
        ("foo<2", "foo"),
        ("foo~1.2", "foo"),
        ("so:libc.musl-x86_64.so.1", "so:libc.musl-x86_64.so.1"),
        ("cmd:sh", "cmd:sh"),
        ("!conflict", None),
        ("", None),
    ],
)
def test_normalize_dep(word, expected) -> None:
    assert normalize_dep(word) == expected


def test_parse_fields_ignores_noise() -> None:
    text = "pkgname=hello\npkgver=2.12\nnot a field\nsomething=else\ndepends=a b=1 c\n"
    assert parse_fields(text) == {"pkgname": "hello", "pkgver": "2.12", "depends": "a b=1 c"}


def test_recipe_from_fields() -> None:
    fields = {
        "pkgname": "hello",
        "pkgver": "2.12",
        "pkgrel": "1",
        "arch": "all !s390x",
        "depends": "musl>=1.2 !old-hello musl",
        "makedepends": "gettext-dev",
        "subpackages": "hello-doc hello-lang:lang:noarch",
        "provides": "greeter=2.12-r1",
    }
    r = recipe_from_fields(fields, Path("/aports/main/hello"), "main")

    assert r.name == "hello"
    assert r.full_version == "2.12-r1"
    assert r.depends == ("musl",)
    assert r.all_depends() == ("musl", "gettext-dev")
    assert r.package_names() == ("hello", "hello-doc", "hello-lang")
    assert r.provided_names() == ("hello", "hello-doc", "hello-lang", "greeter")
    assert r.apk_file_names() == ("hello-2.12-r1.apk", "hello-doc-2.12-r1.apk", "hello-lang-2.12-r1.apk")
    assert r.staging_dir == Path("/aports/main/hello/src")
    assert r.arch_enabled("x86_64")
    assert not r.arch_enabled("s390x")


def test_recipe_from_fields_requires_name_version_and_numeric_release() -> None:
    with pytest.raises(RecipeError):
        recipe_from_fields({"pkgver": "1"}, Path("/x"))
    with pytest.raises(RecipeError):
        recipe_from_fields({"pkgname": "x"}, Path("/x"))
    with pytest.raises(RecipeError):
        recipe_from_fields({"pkgname": "x", "pkgver": "1", "pkgrel": "one"}, Path("/x"))


@pytest.mark.parametrize(
    "arch, enabled",
    [
        (("all",), True),
        (("noarch",), True),
        (("x86_64", "aarch64"), True),
        (("aarch64",), False),
        (("all", "!x86_64"), False),
        ((), False),
    ],
)
def test_arch_enabled(arch, enabled) -> None:
    assert make_recipe("a", arch=arch).arch_enabled("x86_64") is enabled


def test_recipe_is_frozen() -> None:
    r = make_recipe("a")
    with pytest.raises(AttributeError):
        r.name = "b"  # type: ignore[misc]
    assert isinstance(r, Recipe)


@pytest.mark.skipif(shutil.which("sh") is None or not Path("/bin/sh").exists(), reason="needs /bin/sh")
def test_loader_sources_apkbuild(tmp_path: Path) -> None:
    d = tmp_path / "main" / "hello"
    d.mkdir(parents=True)
    (d / "APKBUILD").write_text(
        'pkgname=hello\n'
        'pkgver=2.12\n'
        'pkgrel=1\n'
        'arch="all"\n'
        'depends="musl>=1.2"\n'
        'makedepends="\n'
        '\tgettext-dev\n'
        '\t!conflict\n'
        '\t"\n'
        'subpackages="$pkgname-doc $pkgname-lang:lang:noarch"\n'
        'provides="greeter=$pkgver-r$pkgrel"\n'
        'build() {\n'
        '\tmake\n'
        '}\n'
    )

    r = RecipeLoader("x86_64")(d, "main")

    assert r.name == "hello"
    assert r.version == "2.12"
    assert r.release == 1
    assert r.repo == "main"
    assert r.depends == ("musl",)
    assert r.makedepends == ("gettext-dev",)
    assert r.subpackages == ("hello-doc", "hello-lang")
    assert r.provides == ("greeter",)


@pytest.mark.skipif(not Path("/bin/sh").exists(), reason="needs /bin/sh")
def test_loader_reports_broken_apkbuild(tmp_path: Path) -> None:
    d = tmp_path / "broken"
    d.mkdir()
    (d / "APKBUILD").write_text("pkgname=broken\nexit 3\n")
    with pytest.raises(RecipeError):
        RecipeLoader("x86_64").load(d)


def test_loader_requires_apkbuild(tmp_path: Path) -> None:
    with pytest.raises(RecipeError):
        RecipeLoader("x86_64").load(tmp_path)


def test_scan_aports_is_sorted_and_one_level(tmp_path: Path) -> None:
    for name in ("zlib", "abc", "deep/nested"):
        (tmp_path / name).mkdir(parents=True)
        (tmp_path / name / "APKBUILD").write_text("")
    (tmp_path / "noapkbuild").mkdir()
    assert scan_aports(tmp_path) == [tmp_path / "abc", tmp_path / "zlib"]
