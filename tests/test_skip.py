import os
import time
from pathlib import Path

import pytest

from buildrepo.skip import should_skip

from conftest import make_recipe


def _aport(tmp_path: Path) -> Path:
    d = tmp_path / "hello"
    d.mkdir()
    (d / "APKBUILD").write_text("pkgname=hello\n")
    return d


def _age(path: Path, seconds_ago: float) -> None:
    t = time.time() - seconds_ago
    os.utime(path, (t, t))


def test_no_staging_directory(tmp_path: Path) -> None:
    assert should_skip(make_recipe("hello", directory=_aport(tmp_path))) is False


def test_missing_recipe_directory(tmp_path: Path) -> None:
    assert should_skip(make_recipe("hello", directory=tmp_path / "gone")) is False


def test_staging_older_than_recipe(tmp_path: Path) -> None:
    d = _aport(tmp_path)
    (d / "src").mkdir()
    _age(d / "src", 100)
    _age(d / "APKBUILD", 10)
    assert should_skip(make_recipe("hello", directory=d)) is False


def test_same_mtime_is_not_skipped(tmp_path: Path) -> None:
    d = _aport(tmp_path)
    (d / "src").mkdir()
    t = time.time() - 50
    os.utime(d / "src", (t, t))
    os.utime(d / "APKBUILD", (t, t))
    assert should_skip(make_recipe("hello", directory=d)) is False


def test_staging_newer_than_recipe(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    d = _aport(tmp_path)
    (d / "src").mkdir()
    _age(d / "APKBUILD", 100)
    _age(d / "src", 10)
    assert should_skip(make_recipe("hello", directory=d)) is True
    assert "hello: Skipped due to previous build failure" in caplog.text


def test_staging_path_that_is_a_file(tmp_path: Path) -> None:
    d = _aport(tmp_path)
    (d / "src").write_text("")
    _age(d / "APKBUILD", 100)
    assert should_skip(make_recipe("hello", directory=d)) is False
