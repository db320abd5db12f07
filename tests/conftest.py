import io
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import pytest
from rich.console import Console

from buildrepo.buildsystem import BuildOutcome, BuildResult
from buildrepo.config import BuildConfig
from buildrepo.db import PackageDatabase
from buildrepo.recipe import Recipe


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("CARCH", "x86_64")
    monkeypatch.delenv("BUILDREPO_CONFIG", raising=False)
    monkeypatch.setattr("buildrepo.abuild.CONF_FILES", [])
    monkeypatch.chdir(tmp_path)
    yield
    log = logging.getLogger("buildrepo")
    for flt in list(log.filters):
        log.removeFilter(flt)
    for handler in list(log.handlers):
        log.removeHandler(handler)
    log.setLevel(logging.NOTSET)


def make_recipe(
    name: str,
    version: str = "1.0",
    release: int = 0,
    directory: Optional[Path] = None,
    repo: str = "main",
    **fields,
) -> Recipe:
    return Recipe(
        name=name,
        version=version,
        release=release,
        directory=directory if directory is not None else Path("/nonexistent/aports") / repo / name,
        repo=repo,
        **fields,
    )


def make_config(tmp_path: Path, repos: Sequence[str] = ("main",), **overrides) -> BuildConfig:
    values = dict(
        aports_dir=tmp_path / "aports",
        repodest=tmp_path / "packages",
        repos=tuple(repos),
        arch="x86_64",
    )
    values.update(overrides)
    return BuildConfig(**values)


def buffer_console() -> Tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, width=200, highlight=False, soft_wrap=True), buf


class FakeDatabase(PackageDatabase):
    """In-memory database: build order is the order of ``recipes``."""

    def __init__(
        self,
        repo: str,
        recipes: Iterable[Recipe] = (),
        needing: Optional[Iterable[str]] = None,
        disabled: Iterable[str] = (),
        unsatisfied: Iterable[str] = (),
        catalogue: Optional[Iterable[str]] = None,
        descriptor: str = "v3.20.0-42-gdeadbee",
    ):
        self.repo = repo
        self.recipes: List[Recipe] = list(recipes)
        self.needing: Optional[Set[str]] = set(needing) if needing is not None else None
        self.disabled = set(disabled)
        self.unsatisfied = set(unsatisfied)
        self.catalogue = list(catalogue) if catalogue is not None else None
        self.descriptor = descriptor
        self.order_requests: List[List[str]] = []

    def each_enabled_recipe(self) -> Iterator[Recipe]:
        return iter([r for r in self.recipes if r.name not in self.disabled])

    def each_needing_build(self) -> Iterator[Recipe]:
        return iter([r for r in self.each_enabled_recipe() if self.needing is None or r.name in self.needing])

    def each_in_build_order(self, names: Sequence[str]) -> Iterator[Recipe]:
        self.order_requests.append(list(names))
        wanted = set(names)
        out: List[Recipe] = []
        for r in self.recipes:
            if r.name in wanted and r.name not in [o.name for o in out]:
                out.append(r)
        return iter(out)

    def dependencies_satisfied(self, recipe: Recipe) -> bool:
        return recipe.name not in self.unsatisfied

    def each_catalogue_entry(self) -> Iterator[Tuple[Recipe, str]]:
        if self.catalogue is not None:
            return iter([(self.recipes[0], n) for n in self.catalogue])
        return iter([(r, f) for r in self.recipes for f in r.apk_file_names()])

    def revision_descriptor(self) -> str:
        return self.descriptor


class RecordingExecutor:
    def __init__(self, outcomes: Optional[Dict[str, Tuple[BuildOutcome, Optional[int]]]] = None):
        self.outcomes = outcomes or {}
        self.calls: List[Tuple[str, Optional[Path], bool]] = []

    def build(self, recipe: Recipe, repodest: Path, log_path: Optional[Path] = None, skip_failed: bool = False) -> BuildResult:
        self.calls.append((recipe.name, log_path, skip_failed))
        outcome, rc = self.outcomes.get(recipe.name, (BuildOutcome.BUILT, 0))
        return BuildResult(recipe.name, outcome, rc)

    @property
    def names(self) -> List[str]:
        return [c[0] for c in self.calls]


class RecordingPublisher:
    def __init__(self):
        self.calls: List[Tuple[Path, str, str]] = []

    def update_index(self, repo_path: Path, arch: str, description: str) -> None:
        self.calls.append((Path(repo_path), arch, description))
