# buildrepo/db.py
"""
Package database for one repository of an aports tree.

PackageDatabase is the interface the orchestrator talks to. AportsDatabase is
the implementation over <aportsdir>/<repo>/*/APKBUILD with the built
packages in <repodest>/<repo>/<arch>.

Known providers: every pkgname, subpackage and provides name of the recipes of
this repository and of the extra dependency repositories. A dependency nobody
here provides is expected to come from an installed system repository.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from buildrepo.config import BuildConfig
from buildrepo.logging import get_logger
from buildrepo.recipe import Recipe, RecipeError, RecipeLoader, scan_aports

logger = get_logger("db")

Loader = Callable[[Path, str], Recipe]


class PackageDatabase:
    """
    Per-repository view used by the orchestrator. Every each_* method returns a
    fresh finite iterator, so it can be called again to restart.
    """

    repo: str = ""

    def each_enabled_recipe(self) -> Iterator[Recipe]:
        raise NotImplementedError

    def each_needing_build(self) -> Iterator[Recipe]:
        raise NotImplementedError

    def each_in_build_order(self, names: Sequence[str]) -> Iterator[Recipe]:
        raise NotImplementedError

    def dependencies_satisfied(self, recipe: Recipe) -> bool:
        raise NotImplementedError

    def each_catalogue_entry(self) -> Iterator[Tuple[Recipe, str]]:
        raise NotImplementedError

    def revision_descriptor(self) -> str:
        raise NotImplementedError


class AportsDatabase(PackageDatabase):
    def __init__(
        self,
        aports_dir: Path,
        repo: str,
        arch: str,
        repodest: Path,
        dep_repos: Sequence[str] = (),
        loader: Optional[Loader] = None,
    ):
        self.aports_dir = Path(aports_dir)
        self.repo = repo
        self.arch = arch
        self.repodest = Path(repodest)
        self.loader: Loader = loader or RecipeLoader(arch)
        self._recipes: List[Recipe] = self._load_repo(repo)
        self._by_name: Dict[str, List[Recipe]] = {}
        self._providers: Dict[str, List[Recipe]] = {}
        for r in self._recipes:
            self._by_name.setdefault(r.name, []).append(r)
            self._register(r)
        for dep_repo in dep_repos:
            if dep_repo == repo:
                continue
            for r in self._load_repo(dep_repo):
                self._register(r)
        logger.debug("db: %s: %d aports, %d provided names", repo, len(self._recipes), len(self._providers))

    def _load_repo(self, repo: str) -> List[Recipe]:
        recipes: List[Recipe] = []
        for directory in scan_aports(self.aports_dir / repo):
            try:
                recipes.append(self.loader(directory, repo))
            except RecipeError as e:
                logger.error("%s", e)
        return recipes

    def _register(self, recipe: Recipe):
        for name in recipe.provided_names():
            providers = self._providers.setdefault(name, [])
            if recipe not in providers:
                providers.append(recipe)

    # ------------------------
    # artifacts
    # ------------------------
    def output_dir(self, recipe: Recipe) -> Path:
        return self.repodest / (recipe.repo or self.repo) / self.arch

    def artifact_exists(self, recipe: Recipe, name: Optional[str] = None) -> bool:
        return (self.output_dir(recipe) / recipe.apk_file_name(name)).is_file()

    def all_artifacts_exist(self, recipe: Recipe) -> bool:
        return all(self.artifact_exists(recipe, n) for n in recipe.package_names())

    # ------------------------
    # PackageDatabase
    # ------------------------
    def each_enabled_recipe(self) -> Iterator[Recipe]:
        for r in self._recipes:
            if r.arch_enabled(self.arch):
                yield r

    def each_needing_build(self) -> Iterator[Recipe]:
        for r in self.each_enabled_recipe():
            if not self.all_artifacts_exist(r):
                yield r

    def each_in_build_order(self, names: Sequence[str]) -> Iterator[Recipe]:
        """
        Depth-first topological order of the recipes called ``names``, using
        depends + makedepends restricted to that set. Only recipes that still
        need a build are visited, so a same-named aport disabled for this arch
        is never yielded. A cycle is cut where it closes.
        """
        wanted = set(names)
        selected = {r.directory for r in self.each_needing_build() if r.name in wanted}
        state: Dict[Path, int] = {}
        order: List[Recipe] = []

        def deps_of(recipe: Recipe) -> List[Recipe]:
            out: List[Recipe] = []
            for dep in recipe.all_depends():
                for p in self._providers.get(dep, []):
                    if p is recipe or p.repo != self.repo or p.directory not in selected:
                        continue
                    if p not in out:
                        out.append(p)
            return out

        def visit(recipe: Recipe, path: List[str]):
            key = recipe.directory
            st = state.get(key, 0)
            if st == 2:
                return
            if st == 1:
                logger.warning("circular dependency: %s", " -> ".join(path + [recipe.name]))
                return
            state[key] = 1
            for dep in deps_of(recipe):
                visit(dep, path + [recipe.name])
            state[key] = 2
            order.append(recipe)

        seen_names: List[str] = []
        for name in names:
            if name in seen_names:
                continue
            seen_names.append(name)
            for recipe in self._by_name.get(name, []):
                if recipe.directory in selected:
                    visit(recipe, [])
        yield from order

    def dependencies_satisfied(self, recipe: Recipe) -> bool:
        for dep in recipe.all_depends():
            providers = [p for p in self._providers.get(dep, []) if p is not recipe]
            if not providers:
                continue
            if dep in recipe.provided_names():
                continue
            enabled = [p for p in providers if p.arch_enabled(self.arch)]
            if not any(self.artifact_exists(p, dep if dep in p.package_names() else None) for p in enabled):
                logger.debug("%s: dependency %s is not built", recipe.name, dep)
                return False
        return True

    def each_catalogue_entry(self) -> Iterator[Tuple[Recipe, str]]:
        for r in self._recipes:
            for name in r.package_names():
                yield r, r.apk_file_name(name)

    def revision_descriptor(self) -> str:
        try:
            proc = subprocess.run(["git", "-C", str(self.aports_dir), "describe"], capture_output=True, text=True)
        except OSError as e:
            logger.debug("git describe failed: %s", e)
            return "unknown"
        if proc.returncode != 0 or not proc.stdout.strip():
            logger.debug("git describe failed: %s", proc.stderr.strip())
            return "unknown"
        return proc.stdout.strip().splitlines()[0]


def open_database(cfg: BuildConfig, repo: str, loader: Optional[Loader] = None) -> AportsDatabase:
    return AportsDatabase(cfg.aports_dir, repo, cfg.arch, cfg.repodest, dep_repos=cfg.dep_repos, loader=loader)
