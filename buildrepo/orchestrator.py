# buildrepo/orchestrator.py
# -*- coding: utf-8 -*-
"""
orchestrator.py - builds every out-of-date aport of each requested repository

Per repository:
  1. open the package database
  2. count the aports enabled for this arch
  3. collect the aports that need a build
  4. create <logdir>/<repo> when build logs are requested
  5. build them in dependency order; a recipe whose dependencies are not
     built (typically because one failed earlier in this pass) is skipped
  6. purge obsolete packages (optional)
  7. regenerate the repository index (not in dry-run)
  8. record the counters

A failed build stops everything unless keep_going is set: BuildAborted
propagates out of run() and no further repository is processed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

from rich.console import Console

from buildrepo import logpaths, purge
from buildrepo.buildsystem import BuildOutcome, BuildResult, get_executor
from buildrepo.config import BuildConfig, BuildrepoError
from buildrepo.db import PackageDatabase, open_database
from buildrepo.index import IndexPublisher, get_publisher
from buildrepo.logging import get_logger
from buildrepo.recipe import Recipe
from buildrepo.stats import RepoRunStats, StatsCollector

logger = get_logger("orchestrator")


class BuildAborted(BuildrepoError):
    """A build failed and keep-going is off."""

    def __init__(self, repo: str, name: str, returncode: Optional[int] = None):
        super().__init__(f"{repo}/{name}: build failed, aborting")
        self.repo = repo
        self.name = name
        self.returncode = returncode

    @property
    def exit_status(self) -> int:
        if isinstance(self.returncode, int) and self.returncode > 0:
            return self.returncode
        return 1


def make_console() -> Console:
    return Console(highlight=False, emoji=False, soft_wrap=True)


class Orchestrator:
    def __init__(
        self,
        cfg: BuildConfig,
        open_db: Callable[[BuildConfig, str], PackageDatabase] = open_database,
        executor=None,
        publisher: Optional[IndexPublisher] = None,
        console: Optional[Console] = None,
    ):
        self.cfg = cfg
        self.open_db = open_db
        self.executor = executor if executor is not None else get_executor(cfg)
        self.publisher = publisher if publisher is not None else get_publisher(cfg)
        self.console = console or make_console()
        self.stats = StatsCollector()

    def out(self, line: str) -> None:
        """Progress output; diagnostics go through the logger instead."""
        self.console.print(line, markup=False, highlight=False)

    def run(self) -> StatsCollector:
        for repo in self.cfg.repos:
            self.run_repo(repo)
        return self.stats

    def run_repo(self, repo: str) -> RepoRunStats:
        cfg = self.cfg
        db = self.open_db(cfg, repo)
        stats = self.stats.start(repo)

        stats.total = sum(1 for _ in db.each_enabled_recipe())

        names: List[str] = []
        for recipe in db.each_needing_build():
            if recipe.name in names:
                logger.warning("more than one aport provides %s", recipe.name)
            names.append(recipe.name)
        logger.debug("%s: %d of %d aports need building", repo, len(names), stats.total)

        log_root = None if cfg.dry_run else logpaths.ensure_repo_log_dir(cfg.log_dir, repo)

        for recipe in db.each_in_build_order(names):
            stats.attempted += 1
            totally_built = stats.total - len(names) + stats.built
            self.out(f"{stats.attempted}/{len(names)} {totally_built}/{stats.total} {recipe.name}")
            if not db.dependencies_satisfied(recipe):
                logger.warning("%s: Skipped due to missing dependencies", recipe.name)
                continue
            result = self.build_one(recipe, log_root)
            if result.outcome is BuildOutcome.BUILT:
                stats.built += 1
            elif result.outcome is BuildOutcome.FAILED and not cfg.keep_going:
                stats.finish()
                raise BuildAborted(repo, recipe.name, result.returncode)

        if cfg.purge:
            stats.deleted = purge.reconcile(db.each_catalogue_entry(), cfg.output_dir(repo),
                                            dry_run=cfg.dry_run, report=self.out)

        if not cfg.dry_run:
            self.out("Updating apk index")
            self.publisher.update_index(cfg.repo_dir(repo), cfg.arch, db.revision_descriptor())

        stats.finish()
        return stats

    def build_one(self, recipe: Recipe, log_root: Optional[Path]) -> BuildResult:
        """A log directory that cannot be created fails this recipe only."""
        try:
            log_path = logpaths.resolve(log_root, recipe)
        except logpaths.LogDirectoryError as e:
            logger.error("%s: %s", recipe.name, e)
            return BuildResult(recipe.name, BuildOutcome.FAILED)
        return self.executor.build(recipe, self.cfg.repodest, log_path, self.cfg.skip_failed)

    def print_summary(self) -> None:
        for line in self.stats.summary_lines():
            self.out(line)
