# buildrepo/buildsystem.py
# -*- coding: utf-8 -*-
"""
buildsystem.py - runs the build tool (abuild) for one aport

API:
  ex = get_executor(build_config)
  result = ex.build(recipe, repodest, log_path, skip_failed)

Result:
  BuildResult(name, outcome=BUILT|FAILED|SKIPPED, returncode)

Behaviour:
  - The tool is described by a BuildInvocation (program, args, env, cwd, log
    file) and started without a shell, so no quoting is involved.
  - REPODEST is passed through the environment.
  - With a log file, stdout and stderr of the tool both go to it; without one
    the tool writes straight to our own terminal.
  - DryRunExecutor reports success without touching anything.
"""

from __future__ import annotations

import os
import sys
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from buildrepo.config import BuildConfig
from buildrepo.logging import get_logger
from buildrepo.recipe import Recipe
from buildrepo import skip

logger = get_logger("buildsystem")

DEFAULT_COMMAND: Tuple[str, ...] = ("abuild", "-r", "-m")

# exit status used when the tool cannot be started at all, as a shell would
EXIT_NOT_FOUND = 127
# the build log could not be opened; the tool never ran
EXIT_LOG_UNWRITABLE = 1


class BuildOutcome(Enum):
    BUILT = "built"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class BuildResult:
    name: str
    outcome: BuildOutcome
    returncode: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.outcome is BuildOutcome.BUILT


@dataclass(frozen=True)
class BuildInvocation:
    program: str
    args: Tuple[str, ...]
    cwd: Path
    env: Dict[str, str] = field(default_factory=dict, compare=False)
    log_path: Optional[Path] = None

    def argv(self) -> List[str]:
        return [self.program, *self.args]


# --- environment assembly ---
def assemble_env(repodest: Path, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    env["REPODEST"] = str(repodest)
    return env


def run_invocation(inv: BuildInvocation) -> int:
    """Run the tool and wait for it. Returns its exit status."""
    logger.debug("RUN: %s (cwd=%s, log=%s)", " ".join(inv.argv()), inv.cwd, inv.log_path)
    if inv.log_path is not None:
        try:
            fh = open(inv.log_path, "w", encoding="utf-8")
        except OSError as e:
            logger.error("cannot open build log %s: %s", inv.log_path, e)
            return EXIT_LOG_UNWRITABLE
    try:
        if inv.log_path is not None:
            with fh:
                proc = subprocess.run(inv.argv(), cwd=str(inv.cwd), env=inv.env, stdout=fh, stderr=subprocess.STDOUT)
        else:
            # keep our progress line ahead of the tool's own output
            sys.stdout.flush()
            proc = subprocess.run(inv.argv(), cwd=str(inv.cwd), env=inv.env)
    except FileNotFoundError as e:
        logger.error("cannot run %s: %s", inv.program, e)
        return EXIT_NOT_FOUND
    return proc.returncode


class BuildExecutor:
    def __init__(self, command: Sequence[str] = DEFAULT_COMMAND, runner: Callable[[BuildInvocation], int] = run_invocation):
        if not command:
            raise ValueError("build command must not be empty")
        self.command = tuple(command)
        self.runner = runner

    def invocation(self, recipe: Recipe, repodest: Path, log_path: Optional[Path] = None) -> BuildInvocation:
        return BuildInvocation(
            program=self.command[0],
            args=self.command[1:],
            cwd=recipe.directory,
            env=assemble_env(repodest),
            log_path=log_path,
        )

    def build(self, recipe: Recipe, repodest: Path, log_path: Optional[Path] = None, skip_failed: bool = False) -> BuildResult:
        if not recipe.directory.is_dir():
            logger.error("%s: cannot change to %s: no such directory", recipe.name, recipe.directory)
            return BuildResult(recipe.name, BuildOutcome.FAILED)
        if skip_failed and skip.should_skip(recipe):
            return BuildResult(recipe.name, BuildOutcome.SKIPPED)
        rc = self.runner(self.invocation(recipe, repodest, log_path))
        if rc != 0:
            logger.error("%s: Failed to build", recipe.name)
            return BuildResult(recipe.name, BuildOutcome.FAILED, rc)
        return BuildResult(recipe.name, BuildOutcome.BUILT, rc)


class DryRunExecutor:
    """Pretends every build succeeds; no process, no filesystem access."""

    def build(self, recipe: Recipe, repodest: Path, log_path: Optional[Path] = None, skip_failed: bool = False) -> BuildResult:
        logger.debug("[dry-run] would build %s", recipe.name)
        return BuildResult(recipe.name, BuildOutcome.BUILT, 0)


def get_executor(cfg: BuildConfig):
    if cfg.dry_run:
        return DryRunExecutor()
    return BuildExecutor(cfg.build_command)
