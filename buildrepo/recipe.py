# buildrepo/recipe.py
# -*- coding: utf-8 -*-
"""
recipe.py - APKBUILD recipes

A Recipe is one aport: a directory holding an APKBUILD. The fields are read by
sourcing the APKBUILD in /bin/sh (APKBUILDs are shell scripts, so this is the
only reliable way to get variables such as ``subpackages="$pkgname-doc"``
expanded the way abuild sees them).

Dependency strings are normalised to bare package names:
  "foo>=1.2" -> "foo", "so:libc.musl-x86_64.so.1" unchanged, "!foo" dropped.
"""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from buildrepo.config import BuildrepoError
from buildrepo.logging import get_logger

logger = get_logger("recipe")

APKBUILD = "APKBUILD"
ARTIFACT_SUFFIX = ".apk"

_FIELDS = ("pkgname", "pkgver", "pkgrel", "arch", "depends", "makedepends", "subpackages", "provides")

# every field is printed on one line; unquoted $(echo $x) collapses newlines in
# multi-line depends="..." lists, set -f stops globbing on the words
_DUMP_SCRIPT = "set -f\n. ./APKBUILD\n" + "".join(
    f'printf "%s=%s\\n" {f} "$(echo ${f})"\n' for f in _FIELDS
)

_VERSION_OP_RE = re.compile(r"[<>=~]")


class RecipeError(BuildrepoError):
    pass


def normalize_dep(dep: str) -> Optional[str]:
    """Bare package name of a dependency word, or None for a conflict (!name)."""
    dep = dep.strip()
    if not dep or dep.startswith("!"):
        return None
    name = _VERSION_OP_RE.split(dep, 1)[0]
    return name or None


def _split_deps(value: str) -> Tuple[str, ...]:
    out: List[str] = []
    for word in value.split():
        name = normalize_dep(word)
        if name and name not in out:
            out.append(name)
    return tuple(out)


def _split_subpackages(value: str) -> Tuple[str, ...]:
    # "name-doc:doc_func:noarch" -> "name-doc"
    return tuple(w.split(":", 1)[0] for w in value.split() if w.split(":", 1)[0])


@dataclass(frozen=True)
class Recipe:
    name: str
    version: str
    release: int
    directory: Path
    repo: str = ""
    arch: Tuple[str, ...] = ("all",)
    depends: Tuple[str, ...] = ()
    makedepends: Tuple[str, ...] = ()
    subpackages: Tuple[str, ...] = ()
    provides: Tuple[str, ...] = ()

    @property
    def apkbuild(self) -> Path:
        return self.directory / APKBUILD

    @property
    def staging_dir(self) -> Path:
        """abuild's $srcdir; left behind by a build that did not finish."""
        return self.directory / "src"

    @property
    def full_version(self) -> str:
        return f"{self.version}-r{self.release}"

    def arch_enabled(self, arch: str) -> bool:
        if f"!{arch}" in self.arch:
            return False
        return "all" in self.arch or "noarch" in self.arch or arch in self.arch

    def package_names(self) -> Tuple[str, ...]:
        """Every package produced by building this recipe."""
        return (self.name,) + tuple(s for s in self.subpackages if s != self.name)

    def provided_names(self) -> Tuple[str, ...]:
        return self.package_names() + tuple(p for p in self.provides if p not in self.package_names())

    def all_depends(self) -> Tuple[str, ...]:
        seen: List[str] = []
        for d in self.depends + self.makedepends:
            if d not in seen:
                seen.append(d)
        return tuple(seen)

    def apk_file_name(self, name: Optional[str] = None) -> str:
        return f"{name or self.name}-{self.full_version}{ARTIFACT_SUFFIX}"

    def apk_file_names(self) -> Tuple[str, ...]:
        return tuple(self.apk_file_name(n) for n in self.package_names())


def parse_fields(text: str) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for line in text.splitlines():
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        if k in _FIELDS:
            fields[k] = v.strip()
    return fields


def recipe_from_fields(fields: Dict[str, str], directory: Path, repo: str = "") -> Recipe:
    name = fields.get("pkgname") or ""
    if not name:
        raise RecipeError(f"{directory}: pkgname is not set")
    version = fields.get("pkgver") or ""
    if not version:
        raise RecipeError(f"{name}: pkgver is not set")
    try:
        release = int(fields.get("pkgrel") or 0)
    except ValueError as e:
        raise RecipeError(f"{name}: invalid pkgrel {fields.get('pkgrel')!r}") from e
    return Recipe(
        name=name,
        version=version,
        release=release,
        directory=Path(directory),
        repo=repo,
        arch=tuple((fields.get("arch") or "").split()),
        depends=_split_deps(fields.get("depends", "")),
        makedepends=_split_deps(fields.get("makedepends", "")),
        subpackages=_split_subpackages(fields.get("subpackages", "")),
        provides=_split_deps(fields.get("provides", "")),
    )


class RecipeLoader:
    """Load a Recipe from an aport directory by sourcing its APKBUILD."""

    def __init__(self, arch: str, shell: str = "/bin/sh"):
        self.arch = arch
        self.shell = shell

    def __call__(self, directory: Path, repo: str = "") -> Recipe:
        return self.load(directory, repo)

    def load(self, directory: Path, repo: str = "") -> Recipe:
        directory = Path(directory)
        if not (directory / APKBUILD).is_file():
            raise RecipeError(f"{directory}: no {APKBUILD}")
        env = dict(os.environ)
        env.update({
            "CARCH": self.arch,
            "CBUILD": self.arch,
            "CHOST": self.arch,
            "startdir": str(directory),
            "srcdir": str(directory / "src"),
            "pkgdir": str(directory / "pkg"),
            "repo": repo,
        })
        try:
            proc = subprocess.run([self.shell, "-c", _DUMP_SCRIPT], cwd=str(directory), env=env,
                                  capture_output=True, text=True)
        except OSError as e:
            raise RecipeError(f"{directory}: cannot run {self.shell}: {e}") from e
        if proc.returncode != 0:
            raise RecipeError(f"{directory}: sourcing {APKBUILD} failed: {proc.stderr.strip()}")
        return recipe_from_fields(parse_fields(proc.stdout), directory, repo)


def scan_aports(repo_dir: Path) -> Iterable[Path]:
    """Aport directories below repo_dir (one level deep), in sorted order."""
    if not repo_dir.is_dir():
        logger.warning("repository directory %s does not exist", repo_dir)
        return []
    return sorted(p.parent for p in repo_dir.glob(f"*/{APKBUILD}"))
