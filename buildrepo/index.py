# buildrepo/index.py
"""
index.py
- Regenerates APKINDEX.tar.gz of <repodest>/<repo>/<arch> after a build pass
- apk index writes an unsigned index, abuild-sign signs it in place, then it
  replaces the published one
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from buildrepo.config import BuildConfig, BuildrepoError
from buildrepo.logging import get_logger
from buildrepo.recipe import ARTIFACT_SUFFIX

logger = get_logger("index")

INDEX_NAME = "APKINDEX.tar.gz"
UNSIGNED_NAME = INDEX_NAME + ".unsigned"


class IndexPublishError(BuildrepoError):
    pass


class IndexPublisher:
    def update_index(self, repo_path: Path, arch: str, description: str) -> None:
        raise NotImplementedError


def _run(cmd: List[str], cwd: Optional[Path] = None) -> Tuple[int, str, str]:
    logger.debug("RUN: %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        proc = subprocess.run(cmd, cwd=(str(cwd) if cwd else None), capture_output=True, text=True)
    except OSError as e:
        return 127, "", str(e)
    return proc.returncode, proc.stdout or "", proc.stderr or ""


class ApkIndexPublisher(IndexPublisher):
    def __init__(self, apk: str = "apk", sign: bool = True, signer: str = "abuild-sign"):
        self.apk = apk
        self.sign = sign
        self.signer = signer

    def commands(self, arch_dir: Path, arch: str, description: str) -> List[List[str]]:
        packages = sorted(p.name for p in arch_dir.iterdir() if p.is_file() and p.name.endswith(ARTIFACT_SUFFIX)) if arch_dir.is_dir() else []
        cmds = [[self.apk, "index", "--quiet", "--output", UNSIGNED_NAME,
                 "--description", description, "--rewrite-arch", arch, *packages]]
        if self.sign:
            cmds.append([self.signer, "-q", UNSIGNED_NAME])
        return cmds

    def update_index(self, repo_path: Path, arch: str, description: str) -> None:
        arch_dir = Path(repo_path) / arch
        try:
            arch_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IndexPublishError(f"cannot create {arch_dir}: {e}") from e
        for cmd in self.commands(arch_dir, arch, description):
            rc, out, err = _run(cmd, cwd=arch_dir)
            if rc != 0:
                raise IndexPublishError(f"{cmd[0]} failed in {arch_dir} (exit {rc}): {err.strip()}")
        os.replace(arch_dir / UNSIGNED_NAME, arch_dir / INDEX_NAME)
        logger.debug("index: wrote %s", arch_dir / INDEX_NAME)


def get_publisher(cfg: BuildConfig) -> IndexPublisher:
    return ApkIndexPublisher(apk=cfg.index_command, sign=cfg.sign_index, signer=cfg.index_signer)
