# buildrepo/logpaths.py
"""Build log locations: <logdir>/<repo>/<pkgname>/<pkgname>-<pkgver>-r<pkgrel>.log"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from buildrepo.config import BuildrepoError
from buildrepo.logging import get_logger
from buildrepo.recipe import Recipe

logger = get_logger("logpaths")


class LogDirectoryError(BuildrepoError):
    pass


def _ensure_dir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LogDirectoryError(f"cannot create log directory {path}: {e}") from e
    if not path.is_dir():
        raise LogDirectoryError(f"log directory {path} is not a directory")
    return path


def ensure_repo_log_dir(log_dir_base: Optional[Path], repo: str) -> Optional[Path]:
    """Create the per-repository log directory; None when logging to stdout."""
    if log_dir_base is None:
        return None
    return _ensure_dir(Path(log_dir_base) / repo)


def resolve(log_root: Optional[Path], recipe: Recipe) -> Optional[Path]:
    """Log file for one build attempt of recipe. Its directory exists on return."""
    if log_root is None:
        return None
    directory = _ensure_dir(Path(log_root) / recipe.name)
    return directory / f"{recipe.name}-{recipe.full_version}.log"
