# buildrepo/skip.py
"""
Skip aports whose previous build failed.

abuild removes $srcdir after a successful build, so a src/ directory that is
newer than the APKBUILD means the last attempt died and nobody has touched the
recipe since. Rebuilding it would only fail again.
"""

from __future__ import annotations

from buildrepo.logging import get_logger
from buildrepo.recipe import Recipe

logger = get_logger("skip")


def should_skip(recipe: Recipe) -> bool:
    try:
        dir_mtime = recipe.staging_dir.stat().st_mtime
        file_mtime = recipe.apkbuild.stat().st_mtime
    except FileNotFoundError:
        return False
    if not recipe.staging_dir.is_dir():
        return False
    if dir_mtime <= file_mtime:
        return False
    logger.warning("%s: Skipped due to previous build failure", recipe.name)
    return True
