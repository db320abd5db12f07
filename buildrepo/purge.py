# buildrepo/purge.py
# -*- coding: utf-8 -*-
"""
Purge obsolete packages from a repository output directory.

The keep set is every package file name the current aports tree would
produce, taken from the whole catalogue and not only from what was built in
this run. Only *.apk files are candidates; APKINDEX and signatures stay.

In dry-run the candidates are reported and counted but left in place.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Optional, Set, Tuple

from buildrepo.logging import get_logger
from buildrepo.recipe import ARTIFACT_SUFFIX, Recipe

logger = get_logger("purge")

Reporter = Callable[[str], None]


def retain_set(catalogue: Iterable[Tuple[Recipe, str]]) -> Set[str]:
    return {name for _recipe, name in catalogue}


def reconcile(catalogue: Iterable[Tuple[Recipe, str]], output_dir: Path, dry_run: bool = False, report: Optional[Reporter] = None) -> int:
    """Delete artifacts of output_dir not in the catalogue. Returns the number (to be) deleted."""
    report = report or print
    keep = retain_set(catalogue)
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        logger.warning("purge: %s does not exist, nothing to purge", output_dir)
        return 0
    deleted = 0
    for entry in sorted(output_dir.iterdir()):
        name = entry.name
        if not name.endswith(ARTIFACT_SUFFIX) or name in keep or not entry.is_file():
            continue
        report(f"Deleting {name}")
        if dry_run:
            deleted += 1
            continue
        try:
            entry.unlink()
        except OSError as e:
            logger.error("purge: cannot delete %s: %s", entry, e)
            continue
        deleted += 1
    logger.debug("purge: %s: %d names kept, %d deleted (dry_run=%s)", output_dir, len(keep), deleted, dry_run)
    return deleted
