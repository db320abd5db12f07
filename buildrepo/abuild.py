# buildrepo/abuild.py
"""
Facts about the host build environment that abuild itself would use.

 - arch: $CARCH, CARCH from abuild.conf, `apk --print-arch`, machine type
 - repodest: REPODEST from abuild.conf
"""

from __future__ import annotations

import os
import re
import shutil
import platform
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from buildrepo.logging import get_logger

logger = get_logger("abuild")

CONF_FILES: List[Path] = [
    Path("/usr/share/abuild/default.conf"),
    Path("/etc/abuild.conf"),
    Path.home() / ".abuild" / "abuild.conf",
]

_ASSIGN_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    # trailing comment on an unquoted value
    return value.split(" #", 1)[0].strip()


def read_conf(paths: Optional[List[Path]] = None) -> Dict[str, str]:
    """Read simple VAR=value assignments from abuild.conf files, later files win."""
    values: Dict[str, str] = {}
    for path in paths if paths is not None else CONF_FILES:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError:
            continue
        for line in text.splitlines():
            if line.lstrip().startswith("#"):
                continue
            m = _ASSIGN_RE.match(line)
            if not m:
                continue
            name, raw = m.group(1), _unquote(m.group(2))
            # ${VAR:-default} style fallbacks are kept verbatim; plain $VAR expands
            values[name] = os.path.expandvars(raw)
    return values


def get_arch(conf: Optional[Dict[str, str]] = None) -> str:
    env_arch = os.environ.get("CARCH")
    if env_arch:
        return env_arch
    conf = read_conf() if conf is None else conf
    if conf.get("CARCH"):
        return conf["CARCH"]
    if shutil.which("apk"):
        try:
            proc = subprocess.run(["apk", "--print-arch"], capture_output=True, text=True, check=True)
            arch = proc.stdout.strip()
            if arch:
                return arch
        except (OSError, subprocess.CalledProcessError) as e:
            logger.debug("apk --print-arch failed: %s", e)
    return platform.machine()


def get_repodest(conf: Optional[Dict[str, str]] = None) -> Optional[str]:
    conf = read_conf() if conf is None else conf
    return conf.get("REPODEST") or None
