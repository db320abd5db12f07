# buildrepo/config.py
# -*- coding: utf-8 -*-
"""
buildrepo configuration loader

Features:
- Read YAML/JSON config from multiple locations (explicit, env override, cwd, user, system)
- Merge with authoritative DEFAULTS, normalize/coerce types
- Validate structure and types, warn or error (fatal optional)
- Dotted access via Config dataclass
- BuildConfig: the frozen per-run value handed to the orchestrator, built once
  from the merged file config and the command line
"""

from __future__ import annotations
import os
import json
from pathlib import Path
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, List, Tuple, Sequence

import yaml

from buildrepo import abuild
from buildrepo.logging import get_logger

logger = get_logger("config")


class BuildrepoError(Exception):
    """Base class for errors raised by buildrepo."""


class ConfigError(BuildrepoError):
    pass

# ----------------------------
# DEFAULT configuration (authoritative base)
# ----------------------------
DEFAULTS: Dict[str, Any] = {
    "paths": {
        "aports": "~/aports",
        "repodest": None,   # abuild.conf REPODEST, then ~/packages
        "logdir": None,
    },
    "build": {
        "command": ["abuild", "-r", "-m"],
        "arch": None,       # $CARCH / abuild.conf / apk --print-arch
        "keep_going": False,
        "skip_failed": False,
        "purge": False,
        "dep_repos": [],
    },
    "index": {
        "command": "apk",
        "sign": True,
        "signer": "abuild-sign",
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "color": True,
        "max_size": "10M",
        "backups": 5,
        "module_levels": {},
        "jsonl": {"enabled": False, "path": "~/.buildrepo/log.jsonl"},
    },
}

# ----------------------------
# Dataclass to hold config
# ----------------------------
@dataclass
class Config:
    raw: Dict[str, Any] = field(default_factory=dict)     # values loaded from file (if any)
    merged: Dict[str, Any] = field(default_factory=dict)  # merged with DEFAULTS
    path: Optional[Path] = None

    def get(self, path: str, default: Any = None) -> Any:
        """Dot-separated getter for merged config."""
        parts = path.split(".") if path else []
        cur: Any = self.merged
        for p in parts:
            if isinstance(cur, dict) and p in cur:
                cur = cur[p]
            else:
                return default
        return cur


# ----------------------------
# Utilities
# ----------------------------
def _expand_path(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    return os.path.abspath(os.path.expanduser(os.path.expandvars(str(val))))

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    res = deepcopy(a)
    for k, v in b.items():
        if k in res and isinstance(res[k], dict) and isinstance(v, dict):
            res[k] = _deep_merge(res[k], v)
        else:
            res[k] = deepcopy(v)
    return res

def _find_candidates(explicit: Optional[str] = None) -> List[Path]:
    candidates: List[Path] = []
    env = os.environ.get("BUILDREPO_CONFIG")
    if explicit:
        candidates.append(Path(explicit))
    if env:
        candidates.append(Path(env))
    candidates.extend([
        Path.cwd() / "buildrepo.yaml",
        Path.cwd() / "buildrepo.yml",
        Path.home() / ".config" / "buildrepo" / "config.yaml",
        Path("/etc") / "buildrepo" / "config.yaml",
    ])
    return candidates

def _load_file(path: Path) -> Dict[str, Any]:
    try:
        txt = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(txt)
        else:
            data = yaml.safe_load(txt)
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot parse config {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must contain a mapping at top level")
    return data

def _normalize_and_coerce(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize path fields and coerce basic types."""
    out = deepcopy(cfg)
    paths = out.get("paths")
    if isinstance(paths, dict):
        for key in ("aports", "repodest", "logdir"):
            if paths.get(key):
                paths[key] = _expand_path(paths[key])
    build = out.get("build")
    if isinstance(build, dict):
        cmd = build.get("command")
        if isinstance(cmd, str):
            # a plain string is split on whitespace, no shell involved
            build["command"] = cmd.split()
        for key in ("keep_going", "skip_failed", "purge"):
            if key in build:
                build[key] = bool(build[key])
        deps = build.get("dep_repos")
        if isinstance(deps, str):
            build["dep_repos"] = [deps]
    log_cfg = out.get("logging")
    if isinstance(log_cfg, dict) and log_cfg.get("file"):
        log_cfg["file"] = _expand_path(log_cfg["file"])
    return out

def _validate_structure(cfg: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Return (ok, issues_list). Non-fatal warnings unless load() is called with fatal=True."""
    warnings: List[str] = []
    for k in cfg.keys():
        if k not in DEFAULTS:
            warnings.append(f"Unknown top-level config key: {k}")
    for section in DEFAULTS:
        if section in cfg and not isinstance(cfg[section], dict):
            warnings.append(f"{section} must be a mapping")
    build = cfg.get("build") if isinstance(cfg.get("build"), dict) else {}
    cmd = build.get("command")
    if not isinstance(cmd, list) or not cmd or not all(isinstance(c, str) for c in cmd):
        warnings.append("build.command must be a non-empty list of strings")
    if not isinstance(build.get("dep_repos", []), list):
        warnings.append("build.dep_repos should be a list")
    return (len(warnings) == 0, warnings)

# ----------------------------
# Loading
# ----------------------------
def find_path(explicit: Optional[str] = None) -> Optional[Path]:
    if explicit:
        # an explicitly named file must exist
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(f"config file not found: {p}")
        return p
    for p in _find_candidates():
        if p.exists():
            return p
    return None

def load(explicit_path: Optional[str] = None, fatal: bool = False) -> Config:
    """
    Load and merge config. If fatal=True then structural validation failures raise.
    Returns Config object.
    """
    cfg_path = find_path(explicit_path)
    raw: Dict[str, Any] = _load_file(cfg_path) if cfg_path else {}
    merged = _deep_merge(DEFAULTS, raw)
    normalized = _normalize_and_coerce(merged)
    ok, issues = _validate_structure(normalized)
    if not ok:
        msg = f"config: validation issues: {issues}"
        if fatal:
            raise ConfigError(msg)
        logger.warning(msg)
    logger.debug("config: loaded merged config (from=%s)", str(cfg_path) if cfg_path else "<defaults>")
    return Config(raw=raw, merged=normalized, path=cfg_path)

# ----------------------------
# Per-run immutable configuration
# ----------------------------
@dataclass(frozen=True)
class BuildConfig:
    aports_dir: Path
    repodest: Path
    repos: Tuple[str, ...]
    arch: str
    log_dir: Optional[Path] = None
    keep_going: bool = False
    dry_run: bool = False
    purge: bool = False
    skip_failed: bool = False
    dep_repos: Tuple[str, ...] = ()
    build_command: Tuple[str, ...] = ("abuild", "-r", "-m")
    index_command: str = "apk"
    sign_index: bool = True
    index_signer: str = "abuild-sign"

    def __post_init__(self):
        if not self.repos:
            raise ConfigError("at least one repository is required")
        if not self.build_command:
            raise ConfigError("build command must not be empty")

    def repo_dir(self, repo: str) -> Path:
        """Destination repository root for ``repo``: REPODEST/<repo>."""
        return self.repodest / repo

    def output_dir(self, repo: str) -> Path:
        """Architecture specific output directory: REPODEST/<repo>/<arch>."""
        return self.repodest / repo / self.arch

    @classmethod
    def from_sources(
        cls,
        cfg: Config,
        repos: Sequence[str],
        *,
        aports_dir: Optional[str] = None,
        repodest: Optional[str] = None,
        log_dir: Optional[str] = None,
        keep_going: bool = False,
        dry_run: bool = False,
        purge: bool = False,
        skip_failed: bool = False,
        dep_repos: Sequence[str] = (),
    ) -> "BuildConfig":
        """Command line values win over the config file, which wins over defaults."""
        conf = abuild.read_conf()
        aports = aports_dir or cfg.get("paths.aports") or "~/aports"
        dest = repodest or cfg.get("paths.repodest") or abuild.get_repodest(conf) or "~/packages"
        logs = log_dir or cfg.get("paths.logdir")
        arch = cfg.get("build.arch") or abuild.get_arch(conf)
        deps = tuple(dep_repos) or tuple(cfg.get("build.dep_repos") or ())
        return cls(
            aports_dir=Path(_expand_path(aports)),
            repodest=Path(_expand_path(dest)),
            repos=tuple(repos),
            arch=str(arch),
            log_dir=Path(_expand_path(logs)) if logs else None,
            keep_going=keep_going or bool(cfg.get("build.keep_going")),
            dry_run=dry_run,
            purge=purge or bool(cfg.get("build.purge")),
            skip_failed=skip_failed or bool(cfg.get("build.skip_failed")),
            dep_repos=deps,
            build_command=tuple(cfg.get("build.command") or DEFAULTS["build"]["command"]),
            index_command=str(cfg.get("index.command") or "apk"),
            sign_index=bool(cfg.get("index.sign", True)),
            index_signer=str(cfg.get("index.signer") or "abuild-sign"),
        )
