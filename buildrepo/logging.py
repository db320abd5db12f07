# buildrepo/logging.py
# -*- coding: utf-8 -*-
"""
buildrepo logging

Features:
 - stderr console handler; level prefixes colored like abuild's own messages
   when stderr is a terminal
 - optional rotating log file (size given as "10M", "512K", ...)
 - optional JSONL log, one object per record
 - per-module levels through ``module_levels``
 - configure() may be called again; it replaces what an earlier call installed

Everything logs below the "buildrepo" logger through get_logger(module), which
tags records with ``buildrepo_module``.
"""

from __future__ import annotations
import sys
import json
import time
import logging
import logging.handlers
import threading
from pathlib import Path
from typing import Dict, Any, Optional, List

ROOT_LOGGER = "buildrepo"

_logger = logging.getLogger(ROOT_LOGGER + ".logging")

# ----------------------
# Console formatter
# ----------------------
class ColorFormatter(logging.Formatter):
    """Colors the level name only, so messages stay greppable."""

    LEVEL_COLORS = {
        logging.DEBUG: "2",       # dim
        logging.INFO: "1;32",     # bold green
        logging.WARNING: "1;33",  # bold yellow
        logging.ERROR: "1;31",    # bold red
        logging.CRITICAL: "1;41", # bold on red
    }

    def __init__(self, fmt: str = None, datefmt: str = None, color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.color = color

    def formatMessage(self, record):
        if not self.color:
            return super().formatMessage(record)
        plain = record.levelname
        code = self.LEVEL_COLORS.get(record.levelno)
        if code:
            record.levelname = f"\033[{code}m{plain}\033[0m"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = plain

# ----------------------
# JSONL formatter
# ----------------------
class JSONLineFormatter(logging.Formatter):
    def format(self, record):
        entry = {
            "ts": round(record.created if record.created else time.time(), 3),
            "level": record.levelname.lower(),
            "module": getattr(record, "buildrepo_module", record.name),
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, sort_keys=True)

# ----------------------
# Filters
# ----------------------
class ModuleLevelFilter(logging.Filter):
    """Drop records of a module below that module's configured level."""

    def __init__(self, module_levels: Dict[str, str]):
        super().__init__()
        self.levels: Dict[str, int] = {}
        for module, level in (module_levels or {}).items():
            self.levels[module] = _level(level, logging.INFO)

    def filter(self, record):
        threshold = self.levels.get(getattr(record, "buildrepo_module", ""))
        return threshold is None or record.levelno >= threshold

class _DefaultModuleFilter(logging.Filter):
    # records logged without an adapter still need the field for the formats
    def filter(self, record):
        if not hasattr(record, "buildrepo_module"):
            record.buildrepo_module = record.name
        return True


def _level(name: Any, default: int) -> int:
    value = logging.getLevelName(str(name).upper())
    return value if isinstance(value, int) else default

# ----------------------
# BuildrepoLogger (singleton)
# ----------------------
class BuildrepoLogger:
    _instance = None
    _create_lock = threading.Lock()

    def __new__(cls):
        with cls._create_lock:
            if cls._instance is None:
                inst = super().__new__(cls)
                inst._ready = False
                cls._instance = inst
        return cls._instance

    def __init__(self):
        if self._ready:
            return
        self._lock = threading.RLock()
        self._base = logging.getLogger(ROOT_LOGGER)
        self._installed: List[logging.Handler] = []
        self._module_filter: Optional[ModuleLevelFilter] = None
        self._ready = True

    def _reset(self):
        for handler in self._installed:
            self._base.removeHandler(handler)
            handler.close()
        self._installed = []
        if self._module_filter is not None:
            self._base.removeFilter(self._module_filter)
            self._module_filter = None

    def _install(self, handler: logging.Handler, formatter: logging.Formatter, level: int) -> int:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(_DefaultModuleFilter())
        self._base.addHandler(handler)
        self._installed.append(handler)
        return level

    def configure(self, cfg: Optional[Dict[str, Any]] = None, verbose: bool = False):
        """Install handlers from the ``logging`` config section; -v forces DEBUG on the console."""
        cfg = cfg or {}
        with self._lock:
            self._reset()
            self._module_filter = ModuleLevelFilter(cfg.get("module_levels") or {})
            self._base.addFilter(self._module_filter)

            datefmt = cfg.get("datefmt", "%Y-%m-%d %H:%M:%S")
            console_level = logging.DEBUG if verbose else _level(cfg.get("level", "INFO"), logging.INFO)
            use_color = bool(cfg.get("color", True)) and sys.stderr.isatty()
            levels = [self._install(
                logging.StreamHandler(sys.stderr),
                ColorFormatter(cfg.get("format") or "%(levelname)s: %(message)s", datefmt=datefmt, color=use_color),
                console_level,
            )]

            if cfg.get("file"):
                log_file = Path(cfg["file"]).expanduser()
                log_file.parent.mkdir(parents=True, exist_ok=True)
                rotating = logging.handlers.RotatingFileHandler(
                    str(log_file),
                    maxBytes=parse_size(cfg.get("max_size", "10M")) or 10 * 1024 * 1024,
                    backupCount=int(cfg.get("backups", 5)),
                    encoding="utf-8",
                )
                levels.append(self._install(
                    rotating,
                    logging.Formatter("%(asctime)s %(levelname)-7s %(buildrepo_module)s: %(message)s", datefmt=datefmt),
                    _level(cfg.get("file_level", "DEBUG"), logging.DEBUG),
                ))

            jsonl = cfg.get("jsonl") or {}
            if jsonl.get("enabled"):
                jsonl_file = Path(jsonl.get("path", "~/.buildrepo/log.jsonl")).expanduser()
                jsonl_file.parent.mkdir(parents=True, exist_ok=True)
                levels.append(self._install(
                    logging.FileHandler(str(jsonl_file), encoding="utf-8"),
                    JSONLineFormatter(),
                    _level(jsonl.get("level", "INFO"), logging.INFO),
                ))

            self._base.setLevel(min(levels))
            _logger.debug("logging: %d handler(s) installed", len(self._installed))

    def get_logger(self, module_name: str) -> logging.LoggerAdapter:
        return logging.LoggerAdapter(self._base, {"buildrepo_module": module_name})

# ----------------------
# Sizes
# ----------------------
_SIZE_UNITS = {"": 1, "B": 1, "K": 1024, "KB": 1024, "M": 1024 ** 2, "MB": 1024 ** 2, "G": 1024 ** 3, "GB": 1024 ** 3}

def parse_size(s: Any) -> Optional[int]:
    """Human size ("10M", "512KB", 4096) to bytes; None when unparseable."""
    if s is None:
        return None
    if isinstance(s, int):
        return s
    text = str(s).strip().upper()
    number = text.rstrip("KMGB")
    try:
        return int(float(number) * _SIZE_UNITS[text[len(number):]])
    except (KeyError, ValueError):
        _logger.debug("logging: cannot parse size %r", s)
        return None

# ----------------------
# Public factory
# ----------------------
_MANAGER = BuildrepoLogger()

def get_logger(module: str) -> logging.LoggerAdapter:
    return _MANAGER.get_logger(module)

def configure(cfg: Optional[Dict[str, Any]] = None, verbose: bool = False):
    return _MANAGER.configure(cfg, verbose=verbose)
