#!/usr/bin/env python3
# buildrepo/cli.py
"""
buildrepo CLI - build every out-of-date aport of the given repositories

How it works:
- parses the buildrepo option letters with argparse
- loads the layered config file and installs logging from its ``logging``
  section
- freezes everything into one BuildConfig and hands it to the Orchestrator
- prints the per-repository summary through rich when the whole run succeeds

Exit status: 0 on success (and for -h), the failing build's status when a
build fails without -k, 1 for usage errors and fatal setup/index errors.
"""

from __future__ import annotations

import sys
import argparse
from typing import List, Optional

from buildrepo import __version__
from buildrepo import config as config_mod
from buildrepo.config import BuildConfig, BuildrepoError
from buildrepo.logging import configure as configure_logging, get_logger
from buildrepo.orchestrator import BuildAborted, Orchestrator

logger = get_logger("cli")


class UsageError(BuildrepoError):
    pass


class _Parser(argparse.ArgumentParser):
    # argparse exits with status 2 on its own; invalid invocations exit 1 here
    def error(self, message):
        raise UsageError(message)


# -----------------------
# Argparse wiring
# -----------------------
def make_parser() -> argparse.ArgumentParser:
    ap = _Parser(
        prog="buildrepo",
        usage="%(prog)s [-hknps] [-a DIR] [-d DIR] [-l DIR] [-r REPO] [-c FILE] [-v] REPO...",
        description="Build all aports of REPO that have no up-to-date package yet.",
        add_help=False,
    )
    ap.add_argument("-a", dest="aports_dir", metavar="DIR", help="Set the aports base dir to DIR instead of $HOME/aports")
    ap.add_argument("-d", dest="repodest", metavar="DIR", help="Set destination repository base to DIR instead of $HOME/packages")
    ap.add_argument("-h", dest="help", action="store_true", help="Show this help and exit")
    ap.add_argument("-l", dest="log_dir", metavar="DIR", help="Create build logs in DIR/REPO/pkgname/ instead of stdout")
    ap.add_argument("-k", dest="keep_going", action="store_true", help="Keep going, even if packages fails")
    ap.add_argument("-n", dest="dry_run", action="store_true", help="Dry run. Don't actually build or delete, just print")
    ap.add_argument("-p", dest="purge", action="store_true", help="Purge obsolete packages from REPODIR after build")
    ap.add_argument("-r", dest="dep_repos", metavar="REPO", action="append", default=[], help="Dependencies are found in REPO")
    ap.add_argument("-s", dest="skip_failed", action="store_true", help="Skip those who previously failed (src dir exists)")
    ap.add_argument("-c", "--config", metavar="FILE", help="Read configuration from FILE")
    ap.add_argument("-v", dest="verbose", action="store_true", help="Verbose diagnostics (debug level)")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("repos", nargs="*", metavar="REPO", help="Repositories to build, in order")
    return ap


def _usage(parser: argparse.ArgumentParser) -> None:
    parser.print_help(file=sys.stdout)


def main(argv: Optional[List[str]] = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = make_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        sys.stderr.write(f"{parser.prog}: {e}\n")
        _usage(parser)
        return 1

    if args.help:
        _usage(parser)
        return 0
    if not args.repos:
        _usage(parser)
        return 1

    try:
        cfg = config_mod.load(args.config)
    except BuildrepoError as e:
        logger.error("%s", e)
        return 1
    configure_logging(cfg.get("logging") or {}, verbose=args.verbose)

    try:
        build_cfg = BuildConfig.from_sources(
            cfg,
            args.repos,
            aports_dir=args.aports_dir,
            repodest=args.repodest,
            log_dir=args.log_dir,
            keep_going=args.keep_going,
            dry_run=args.dry_run,
            purge=args.purge,
            skip_failed=args.skip_failed,
            dep_repos=args.dep_repos,
        )
        logger.debug("cli: aports=%s repodest=%s arch=%s repos=%s", build_cfg.aports_dir,
                     build_cfg.repodest, build_cfg.arch, ", ".join(build_cfg.repos))
        orchestrator = Orchestrator(build_cfg)
        orchestrator.run()
    except BuildAborted as e:
        logger.debug("cli: %s (exit %d)", e, e.exit_status)
        return e.exit_status
    except BuildrepoError as e:
        logger.error("%s", e)
        return 1

    orchestrator.print_summary()
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
