#!/usr/bin/env python3
#
# Copyright (c) 2024-2025, Ryan Galloway (ryan@rsgalloway.com)
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
#  - Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
#  - Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
#  - Neither the name of the software nor the names of its contributors
#    may be used to endorse or promote products derived from this software
#    without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.
#

__doc__ = """
Command line interface for assetcache: reuse precompiled assets across builds.

Usage:

    $ assetcache [PROJECT] [OPTIONS]
"""

import argparse
import os
import sys
from typing import List, Optional, Sequence

from assetcache import config
from assetcache.environment import (
    BuildContext,
    ProjectVariant,
    lockfile_predicate,
    resolve_variant,
    version_detector,
)
from assetcache.fingerprint import Project
from assetcache.logger import log, setup_logging
from assetcache.orchestrator import CacheOrchestrator
from assetcache.runner import BuildRunner
from assetcache.store import SnapshotStore
from assetcache.util import CacheError
from assetcache.validate import CacheValidator


def build_parser(prog: str = "assetcache") -> argparse.ArgumentParser:
    """Builds the argument parser."""
    from assetcache import __version__

    parser = argparse.ArgumentParser(
        prog=prog,
        description=__doc__,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "project",
        metavar="PROJECT",
        nargs="?",
        default=".",
        help="application directory (default is cwd)",
    )
    parser.add_argument(
        "--cache-root",
        metavar="DIR",
        default=None,
        help="cache directory (default: $CACHE_ROOT or $CACHE_BASE/<app>)",
    )
    parser.add_argument(
        "--command",
        metavar="CMD",
        default=config.BUILD_COMMAND,
        help=f"asset build command (default: {config.BUILD_COMMAND})",
    )
    parser.add_argument(
        "--timeout",
        metavar="SEC",
        type=float,
        default=config.BUILD_TIMEOUT,
        help="kill the build command after SEC seconds (0 = no limit)",
    )
    parser.add_argument(
        "--task-check",
        metavar="CMD",
        default=config.TASK_CHECK_COMMAND,
        help="command that succeeds if the app defines an asset build task",
    )
    parser.add_argument(
        "--variant",
        choices=[v.value for v in ProjectVariant],
        default=None,
        help="framework variant (default: detected from the lock file)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=min(32, (os.cpu_count() or 4) * 2),
        help="copy threads (default: 2x CPU, capped at 32)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help=f"only check the cache, exit {config.STALE_EXIT} if it is stale",
    )
    parser.add_argument(
        "--diff",
        action="store_true",
        help="show differences between the app and the cache",
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="delete the cache",
    )
    parser.add_argument(
        "-d",
        "--dryrun",
        action="store_true",
        help="do a dry run, no actions will be performed",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="show verbose information",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"assetcache {__version__}",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = build_parser()
    return parser.parse_args(list(argv) if argv is not None else None)


def run(args: argparse.Namespace) -> int:
    """Runs assetcache based on parsed arguments."""

    if not os.path.isdir(args.project):
        log.error("%s is not a directory", args.project)
        return 1

    project = Project(args.project, cache_root=args.cache_root)
    store = SnapshotStore(
        project.cache_root, project.root, project.output_dir, workers=args.workers
    )
    validator = CacheValidator(project, store)

    if args.dryrun:
        log.info(config.DRYRUN_MESSAGE)

    # handle delete/diff/check modes
    if args.delete:
        try:
            store.delete(dryrun=args.dryrun)
        except CacheError as e:
            log.error(str(e))
            return 1
        return 0
    if args.diff:
        validator.diff()
        return 0
    if args.check or args.dryrun:
        if validator.is_cache_usable():
            log.info("cache is fresh")
            return 0
        log.info("cache is stale")
        return config.STALE_EXIT

    lock_file = project.root / project.lock_file
    if args.variant:
        variant = ProjectVariant(args.variant)
    else:
        variant = resolve_variant(version_detector(lock_file))
    context = BuildContext(variant)
    log.info("-----> %s app detected", context.behavior.name)

    runner = BuildRunner(
        command=args.command,
        timeout=args.timeout,
        task_check=args.task_check,
        cwd=str(project.root),
    )
    orchestrator = CacheOrchestrator(
        project,
        store=store,
        validator=validator,
        runner=runner,
        context=context,
        is_bundled=lockfile_predicate(lock_file),
    )

    outcome = orchestrator.run()
    log.info("assets: %s", outcome)
    if orchestrator.context.plugins:
        log.info("plugins: %s", ", ".join(orchestrator.context.plugins))

    # a failed precompile degrades the app, it does not fail the build
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""

    args = parse_args(argv)

    # set up logging handlers
    setup_logging(dryrun=args.dryrun, verbose=args.verbose)

    try:
        return run(args)
    except KeyboardInterrupt:
        log.error("canceled")
        return 2


if __name__ == "__main__":
    sys.exit(main())
