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
Contains the cache orchestrator, which decides for a single build whether to
skip asset compilation, restore compiled assets from the cache, or compile
them and refresh the cache.

    START -> CHECK_MANIFEST -> SKIP
                            -> CHECK_CACHE -> RESTORE
                                           -> BUILD -> STORE_CACHE
                                                    -> DEGRADE
          -> END

Cache failures never fail the build: a cache that cannot be read is a miss,
and a cache that cannot be written is left alone.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Mapping, Optional

from assetcache import config
from assetcache.environment import BuildConfig, BuildContext
from assetcache.fingerprint import Project, WatchSet
from assetcache.logger import log
from assetcache.runner import BuildRunner
from assetcache.store import SnapshotStore
from assetcache.util import CacheError
from assetcache.validate import CacheValidator

# reasons for skipped outcomes
REASON_MANIFEST = "manifest already present"
REASON_CACHE_HIT = "cache hit"
REASON_NO_TASK = "no build task"
REASON_DISABLED = "asset caching disabled"


class State(Enum):
    START = "start"
    CHECK_MANIFEST = "check_manifest"
    SKIP = "skip"
    CHECK_CACHE = "check_cache"
    RESTORE = "restore"
    BUILD = "build"
    STORE_CACHE = "store_cache"
    DEGRADE = "degrade"
    END = "end"


class Status(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class BuildOutcome:
    """Result of one orchestrator run."""

    status: Status
    reason: Optional[str] = None
    state: Optional[State] = None
    duration: Optional[float] = None

    def __str__(self):
        if self.reason:
            return f"{self.status.value} ({self.reason})"
        return self.status.value


class CacheOrchestrator(object):
    """Runs the asset cache flow for one build of a project."""

    def __init__(
        self,
        project: Project,
        store: Optional[SnapshotStore] = None,
        validator: Optional[CacheValidator] = None,
        runner: Optional[BuildRunner] = None,
        context: Optional[BuildContext] = None,
        environ: Optional[Mapping[str, str]] = None,
        is_bundled: Optional[Callable[[str], bool]] = None,
    ):
        self.project = project
        self.store = store or SnapshotStore(
            project.cache_root, project.root, project.output_dir
        )
        self.validator = validator or CacheValidator(project, self.store)
        self.runner = runner or BuildRunner(cwd=str(project.root))
        self.context = context or BuildContext()
        self.environ = dict(os.environ if environ is None else environ)
        self.is_bundled = is_bundled
        self.history: List[State] = []

    def _enter(self, state: State) -> None:
        log.debug("state: %s", state.value)
        self.history.append(state)

    def _finish(
        self, status: Status, reason: Optional[str] = None, duration: float = None
    ) -> BuildOutcome:
        state = self.history[-1] if self.history else State.START
        self._enter(State.END)
        return BuildOutcome(status, reason=reason, state=state, duration=duration)

    def run(self) -> BuildOutcome:
        """Runs the flow and returns the outcome. Never raises for cache or
        build failures."""
        self.history = []
        self._enter(State.START)

        if not self.context.behavior.caches_assets:
            log.debug("asset caching disabled for %s", self.context.variant.value)
            return self._finish(Status.SKIPPED, REASON_DISABLED)

        if not self.runner.has_task(self.environ):
            log.debug("no %s task defined", config.BUILD_TASK)
            return self._finish(Status.SKIPPED, REASON_NO_TASK)

        log.info("-----> Preparing app for Rails asset pipeline")

        self._enter(State.CHECK_MANIFEST)
        if self.project.manifest_path.exists():
            log.info(
                "Detected %s, assuming assets were compiled locally",
                config.MANIFEST_FILE,
            )
            self._enter(State.SKIP)
            return self._finish(Status.SKIPPED, REASON_MANIFEST)

        self._enter(State.CHECK_CACHE)
        if self.validator.is_cache_usable():
            self._enter(State.RESTORE)
            log.info("Assets already compiled, loading from cache")
            try:
                self.store.restore(self.project.output_dir)
                return self._finish(Status.SKIPPED, REASON_CACHE_HIT)
            except (CacheError, OSError) as e:
                log.warning("failed to load assets from cache: %s", e)

        return self._build()

    def _current_fingerprint(self) -> Optional[str]:
        try:
            return self.project.fingerprint
        except OSError as e:
            log.warning("cannot fingerprint asset configuration: %s", e)
            return None

    def _build(self) -> BuildOutcome:
        self._enter(State.BUILD)

        # fix the cache inputs before the build touches the tree
        fingerprint = self._current_fingerprint()
        try:
            watch_set = self.project.watch_set
        except OSError as e:
            log.warning("cannot find asset directories: %s", e)
            watch_set = None

        build_config = BuildConfig.resolve(self.environ, self.is_bundled)
        success, elapsed = self.runner.run(build_config.as_env(self.environ))

        if success:
            log.info("Asset precompilation completed (%.2fs)", elapsed)
            self._enter(State.STORE_CACHE)
            self._store_cache(watch_set, fingerprint)
            return self._finish(Status.SUCCESS, duration=elapsed)

        self._enter(State.DEGRADE)
        log.warning("Precompiling assets failed, enabling runtime asset compilation")
        self.context.install_plugin(config.RUNTIME_COMPILE_PLUGIN)
        log.warning("Please see this article for troubleshooting help:")
        log.warning(config.TROUBLESHOOTING_URL)
        return self._finish(Status.FAILURE, duration=elapsed)

    def _store_cache(
        self, watch_set: Optional[WatchSet], fingerprint: Optional[str]
    ) -> None:
        if watch_set is None or fingerprint is None:
            log.warning("not caching assets")
            return
        log.info("Caching assets")
        try:
            self.store.store(watch_set.paths)
        except (CacheError, OSError) as e:
            log.warning("failed to cache assets: %s", e)
            return
        self.store.write_fingerprint(fingerprint)
