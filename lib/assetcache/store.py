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
Contains the snapshot store, which owns the cache root.

Layout of the cache root:

    <cache_root>/<watched path>              mirrored sources
    <cache_root>/<output dir>                mirrored compiled assets
    <cache_root>/<output dir>/.version       asset configuration fingerprint

A new snapshot is assembled in a sibling staging directory and renamed into
place, so a reader sees either the previous snapshot or the complete new one.
The fingerprint is written last and removed along with the old snapshot, so
an interrupted store always validates as a miss.
"""

import concurrent.futures as cf
import os
import tempfile
import time
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from tqdm import tqdm

from assetcache import config, util
from assetcache.logger import log
from assetcache.util import CacheError


def copy_tasks(
    ops: List[Tuple[Path, Path]], desc: str, workers: int = 8
) -> Tuple[int, int]:
    """Copies (src, dst) pairs using a thread pool.

    :param ops: list of (source, destination) paths.
    :param desc: progress bar description.
    :param workers: number of copy threads.
    :return: tuple of (copied, errors).
    """
    copied = errors = 0
    with cf.ThreadPoolExecutor(max_workers=workers) as ex, tqdm(
        total=len(ops),
        desc=desc,
        unit="file",
        leave=False,
        disable=not ops,
    ) as pbar:
        futures = {ex.submit(util.copy_entry, s, d): s for (s, d) in ops}
        for fut in cf.as_completed(futures):
            res = fut.result()
            if res == "copied":
                copied += 1
            else:
                errors += 1
                log.warning("%s: %s", futures[fut], res[len("error:") :])
            pbar.update(1)
    return copied, errors


class SnapshotStore(object):
    """Stores and restores snapshots of a project's watched paths and compiled
    assets under a cache root."""

    def __init__(
        self,
        cache_root: Path,
        project_root: Path,
        output_dir: str = config.ASSET_OUTPUT_DIR,
        workers: int = min(32, (os.cpu_count() or 4) * 2),
    ):
        self.cache_root = Path(cache_root)
        self.project_root = Path(project_root)
        self.output_dir = output_dir
        self.workers = workers

        # never mirrored as part of a watched path
        self.excludes = [config.TEMP_DIR, output_dir, ".git"]

    def __repr__(self):
        return f"<SnapshotStore {self.cache_root}>"

    @property
    def version_path(self) -> Path:
        return self.cache_root / self.output_dir / config.VERSION_FILE

    def exists(self) -> bool:
        return self.cache_root.is_dir()

    def mirror(self, rel: str) -> Path:
        """Returns the cached copy of a project relative path."""
        return self.cache_root / rel

    def _check_root(self) -> None:
        """Refuses a cache root that is, or contains, the project, since
        replacing or deleting it would take the project with it."""
        if util.is_under(self.project_root, self.cache_root):
            raise CacheError(
                f"cache root {self.cache_root} contains the project {self.project_root}"
            )

    def skip_for(self, base: Path) -> List[Path]:
        """Returns the excluded directories under base, which is either the
        project root or the cache root."""
        return [base / e for e in self.excludes]

    def _plan(
        self, src_root: Path, rel: str, dst_root: Path, skip: List[Path]
    ) -> List[Tuple[Path, Path]]:
        src = src_root / rel
        dst = dst_root / rel
        if not os.path.lexists(src):
            log.debug("not found, skipping: %s", rel)
            return []
        if src.is_dir() and not src.is_symlink():
            util.ensure_dir(dst)
            return [(src / f, dst / f) for f in util.walk(src, skip=skip)]
        return [(src, dst)]

    def store(self, paths: Iterable[str]) -> None:
        """Replaces the cache with a snapshot of the given project relative
        paths and the compiled asset directory. Files that no longer exist in
        the project do not survive into the new snapshot.

        :param paths: watched files and directories.
        :raises CacheError: if the snapshot could not be written; the previous
            snapshot is left in place.
        """
        self._check_root()
        t0 = time.time()
        parent = self.cache_root.parent
        staging: Optional[Path] = None
        retired: Optional[Path] = None

        try:
            util.ensure_dir(parent)
            staging = Path(
                tempfile.mkdtemp(prefix=f".{self.cache_root.name}.", dir=parent)
            )

            skip = [self.cache_root] + self.skip_for(self.project_root)
            ops: List[Tuple[Path, Path]] = []
            for rel in util.collapse_nested(paths):
                log.info("===> caching: %s", rel)
                ops.extend(self._plan(self.project_root, rel, staging, skip))
            log.info("===> caching: %s", self.output_dir)
            ops.extend(
                self._plan(self.project_root, self.output_dir, staging, [self.cache_root])
            )

            copied, errors = copy_tasks(
                ops, desc=f"[caching {self.project_root.name}]", workers=self.workers
            )
            if errors:
                raise CacheError(f"{errors} files could not be cached")

            # swap the new snapshot in
            if os.path.lexists(self.cache_root):
                retired = Path(f"{staging}.old")
                os.replace(self.cache_root, retired)
            try:
                os.replace(staging, self.cache_root)
            except OSError:
                # put the previous snapshot back
                if retired is not None:
                    previous, retired = retired, None
                    os.replace(previous, self.cache_root)
                raise
            staging = None

        except OSError as e:
            raise CacheError(f"cannot store snapshot in {self.cache_root}: {e}") from e

        finally:
            util.remove_tree(staging)
            util.remove_tree(retired)

        log.debug("stored %d files in %.2fs", copied, time.time() - t0)

    def write_fingerprint(self, fp: str) -> None:
        """Writes the fingerprint to the cache. Failures are logged and
        otherwise ignored.

        :param fp: fingerprint digest.
        """
        try:
            util.atomic_write_text(self.version_path, fp)
            log.debug("wrote %s", self.version_path)
        except OSError as e:
            log.error("failed to write %s: %s", self.version_path, e)

    def read_fingerprint(self) -> Optional[str]:
        """Returns the cached fingerprint, or None if there is none."""
        try:
            return self.version_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            log.warning("cannot read %s: %s", self.version_path, e)
            return None

    def restore(self, output_dir: Optional[str] = None) -> int:
        """Copies the cached compiled assets back into the project. The
        fingerprint file is not restored.

        :param output_dir: project relative destination, defaults to the
            compiled asset directory.
        :raises CacheError: if the cache holds no compiled assets or a file
            could not be copied.
        :return: number of files restored.
        """
        output_dir = output_dir or self.output_dir
        src = self.cache_root / self.output_dir
        dst = self.project_root / output_dir
        if not src.is_dir():
            raise CacheError(f"no cached assets in {src}")

        ops = [
            (src / rel, dst / rel)
            for rel in util.walk(src)
            if rel != Path(config.VERSION_FILE)
        ]
        try:
            util.ensure_dir(dst)
            copied, errors = copy_tasks(
                ops, desc=f"[restoring {output_dir}]", workers=self.workers
            )
        except OSError as e:
            raise CacheError(f"cannot restore {dst}: {e}") from e
        if errors:
            raise CacheError(f"{errors} files could not be restored")
        return copied

    def delete(self, dryrun: bool = False) -> bool:
        """Deletes the entire cache root.

        :param dryrun: only log what would be deleted.
        :return: True if the cache was (or would be) deleted.
        """
        if not self.exists():
            log.error("cache does not exist: %s", self.cache_root)
            return False

        if util.is_dangerous_root(self.cache_root):
            raise CacheError(f"refusing to delete cache root: {self.cache_root}")
        self._check_root()

        if dryrun:
            log.info("would delete cache: %s", self.cache_root)
            return True

        util.remove_tree(self.cache_root)
        log.info("deleted cache: %s", self.cache_root)
        return True
