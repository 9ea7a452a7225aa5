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
Contains the tree diff and the cache validator.
"""

import os
from pathlib import Path
from typing import Iterable, Set

from assetcache import util
from assetcache.fingerprint import Project
from assetcache.logger import log
from assetcache.store import SnapshotStore
from assetcache.util import CacheError


def entries_differ(s: Path, d: Path) -> str:
    """Compares two existing entries.

    :param s: source path.
    :param d: destination path.
    :return: description of the difference, or an empty string.
    """
    if s.is_symlink() or d.is_symlink():
        if s.is_symlink() != d.is_symlink():
            return "symlink vs non-symlink mismatch"
        if os.readlink(s) != os.readlink(d):
            return "symlink target differs"
        return ""
    if s.is_dir() != d.is_dir():
        return "dir/file type mismatch"
    if s.is_file() and not util.same_bytes(s, d):
        return "changed"
    return ""


def diff_trees(
    src_root: Path,
    dst_root: Path,
    skip_src: Iterable[Path] = (),
    skip_dst: Iterable[Path] = (),
) -> int:
    """Compare src and dst recursively. Returns number of differences.

    Files present on one side only, type mismatches, changed symlink targets
    and files whose bytes differ each count once. Empty directories are not
    compared. Either root may be a single file, or missing.

    :param src_root: source file or directory.
    :param dst_root: destination file or directory.
    :param skip_src: directories under src_root to leave out.
    :param skip_dst: directories under dst_root to leave out.
    :return: number of differences found.
    """
    log.debug("comparing %s -> %s", src_root, dst_root)

    src_exists = os.path.lexists(src_root)
    dst_exists = os.path.lexists(dst_root)
    if not src_exists and not dst_exists:
        return 0
    if not dst_exists:
        log.info("+ %s", src_root)
        return 1
    if not src_exists:
        log.info("- %s", dst_root)
        return 1

    src_is_tree = src_root.is_dir() and not src_root.is_symlink()
    dst_is_tree = dst_root.is_dir() and not dst_root.is_symlink()
    if not (src_is_tree and dst_is_tree):
        reason = entries_differ(src_root, dst_root)
        if reason:
            log.info("~ %s [%s]", src_root, reason)
            return 1
        return 0

    src_entries: Set[Path] = set(util.walk(src_root, skip=skip_src))
    dst_entries: Set[Path] = set(util.walk(dst_root, skip=skip_dst))

    differences = 0
    for rel in sorted(src_entries - dst_entries):
        log.info("+ %s", rel)
        differences += 1
    for rel in sorted(dst_entries - src_entries):
        log.info("- %s", rel)
        differences += 1

    # now compare shared paths
    for rel in sorted(src_entries & dst_entries):
        try:
            reason = entries_differ(src_root / rel, dst_root / rel)
        except OSError as e:
            reason = f"error: {e}"
        if reason:
            log.info("~ %s [%s]", rel, reason)
            differences += 1

    log.debug("diff completed with %d differences", differences)
    return differences


class CacheValidator(object):
    """Decides whether the cached assets of a project can be reused.

    Both checks must pass: the stored fingerprint must match the current one,
    and every watched path must be identical to its cached copy.
    """

    def __init__(self, project: Project, store: SnapshotStore):
        self.project = project
        self.store = store

    def _diff_path(self, rel: str) -> int:
        return diff_trees(
            self.project.root / rel,
            self.store.mirror(rel),
            skip_src=[self.project.cache_root]
            + self.store.skip_for(self.project.root),
            skip_dst=self.store.skip_for(self.store.cache_root),
        )

    def _check(self) -> bool:
        log.debug("===> cache root: %s", self.store.cache_root)

        stored = self.store.read_fingerprint()
        if stored is None:
            log.info("no cached asset version found")
            return False

        current = self.project.fingerprint
        if stored != current:
            log.info("asset configuration changed (%s != %s)", stored, current)
            return False

        for rel in util.collapse_nested(self.project.watch_set):
            differences = self._diff_path(rel)
            if differences:
                log.info("%s changed (%d differences)", rel, differences)
                return False

        return True

    def is_cache_usable(self) -> bool:
        """Returns True if the cached compiled assets match the project. Any
        error reading the project or the cache counts as a miss."""
        try:
            return self._check()
        except (CacheError, OSError) as e:
            log.warning("cache check failed: %s", e)
            return False

    def diff(self) -> int:
        """Diffs every watched path against the cache, without stopping at
        the first change.

        :return: total number of differences.
        """
        total = 0
        for rel in util.collapse_nested(self.project.watch_set):
            log.info("===> diff %s %s", rel, self.store.mirror(rel))
            total += self._diff_path(rel)
        return total
