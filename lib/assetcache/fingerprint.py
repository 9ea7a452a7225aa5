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
Contains the asset configuration fingerprint and watched path discovery.

The fingerprint is a sha1 digest over every line in the project that mentions
the asset configuration marker (``config.assets``), so that adding another
precompiled file or asset path invalidates the cache. The watch set lists the
directories that hold asset sources; these are diffed file by file against
their cached copies.
"""

import fnmatch
import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from assetcache import config, util
from assetcache.logger import log


@dataclass
class WatchSet:
    """Directories whose contents affect the compiled assets, plus the lock
    file. Paths are relative to the project root."""

    directories: List[str] = field(default_factory=list)
    lock_file: str = config.LOCK_FILE

    @property
    def paths(self) -> List[str]:
        """Lock file first, then directories in discovery order."""
        return [self.lock_file] + self.directories

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)


def marker_lines(filepath: Path, marker: str = config.CONFIG_MARKER) -> List[str]:
    """Returns the lines of a file containing marker, with all whitespace
    removed. Binary and unreadable files have no marker lines.

    :param filepath: path to file.
    :param marker: substring to look for.
    :return: list of stripped lines.
    """
    try:
        if util.is_binary(filepath):
            return []
        with open(filepath, "r", encoding="utf-8", errors="replace") as f:
            return ["".join(line.split()) for line in f if marker in line]
    except OSError as e:
        log.warning("cannot read %s: %s", filepath, e)
        return []


def fingerprint(
    project_root: Path,
    exclude: Iterable[Path] = (),
    marker: str = config.CONFIG_MARKER,
) -> str:
    """Computes the asset configuration fingerprint of a project.

    Files are visited in sorted order. Each matching line is hashed as
    ``<relative path>:<line>`` so moving a line between files changes the
    digest, as does any edit to the line itself.

    :param project_root: application directory.
    :param exclude: directories to leave out, absolute or relative to root.
    :param marker: substring selecting configuration lines.
    :return: hex digest.
    """
    root = Path(project_root)
    skip = [p if Path(p).is_absolute() else root / p for p in exclude]
    digest = hashlib.sha1()
    matched = 0

    for rel in util.walk(root, skip=skip):
        path = root / rel
        if path.is_symlink():
            continue
        for line in marker_lines(path, marker):
            digest.update(f"{rel.as_posix()}:{line}\n".encode("utf-8"))
            matched += 1

    value = digest.hexdigest()
    log.debug("fingerprint %s from %d lines", value, matched)
    return value


def discover_watch_set(
    project_root: Path,
    patterns: Iterable[str] = config.ASSET_PATTERNS,
    skip: Iterable[Path] = (),
    lock_file: str = config.LOCK_FILE,
) -> WatchSet:
    """Finds the unique parent directories of all asset source files. Hidden
    files and directories are not considered.

    :param project_root: application directory.
    :param patterns: file name patterns of asset sources.
    :param skip: absolute directories to leave out.
    :param lock_file: dependency lock file, always watched.
    :return: WatchSet.
    """
    root = Path(project_root)
    patterns = list(patterns)
    directories: List[str] = []
    seen = set()

    for rel in util.walk(root, skip=skip, include_hidden=False):
        if not any(fnmatch.fnmatch(rel.name, p) for p in patterns):
            continue
        parent = rel.parent.as_posix()
        if parent not in seen:
            seen.add(parent)
            directories.append(parent)

    return WatchSet(directories=directories, lock_file=lock_file)


class Project(object):
    """An application being built. Resolves its paths once and memoizes the
    watch set and fingerprint for the rest of the run."""

    def __init__(
        self,
        root: str = ".",
        cache_root: Optional[str] = None,
        output_dir: str = config.ASSET_OUTPUT_DIR,
        lock_file: str = config.LOCK_FILE,
    ):
        self.root = Path(root).resolve()
        self.cache_root = Path(cache_root or config.cache_root_for(root)).resolve()
        self.output_dir = output_dir
        self.lock_file = lock_file
        self._watch_set: Optional[WatchSet] = None
        self._fingerprint: Optional[str] = None

    def __repr__(self):
        return f"<Project {self.root}>"

    @property
    def manifest_path(self) -> Path:
        """Manifest written by a local precompile."""
        return self.root / self.output_dir / config.MANIFEST_FILE

    @property
    def fingerprint_excludes(self) -> List[Path]:
        return [self.cache_root] + [
            self.root / d for d in config.FINGERPRINT_EXCLUDES
        ]

    @property
    def watch_excludes(self) -> List[Path]:
        return [
            self.cache_root,
            self.root / config.TEMP_DIR,
            self.root / self.output_dir,
        ]

    @property
    def watch_set(self) -> WatchSet:
        if self._watch_set is None:
            self._watch_set = discover_watch_set(
                self.root, skip=self.watch_excludes, lock_file=self.lock_file
            )
            log.debug("watching: %s", ", ".join(self._watch_set.paths))
        return self._watch_set

    @property
    def fingerprint(self) -> str:
        if self._fingerprint is None:
            self._fingerprint = fingerprint(self.root, self.fingerprint_excludes)
        return self._fingerprint
