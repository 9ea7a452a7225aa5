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
Contains utility functions and classes.
"""

import filecmp
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator, Iterable, List, Optional, Set

from assetcache.logger import log


class CacheError(Exception):
    """Raised when the cache root cannot be read or written."""

    pass


def is_hidden(name: str) -> bool:
    """Returns True if a file or directory name starts with a period."""
    return os.path.basename(name).startswith(".")


def is_binary(filepath: str) -> bool:
    """Checks for a NUL byte in the first 1024 bytes of a file.

    :param filepath: path to file.
    :return: True if the file looks binary.
    """
    with open(filepath, "rb") as f:
        return b"\0" in f.read(1024)


def ensure_dir(p: Path) -> None:
    """Ensure that directory p exists.

    :param p: Directory path to ensure.
    """
    p.mkdir(parents=True, exist_ok=True)


def is_under(path: Path, parent: Path) -> bool:
    """Returns True if path is parent or lives below it.

    :param path: path to test.
    :param parent: candidate parent directory.
    """
    try:
        path.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


def walk(
    root: Path, skip: Iterable[Path] = (), include_hidden: bool = True
) -> Generator[Path, None, None]:
    """Generator that yields file paths under root in sorted order, relative
    to root. Symlinks to directories are yielded as entries and not followed.
    Every file is yielded, including editor backups, except those under the
    directories in skip.

        root/
            |- b/
            |   `- file.css
            |- a.js
            `- link -> /elsewhere

        a.js, b/file.css, link

    :param root: directory to walk.
    :param skip: absolute directories to leave out.
    :param include_hidden: descend into and yield dot files.
    :return: generator of relative paths.
    """
    skip = [s.resolve() for s in skip]
    for dirname, dirs, files in os.walk(root, topdown=True, followlinks=False):
        dirpath = Path(dirname)
        kept = []
        for d in sorted(dirs):
            full = dirpath / d
            if not include_hidden and is_hidden(d):
                continue
            if full.resolve() in skip:
                continue
            # include symlinks to directories, never descend into them
            if full.is_symlink():
                files.append(d)
                continue
            kept.append(d)
        dirs[:] = kept
        for name in sorted(files):
            if not include_hidden and is_hidden(name):
                continue
            yield (dirpath / name).relative_to(root)


def same_bytes(a: Path, b: Path) -> bool:
    """Byte-for-byte comparison of two files.

    :param a: first file.
    :param b: second file.
    :return: True if contents are identical.
    """
    return filecmp.cmp(a, b, shallow=False)


def copy_entry(src: Path, dst: Path) -> str:
    """Copies a single file or symlink, preserving metadata.

    :param src: source path.
    :param dst: destination path.
    :return: "copied" or "error:<message>".
    """
    try:
        ensure_dir(dst.parent)
        if src.is_symlink():
            if dst.is_symlink() or dst.exists():
                dst.unlink()
            os.symlink(os.readlink(src), dst)
        else:
            shutil.copy2(src, dst)
        return "copied"
    except OSError as e:
        return f"error:{e}"


def atomic_write_text(path: Path, text: str) -> None:
    """Writes text to path through a temporary file in the same directory.

    :param path: destination file.
    :param text: contents.
    """
    ensure_dir(path.parent)
    with tempfile.NamedTemporaryFile(
        "w", delete=False, dir=str(path.parent), encoding="utf-8"
    ) as tf:
        tf.write(text)
        tmp_path = Path(tf.name)
    try:
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def collapse_nested(paths: Iterable[str]) -> List[str]:
    """Drops paths that live below another path in the list, keeping order.

        ["app/assets", "app/assets/css", "lib"] -> ["app/assets", "lib"]

    :param paths: relative paths.
    :return: collapsed list.
    """
    paths = list(paths)
    roots: Set[Path] = {Path(p) for p in paths}
    seen: Set[Path] = set()
    collapsed = []
    for p in paths:
        rel = Path(p)
        if rel in seen or any(parent in roots for parent in rel.parents):
            continue
        seen.add(rel)
        collapsed.append(p)
    return collapsed


def is_dangerous_root(p: Path) -> bool:
    """Best-effort guard against removing the wrong directory."""
    try:
        rp = p.resolve()
    except Exception:
        rp = p

    # refuse filesystem roots and very short paths like "/mnt" or "C:\"
    return rp == Path(rp.anchor) or len(rp.parts) <= 2


def remove_tree(path: Optional[Path]) -> None:
    """Deletes a file, link or directory tree if it exists, logging errors.

    :param path: file system path.
    """
    if path is None:
        return
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
    except OSError as e:
        log.error("Error removing '%s': %s", path, e)
