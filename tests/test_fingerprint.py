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
Contains tests for the fingerprint module.
"""

from assetcache import config
from assetcache.fingerprint import (
    Project,
    WatchSet,
    discover_watch_set,
    fingerprint,
    marker_lines,
)

from conftest import write


def test_fingerprint_is_idempotent(app):
    """Two fingerprints of the same tree are equal."""
    assert fingerprint(app) == fingerprint(app)


def test_fingerprint_changes_with_new_marker_line(app):
    """Adding a configuration line anywhere changes the fingerprint."""
    before = fingerprint(app)
    write(
        app / "config" / "environments" / "production.rb",
        "config.assets.precompile += %w( admin.js )\n",
    )
    assert fingerprint(app) != before


def test_fingerprint_ignores_other_lines(app):
    """Lines without the marker do not contribute."""
    before = fingerprint(app)
    write(app / "config" / "routes.rb", "Blog::Application.routes.draw do\nend\n")
    with open(app / "config" / "application.rb", "a") as f:
        f.write("# unrelated\n")
    assert fingerprint(app) == before


def test_fingerprint_ignores_whitespace(app):
    """Reindenting a configuration line does not change the fingerprint."""
    before = fingerprint(app)
    path = app / "config" / "application.rb"
    path.write_text(path.read_text().replace("    config.assets", "\tconfig.assets"))
    assert fingerprint(app) == before


def test_fingerprint_excludes(app, tmp_path):
    """Excluded directories, such as tmp and vendor, do not contribute."""
    excludes = ["tmp", "vendor"]
    before = fingerprint(app, excludes)
    write(app / "tmp" / "cache" / "x.rb", "config.assets.debug = true\n")
    write(app / "vendor" / "gems" / "y.rb", "config.assets.compress = true\n")
    assert fingerprint(app, excludes) == before
    assert fingerprint(app) != before


def test_fingerprint_ignores_binary_files(app):
    before = fingerprint(app)
    write(app / "app" / "assets" / "images" / "odd.png", b"\0config.assets\n")
    assert fingerprint(app) == before


def test_marker_lines(app):
    assert marker_lines(app / "config" / "application.rb") == [
        "config.assets.enabled=true",
        "config.assets.version='1.0'",
    ]
    assert marker_lines(app / "missing.rb") == []


def test_discover_watch_set(app):
    """Every directory holding asset sources is watched, lock file first."""
    watch_set = discover_watch_set(app)
    assert watch_set.lock_file == config.LOCK_FILE
    assert watch_set.paths[0] == config.LOCK_FILE
    assert sorted(watch_set.directories) == [
        "app/assets/css",
        "app/assets/images",
        "app/assets/js",
    ]
    assert len(watch_set) == 4


def test_discover_watch_set_patterns(app):
    """Compound extensions, hidden dirs and skipped dirs are handled."""
    write(app / "lib" / "assets" / "widget.js.coffee", "x = 1")
    write(app / "app" / "views" / "index.html.erb", "<p></p>")
    write(app / ".sass-cache" / "a.scssc", "x")
    write(app / "tmp" / "cache" / "b.css", "x")

    watch_set = discover_watch_set(app, skip=[app / "tmp"])
    assert "lib/assets" in watch_set.directories
    assert "app/views" not in watch_set.directories
    assert ".sass-cache" not in watch_set.directories
    assert "tmp/cache" not in watch_set.directories


def test_discover_watch_set_template_names(app):
    """Asset sources named like backup or temp files are still discovered."""
    write(app / "app" / "assets" / "tpl" / "list.template.js", "x")
    write(app / "app" / "assets" / "legacy" / "print.css.orig", "x")

    directories = discover_watch_set(app).directories
    assert "app/assets/tpl" in directories
    assert "app/assets/legacy" in directories


def test_fingerprint_reads_template_config(app):
    """Configuration in files with temp-like names still counts."""
    before = fingerprint(app)
    write(app / "config" / "assets.template.rb", "config.assets.prefix = \"/a\"\n")
    assert fingerprint(app) != before


def test_discover_watch_set_root_files(tmp_path):
    write(tmp_path / "package.json", "{}")
    assert discover_watch_set(tmp_path).directories == ["."]


def test_empty_watch_set(tmp_path):
    assert discover_watch_set(tmp_path) == WatchSet([], config.LOCK_FILE)


def test_project_memoizes(project, app):
    """The watch set and fingerprint are computed once per project."""
    watch_set = project.watch_set
    fp = project.fingerprint
    write(app / "lib" / "assets" / "extra.css", "x")
    write(app / "config" / "extra.rb", "config.assets.debug = true\n")
    assert project.watch_set is watch_set
    assert project.fingerprint == fp


def test_project_excludes_output_and_cache(app, tmp_path):
    """Compiled assets and an in-tree cache root are never watched."""
    write(app / "public" / "assets" / "application-1a2b.css", "x")
    cache_root = app / "tmp" / "cache" / "assets"
    write(cache_root / "app" / "assets" / "css" / "application.css", "x")

    project = Project(str(app), cache_root=str(cache_root))
    assert "public/assets" not in project.watch_set.directories
    assert not any(d.startswith("tmp") for d in project.watch_set.directories)
    assert project.manifest_path == project.root / "public" / "assets" / "manifest.yml"
