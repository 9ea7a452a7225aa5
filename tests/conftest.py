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
Contains shared fixtures for the test suite.
"""

from pathlib import Path

import pytest

from assetcache.fingerprint import Project
from assetcache.store import SnapshotStore

GEMFILE_LOCK = """\
GEM
  remote: http://rubygems.org/
  specs:
    pg (0.12.2)
    rails (3.2.1)
    railties (3.2.1)

DEPENDENCIES
  pg
  rails (= 3.2.1)
"""

APPLICATION_RB = """\
module Blog
  class Application < Rails::Application
    config.assets.enabled = true
    config.assets.version = '1.0'
  end
end
"""


def write(path: Path, content) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    return path


@pytest.fixture
def app(tmp_path):
    """A small Rails 3 application with stylesheets, scripts and images."""
    root = tmp_path / "blog"
    write(root / "Gemfile.lock", GEMFILE_LOCK)
    write(root / "config" / "application.rb", APPLICATION_RB)
    write(root / "app" / "assets" / "css" / "application.css", "body { color: red; }\n")
    write(root / "app" / "assets" / "js" / "application.js", "//= require jquery\n")
    write(root / "app" / "assets" / "images" / "logo.png", b"\x89PNG\r\n\x1a\n\0\0IDAT")
    return root


@pytest.fixture
def cache_root(tmp_path):
    return tmp_path / "cache" / "blog"


@pytest.fixture
def project(app, cache_root):
    return Project(str(app), cache_root=str(cache_root))


@pytest.fixture
def store(project):
    return SnapshotStore(project.cache_root, project.root, project.output_dir, workers=2)


def compile_assets(root: Path) -> None:
    """Stand-in for the asset precompile task."""
    write(root / "public" / "assets" / "application-1a2b.css", "body{color:red}")
    write(root / "public" / "assets" / "application-3c4d.js", "jquery();")
