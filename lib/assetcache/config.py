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
Contains default config and settings.
"""

import os
import platform

# default environment settings
ENV = os.getenv("ENV", "prod")
HOME = os.getenv("HOME", os.path.expanduser("~"))
PLATFORM = platform.system().lower()
CACHE_BASE = os.getenv(
    "CACHE_BASE",
    {
        "darwin": f"{HOME}/Library/Caches/assetcache",
        "linux": f"{HOME}/.cache/assetcache",
        "windows": "C:\\ProgramData\\assetcache",
    }.get(PLATFORM, f"./.assetcache/{ENV}"),
)

# explicit cache root, overrides CACHE_BASE/APP_NAME
CACHE_ROOT = os.getenv("CACHE_ROOT")
APP_NAME = os.getenv("APP_NAME")

# exit code when cache is stale
STALE_EXIT = 10

# project layout settings
ASSET_OUTPUT_DIR = os.getenv("ASSET_OUTPUT_DIR", "public/assets")
MANIFEST_FILE = "manifest.yml"
VERSION_FILE = ".version"
LOCK_FILE = "Gemfile.lock"
TEMP_DIR = "tmp"
VENDOR_DIR = "vendor"

# lines containing this marker make up the fingerprint
CONFIG_MARKER = "config.assets"

# files matching these patterns mark their directory as watched
ASSET_PATTERNS = [
    "*.js*",
    "*.coffee",
    "*.css*",
    "*.gif",
    "*.jpg",
    "*.jpeg",
    "*.png",
    "*.sass",
    "*.scss",
]

# directories never scanned for marker lines (the cache root is added at runtime)
FINGERPRINT_EXCLUDES = [TEMP_DIR, VENDOR_DIR, ".git"]

# build runner settings
BUILD_TASK = "assets:precompile"
BUILD_COMMAND = os.getenv("BUILD_COMMAND", f"bundle exec rake {BUILD_TASK}")
BUILD_TIMEOUT = float(os.getenv("BUILD_TIMEOUT", "0"))
TASK_CHECK_COMMAND = os.getenv("TASK_CHECK_COMMAND")

# environment defaults for the build runner
ASSET_GROUPS_VAR = "RAILS_GROUPS"
ASSET_GROUPS_DEFAULT = "assets"
RUNTIME_ENV_VAR = "RAILS_ENV"
RUNTIME_ENV_DEFAULT = "production"
DATABASE_URL_VAR = "DATABASE_URL"
DATABASE_URL_TEMPLATE = "{scheme}://user:pass@127.0.0.1/dbname"

# (driver names, url scheme), first bundled driver wins
DATABASE_DRIVERS = [
    (("pg",), "postgres"),
    (("mysql",), "mysql"),
    (("mysql2",), "mysql2"),
    (("sqlite3", "sqlite3-ruby"), "sqlite3"),
]

# framework gem and the version range that caches assets, [low, high)
FRAMEWORK_GEM = "railties"
CACHING_VERSIONS = ((3, 0), (4, 0))

# degraded mode settings
RUNTIME_COMPILE_PLUGIN = "rails31_enable_runtime_asset_compilation"
SERVE_STATIC_PLUGIN = "rails3_serve_static_assets"
TROUBLESHOOTING_URL = (
    "http://devcenter.heroku.com/articles/rails31_heroku_cedar#troubleshooting"
)

# logging settings
LOG_NAME = "assetcache"
LOG_DIR = os.getenv("LOG_DIR", os.path.expanduser("~/log/assetcache"))
LOG_LEVEL_DEFAULT = "INFO"
LOG_LEVEL = os.getenv("LOG_LEVEL", LOG_LEVEL_DEFAULT)
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 5
DRYRUN_MESSAGE = "NOTICE: Dry run (no changes will be made)"


def cache_root_for(project_root: str) -> str:
    """Returns the cache root for a project: CACHE_ROOT if set, otherwise a
    directory under CACHE_BASE named after APP_NAME or the project directory.

    :param project_root: path to the application.
    :return: cache root path.
    """
    if CACHE_ROOT:
        return CACHE_ROOT
    name = APP_NAME or os.path.basename(os.path.abspath(project_root))
    return os.path.join(CACHE_BASE, name)
