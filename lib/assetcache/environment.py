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
Contains the build environment: environment defaults for the build runner,
persistence driver detection and the per framework version behavior table.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from assetcache import config
from assetcache.logger import log


def detect_driver(is_bundled: Callable[[str], bool]) -> Optional[str]:
    """Returns the url scheme of the first bundled database driver.

    :param is_bundled: predicate telling if a dependency is bundled.
    :return: url scheme, or None if no known driver is bundled.
    """
    for names, scheme in config.DATABASE_DRIVERS:
        if any(is_bundled(name) for name in names):
            return scheme
    return None


def database_url_placeholder(scheme: Optional[str]) -> str:
    """Returns a dummy database url that lets the application boot without a
    database. With no scheme the url starts with '://', as before."""
    return config.DATABASE_URL_TEMPLATE.format(scheme=scheme or "")


def lockfile_predicate(lock_file: Path) -> Callable[[str], bool]:
    """Returns an is_bundled predicate that looks for a dependency spec line,
    e.g. '    pg (0.12.2)', in a lock file. A missing lock file bundles
    nothing.

    :param lock_file: path to the lock file.
    :return: predicate.
    """
    try:
        text = Path(lock_file).read_text(encoding="utf-8", errors="replace")
    except OSError:
        text = ""

    def is_bundled(name: str) -> bool:
        return bool(re.search(rf"^    {re.escape(name)} \(", text, re.MULTILINE))

    return is_bundled


def bundled_version(lock_file: Path, name: str) -> Optional[Tuple[int, ...]]:
    """Returns the locked version of a dependency as a tuple of ints, e.g.
    (3, 2, 1) for "    railties (3.2.1)", or None if it is not bundled."""
    try:
        text = Path(lock_file).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    match = re.search(rf"^    {re.escape(name)} \((\d+(?:\.\d+)*)", text, re.MULTILINE)
    if not match:
        return None
    return tuple(int(n) for n in match.group(1).split("."))


def version_detector(
    lock_file: Path,
    name: str = config.FRAMEWORK_GEM,
    low: Tuple[int, ...] = config.CACHING_VERSIONS[0],
    high: Tuple[int, ...] = config.CACHING_VERSIONS[1],
) -> Callable[[], bool]:
    """Returns a detector for resolve_variant that tells if the bundled
    version of name is in [low, high).

    :param lock_file: path to the lock file.
    :param name: dependency name.
    :param low: lowest matching version.
    :param high: first version past the range.
    :return: detector.
    """

    def detect() -> bool:
        version = bundled_version(lock_file, name)
        return version is not None and low <= version < high

    return detect


@dataclass(frozen=True)
class BuildConfig:
    """Environment handed to the build runner. Resolved once per run from the
    caller's environment, which is never modified."""

    asset_groups: str
    runtime_env: str
    database_url: str

    @classmethod
    def resolve(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        is_bundled: Optional[Callable[[str], bool]] = None,
    ) -> "BuildConfig":
        """Fills in defaults for the variables that are not already set.

        :param environ: environment to read, defaults to os.environ.
        :param is_bundled: dependency predicate for driver detection.
        :return: BuildConfig.
        """
        if environ is None:
            environ = os.environ
        if is_bundled is None:
            is_bundled = lambda name: False

        database_url = environ.get(config.DATABASE_URL_VAR)
        if database_url is None:
            database_url = database_url_placeholder(detect_driver(is_bundled))

        return cls(
            asset_groups=environ.get(
                config.ASSET_GROUPS_VAR, config.ASSET_GROUPS_DEFAULT
            ),
            runtime_env=environ.get(config.RUNTIME_ENV_VAR, config.RUNTIME_ENV_DEFAULT),
            database_url=database_url,
        )

    def as_env(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Returns a copy of base with the resolved variables set."""
        env = dict(os.environ if base is None else base)
        env[config.ASSET_GROUPS_VAR] = self.asset_groups
        env[config.RUNTIME_ENV_VAR] = self.runtime_env
        env[config.DATABASE_URL_VAR] = self.database_url
        return env


class ProjectVariant(Enum):
    """Framework versions with distinct build behavior."""

    RAILS2 = "rails2"
    RAILS3 = "rails3"


@dataclass(frozen=True)
class VariantBehavior:
    name: str
    caches_assets: bool
    plugins: Tuple[str, ...] = ()


VARIANTS: Dict[ProjectVariant, VariantBehavior] = {
    ProjectVariant.RAILS2: VariantBehavior(name="Ruby/Rails", caches_assets=False),
    ProjectVariant.RAILS3: VariantBehavior(
        name="Ruby/Rails",
        caches_assets=True,
        plugins=(config.SERVE_STATIC_PLUGIN,),
    ),
}


def resolve_variant(detector: Callable[[], bool]) -> ProjectVariant:
    """Selects the project variant.

    :param detector: returns True if the framework version is in [3.0, 4.0).
    :return: ProjectVariant.
    """
    return ProjectVariant.RAILS3 if detector() else ProjectVariant.RAILS2


@dataclass
class BuildContext:
    """The surrounding build: the selected variant and the plugins that will
    be installed into the application."""

    variant: ProjectVariant = ProjectVariant.RAILS3
    plugins: List[str] = field(default_factory=list)

    def __post_init__(self):
        for name in self.behavior.plugins:
            if name not in self.plugins:
                self.plugins.append(name)

    @property
    def behavior(self) -> VariantBehavior:
        return VARIANTS[self.variant]

    def install_plugin(self, name: str) -> None:
        """Registers a plugin with the build.

        :param name: plugin name.
        """
        if name in self.plugins:
            return
        log.info("installing plugin: %s", name)
        self.plugins.append(name)
