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
Contains the wrapper around the external asset build command.
"""

import os
import subprocess
import time
from typing import Mapping, Optional, Tuple

from assetcache import config
from assetcache.logger import log


class BuildRunner(object):
    """Runs the asset precompile command in a project directory."""

    def __init__(
        self,
        command: str = config.BUILD_COMMAND,
        timeout: float = config.BUILD_TIMEOUT,
        task_check: Optional[str] = config.TASK_CHECK_COMMAND,
        cwd: Optional[str] = None,
    ):
        """
        :param command: shell command that compiles the assets.
        :param timeout: seconds before the command is killed, 0 for no limit.
        :param task_check: shell command that succeeds if the project defines
            a precompile task, or None to assume it does.
        :param cwd: working directory, defaults to the current directory.
        """
        self.command = command
        self.timeout = timeout
        self.task_check = task_check
        self.cwd = cwd

    def __repr__(self):
        return f"<BuildRunner '{self.command}'>"

    def has_task(self, env: Optional[Mapping[str, str]] = None) -> bool:
        """Returns True if the project defines a task to build its assets."""
        if not self.task_check:
            return True
        try:
            proc = subprocess.run(
                self.task_check,
                shell=True,
                cwd=self.cwd,
                env=None if env is None else dict(env),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout or None,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            log.warning("task check failed: %s", e)
            return False
        return proc.returncode == 0

    def run(self, env: Optional[Mapping[str, str]] = None) -> Tuple[bool, float]:
        """Runs the build command with output passed through. A timeout counts
        as a failure.

        :param env: environment for the command, defaults to os.environ.
        :return: tuple of (success, elapsed seconds).
        """
        env = dict(os.environ if env is None else env)
        env["PATH"] = os.pathsep.join(p for p in (env.get("PATH"), "bin") if p)

        log.info("Running: %s", self.command)
        t0 = time.time()
        try:
            proc = subprocess.run(
                self.command,
                shell=True,
                cwd=self.cwd,
                env=env,
                timeout=self.timeout or None,
            )
            success = proc.returncode == 0
            if not success:
                log.error("build command exited with code %d", proc.returncode)
        except subprocess.TimeoutExpired:
            log.error("build command timed out after %ss", self.timeout)
            success = False
        except OSError as e:
            log.error("cannot run build command: %s", e)
            success = False

        return success, time.time() - t0
