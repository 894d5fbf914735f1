# Copyright 2026 Cisco Systems, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""
clamdscan invocation and exit-code classification.

clamdscan talks to a running clamd daemon, which already has the signature
database loaded. clamd usually runs as its own ``clamav`` user, so the
staging tree is made world-readable before each scan.
"""

import logging
import os
import subprocess
from pathlib import Path

from ..config.constants import ClamavRestConstants
from .exceptions import EngineError, ScanTimeoutError
from .models import EngineResult, EngineVerdict, EngineVersion

logger = logging.getLogger(__name__)


def classify_exit_code(exit_code: int, output: str) -> EngineResult:
    """
    Map a clamdscan exit status to an :class:`EngineResult`.

    ClamAV exit codes:
        0 = no virus found
        1 = virus(es) found
        2 = some error(s) occurred

    Raises:
        EngineError: For exit code 2 and any other unexpected status
    """
    if exit_code == ClamavRestConstants.EXIT_CLEAN:
        return EngineResult(verdict=EngineVerdict.CLEAN, output=output, exit_code=exit_code)
    if exit_code == ClamavRestConstants.EXIT_INFECTED:
        return EngineResult(verdict=EngineVerdict.INFECTED, output=output, exit_code=exit_code)
    raise EngineError(f"clamdscan error (exit {exit_code})", exit_code=exit_code, raw_output=output)


def normalize_permissions(target_dir: Path) -> None:
    """Make every directory under *target_dir* 0755 and every file 0644.

    Best effort: entries that vanish or cannot be changed are logged and skipped.
    """
    target_dir = Path(target_dir)
    _chmod(target_dir, ClamavRestConstants.DIRECTORY_MODE)
    for dirpath, dirnames, filenames in os.walk(target_dir):
        for name in dirnames:
            _chmod(Path(dirpath) / name, ClamavRestConstants.DIRECTORY_MODE)
        for name in filenames:
            _chmod(Path(dirpath) / name, ClamavRestConstants.FILE_MODE)


def _chmod(path: Path, mode: int) -> None:
    try:
        os.chmod(path, mode)
    except OSError as e:
        logger.debug("Could not chmod %s: %s", path, e)


class ClamdScanEngine:
    """
    Runs ``clamdscan`` against a staging directory.

    Holds no per-scan state; a single instance is shared by all requests.
    """

    def __init__(self, binary: str = ClamavRestConstants.CLAMDSCAN_BINARY):
        self.binary = binary

    def build_command(self, target_dir: Path) -> list[str]:
        """Return the fixed clamdscan command line for *target_dir*."""
        return [self.binary, *ClamavRestConstants.CLAMDSCAN_ARGS, str(target_dir)]

    def invoke(self, target_dir: Path, timeout: float) -> EngineResult:
        """
        Scan *target_dir* and classify the outcome.

        Args:
            target_dir: Staging directory to scan
            timeout: Deadline in seconds; the process is killed when it expires

        Returns:
            EngineResult with verdict CLEAN or INFECTED and the raw output

        Raises:
            ScanTimeoutError: The deadline expired
            EngineError: clamdscan could not run or reported an error
        """
        normalize_permissions(target_dir)

        cmd = self.build_command(target_dir)
        logger.debug("Running: %s", " ".join(cmd))

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise EngineError(f"failed to start clamdscan: {e}") from e

        try:
            raw, _ = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            partial, _ = proc.communicate()
            raise ScanTimeoutError(timeout, diagnostic=partial.decode("utf-8", errors="replace") or None) from None
        except BaseException:
            # Never leave clamdscan running behind a cancelled request
            proc.kill()
            proc.wait()
            raise

        output = raw.decode("utf-8", errors="replace")
        logger.debug("ClamAV finished. exit=%s output=%d bytes", proc.returncode, len(output))
        if output:
            preview = output[: ClamavRestConstants.LOG_PREVIEW_CHARS]
            if len(output) > ClamavRestConstants.LOG_PREVIEW_CHARS:
                preview += "..."
            logger.debug("ClamAV output: %s", preview)

        return classify_exit_code(proc.returncode, output)

    def get_version(self, timeout: float = 10.0) -> EngineVersion:
        """
        Return ClamAV and signature database versions.

        Parses output like ``ClamAV 1.0.0/26789/Mon Jan 1 12:00:00 2024``.
        Any failure yields ``"unknown"`` for both fields.
        """
        try:
            completed = subprocess.run(
                [self.binary, "--version"],
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("clamdscan --version failed: %s", e)
            return EngineVersion()

        if completed.returncode != 0:
            return EngineVersion()
        return parse_version(completed.stdout)


def parse_version(version_output: str) -> EngineVersion:
    """Split a ``ClamAV <version>/<db>/<date>`` banner into its parts."""
    parts = version_output.strip().split("/")
    if not parts or not parts[0]:
        return EngineVersion()

    clamav_version = parts[0].removeprefix("ClamAV ").strip() or "unknown"
    db_version = parts[1].strip() if len(parts) >= 2 and parts[1].strip() else "unknown"
    return EngineVersion(clamav_version=clamav_version, db_version=db_version)
