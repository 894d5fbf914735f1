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
Parser for clamdscan text output.

With ``--infected`` clamdscan prints one line per detection::

    /path/to/file: VirusName FOUND

Banner and summary lines are skipped by prefix; anything else is ignored.
"""

import logging
import os
import re

from .models import Severity, Threat

logger = logging.getLogger(__name__)

INFECTED_LINE = re.compile(r"^(.+):\s+(.+)\s+FOUND$")

# Summary and warning lines clamdscan may still emit
SKIP_PREFIXES = (
    "---",
    "Known",
    "Engine",
    "Scanned",
    "Data",
    "Time",
    "Start",
    "End",
)


def relative_to_root(file_path: str, base_dir: str) -> str:
    """Strip *base_dir* and exactly one leading separator from *file_path*."""
    if file_path.startswith(base_dir):
        file_path = file_path[len(base_dir) :]
    if file_path.startswith(os.sep):
        file_path = file_path[len(os.sep) :]
    return file_path


def parse_clamav_output(output: str, base_dir: str | os.PathLike[str]) -> list[Threat]:
    """
    Convert clamdscan output into threats, in report order.

    Args:
        output: Combined clamdscan stdout/stderr
        base_dir: Staging directory the scan ran against

    Returns:
        One Threat per ``FOUND`` line, with paths relative to *base_dir*
    """
    base = os.fspath(base_dir)
    threats: list[Threat] = []

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(SKIP_PREFIXES):
            continue

        match = INFECTED_LINE.match(line)
        if not match:
            continue

        file_path, virus_name = match.group(1), match.group(2)
        rel_path = relative_to_root(file_path, base)
        threats.append(Threat(name=virus_name, file=rel_path, severity=Severity.CRITICAL))
        logger.info("Found threat: %s in %s", virus_name, rel_path)

    return threats
