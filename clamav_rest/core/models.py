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
Data models for scan results and engine outcomes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Severity of a detection.

    clamd does not grade its detections, so every threat is critical.
    """

    CRITICAL = "critical"


class ScanStatus(str, Enum):
    """Overall status reported for one scan."""

    CLEAN = "clean"
    INFECTED = "infected"
    ERROR = "error"


class ScanStage(str, Enum):
    """Stages a single scan moves through."""

    RECEIVED = "received"
    STAGING = "staging"
    SCANNING = "scanning"
    PARSING = "parsing"
    HASHING = "hashing"
    DONE = "done"
    ERRORED = "errored"


class EngineVerdict(str, Enum):
    """Non-error outcomes of a clamdscan run."""

    CLEAN = "clean"
    INFECTED = "infected"


@dataclass(frozen=True)
class EngineResult:
    """Classified outcome of one engine invocation."""

    verdict: EngineVerdict
    output: str
    exit_code: int

    @property
    def infected(self) -> bool:
        return self.verdict is EngineVerdict.INFECTED


@dataclass(frozen=True)
class Threat:
    """A detection reported by the engine."""

    name: str
    file: str  # Relative to the staging directory root
    file_hash: str | None = None  # SHA-256 hex, absent if hashing failed
    severity: Severity = Severity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        """Convert threat to dictionary, omitting a missing hash."""
        data: dict[str, Any] = {
            "name": self.name,
            "file": self.file,
            "severity": self.severity.value,
        }
        if self.file_hash:
            data["file_hash"] = self.file_hash
        return data


@dataclass(frozen=True)
class ScanResult:
    """Results from scanning one uploaded file."""

    threats: tuple[Threat, ...] = field(default_factory=tuple)
    scanned_files: int = 0

    @property
    def status(self) -> ScanStatus:
        return ScanStatus.INFECTED if self.threats else ScanStatus.CLEAN

    @property
    def is_clean(self) -> bool:
        return not self.threats

    def to_dict(self) -> dict[str, Any]:
        """Convert scan result to dictionary."""
        return {
            "status": self.status.value,
            "threats": [t.to_dict() for t in self.threats],
            "scanned_files": self.scanned_files,
        }


@dataclass(frozen=True)
class EngineVersion:
    """Engine and signature database versions reported by clamdscan."""

    clamav_version: str = "unknown"
    db_version: str = "unknown"
