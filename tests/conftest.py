# Copyright 2026 Cisco Systems, Inc. and its affiliates
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
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest before running tests.
All fixtures defined here are available to every test module without
explicit imports.
"""

from __future__ import annotations

import io
import os
import stat
import zipfile
from pathlib import Path

import pytest

from clamav_rest.config.config import ScanConfiguration
from clamav_rest.core.engine import ClamdScanEngine, classify_exit_code
from clamav_rest.core.models import EngineResult, EngineVersion

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def make_configuration():
    """Factory fixture for :class:`ScanConfiguration` with generous defaults.

    Usage::

        cfg = make_configuration(max_file_count=2)
    """

    def _make(**overrides) -> ScanConfiguration:
        values = {
            "max_extracted_size": 10 << 20,
            "max_file_count": 100,
            "max_single_file_size": 5 << 20,
            "scan_timeout": 30.0,
        }
        values.update(overrides)
        return ScanConfiguration(**values)

    return _make


# ---------------------------------------------------------------------------
# Archive fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_zip(tmp_path: Path):
    """Factory fixture writing a ZIP archive under *tmp_path*.

    Usage::

        zip_path = make_zip({"a.txt": "hello", "dir/b.bin": b"\\x00\\x01"})
        zip_path = make_zip({"sub/a.txt": "x"}, dirs=["sub/"])
    """
    _counter = [0]

    def _make(
        files: dict[str, str | bytes],
        dirs: list[str] | None = None,
        compression: int = zipfile.ZIP_DEFLATED,
    ) -> Path:
        _counter[0] += 1
        zip_path = tmp_path / f"archive-{_counter[0]}.zip"
        with zipfile.ZipFile(zip_path, "w", compression=compression) as zf:
            for name in dirs or []:
                zf.writestr(zipfile.ZipInfo(name), "")
            for name, content in files.items():
                zf.writestr(name, content)
        return zip_path

    return _make


def _understate_zip_sizes(zip_path: Path, declared_size: int) -> None:
    """Rewrite every uncompressed-size field in *zip_path* to *declared_size*."""
    data = bytearray(zip_path.read_bytes())
    packed = declared_size.to_bytes(4, "little")

    offset = data.find(b"PK\x03\x04")
    while offset != -1:
        data[offset + 22 : offset + 26] = packed
        offset = data.find(b"PK\x03\x04", offset + 4)

    offset = data.find(b"PK\x01\x02")
    while offset != -1:
        data[offset + 24 : offset + 28] = packed
        offset = data.find(b"PK\x01\x02", offset + 4)

    zip_path.write_bytes(bytes(data))


@pytest.fixture
def understate_zip():
    """Return a helper that makes a ZIP's headers understate its entry sizes."""
    return _understate_zip_sizes


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


class FakeEngine(ClamdScanEngine):
    """In-process stand-in for clamdscan.

    Reports the configured detections as ``FOUND`` lines under whatever
    directory it is asked to scan, and records what it saw.
    """

    def __init__(
        self,
        detections: list[tuple[str, str]] | None = None,
        error: Exception | None = None,
        extra_output: str = "",
        version: EngineVersion | None = None,
    ):
        super().__init__(binary="/nonexistent/clamdscan")
        self.detections = detections or []
        self.error = error
        self.extra_output = extra_output
        self.version = version or EngineVersion()
        self.seen_dirs: list[Path] = []
        self.staged_files: list[str] = []

    def invoke(self, target_dir: Path, timeout: float) -> EngineResult:
        target_dir = Path(target_dir)
        self.seen_dirs.append(target_dir)
        self.staged_files = sorted(
            str(p.relative_to(target_dir)) for p in target_dir.rglob("*") if p.is_file()
        )
        if self.error is not None:
            raise self.error

        output = self.extra_output
        output += "".join(f"{target_dir}{os.sep}{rel}: {name} FOUND\n" for rel, name in self.detections)
        return classify_exit_code(1 if self.detections else 0, output)

    def get_version(self, timeout: float = 10.0) -> EngineVersion:
        return self.version


@pytest.fixture
def make_engine():
    """Factory fixture for :class:`FakeEngine`."""
    return FakeEngine


@pytest.fixture
def fake_clamdscan(tmp_path: Path):
    """Factory fixture writing an executable shell script that mimics clamdscan.

    The script treats its last argument as the scanned directory, prints a
    ``FOUND`` line per detection and exits with *exit_code*. When *sleep* is
    set it records its PID in ``<tmp_path>/clamdscan.pid`` and sleeps. The
    scanned directory is always written to ``<tmp_path>/clamdscan.target``.

    Usage::

        binary = fake_clamdscan(detections=[("a.exe", "Win.Test")], exit_code=1)
    """
    _counter = [0]

    def _make(
        detections: list[tuple[str, str]] | None = None,
        exit_code: int = 0,
        extra_lines: list[str] | None = None,
        sleep: float = 0,
    ) -> str:
        _counter[0] += 1
        script = tmp_path / f"clamdscan-{_counter[0]}"
        lines = [
            "#!/bin/sh",
            "for last; do :; done",
            f'printf "%s" "$last" > "{tmp_path / "clamdscan.target"}"',
        ]
        for line in extra_lines or []:
            lines.append(f"echo '{line}'")
        for rel, name in detections or []:
            lines.append(f'echo "$last/{rel}: {name} FOUND"')
        if sleep:
            lines.append(f'echo $$ > "{tmp_path / "clamdscan.pid"}"')
            lines.append(f"exec sleep {sleep}")
        lines.append(f"exit {exit_code}")
        script.write_text("\n".join(lines) + "\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script)

    return _make


@pytest.fixture
def eicar_like_bytes() -> bytes:
    """Arbitrary payload used as 'infected' content by the fake engines."""
    return b"X5O!P%@AP[4\\PZX54(P^)7CC)7}$-NOT-A-REAL-SIGNATURE-$H+H*"


@pytest.fixture
def zip_bytes():
    """Return the bytes of an in-memory ZIP built from a name->content map."""

    def _make(files: dict[str, str | bytes]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            for name, content in files.items():
                zf.writestr(name, content)
        return buffer.getvalue()

    return _make
