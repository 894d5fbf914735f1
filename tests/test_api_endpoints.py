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

"""Tests for the REST API endpoints."""

import hashlib
import tempfile

import pytest
from fastapi.testclient import TestClient

from clamav_rest.api.api import create_app
from clamav_rest.api.router import sanitize_filename
from clamav_rest.config.config import Config
from clamav_rest.core.exceptions import EngineError, ScanTimeoutError, StagingError
from clamav_rest.core.models import EngineVersion
from clamav_rest.core.scanner import Scanner


@pytest.fixture
def temp_root(tmp_path, monkeypatch):
    root = tmp_path / "tmp"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


@pytest.fixture
def make_client(make_configuration, make_engine):
    """Factory fixture returning a TestClient around an in-process engine."""

    def _make(engine=None, max_upload_size: int = 1 << 20, **limits) -> TestClient:
        config = Config(max_upload_size=max_upload_size)
        scanner = Scanner(make_configuration(**limits), engine=engine or make_engine())
        return TestClient(create_app(config, scanner=scanner))

    return _make


class TestServiceEndpoints:
    def test_root(self, make_client):
        response = make_client().get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "ClamAV REST API"
        assert data["scan"] == "/scan"

    def test_health_reports_versions(self, make_client, make_engine):
        engine = make_engine(version=EngineVersion(clamav_version="1.0.0", db_version="26789"))

        response = make_client(engine=engine).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "clamav_version": "1.0.0", "db_version": "26789"}

    def test_health_with_unknown_engine(self, make_client):
        response = make_client().get("/health")

        assert response.status_code == 200
        assert response.json()["clamav_version"] == "unknown"


class TestScanEndpoint:
    """Test POST /scan."""

    def test_clean_file(self, make_client, temp_root):
        response = make_client().post("/scan", files={"file": ("notes.txt", b"hello world", "text/plain")})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "clean"
        assert data["threats"] == []
        assert data["scanned_files"] == 1
        assert data["scan_time_ms"] >= 0
        assert "error" not in data
        assert list(temp_root.iterdir()) == []

    def test_infected_file(self, make_client, make_engine, eicar_like_bytes, temp_root):
        engine = make_engine(detections=[("file", "Win.Test.EICAR_HDB-1")])

        response = make_client(engine=engine).post(
            "/scan", files={"file": ("eicar.com", eicar_like_bytes, "application/octet-stream")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "infected"
        assert data["threats"] == [
            {
                "name": "Win.Test.EICAR_HDB-1",
                "file": "file",
                "file_hash": hashlib.sha256(eicar_like_bytes).hexdigest(),
                "severity": "critical",
            }
        ]
        assert list(temp_root.iterdir()) == []

    def test_archive_contents_are_scanned(self, make_client, make_engine, zip_bytes, temp_root):
        engine = make_engine(detections=[("inner/bad.exe", "Win.Trojan.Test")])
        payload = zip_bytes({"inner/bad.exe": b"MZ-bad", "readme.txt": b"hi"})

        response = make_client(engine=engine).post("/scan", files={"file": ("bundle.zip", payload)})

        data = response.json()
        assert data["status"] == "infected"
        assert data["scanned_files"] == 2
        assert data["threats"][0]["file"] == "inner/bad.exe"
        assert engine.staged_files == ["inner/bad.exe", "readme.txt"]

    def test_missing_file_field(self, make_client):
        response = make_client().post("/scan", files={"other": ("a.txt", b"x")})

        assert response.status_code == 400
        assert response.json()["error"] == "No file provided in request"
        assert response.json()["status"] == "error"

    def test_upload_over_limit(self, make_client, temp_root):
        response = make_client(max_upload_size=10).post("/scan", files={"file": ("big.bin", b"x" * 100)})

        assert response.status_code == 413
        assert response.json()["error"] == "File exceeds maximum upload size"
        assert list(temp_root.iterdir()) == []

    def test_content_length_over_limit(self, make_client, make_engine, temp_root):
        engine = make_engine()

        response = make_client(engine=engine, max_upload_size=10).post(
            "/scan", files={"file": ("big.bin", b"x" * (128 * 1024))}
        )

        assert response.status_code == 413
        assert engine.seen_dirs == []

    def test_limit_violation(self, make_client, zip_bytes, temp_root):
        payload = zip_bytes({"a.txt": "1", "b.txt": "2", "c.txt": "3"})

        response = make_client(max_file_count=2).post("/scan", files={"file": ("many.zip", payload)})

        assert response.status_code == 422
        assert response.json()["error"] == "File rejected: archive contains too many files"
        assert list(temp_root.iterdir()) == []

    def test_timeout(self, make_client, make_engine):
        engine = make_engine(error=ScanTimeoutError(300.0))

        response = make_client(engine=engine).post("/scan", files={"file": ("a.bin", b"data")})

        assert response.status_code == 504
        assert response.json()["error"] == "Scan timed out"

    def test_engine_error_does_not_leak_output(self, make_client, make_engine):
        engine = make_engine(
            error=EngineError(
                "clamdscan error (exit 2)",
                exit_code=2,
                raw_output="ERROR: Could not connect to clamd on /run/clamav/clamd.ctl",
            )
        )

        response = make_client(engine=engine).post("/scan", files={"file": ("a.bin", b"data")})

        assert response.status_code == 502
        assert response.json()["error"] == "Scan operation failed"
        assert "clamd.ctl" not in response.text

    def test_staging_error(self, make_client, make_engine):
        engine = make_engine(error=StagingError("failed", diagnostic="/tmp/clamav-extract-x: EACCES"))

        response = make_client(engine=engine).post("/scan", files={"file": ("a.bin", b"data")})

        assert response.status_code == 500
        assert "clamav-extract" not in response.text


class TestSanitizeFilename:
    def test_none(self):
        assert sanitize_filename(None) == "<unnamed>"

    def test_control_characters_replaced(self):
        assert sanitize_filename("evil\nname\r\x1b.txt") == "evil_name__.txt"

    def test_long_name_is_truncated(self):
        result = sanitize_filename("a" * 300)

        assert result == "a" * 100 + "..."

    def test_plain_name_unchanged(self):
        assert sanitize_filename("report.pdf") == "report.pdf"
