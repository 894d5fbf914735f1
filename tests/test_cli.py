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

"""Tests for the command-line interface."""

import json
from unittest.mock import patch

import pytest

from clamav_rest.api.api_server import run_server
from clamav_rest.cli.cli import main
from clamav_rest.config.config import Config
from clamav_rest.core.models import EngineVersion


@pytest.fixture
def upload(tmp_path):
    path = tmp_path / "upload.bin"
    path.write_bytes(b"payload")
    return path


class TestScanCommand:
    """Test ``clamav-rest scan``."""

    def test_clean_file_json(self, fake_clamdscan, upload, monkeypatch, capsys):
        monkeypatch.setenv("CLAMDSCAN_BINARY", fake_clamdscan(exit_code=0))

        exit_code = main(["scan", str(upload), "--format", "json"])

        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert data == {"status": "clean", "threats": [], "scanned_files": 1}

    def test_infected_file_summary(self, fake_clamdscan, upload, monkeypatch, capsys):
        monkeypatch.setenv("CLAMDSCAN_BINARY", fake_clamdscan(detections=[("file", "Win.Test")], exit_code=1))

        exit_code = main(["scan", str(upload)])

        assert exit_code == 1
        out = capsys.readouterr().out
        assert "Status: INFECTED" in out
        assert "Win.Test in file" in out
        assert "sha256:" in out

    def test_engine_error_json(self, fake_clamdscan, upload, monkeypatch, capsys):
        monkeypatch.setenv("CLAMDSCAN_BINARY", fake_clamdscan(exit_code=2))

        exit_code = main(["scan", str(upload), "--format", "json", "--compact"])

        assert exit_code == 1
        data = json.loads(capsys.readouterr().out)
        assert data == {"status": "error", "error": "Scan operation failed", "kind": "engine_error"}

    def test_missing_file(self, tmp_path, capsys):
        exit_code = main(["scan", str(tmp_path / "missing.bin")])

        assert exit_code == 1
        assert "does not exist" in capsys.readouterr().err

    def test_output_file(self, fake_clamdscan, upload, tmp_path, monkeypatch):
        monkeypatch.setenv("CLAMDSCAN_BINARY", fake_clamdscan(exit_code=0))
        out_file = tmp_path / "report.json"

        exit_code = main(["scan", str(upload), "--format", "json", "-o", str(out_file)])

        assert exit_code == 0
        assert json.loads(out_file.read_text())["status"] == "clean"


class TestOtherCommands:
    def test_clamd_config(self, monkeypatch, capsys):
        monkeypatch.setenv("MAX_RECURSION", "8")
        monkeypatch.setenv("MAX_FILE_COUNT", "500")

        exit_code = main(["clamd-config"])

        assert exit_code == 0
        lines = capsys.readouterr().out.splitlines()
        assert "MaxRecursion 8" in lines
        assert "MaxFiles 500" in lines

    def test_version(self, capsys):
        with patch(
            "clamav_rest.cli.cli.ClamdScanEngine.get_version",
            return_value=EngineVersion(clamav_version="1.3.0", db_version="27200"),
        ):
            exit_code = main(["version"])

        assert exit_code == 0
        out = capsys.readouterr().out
        assert "clamav-rest " in out
        assert "ClamAV 1.3.0" in out
        assert "Signature database 27200" in out

    def test_serve_passes_overrides(self):
        with patch("clamav_rest.api.api_server.run_server") as mock_run:
            exit_code = main(["serve", "--host", "127.0.0.1", "--port", "9999"])

        assert exit_code == 0
        assert mock_run.call_args.kwargs == {"host": "127.0.0.1", "port": 9999, "reload": False}
        assert isinstance(mock_run.call_args.args[0], Config)

    def test_serve_reload_flag(self):
        with patch("clamav_rest.api.api_server.run_server") as mock_run:
            exit_code = main(["serve", "--reload"])

        assert exit_code == 0
        assert mock_run.call_args.kwargs["reload"] is True

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()


class TestRunServer:
    def test_uses_configured_timeouts(self):
        config = Config(host="127.0.0.1", port=9001, idle_timeout_seconds=42)

        with patch("uvicorn.run") as mock_run:
            run_server(config)

        kwargs = mock_run.call_args.kwargs
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9001
        assert kwargs["timeout_keep_alive"] == 42

    def test_cli_overrides_config(self):
        config = Config(host="127.0.0.1", port=9001)

        with patch("uvicorn.run") as mock_run:
            run_server(config, port=9500)

        assert mock_run.call_args.kwargs["port"] == 9500

    def test_reload_uses_app_factory(self):
        config = Config(host="127.0.0.1", port=9001, idle_timeout_seconds=42)

        with patch("uvicorn.run") as mock_run:
            run_server(config, reload=True)

        assert mock_run.call_args.args[0] == "clamav_rest.api.api:create_app"
        kwargs = mock_run.call_args.kwargs
        assert kwargs["factory"] is True
        assert kwargs["reload"] is True
        assert kwargs["timeout_keep_alive"] == 42
