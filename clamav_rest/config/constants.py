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
Constants for the ClamAV REST service.
"""

try:
    from .._version import __version__ as PACKAGE_VERSION
except Exception:  # pragma: no cover
    PACKAGE_VERSION = "0.0.0-dev"


class ClamavRestConstants:
    """Constants used throughout the service."""

    VERSION = PACKAGE_VERSION

    # Engine
    CLAMDSCAN_BINARY = "/usr/bin/clamdscan"
    # --no-summary: skip the trailing summary block
    # --infected: only report infected files
    # --fdpass: pass file descriptors to clamd instead of paths
    # --multiscan: let clamd scan the tree in parallel
    # clamdscan recurses into directories by default.
    CLAMDSCAN_ARGS = ("--no-summary", "--infected", "--fdpass", "--multiscan")

    EXIT_CLEAN = 0
    EXIT_INFECTED = 1

    # Staging
    STAGING_DIR_PREFIX = "clamav-extract-"
    UPLOAD_FILE_PREFIX = "clamav-scan-"
    SINGLE_FILE_NAME = "file"
    DIRECTORY_MODE = 0o755
    FILE_MODE = 0o644
    COPY_CHUNK_SIZE = 1024 * 1024

    # Server defaults
    DEFAULT_HOST = "0.0.0.0"
    DEFAULT_PORT = 9000
    DEFAULT_IDLE_TIMEOUT_SECONDS = 60

    # Limit defaults
    DEFAULT_MAX_UPLOAD_MB = 512
    DEFAULT_MAX_EXTRACTED_MB = 1024
    DEFAULT_MAX_FILE_COUNT = 100_000
    DEFAULT_MAX_SINGLE_FILE_MB = 256
    DEFAULT_MAX_RECURSION = 16
    DEFAULT_MAX_THREADS = 20
    DEFAULT_SCAN_TIMEOUT_MINUTES = 5

    # Environment variable names
    ENV_HOST = "HOST"
    ENV_PORT = "PORT"
    ENV_LOG_LEVEL = "LOG_LEVEL"
    ENV_IDLE_TIMEOUT = "IDLE_TIMEOUT_SECONDS"
    ENV_MAX_UPLOAD_SIZE = "MAX_UPLOAD_SIZE_MB"
    ENV_MAX_EXTRACTED_SIZE = "MAX_EXTRACTED_SIZE_MB"
    ENV_MAX_FILE_COUNT = "MAX_FILE_COUNT"
    ENV_MAX_SINGLE_FILE = "MAX_SINGLE_FILE_MB"
    ENV_MAX_RECURSION = "MAX_RECURSION"
    ENV_MAX_THREADS = "MAX_THREADS"
    ENV_SCAN_TIMEOUT = "SCAN_TIMEOUT_MINUTES"
    ENV_CLAMDSCAN_BINARY = "CLAMDSCAN_BINARY"

    # Threats
    SEVERITY_CRITICAL = "critical"

    # Logging
    LOG_PREVIEW_CHARS = 500
    MAX_LOGGED_FILENAME = 100
