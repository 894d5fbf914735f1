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
Configuration classes for the ClamAV REST service.

``Config`` holds every deployment setting and reads overrides from the
environment. ``ScanConfiguration`` is the immutable subset of limits that the
scan pipeline consumes; it is built once at start-up and shared read-only by
every concurrent scan.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .constants import ClamavRestConstants

logger = logging.getLogger(__name__)

_MB = 1 << 20


@dataclass(frozen=True)
class ScanConfiguration:
    """Limits and timeout applied to one scanner instance."""

    max_extracted_size: int
    max_file_count: int
    max_single_file_size: int
    scan_timeout: float

    def __post_init__(self):
        for name in ("max_extracted_size", "max_file_count", "max_single_file_size"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.scan_timeout <= 0:
            raise ValueError("scan_timeout must be positive")


def _env_int(key: str, default: int) -> int:
    """Return an environment variable as int, or *default* if unset or invalid."""
    value = os.getenv(key, "")
    if value:
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid value for %s, using default %d", key, default)
    return default


@dataclass
class Config:
    """
    Configuration for the ClamAV REST service.

    Fields left as ``None`` are filled from environment variables, falling
    back to the defaults in :class:`ClamavRestConstants`. Sizes are stored
    in bytes, durations in seconds.
    """

    # Server settings
    host: str | None = None
    port: int | None = None
    debug_mode: bool | None = None

    # Keep-alive timeout for idle HTTP connections
    idle_timeout_seconds: int | None = None

    # Upload limit
    max_upload_size: int | None = None

    # Zip bomb protection limits
    max_extracted_size: int | None = None
    max_file_count: int | None = None
    max_single_file_size: int | None = None
    max_recursion: int | None = None

    # Engine settings
    max_threads: int | None = None
    scan_timeout_seconds: float | None = None
    clamdscan_binary: str | None = None

    def __post_init__(self):
        """Load configuration from environment variables if not provided."""
        c = ClamavRestConstants

        if self.host is None:
            self.host = os.getenv(c.ENV_HOST) or c.DEFAULT_HOST
        if self.port is None:
            self.port = _env_int(c.ENV_PORT, c.DEFAULT_PORT)
        if self.debug_mode is None:
            self.debug_mode = os.getenv(c.ENV_LOG_LEVEL, "").lower() == "debug"

        if self.idle_timeout_seconds is None:
            self.idle_timeout_seconds = _env_int(c.ENV_IDLE_TIMEOUT, c.DEFAULT_IDLE_TIMEOUT_SECONDS)

        if self.max_upload_size is None:
            self.max_upload_size = _env_int(c.ENV_MAX_UPLOAD_SIZE, c.DEFAULT_MAX_UPLOAD_MB) * _MB
        if self.max_extracted_size is None:
            self.max_extracted_size = _env_int(c.ENV_MAX_EXTRACTED_SIZE, c.DEFAULT_MAX_EXTRACTED_MB) * _MB
        if self.max_file_count is None:
            self.max_file_count = _env_int(c.ENV_MAX_FILE_COUNT, c.DEFAULT_MAX_FILE_COUNT)
        if self.max_single_file_size is None:
            self.max_single_file_size = _env_int(c.ENV_MAX_SINGLE_FILE, c.DEFAULT_MAX_SINGLE_FILE_MB) * _MB
        if self.max_recursion is None:
            self.max_recursion = _env_int(c.ENV_MAX_RECURSION, c.DEFAULT_MAX_RECURSION)

        if self.max_threads is None:
            self.max_threads = _env_int(c.ENV_MAX_THREADS, c.DEFAULT_MAX_THREADS)
        if self.scan_timeout_seconds is None:
            self.scan_timeout_seconds = float(_env_int(c.ENV_SCAN_TIMEOUT, c.DEFAULT_SCAN_TIMEOUT_MINUTES) * 60)
        if self.clamdscan_binary is None:
            self.clamdscan_binary = os.getenv(c.ENV_CLAMDSCAN_BINARY) or c.CLAMDSCAN_BINARY

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create configuration from environment variables.

        Returns:
            Config instance with values from environment
        """
        return cls()

    @classmethod
    def from_file(cls, config_file: Path) -> "Config":
        """
        Load configuration from a .env file.

        Values in the file override variables already set in the process
        environment.

        Args:
            config_file: Path to .env file

        Returns:
            Config instance
        """
        if config_file.exists():
            load_dotenv(config_file, override=True)
        else:
            logger.warning("Config file %s not found, using environment only", config_file)

        return cls.from_env()

    def scan_configuration(self) -> ScanConfiguration:
        """Return the immutable limits consumed by the scan pipeline."""
        return ScanConfiguration(
            max_extracted_size=self.max_extracted_size,
            max_file_count=self.max_file_count,
            max_single_file_size=self.max_single_file_size,
            scan_timeout=self.scan_timeout_seconds,
        )

    def clamd_conf_directives(self) -> list[str]:
        """
        Render the clamd.conf limit directives matching this configuration.

        Keeps the daemon's own archive limits in step with the stager, and is
        where ``max_recursion`` takes effect: nested archives are unpacked by
        clamd, not by the stager.
        """
        return [
            f"MaxScanSize {self.max_extracted_size // _MB}M",
            f"MaxFileSize {self.max_single_file_size // _MB}M",
            f"MaxFiles {self.max_file_count}",
            f"MaxRecursion {self.max_recursion}",
            f"MaxThreads {self.max_threads}",
            f"StreamMaxLength {self.max_upload_size // _MB}M",
        ]

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info("Configuration:")
        logger.info("  Host: %s", self.host)
        logger.info("  Port: %s", self.port)
        logger.info("  Debug mode: %s", self.debug_mode)
        logger.info("  Idle timeout: %ss", self.idle_timeout_seconds)
        logger.info("  Max upload size: %d MB", self.max_upload_size // _MB)
        logger.info("  Max extracted size: %d MB", self.max_extracted_size // _MB)
        logger.info("  Max file count: %d", self.max_file_count)
        logger.info("  Max single file: %d MB", self.max_single_file_size // _MB)
        logger.info("  Max recursion: %d", self.max_recursion)
        logger.info("  Scan timeout: %ss", self.scan_timeout_seconds)
        logger.info("  clamdscan binary: %s", self.clamdscan_binary)
