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
Scan orchestration: stage the upload, run clamdscan, report threats.
"""

import hashlib
import logging
import shutil
import tempfile
import time
from dataclasses import replace
from pathlib import Path

from ..config.config import ScanConfiguration
from ..config.constants import ClamavRestConstants
from .engine import ClamdScanEngine
from .exceptions import EngineError, HashError, NotAnArchiveError, ScanError, StagingError
from .extractors.archive_extractor import ArchiveExtractor, stage_single_file
from .models import ScanResult, ScanStage, Threat
from .output_parser import parse_clamav_output

logger = logging.getLogger(__name__)


def compute_file_hash(file_path: Path) -> str:
    """
    Compute the SHA-256 hex digest of a file.

    Raises:
        HashError: The file could not be read
    """
    sha256 = hashlib.sha256()
    try:
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(ClamavRestConstants.COPY_CHUNK_SIZE), b""):
                sha256.update(chunk)
    except OSError as e:
        raise HashError(f"could not hash {Path(file_path).name}", diagnostic=f"{file_path}: {e}") from e
    return sha256.hexdigest()


def _clear_directory(directory: Path) -> None:
    """Remove everything inside *directory*, keeping the directory itself."""
    for child in directory.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


class Scanner:
    """
    Scans one uploaded file per call.

    Each :meth:`scan_file` call owns a fresh staging directory that is removed
    before the call returns or raises. The scanner itself only holds the
    immutable configuration and the stateless engine, so it is safe to share
    across threads.

    Example:
        >>> scanner = Scanner(Config().scan_configuration())
        >>> result = scanner.scan_file(Path("/tmp/upload.zip"))
        >>> result.status
        <ScanStatus.CLEAN: 'clean'>
    """

    def __init__(
        self,
        configuration: ScanConfiguration,
        engine: ClamdScanEngine | None = None,
        extractor: ArchiveExtractor | None = None,
    ):
        self.configuration = configuration
        self.engine = engine or ClamdScanEngine()
        self.extractor = extractor or ArchiveExtractor(configuration)

    def scan_file(self, file_path: Path) -> ScanResult:
        """
        Scan a file, extracting it first if it is an archive.

        Args:
            file_path: Local path to a fully received upload

        Returns:
            ScanResult with threats in engine report order

        Raises:
            LimitExceededError: The upload broke an extraction limit
            ScanTimeoutError: clamdscan did not finish in time
            EngineError: clamdscan failed
            StagingError: The upload could not be staged
        """
        file_path = Path(file_path)
        stage = ScanStage.RECEIVED
        start = time.monotonic()
        logger.debug("Starting scan of %s", file_path)

        try:
            staging_dir = Path(tempfile.mkdtemp(prefix=ClamavRestConstants.STAGING_DIR_PREFIX))
        except OSError as e:
            error = StagingError("failed to create staging directory", diagnostic=str(e))
            error.stage = ScanStage.ERRORED
            raise error from e

        try:
            stage = ScanStage.STAGING
            file_count = self._stage(file_path, staging_dir)

            stage = ScanStage.SCANNING
            engine_result = self.engine.invoke(staging_dir, self.configuration.scan_timeout)

            stage = ScanStage.PARSING
            threats = parse_clamav_output(engine_result.output, staging_dir)
            if engine_result.infected and not threats:
                # Never report an unreadable detection as clean
                raise EngineError(
                    "clamdscan reported detections but no FOUND lines were parsed",
                    exit_code=engine_result.exit_code,
                    raw_output=engine_result.output,
                )

            stage = ScanStage.HASHING
            threats = [self._attach_hash(threat, staging_dir) for threat in threats]

            stage = ScanStage.DONE
            result = ScanResult(threats=tuple(threats), scanned_files=file_count)
            logger.debug(
                "Scan finished: %s (%d threats, %d files, %.0fms)",
                result.status.value,
                len(result.threats),
                result.scanned_files,
                (time.monotonic() - start) * 1000,
            )
            return result

        except ScanError as e:
            e.stage = stage
            logger.debug("Scan failed during %s: %s", stage.value, e.diagnostic)
            raise

        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)

    def _stage(self, file_path: Path, staging_dir: Path) -> int:
        """Extract an archive into *staging_dir*, or stage the file as is."""
        try:
            file_count = self.extractor.extract(file_path, staging_dir)
            logger.debug("Extracted %d entries from archive", file_count)
            return file_count
        except NotAnArchiveError as e:
            logger.debug("Not an archive (%s), scanning as single file", e)

        try:
            # A damaged archive may have left partial entries behind
            _clear_directory(staging_dir)
        except OSError as e:
            raise StagingError("failed to reset staging directory", diagnostic=str(e)) from e

        return stage_single_file(file_path, staging_dir, self.configuration.max_single_file_size)

    def _attach_hash(self, threat: Threat, staging_dir: Path) -> Threat:
        """Return *threat* with its file hash, or unchanged if hashing fails."""
        target = staging_dir / threat.file
        if not target.resolve().is_relative_to(staging_dir.resolve()):
            logger.warning("Not hashing %s: path is outside the staging directory", threat.file)
            return threat
        try:
            return replace(threat, file_hash=compute_file_hash(target))
        except HashError as e:
            logger.warning("Could not compute hash for %s: %s", threat.file, e.diagnostic)
            return threat
