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

"""API router for the ClamAV REST service.

Handlers read the scanner and configuration from ``request.app.state``,
which :func:`clamav_rest.api.api.create_app` populates; nothing here holds
module-level state.
"""

import asyncio
import concurrent.futures
import logging
import os
import tempfile
import time
from pathlib import Path

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config.config import Config
from ..config.constants import ClamavRestConstants
from ..core.exceptions import EngineError, LimitExceededError, ScanError, ScanTimeoutError
from ..core.models import ScanStatus
from ..core.scanner import Scanner

logger = logging.getLogger("clamav_rest.api")

router = APIRouter()

UPLOAD_CHUNK_SIZE = 1024 * 1024  # 1 MB chunks
# Allowance for multipart boundaries and headers on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class ThreatModel(BaseModel):
    """A detected virus or malware."""

    name: str = Field(..., description="Virus/malware name")
    file: str = Field(..., description="File path within the upload")
    file_hash: str | None = Field(None, description="SHA256 hash of the infected file")
    severity: str = Field(ClamavRestConstants.SEVERITY_CRITICAL, description="Always 'critical' for malware")


class ScanResponse(BaseModel):
    """Response model for scan requests."""

    status: str = Field(..., description="clean, infected or error")
    threats: list[ThreatModel] = Field(default_factory=list)
    scanned_files: int = 0
    scan_time_ms: int = 0
    error: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    clamav_version: str | None = None
    db_version: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sanitize_filename(filename: str | None) -> str:
    """Make a client-supplied filename safe to log.

    Control characters are replaced with ``_`` and the length is capped.
    """
    if not filename:
        return "<unnamed>"
    max_len = ClamavRestConstants.MAX_LOGGED_FILENAME
    if len(filename) > max_len:
        filename = filename[:max_len] + "..."
    return "".join("_" if ord(ch) < 32 or ord(ch) == 127 else ch for ch in filename)


def _error_response(status_code: int, message: str) -> JSONResponse:
    """Build an error body. *message* must be generic, never internal detail."""
    body = ScanResponse(status=ScanStatus.ERROR.value, error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _status_code_for(error: ScanError) -> int:
    if isinstance(error, LimitExceededError):
        return 422
    if isinstance(error, ScanTimeoutError):
        return 504
    if isinstance(error, EngineError):
        return 502
    return 500


async def _save_upload(upload: UploadFile, max_bytes: int) -> Path | None:
    """Stream *upload* to a temp file. Returns None if it exceeds *max_bytes*."""
    fd, name = tempfile.mkstemp(prefix=ClamavRestConstants.UPLOAD_FILE_PREFIX)
    path = Path(name)
    total_read = 0
    try:
        with os.fdopen(fd, "wb") as f:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                total_read += len(chunk)
                if total_read > max_bytes:
                    path.unlink(missing_ok=True)
                    return None
                f.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return path


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/", response_model=dict)
async def root():
    """Root endpoint."""
    return {"service": "ClamAV REST API", "version": ClamavRestConstants.VERSION, "health": "/health", "scan": "/scan"}


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health_check(request: Request):
    """Health check endpoint, reporting engine and signature versions."""
    scanner: Scanner = request.app.state.scanner
    loop = asyncio.get_running_loop()
    version = await loop.run_in_executor(None, scanner.engine.get_version)
    return HealthResponse(status="ok", clamav_version=version.clamav_version, db_version=version.db_version)


@router.post("/scan", response_model=ScanResponse, response_model_exclude_none=True)
async def scan_upload(request: Request, file: UploadFile | None = File(None, description="File to scan")):
    """Scan an uploaded file. Archives are extracted and their contents scanned."""
    config: Config = request.app.state.config
    scanner: Scanner = request.app.state.scanner
    start_time = time.monotonic()

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        if int(content_length) > config.max_upload_size + MULTIPART_OVERHEAD_BYTES:
            logger.info("Rejected upload: Content-Length %s over limit", content_length)
            return _error_response(413, "File exceeds maximum upload size")

    if file is None:
        logger.info("No file in request")
        return _error_response(400, "No file provided in request")

    safe_filename = sanitize_filename(file.filename)

    try:
        upload_path = await _save_upload(file, config.max_upload_size)
    except OSError as e:
        logger.error("Failed to write temp file for %s: %s", safe_filename, e)
        return _error_response(500, "Server error during file processing")

    if upload_path is None:
        logger.info("Rejected %s: exceeds max upload size", safe_filename)
        return _error_response(413, "File exceeds maximum upload size")

    try:
        logger.info("Received file: %s (%d bytes)", safe_filename, upload_path.stat().st_size)

        loop = asyncio.get_running_loop()
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            result = await loop.run_in_executor(executor, scanner.scan_file, upload_path)

    except ScanError as e:
        # Full diagnostics stay in the server log
        logger.warning(
            "Scan failed for %s: %s during %s: %s",
            safe_filename,
            e.kind.value,
            e.stage.value if e.stage else "unknown",
            e.diagnostic,
        )
        return _error_response(_status_code_for(e), e.public_message)

    finally:
        upload_path.unlink(missing_ok=True)

    scan_time_ms = int((time.monotonic() - start_time) * 1000)
    logger.info(
        "Scan completed: %s - %s (%d threats, %d files, %dms)",
        safe_filename,
        result.status.value,
        len(result.threats),
        result.scanned_files,
        scan_time_ms,
    )

    return ScanResponse(
        status=result.status.value,
        threats=[ThreatModel(**t.to_dict()) for t in result.threats],
        scanned_files=result.scanned_files,
        scan_time_ms=scan_time_ms,
    )
