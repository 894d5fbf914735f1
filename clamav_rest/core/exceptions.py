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

"""ClamAV REST exceptions.

Every failure the scan pipeline can produce has its own exception class
carrying an :class:`ErrorKind`, the structured fields a caller needs to act on
it, and a separate ``diagnostic`` string for server-side logs. Only
``public_message`` may be shown to the client that submitted the file.

Example:
    >>> from clamav_rest.core.scanner import Scanner
    >>> from clamav_rest.core.exceptions import LimitExceededError, ScanTimeoutError
    >>>
    >>> try:
    ...     result = scanner.scan_file("upload.bin")
    ... except LimitExceededError as e:
    ...     print(f"Rejected: {e.public_message}")
    ... except ScanTimeoutError as e:
    ...     print(f"Gave up after {e.timeout}s")
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Taxonomy of scan failures."""

    NOT_AN_ARCHIVE = "not_an_archive"
    TOO_MANY_ENTRIES = "too_many_entries"
    FILE_TOO_LARGE = "file_too_large"
    ARCHIVE_TOO_LARGE = "archive_too_large"
    ESCAPE_ATTEMPT = "escape_attempt"
    SCAN_TIMEOUT = "scan_timeout"
    ENGINE_ERROR = "engine_error"
    HASH_FAILURE = "hash_failure"
    STAGING_FAILURE = "staging_failure"


class ClamavRestError(Exception):
    """Base exception for all ClamAV REST errors."""

    pass


class ScanError(ClamavRestError):
    """Base class for failures raised by the scan pipeline.

    Attributes:
        kind: Taxonomy entry for this failure.
        diagnostic: Internal detail (paths, OS errors, engine output).
            Never forwarded to clients.
        stage: The scan stage reached when the error was raised, set by
            the orchestrator.
    """

    kind: ErrorKind = ErrorKind.STAGING_FAILURE
    public_message: str = "Scan operation failed"

    def __init__(self, message: str, *, diagnostic: str | None = None):
        super().__init__(message)
        self.diagnostic = diagnostic or message
        self.stage = None


class NotAnArchiveError(ScanError):
    """Raised when the input is not a readable archive container.

    Recoverable: the orchestrator stages the file as a single file instead.
    """

    kind = ErrorKind.NOT_AN_ARCHIVE


class LimitExceededError(ScanError):
    """Raised when staging would break a configured size or count limit.

    The upload is rejected and never fully staged.

    Attributes:
        limit: The configured ceiling.
        actual: The value that exceeded it, where known.
    """

    public_message = "File rejected: extraction limits exceeded"

    def __init__(self, message: str, *, limit: int, actual: int | None = None, diagnostic: str | None = None):
        super().__init__(message, diagnostic=diagnostic)
        self.limit = limit
        self.actual = actual

    @property
    def excess(self) -> int | None:
        """How far ``actual`` is over ``limit``, if known."""
        if self.actual is None:
            return None
        return self.actual - self.limit


class TooManyEntriesError(LimitExceededError):
    """Raised when an archive holds more entries than ``max_file_count``."""

    kind = ErrorKind.TOO_MANY_ENTRIES
    public_message = "File rejected: archive contains too many files"


class FileTooLargeError(LimitExceededError):
    """Raised when a single file exceeds ``max_single_file_size``.

    This can indicate:
    - An archive entry whose declared size is over the limit
    - An entry whose header understates its real size
    - A non-archive upload over the limit
    """

    kind = ErrorKind.FILE_TOO_LARGE
    public_message = "File rejected: file exceeds size limit"


class ArchiveTooLargeError(LimitExceededError):
    """Raised when the total extracted size exceeds ``max_extracted_size``."""

    kind = ErrorKind.ARCHIVE_TOO_LARGE
    public_message = "File rejected: archive exceeds total size limit"


class PathEscapeError(ScanError):
    """Raised for an archive entry that would land outside the staging directory.

    Caught per entry by the extractor; the entry is skipped.
    """

    kind = ErrorKind.ESCAPE_ATTEMPT


class ScanTimeoutError(ScanError):
    """Raised when the engine does not finish before the deadline.

    Attributes:
        timeout: The deadline, in seconds.
    """

    kind = ErrorKind.SCAN_TIMEOUT
    public_message = "Scan timed out"

    def __init__(self, timeout: float, *, diagnostic: str | None = None):
        super().__init__(f"scan timed out after {timeout:g}s", diagnostic=diagnostic)
        self.timeout = timeout


class EngineError(ScanError):
    """Raised when clamdscan fails for a reason other than a detection.

    This can indicate:
    - Exit code 2 (clamd unreachable, bad arguments, internal fault)
    - Any unexpected exit code
    - clamdscan missing or impossible to spawn (``exit_code`` is None)

    Attributes:
        exit_code: Process exit status, or None if it never ran.
        raw_output: Combined engine output, kept for diagnostics only.
    """

    kind = ErrorKind.ENGINE_ERROR

    def __init__(self, message: str, *, exit_code: int | None = None, raw_output: str = ""):
        super().__init__(message, diagnostic=f"{message}: {raw_output}" if raw_output else message)
        self.exit_code = exit_code
        self.raw_output = raw_output


class HashError(ScanError):
    """Raised when a detected file cannot be hashed. Never fatal to the scan."""

    kind = ErrorKind.HASH_FAILURE


class StagingError(ScanError):
    """Raised when the staging directory cannot be created or written.

    This typically indicates:
    - A full or read-only temp filesystem
    - The upload disappearing before it was staged
    """

    kind = ErrorKind.STAGING_FAILURE
