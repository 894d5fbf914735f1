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
Bounded extraction of uploaded archives into a staging directory.

Extracts ZIP and TAR (gz/bz2/xz) archives with safety limits (entry count,
per-file size, total size) and path traversal prevention, and stages
non-archive uploads as a single file under a fixed name.

Declared entry sizes are checked before any byte is written, but archive
headers can lie: every write goes through :func:`copy_bounded`, which checks
the bytes actually written.
"""

import copy
import errno
import logging
import lzma
import os
import stat
import sys
import tarfile
import zipfile
import zlib
from pathlib import Path
from typing import BinaryIO

from ...config.config import ScanConfiguration
from ...config.constants import ClamavRestConstants
from ..exceptions import (
    ArchiveTooLargeError,
    FileTooLargeError,
    NotAnArchiveError,
    PathEscapeError,
    StagingError,
    TooManyEntriesError,
)

logger = logging.getLogger(__name__)

# Errors raised while reading a damaged container or entry stream.
# gzip.BadGzipFile and bz2 stream errors are OSError subclasses.
_CORRUPT_ARCHIVE_ERRORS = (
    zipfile.BadZipFile,
    tarfile.TarError,
    zlib.error,
    lzma.LZMAError,
    EOFError,
    OSError,
)

# Entry layouts the staging filesystem cannot represent: overlong names and
# file/directory collisions
_ENTRY_LAYOUT_ERRNOS = frozenset({errno.ENAMETOOLONG, errno.EEXIST, errno.EISDIR, errno.ENOTDIR})


def copy_bounded(source: BinaryIO, destination: Path, max_bytes: int) -> int:
    """Copy *source* into a new file at *destination*, writing at most *max_bytes*.

    Reads up to ``max_bytes + 1`` bytes so an oversized source is detected
    without reading it to the end. On overflow the partial file is removed.

    Args:
        source: Readable binary stream
        destination: Path of the file to create
        max_bytes: Largest number of bytes allowed

    Returns:
        Number of bytes written

    Raises:
        FileTooLargeError: More than *max_bytes* bytes were available
        StagingError: The destination could not be created or written

    Errors raised while *reading* the source propagate unchanged.
    """
    remaining = max_bytes + 1
    written = 0

    try:
        dst = open(destination, "wb")
    except OSError as e:
        raise StagingError(f"failed to create {destination.name}", diagnostic=f"{destination}: {e}") from e

    with dst:
        while remaining > 0:
            chunk = source.read(min(ClamavRestConstants.COPY_CHUNK_SIZE, remaining))
            if not chunk:
                break
            try:
                dst.write(chunk)
            except OSError as e:
                raise StagingError(f"failed to write {destination.name}", diagnostic=f"{destination}: {e}") from e
            written += len(chunk)
            remaining -= len(chunk)

    if written > max_bytes:
        destination.unlink(missing_ok=True)
        raise FileTooLargeError(
            f"{destination.name} exceeded size limit during extraction",
            limit=max_bytes,
            actual=written,
        )

    return written


def stage_single_file(file_path: Path, target_dir: Path, max_bytes: int) -> int:
    """Stage a non-archive upload as ``<target_dir>/file``.

    The original filename never reaches the staging directory.

    Returns:
        Number of files staged (always 1)
    """
    file_path = Path(file_path)
    try:
        size = file_path.stat().st_size
    except OSError as e:
        raise StagingError("failed to stat upload", diagnostic=f"{file_path}: {e}") from e

    if size > max_bytes:
        raise FileTooLargeError(
            f"file exceeds size limit ({size} > {max_bytes} bytes)",
            limit=max_bytes,
            actual=size,
        )

    destination = Path(target_dir) / ClamavRestConstants.SINGLE_FILE_NAME
    try:
        src = open(file_path, "rb")
    except OSError as e:
        raise StagingError("failed to open upload", diagnostic=f"{file_path}: {e}") from e

    with src:
        try:
            copy_bounded(src, destination, max_bytes)
        except OSError as e:
            raise StagingError("failed to read upload", diagnostic=f"{file_path}: {e}") from e

    return 1


class ArchiveExtractor:
    """
    Extracts archive entries into a staging directory under fixed limits.

    Stateless apart from its configuration, so one instance can serve any
    number of concurrent scans.
    """

    def __init__(self, configuration: ScanConfiguration):
        self.configuration = configuration

    def extract(self, archive_path: Path, target_dir: Path) -> int:
        """
        Extract *archive_path* into *target_dir*.

        Args:
            archive_path: Candidate archive
            target_dir: Existing, empty staging directory

        Returns:
            Number of entries processed, directory and skipped entries included

        Raises:
            NotAnArchiveError: Input is not a readable ZIP or TAR container
            TooManyEntriesError, FileTooLargeError, ArchiveTooLargeError:
                A limit was exceeded
            StagingError: Writing to the staging directory failed
        """
        archive_path = Path(archive_path)
        root = Path(os.path.realpath(target_dir))

        if zipfile.is_zipfile(archive_path):
            return self._extract_zip(archive_path, root)
        if self._is_tarfile(archive_path):
            return self._extract_tar(archive_path, root)
        raise NotAnArchiveError(f"{archive_path.name} is not a supported archive")

    @staticmethod
    def _is_tarfile(path: Path) -> bool:
        try:
            return tarfile.is_tarfile(path)
        except (OSError, EOFError, tarfile.TarError):
            return False

    @staticmethod
    def _is_zip_symlink(info: zipfile.ZipInfo) -> bool:
        """Check whether a ZIP entry encodes a symbolic link.

        ZIP archives store Unix file-mode bits in the upper 16 bits of
        ``external_attr``.  A symlink is indicated by the ``S_IFLNK`` flag.
        """
        unix_mode = (info.external_attr >> 16) & 0xFFFF
        return unix_mode != 0 and stat.S_ISLNK(unix_mode)

    @staticmethod
    def safe_join(root: Path, name: str) -> Path:
        """
        Join an entry name onto *root* and verify it stays inside.

        Raises:
            PathEscapeError: The normalized path is not a strict descendant of *root*
        """
        candidate = os.path.normpath(os.path.join(root, name))
        if not candidate.startswith(str(root) + os.sep):
            raise PathEscapeError(f"entry {name!r} escapes the staging directory")
        return Path(candidate)

    def _check_entry(self, name: str, declared_size: int, entry_count: int, total_size: int) -> None:
        """Apply the count and declared-size limits to the next entry."""
        limits = self.configuration
        if entry_count > limits.max_file_count:
            raise TooManyEntriesError(
                f"archive contains too many files (limit: {limits.max_file_count})",
                limit=limits.max_file_count,
                actual=entry_count,
            )
        if declared_size > limits.max_single_file_size:
            raise FileTooLargeError(
                f"file {name} exceeds size limit ({declared_size} > {limits.max_single_file_size} bytes)",
                limit=limits.max_single_file_size,
                actual=declared_size,
            )
        if total_size > limits.max_extracted_size:
            raise ArchiveTooLargeError(
                f"archive exceeds total size limit ({limits.max_extracted_size} bytes)",
                limit=limits.max_extracted_size,
                actual=total_size,
            )

    def _make_dir(self, path: Path) -> None:
        try:
            path.mkdir(mode=ClamavRestConstants.DIRECTORY_MODE, parents=True, exist_ok=True)
        except OSError as e:
            if e.errno in _ENTRY_LAYOUT_ERRNOS:
                raise NotAnArchiveError(f"cannot stage directory {path.name!r}", diagnostic=f"{path}: {e}") from e
            raise StagingError("failed to create directory", diagnostic=f"{path}: {e}") from e

    def _write_entry(self, source: BinaryIO, target_path: Path, name: str) -> int:
        """Stage one entry and return the number of bytes actually written."""
        self._make_dir(target_path.parent)
        try:
            return copy_bounded(source, target_path, self.configuration.max_single_file_size)
        except _CORRUPT_ARCHIVE_ERRORS as e:
            raise NotAnArchiveError(f"corrupt archive entry {name!r}", diagnostic=str(e)) from e
        except StagingError as e:
            cause = e.__cause__
            if isinstance(cause, OSError) and cause.errno in _ENTRY_LAYOUT_ERRNOS:
                raise NotAnArchiveError(f"cannot stage entry {name!r}", diagnostic=e.diagnostic) from e
            raise

    def _check_written_total(self, total_written: int) -> None:
        limit = self.configuration.max_extracted_size
        if total_written > limit:
            raise ArchiveTooLargeError(
                f"archive exceeds total size limit ({limit} bytes)",
                limit=limit,
                actual=total_written,
            )

    @staticmethod
    def _unbounded_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
        """Copy *info* with a declared size zipfile will never truncate at.

        zipfile stops reading an entry at its declared size, so an entry that
        understates its size would surface as a CRC error. With the cap lifted,
        copy_bounded sees the real bytes and enforces the size limit itself;
        the CRC is still verified once the real stream ends.
        """
        unbounded = copy.copy(info)
        unbounded.file_size = sys.maxsize
        return unbounded

    @staticmethod
    def _data_offset(zf: zipfile.ZipFile) -> int:
        """Offset of the first ZIP structure, nonzero when bytes precede the archive."""
        return min((info.header_offset for info in zf.infolist()), default=zf.start_dir)

    def _extract_zip(self, archive_path: Path, root: Path) -> int:
        """Extract a ZIP archive."""
        entry_count = 0
        total_size = 0
        total_written = 0

        try:
            zf = zipfile.ZipFile(archive_path, "r")
        except (zipfile.BadZipFile, OSError) as e:
            raise NotAnArchiveError(f"{archive_path.name} is not a valid ZIP archive", diagnostic=str(e)) from e

        with zf:
            prefix = self._data_offset(zf)
            if prefix > 0:
                # Self-extracting stubs and other leading bytes must reach the engine too
                raise NotAnArchiveError(
                    f"{archive_path.name} has {prefix} bytes before its ZIP data",
                    diagnostic=f"{archive_path}: ZIP data starts at offset {prefix}",
                )

            for info in zf.infolist():
                entry_count += 1
                total_size += info.file_size
                self._check_entry(info.filename, info.file_size, entry_count, total_size)

                try:
                    target_path = self.safe_join(root, info.filename)
                except PathEscapeError as e:
                    logger.debug("Skipping entry: %s", e)
                    continue

                if self._is_zip_symlink(info):
                    logger.debug("Skipping symlink entry %r", info.filename)
                    continue

                if info.is_dir():
                    self._make_dir(target_path)
                    continue

                try:
                    source = zf.open(self._unbounded_info(info))
                except (RuntimeError, NotImplementedError, *_CORRUPT_ARCHIVE_ERRORS) as e:
                    # Encrypted or unsupported entries: let clamd inspect the raw archive
                    raise NotAnArchiveError(f"cannot read ZIP entry {info.filename!r}", diagnostic=str(e)) from e
                with source:
                    total_written += self._write_entry(source, target_path, info.filename)
                self._check_written_total(total_written)

        logger.debug("Extracted %d entries (%d declared bytes) from ZIP", entry_count, total_size)
        return entry_count

    def _extract_tar(self, archive_path: Path, root: Path) -> int:
        """Extract a TAR-based archive, members read in stream order."""
        entry_count = 0
        total_size = 0

        try:
            tf = tarfile.open(archive_path, "r:*")
        except _CORRUPT_ARCHIVE_ERRORS as e:
            raise NotAnArchiveError(f"{archive_path.name} is not a valid TAR archive", diagnostic=str(e)) from e

        with tf:
            try:
                for member in tf:
                    entry_count += 1
                    declared = member.size if member.isfile() else 0
                    total_size += declared
                    self._check_entry(member.name, declared, entry_count, total_size)

                    try:
                        target_path = self.safe_join(root, member.name)
                    except PathEscapeError as e:
                        logger.debug("Skipping entry: %s", e)
                        continue

                    if member.isdir():
                        self._make_dir(target_path)
                        continue

                    if not member.isfile():
                        # Links, devices and FIFOs are never staged
                        logger.debug("Skipping non-regular member %r", member.name)
                        continue

                    source = tf.extractfile(member)
                    if source is None:
                        continue
                    with source:
                        self._write_entry(source, target_path, member.name)
            except _CORRUPT_ARCHIVE_ERRORS as e:
                raise NotAnArchiveError(f"corrupt TAR archive {archive_path.name}", diagnostic=str(e)) from e

        logger.debug("Extracted %d entries (%d declared bytes) from TAR", entry_count, total_size)
        return entry_count
