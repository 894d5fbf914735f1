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
ClamAV REST - bounded upload staging and ClamAV scanning service.
"""

try:
    from ._version import __version__
except ImportError:
    __version__ = "0.0.0+unknown"

__author__ = "Cisco Systems, Inc."


def __getattr__(name: str):
    """Lazy-load public API symbols on first access.

    Keeps ``python -m clamav_rest.cli.cli`` from importing FastAPI and the
    rest of the HTTP stack when only the core is needed.
    """
    _lazy_map = {
        "Config": (".config.config", "Config"),
        "ScanConfiguration": (".config.config", "ScanConfiguration"),
        "ClamavRestConstants": (".config.constants", "ClamavRestConstants"),
        "ArchiveExtractor": (".core.extractors.archive_extractor", "ArchiveExtractor"),
        "ClamdScanEngine": (".core.engine", "ClamdScanEngine"),
        "parse_clamav_output": (".core.output_parser", "parse_clamav_output"),
        "Scanner": (".core.scanner", "Scanner"),
        "ScanResult": (".core.models", "ScanResult"),
        "Severity": (".core.models", "Severity"),
        "Threat": (".core.models", "Threat"),
    }
    if name in _lazy_map:
        module_path, attr = _lazy_map[name]
        import importlib

        mod = importlib.import_module(module_path, __package__)
        val = getattr(mod, attr)
        # Cache on the module so __getattr__ is only called once per symbol
        globals()[name] = val
        return val
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Scanner",
    "ScanResult",
    "Threat",
    "Severity",
    "ArchiveExtractor",
    "ClamdScanEngine",
    "parse_clamav_output",
    "Config",
    "ScanConfiguration",
    "ClamavRestConstants",
]
