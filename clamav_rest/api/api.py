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

"""API module for the ClamAV REST service.

This module provides the FastAPI application factory. The scanner and its
configuration are built once per application and attached to ``app.state``.
"""

from fastapi import FastAPI

from ..config.config import Config
from ..config.constants import ClamavRestConstants
from ..core.engine import ClamdScanEngine
from ..core.scanner import Scanner
from .router import router as api_router


def create_app(config: Config | None = None, scanner: Scanner | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Service configuration; read from the environment if omitted.
        scanner: Pre-built scanner, mainly for tests. Built from *config*
            if omitted.
    """
    config = config or Config.from_env()
    if scanner is None:
        engine = ClamdScanEngine(binary=config.clamdscan_binary)
        scanner = Scanner(config.scan_configuration(), engine=engine)

    app = FastAPI(
        title="ClamAV REST API",
        description="Upload scanning API backed by ClamAV",
        version=ClamavRestConstants.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.config = config
    app.state.scanner = scanner
    app.include_router(api_router)
    return app
