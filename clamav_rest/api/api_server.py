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
Standalone REST API server for the ClamAV REST service.

Provides a convenience ``run_server()`` entry-point around uvicorn. All
endpoints and Pydantic models live in ``router.py``.
"""

from ..config.config import Config


def run_server(
    config: Config | None = None,
    host: str | None = None,
    port: int | None = None,
    reload: bool = False,
) -> None:
    """Run the API server.

    Args:
        config: Service configuration; read from the environment if omitted.
        host: Host to bind to, overriding the configuration.
        port: Port to bind to, overriding the configuration.
        reload: Enable auto-reload for development. The app is then rebuilt
            from the environment on every reload.
    """
    import uvicorn

    from .api import create_app

    config = config or Config.from_env()
    host = host or config.host
    port = port or config.port

    if reload:
        uvicorn.run(
            "clamav_rest.api.api:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            timeout_keep_alive=config.idle_timeout_seconds,
        )
        return

    uvicorn.run(create_app(config), host=host, port=port, timeout_keep_alive=config.idle_timeout_seconds)


if __name__ == "__main__":
    run_server()
