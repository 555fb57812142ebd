"""Module entrypoint to run the FastAPI service with uvicorn.

Example:
    VOICE_SERVICES_PORT=8080 python -m voice_services
"""

from __future__ import annotations

import uvicorn
from uvicorn.config import Config

from voice_services.config import ServiceSettings, configure_logging


def main() -> None:
    settings = ServiceSettings.from_env()
    configure_logging(settings.log_level)
    config = Config(
        app="voice_services.api.server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level,
    )
    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    main()
