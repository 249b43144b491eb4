"""HTTP process entrypoint."""

from __future__ import annotations

import uvicorn

from volunteer_hub.api.app import create_api
from volunteer_hub.app import create_app
from volunteer_hub.config.logging import configure_logging
from volunteer_hub.config.settings import load_settings


def main() -> None:
    """Run the API server."""

    settings = load_settings()
    configure_logging(settings.log_level)

    api = create_api(create_app(settings))
    uvicorn.run(api, host=settings.api_host, port=settings.api_port, log_config=None)


if __name__ == "__main__":
    main()
