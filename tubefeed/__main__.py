"""Run the feed API with uvicorn (``python -m tubefeed`` or ``tubefeed``)."""

from __future__ import annotations

import logging
from typing import Any

import uvicorn

from app.config import Settings, settings

logger = logging.getLogger("tubefeed")


def server_options(config: Settings) -> dict[str, Any]:
    """Keyword arguments for ``uvicorn.run`` derived from the settings."""

    return {
        "host": config.server_host,
        "port": config.server_port,
        "reload": config.environment == "development",
        "log_level": "debug" if config.environment == "development" else "info",
    }


def main() -> None:
    options = server_options(settings)
    logging.basicConfig(level=logging.INFO)
    logger.info(
        "Serving %s on http://%s:%d (environment=%s, reload=%s)",
        settings.app_name,
        options["host"],
        options["port"],
        settings.environment,
        options["reload"],
    )
    uvicorn.run("app.main:app", **options)


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
