"""Entry point to run the data gateway with Uvicorn."""
from __future__ import annotations

import uvicorn

from mozaiks_data.config.settings import load_settings
from mozaiks_data.main import create_app


def main() -> None:
    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
        access_log=True,
        loop="asyncio",
    )


if __name__ == "__main__":
    main()
