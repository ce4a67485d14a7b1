"""``python -m blockchat`` / ``blockchat-relay`` entry point.

uvicorn installs SIGINT/SIGTERM handlers that run the app lifespan's
shutdown, which closes every client socket before the process exits.
"""

import uvicorn

from blockchat.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "blockchat.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
