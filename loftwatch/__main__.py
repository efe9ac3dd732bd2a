"""Run the Loftwatch API with uvicorn."""

import uvicorn

from loftwatch.core.settings import settings


def main() -> None:
    uvicorn.run(
        "loftwatch.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
