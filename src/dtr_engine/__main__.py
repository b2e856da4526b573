"""Entry point for running the application with uvicorn."""

import uvicorn

from dtr_engine.config import settings


def main() -> None:
    """Run the application."""
    uvicorn.run(
        "dtr_engine.api.app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
