"""Entry point for running the Quiz Vault server."""
from __future__ import annotations

import uvicorn

from quizvault.core.config import settings


def main() -> None:
    """Run the server on HOST:PORT."""
    uvicorn.run(
        "quizvault.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level="debug" if settings.DEBUG else "info",
    )


if __name__ == "__main__":
    main()
