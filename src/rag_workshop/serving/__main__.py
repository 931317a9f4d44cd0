"""Run the API with uvicorn: ``python -m rag_workshop.serving``."""

from __future__ import annotations

import uvicorn

from rag_workshop.config import settings


def main() -> None:
    uvicorn.run(
        "rag_workshop.serving.app:app",
        host="0.0.0.0",
        port=8080,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
