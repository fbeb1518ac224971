from __future__ import annotations

import os

import uvicorn

from volunteer_eval.infrastructure.config import get_settings
from volunteer_eval.infrastructure.logging import configure_logging


def main() -> None:
    settings = get_settings()
    configure_logging(settings)

    uvicorn.run(
        "volunteer_eval.web.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=settings.app.is_development,
    )


if __name__ == "__main__":
    main()
