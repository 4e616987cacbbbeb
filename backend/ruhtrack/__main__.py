from __future__ import annotations

import uvicorn

from .config import settings
from .log import configure_logging


def main() -> None:
    configure_logging(settings.log_level)
    uvicorn.run("ruhtrack.main:app", host=settings.host, port=settings.port, reload=False, log_config=None)


if __name__ == "__main__":
    main()
