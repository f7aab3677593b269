from __future__ import annotations

import logging

from tenant_admin.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    resolved = str(level or settings.LOG_LEVEL or "INFO").strip().upper()
    root = logging.getLogger("tenant_admin")
    root.setLevel(getattr(logging, resolved, logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
