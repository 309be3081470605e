"""
Logging Setup — console + rotating file output for the service.
"""
import logging
import os
from logging.handlers import RotatingFileHandler

from storebot.config import get_settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"

_configured = False


def configure_logging() -> None:
    """Attach console and file handlers to the `storebot` logger once."""
    global _configured
    if _configured:
        return

    settings = get_settings()
    root = logging.getLogger("storebot")
    root.setLevel(settings.LOG_LEVEL.upper())

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    try:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, "server.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError as e:
        root.warning("File logging disabled: %s", e)

    _configured = True
