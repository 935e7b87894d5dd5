# bankdesk/shared/logs.py
import logging
import logging.config
import time

from fastapi import Request

from bankdesk.shared.config import settings

access_logger = logging.getLogger("bankdesk.access")

FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def configure_logging() -> None:
    handlers: dict = {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    }
    if settings.LOG_FILE:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "plain",
            "filename": settings.LOG_FILE,
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 3,
        }
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"plain": {"format": FORMAT}},
        "handlers": handlers,
        "loggers": {
            "bankdesk": {"handlers": list(handlers), "level": settings.LOG_LEVEL.upper(), "propagate": False},
        },
    })

async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    access_logger.info(
        "%s %s %s %.1fms",
        request.method, request.url.path, response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response
