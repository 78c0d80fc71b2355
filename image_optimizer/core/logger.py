import inspect
import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from loguru._defaults import LOGURU_FORMAT

from .config import settings


class InterceptHandler(logging.Handler):
    """
    Intercepts standard logging and forwards it to Loguru with proper context.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.bind(logger_name=record.name).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def setup_logging(
    level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configures logging for both stdlib and Loguru.

    Arguments left as None fall back to the LOG_LEVEL, JSON_LOGS and LOG_FILE
    settings.
    """
    level = (level or settings.LOG_LEVEL).upper()
    json_logs = settings.JSON_LOGS if json_logs is None else json_logs
    log_file = log_file or settings.LOG_FILE

    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(level)

    for name in logging.root.manager.loggerDict.keys():
        log = logging.getLogger(name)
        log.handlers.clear()
        log.propagate = True

    handlers = [{
        "sink": sys.stdout,
        "level": level,
        "serialize": json_logs,
        "backtrace": True,
        "diagnose": level == "DEBUG",
        "format": LOGURU_FORMAT,
    }]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append({
            "sink": str(path),
            "level": level,
            "serialize": json_logs,
            "rotation": "100 MB",
            "retention": "30 days",
            "compression": "zip",
            "encoding": "utf-8",
            "backtrace": False,
            "diagnose": False,
            "format": (
                "{message}"
                if json_logs
                else "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[logger_name]}:{function}:{line} - {message}"
            ),
        })

    logger.configure(handlers=handlers, extra={"logger_name": "image_optimizer"})
    logger.info("Logging initialized.")
