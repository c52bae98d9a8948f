# lyceum/utils/logging_config.py
"""
Logging setup shared by the web app and the CLI commands.

Handlers are attached to the root logger so module-level loggers
(``logging.getLogger(__name__)``) and ``app.logger`` emit through the same
pipeline. Calling ``setup_logging`` again replaces the handlers it installed.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

_HANDLER_MARKER = "_lyceum_handler"

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line, including ``extra`` fields."""

    def __init__(self, app_name=None):
        super().__init__()
        self.app_name = app_name

    def format(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.app_name:
            payload["app"] = self.app_name
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def _build_formatter(app):
    if str(app.config.get("LOG_FORMAT", "text")).lower() == "json":
        return JsonFormatter(app_name=app.config.get("APP_NAME"))
    return logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")


def _remove_installed_handlers(logger):
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(app):
    """Configure console and rotating-file logging from the app config."""
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = _build_formatter(app)

    root_logger = logging.getLogger()
    _remove_installed_handlers(root_logger)
    root_logger.setLevel(level)

    handlers = []
    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        handlers.append(logging.StreamHandler())

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        try:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    os.path.join(log_dir, app.config.get("LOG_FILE_NAME", "lyceum.log")),
                    maxBytes=app.config.get("LOG_FILE_MAX_BYTES", 10485760),
                    backupCount=app.config.get("LOG_FILE_BACKUP_COUNT", 10),
                    encoding="utf-8",
                )
            )
        except OSError as exc:
            logging.getLogger(__name__).warning("File logging disabled, cannot open %s: %s", log_dir, exc)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARKER, True)
        root_logger.addHandler(handler)

    # Let app.logger records flow to the root handlers instead of Flask's default one
    app.logger.setLevel(level)
    app.logger.propagate = True
    _remove_installed_handlers(app.logger)
    return root_logger
