import logging
import os
import sys


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to log output."""

    # ANSI color codes
    grey = "\x1b[38;21m"
    green = "\x1b[32m"
    yellow = "\x1b[33m"
    red = "\x1b[31m"
    bold_red = "\x1b[31;1m"
    orange = "\x1b[38;5;208m"
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: green,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red
    }

    def format(self, record):
        formatted = super().format(record)

        # Only colorize if outputting to terminal
        if sys.stdout.isatty():
            log_color = self.COLORS.get(record.levelno, self.grey)

            # "timestamp - LEVEL - name - message"
            parts = formatted.split(' - ', 3)
            if len(parts) >= 3:
                timestamp = parts[0]
                level = parts[1]
                rest = ' - '.join(parts[2:])
                formatted = f"{self.orange}{timestamp}{self.reset} - {log_color}{level}{self.reset} - {rest}"

        return formatted


LOG_FORMAT = '%(asctime)s - %(levelname)-8s - %(name)s - %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

VALID_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

WEBSOCKET_MODULES = [
    "mercadito_backend.websocket",
    "mercadito_backend.websocket.router",
    "mercadito_backend.websocket.connection_manager",
    "mercadito_backend.websocket.handlers",
    "mercadito_backend.websocket.auth",
    "mercadito_backend.websocket.broadcast",
    "mercadito_backend.websocket.presence",
]

BACKEND_MODULES = [
    "mercadito_backend",
    "mercadito_backend.api",
    "mercadito_backend.repositories",
    "mercadito_backend.business_logic",
    "mercadito_backend.database",
]


def setup_logging():
    """Single colored stdout handler on the root logger, reused by uvicorn."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=LOG_DATEFMT))

    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    for name in ("uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.propagate = False
        uvicorn_logger.setLevel(logging.INFO)


def _level_from_env(name: str, default: str) -> str:
    level = os.environ.get(name, default).upper()
    return level if level in VALID_LEVELS else default


def configure_module_logging() -> str:
    """
    Apply WEBSOCKET_LOG_LEVEL to the relay loggers and BACKEND_LOG_LEVEL to
    the rest of the backend. Returns the websocket level in effect.
    """
    ws_log_level = _level_from_env("WEBSOCKET_LOG_LEVEL", "WARNING")
    backend_log_level = _level_from_env("BACKEND_LOG_LEVEL", "WARNING")

    for module in BACKEND_MODULES:
        logging.getLogger(module).setLevel(getattr(logging, backend_log_level))

    for module in WEBSOCKET_MODULES:
        logging.getLogger(module).setLevel(getattr(logging, ws_log_level))

    # Quiet mode also silences access logs
    if ws_log_level in ["ERROR", "CRITICAL"]:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return ws_log_level


def uvicorn_log_config(level: str) -> dict:
    """dictConfig for uvicorn using the colored formatter."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "colored": {
                "()": ColoredFormatter,
                "fmt": "%(asctime)s - %(levelname)-8s - %(message)s",
                "datefmt": LOG_DATEFMT,
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level.upper(), "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": level.upper(), "propagate": False},
            "uvicorn.access": {"handlers": ["default"], "level": level.upper(), "propagate": False},
        },
    }
