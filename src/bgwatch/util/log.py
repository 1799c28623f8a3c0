# src/bgwatch/util/log.py: Structured JSON logger.
# Centralised logging setup. Records are rendered as JSON lines by default and
# carry the port of the server instance being worked on (set through a
# contextvar by the launcher), so the interleaved lines of a blue/green restart
# can be told apart.

import logging
import json
import contextvars
import sys

port_context = contextvars.ContextVar('port_context', default=None)

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "port": port_context.get(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)

def get_logger(name):
    return logging.getLogger(name)

def setup_logging(settings) -> None:
    """Configure the package logger from the `logging` section of the config."""
    logger = logging.getLogger("bgwatch")
    logger.setLevel(settings.level.upper())
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if settings.json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    logger.addHandler(handler)
