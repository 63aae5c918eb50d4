"""Logging setup. Everything goes to stderr; stdout belongs to gh."""

import json
import logging
import os
import sys


class JSONFormatter(logging.Formatter):
    def format(self, record):
        entry = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(stream=None, environ=None) -> logging.Logger:
    """Configure the ``gha`` logger from GHA_DEBUG / GHA_LOG_FORMAT.

    Safe to call more than once; the previous handler is replaced.
    """
    environ = os.environ if environ is None else environ
    handler = logging.StreamHandler(stream or sys.stderr)
    if environ.get("GHA_LOG_FORMAT", "").lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("gha: %(levelname)s %(message)s"))

    log = logging.getLogger("gha")
    log.handlers = [handler]
    log.propagate = False
    log.setLevel(logging.DEBUG if environ.get("GHA_DEBUG") else logging.WARNING)
    return log
