"""
Logging setup

One stderr handler on the root logger, installed on the first get_logger()
call. LOG_LEVEL picks the level (default INFO) and LOG_JSON=true switches
to one JSON object per line. Answers go to stdout and never pass through here.
"""

import os
import json
import logging
import datetime as dt

_HANDLER = None


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": dt.datetime.fromtimestamp(record.created, dt.timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _set_level(level):
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _HANDLER.setLevel(logger.level)


def _build_logger(level=None):
    global _HANDLER
    if _HANDLER is not None:
        if level:
            _set_level(level)
        return

    json_mode = os.getenv("LOG_JSON", "false").lower() == "true"

    _HANDLER = logging.StreamHandler()
    if json_mode:
        _HANDLER.setFormatter(JsonFormatter())
    else:
        _HANDLER.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    logging.getLogger().addHandler(_HANDLER)
    _set_level(level or os.getenv("LOG_LEVEL", "INFO"))


def get_logger(name: str = None, level: str = None) -> logging.Logger:
    _build_logger(level)
    return logging.getLogger(name if name else __name__)
