from __future__ import annotations
import json, logging, sys
from datetime import datetime, timezone
from typing import Any, Dict

# LogRecord attributes that are never copied into the payload as "extra"
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}

class JsonFormatter(logging.Formatter):
    """One JSON object per line; `extra={...}` keys land at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "time": ts.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        payload.update({k: v for k, v in record.__dict__.items() if k not in _RESERVED})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # ids, lists and the odd Path are all fine through str()
        return json.dumps(payload, separators=(",", ":"), default=str)

def get_logger(name: str = "datadeck", level: str = "INFO", structured_json: bool = True) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    # stderr: stdout carries command output (JSON) for the CLI
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        JsonFormatter() if structured_json
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
    return logger

def configure_from_config(cfg) -> logging.Logger:
    """Install the ``datadeck`` handler from the ``[logging]`` section."""
    lc = cfg.logging
    return get_logger("datadeck", level=lc.level, structured_json=lc.structured_json)
