import logging
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from perfreview.core.config import settings


class ServiceJsonFormatter(JsonFormatter):
    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        if log_record.get("level"):
            log_record["level"] = log_record["level"].upper()
        else:
            log_record["level"] = record.levelname


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    root = logging.getLogger()

    # uvicorn --reload and repeated app construction in tests call this more than once
    for handler in list(root.handlers):
        if getattr(handler, "_perfreview", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._perfreview = True
    use_json = settings.LOG_JSON if json_output is None else json_output
    if use_json:
        handler.setFormatter(ServiceJsonFormatter("%(timestamp) %(level) %(name) %(message)"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))

    root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
