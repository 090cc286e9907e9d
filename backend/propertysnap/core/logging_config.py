import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from propertysnap.core.config import get_settings

STRUCTURED_EXTRAS = (
    "inspection_id",
    "property_id",
    "checkpoint_id",
    "notification_id",
    "event_type",
)


class JsonFormatter(logging.Formatter):
    """
    Minimal JSON formatter.
    Includes level, message, logger, timestamp, exception and the engine's
    structured extras when present on the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for k in STRUCTURED_EXTRAS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    settings = get_settings()
    level = (level or settings.log_level or "INFO").upper()
    if json_output is None:
        json_output = settings.log_json

    root = logging.getLogger()
    root.setLevel(level)

    # Host shells may call this more than once
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel("WARNING")
    logging.getLogger("httpx").setLevel("WARNING")
    logging.getLogger("PIL").setLevel("WARNING")
