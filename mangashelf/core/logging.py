import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from mangashelf.core.config import settings


class JsonFormatter(logging.Formatter):
    """One JSON object per line; whitelisted extras are copied to the top level."""

    # Ledger context lifted from the record's extra dict; anything else is dropped
    EXTRA_FIELDS = (
        "user_id", "wallet_id", "purchase_id", "subscription_id", "item_id",
        "purchase_type", "payment_method", "tier_id", "amount", "currency",
        "new_balance", "reason", "path", "method", "error",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    formatter = JsonFormatter()
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    handlers = [handler]
    if settings.log_file:
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    root.handlers = handlers
