import logging
import sys
from datetime import datetime, timezone
from typing import Union

from pythonjsonlogger import jsonlogger

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "mcp", "uvicorn.access")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record with ``timestamp``, ``level``, ``name`` and ``message``.

    Keys passed through ``extra=`` (``session_id``, ``thread_id``...) are
    emitted as top-level fields.
    """
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        # format fields missing from the record arrive here as None
        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(timespec="milliseconds")
        log_record["level"] = (log_record.get("level") or record.levelname).upper()


def setup_logging(level: Union[int, str] = logging.INFO, service_name: str = "agent-gateway") -> None:
    """Send every log record to stdout as JSON.

    Replaces any handlers already on the root logger, so calling it again
    (e.g. on app reload) does not duplicate output.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            json_ensure_ascii=False,
            static_fields={"service": service_name},
        )
    )
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)


def quiet_noisy_loggers(*names: str) -> None:
    """Raise third-party loggers to WARNING so request bodies stay out of the logs."""
    for name in names or NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


logger = logging.getLogger("agent_gateway")
