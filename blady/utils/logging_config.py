"""Structured logging: trace_id correlation, optional JSON output, file rotation.

- BLADY_LOG_JSON=1: JSON logs (stderr)
- BLADY_LOG_FILE=/path/to/blady.log: also write to a rotated file (10 MB, 7 days)
- BLADY_LOG_LEVEL=DEBUG: shows prompts and raw LLM responses
"""

import contextvars
import json
import os
import sys
from pathlib import Path

# Context var for the trace_id of the event being handled (set at message entry)
_trace_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="")


def get_trace_id() -> str:
    """Current trace_id for correlation."""
    return _trace_id_ctx.get() or "-"


def set_trace_id(trace_id: str | None) -> contextvars.Token[str]:
    """Set trace_id for the current context. Return token for reset."""
    return _trace_id_ctx.set(trace_id or "")


def reset_trace_id(token: contextvars.Token[str]) -> None:
    """Restore previous trace_id."""
    _trace_id_ctx.reset(token)


def _sink_json(message) -> None:
    """Loguru sink: write one JSON object per line."""
    record = message.record
    payload = {
        "ts": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        "level": record["level"].name,
        "msg": record["message"],
        "trace_id": record["extra"].get("trace_id", "-"),
    }
    for k, v in record["extra"].items():
        if v is not None and v != "" and k not in payload:
            payload[k] = v
    print(json.dumps(payload, ensure_ascii=False, default=str), file=sys.stderr, flush=True)


def _trace_id_filter(record: dict) -> bool:
    """Inject current trace_id into every log record."""
    record["extra"].setdefault("trace_id", _trace_id_ctx.get() or "-")
    return True


def configure_logging(json_logs: bool | None = None, level: str | None = None) -> None:
    """
    Configure loguru once at startup: trace_id in the format, optional JSON sink,
    optional rotated file. json_logs defaults to BLADY_LOG_JSON.
    """
    from loguru import logger

    if json_logs is None:
        json_logs = os.environ.get("BLADY_LOG_JSON", "").strip() in ("1", "true", "yes")

    level = level or os.environ.get("BLADY_LOG_LEVEL", "INFO")
    logger.remove()

    if json_logs:
        logger.add(_sink_json, format="{message}", level=level, filter=_trace_id_filter)
    else:
        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[trace_id]}</cyan> | {name}:{function}:{line} - <level>{message}</level>\n",
            level=level,
            filter=_trace_id_filter,
        )

    log_file = os.environ.get("BLADY_LOG_FILE", "").strip()
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(path),
            rotation="10 MB",
            retention="7 days",
            compression="gz",
            level=level,
            filter=_trace_id_filter,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[trace_id]} | {name}:{function}:{line} - {message}\n",
        )
