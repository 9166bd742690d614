import io
import logging
import sys
from decimal import Decimal
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime
from typing import Optional

class DotMsFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        ct = datetime.fromtimestamp(record.created)
        if datefmt:
            s = ct.strftime(datefmt)
            ms = int(record.msecs)
            s = s.replace('%f', f'{ms:03d}')
        else:
            s = ct.strftime("%Y-%m-%d %H:%M:%S")
            s += f".{int(record.msecs):03d}"
        return s

# Wrappers are kept alive: a collected TextIOWrapper closes the stdout buffer.
_console_streams: dict[int, io.TextIOWrapper] = {}

def _utf8_stdout():
    """stdout forced to UTF-8 so symbols never raise UnicodeEncodeError on cp1252 consoles."""
    buffer = getattr(sys.stdout, "buffer", None)
    if buffer is None:
        return sys.stdout
    stream = _console_streams.get(id(buffer))
    if stream is None:
        stream = io.TextIOWrapper(buffer, encoding="utf-8", errors="replace", line_buffering=True)
        _console_streams[id(buffer)] = stream
    return stream

def setup_logger(
    name: str,
    log_path: Optional[str | Path] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Console logger plus an optional rotating file under *log_path*."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    # Repeated setup (tests, re-runs) must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = DotMsFormatter(
        '[%(asctime)s] %(levelname)s %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S.%f'
    )

    ch = logging.StreamHandler(_utf8_stdout())
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    return logger

def _format_value(value) -> str:
    if isinstance(value, Decimal):
        return format(value, 'f') if value.is_finite() else str(value)
    if isinstance(value, dict):
        inner = ",".join(f"{k}:{_format_value(v)}" for k, v in value.items())
        return "{" + inner + "}"
    return str(value)

def format_event(event: str, **fields) -> str:
    parts = [f"event={event}"]
    parts.extend(f"{key}={_format_value(value)}" for key, value in fields.items())
    return " ".join(parts)

def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields) -> None:
    """Emit one structured ``event=<name> key=value ...`` line."""
    if logger.isEnabledFor(level):
        logger.log(level, format_event(event, **fields))
