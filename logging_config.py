import logging
import json
from datetime import datetime, timezone

from config import settings

_configured = False


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def setup_logging():
    """Configure the root logger once"""
    global _configured
    logger = logging.getLogger()
    if _configured:
        return logger

    handler = logging.StreamHandler()

    # Use simpler format for development
    if settings.ENVIRONMENT == 'development':
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
    else:
        formatter = StructuredFormatter()

    handler.setFormatter(formatter)

    level = logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)
    logger.addHandler(handler)
    _configured = True

    return logger
