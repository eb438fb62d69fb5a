"""Process-wide logging setup with the payment reference on every record."""

import logging
import sys
from contextvars import ContextVar

from dirttrails.core.config import get_settings


reference_ctx: ContextVar[str] = ContextVar("reference", default="-")


class ContextFilter(logging.Filter):
    """Inject the payment reference being processed into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.reference = reference_ctx.get()
        return True


def configure_logging() -> None:
    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s ref=%(reference)s %(message)s")
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level.upper())
