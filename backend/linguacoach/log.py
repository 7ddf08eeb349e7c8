"""
Logging setup.

Every module logs through ``logging.getLogger(__name__)``; ``setup_logging``
is called once from the application factory.
"""

from __future__ import annotations
import logging
import sys
from typing import Optional

from .settings import settings


LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
	if level is None:
		level = settings.log_level or ("DEBUG" if settings.is_development else "INFO")
	log_level = getattr(logging, level.upper(), logging.INFO)

	root = logging.getLogger()
	root.setLevel(log_level)
	root.handlers.clear()
	handler = logging.StreamHandler(sys.stdout)
	handler.setFormatter(logging.Formatter(LOG_FORMAT))
	root.addHandler(handler)

	# Third-party loggers are noisy at INFO
	logging.getLogger("passlib").setLevel(logging.ERROR)
	logging.getLogger("httpx").setLevel(logging.WARNING)
	logging.getLogger("httpcore").setLevel(logging.WARNING)
	logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
