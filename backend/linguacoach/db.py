from __future__ import annotations
import logging
import time

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql import text
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url or "sqlite:///./linguacoach.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


def init_db(retries: int | None = None, delay: float | None = None) -> bool:
	"""Connect and create tables, retrying the initial connection with backoff.

	Returns True once the schema is in place. When every attempt fails the
	last error is raised outside production; in production it is logged and
	False is returned so the process keeps serving (requests then fail
	individually).
	"""
	# Models must be imported so their tables are registered on Base
	from . import models  # noqa: F401

	attempts = (settings.db_connect_retries if retries is None else retries) + 1
	delay = settings.db_connect_retry_seconds if delay is None else delay
	last_error: OperationalError | None = None
	for attempt in range(attempts):
		try:
			with engine.connect() as conn:
				conn.execute(text("SELECT 1"))
			Base.metadata.create_all(bind=engine)
			logger.info("database ready (%s)", engine.url.render_as_string(hide_password=True))
			return True
		except OperationalError as err:
			last_error = err
			if attempt + 1 < attempts:
				wait = delay * (2 ** attempt)
				logger.warning("database connection attempt %d/%d failed; retrying in %.1fs", attempt + 1, attempts, wait)
				time.sleep(wait)
	logger.error("database unavailable after %d attempts: %s", attempts, last_error)
	if not settings.is_production:
		raise last_error
	return False
