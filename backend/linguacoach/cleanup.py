from __future__ import annotations
import logging
import sys
from datetime import date, datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import DailyWord

logger = logging.getLogger(__name__)


def clear_daily_word(db: Session, day: Optional[date] = None) -> int:
	"""Delete the stored word for ``day`` (today by default) so the next request regenerates the week."""
	day = day or datetime.utcnow().date()
	res = db.execute(delete(DailyWord).where(DailyWord.date == day.isoformat()))
	db.commit()
	removed = res.rowcount or 0
	if removed:
		logger.info("deleted daily word for %s", day)
	else:
		logger.info("no daily word found for %s", day)
	return removed


def main() -> int:
	from .db import SessionLocal, init_db
	from .log import setup_logging

	setup_logging()
	init_db()
	db = SessionLocal()
	try:
		clear_daily_word(db)
	finally:
		db.close()
	return 0


if __name__ == "__main__":
	sys.exit(main())
