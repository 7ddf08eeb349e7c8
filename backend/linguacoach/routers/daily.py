"""
Word of the day.

Words are generated a week at a time: the first request of a week asks the
model for seven entries and stores one row per date from Monday to Sunday.
Later requests that week are served from the table without an AI call.
"""

from __future__ import annotations
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import MalformedResponseError
from ..llm_client import ContentGenerator, get_content_generator
from ..models import DailyWord, User
from ..quota import check_quota, increment_usage
from ..recovery import excerpt, recover, valid_items
from .auth import get_current_user

router = APIRouter(prefix="/daily", tags=["daily"])

logger = logging.getLogger(__name__)

WEEK_DAYS = 7

WEEKLY_WORDS_PROMPT = """Generate 7 unique, interesting English "Word of the Day" entries for an English learner (one for each day of the week).
Words should be INTERMEDIATE level (B1-B2), NOT advanced or difficult words.
Choose words that are commonly used in daily conversation and at work, easy to remember and practical.
Mix adjectives, verbs and nouns. Avoid rare, academic or overly complex words.

Return STRICT JSON ONLY (an array of 7 objects):
[
  {
    "word": "Confident",
    "pronunciation": "/ˈkɒn.fɪ.dənt/ • adjective",
    "definition": "Feeling or showing certainty about something; self-assured.",
    "hindiMeaning": "आत्मविश्वासी (Aatmavishwasi) - अपने आप पर यकीन रखने वाला",
    "examples": ["She felt confident before the interview.", "He is a confident speaker."]
  }
]"""


def week_start(day: date) -> date:
	"""Monday of the week containing ``day``."""
	return day - timedelta(days=day.weekday())


def daily_word_out(row: DailyWord) -> Dict[str, Any]:
	return {
		"date": row.date,
		"word": row.word,
		"pronunciation": row.pronunciation,
		"definition": row.definition,
		"hindiMeaning": row.hindi_meaning,
		"examples": row.examples or [],
	}


def build_week(entries: List[Dict[str, Any]], monday: date) -> List[DailyWord]:
	rows = []
	for i, entry in enumerate(entries):
		examples = entry.get("examples") or []
		rows.append(
			DailyWord(
				date=(monday + timedelta(days=i)).isoformat(),
				word=str(entry["word"]),
				pronunciation=str(entry.get("pronunciation") or ""),
				definition=str(entry["definition"]),
				hindi_meaning=str(entry.get("hindiMeaning") or ""),
				examples=[str(e) for e in examples] if isinstance(examples, list) else [],
			)
		)
	return rows


async def generate_week(db: Session, generate: ContentGenerator, monday: date) -> List[DailyWord]:
	logger.info("generating daily words for week starting %s", monday)
	raw = await generate(WEEKLY_WORDS_PROMPT)
	entries = valid_items(recover(raw, "array"), "word", "definition")
	if len(entries) != WEEK_DAYS:
		raise MalformedResponseError(f"expected {WEEK_DAYS} words, got {len(entries)}", excerpt=excerpt(raw))
	rows = build_week(entries, monday)
	for row in rows:
		db.merge(row)
	try:
		db.commit()
	except IntegrityError:
		# Another request stored the same week first
		db.rollback()
	return rows


@router.get("/word")
async def word_of_the_day(
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	today = datetime.utcnow().date()
	row = db.get(DailyWord, today.isoformat())
	if row is not None:
		return daily_word_out(row)

	check_quota(db, user)
	rows = await generate_week(db, generate, week_start(today))
	increment_usage(db, user.id)
	row = db.get(DailyWord, today.isoformat()) or rows[0]
	return daily_word_out(row)
