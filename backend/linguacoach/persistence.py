from __future__ import annotations
import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConcurrentUpdateError, NotFoundError, UnauthorizedOwnerError
from .models import Mistake
from .recovery import valid_items

logger = logging.getLogger(__name__)


def normalize_phrase(phrase: str) -> str:
	return re.sub(r"\s+", " ", phrase or "").strip()


def upsert_mistake(
	db: Session,
	user_id: str,
	wrong: str,
	correct: str,
	*,
	rule: Optional[str] = None,
	category: Optional[str] = None,
	explanation: Optional[str] = None,
) -> Mistake:
	"""Record one occurrence of a mistake for a user.

	A (user, wrong phrase) pair maps to exactly one row: repeats increment
	``count`` and refresh ``last_seen`` instead of inserting again. A lost
	insert race is resolved by incrementing the row the other request created.
	"""
	phrase = normalize_phrase(wrong)
	now = datetime.utcnow()
	row = _find_mistake(db, user_id, phrase)
	if row is None:
		row = Mistake(
			user_id=user_id,
			wrong_phrase=phrase,
			correct_phrase=correct,
			rule=rule,
			category=category,
			explanation=explanation,
			count=1,
			last_seen=now,
		)
		db.add(row)
		try:
			db.commit()
			db.refresh(row)
			return row
		except IntegrityError:
			db.rollback()
			row = _find_mistake(db, user_id, phrase)
			if row is None:
				raise
	row.count = Mistake.count + 1
	row.last_seen = now
	if correct:
		row.correct_phrase = correct
	if rule:
		row.rule = rule
	db.commit()
	db.refresh(row)
	return row


def _find_mistake(db: Session, user_id: str, phrase: str) -> Optional[Mistake]:
	return db.query(Mistake).filter(Mistake.user_id == user_id, Mistake.wrong_phrase == phrase).first()


def record_mistakes(
	db: Session,
	user_id: str,
	items: Any,
	*,
	correct_key: str = "correct",
	default_rule: Optional[str] = None,
) -> List[Mistake]:
	"""Upsert every well-formed mistake in ``items``; malformed entries are skipped."""
	rows = []
	for m in valid_items(items, "wrong", correct_key):
		wrong = normalize_phrase(str(m["wrong"]))
		if not wrong:
			continue
		rows.append(
			upsert_mistake(
				db,
				user_id,
				wrong,
				str(m[correct_key]),
				rule=m.get("rule") or default_rule,
				category=m.get("category"),
				explanation=m.get("explanation"),
			)
		)
	return rows


def make_turn(role: str, content: str, **extra: Any) -> Dict[str, Any]:
	turn: Dict[str, Any] = {"role": role, "content": content, "timestamp": datetime.utcnow().isoformat()}
	turn.update({k: v for k, v in extra.items() if v is not None})
	return turn


def append_turns(
	db: Session,
	row: Any,
	list_attr: str,
	turns: Iterable[Dict[str, Any]],
	*,
	expected_version: Optional[int] = None,
	**fields: Any,
) -> Any:
	"""Append ``turns`` to ``row.<list_attr>`` and write ``fields`` in one update.

	The update is conditional on ``expected_version``, the version the caller
	read when it loaded the row. Commits in between expire ``row``, so callers
	that commit before writing must capture it up front. When another request
	wrote first, nothing is written and ``ConcurrentUpdateError`` is raised.
	"""
	model = type(row)
	version = row.version if expected_version is None else expected_version
	values: Dict[str, Any] = {
		list_attr: [*(getattr(row, list_attr) or []), *turns],
		"version": version + 1,
		**fields,
	}
	result = db.execute(
		update(model)
		.where(model.id == row.id, model.version == version)
		.values(**values)
		.execution_options(synchronize_session=False)
	)
	if result.rowcount != 1:
		db.rollback()
		logger.warning("concurrent update on %s %s (version %d)", model.__tablename__, row.id, version)
		raise ConcurrentUpdateError(f"{model.__tablename__} {row.id} changed since version {version}")
	db.commit()
	db.refresh(row)
	return row


def get_owned(db: Session, model: Any, row_id: str, user_id: str, label: str) -> Any:
	"""Load ``model`` by id, raising 404 when missing and 401 when another user owns it."""
	row = db.get(model, row_id)
	if row is None:
		raise NotFoundError(f"{label} not found")
	if row.user_id != user_id:
		raise UnauthorizedOwnerError("User not authorized", detail=f"{model.__tablename__} {row_id} belongs to another user")
	return row
