from __future__ import annotations
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Mistake, SentenceHistory, User
from ..persistence import get_owned
from .auth import get_current_user

router = APIRouter(prefix="/mistakes", tags=["mistakes"])


def mistake_out(m: Mistake) -> Dict[str, Any]:
	return {
		"id": m.id,
		"wrongPhrase": m.wrong_phrase,
		"correctPhrase": m.correct_phrase,
		"rule": m.rule,
		"category": m.category,
		"explanation": m.explanation,
		"count": m.count,
		"lastSeen": m.last_seen,
	}


def mistake_stats(db: Session, user_id: str) -> Dict[str, Any]:
	top = (
		db.query(Mistake)
		.filter(Mistake.user_id == user_id)
		.order_by(Mistake.count.desc(), Mistake.last_seen.desc())
		.limit(5)
		.all()
	)
	return {
		"totalMistakes": db.query(Mistake).filter(Mistake.user_id == user_id).count(),
		"totalSentences": db.query(SentenceHistory).filter(SentenceHistory.user_id == user_id).count(),
		"topMistakes": [mistake_out(m) for m in top],
	}


@router.get("")
async def list_mistakes(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	rows = db.query(Mistake).filter(Mistake.user_id == user.id).order_by(Mistake.last_seen.desc()).all()
	return [mistake_out(m) for m in rows]


@router.get("/stats")
async def stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return mistake_stats(db, user.id)


@router.delete("/{mistake_id}")
async def delete_mistake(mistake_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = get_owned(db, Mistake, mistake_id, user.id, "Mistake")
	db.delete(row)
	db.commit()
	return {"msg": "Mistake removed"}
