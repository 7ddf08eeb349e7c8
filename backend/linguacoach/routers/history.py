from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import DebateSession, InterviewSession, Mistake, RoleplaySession, SentenceHistory, TutorSession, User
from .auth import get_current_user
from .mistakes import mistake_out

router = APIRouter(prefix="/history", tags=["history"])

PRACTICE_LIMIT = 20
SESSION_LIMIT = 10
PREVIEW_CHARS = 50


def preview(turns: Optional[List[Dict[str, Any]]], empty: str = "Empty session") -> str:
	if not turns:
		return empty
	return str(turns[0].get("content") or "")[:PREVIEW_CHARS] + "..."


def _entry(row_id: str, kind: str, date: datetime, title: str, text: str, details: Dict[str, Any]) -> Dict[str, Any]:
	return {"id": row_id, "type": kind, "date": date, "title": title, "preview": text, "details": details}


def _recent(db: Session, model: Any, user_id: str, order_col: Any, limit: int) -> List[Any]:
	return db.query(model).filter(model.user_id == user_id).order_by(order_col.desc()).limit(limit).all()


@router.get("")
async def merged_history(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	entries: List[Dict[str, Any]] = []

	for p in _recent(db, SentenceHistory, user.id, SentenceHistory.created_at, PRACTICE_LIMIT):
		mistakes = db.query(Mistake).filter(Mistake.id.in_(p.mistake_ids or [])).all() if p.mistake_ids else []
		entries.append(_entry(p.id, "practice", p.created_at, "Grammar Check", p.original[:PREVIEW_CHARS] + "...", {
			"original": p.original,
			"corrected": p.corrected,
			"mistakes": [mistake_out(m) for m in mistakes],
		}))

	for i in _recent(db, InterviewSession, user.id, InterviewSession.created_at, SESSION_LIMIT):
		entries.append(_entry(i.id, "interview", i.created_at, "Interview Session", preview(i.messages), {
			"title": i.title,
			"interviewType": i.interview_type,
			"messages": i.messages,
			"finalFeedback": i.final_feedback,
		}))

	for r in _recent(db, RoleplaySession, user.id, RoleplaySession.created_at, SESSION_LIMIT):
		entries.append(_entry(r.id, "roleplay", r.created_at, f"Roleplay: {r.scenario}", preview(r.messages), {
			"scenario": r.scenario,
			"messages": r.messages,
			"feedback": r.feedback,
		}))

	for t in _recent(db, TutorSession, user.id, TutorSession.created_at, SESSION_LIMIT):
		entries.append(_entry(t.id, "tutor", t.created_at, "AI Tutor Chat", preview(t.messages), {"messages": t.messages}))

	for d in _recent(db, DebateSession, user.id, DebateSession.started_at, SESSION_LIMIT):
		entries.append(_entry(d.id, "debate", d.started_at, f"Debate: {d.topic}", preview(d.turns, "Empty debate"), {
			"topic": d.topic,
			"difficulty": d.difficulty,
			"turns": d.turns,
			"finalFeedback": d.final_feedback,
		}))

	entries.sort(key=lambda e: e["date"], reverse=True)
	return entries
