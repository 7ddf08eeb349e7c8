from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..llm_client import ContentGenerator, get_content_generator
from ..models import TutorSession, User
from ..persistence import append_turns, make_turn
from ..quota import check_quota, increment_usage
from .auth import get_current_user

router = APIRouter(prefix="/tutor", tags=["tutor"])

SESSION_WINDOW = timedelta(hours=1)
CONTEXT_MESSAGES = 6


class HistoryMessage(BaseModel):
	role: str
	content: str


class TutorChatRequest(BaseModel):
	message: Optional[str] = None
	history: List[HistoryMessage] = Field(default_factory=list)


def build_tutor_prompt(message: str, history: List[Dict[str, Any]]) -> str:
	context = ""
	recent = history[-CONTEXT_MESSAGES:]
	if recent:
		lines = [f"{'User' if m.get('role') == 'user' else 'AI'}: {m.get('content', '')}" for m in recent]
		context = "Previous conversation for context:\n" + "\n".join(lines) + "\n"
	return (
		"You are a helpful, friendly, and knowledgeable AI English Tutor.\n"
		f"{context}\n"
		f"User: \"{message}\"\n\n"
		"Respond to the user naturally. Correct any grammar mistakes if they are significant, "
		"but prioritize keeping the conversation flowing.\n"
		"If you correct a mistake, do it gently at the end of your response.\n"
		"Keep your response concise and engaging."
	)


def active_session(db: Session, user_id: str, now: Optional[datetime] = None) -> Optional[TutorSession]:
	"""Most recent session touched within the last hour, if any."""
	now = now or datetime.utcnow()
	return (
		db.query(TutorSession)
		.filter(TutorSession.user_id == user_id, TutorSession.last_updated > now - SESSION_WINDOW)
		.order_by(TutorSession.last_updated.desc())
		.first()
	)


@router.post("/chat")
async def chat(
	req: TutorChatRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	message = (req.message or "").strip()
	if not message:
		raise ValidationError("Please provide a message")
	check_quota(db, user)

	session = active_session(db, user.id)
	version = session.version if session else 0
	if req.history:
		history = [m.model_dump() for m in req.history]
	else:
		history = list(session.messages) if session else []

	reply = await generate(build_tutor_prompt(message, history))
	increment_usage(db, user.id)

	if session is None:
		session = TutorSession(user_id=user.id, messages=[])
		db.add(session)
		db.commit()
		db.refresh(session)
	append_turns(
		db,
		session,
		"messages",
		[make_turn("user", message), make_turn("ai", reply)],
		expected_version=version,
		last_updated=datetime.utcnow(),
	)
	return {"reply": reply, "sessionId": session.id}
