from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import MalformedResponseError, ValidationError
from ..interview_state import (
	InterviewState,
	TurnResult,
	advance,
	filler_note,
	normalize_type,
	phase_constraint,
	pick_base_question,
	short_circuit,
)
from ..llm_client import ContentGenerator, get_content_generator
from ..models import InterviewSession, User
from ..persistence import append_turns, get_owned, make_turn, record_mistakes
from ..quota import check_quota, increment_usage
from ..recovery import excerpt, recover, recover_or
from ..resume import read_resume
from .auth import get_current_user

router = APIRouter(prefix="/interview", tags=["interview"])

logger = logging.getLogger(__name__)

RESUME_PROMPT_CHARS = 1000
DEFAULT_RULE = "General Grammar Rule"
DEFAULT_REPORT = {"hiringDecision": "Maybe", "overallScore": 50}

Length = Optional[Literal["short", "medium", "long"]]


class QuestionRequest(BaseModel):
	sessionId: Optional[str] = None
	length: Length = None


class EvaluateRequest(BaseModel):
	question: str = ""
	answer: Optional[str] = None
	sessionId: Optional[str] = None
	length: Length = None


class EndRequest(BaseModel):
	sessionId: str


def state_of(session: Optional[InterviewSession]) -> InterviewState:
	if session is None:
		return InterviewState()
	return InterviewState(
		interview_type=normalize_type(session.interview_type),
		phase=session.interview_phase or "intro",
		mood=session.interviewer_mood or "friendly",
		question_count=session.question_count or 0,
	)


def state_fields(state: InterviewState) -> Dict[str, Any]:
	return {
		"interview_phase": state.phase,
		"interviewer_mood": state.mood,
		"question_count": state.question_count,
		"last_updated": datetime.utcnow(),
	}


def session_summary(s: InterviewSession) -> Dict[str, Any]:
	return {"id": s.id, "title": s.title, "createdAt": s.created_at, "lastUpdated": s.last_updated}


def session_out(s: InterviewSession) -> Dict[str, Any]:
	return {
		"id": s.id,
		"title": s.title,
		"resumeContext": s.resume_context,
		"manualContext": s.manual_context,
		"interviewType": s.interview_type,
		"difficulty": s.difficulty,
		"interviewPhase": s.interview_phase,
		"interviewerMood": s.interviewer_mood,
		"questionCount": s.question_count,
		"messages": s.messages or [],
		"finalFeedback": s.final_feedback,
		"createdAt": s.created_at,
		"lastUpdated": s.last_updated,
	}


def build_question_prompt(session: Optional[InterviewSession], state: InterviewState, base_question: str, length: Optional[str]) -> str:
	difficulty = session.difficulty if session is not None else "medium"
	length_rule = "Keep it concise." if length == "short" else ""
	resume = session.resume_context if session is not None else ""
	header = (
		f"Candidate Level: {difficulty}\n"
		f"Interview Phase: {state.phase}\n"
		f"Interview Type: {state.interview_type}\n"
	)
	if resume and (state.phase in ("intro", "technical") or state.interview_type == "hybrid"):
		return (
			"You are a professional Technical Interviewer.\n"
			f"{header}\n"
			f"RESUME CONTEXT:\nCandidate Resume Context: \"{resume[:RESUME_PROMPT_CHARS]}...\"\n\n"
			"Task: Generate a UNIQUE, SPECIFIC question based on the candidate's resume above.\n"
			"- If Intro: ask about a specific project or role summary.\n"
			"- If Technical: pick a specific skill or tool mentioned in the resume and ask a conceptual question about it.\n"
			"- Do NOT ask generic questions like \"Tell me about yourself\".\n"
			"- Use SIMPLE, BASIC vocabulary.\n"
			f"{length_rule}\n"
			"Return ONLY the question string."
		)
	return (
		"You are a professional Interviewer.\n"
		f"{header}\n"
		f"Base Question: \"{base_question}\"\n\n"
		"Task: Rephrase this question naturally to sound like a human interviewer.\n"
		"- Keep the core meaning relevant to the question category.\n"
		"- Use SIMPLE, BASIC vocabulary.\n"
		f"{length_rule}\n"
		"Return ONLY the rephrased question string."
	)


def build_evaluation_prompt(state: InterviewState, difficulty: str, question: str, answer: str, length: Optional[str]) -> str:
	length_rule = "Keep your feedback and better answer concise." if length == "short" else ""
	return (
		"You are an expert interviewer.\n"
		f"Interview Phase: {state.phase}\n"
		f"Interview Type: {state.interview_type}\n"
		f"Candidate Level: {difficulty}\n"
		f"Interviewer Mood: {state.mood}\n\n"
		f"Question: \"{question}\"\n"
		f"Candidate Answer: \"{answer}\"\n"
		f"{length_rule}\n"
		f"{filler_note(answer)}\n\n"
		"TONE RULES:\n"
		"- friendly: encouraging, conversational.\n"
		"- neutral: professional, balanced, objective.\n"
		"- strict: short, direct, challenging.\n\n"
		f"{phase_constraint(state.phase, state.interview_type)}\n\n"
		"Evaluate the answer. Provide a score out of 10, feedback on grammar and tone, "
		"a \"Better Answer\" example and a \"nextQuestion\".\n\n"
		"NEXT QUESTION LOGIC:\n"
		"- Score < 5: ask the SAME question again, rephrased simply.\n"
		"- Score 5-7: ask a standard question for the current phase.\n"
		"- Score > 8: ask a deeper follow-up within the same phase.\n\n"
		"Return STRICT JSON (no markdown, no newlines in strings):\n"
		"{\n"
		"  \"score\": 8,\n"
		"  \"feedback\": \"...\",\n"
		"  \"betterAnswer\": \"...\",\n"
		"  \"nextQuestion\": \"...\",\n"
		"  \"mistakes\": [{\"wrong\": \"...\", \"right\": \"...\", \"rule\": \"...\"}]\n"
		"}"
	)


def build_report_prompt(session: InterviewSession) -> str:
	transcript = "\n".join(
		f"{'Interviewer' if m.get('role') == 'ai' else 'Candidate'}: \"{m.get('content', '')}\""
		for m in (session.messages or [])
	)
	return (
		"You are a Senior Hiring Manager.\n"
		f"Review this entire interview transcript for a \"{session.difficulty or 'medium'}\" level role.\n\n"
		f"TRANSCRIPT:\n{transcript}\n\n"
		"Task: Provide a final hiring assessment as if you are a real human manager talking to a colleague.\n\n"
		"Return STRICT JSON:\n"
		"{\n"
		"  \"hiringDecision\": \"Yes\" | \"Maybe\" | \"No\",\n"
		"  \"decisionReason\": \"Honest explanation. Start with 'If this were a real interview...'\",\n"
		"  \"strengths\": [\"3 key strengths\"],\n"
		"  \"weakAreas\": [\"3 specific weak areas\"],\n"
		"  \"improvementPlan\": \"Specific, actionable advice.\",\n"
		"  \"overallScore\": (1-100)\n"
		"}"
	)


def parse_score(evaluation: Dict[str, Any], raw: str) -> float:
	try:
		return float(evaluation["score"])
	except (KeyError, TypeError, ValueError):
		raise MalformedResponseError("evaluation has no numeric score", excerpt=excerpt(raw))


def _load_session(db: Session, session_id: Optional[str], user: User) -> Optional[InterviewSession]:
	if not session_id:
		return None
	session = get_owned(db, InterviewSession, session_id, user.id, "Session")
	if session.final_feedback is not None:
		raise ValidationError("Interview has already ended")
	return session


# --- Session management ---

@router.post("/start")
async def start_session(
	resume: Optional[UploadFile] = File(None),
	manualContext: str = Form(""),
	interviewType: str = Form("general"),
	difficulty: str = Form("medium"),
	title: Optional[str] = Form(None),
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	resume_text = await read_resume(resume) if resume is not None and resume.filename else ""
	session = InterviewSession(
		user_id=user.id,
		title=(title or "").strip() or "New Interview Session",
		resume_context=resume_text,
		manual_context=manualContext,
		interview_type=normalize_type(interviewType),
		difficulty=difficulty or "medium",
		messages=[],
	)
	db.add(session)
	db.commit()
	db.refresh(session)
	logger.info("interview %s started (%s, resume=%s)", session.id, session.interview_type, bool(resume_text))
	return session_out(session)


@router.get("/history")
async def history(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
	rows = (
		db.query(InterviewSession)
		.filter(InterviewSession.user_id == user.id)
		.order_by(InterviewSession.last_updated.desc())
		.all()
	)
	return [session_summary(s) for s in rows]


@router.get("/session/{session_id}")
async def get_session(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return session_out(get_owned(db, InterviewSession, session_id, user.id, "Session"))


@router.delete("/session/{session_id}")
async def delete_session(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	session = get_owned(db, InterviewSession, session_id, user.id, "Session")
	db.delete(session)
	db.commit()
	return {"msg": "Session removed"}


# --- AI interactions ---

@router.post("/question")
async def next_question(
	req: QuestionRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	check_quota(db, user)
	session = _load_session(db, req.sessionId, user)
	state = state_of(session)
	version = session.version if session is not None else None
	_, base_question = pick_base_question(state)

	question = (await generate(build_question_prompt(session, state, base_question, req.length))).strip()
	increment_usage(db, user.id)

	if session is not None:
		append_turns(
			db, session, "messages", [make_turn("ai", question)], expected_version=version, last_updated=datetime.utcnow()
		)
	return {"question": question, "interviewPhase": state.phase, "interviewerMood": state.mood}


@router.post("/evaluate")
async def evaluate_answer(
	req: EvaluateRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	answer = (req.answer or "").strip()
	if not answer:
		raise ValidationError("Please provide an answer")
	session = _load_session(db, req.sessionId, user)
	state = state_of(session)
	version = session.version if session is not None else None

	canned = short_circuit(answer, state)
	if canned is not None:
		# Scored locally: no model call and no quota
		new_state = advance(state, TurnResult(score=float(canned["score"]), short_circuited=True))
		if session is not None:
			turn = make_turn("user", answer, evaluation={"score": canned["score"]})
			append_turns(db, session, "messages", [turn], expected_version=version, **state_fields(new_state))
		return {**canned, "interviewPhase": new_state.phase, "interviewerMood": new_state.mood}

	check_quota(db, user)
	# Phase and count move before the prompt is built; mood waits for the score
	pending = advance(state, TurnResult(score=0, short_circuited=True))
	difficulty = session.difficulty if session is not None else "medium"
	raw = await generate(build_evaluation_prompt(pending, difficulty, req.question, answer, req.length), True)
	increment_usage(db, user.id)

	evaluation = recover(raw, "object")
	new_state = advance(state, TurnResult(score=parse_score(evaluation, raw)))
	record_mistakes(db, user.id, evaluation.get("mistakes"), correct_key="right", default_rule=DEFAULT_RULE)

	if session is not None:
		turns = [make_turn("user", answer, evaluation=evaluation)]
		if evaluation.get("nextQuestion"):
			turns.append(make_turn("ai", str(evaluation["nextQuestion"])))
		append_turns(db, session, "messages", turns, expected_version=version, **state_fields(new_state))
	return {**evaluation, "interviewPhase": new_state.phase, "interviewerMood": new_state.mood}


@router.post("/end")
async def end_interview(
	req: EndRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	check_quota(db, user)
	session = get_owned(db, InterviewSession, req.sessionId, user.id, "Session")
	version = session.version
	raw = await generate(build_report_prompt(session), True)
	increment_usage(db, user.id)

	report = recover_or(raw, "object", dict(DEFAULT_REPORT))
	# Re-ending recomputes and overwrites the report
	append_turns(
		db, session, "messages", [], expected_version=version, final_feedback=report, last_updated=datetime.utcnow()
	)
	return report
