from __future__ import annotations
import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..llm_client import ContentGenerator, get_content_generator
from ..models import DebateSession, User
from ..persistence import append_turns, get_owned, make_turn
from ..quota import check_quota, increment_usage, require_quota
from ..recovery import recover_or
from .auth import get_current_user

router = APIRouter(prefix="/debate", tags=["debate"])

logger = logging.getLogger(__name__)

Difficulty = Literal["easy", "medium", "hard"]

DEFAULT_SIDES = ["Agree", "Disagree"]
DEFAULT_ANALYSIS = {"coherenceScore": 0, "strengthScore": 0, "fallacies": [], "feedback": "Keep going!"}
DEFAULT_REPORT = {"logicScore": 0, "vocabularyScore": 0, "fluencyScore": 0, "summary": "Good effort!"}

VOCABULARY_LEVELS = {
	"easy": "- Vocabulary: A2 (Elementary). Simple sentences.",
	"medium": "- Vocabulary: B1/B2 (Intermediate). Professional tone.",
	"hard": "- Vocabulary: C1/C2 (Advanced). Sophisticated and precise.",
}

LENGTH_RULE = (
	"- MAXIMUM LENGTH: 200-400 characters (strictly enforced)\n"
	"- Keep it concise and punchy: short debate turns, not long paragraphs"
)


class Strategy(BaseModel):
	mode: Literal["defend", "attack", "balanced"] = "balanced"
	aggression: float = Field(default=0.5, ge=0, le=1)
	depth: int = Field(default=1, ge=1, le=5)


class InitRequest(BaseModel):
	topic: Optional[str] = None
	difficulty: Difficulty = "medium"


class StartRequest(BaseModel):
	topic: str = Field(min_length=1)
	difficulty: Difficulty = "medium"
	userStance: Optional[str] = None


class TurnRequest(BaseModel):
	sessionId: str
	message: Optional[str] = None
	strategy: Optional[Strategy] = None


class EndRequest(BaseModel):
	sessionId: str


def build_topic_prompt(difficulty: str, rng: Optional[random.Random] = None) -> str:
	if difficulty != "easy":
		return (
			"Generate a controversial but safe topic for an English debate practice session. "
			f"Difficulty: {difficulty}. Return ONLY the topic sentence."
		)
	seed = (rng or random).random()
	return (
		"You are a topic generator for beginner English learners.\n"
		"Generate a completely new, random, simple debate topic.\n"
		f"Random Seed: {seed} (use this to ensure variety).\n"
		"Constraints:\n"
		"- 4-7 words maximum.\n"
		"- Only simple vocabulary (A1 level).\n"
		"- Never generate topics about cats or dogs.\n"
		"- Vary the subject.\n"
		"Return ONLY the topic sentence."
	)


def build_sides_prompt(topic: str) -> str:
	return (
		f"Topic: \"{topic}\"\n"
		"Identify the two opposing sides of this debate.\n"
		"Return JSON ONLY: [\"Side A\", \"Side B\"]\n"
		"Example for \"Cats vs Dogs\": [\"Cats\", \"Dogs\"]\n"
		"Example for \"Homework is bad\": [\"Agree\", \"Disagree\"]"
	)


def build_opening_prompt(topic: str, difficulty: str, stance: Optional[str]) -> str:
	return (
		f"You are debating about \"{topic}\".\n"
		f"Difficulty Level: {difficulty}.\n"
		f"User's Stance: \"{stance or 'Agree'}\".\n\n"
		"Your Goal: argue AGAINST the user's stance.\n\n"
		"CRITICAL CONSTRAINTS:\n"
		f"{LENGTH_RULE}\n"
		"- If difficulty is 'easy', use A2 (Elementary) level English\n"
		"- Use simple, natural everyday words. Avoid complex academic terms\n"
		"- Write 2-4 clear, short sentences\n"
		"- Example: \"I disagree. [Opposite] is better because [1-2 reasons].\"\n\n"
		"Return ONLY your opening statement."
	)


def build_analysis_prompt(topic: str, message: str) -> str:
	return (
		f"Analyze this user argument in a debate about \"{topic}\".\n"
		f"User Argument: \"{message}\"\n\n"
		"Return JSON ONLY:\n"
		"{\n"
		"  \"coherenceScore\": (1-100 integer, how logical?),\n"
		"  \"strengthScore\": (1-100 integer, how strong is the point?),\n"
		"  \"fallacies\": [\"Explain any logical error in very simple English (A2 level), e.g. 'You attacked the person instead of the idea.' Empty array if good.\"],\n"
		"  \"feedback\": \"1 sentence quick tip to improve.\"\n"
		"}"
	)


def strategy_instructions(strategy: Optional[Strategy], difficulty: str) -> str:
	if strategy is None:
		return f"Maintain a {difficulty} vocabulary level."
	return (
		f"STRATEGY MODE: {strategy.mode.upper()}\n"
		f"AGGRESSION LEVEL: {round(strategy.aggression * 100)}%\n"
		f"ANALYSIS DEPTH: Level {strategy.depth}\n\n"
		"BEHAVIOR GUIDELINES:\n"
		"- defend: be polite, find common ground, correct gently.\n"
		"- attack: be sharp, find flaws relentlessly, ask trapping questions.\n"
		"- balanced: mix agreement with constructive counter-points."
	)


def build_rebuttal_prompt(session: DebateSession, turns: List[Dict[str, Any]], strategy: Optional[Strategy]) -> str:
	dialogue = "\n".join(f"{'Opponent' if t['role'] == 'user' else 'You'}: {t['content']}" for t in turns)
	user_turns = [t for t in turns if t["role"] == "user"]
	memory = "\n".join(f"User Turn {i + 1}: \"{t['content']}\"" for i, t in enumerate(user_turns))
	return (
		f"You are debating about \"{session.topic}\".\n\n"
		f"PAST ARGUMENTS (check for contradictions):\n{memory}\n\n"
		f"Current Dialogue:\n{dialogue}\n\n"
		"Your Goal: DIRECTLY respond to the opponent's last point.\n\n"
		f"{strategy_instructions(strategy, session.difficulty)}\n"
		f"{VOCABULARY_LEVELS.get(session.difficulty, VOCABULARY_LEVELS['medium'])}\n\n"
		f"CRITICAL CONSTRAINT:\n{LENGTH_RULE}\n\n"
		"INSTRUCTIONS:\n"
		"1. MEMORY CHECK: if the user contradicted a previous statement, point it out briefly.\n"
		"2. ACKNOWLEDGE: one sentence on their point.\n"
		f"3. COUNTER: apply strategy mode ({strategy.mode if strategy else 'standard'}) in 1-2 sentences.\n\n"
		"Listen and respond. No monologues.\n"
		"Return ONLY your text response."
	)


def build_report_prompt(turns: List[Dict[str, Any]]) -> str:
	arguments = " ".join(t["content"] for t in turns if t["role"] == "user")
	return (
		"Assess the user's debate performance based on these arguments:\n"
		f"\"{arguments}\"\n\n"
		"Return JSON ONLY:\n"
		"{\n"
		"  \"logicScore\": (1-100),\n"
		"  \"vocabularyScore\": (1-100),\n"
		"  \"fluencyScore\": (1-100),\n"
		"  \"summary\": \"2-3 sentences summing up their strengths and weaknesses.\"\n"
		"}"
	)


def parse_sides(raw: str) -> List[str]:
	sides = recover_or(raw, "array", None)
	if not isinstance(sides, list) or len(sides) != 2 or not all(isinstance(s, str) and s.strip() for s in sides):
		return list(DEFAULT_SIDES)
	return [s.strip() for s in sides]


def _with_defaults(value: Any, defaults: Dict[str, Any]) -> Dict[str, Any]:
	if not isinstance(value, dict):
		return dict(defaults)
	return {**defaults, **value}


def debate_out(session: DebateSession) -> Dict[str, Any]:
	return {
		"id": session.id,
		"topic": session.topic,
		"difficulty": session.difficulty,
		"turns": session.turns,
		"finalFeedback": session.final_feedback,
		"startedAt": session.started_at,
		"endedAt": session.ended_at,
	}


@router.post("/init")
async def init_debate(
	req: InitRequest,
	user: User = Depends(require_quota),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	topic = (req.topic or "").strip()
	if not topic:
		topic = (await generate(build_topic_prompt(req.difficulty))).strip().strip('"')
	sides = parse_sides(await generate(build_sides_prompt(topic)))
	increment_usage(db, user.id)
	return {"topic": topic, "sides": sides}


@router.post("/start")
async def start_debate(
	req: StartRequest,
	user: User = Depends(require_quota),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	opening = (await generate(build_opening_prompt(req.topic, req.difficulty, req.userStance))).strip()
	increment_usage(db, user.id)
	session = DebateSession(
		user_id=user.id,
		topic=req.topic.strip(),
		difficulty=req.difficulty,
		turns=[make_turn("ai", opening)],
	)
	db.add(session)
	db.commit()
	db.refresh(session)
	logger.info("debate %s started by %s", session.id, user.id)
	return {"sessionId": session.id, "topic": session.topic, "openingStatement": opening}


@router.post("/turn")
async def debate_turn(
	req: TurnRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	message = (req.message or "").strip()
	if not message:
		raise ValidationError("Please provide your argument")
	session = get_owned(db, DebateSession, req.sessionId, user.id, "Session")
	if session.ended_at is not None:
		raise ValidationError("Debate has already ended")
	version = session.version
	check_quota(db, user)

	analysis = _with_defaults(
		recover_or(await generate(build_analysis_prompt(session.topic, message), True), "object", None),
		DEFAULT_ANALYSIS,
	)
	user_turn = make_turn("user", message, analysis=analysis)
	turns = [*(session.turns or []), user_turn]
	rebuttal = (await generate(build_rebuttal_prompt(session, turns, req.strategy))).strip()
	increment_usage(db, user.id)

	append_turns(db, session, "turns", [user_turn, make_turn("ai", rebuttal)], expected_version=version)
	return {"reply": rebuttal, "feedback": analysis}


@router.post("/end")
async def end_debate(
	req: EndRequest,
	user: User = Depends(require_quota),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	session = get_owned(db, DebateSession, req.sessionId, user.id, "Session")
	version = session.version
	raw = await generate(build_report_prompt(session.turns or []), True)
	increment_usage(db, user.id)
	report = _with_defaults(recover_or(raw, "object", None), DEFAULT_REPORT)
	# Ending again recomputes and overwrites the report
	append_turns(
		db, session, "turns", [], expected_version=version, final_feedback=report, ended_at=datetime.utcnow()
	)
	return report


@router.get("/{session_id}")
async def get_debate(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return debate_out(get_owned(db, DebateSession, session_id, user.id, "Session"))


@router.delete("/{session_id}")
async def delete_debate(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	session = get_owned(db, DebateSession, session_id, user.id, "Session")
	db.delete(session)
	db.commit()
	return {"msg": "Debate removed"}
