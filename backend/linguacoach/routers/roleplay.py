from __future__ import annotations
import json
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..llm_client import ContentGenerator, get_content_generator
from ..models import RoleplaySession, User
from ..persistence import make_turn
from ..quota import check_quota, increment_usage
from ..recovery import recover, recover_or, valid_items
from .auth import get_current_user

router = APIRouter(prefix="/roleplay", tags=["roleplay"])

SCENARIOS: Dict[str, Dict[str, str]] = {
	"cafe": {
		"title": "Coffee Shop",
		"basePrompt": "You are a friendly barista at 'Star Beans'.",
		"goal": "Order a drink and confirm payment.",
		"initialMessage": "Hi there! Welcome to Star Beans. What can I get started for you today?",
	},
	"doctor": {
		"title": "Doctor's Appointment",
		"basePrompt": "You are a helpful doctor. The user is a patient.",
		"goal": "Describe symptoms and get a diagnosis.",
		"initialMessage": "Good morning. I see you have an appointment. What seems to be the trouble today?",
	},
	"job_negotiation": {
		"title": "Salary Negotiation",
		"basePrompt": "You are a tough but fair hiring manager.",
		"goal": "Negotiate a higher salary after a job offer.",
		"initialMessage": "We're really excited to offer you the position. The starting salary is $60,000. What are your thoughts?",
	},
	"airport": {
		"title": "Airport Check-in",
		"basePrompt": "You are an airline check-in agent.",
		"goal": "Check in for a flight and handle luggage.",
		"initialMessage": "Next please! Hello, where are you flying to today?",
	},
}

DIFFICULTY_INSTRUCTIONS = {
	"easy": "Speak in short, simple sentences. Speak slowly. Be very helpful and patient.",
	"medium": "Speak naturally like a native speaker. Normal speed.",
	"hard": "Speak fast, use idioms and slang suitable for the context. Be less patient or stricter if the role implies it. Apply real-life pressure.",
}


class RoleplayMessage(BaseModel):
	role: Literal["user", "ai"]
	content: str


class StartRequest(BaseModel):
	scenario: Optional[str] = None


class ChatRequest(BaseModel):
	message: Optional[str] = None
	scenario: Optional[str] = None
	history: List[RoleplayMessage] = Field(default_factory=list)
	difficulty: Literal["easy", "medium", "hard"] = "medium"
	correctionMode: Literal["on", "off"] = "off"


class FeedbackRequest(BaseModel):
	scenario: Optional[str] = None
	history: List[RoleplayMessage] = Field(default_factory=list)


def _scenario(name: Optional[str]) -> Dict[str, str]:
	if not name or name not in SCENARIOS:
		raise ValidationError("Invalid scenario")
	return SCENARIOS[name]


def build_chat_prompt(config: Dict[str, str], req: ChatRequest, message: str) -> str:
	correction = (
		"Provide soft corrections in the \"correction\" field."
		if req.correctionMode == "on"
		else "Ignore the correction field (return null)."
	)
	lines = [f"{'User' if m.role == 'user' else 'Roleplayer'}: {m.content}" for m in req.history]
	return (
		f"Role: {config['basePrompt']}\n"
		f"User's Goal: {config['goal']}\n"
		"Your Task: Roleplay with the user.\n"
		f"- {DIFFICULTY_INSTRUCTIONS[req.difficulty]}\n"
		"- Push the conversation forward towards the goal.\n"
		"- If the user fails or gets stuck, guide them.\n\n"
		"OUTPUT FORMAT: Return a JSON object ONLY.\n"
		"{\n"
		"  \"response\": \"Your spoken reply to the user...\",\n"
		"  \"suggestion\": \"A more native phrase the user could have said instead of their last message (null if perfect)\",\n"
		"  \"correction\": \"Soft grammar correction if needed (null if perfect). Be gentle.\"\n"
		"}\n"
		f"{correction}\n\n"
		"Conversation History:\n"
		+ "".join(line + "\n" for line in lines)
		+ f"User: {message}\nRoleplayer: (JSON)"
	)


def build_feedback_prompt(scenario: str, history: List[Dict[str, Any]]) -> str:
	return (
		f"You are an English communication coach. The user just finished a roleplay scenario: \"{scenario}\".\n"
		f"Here is the transcript:\n{json.dumps(history, ensure_ascii=False)}\n\n"
		"Analyze their performance. Return a JSON object with:\n"
		"1. \"score\" (0-10)\n"
		"2. \"feedback\" (general paragraph)\n"
		"3. \"improvements\" (array of objects: {\"original\": \"...\", \"improved\": \"...\", \"reason\": \"...\"}) "
		"focusing on politeness, vocabulary, and grammar."
	)


@router.get("/scenarios")
async def list_scenarios():
	return [{"id": key, "title": s["title"], "goal": s["goal"]} for key, s in SCENARIOS.items()]


@router.post("/start")
async def start(req: StartRequest, user: User = Depends(get_current_user)):
	config = _scenario(req.scenario)
	return {"message": config["initialMessage"], "scenarioConfig": config}


@router.post("/chat")
async def chat(
	req: ChatRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	message = (req.message or "").strip()
	if not message:
		raise ValidationError("Invalid request")
	config = _scenario(req.scenario)
	check_quota(db, user)

	raw = await generate(build_chat_prompt(config, req, message), True)
	increment_usage(db, user.id)
	# An unparseable reply is still a usable in-character line
	result = recover_or(raw, "object", None)
	if not isinstance(result, dict) or not result.get("response"):
		result = {"response": raw.strip(), "suggestion": None, "correction": None}
	return result


@router.post("/feedback")
async def feedback(
	req: FeedbackRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	_scenario(req.scenario)
	if not req.history:
		raise ValidationError("Conversation is empty")
	history = [m.model_dump() for m in req.history]
	check_quota(db, user)

	raw = await generate(build_feedback_prompt(req.scenario, history), True)
	increment_usage(db, user.id)
	report = recover(raw, "object")
	report["improvements"] = valid_items(report.get("improvements"), "original", "improved")

	session = RoleplaySession(
		user_id=user.id,
		scenario=req.scenario,
		messages=[make_turn(m["role"], m["content"]) for m in history],
		feedback=report,
	)
	db.add(session)
	db.commit()
	return report
