"""
Interview progress state machine.

An interview moves ``intro -> <primary phase> -> closing`` as questions are
answered; the primary phase depends on the interview type. A secondary mood
(friendly, neutral, strict) follows the latest score and is only used to set
the tone of later prompts.

Everything here is pure: routes load an ``InterviewState`` from the session
row, call ``advance`` and persist the returned value.
"""

from __future__ import annotations
import random
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

INTERVIEW_TYPES = ("general", "technical", "hr", "behavioral", "hybrid")
PHASES = ("intro", "technical", "behavioral", "hr", "scenario", "closing")
MOODS = ("friendly", "neutral", "strict")

CLOSING_AT = 9
LATE_GAME_AT = 6
LEAVE_INTRO_AT = 2
MIN_ANSWER_WORDS = 15

SKIP_SCORE = 5
SHORT_ANSWER_SCORE = 3

SKIP_PHRASES = (
	"next", "skip", "pass", "don't know", "dont know", "no idea", "cant answer",
	"can't answer", "unsure", "move on", "proceed", "idk",
)
_SKIP_PATTERN = re.compile(r"\b(?:" + "|".join(re.escape(p) for p in SKIP_PHRASES) + r")\b")

# Phase entered when leaving intro, and phase held from LATE_GAME_AT on
_ENTRY_PHASE: Dict[str, str] = {
	"hr": "hr",
	"behavioral": "behavioral",
	"technical": "technical",
	"hybrid": "technical",
	"general": "technical",
}
_PRIMARY_PHASE: Dict[str, str] = {
	"hr": "hr",
	"behavioral": "behavioral",
	"technical": "technical",
	"hybrid": "technical",
	"general": "behavioral",
}

QUESTION_BANK: Dict[str, List[str]] = {
	"intro": [
		"Tell me about yourself.",
		"What is your background?",
		"Can you introduce yourself?",
		"What should I know about you?",
		"Describe your journey so far.",
	],
	"technical": [
		"Which backend or core technologies are you familiar with?",
		"Can you explain the difference between SQL and PostgreSQL?",
		"Which SQL concepts are you confident in?",
		"How do you usually debug issues in your code?",
		"Which web technologies are you most confident in?",
		"Can you explain the projects you have worked on?",
		"Describe one project in detail.",
		"Which tech stack are you most comfortable with?",
	],
	"behavioral": [
		"How do you handle conflicts?",
		"Describe a time you showed leadership.",
		"How do you take feedback?",
		"Tell me about a challenge you overcame.",
		"How do you work in teams?",
		"What did you learn from a past failure?",
		"How do you handle pressure?",
		"Describe your work style.",
	],
	"scenario": [
		"What would you do if you are assigned a task you don't know how to complete?",
		"How would you respond if a project fails in production?",
		"What if a client demands an unrealistic deadline?",
		"How would you handle receiving a better offer after joining us?",
		"What would you do if your senior is being unfair?",
	],
	"hr": [
		"Why do you want this job?",
		"Why our company?",
		"Where do you see yourself in 5 years?",
		"What are your strengths?",
		"What are your weaknesses?",
		"Why should we hire you?",
		"What motivates you?",
		"What is your expected salary?",
		"When can you start?",
		"Do you have any questions for us?",
	],
	"closing": [
		"Do you have any questions for us?",
		"Is there anything you would like to ask or clarify?",
		"Would you like to know more about the role or team?",
	],
}

# Canned follow-ups for skipped questions; never technical
SKIP_FOLLOW_UPS: Dict[str, List[str]] = {
	"hr": [
		"What motivates you at work?",
		"Why do you want this job?",
		"Where do you see yourself in 5 years?",
		"What are your salary expectations?",
		"When can you start?",
	],
	"behavioral": [
		"How do you handle pressure?",
		"Tell me about a time you worked in a team.",
		"How do you take feedback?",
		"Describe your work style.",
	],
}
DEFAULT_SKIP_FOLLOW_UP = "Let's move on. Tell me about your strengths."
SKIP_FEEDBACK = "No worries. Let's try a different question."
SHORT_ANSWER_FEEDBACK = "Your answer is too short. Please explain in more detail."
SHORT_ANSWER_FOLLOW_UP = "Can you elaborate on that with a specific example?"


@dataclass(frozen=True)
class InterviewState:
	interview_type: str = "general"
	phase: str = "intro"
	mood: str = "friendly"
	question_count: int = 0


@dataclass(frozen=True)
class TurnResult:
	score: float
	# Skipped and too-short answers do not move the mood
	short_circuited: bool = False


def normalize_type(value: Optional[str]) -> str:
	v = (value or "general").strip().lower()
	return v if v in INTERVIEW_TYPES else "general"


def mood_for_score(score: float) -> str:
	if score < 5:
		return "strict"
	if score >= 8:
		return "friendly"
	return "neutral"


def next_phase(phase: str, interview_type: str, question_count: int) -> str:
	if question_count >= CLOSING_AT:
		return "closing"
	if question_count >= LATE_GAME_AT:
		return _PRIMARY_PHASE[interview_type]
	if question_count >= LEAVE_INTRO_AT and phase == "intro":
		return _ENTRY_PHASE[interview_type]
	return phase


def advance(state: InterviewState, turn: TurnResult) -> InterviewState:
	count = state.question_count + 1
	mood = state.mood if turn.short_circuited else mood_for_score(turn.score)
	return replace(
		state,
		question_count=count,
		phase=next_phase(state.phase, state.interview_type, count),
		mood=mood,
	)


def allowed_categories(phase: str, interview_type: str) -> List[str]:
	if phase not in ("intro", "closing"):
		if interview_type == "hr":
			return ["hr", "behavioral", "scenario"]
		if interview_type == "hybrid":
			return ["technical", "hr", "behavioral", "scenario"]
	return [phase if phase in QUESTION_BANK else "intro"]


def pick_base_question(state: InterviewState, rng: Optional[random.Random] = None) -> tuple[str, str]:
	"""Return ``(category, question)`` drawn from the categories the state allows."""
	rng = rng or random
	category = rng.choice(allowed_categories(state.phase, state.interview_type))
	return category, rng.choice(QUESTION_BANK[category])


def word_count(answer: str) -> int:
	return len((answer or "").split())


def is_skip(answer: str) -> bool:
	return bool(_SKIP_PATTERN.search((answer or "").lower()))


def is_too_short(answer: str) -> bool:
	return word_count(answer) < MIN_ANSWER_WORDS


def skip_follow_up(state: InterviewState, rng: Optional[random.Random] = None) -> str:
	rng = rng or random
	for key in (state.interview_type, state.phase):
		if key in SKIP_FOLLOW_UPS:
			return rng.choice(SKIP_FOLLOW_UPS[key])
	return DEFAULT_SKIP_FOLLOW_UP


def short_circuit(answer: str, state: InterviewState, rng: Optional[random.Random] = None) -> Optional[Dict[str, object]]:
	"""Canned evaluation for skipped or too-short answers, or None.

	These answers are scored without calling the model.
	"""
	if is_skip(answer):
		return {
			"score": SKIP_SCORE,
			"feedback": SKIP_FEEDBACK,
			"betterAnswer": "",
			"nextQuestion": skip_follow_up(state, rng),
			"mistakes": [],
		}
	if is_too_short(answer):
		return {
			"score": SHORT_ANSWER_SCORE,
			"feedback": SHORT_ANSWER_FEEDBACK,
			"betterAnswer": "",
			"nextQuestion": SHORT_ANSWER_FOLLOW_UP,
			"mistakes": [],
		}
	return None


def phase_constraint(phase: str, interview_type: str) -> str:
	if interview_type == "hr":
		return (
			"CRITICAL RULE - THIS IS AN HR INTERVIEW. You are ABSOLUTELY FORBIDDEN from asking about:\n"
			"- Code, programming, frameworks, libraries, APIs\n"
			"- Projects (even if mentioned by candidate)\n"
			"- Technical skills, debugging, architecture\n"
			"- Education details (degree specifics, coursework)\n\n"
			"You MUST ONLY ask HR questions (why this job, strengths/weaknesses, five-year goals, motivation, "
			"why our company, salary expectations, start date, work-life balance).\n"
			"You may also ask Behavioral or Scenario questions (teamwork, leadership, conflict, hypothetical situations).\n"
			"DO NOT ask about projects, education, or technical topics."
		)
	if interview_type == "hybrid":
		return "This is a Hybrid interview. Your nextQuestion can be from ANY category: Technical, HR, Behavioral, or Scenario. Mix it up based on the conversation flow."
	if phase == "behavioral":
		return "CRITICAL: This is a Behavioral interview. Your nextQuestion MUST be behavioral: teamwork, conflict resolution, leadership, work style, handling pressure. DO NOT ask technical questions."
	if phase == "technical":
		return "This is a Technical interview. Your nextQuestion should focus on technical skills, projects, technologies, debugging, architecture."
	if phase == "intro":
		return "This is the Introduction phase. Keep nextQuestion general and introductory."
	if phase == "closing":
		return "This is the Closing phase. Your nextQuestion should invite the candidate's own questions or wrap up the interview."
	return ""


def filler_note(answer: str, threshold: int = 2) -> str:
	count = len(re.findall(r"\b(?:um|uh|maybe|i think|probably)\b", (answer or "").lower()))
	if count > threshold:
		return (
			f"OBSERVATION: The candidate used filler words {count} times (um, uh, maybe). "
			"You MUST point this out and tell them to sound more confident."
		)
	return ""
