from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, ForeignKey, UniqueConstraint
from .db import Base


def _new_id() -> str:
	return uuid.uuid4().hex


class User(Base):
	__tablename__ = "users"
	id = Column(String(32), primary_key=True, default=_new_id)
	name = Column(String(128), nullable=False)
	email = Column(String(256), unique=True, index=True, nullable=False)
	# Optional for Google sign-in accounts
	password_hash = Column(String(256), nullable=True)
	google_id = Column(String(128), nullable=True, index=True)
	avatar = Column(String(512), nullable=True)
	usage_count = Column(Integer, default=0, nullable=False)
	usage_date = Column(DateTime, default=datetime.utcnow, nullable=False)
	reset_token = Column(String(64), nullable=True, index=True)
	reset_expires = Column(DateTime, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class InterviewSession(Base):
	__tablename__ = "interview_sessions"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	title = Column(String(256), default="New Interview Session", nullable=False)
	resume_context = Column(Text, default="", nullable=False)
	manual_context = Column(Text, default="", nullable=False)
	interview_type = Column(String(16), default="general", nullable=False)
	difficulty = Column(String(16), default="medium", nullable=False)
	# Progress fields written from interview_state.advance
	interview_phase = Column(String(16), default="intro", nullable=False)
	interviewer_mood = Column(String(16), default="friendly", nullable=False)
	question_count = Column(Integer, default=0, nullable=False)
	# Append-only list of {role, content, evaluation?, timestamp}
	messages = Column(JSON, default=list, nullable=False)
	final_feedback = Column(JSON, nullable=True)
	version = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)


class DebateSession(Base):
	__tablename__ = "debate_sessions"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	topic = Column(Text, nullable=False)
	difficulty = Column(String(16), default="medium", nullable=False)
	# Append-only list of {role, content, analysis?, timestamp}
	turns = Column(JSON, default=list, nullable=False)
	final_feedback = Column(JSON, nullable=True)
	version = Column(Integer, default=0, nullable=False)
	started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	ended_at = Column(DateTime, nullable=True)


class RoleplaySession(Base):
	__tablename__ = "roleplay_sessions"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	scenario = Column(String(64), nullable=False)
	messages = Column(JSON, default=list, nullable=False)
	feedback = Column(JSON, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class TutorSession(Base):
	__tablename__ = "tutor_sessions"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	messages = Column(JSON, default=list, nullable=False)
	version = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)


class Mistake(Base):
	__tablename__ = "mistakes"
	__table_args__ = (UniqueConstraint("user_id", "wrong_phrase", name="uq_mistake_user_phrase"),)
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	wrong_phrase = Column(String(512), nullable=False)
	correct_phrase = Column(String(512), nullable=False)
	rule = Column(Text, nullable=True)
	category = Column(String(64), nullable=True)
	explanation = Column(Text, nullable=True)
	count = Column(Integer, default=1, nullable=False)
	last_seen = Column(DateTime, default=datetime.utcnow, nullable=False)


class SentenceHistory(Base):
	__tablename__ = "sentence_history"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	original = Column(Text, nullable=False)
	corrected = Column(Text, nullable=False)
	# Mistake ids produced by this check
	mistake_ids = Column(JSON, default=list, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class DailyWord(Base):
	__tablename__ = "daily_words"
	# YYYY-MM-DD
	date = Column(String(10), primary_key=True)
	word = Column(String(128), nullable=False)
	pronunciation = Column(String(256), nullable=False)
	definition = Column(Text, nullable=False)
	hindi_meaning = Column(Text, nullable=False)
	examples = Column(JSON, default=list, nullable=False)


class Flashcard(Base):
	__tablename__ = "flashcards"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	word = Column(String(128), nullable=False)
	definition = Column(Text, nullable=False)
	example = Column(Text, nullable=True)
	pronunciation = Column(String(256), nullable=True)
	# 0 new, 1 learning, 2 reviewing, 3 mastered
	mastery = Column(Integer, default=0, nullable=False)
	next_review = Column(DateTime, default=datetime.utcnow, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
