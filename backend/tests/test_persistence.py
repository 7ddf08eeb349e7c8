import pytest

from linguacoach.errors import ConcurrentUpdateError, NotFoundError, UnauthorizedOwnerError
from linguacoach.models import InterviewSession, Mistake
from linguacoach.persistence import append_turns, get_owned, make_turn, record_mistakes, upsert_mistake

from conftest import TestingSessionLocal


def test_upsert_is_idempotent_per_phrase(db_session, user):
	for _ in range(4):
		upsert_mistake(db_session, user.id, "I goed  home", "I went home", rule="Past tense")
	rows = db_session.query(Mistake).filter(Mistake.user_id == user.id).all()
	assert len(rows) == 1
	assert rows[0].count == 4
	assert rows[0].wrong_phrase == "I goed home"


def test_upsert_is_per_user(db_session, user, user_factory):
	other = user_factory(email="other@example.com")
	upsert_mistake(db_session, user.id, "he go", "he goes")
	upsert_mistake(db_session, other.id, "he go", "he goes")
	assert db_session.query(Mistake).count() == 2


def test_record_mistakes_skips_malformed(db_session, user):
	items = [
		{"wrong": "she don't", "right": "she doesn't"},
		{"wrong": "missing right"},
		{"wrong": "  \t ", "right": "blank phrase"},
		"nonsense",
	]
	rows = record_mistakes(db_session, user.id, items, correct_key="right", default_rule="General Grammar Rule")
	assert len(rows) == 1
	assert rows[0].rule == "General Grammar Rule"
	assert rows[0].correct_phrase == "she doesn't"
	assert db_session.query(Mistake).filter(Mistake.wrong_phrase == "").count() == 0


def test_append_turns_bumps_version(db_session, user):
	session = InterviewSession(user_id=user.id, messages=[])
	db_session.add(session)
	db_session.commit()
	append_turns(db_session, session, "messages", [make_turn("ai", "Tell me about yourself.")], question_count=1)
	assert session.version == 1
	assert session.question_count == 1
	assert session.messages[0]["role"] == "ai"
	assert "timestamp" in session.messages[0]


def test_stale_writer_gets_conflict(db_session, user):
	session = InterviewSession(user_id=user.id, messages=[])
	db_session.add(session)
	db_session.commit()

	other = TestingSessionLocal()
	try:
		stale = other.get(InterviewSession, session.id)
		append_turns(db_session, session, "messages", [make_turn("user", "first")])
		with pytest.raises(ConcurrentUpdateError) as ei:
			append_turns(other, stale, "messages", [make_turn("user", "second")])
		assert ei.value.status_code == 409
	finally:
		other.close()

	db_session.refresh(session)
	assert [m["content"] for m in session.messages] == ["first"]


def test_get_owned_checks_owner(db_session, user, user_factory):
	intruder = user_factory(email="intruder@example.com")
	session = InterviewSession(user_id=user.id, messages=[])
	db_session.add(session)
	db_session.commit()
	assert get_owned(db_session, InterviewSession, session.id, user.id, "Session") is session
	with pytest.raises(UnauthorizedOwnerError):
		get_owned(db_session, InterviewSession, session.id, intruder.id, "Session")
	with pytest.raises(NotFoundError) as ei:
		get_owned(db_session, InterviewSession, "missing", user.id, "Session")
	assert ei.value.message == "Session not found"
