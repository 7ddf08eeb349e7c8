import json
from datetime import date, datetime, timedelta

from linguacoach.cleanup import clear_daily_word
from linguacoach.models import DailyWord, SentenceHistory, TutorSession
from linguacoach.routers.daily import week_start
from linguacoach.routers.flashcards import REVIEW_INTERVAL_DAYS


def week_of_words():
	return [
		{
			"word": f"Word{i}",
			"pronunciation": f"/w{i}/ • noun",
			"definition": f"Definition {i}",
			"hindiMeaning": f"अर्थ {i}",
			"examples": [f"Example {i}a", f"Example {i}b"],
		}
		for i in range(7)
	]


# --- flashcards ---

def test_flashcard_crud(client, auth_headers):
	created = client.post(
		"/api/flashcards",
		json={"word": " resilient ", "definition": "Able to recover quickly", "example": "She is resilient."},
		headers=auth_headers,
	).json()
	assert created["word"] == "resilient"
	assert created["mastery"] == 0

	listed = client.get("/api/flashcards", headers=auth_headers).json()
	assert [c["id"] for c in listed] == [created["id"]]

	updated = client.put(f"/api/flashcards/{created['id']}", json={"mastery": 2}, headers=auth_headers).json()
	assert updated["mastery"] == 2
	due = datetime.fromisoformat(updated["nextReview"])
	assert due - datetime.utcnow() > timedelta(days=REVIEW_INTERVAL_DAYS[2] - 1)

	assert client.delete(f"/api/flashcards/{created['id']}", headers=auth_headers).json() == {"msg": "Flashcard removed"}
	assert client.put(f"/api/flashcards/{created['id']}", json={"mastery": 1}, headers=auth_headers).status_code == 404


def test_flashcard_owner_check(client, user_factory, auth_headers):
	from linguacoach.routers.auth import create_access_token

	card = client.post("/api/flashcards", json={"word": "calm", "definition": "Peaceful"}, headers=auth_headers).json()
	intruder = user_factory(email="intruder@example.com")
	headers = {"Authorization": f"Bearer {create_access_token(intruder.id)}"}
	assert client.delete(f"/api/flashcards/{card['id']}", headers=headers).status_code == 401


# --- daily word ---

def test_week_start_is_monday():
	assert week_start(date(2024, 5, 15)) == date(2024, 5, 13)
	assert week_start(date(2024, 5, 19)) == date(2024, 5, 13)
	assert week_start(date(2024, 5, 13)) == date(2024, 5, 13)


def test_daily_word_generates_week_once(client, db_session, user, auth_headers, fake_llm):
	fake_llm.queue(json.dumps(week_of_words()))
	first = client.get("/api/daily/word", headers=auth_headers)
	assert first.status_code == 200, first.text
	today = datetime.utcnow().date()
	offset = (today - week_start(today)).days
	assert first.json()["word"] == f"Word{offset}"
	assert first.json()["date"] == today.isoformat()
	assert db_session.query(DailyWord).count() == 7

	second = client.get("/api/daily/word", headers=auth_headers)
	assert second.json() == first.json()
	assert len(fake_llm.calls) == 1
	assert fake_llm.calls[0][1] is False
	db_session.refresh(user)
	assert user.usage_count == 1


def test_daily_word_rejects_short_batch(client, auth_headers, fake_llm):
	fake_llm.queue(json.dumps(week_of_words()[:3]))
	resp = client.get("/api/daily/word", headers=auth_headers)
	assert resp.status_code == 500


def test_clear_daily_word(db_session):
	today = datetime.utcnow().date()
	db_session.add(DailyWord(date=today.isoformat(), word="Calm", pronunciation="", definition="Peaceful", hindi_meaning="शांत", examples=[]))
	db_session.commit()
	assert clear_daily_word(db_session) == 1
	assert clear_daily_word(db_session) == 0


# --- merged history ---

def test_history_merges_and_sorts(client, db_session, user, auth_headers):
	now = datetime.utcnow()
	db_session.add(SentenceHistory(user_id=user.id, original="He go to school every day", corrected="He goes to school every day.", mistake_ids=[], created_at=now - timedelta(hours=2)))
	db_session.add(TutorSession(user_id=user.id, messages=[{"role": "user", "content": "Hi tutor"}], created_at=now - timedelta(hours=1)))
	db_session.add(TutorSession(user_id=user.id, messages=[], created_at=now))
	db_session.commit()

	entries = client.get("/api/history", headers=auth_headers).json()
	assert [e["type"] for e in entries] == ["tutor", "tutor", "practice"]
	assert entries[0]["preview"] == "Empty session"
	assert entries[1]["preview"] == "Hi tutor..."
	assert entries[2]["title"] == "Grammar Check"
	assert entries[2]["preview"] == "He go to school every day..."
