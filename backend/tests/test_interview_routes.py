import io
import json

from linguacoach.interview_state import SKIP_FEEDBACK
from linguacoach.models import InterviewSession, Mistake
from linguacoach.persistence import append_turns, make_turn

from conftest import TestingSessionLocal

LONG_ANSWER = (
	"In my last role I led a small team that rebuilt our billing service, "
	"and I learned a lot about planning and communication along the way."
)


def start_session(client, headers, **form):
	resp = client.post("/api/interview/start", data=form, headers=headers)
	assert resp.status_code == 200, resp.text
	return resp.json()


def test_start_without_resume(client, auth_headers):
	body = start_session(client, auth_headers, interviewType="hr", manualContext="Applying for a sales role")
	assert body["interviewType"] == "hr"
	assert body["interviewPhase"] == "intro"
	assert body["messages"] == []
	assert body["manualContext"] == "Applying for a sales role"


def test_start_rejects_non_pdf_resume(client, auth_headers):
	files = {"resume": ("cv.txt", io.BytesIO(b"plain text"), "text/plain")}
	resp = client.post("/api/interview/start", files=files, headers=auth_headers)
	assert resp.status_code == 400
	assert resp.json()["msg"] == "Only PDF files allowed"


def test_start_with_unreadable_pdf_keeps_empty_context(client, auth_headers):
	files = {"resume": ("cv.pdf", io.BytesIO(b"%PDF-1.4 broken"), "application/pdf")}
	resp = client.post("/api/interview/start", files=files, data={"interviewType": "technical"}, headers=auth_headers)
	assert resp.status_code == 200
	assert resp.json()["resumeContext"] == ""


def test_skip_answer_never_calls_model(client, db_session, user, auth_headers, fake_llm):
	session = start_session(client, auth_headers, interviewType="hr")
	resp = client.post(
		"/api/interview/evaluate",
		json={"sessionId": session["id"], "question": "Why this job?", "answer": "I don't know"},
		headers=auth_headers,
	)
	assert resp.status_code == 200
	body = resp.json()
	assert body["score"] == 5
	assert body["feedback"] == SKIP_FEEDBACK
	assert body["nextQuestion"]
	assert fake_llm.calls == []

	db_session.refresh(user)
	assert user.usage_count == 0
	row = db_session.get(InterviewSession, session["id"])
	assert row.question_count == 1
	assert row.messages[-1]["evaluation"] == {"score": 5}


def test_skip_works_even_when_quota_is_exhausted(client, db_session, user, auth_headers, fake_llm):
	from datetime import datetime

	user.usage_count = 100
	user.usage_date = datetime.utcnow()
	db_session.commit()
	resp = client.post("/api/interview/evaluate", json={"question": "Q", "answer": "skip"}, headers=auth_headers)
	assert resp.status_code == 200
	assert resp.json()["score"] == 5


def test_short_answer_gets_canned_follow_up(client, auth_headers, fake_llm):
	resp = client.post("/api/interview/evaluate", json={"question": "Q", "answer": "I work hard."}, headers=auth_headers)
	assert resp.status_code == 200
	assert resp.json()["score"] == 3
	assert resp.json()["nextQuestion"] == "Can you elaborate on that with a specific example?"
	assert fake_llm.calls == []


def test_evaluate_persists_state_and_mistakes(client, db_session, user, auth_headers, fake_llm):
	session = start_session(client, auth_headers, interviewType="technical")
	row = db_session.get(InterviewSession, session["id"])
	row.question_count = 1
	db_session.commit()

	fake_llm.queue(
		"```json\n"
		+ json.dumps({
			"score": 4,
			"feedback": "Needs more detail.",
			"betterAnswer": "I led the billing rewrite...",
			"nextQuestion": "What was the hardest bug you fixed?",
			"mistakes": [{"wrong": "I learned a lot", "right": "I learned a great deal"}, {"wrong": "no right"}],
		})
		+ "\n```"
	)
	resp = client.post(
		"/api/interview/evaluate",
		json={"sessionId": session["id"], "question": "Describe one project.", "answer": LONG_ANSWER},
		headers=auth_headers,
	)
	assert resp.status_code == 200, resp.text
	body = resp.json()
	assert body["score"] == 4
	assert body["interviewPhase"] == "technical"
	assert body["interviewerMood"] == "strict"

	prompt, json_mode = fake_llm.calls[0]
	assert json_mode is True
	assert "Interview Phase: technical" in prompt

	db_session.expire_all()
	row = db_session.get(InterviewSession, session["id"])
	assert row.question_count == 2
	assert row.interviewer_mood == "strict"
	assert [m["role"] for m in row.messages] == ["user", "ai"]
	assert row.version == 1

	mistakes = db_session.query(Mistake).filter(Mistake.user_id == user.id).all()
	assert len(mistakes) == 1
	assert mistakes[0].rule == "General Grammar Rule"
	db_session.refresh(user)
	assert user.usage_count == 1


def test_question_uses_resume_prompt(client, db_session, auth_headers, fake_llm):
	session = start_session(client, auth_headers, interviewType="technical")
	row = db_session.get(InterviewSession, session["id"])
	row.resume_context = "Built a Django inventory system at Acme Corp."
	db_session.commit()

	fake_llm.queue("How did you use Django at Acme Corp?")
	resp = client.post("/api/interview/question", json={"sessionId": session["id"]}, headers=auth_headers)
	assert resp.status_code == 200
	assert resp.json() == {
		"question": "How did you use Django at Acme Corp?",
		"interviewPhase": "intro",
		"interviewerMood": "friendly",
	}
	assert "RESUME CONTEXT" in fake_llm.calls[0][0]
	db_session.expire_all()
	assert db_session.get(InterviewSession, session["id"]).messages[0]["content"] == "How did you use Django at Acme Corp?"


def test_end_falls_back_to_neutral_report_and_overwrites(client, db_session, auth_headers, fake_llm):
	session = start_session(client, auth_headers)
	fake_llm.queue("The candidate did fine.")
	first = client.post("/api/interview/end", json={"sessionId": session["id"]}, headers=auth_headers)
	assert first.json() == {"hiringDecision": "Maybe", "overallScore": 50}

	fake_llm.queue(json.dumps({"hiringDecision": "Yes", "overallScore": 88}))
	second = client.post("/api/interview/end", json={"sessionId": session["id"]}, headers=auth_headers)
	assert second.json()["hiringDecision"] == "Yes"
	db_session.expire_all()
	assert db_session.get(InterviewSession, session["id"]).final_feedback["overallScore"] == 88

	late = client.post(
		"/api/interview/evaluate",
		json={"sessionId": session["id"], "question": "Q", "answer": "skip"},
		headers=auth_headers,
	)
	assert late.status_code == 400
	assert late.json()["msg"] == "Interview has already ended"


def test_other_users_session_is_unauthorized(client, user_factory, auth_headers):
	from linguacoach.routers.auth import create_access_token

	session = start_session(client, auth_headers)
	intruder = user_factory(email="intruder@example.com")
	headers = {"Authorization": f"Bearer {create_access_token(intruder.id)}"}
	resp = client.get(f"/api/interview/session/{session['id']}", headers=headers)
	assert resp.status_code == 401
	assert resp.json()["msg"] == "User not authorized"


def test_history_and_delete(client, auth_headers):
	session = start_session(client, auth_headers)
	listed = client.get("/api/interview/history", headers=auth_headers).json()
	assert [s["id"] for s in listed] == [session["id"]]
	assert client.delete(f"/api/interview/session/{session['id']}", headers=auth_headers).json() == {"msg": "Session removed"}
	assert client.get(f"/api/interview/session/{session['id']}", headers=auth_headers).status_code == 404


def test_evaluate_conflicts_when_session_changes_during_generation(client, db_session, auth_headers, fake_llm):
	session = start_session(client, auth_headers)

	def other_request_writes_first():
		other = TestingSessionLocal()
		try:
			row = other.get(InterviewSession, session["id"])
			append_turns(other, row, "messages", [make_turn("user", "from another tab")], question_count=5)
		finally:
			other.close()
		return json.dumps({"score": 7, "feedback": "Good.", "nextQuestion": "Next?", "mistakes": []})

	fake_llm.queue(other_request_writes_first)
	resp = client.post(
		"/api/interview/evaluate",
		json={"sessionId": session["id"], "question": "Describe one project.", "answer": LONG_ANSWER},
		headers=auth_headers,
	)
	assert resp.status_code == 409

	db_session.expire_all()
	row = db_session.get(InterviewSession, session["id"])
	assert row.question_count == 5
	assert row.version == 1
	assert [m["content"] for m in row.messages] == ["from another tab"]
