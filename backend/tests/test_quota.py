from datetime import datetime, timedelta

import pytest

from linguacoach.errors import QuotaExceededError
from linguacoach.quota import check_quota, increment_usage, reset_if_new_day


def test_reset_when_usage_date_is_before_today(db_session, user_factory):
	yesterday = datetime.utcnow() - timedelta(days=1)
	user = user_factory(usage_count=100, usage_date=yesterday)
	check_quota(db_session, user, limit=100)
	db_session.refresh(user)
	assert user.usage_count == 0
	assert user.usage_date.date() == datetime.utcnow().date()


def test_same_day_is_not_reset(user_factory):
	now = datetime.utcnow()
	user = user_factory(usage_count=4, usage_date=now)
	assert reset_if_new_day(user, now) is False
	assert user.usage_count == 4


def test_boundary_below_limit_passes(db_session, user_factory):
	user = user_factory(usage_count=99, usage_date=datetime.utcnow())
	assert check_quota(db_session, user, limit=100) is user


def test_boundary_at_limit_rejects(db_session, user_factory):
	user = user_factory(usage_count=100, usage_date=datetime.utcnow())
	with pytest.raises(QuotaExceededError) as ei:
		check_quota(db_session, user, limit=100)
	assert ei.value.status_code == 429
	assert ei.value.message == "Daily AI limit reached. Please try again tomorrow."


def test_increment_is_persisted(db_session, user):
	increment_usage(db_session, user.id)
	increment_usage(db_session, user.id)
	db_session.refresh(user)
	assert user.usage_count == 2


def test_quota_rejection_over_http(client, db_session, user, auth_headers, fake_llm):
	user.usage_count = 100
	user.usage_date = datetime.utcnow()
	db_session.commit()
	resp = client.post("/api/translate", json={"text": "hello", "targetLang": "hi"}, headers=auth_headers)
	assert resp.status_code == 429
	assert resp.json()["success"] is False
	assert fake_llm.calls == []


@pytest.mark.parametrize(
	"path, body",
	[
		("/api/analyze", {"sentence": "  "}),
		("/api/translate", {"text": ""}),
		("/api/tutor/chat", {"message": ""}),
		("/api/roleplay/chat", {"scenario": "cafe", "message": ""}),
	],
)
def test_bad_input_is_rejected_before_quota(client, db_session, user, auth_headers, fake_llm, path, body):
	user.usage_count = 100
	user.usage_date = datetime.utcnow()
	db_session.commit()
	resp = client.post(path, json=body, headers=auth_headers)
	assert resp.status_code == 400
	assert fake_llm.calls == []


def test_failed_generation_does_not_consume_quota(client, db_session, user, auth_headers, fake_llm):
	from linguacoach.errors import RateLimitError

	fake_llm.queue(RateLimitError("upstream 429").fatal())
	resp = client.post("/api/translate", json={"text": "hello"}, headers=auth_headers)
	assert resp.status_code == 429
	db_session.refresh(user)
	assert user.usage_count == 0
