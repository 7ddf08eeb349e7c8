from linguacoach.errors import ERROR_TABLE, ErrorKind, MalformedResponseError, RateLimitError


def test_every_kind_has_a_table_entry():
	assert set(ERROR_TABLE) == set(ErrorKind)


def test_fatal_copy_is_not_retryable():
	err = RateLimitError("upstream 429")
	fatal = err.fatal()
	assert err.retryable is True
	assert fatal.retryable is False
	assert isinstance(fatal, RateLimitError)
	assert fatal.detail == "upstream 429"
	assert fatal.__cause__ is err


def test_unknown_route_shape(client):
	resp = client.get("/api/does-not-exist")
	assert resp.status_code == 404
	assert resp.json() == {"success": False, "msg": "Route not found: GET /api/does-not-exist"}


def test_validation_error_is_400(client, auth_headers):
	resp = client.put("/api/flashcards/abc", json={"mastery": 9}, headers=auth_headers)
	assert resp.status_code == 400
	assert resp.json()["success"] is False


def test_technical_detail_hidden_outside_development(client, auth_headers, fake_llm):
	fake_llm.queue("definitely not json")
	resp = client.post("/api/analyze", json={"sentence": "He go to school."}, headers=auth_headers)
	assert resp.status_code == 500
	body = resp.json()
	assert body == {"success": False, "msg": "AI response parsing failed. Please try again."}


def test_development_mode_adds_detail(client, auth_headers, fake_llm, monkeypatch):
	from linguacoach import error_handlers

	monkeypatch.setattr(error_handlers.settings, "environment", "development")
	fake_llm.queue("definitely not json")
	resp = client.post("/api/analyze", json={"sentence": "He go to school."}, headers=auth_headers)
	body = resp.json()
	assert body["error"]
	assert "stack" in body
	assert body["raw"] == "definitely not json"


def test_malformed_excerpt_lives_in_extra():
	err = MalformedResponseError("bad", excerpt="abc")
	assert err.extra == {"raw": "abc"}


def test_health_and_banner(client):
	assert client.get("/health").json() == {"status": "ok"}
	assert "running" in client.get("/").json()["msg"]
