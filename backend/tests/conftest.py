import os
from typing import List, Tuple

import pytest

# Configure before the app modules read settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("OPENROUTER_API_KEY", "dummy")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from linguacoach import models  # noqa: F401
from linguacoach.db import Base, get_db
from linguacoach.llm_client import get_content_generator
from linguacoach.main import app
from linguacoach.models import User
from linguacoach.routers.auth import create_access_token, hash_password

engine = create_engine(
	"sqlite://",
	connect_args={"check_same_thread": False},
	poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class FakeGenerator:
	"""Stands in for the LLM: returns queued replies in order and records prompts.

	A queued exception is raised; a queued callable is invoked and its result
	returned, which lets a test act while the request waits on the model.
	"""

	def __init__(self, *replies):
		self.replies = list(replies)
		self.calls: List[Tuple[str, bool]] = []

	def queue(self, *replies):
		self.replies.extend(replies)

	async def __call__(self, prompt: str, json_mode: bool = False) -> str:
		self.calls.append((prompt, json_mode))
		if not self.replies:
			raise AssertionError("unexpected generator call")
		reply = self.replies.pop(0)
		if isinstance(reply, Exception):
			raise reply
		if callable(reply):
			return reply()
		return reply


@pytest.fixture
def db_session():
	Base.metadata.create_all(bind=engine)
	db = TestingSessionLocal()
	try:
		yield db
	finally:
		db.close()
		Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_llm():
	return FakeGenerator()


@pytest.fixture
def client(db_session, fake_llm):
	def override_get_db():
		db = TestingSessionLocal()
		try:
			yield db
		finally:
			db.close()

	app.dependency_overrides[get_db] = override_get_db
	app.dependency_overrides[get_content_generator] = lambda: fake_llm
	try:
		yield TestClient(app)
	finally:
		app.dependency_overrides.clear()


def make_user(db, email="learner@example.com", password="secret123", name="Learner", **fields):
	user = User(name=name, email=email, password_hash=hash_password(password), **fields)
	db.add(user)
	db.commit()
	db.refresh(user)
	return user


@pytest.fixture
def user(db_session):
	return make_user(db_session)


@pytest.fixture
def auth_headers(user):
	return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def user_factory(db_session):
	def _make(**kwargs):
		return make_user(db_session, **kwargs)
	return _make
