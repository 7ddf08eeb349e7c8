from __future__ import annotations
import logging
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AuthError, ConfigError
from ..models import User
from ..settings import settings
from .auth import create_access_token

router = APIRouter(prefix="/auth/google", tags=["auth"])

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


def _require_google_config() -> None:
	if not settings.google_client_id or not settings.google_client_secret:
		raise ConfigError("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET are not configured", message="Google sign-in is not configured.")


async def fetch_google_profile(code: str) -> Dict[str, Any]:
	async with httpx.AsyncClient(timeout=15) as client:
		r = await client.post(
			GOOGLE_TOKEN_URL,
			data={
				"code": code,
				"client_id": settings.google_client_id,
				"client_secret": settings.google_client_secret,
				"redirect_uri": settings.google_callback_url,
				"grant_type": "authorization_code",
			},
		)
		if r.status_code >= 400:
			raise AuthError("Google sign-in failed. Please try again.", detail=f"token exchange {r.status_code}: {r.text[:200]}")
		access_token = r.json().get("access_token")
		r = await client.get(GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
		if r.status_code >= 400:
			raise AuthError("Google sign-in failed. Please try again.", detail=f"userinfo {r.status_code}: {r.text[:200]}")
		return r.json()


def upsert_google_user(db: Session, profile: Dict[str, Any]) -> User:
	google_id = str(profile.get("sub") or "")
	email = str(profile.get("email") or "").lower()
	if not google_id or not email:
		raise AuthError("Google account has no email address.")
	user = db.query(User).filter(User.google_id == google_id).first()
	if user is None:
		# Link to an existing password account with the same email
		user = db.query(User).filter(User.email == email).first()
	if user is None:
		user = User(name=profile.get("name") or email.split("@")[0], email=email)
		db.add(user)
	user.google_id = google_id
	if profile.get("picture"):
		user.avatar = profile["picture"]
	db.commit()
	db.refresh(user)
	return user


@router.get("")
async def google_login():
	_require_google_config()
	params = {
		"client_id": settings.google_client_id,
		"redirect_uri": settings.google_callback_url,
		"response_type": "code",
		"scope": "openid profile email",
		"prompt": "select_account",
	}
	return RedirectResponse(url=f"{GOOGLE_AUTH_URL}?{urlencode(params)}")


@router.get("/callback")
async def google_callback(code: str | None = None, error: str | None = None, db: Session = Depends(get_db)):
	_require_google_config()
	if error or not code:
		logger.info("google sign-in cancelled: %s", error)
		return RedirectResponse(url=settings.client_url)
	profile = await fetch_google_profile(code)
	user = upsert_google_user(db, profile)
	token = create_access_token(user.id)
	return RedirectResponse(url=f"{settings.client_url}/login?{urlencode({'token': token})}")
