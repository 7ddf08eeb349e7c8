from datetime import datetime, timedelta, timezone
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, ExpiredSignatureError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field

from ..settings import settings
from sqlalchemy.orm import Session
from ..db import get_db
from ..errors import AuthError, DuplicateKeyError, NotFoundError, ValidationError
from ..models import User

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


class UserOut(BaseModel):
	id: str
	name: str
	email: str
	avatar: Optional[str] = None


class TokenResponse(BaseModel):
	token: str
	user: UserOut


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class SignupRequest(BaseModel):
	name: str = Field(min_length=1, max_length=128)
	email: EmailStr
	password: str = Field(min_length=6, max_length=128)


class LoginRequest(BaseModel):
	email: EmailStr
	password: str


class UpdateRequest(BaseModel):
	name: str = Field(min_length=1, max_length=128)


class PasswordChangeRequest(BaseModel):
	oldPassword: str
	newPassword: str = Field(min_length=6, max_length=128)


class ForgotPasswordRequest(BaseModel):
	email: EmailStr


class ResetPasswordRequest(BaseModel):
	token: str
	newPassword: str = Field(min_length=6, max_length=128)


def hash_password(password: str) -> str:
	# bcrypt only considers the first 72 bytes
	return pwd_context.hash(password.encode("utf-8")[:72].decode("utf-8", errors="ignore"))


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
	if not hashed_password:
		return False
	return pwd_context.verify(plain_password.encode("utf-8")[:72].decode("utf-8", errors="ignore"), hashed_password)


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=7)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = {"sub": user_id, "exp": _resolve_expiry(expires_delta)}
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> str:
	"""Return the user id carried by ``token`` or raise ``AuthError``."""
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except ExpiredSignatureError:
		raise AuthError("Your session has expired. Please log in again.")
	except JWTError:
		raise AuthError()
	user_id = payload.get("sub")
	if not user_id:
		raise AuthError()
	return user_id


def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
	if not token:
		raise AuthError("No token, authorization denied.")
	user = db.get(User, verify_token(token))
	if user is None:
		raise AuthError("User not found. Please log in again.")
	return user


def _user_out(user: User) -> UserOut:
	return UserOut(id=user.id, name=user.name, email=user.email, avatar=user.avatar)


def _token_response(user: User) -> TokenResponse:
	return TokenResponse(token=create_access_token(user.id), user=_user_out(user))


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
	user = db.query(User).filter(User.email == email.lower()).first()
	if user and verify_password(password, user.password_hash):
		return user
	return None


@router.post("/signup", response_model=TokenResponse)
async def signup(req: SignupRequest, db: Session = Depends(get_db)):
	email = req.email.lower()
	if db.query(User).filter(User.email == email).first():
		raise DuplicateKeyError("User already exists")
	user = User(name=req.name.strip(), email=email, password_hash=hash_password(req.password))
	db.add(user)
	db.commit()
	db.refresh(user)
	logger.info("new user %s", user.id)
	return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest, db: Session = Depends(get_db)):
	user = authenticate_user(db, req.email, req.password)
	if not user:
		raise ValidationError("Invalid credentials")
	return _token_response(user)


@router.post("/token", response_model=Token)
async def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
	user = authenticate_user(db, form_data.username, form_data.password)
	if not user:
		raise AuthError("Incorrect email or password")
	return Token(access_token=create_access_token(user.id))


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
	return _user_out(user)


@router.get("/usage")
async def usage(user: User = Depends(get_current_user)):
	return {"count": user.usage_count, "date": user.usage_date, "limit": settings.daily_quota_limit}


@router.put("/update", response_model=UserOut)
async def update_profile(req: UpdateRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	user.name = req.name.strip()
	db.add(user)
	db.commit()
	db.refresh(user)
	return _user_out(user)


@router.put("/password")
async def change_password(req: PasswordChangeRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if not verify_password(req.oldPassword, user.password_hash):
		raise ValidationError("Incorrect current password")
	user.password_hash = hash_password(req.newPassword)
	db.add(user)
	db.commit()
	return {"msg": "Password updated successfully"}


@router.post("/forgot-password")
async def forgot_password(req: ForgotPasswordRequest, db: Session = Depends(get_db)):
	user = db.query(User).filter(User.email == req.email.lower()).first()
	if not user:
		raise NotFoundError("User not found")
	reset_token = secrets.token_hex(20)
	user.reset_token = reset_token
	user.reset_expires = datetime.utcnow() + timedelta(minutes=settings.reset_token_expire_minutes)
	db.add(user)
	db.commit()
	body = {"msg": "Email sent"}
	# No mail transport: development hands the "email link" back to the client
	if settings.is_development:
		logger.info("password reset link: %s/reset-password/%s", settings.client_url, reset_token)
		body["token"] = reset_token
	else:
		logger.info("password reset requested for user %s", user.id)
	return body


@router.post("/reset-password")
async def reset_password(req: ResetPasswordRequest, db: Session = Depends(get_db)):
	user = (
		db.query(User)
		.filter(User.reset_token == req.token, User.reset_expires > datetime.utcnow())
		.first()
	)
	if not user:
		raise ValidationError("Token is invalid or has expired")
	user.password_hash = hash_password(req.newPassword)
	user.reset_token = None
	user.reset_expires = None
	db.add(user)
	db.commit()
	return {"msg": "Password reset successfully"}
