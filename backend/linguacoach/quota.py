"""
Per-user daily AI allowance.

``check_quota`` runs once a handler has validated its input and before it
calls the model; it lazily resets the counter on the first request of a new
calendar day (UTC) and rejects once the limit is reached. Handlers call
``increment_usage`` only after a successful generation, so failed calls never
consume quota.

The check and the later increment are separate statements, so a burst of
concurrent requests from one user can overshoot the limit by the burst width.
The limit is an abuse guard, not a billing control.
"""

from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends
from sqlalchemy import update
from sqlalchemy.orm import Session

from .db import get_db
from .errors import QuotaExceededError
from .models import User
from .routers.auth import get_current_user
from .settings import settings

logger = logging.getLogger(__name__)


def reset_if_new_day(user: User, now: Optional[datetime] = None) -> bool:
	now = now or datetime.utcnow()
	if user.usage_date is None or user.usage_date.date() != now.date():
		user.usage_count = 0
		user.usage_date = now
		return True
	return False


def check_quota(db: Session, user: User, *, now: Optional[datetime] = None, limit: Optional[int] = None) -> User:
	limit = settings.daily_quota_limit if limit is None else limit
	if reset_if_new_day(user, now):
		db.add(user)
		db.commit()
		db.refresh(user)
	if user.usage_count >= limit:
		logger.info("quota exhausted for user %s (%d/%d)", user.id, user.usage_count, limit)
		raise QuotaExceededError(f"user {user.id} reached {user.usage_count}/{limit}")
	return user


def increment_usage(db: Session, user_id: str) -> None:
	db.execute(update(User).where(User.id == user_id).values(usage_count=User.usage_count + 1))
	db.commit()


def require_quota(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
	return check_quota(db, user)
