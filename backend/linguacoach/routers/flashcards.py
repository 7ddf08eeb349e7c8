from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Flashcard, User
from ..persistence import get_owned
from .auth import get_current_user

router = APIRouter(prefix="/flashcards", tags=["flashcards"])

# mastery level -> days until the card is due again
REVIEW_INTERVAL_DAYS = {0: 0, 1: 1, 2: 3, 3: 7}


class FlashcardCreate(BaseModel):
	word: str = Field(min_length=1, max_length=128)
	definition: str = Field(min_length=1)
	example: Optional[str] = None
	pronunciation: Optional[str] = None


class MasteryUpdate(BaseModel):
	mastery: int = Field(ge=0, le=3)


def flashcard_out(card: Flashcard) -> Dict[str, Any]:
	return {
		"id": card.id,
		"word": card.word,
		"definition": card.definition,
		"example": card.example,
		"pronunciation": card.pronunciation,
		"mastery": card.mastery,
		"nextReview": card.next_review,
		"createdAt": card.created_at,
	}


def next_review_at(mastery: int, now: Optional[datetime] = None) -> datetime:
	now = now or datetime.utcnow()
	return now + timedelta(days=REVIEW_INTERVAL_DAYS.get(mastery, 0))


@router.get("")
async def list_flashcards(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	cards = db.query(Flashcard).filter(Flashcard.user_id == user.id).order_by(Flashcard.created_at.desc()).all()
	return [flashcard_out(c) for c in cards]


@router.post("")
async def create_flashcard(req: FlashcardCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	card = Flashcard(
		user_id=user.id,
		word=req.word.strip(),
		definition=req.definition,
		example=req.example,
		pronunciation=req.pronunciation,
	)
	db.add(card)
	db.commit()
	db.refresh(card)
	return flashcard_out(card)


@router.put("/{card_id}")
async def update_mastery(card_id: str, req: MasteryUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	card = get_owned(db, Flashcard, card_id, user.id, "Flashcard")
	card.mastery = req.mastery
	card.next_review = next_review_at(req.mastery)
	db.commit()
	db.refresh(card)
	return flashcard_out(card)


@router.delete("/{card_id}")
async def delete_flashcard(card_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	card = get_owned(db, Flashcard, card_id, user.id, "Flashcard")
	db.delete(card)
	db.commit()
	return {"msg": "Flashcard removed"}
