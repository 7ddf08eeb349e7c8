from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Optional
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..llm_client import ContentGenerator, get_content_generator
from ..models import User
from ..quota import check_quota, increment_usage
from .auth import get_current_user

router = APIRouter(prefix="/translate", tags=["translate"])


class TranslateRequest(BaseModel):
	text: Optional[str] = None
	# "hi" for Hindi, anything else means English
	targetLang: Optional[str] = "en"


def build_translate_prompt(text: str, target_lang: Optional[str]) -> str:
	target = "Hindi" if target_lang == "hi" else "English"
	return (
		f"Translate the following text to {target}.\n"
		"If the target is English, ensure it is natural and grammatically correct.\n"
		"If the target is Hindi, use natural spoken Hindi script (Devanagari).\n"
		"Return ONLY the translated text, no other commentary.\n\n"
		f"Text: \"{text}\""
	)


@router.post("")
async def translate(
	req: TranslateRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	text = (req.text or "").strip()
	if not text:
		raise ValidationError("Please provide text to translate")
	check_quota(db, user)
	translated = await generate(build_translate_prompt(text, req.targetLang))
	increment_usage(db, user.id)
	return {"translation": translated.strip()}
