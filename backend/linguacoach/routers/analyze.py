from __future__ import annotations
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..llm_client import ContentGenerator, get_content_generator
from ..models import SentenceHistory, User
from ..persistence import record_mistakes
from ..quota import check_quota, increment_usage
from ..recovery import recover
from .auth import get_current_user
from .mistakes import mistake_stats


router = APIRouter(prefix="/analyze", tags=["analyze"])

MAX_SENTENCE_CHARS = 500


class AnalyzeRequest(BaseModel):
	sentence: Optional[str] = None
	strictMode: bool = False


class ExamplesRequest(BaseModel):
	rule: str
	mistake: Optional[str] = ""


def _build_analysis_prompt(sentence: str, strict: bool) -> str:
	instruction = "Correct the following English sentence(s) and highlight mistakes."
	if strict:
		instruction += (
			" STRICTLY check for: 1. Capitalization (start of sentence, 'I', proper nouns)."
			" 2. Punctuation (must end with . ? !). 3. Extra whitespace (double spaces, trailing spaces)."
			" Flag EVERY single one of these issues as a separate mistake."
		)
	return (
		f"{instruction} Return JSON ONLY.\n"
		f"Sentence: \"{sentence}\"\n"
		"Required JSON format:\n"
		"{\n"
		f"  \"original\": \"{sentence}\",\n"
		"  \"corrected\": \"Corrected sentence here.\",\n"
		"  \"polished_alternatives\": [\"Professional version 1\", \"Professional version 2\", \"Professional version 3\"],\n"
		"  \"mistakes\": [\n"
		"    {\"wrong\": \"wrong phrase\", \"correct\": \"correct phrase\", "
		"\"category\": \"grammar/spelling/preposition/punctuation/capitalization\", "
		"\"rule\": \"Explanation of the rule\", \"explanation\": \"Why it is wrong\"}\n"
		"  ]\n"
		"}\n"
		"If there are no mistakes, \"mistakes\" must be an empty array. Always provide polished alternatives even if the sentence is correct."
	)


def _build_examples_prompt(rule: str, mistake: str) -> str:
	return (
		"Provide 3 clear, simple sentences demonstrating the correct usage of the following English grammar rule.\n"
		f"Rule: \"{rule}\"\n"
		f"Context of mistake: \"{mistake}\"\n\n"
		"Return ONLY a JSON array of strings, e.g. [\"Example 1\", \"Example 2\", \"Example 3\"]"
	)


@router.post("")
async def analyze_sentence(
	req: AnalyzeRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
):
	sentence = (req.sentence or "").strip()
	if not sentence:
		raise ValidationError("Please provide a sentence")
	if len(sentence) > MAX_SENTENCE_CHARS:
		raise ValidationError(f"Sentence too long (max {MAX_SENTENCE_CHARS} characters)")
	check_quota(db, user)

	raw = await generate(_build_analysis_prompt(sentence, req.strictMode), True)
	increment_usage(db, user.id)
	result = recover(raw, "object")

	mistakes = record_mistakes(db, user.id, result.get("mistakes"), correct_key="correct")
	history = SentenceHistory(
		user_id=user.id,
		original=str(result.get("original") or sentence),
		corrected=str(result.get("corrected") or sentence),
		mistake_ids=[m.id for m in mistakes],
	)
	db.add(history)
	db.commit()
	return result


@router.post("/examples")
async def rule_examples(
	req: ExamplesRequest,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	generate: ContentGenerator = Depends(get_content_generator),
) -> List[str]:
	if not req.rule.strip():
		raise ValidationError("Please provide a rule")
	check_quota(db, user)
	raw = await generate(_build_examples_prompt(req.rule, req.mistake or ""))
	increment_usage(db, user.id)
	examples = recover(raw, "array")
	return [str(e) for e in examples if isinstance(e, (str, int, float)) and str(e).strip()]


@router.get("/stats")
async def stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return mistake_stats(db, user.id)
