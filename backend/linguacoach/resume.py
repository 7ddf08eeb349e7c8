from __future__ import annotations
import io
import logging

from fastapi import UploadFile
from pypdf import PdfReader

from .errors import ValidationError

logger = logging.getLogger(__name__)

MAX_RESUME_BYTES = 5 * 1024 * 1024
PDF_CONTENT_TYPE = "application/pdf"


def extract_text(data: bytes) -> str:
	"""Plain text of every page, or "" when the PDF cannot be read."""
	try:
		reader = PdfReader(io.BytesIO(data))
		pages = [page.extract_text() or "" for page in reader.pages]
	except Exception as e:
		logger.warning("resume text extraction failed: %s", e)
		return ""
	return "\n".join(p.strip() for p in pages).strip()


async def read_resume(upload: UploadFile) -> str:
	if upload.content_type != PDF_CONTENT_TYPE:
		raise ValidationError("Only PDF files allowed")
	data = await upload.read(MAX_RESUME_BYTES + 1)
	if len(data) > MAX_RESUME_BYTES:
		raise ValidationError("Resume too large (max 5MB)")
	return extract_text(data)
