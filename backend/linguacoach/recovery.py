from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from .errors import MalformedResponseError

logger = logging.getLogger(__name__)

Shape = Literal["object", "array"]

EXCERPT_LIMIT = 100

_BRACKETS: Dict[str, Tuple[str, str]] = {"object": ("{", "}"), "array": ("[", "]")}
_LEADING_FENCE = re.compile(r"^```[a-zA-Z]*\s*")
_TRAILING_FENCE = re.compile(r"\s*```$")


def excerpt(raw: str, limit: int = EXCERPT_LIMIT) -> str:
	raw = raw or ""
	return raw if len(raw) <= limit else raw[:limit] + "..."


def strip_fences(text: str) -> str:
	s = (text or "").strip()
	s = _LEADING_FENCE.sub("", s)
	s = _TRAILING_FENCE.sub("", s)
	return s.strip()


def _balanced_span(text: str, open_ch: str, close_ch: str) -> Optional[str]:
	# Scan from the first opener, tracking depth outside of JSON strings
	start = text.find(open_ch)
	while start != -1:
		depth = 0
		in_string = False
		escaped = False
		for i in range(start, len(text)):
			ch = text[i]
			if in_string:
				if escaped:
					escaped = False
				elif ch == "\\":
					escaped = True
				elif ch == '"':
					in_string = False
				continue
			if ch == '"':
				in_string = True
			elif ch == open_ch:
				depth += 1
			elif ch == close_ch:
				depth -= 1
				if depth == 0:
					return text[start:i + 1]
		start = text.find(open_ch, start + 1)
	return None


def _greedy_span(text: str, open_ch: str, close_ch: str) -> Optional[str]:
	start = text.find(open_ch)
	end = text.rfind(close_ch)
	if start != -1 and end > start:
		return text[start:end + 1]
	return None


def recover(raw: str, shape: Shape = "object") -> Union[Dict[str, Any], List[Any]]:
	"""Extract and parse the JSON payload of a model reply.

	Fences are stripped, then the first balanced ``{...}`` or ``[...]`` span is
	parsed. The greedy first-to-last span is tried when no balanced span
	parses. Raises ``MalformedResponseError`` with a short excerpt otherwise.
	"""
	open_ch, close_ch = _BRACKETS[shape]
	expected = dict if shape == "object" else list
	text = strip_fences(raw)
	candidates = []
	for span in (_balanced_span(text, open_ch, close_ch), _greedy_span(text, open_ch, close_ch)):
		if span and span not in candidates:
			candidates.append(span)
	for span in candidates:
		try:
			value = json.loads(span)
		except ValueError:
			continue
		if isinstance(value, expected):
			return value
	logger.warning("could not recover %s from model output: %r", shape, excerpt(raw))
	raise MalformedResponseError(
		f"could not recover JSON {shape} from model output",
		excerpt=excerpt(raw),
	)


def recover_or(raw: str, shape: Shape, default: Any) -> Any:
	"""Like ``recover`` but returns ``default`` when the reply is malformed.

	Only for replies whose absence has a sensible stand-in (e.g. a neutral
	report); the failure is still logged.
	"""
	try:
		return recover(raw, shape)
	except MalformedResponseError:
		return default


def valid_items(items: Any, *required: str) -> List[Dict[str, Any]]:
	"""Keep the dict entries of ``items`` whose ``required`` fields are non-empty."""
	if not isinstance(items, list):
		return []
	kept = []
	for item in items:
		if not isinstance(item, dict):
			continue
		if all(item.get(key) for key in required):
			kept.append(item)
	return kept
