import pytest

from linguacoach.errors import MalformedResponseError
from linguacoach.recovery import EXCERPT_LIMIT, excerpt, recover, recover_or, strip_fences, valid_items


def test_fenced_object_round_trips():
	raw = '```json\n{"score": 8, "feedback": "Good"}\n```'
	assert recover(raw, "object") == {"score": 8, "feedback": "Good"}


def test_plain_fence_and_surrounding_prose():
	raw = "Sure! Here it is:\n```\n[\"a\", \"b\"]\n```\nHope that helps."
	assert recover(raw, "array") == ["a", "b"]


def test_not_json_raises_with_short_excerpt():
	with pytest.raises(MalformedResponseError) as ei:
		recover("not json at all", "object")
	assert ei.value.excerpt == "not json at all"
	assert ei.value.status_code == 500


def test_excerpt_is_truncated():
	raw = "x" * 500
	with pytest.raises(MalformedResponseError) as ei:
		recover(raw, "object")
	assert len(ei.value.excerpt) <= EXCERPT_LIMIT + 3
	assert len(excerpt(raw)) == EXCERPT_LIMIT + 3


def test_first_balanced_object_wins_over_trailing_braces():
	raw = 'Result: {"a": 1} and a stray } plus {"b": 2}'
	assert recover(raw, "object") == {"a": 1}


def test_brackets_inside_strings_are_ignored():
	raw = '{"feedback": "use } and { carefully", "score": 4}'
	assert recover(raw, "object") == {"feedback": "use } and { carefully", "score": 4}


def test_shape_mismatch_is_malformed():
	with pytest.raises(MalformedResponseError):
		recover('{"word": "x"}', "array")


def test_recover_or_returns_default():
	default = {"hiringDecision": "Maybe", "overallScore": 50}
	assert recover_or("garbage", "object", default) is default


def test_strip_fences_leaves_plain_text():
	assert strip_fences("  hello  ") == "hello"


def test_valid_items_drops_incomplete_entries():
	items = [{"wrong": "goed", "correct": "went"}, {"wrong": "x"}, "junk", {"wrong": "", "correct": "y"}]
	assert valid_items(items, "wrong", "correct") == [{"wrong": "goed", "correct": "went"}]
	assert valid_items(None, "wrong") == []
