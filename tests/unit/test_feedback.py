"""Tests for Alfred feedback items and subtitle normalization."""

from alfredkit.core.feedback import Feedback, Item, normalize_subtitle


def test_optional_fields_are_omitted():
    item = Item(title="USD", subtitle=None, arg="1")
    assert item.to_dict() == {"title": "USD", "arg": "1"}


def test_valid_false_is_emitted():
    assert Item(title="x", valid=False).to_dict() == {"title": "x", "valid": False}


def test_subtitle_is_normalized_on_output():
    item = Item(title="t", subtitle="line one\n\tline   two ")
    assert item.to_dict()["subtitle"] == "line one line two"


def test_truncation_uses_code_points():
    text = "天" * 130
    normalized = normalize_subtitle(text)
    assert len(normalized) == 120
    assert normalized.endswith("...")
    assert normalized[:117] == "天" * 117


def test_tiny_budget_is_all_dots():
    assert normalize_subtitle("abcdef", 2) == ".."
    assert normalize_subtitle("abcdef", 0) == ""


def test_feedback_document():
    feedback = Feedback(items=[Item(title="a"), Item(title="b", uid="b")])
    assert feedback.to_dict() == {"items": [{"title": "a"}, {"title": "b", "uid": "b"}]}
