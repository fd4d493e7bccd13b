"""Tests for ordered list parsing."""

import pytest

from alfredkit.core.errors import WorkflowError, user_error
from alfredkit.core.list_parser import parse_ordered_list_with, split_ordered_list


def test_split_trims_and_drops_empty_tokens():
    assert split_ordered_list(" USD, ,TWD\n\nJPY ,") == ["USD", "TWD", "JPY"]


def test_split_preserves_order_and_duplicates():
    assert split_ordered_list("b,a,b") == ["b", "a", "b"]


def test_split_of_blank_input_is_empty():
    assert split_ordered_list("  \n , ") == []


def test_mapper_can_skip_tokens():
    assert parse_ordered_list_with("1,x,2", lambda t: int(t) if t.isdigit() else None) == [1, 2]


def test_mapper_error_aborts():
    def strict(token: str) -> str:
        if len(token) != 3:
            raise user_error(f"invalid currency: {token}")
        return token.upper()

    with pytest.raises(WorkflowError) as exc_info:
        parse_ordered_list_with("usd,eu,jpy", strict)
    assert exc_info.value.message == "invalid currency: eu"
