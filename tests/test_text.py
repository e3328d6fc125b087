import pytest

from gitopskit.text import first_non_empty, with_default


def test_first_non_empty_picks_first_value():
    assert first_non_empty("", "a", "b") == "a"


def test_first_non_empty_returns_first_when_set():
    assert first_non_empty("x", "y") == "x"


@pytest.mark.parametrize("args", [(), ("",), ("", "", "")])
def test_first_non_empty_all_empty(args):
    assert first_non_empty(*args) == ""


def test_with_default_uses_default_for_blank():
    assert with_default("", "fallback") == "fallback"


def test_with_default_keeps_value():
    assert with_default("value", "fallback") == "value"