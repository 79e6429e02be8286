"""Tests for the persistent input history."""

import pytest

from parley.services.history import InputHistory, escape, unescape


@pytest.fixture
def history_path(tmp_path):
    return tmp_path / "history"


def test_navigation_round_trip(history_path):
    history = InputHistory(history_path)
    history.add("abc")

    assert history.previous("de") == ("abc", True)
    assert history.next() == ("de", True)
    assert not history.navigating

    assert history.previous("de") == ("abc", True)
    assert history.previous("abc") == ("abc", False)

    # editing the buffer ends navigation
    history.reset()
    assert history.next() == ("", False)


def test_walks_back_through_entries(history_path):
    history = InputHistory(history_path)
    for entry in ["one", "two", "three"]:
        history.add(entry)
    assert history.previous("")[0] == "three"
    assert history.previous("")[0] == "two"
    assert history.previous("")[0] == "one"
    assert history.next()[0] == "two"


def test_previous_with_no_entries(history_path):
    history = InputHistory(history_path)
    assert history.previous("typing") == ("typing", False)
    assert not history.navigating


def test_add_ignores_blank_and_repeats(history_path):
    history = InputHistory(history_path)
    history.add("  ")
    history.add("same")
    history.add("same\n")
    history.add("other")
    history.add("same")
    assert history.entries == ["same", "other", "same"]


def test_capacity_keeps_newest(history_path):
    history = InputHistory(history_path, capacity=3)
    for i in range(5):
        history.add(f"entry {i}")
    assert history.entries == ["entry 2", "entry 3", "entry 4"]
    assert InputHistory(history_path, capacity=3).entries == history.entries


def test_multiline_entries_survive_reload(history_path):
    history = InputHistory(history_path)
    history.add("line one\nline two")
    history.add("C:\\path\\new")
    reloaded = InputHistory(history_path)
    assert reloaded.entries == ["line one\nline two", "C:\\path\\new"]
    assert len(history_path.read_text().splitlines()) == 2


def test_escape_is_inverted():
    for entry in ["plain", "a\nb", "back\\slash", "\\n literal", "trailing\\"]:
        assert unescape(escape(entry)) == entry


def test_unwritable_history_does_not_raise(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    history = InputHistory(blocker / "history")
    history.add("still works")
    assert history.entries == ["still works"]
