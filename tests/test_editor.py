"""Tests for handing content to an external editor."""

import tempfile
from pathlib import Path

import pytest

from parley.chat.editor import EditorError, editor_command, open_in_editor


def test_editor_command_precedence(monkeypatch):
    monkeypatch.delenv("EDITOR", raising=False)
    monkeypatch.delenv("VISUAL", raising=False)
    assert editor_command() == ["vim"]
    monkeypatch.setenv("VISUAL", "nano")
    assert editor_command() == ["nano"]
    monkeypatch.setenv("EDITOR", "code --wait")
    assert editor_command() == ["code", "--wait"]


def test_temp_file_holds_content_and_is_removed(monkeypatch, tmp_path):
    monkeypatch.setenv("EDITOR", f"cp -p -t {tmp_path}")
    open_in_editor("echo hi", "sh")

    copies = [p for p in tmp_path.iterdir() if p.name.startswith("parley-message-")]
    assert len(copies) == 1
    assert copies[0].suffix == ".sh"
    assert copies[0].read_text() == "echo hi"
    assert not (Path(tempfile.gettempdir()) / copies[0].name).exists()


def test_failing_editor(monkeypatch):
    monkeypatch.setenv("EDITOR", "false")
    with pytest.raises(EditorError, match="editor failed"):
        open_in_editor("x")


def test_missing_editor(monkeypatch):
    monkeypatch.setenv("EDITOR", "definitely-not-an-editor-binary")
    with pytest.raises(EditorError):
        open_in_editor("x")
