"""Tests for commit message generation."""

import subprocess
from unittest.mock import patch

import pytest

from parley.services.commit import (
    COMMIT_PROMPT,
    CommitError,
    commit_messages,
    diff_scopes,
    filter_diff,
    generate_commit_message,
    staged_diff,
)
from parley.services.llm.base import GenerateConfig
from tests.conftest import FakeGenerator

DIFF = """diff --git a/parley/cli.py b/parley/cli.py
index 1111111..2222222 100644
--- a/parley/cli.py
+++ b/parley/cli.py
@@ -1,3 +1,3 @@
-old
+new
@@ -10,3 +10,4 @@
+more
diff --git a/parley/chat/app.py b/parley/chat/app.py
--- a/parley/chat/app.py
+++ b/parley/chat/app.py
@@ -5 +5 @@
-x
+y
diff --git a/tests/test_cli.py b/tests/test_cli.py
new file mode 100644
--- /dev/null
+++ b/tests/test_cli.py
@@ -0,0 +1 @@
+def test(): pass
diff --git a/uv.lock b/uv.lock
--- a/uv.lock
+++ b/uv.lock
@@ -1 +1 @@
-v1
+v2
"""


def test_diff_scopes_count_hunks_per_root_dir():
    assert diff_scopes(DIFF) == [("parley", 3), ("tests", 1), ("uv.lock", 1)]


def test_diff_scopes_skip_ignored_files():
    assert diff_scopes(DIFF, ["uv.lock"]) == [("parley", 3), ("tests", 1)]


def test_deleted_file_counts_under_old_name():
    deleted = "diff --git a/docs/old.md b/docs/old.md\n--- a/docs/old.md\n+++ /dev/null\n@@ -1 +0,0 @@\n-gone\n"
    assert diff_scopes(deleted) == [("docs", 1)]


def test_filter_diff_drops_ignored_sections():
    filtered = filter_diff(DIFF, ["uv.lock"])
    assert "uv.lock" not in filtered
    assert filtered.count("diff --git") == 3
    assert filter_diff(DIFF, []) == DIFF


def test_commit_messages():
    messages = commit_messages(DIFF, ["uv.lock"], hint="keep it short")
    assert [m.role for m in messages] == ["system", "system", "system", "user"]
    assert messages[0].content.startswith("[git diff]\n```diff --git a/parley/cli.py")
    assert "uv.lock" not in messages[0].content
    assert messages[1].content == (
        "Scopes available: [parley, tests]\n"
        "scope [parley] has 3 changes.\n"
        "scope [tests] has 1 changes."
    )
    assert messages[2].content == COMMIT_PROMPT
    assert messages[3].content.startswith("Generate a git commit message.")
    assert messages[3].content.endswith("keep it short\n")


@pytest.mark.asyncio
async def test_generate_commit_message():
    generator = FakeGenerator(title="  [parley] - feature: add diff command\n\n - lets users draft commits\n")
    message = await generate_commit_message(generator, DIFF, GenerateConfig(model="diff-model"))

    assert message == "[parley] - feature: add diff command\n\n - lets users draft commits"
    request, config = generator.generate_calls[0]
    assert config.model == "diff-model"
    assert len(request) == 4


def test_staged_diff_rejects_empty_diff():
    done = subprocess.CompletedProcess(["git"], 0, stdout="\n", stderr="")
    with patch("parley.services.commit.subprocess.run", return_value=done) as run:
        with pytest.raises(CommitError, match="empty"):
            staged_diff()
    assert run.call_args.args[0] == ["git", "diff", "--cached"]


def test_staged_diff_reports_git_failure():
    failure = subprocess.CalledProcessError(128, ["git"], stderr="fatal: not a git repository\n")
    with patch("parley.services.commit.subprocess.run", side_effect=failure):
        with pytest.raises(CommitError, match="not a git repository"):
            staged_diff()
