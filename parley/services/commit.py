"""Commit message generation from the staged git diff."""

import logging
import subprocess
from collections import Counter

from parley.models.chat import Message
from parley.services.llm.base import BaseGenerator, GenerateConfig

logger = logging.getLogger(__name__)

FILE_SEPARATOR = "diff --git"

COMMIT_PROMPT = """IMPORTANT: Provide only plain text without Markdown formatting.
IMPORTANT: Do not include markdown formatting such as "```".
Output a git commit message for the provided diff using the following format:
```
[{scope}] - {type}: {summary}

 - {bullet_point}
 - {bullet_point}
```

Documentation:
```
 summary: A 50 character summary. should be present tense. Not capitalized. No period in the end, and imperative like the type.
 scope: The package or module that is affected by the change. This field is optional, only include it if the changes particularly target a single area.
        If no particular area can be targeted, use "misc". If most of the changes happen in ./folder_a/, then the scope would be `folder_a`
 type: One of "fix, feature, refactor, test, devops, docs". Indicates the type of change being done.
 bullet_point: A sentence explaining why we're changing the code, compared to what it was before.
```

Examples:
```
[reporting] - feature: add automatic generation of PnL reports for competitors

 - Every 24 hours, a job is triggered to generate the PnL reports of all competitors and upload them to an S3 bucket
 - Failed jobs are retried with an exponential backoff
```
```
[trading] - refactor: remove `gas_limit` field from `Calldata` protobuf

 - `gas_limit` has been replaced by `gas_price` and all clients have stopped using it
```
```
[price_model] - test: cover case where Binance price feed disconnects
```
```
[env] - devops: add ClusterRoleBinding between price-model ServiceAccount and grpc-client-kube-resolver ClusterRole
```
"""

REQUEST_PROMPT = (
    "Generate a git commit message.\n"
    "Think step-by-step to ensure you only write about meaningful high-level changes.\n"
    "Try to understand what the diff aims to do rather than focus on the details.\n"
)


class CommitError(Exception):
    pass


def _git(*args: str) -> str:
    try:
        result = subprocess.run(["git", *args], capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise CommitError("git not found in your PATH") from e
    except subprocess.CalledProcessError as e:
        raise CommitError(f"git {args[0]} failed: {e.stderr.strip() or e.returncode}") from e
    return result.stdout


def staged_diff() -> str:
    diff = _git("diff", "--cached")
    if not diff.strip():
        raise CommitError("git diff is empty, aborting")
    return diff


def commit(message_path: str) -> None:
    _git("commit", "--file", message_path)


def filter_diff(diff: str, ignore_files: list[str]) -> str:
    """Drop the per-file sections that mention any ignored file."""
    parts = diff.split(FILE_SEPARATOR)
    kept = [part for part in parts if not any(name in part for name in ignore_files)]
    return FILE_SEPARATOR.join(kept)


def _file_name(section: str) -> str:
    old = new = ""
    for line in section.splitlines():
        if line.startswith("--- "):
            old = line[4:].removeprefix("a/")
        elif line.startswith("+++ "):
            new = line[4:].removeprefix("b/")
        elif line.startswith("@@"):
            break
    if new and new != "/dev/null":
        return new
    if old and old != "/dev/null":
        return old
    # header only (binary or mode change): " a/path b/path"
    header = section.splitlines()[0] if section else ""
    return header.rsplit(" b/", 1)[-1].strip()


def diff_scopes(diff: str, ignore_files: list[str] | None = None) -> list[tuple[str, int]]:
    """Hunk counts per top-level directory, most changed first."""
    ignore_files = ignore_files or []
    counts: Counter[str] = Counter()
    for section in diff.split(FILE_SEPARATOR)[1:]:
        name = _file_name(section)
        if name in ignore_files:
            logger.info(f"Ignoring {name}")
            continue
        root = name.removeprefix("./").split("/")[0]
        counts[root] += sum(1 for line in section.splitlines() if line.startswith("@@"))
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def commit_messages(diff: str, ignore_files: list[str] | None = None, hint: str = "") -> list[Message]:
    ignore_files = ignore_files or []
    scopes = diff_scopes(diff, ignore_files)
    scope_lines = "\n".join(f"scope [{name}] has {count} changes." for name, count in scopes)
    return [
        Message(role="system", content=f"[git diff]\n```{filter_diff(diff, ignore_files)}```"),
        Message(role="system", content=f"Scopes available: [{', '.join(name for name, _ in scopes)}]\n{scope_lines}"),
        Message(role="system", content=COMMIT_PROMPT),
        Message(role="user", content=f"{REQUEST_PROMPT}{hint}\n"),
    ]


async def generate_commit_message(
    generator: BaseGenerator,
    diff: str,
    config: GenerateConfig,
    ignore_files: list[str] | None = None,
    hint: str = "",
) -> str:
    messages = commit_messages(diff, ignore_files, hint)
    logger.info(f"Generating commit message: model={config.model} diff_chars={len(diff)}")
    response = await generator.generate(messages, config)
    return response.content.strip()
