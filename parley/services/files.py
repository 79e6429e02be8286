"""File injection and repository tags for chat sessions."""

import configparser
import logging
import re
from pathlib import Path

from parley.models.chat import Message

logger = logging.getLogger(__name__)

RECURSIVE_SUFFIX = "/..."

_GITHUB_URL = re.compile(r"^(?:https://github\.com/|git@github\.com:)([^/]+)/([^/]+?)(?:\.git)?/?$")


def expand_path(path: str) -> Path:
    return Path(path).expanduser()


def collect_files(patterns: list[str], extensions: list[str] | None = None) -> list[str]:
    """Expand --file arguments into a sorted list of file paths.

    `dir/...` walks `dir` recursively, a plain directory contributes its
    direct children, anything else is taken as a file.
    """
    suffixes = tuple(e if e.startswith(".") else f".{e}" for e in extensions or [])
    found: list[Path] = []
    for pattern in patterns:
        recursive = pattern.endswith(RECURSIVE_SUFFIX)
        root = expand_path(pattern[: -len(RECURSIVE_SUFFIX)] if recursive else pattern)
        if not root.exists():
            raise FileNotFoundError(f"no such file or directory: {root}")
        if root.is_file():
            found.append(root)
        elif recursive:
            found.extend(p for p in root.rglob("*") if p.is_file())
        else:
            found.extend(p for p in root.iterdir() if p.is_file())

    paths = sorted({str(p) for p in found})
    if suffixes:
        paths = [p for p in paths if p.endswith(suffixes)]
    return paths


def file_messages(paths: list[str]) -> list[Message]:
    """One user message per file, holding its path and content."""
    messages = []
    for path in paths:
        try:
            content = Path(path).read_text()
        except UnicodeDecodeError:
            logger.warning(f"Skipping non-text file {path}")
            continue
        messages.append(Message(role="user", content=f"file {path}: `{content}`"))
    return messages


def parse_github_remote(url: str) -> tuple[str, str] | None:
    match = _GITHUB_URL.match(url.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


def find_git_config(start: Path) -> Path | None:
    for directory in [start, *start.parents]:
        candidate = directory / ".git" / "config"
        if candidate.is_file():
            return candidate
    return None


def repository_tags(start: Path | None = None) -> list[str]:
    """Tags for the GitHub repository containing `start`, if any."""
    config_path = find_git_config((start or Path.cwd()).resolve())
    if config_path is None:
        return []

    parser = configparser.ConfigParser(strict=False)
    try:
        parser.read(config_path)
    except configparser.Error as e:
        logger.debug(f"Unreadable git config {config_path}: {e}")
        return []

    url = parser.get('remote "origin"', "url", fallback="")
    repo = parse_github_remote(url)
    if repo is None:
        return []
    owner, name = repo
    return [f"github/{owner}/{name}"]
