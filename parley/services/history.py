"""Persistent, navigable history of submitted prompts."""

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_ENTRIES = 1000


def escape(entry: str) -> str:
    return entry.replace("\\", "\\\\").replace("\n", "\\n")


def unescape(line: str) -> str:
    out = []
    chars = iter(line)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        if nxt == "n":
            out.append("\n")
        elif nxt == "\\":
            out.append("\\")
        else:
            out.append(ch + nxt)
    return "".join(out)


class InputHistory:
    """Bounded list of past inputs, newest last, backed by a plain-text file.

    Navigation mirrors a shell: `previous` walks back from the newest entry,
    `next` walks forward and restores the buffer that was being typed once it
    runs past the newest entry.
    """

    def __init__(self, path: Path, capacity: int = MAX_ENTRIES):
        self.path = Path(path)
        self.capacity = capacity
        self.entries: list[str] = []
        self.index = -1
        self.snapshot = ""
        self.load()

    def load(self) -> None:
        try:
            lines = self.path.read_text().splitlines()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Could not read history file {self.path}: {e}")
            return
        self.entries = [unescape(line) for line in lines if line][-self.capacity:]

    def save(self) -> None:
        """Rewrite the whole file atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                for entry in self.entries:
                    f.write(escape(entry) + "\n")
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def add(self, entry: str) -> None:
        self.reset()
        entry = entry.strip()
        if not entry:
            return
        if self.entries and self.entries[-1] == entry:
            return
        self.entries.append(entry)
        if len(self.entries) > self.capacity:
            self.entries = self.entries[-self.capacity:]
        try:
            self.save()
        except OSError as e:
            logger.warning(f"Could not write history file {self.path}: {e}")

    def previous(self, current: str) -> tuple[str, bool]:
        """Step back. Returns the entry to show and whether the position moved."""
        if not self.entries:
            return current, False
        if self.index == -1:
            self.snapshot = current
            self.index = len(self.entries) - 1
        elif self.index > 0:
            self.index -= 1
        else:
            return self.entries[0], False
        return self.entries[self.index], True

    def next(self) -> tuple[str, bool]:
        if self.index == -1:
            return "", False
        self.index += 1
        if self.index >= len(self.entries):
            snapshot = self.snapshot
            self.reset()
            return snapshot, True
        return self.entries[self.index], True

    def reset(self) -> None:
        self.index = -1
        self.snapshot = ""

    @property
    def navigating(self) -> bool:
        return self.index != -1
