"""Open content in the user's editor."""

import logging
import os
import shlex
import subprocess
import tempfile

logger = logging.getLogger(__name__)

DEFAULT_EDITOR = "vim"


class EditorError(Exception):
    pass


def editor_command() -> list[str]:
    editor = os.environ.get("EDITOR") or os.environ.get("VISUAL") or DEFAULT_EDITOR
    return shlex.split(editor)


def open_in_editor(content: str, ext: str = "txt") -> None:
    """Write content to a temp file and block until the editor exits.

    The temp file is removed however the editor exits.
    """
    fd, path = tempfile.mkstemp(prefix="parley-message-", suffix=f".{ext or 'txt'}")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        command = editor_command() + [path]
        logger.debug(f"Opening editor: {command}")
        subprocess.run(command, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise EditorError(f"editor failed: {e}") from e
    finally:
        if os.path.exists(path):
            os.remove(path)
