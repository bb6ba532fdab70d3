"""
Edit text in the user's $EDITOR.

The content is written to a private temp file (mode 0600), the editor is
run through `sh -c` so values like "code --wait" work, and the file is read
back and deleted afterwards, even on failure.
"""

import logging
import os
import shlex
import subprocess
import tempfile

from .errors import EditorError

logger = logging.getLogger(__name__)


def edit(editor: str, content: str) -> str:
    """Open `content` in `editor` and return what the user saved."""
    fd, path = tempfile.mkstemp(prefix="spass-", suffix=".txt")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)

        logger.debug("running editor %r", editor)
        try:
            proc = subprocess.run(["sh", "-c", f"{editor} {shlex.quote(path)}"], check=False)
        except OSError as e:
            raise EditorError(f"opening $EDITOR: {e}") from e
        if proc.returncode != 0:
            raise EditorError(f"$EDITOR exited with code {proc.returncode}")

        with open(path, encoding="utf-8") as f:
            return f.read()
    finally:
        os.remove(path)
