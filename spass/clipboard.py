"""
Clipboard helper.

Copying is fire-and-forget: if no clipboard is available (headless box,
missing xclip/wl-copy) we log a warning and carry on.
"""

import logging

import pyperclip

logger = logging.getLogger(__name__)


def copy(text: str) -> bool:
    """Put `text` on the system clipboard. Returns False if that failed."""
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.warning("could not copy to clipboard: %s", e)
        return False
    return True
