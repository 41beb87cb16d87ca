"""Clipboard text access."""

import logging

import pyperclip

logger = logging.getLogger(__name__)

MAX_CLIPBOARD_CHARS = 500


def read_clipboard() -> str:
    """Return the first 500 characters of the clipboard text, or "" if unavailable."""
    try:
        text = pyperclip.paste()
    except pyperclip.PyperclipException as e:
        logger.warning("Clipboard read failed: %s", e)
        return ""
    return (text or "")[:MAX_CLIPBOARD_CHARS]


def write_clipboard(text: str) -> bool:
    """Replace the clipboard text. Returns True on success."""
    try:
        pyperclip.copy(text)
        return True
    except pyperclip.PyperclipException as e:
        logger.warning("Clipboard write failed: %s", e)
        return False
