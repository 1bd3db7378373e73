"""Folder inference for new tasks."""

import re
from collections.abc import Iterable

from .config import ALL_TASKS_FOLDER, DEFAULT_FOLDER
from .keywords import FOLDER_KEYWORDS, match_category

_LEAD_IN = r"\b(?:to|in|into|under|for)\s+"


def find_folder(name: str | None, folders: Iterable[str]) -> str | None:
    """
    Look up a folder by name, ignoring case.

    Args:
        name: Folder name to look for
        folders: Known folder names

    Returns:
        The folder name with its stored casing, or None if unknown
    """
    if not isinstance(name, str) or not name.strip():
        return None
    wanted = name.strip().lower()
    for folder in folders:
        if folder.lower() == wanted:
            return folder
    return None


def find_explicit_folder(text: str, folders: Iterable[str]) -> str | None:
    """
    Find a folder the text names explicitly ("add to Groceries", "in my work folder").

    Longer names are tried first so "Work Travel" wins over "Work". A
    one-word name only counts when it keeps its stored casing, follows "the"
    or "my", or is followed by "folder" or "list", so "remember to work out"
    names no folder.

    Args:
        text: Task text
        folders: Known folder names

    Returns:
        Mentioned folder name, or None
    """
    candidates = sorted(
        (folder for folder in folders if folder != ALL_TASKS_FOLDER),
        key=len,
        reverse=True,
    )
    for folder in candidates:
        name = re.escape(folder)
        if " " in folder.strip():
            patterns = [(_LEAD_IN + r"(?:the\s+|my\s+)?" + name, re.IGNORECASE)]
        else:
            patterns = [
                (_LEAD_IN + r"(?:the|my)\s+" + name, re.IGNORECASE),
                (
                    _LEAD_IN + r"(?:the\s+|my\s+)?" + name + r"\s+(?:folder|list)",
                    re.IGNORECASE,
                ),
                (r"(?i:" + _LEAD_IN + r")" + name, 0),
            ]
        for pattern, flags in patterns:
            if re.search(pattern + r"\b", text, flags):
                return folder
    return None


def detect_folder(text: str, folders: Iterable[str] = ()) -> str:
    """
    Choose a folder for a new task.

    Priority: explicit folder mention, then keyword inference, then the
    default folder.

    Args:
        text: Task text
        folders: Folders the user has

    Returns:
        Folder name
    """
    known = list(folders)
    explicit = find_explicit_folder(text, known)
    if explicit:
        return explicit

    category = match_category(text, FOLDER_KEYWORDS)
    if category is not None:
        return str(category)

    return DEFAULT_FOLDER
