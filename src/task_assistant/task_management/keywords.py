"""
Keyword tables used by the text heuristics.

Each table maps a category to the words or phrases that select it. Tables are
ordered: where several categories match, the first one listed wins. Extending
or localizing the heuristics only requires editing these tables.
"""

import re
from functools import lru_cache

from .models import OperationType

# Smart default rules, checked in order
SMART_DEFAULT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "urgent": ("urgent", "asap", "immediately", "right now", "now", "quick"),
    "today": ("today", "tonight", "this evening"),
    "shopping": (
        "buy",
        "shop",
        "grocery",
        "groceries",
        "store",
        "market",
        "pick up",
        "purchase",
        "errand",
    ),
    "meeting": (
        "meeting",
        "call",
        "conference",
        "zoom",
        "teams",
        "discuss",
        "sync",
        "standup",
    ),
    "communication": (
        "email",
        "send",
        "reply",
        "respond",
        "message",
        "text",
        "contact",
        "reach out",
    ),
    "work": (
        "report",
        "document",
        "presentation",
        "proposal",
        "review",
        "submit",
        "deadline",
        "project",
    ),
    "appointment": ("doctor", "dentist", "appointment", "haircut", "checkup", "visit"),
    "exercise": ("gym", "workout", "exercise", "run", "jog", "fitness", "yoga"),
}

# Operation keywords, checked in order (delete before modify before create)
OPERATION_KEYWORDS: dict[OperationType, tuple[str, ...]] = {
    OperationType.DELETE: ("delete", "remove", "cancel", "clear"),
    OperationType.MODIFY: ("move", "change", "update", "reschedule", "modify", "edit"),
}

CREATE_KEYWORDS: tuple[str, ...] = ("add", "create", "new", "remind", "schedule", "make")

# Phrases that point at an item the user already has ("my task", "that one")
REFERENCE_PATTERN = re.compile(
    r"\b(?:last|previous|recent|that|this|my)\s+(?:task|one|reminder)\b",
    re.IGNORECASE,
)

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "be", "been", "are",
        "i", "you", "he", "she", "it", "we", "they", "my", "your", "his",
        "her", "this", "that", "these", "those", "move", "change", "update",
        "task",
    }
)  # fmt: skip

# Folder inference, checked in order
FOLDER_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Shopping": (
        "buy",
        "shop",
        "purchase",
        "grocery",
        "groceries",
        "store",
        "market",
        "mall",
        "order",
        "amazon",
        "delivery",
    ),
    "Work": (
        "meeting",
        "email",
        "call boss",
        "call manager",
        "report",
        "presentation",
        "project",
        "deadline",
        "client",
        "team",
        "office",
        "work",
        "conference",
        "review",
        "document",
        "proposal",
        "memo",
        "colleague",
        "supervisor",
    ),
    "Personal": (
        "doctor",
        "dentist",
        "appointment",
        "gym",
        "workout",
        "exercise",
        "family",
        "friend",
        "birthday",
        "call mom",
        "call dad",
        "visit",
        "personal",
        "home",
        "car",
        "repair",
        "maintenance",
        "haircut",
        "hobby",
        "book",
        "read",
        "watch",
        "movie",
    ),
}


@lru_cache(maxsize=None)
def compile_keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    """
    Compile a case-insensitive whole-word pattern for a keyword set.

    Multi-word phrases match with any run of whitespace between words.

    Args:
        keywords: Words or phrases to match

    Returns:
        Compiled pattern matching any of the keywords
    """
    alternatives = [
        r"\s+".join(re.escape(part) for part in keyword.split())
        for keyword in sorted(keywords, key=len, reverse=True)
    ]
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")\b", re.IGNORECASE)


def match_category(
    text: str, table: dict[str, tuple[str, ...]] | dict[OperationType, tuple[str, ...]]
) -> str | OperationType | None:
    """
    Return the first category in a table whose keywords appear in text.

    Args:
        text: Text to scan
        table: Ordered keyword table

    Returns:
        Matching category, or None if nothing matches
    """
    for category, keywords in table.items():
        if compile_keyword_pattern(keywords).search(text):
            return category
    return None
