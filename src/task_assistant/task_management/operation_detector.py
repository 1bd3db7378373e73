"""
Operation classification and context filtering.

The classifier guesses whether a request creates, modifies or deletes tasks.
Its only job is to bound how many existing tasks are shown to the completion
engine; the engine still decides which actions to emit.
"""

import logging
import re

from .config import DELETE_CONTEXT_LIMIT, MIN_KEYWORD_LENGTH, MODIFY_CONTEXT_LIMIT
from .keywords import (
    CREATE_KEYWORDS,
    OPERATION_KEYWORDS,
    REFERENCE_PATTERN,
    STOP_WORDS,
    compile_keyword_pattern,
    match_category,
)
from .models import OperationType, Task

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[^\w\s]")


def detect_operation_type(text: str) -> OperationType:
    """
    Classify a request as create, modify or delete.

    Ambiguous input is treated as create, never as a destructive operation.

    Args:
        text: Raw user input

    Returns:
        Detected operation type
    """
    if not isinstance(text, str) or not text.strip():
        return OperationType.CREATE

    category = match_category(text, OPERATION_KEYWORDS)
    if category is not None:
        return OperationType(category)

    if REFERENCE_PATTERN.search(text):
        return OperationType.MODIFY

    if compile_keyword_pattern(CREATE_KEYWORDS).search(text):
        return OperationType.CREATE

    return OperationType.CREATE


def extract_keywords(text: str) -> list[str]:
    """
    Extract search keywords from a request.

    Args:
        text: Raw user input

    Returns:
        Lower-cased words longer than two characters that are not stop words
    """
    words = _WORD_RE.sub(" ", text.lower()).split()
    return [
        word
        for word in words
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    ]


def _newest_first(tasks: list[Task]) -> list[Task]:
    return sorted(tasks, key=lambda task: task.created_at, reverse=True)


def filter_tasks_for_operation(
    operation: OperationType, tasks: list[Task], text: str
) -> list[Task]:
    """
    Narrow the existing tasks handed to the extraction prompt.

    Args:
        operation: Detected operation type
        tasks: All tasks of the user
        text: Raw user input

    Returns:
        Tasks to expose, newest first
    """
    if operation is OperationType.CREATE:
        return []

    ordered = _newest_first(tasks)

    if operation is OperationType.DELETE:
        return ordered[:DELETE_CONTEXT_LIMIT]

    keywords = extract_keywords(text)
    if keywords:
        matched = [
            task
            for task in ordered
            if any(keyword in task.text.lower() for keyword in keywords)
        ]
        if matched:
            logger.debug(
                f"Context filter matched {len(matched)} tasks for keywords {keywords}"
            )
            return matched[:MODIFY_CONTEXT_LIMIT]

    return ordered[:MODIFY_CONTEXT_LIMIT]
