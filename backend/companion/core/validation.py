"""
Input validation - length ceilings and field checks.

Validators raise ``ValidationError`` before any state is touched.
"""

from typing import Optional

from ..config import settings
from .errors import ValidationError

MEMORY_CATEGORIES = (
    "project",
    "interest",
    "challenge",
    "insight",
    "distraction",
    "goal",
    "preference",
    "win",
    "context",
)

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5


def validate_message_content(content: Optional[str], max_length: Optional[int] = None) -> str:
    """Validate a chat turn's content and return it unchanged."""
    max_length = max_length or settings.max_message_length
    if not content or not isinstance(content, str):
        raise ValidationError("Message must be a non-empty string", code="empty_content")
    if len(content) > max_length:
        raise ValidationError(
            f"Message too long (max {max_length} characters)",
            code="message_too_long",
        )
    return content


def validate_task(task: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Validate a declared task. The task itself is optional."""
    max_length = max_length or settings.max_task_length
    if task is None:
        return None
    if not isinstance(task, str):
        raise ValidationError("Task must be a string", code="invalid_task")
    if len(task) > max_length:
        raise ValidationError(
            f"Task description too long (max {max_length} characters)",
            code="task_too_long",
        )
    return task


def validate_memory_content(content: Optional[str], max_length: Optional[int] = None) -> str:
    max_length = max_length or settings.max_memory_content_length
    if not content or not isinstance(content, str):
        raise ValidationError("Content must be a non-empty string", code="empty_content")
    if len(content) > max_length:
        raise ValidationError(
            f"Content too long (max {max_length} characters)",
            code="memory_content_too_long",
        )
    return content


def validate_category(category: Optional[str]) -> str:
    if category not in MEMORY_CATEGORIES:
        raise ValidationError(
            f"Invalid category. Must be one of: {', '.join(MEMORY_CATEGORIES)}",
            code="invalid_category",
        )
    return category


def validate_importance(importance: Optional[int]) -> int:
    if (
        not isinstance(importance, int)
        or isinstance(importance, bool)
        or not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE
    ):
        raise ValidationError(
            f"Importance must be an integer between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}",
            code="invalid_importance",
        )
    return importance
