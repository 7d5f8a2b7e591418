"""
Note classification.

Keyword heuristics that decide whether a captured note is a task and which
categories it belongs to. Matching is case-insensitive substring matching.
"""

TASK_KEYWORDS = ("todo", "task", "remind", "call", "buy")

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "work": ("work", "meeting"),
    "personal": ("personal", "family"),
    "task": ("todo", "task"),
}

DEFAULT_CATEGORY = "general"


def detect_task(text: str) -> bool:
    """Return True when the text reads like something to do."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in TASK_KEYWORDS)


def categorize(text: str, default: str = DEFAULT_CATEGORY) -> list[str]:
    """Return the matching categories in declaration order, or ``[default]``."""
    lowered = text.lower()
    categories = [
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    ]
    return categories or [default]
