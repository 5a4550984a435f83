# vacancy_bot/criteria.py
"""
Decide whether a chat message is a room request worth answering.
A message qualifies when it carries the configured base text (e.g. "NO. OF ROOMS")
and, if a room category is configured, that category too.
"""


def meets_criteria_to_respond(text: str, base_criteria: str, category: str, is_optimistic: bool) -> bool:
    upper = (text or "").upper()
    if base_criteria.upper() in upper:
        if not category or category.upper() in upper:
            return True
    # Optimistic mode answers anything and lets the room count decide
    return is_optimistic
