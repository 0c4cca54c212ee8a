"""Input hygiene shared by the services."""

import bleach

from taskboard.errors import ValidationError


def sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(text, tags=[], strip=True).strip()


def sanitize_tags(tags):
    """Sanitize a tag list, dropping blanks and duplicates, keeping order."""
    if tags is None:
        return []
    if isinstance(tags, str) or not isinstance(tags, (list, tuple, set)):
        raise ValidationError("Tags must be a list of strings.")
    cleaned = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be a list of strings.")
        tag = sanitize(tag)
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned
