"""Content and vote-kind validation shared by the intake and the API."""

from __future__ import annotations

import re
from enum import Enum
from typing import TypeVar

from storyweave.core.errors import ValidationError
from storyweave.core.settings import settings

_CONTRIBUTION_PATTERN = re.compile(r"CONTRIBUTION:\s*([\s\S]*)")

KindT = TypeVar("KindT", bound=Enum)


def word_count(text: str) -> int:
    """Return the number of whitespace-separated words in ``text``."""
    return len(text.split())


def validate_submission(content: str) -> str:
    """Validate submission text and return it stripped of surrounding whitespace.

    Raises:
        ValidationError: If the text is blank, too long or outside the
            configured word limit.
    """
    text = content.strip()
    if not text:
        raise ValidationError("Submission content must not be empty")
    if len(text) > settings.max_submission_chars:
        raise ValidationError(
            f"Submission exceeds {settings.max_submission_chars} characters"
        )
    limits = settings.word_limit_range
    if limits is not None:
        words = word_count(text)
        min_words, max_words = limits
        if words < min_words:
            raise ValidationError(f"Too few words: {words}/{min_words} minimum")
        if words > max_words:
            raise ValidationError(f"Too many words: {words}/{max_words} maximum")
    return text


def is_valid_submission(content: str) -> bool:
    """Return True if ``content`` would be admitted by ``validate_submission``."""
    try:
        validate_submission(content)
    except ValidationError:
        return False
    return True


def extract_contribution(comment_body: str) -> str | None:
    """Return the text following a ``CONTRIBUTION:`` marker in a comment, if any."""
    match = _CONTRIBUTION_PATTERN.search(comment_body)
    if match is None:
        return None
    text = match.group(1).strip()
    return text or None


def parse_kind(kind_type: type[KindT], value: str | KindT) -> KindT:
    """Coerce ``value`` to a member of ``kind_type``.

    Raises:
        ValidationError: If ``value`` does not name a member.
    """
    if isinstance(value, kind_type):
        return value
    try:
        return kind_type(value)
    except ValueError as err:
        allowed = ", ".join(str(member.value) for member in kind_type)
        raise ValidationError(f"Unknown vote kind {value!r}; expected one of {allowed}") from err
