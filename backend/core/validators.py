"""Input validation for operator requests"""
from typing import Iterable, Tuple


class ValidationError(Exception):
    """Custom validation error"""
    pass


CLASSNAVI_SUBJECT_FILTERS = ('both', '010', '022')


def validate_subject(subject: str, subjects: Iterable[str]) -> str:
    """
    Resolve an operator-supplied subject to its configured spelling.

    Matching is case-insensitive; "math" resolves to "Math".
    """
    if not subject or not isinstance(subject, str) or not subject.strip():
        raise ValidationError('subject is required and must be a non-empty string')

    wanted = subject.strip().lower()
    for known in subjects:
        if known.lower() == wanted:
            return known

    raise ValidationError(f"Unknown subject '{subject}'. Expected one of: {', '.join(subjects)}")


def validate_subject_filter(value: str) -> Tuple[bool, bool]:
    """Validate a ClassNavi subject filter and return (want_math, want_reading)."""
    value = (value or 'both').strip().lower()
    if value not in CLASSNAVI_SUBJECT_FILTERS:
        raise ValidationError(
            f"subject filter must be one of {', '.join(CLASSNAVI_SUBJECT_FILTERS)}, got '{value}'"
        )
    return value in ('both', '010'), value in ('both', '022')
