"""Small helpers shared across the build: dates, excerpts and type names."""

import re
from datetime import date, datetime, timezone

DATE_FORMATS = ['%b %d, %Y']


def to_naive_utc(value):
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(value, default=datetime.min):
    """
    Parse a date, datetime or date string; return ``default`` when it can't.

    ISO-8601 strings may carry fractional seconds and a ``Z`` or offset zone.
    Zoned values are converted to naive UTC so every result compares with
    every other.
    """
    if isinstance(value, datetime):
        return to_naive_utc(value)
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        try:
            return to_naive_utc(datetime.fromisoformat(re.sub(r'[Zz]$', '+00:00', text)))
        except ValueError:
            pass
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    return default


def format_date(value):
    """
    Format a date for display as ``"Jan 10, 2026"``.

    Raises:
        TypeError: If ``value`` is not a date or datetime
    """
    if not isinstance(value, date):
        raise TypeError("Invalid date provided to format_date")
    return value.strftime('%b %d, %Y')


def generate_excerpt(content, words=30):
    """Generate a plain-text excerpt from HTML or markdown content."""
    plain_text = re.sub(r'<[^>]+>', '', content)
    parts = plain_text.split()
    if len(parts) > words:
        return ' '.join(parts[:words]) + '...'
    return ' '.join(parts)


def type_name_from(text, suffix=''):
    """``"site-pages"`` -> ``"SitePages"`` + suffix."""
    parts = [p for p in re.split(r'[^0-9A-Za-z]+', text) if p]
    return ''.join(p[0].upper() + p[1:] for p in parts) + suffix
