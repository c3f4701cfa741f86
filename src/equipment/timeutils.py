"""Timestamp parsing shared by status resolution and billing."""

import datetime

from django.utils import timezone
from django.utils.dateparse import parse_datetime


def parse_timestamp(value):
    """Return an aware datetime for ``value``, or None if it can't be read.

    Accepts datetimes and ISO-8601 strings (``Z`` suffix allowed). Naive
    values are read as UTC.
    """
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = parse_datetime(value.strip())
        except ValueError:
            return None
        if parsed is None:
            return None
    else:
        return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, datetime.timezone.utc)
    return parsed
