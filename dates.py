#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Date helpers for highlight dates

Highlight dates are stored as date-only strings (YYYY-MM-DD). They are always
split into (year, month, day) and built as calendar dates, never parsed as
UTC instants.
"""

import re
from datetime import date, datetime

DATE_ONLY_RE = re.compile(r'[0-9]{4}-[0-9]{2}-[0-9]{2}')

MIN_YEAR = 1900
MAX_YEARS_AHEAD = 10


def _reference_date(reference_now):
    if reference_now is None:
        return date.today()
    if isinstance(reference_now, datetime):
        if reference_now.tzinfo is not None:
            reference_now = reference_now.astimezone()
        return reference_now.date()
    return reference_now


def _add_years(day, years):
    """Same month/day `years` later; Feb 29 falls back to Feb 28"""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def validate_date_string(date_string, reference_now=None):
    """
    Validate a user-entered YYYY-MM-DD date before it is saved.

    Returns {'valid': True} or {'valid': False, 'reason': ...}. Never raises.
    """
    if not isinstance(date_string, str) or not DATE_ONLY_RE.fullmatch(date_string):
        return {'valid': False, 'reason': 'invalid format'}

    year, month, day = (int(part) for part in date_string.split('-'))

    if month < 1 or month > 12:
        return {'valid': False, 'reason': 'invalid month'}
    if day < 1 or day > 31:
        return {'valid': False, 'reason': 'invalid day'}

    try:
        candidate = date(year, month, day)
    except ValueError:
        return {'valid': False, 'reason': 'invalid date'}
    if candidate.isoformat() != date_string:
        return {'valid': False, 'reason': 'invalid date'}

    today = _reference_date(reference_now)
    if year < MIN_YEAR or year > today.year + MAX_YEARS_AHEAD:
        return {'valid': False, 'reason': 'year out of range'}

    if candidate > _add_years(today, MAX_YEARS_AHEAD):
        return {'valid': False, 'reason': 'date too far in the future'}

    return {'valid': True}


def parse_date_only(value):
    """Return a date for a YYYY-MM-DD string (or date/datetime), else None"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    value = value.strip()
    if not DATE_ONLY_RE.fullmatch(value):
        return None
    year, month, day = (int(part) for part in value.split('-'))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def to_local_datetime(value):
    """
    Normalize a record date into a naive local datetime, or None.

    Date-only values become local midnight. Aware timestamps are converted to
    local time so they bucket by the wall-clock day the user saw.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None

    day = parse_date_only(value)
    if day is not None:
        return datetime(day.year, day.month, day.day)

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return to_local_datetime(parsed)


def format_date(value):
    """YYYY-MM-DD for form fields; the time part of a stored timestamp is dropped"""
    if isinstance(value, str):
        value = value.split('T')[0]
    day = parse_date_only(value)
    return day.isoformat() if day else ''
