#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Month grouping for the highlights timeline
"""

from datetime import date, datetime

from dates import to_local_datetime


def _record_date(item):
    if isinstance(item, dict):
        value = item.get('date') or item.get('date_achieved')
    else:
        value = getattr(item, 'date', None)
        if value is None:
            value = getattr(item, 'date_achieved', None)
    return to_local_datetime(value)


def _previous_month(year, month):
    if month == 1:
        return year - 1, 12
    return year, month - 1


def month_label(year, month, reference_now):
    """'This Month', 'Last Month' or e.g. 'March 2024'"""
    if (year, month) == (reference_now.year, reference_now.month):
        return 'This Month'
    if (year, month) == _previous_month(reference_now.year, reference_now.month):
        return 'Last Month'
    return date(year, month, 1).strftime('%B %Y')


def group_by_month(items, reference_now=None):
    """
    Group dated records into calendar-month buckets, newest first.

    Returns (groups, skipped). Each group is a dict with 'label', 'month_key'
    ('YYYY-MM') and 'items' sorted newest first, ties kept in input order.
    Records whose date can't be parsed are left out of the groups and
    returned in `skipped`.
    """
    if reference_now is None:
        reference_now = datetime.now()
    elif isinstance(reference_now, datetime) and reference_now.tzinfo is not None:
        reference_now = reference_now.astimezone()

    buckets = {}
    skipped = []
    for item in items:
        when = _record_date(item)
        if when is None:
            skipped.append(item)
            continue
        buckets.setdefault((when.year, when.month), []).append((when, item))

    groups = []
    for year, month in sorted(buckets, reverse=True):
        entries = sorted(buckets[(year, month)], key=lambda entry: entry[0], reverse=True)
        groups.append({
            'label': month_label(year, month, reference_now),
            'month_key': f'{year:04d}-{month:02d}',
            'items': [item for _, item in entries],
        })

    return groups, skipped
