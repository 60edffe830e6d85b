"""
Record ordering.

``compare`` is the single-key comparator behind every admin column sort.
Missing or unsupported values always sort last, whatever the direction, and
values of mismatched types fall back to comparing their string forms.
"""
from datetime import date, datetime
from decimal import Decimal
from functools import cmp_to_key

from .state import DESC, Cursor

SORTABLE_TYPES = (str, int, float, Decimal, bool, date, datetime)


def _value(record, key):
    value = getattr(record, key, None)
    if value is None or not isinstance(value, SORTABLE_TYPES):
        return None
    return value


def _compare_values(a, b):
    try:
        if a == b:
            return 0
        return -1 if a < b else 1
    except TypeError:
        # str vs int, naive vs aware datetimes, ...
        a, b = str(a), str(b)
        return (a > b) - (a < b)


def compare(a, b, key, direction):
    """
    Compare two records on one field.

    Args:
        a, b: records
        key: field name
        direction: "asc" or "desc"

    Returns:
        -1, 0 or 1
    """
    av = _value(a, key)
    bv = _value(b, key)
    if av is None and bv is None:
        return 0
    if av is None:
        return 1
    if bv is None:
        return -1
    result = _compare_values(av, bv)
    return -result if direction == DESC else result


def sort_records(records, sort_state):
    """
    Return records sorted by sort_state.

    Records with equal keys keep their input order: the input position is
    the final tie-break of the comparator, so the result does not depend on
    the stability of the underlying sort. ``None`` returns the input order.
    """
    records = list(records)
    if sort_state is None:
        return records

    key, direction = sort_state.key, sort_state.direction

    def by_position(x, y):
        return compare(x[1], y[1], key, direction) or (x[0] > y[0]) - (x[0] < y[0])

    indexed = sorted(enumerate(records), key=cmp_to_key(by_position))
    return [record for _, record in indexed]


def default_order_key(record):
    """Sort key of the public feed: pinned first, newest first, then id."""
    return Cursor.from_record(record).sort_key
