"""Record-level filter, sort and group logic for reports."""

import logging
import math
from datetime import date, datetime
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Optional, Union

from src.core.config import settings
from src.reporting.templates import (
    FilterOperator, ReportField, ReportFilter, SortDirection, SortKey
)

logger = logging.getLogger(__name__)

GROUP_SEPARATOR = "|"

Record = Dict[str, Any]
GroupedRecords = Dict[str, List[Record]]


def resolve(record: Any, path: str) -> Optional[Any]:
    """
    Look up a dotted path such as 'candidate.name' in a record.

    Dict keys and object attributes are both followed; list segments accept
    integer indexes. Any missing segment yields None.
    """
    current = record
    for key in path.split('.'):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(key)]
            except (ValueError, IndexError):
                return None
        else:
            current = getattr(current, key, None)
    return current


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _compare(value: Any, other: Any) -> Optional[int]:
    """Three-way comparison for GREATER_THAN/LESS_THAN/BETWEEN; None if incomparable."""
    left, right = _as_number(value), _as_number(other)
    if left is not None and right is not None:
        return (left > right) - (left < right)
    try:
        return (value > other) - (value < other)
    except TypeError:
        return None


def _contains(value: Any, needle: Any) -> bool:
    return str(needle).lower() in str(value).lower()


def matches(record: Record, flt: ReportFilter) -> bool:
    """
    Evaluate one predicate.

    A missing value only satisfies NOT_EQUALS and NOT_CONTAINS.
    """
    value = resolve(record, flt.field)
    expected = flt.value
    op = flt.operator

    if op == FilterOperator.NOT_EQUALS:
        return value != expected
    if op == FilterOperator.NOT_CONTAINS:
        return value is None or not _contains(value, expected)

    if value is None:
        return False

    if op == FilterOperator.EQUALS:
        return value == expected
    if op == FilterOperator.CONTAINS:
        return _contains(value, expected)
    if op == FilterOperator.GREATER_THAN:
        return _compare(value, expected) == 1
    if op == FilterOperator.LESS_THAN:
        return _compare(value, expected) == -1
    if op == FilterOperator.BETWEEN:
        if not isinstance(expected, (list, tuple)) or len(expected) != 2:
            return False
        low, high = _compare(value, expected[0]), _compare(value, expected[1])
        return low is not None and high is not None and low >= 0 and high <= 0
    if op == FilterOperator.IN:
        return isinstance(expected, (list, tuple)) and value in expected
    if op == FilterOperator.NOT_IN:
        return isinstance(expected, (list, tuple)) and value not in expected
    return True


def apply_filters(records: Iterable[Record], filters: List[ReportFilter]) -> List[Record]:
    """Keep records satisfying every filter."""
    if not filters:
        return list(records)
    return [r for r in records if all(matches(r, f) for f in filters)]


def _compare_values(a: Any, b: Any) -> int:
    # None sorts after every value in ascending order
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    try:
        return (a > b) - (a < b)
    except TypeError:
        sa, sb = str(a), str(b)
        return (sa > sb) - (sa < sb)


def apply_sorting(records: List[Record], sort_by: List[SortKey]) -> List[Record]:
    """
    Stable multi-key sort; earlier keys take priority and ties fall through.
    """
    if not sort_by:
        return list(records)

    def comparator(a: Record, b: Record) -> int:
        for key in sort_by:
            result = _compare_values(resolve(a, key.field), resolve(b, key.field))
            if result:
                return -result if key.direction == SortDirection.DESC else result
        return 0

    return sorted(records, key=cmp_to_key(comparator))


def group_key(record: Record, group_by: List[str]) -> str:
    parts = []
    for path in group_by:
        value = resolve(record, path)
        parts.append("" if value is None else str(value))
    return GROUP_SEPARATOR.join(parts)


def apply_grouping(records: List[Record], group_by: List[str]) -> Union[List[Record], GroupedRecords]:
    """
    Partition records by the composite value of the group fields.
    Groups keep first-seen order and member order; empty group_by returns the list.
    """
    if not group_by:
        return records

    grouped: GroupedRecords = {}
    for record in records:
        grouped.setdefault(group_key(record, group_by), []).append(record)
    return grouped


def _format_number(value: float) -> str:
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return f"{value:g}"


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        from dateutil import parser as date_parser
        try:
            return date_parser.isoparse(value).date()
        except (ValueError, OverflowError):
            return None
    return None


def format_field_value(value: Any, field: ReportField) -> Any:
    """
    Apply a field's display format.

    None renders as an empty string; values the format cannot handle fall
    back to their raw form.
    """
    if value is None:
        return ""

    fmt = (field.format or "").lower()
    if fmt == "currency":
        number = _as_number(value)
        if number is None:
            return value
        return f"{settings.currency_symbol}{number:,.2f}"
    if fmt == "percentage":
        number = _as_number(value)
        if number is None:
            return value
        return f"{_format_number(number)}%"
    if fmt == "date":
        parsed = _parse_date(value)
        if parsed is None:
            logger.debug(f"Unparseable date for field {field.name}: {value!r}")
            return value
        return parsed.strftime(settings.report_date_format)
    return value


def format_cell(record: Record, field: ReportField) -> str:
    """Resolved and formatted value as text, for the tabular renderers."""
    value = format_field_value(resolve(record, field.source), field)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_number(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)
