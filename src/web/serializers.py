"""Shared serialization helpers for HTD API routers.

Usage:
    from src.web.serializers import serialize, serialize_list

    # Single object: all columns
    return serialize(template)

    # Single object: all columns except internal ones
    return serialize(report, exclude=["claim_token"])

    # List of objects: explicit fields
    return serialize_list(reports, fields=["id", "name", "next_run"])
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from src.core.utils import as_utc


def serialize(
    obj: Any,
    fields: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Convert an ORM model instance to a JSON-safe dict.

    Args:
        obj: SQLAlchemy model instance.
        fields: Whitelist of field names to include. If None, auto-detects from table columns.
        exclude: Blacklist of field names to skip (only used when fields is None).
        extra: Additional key-value pairs to merge into the result.

    Returns:
        Dict with JSON-safe values (datetimes → ISO strings in UTC, None preserved).
    """
    if fields is None:
        exclude_set = set(exclude or [])
        # Mapped attribute names, which can differ from column names
        fields = [
            attr.key for attr in obj.__class__.__mapper__.column_attrs
            if attr.key not in exclude_set
        ]

    result = {}
    for field in fields:
        val = getattr(obj, field, None)
        if isinstance(val, datetime):
            val = as_utc(val).isoformat()
        elif isinstance(val, date):
            val = val.isoformat()
        result[field] = val

    if extra:
        result.update(extra)

    return result


def serialize_list(
    objects: Sequence[Any],
    fields: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
) -> List[Dict[str, Any]]:
    """Serialize a list of ORM model instances."""
    return [serialize(obj, fields=fields, exclude=exclude) for obj in objects]
