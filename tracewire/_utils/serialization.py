"""
Serialization helpers.

Record input/output and metadata may hold arbitrary application objects.
They are converted to JSON-compatible values before a batch is encoded so a
single odd value never makes a whole batch unsendable.
"""

import dataclasses
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

MAX_DEPTH = 20


def to_jsonable(obj: Any, max_depth: int = MAX_DEPTH) -> Any:
    """
    Convert ``obj`` to plain JSON types, falling back to ``str``.

    Args:
        obj: Object to convert
        max_depth: Maximum nesting depth before values are replaced

    Returns:
        Structure made of dict, list, str, int, float, bool and None
    """

    def _convert(item: Any, depth: int) -> Any:
        if depth > max_depth:
            return "[MAX_DEPTH_EXCEEDED]"

        if isinstance(item, (str, int, float, bool)) or item is None:
            return item
        if isinstance(item, Enum):
            return _convert(item.value, depth)
        if isinstance(item, (datetime, date)):
            return item.isoformat()
        if isinstance(item, dict):
            return {str(k): _convert(v, depth + 1) for k, v in item.items()}
        if isinstance(item, (list, tuple, set, frozenset)):
            return [_convert(i, depth + 1) for i in item]
        if isinstance(item, bytes):
            return item.decode("utf-8", errors="replace")
        if hasattr(item, "model_dump"):
            return _convert(item.model_dump(exclude_none=True), depth + 1)
        if dataclasses.is_dataclass(item) and not isinstance(item, type):
            return _convert(dataclasses.asdict(item), depth + 1)
        return str(item)

    try:
        return _convert(obj, 0)
    except Exception as e:
        logger.debug(f"Failed to serialize object: {e}")
        return {"serialization_error": str(e)}
