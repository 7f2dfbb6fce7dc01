"""
Cache key construction for record lookups.
"""

import json
from typing import Any, Dict, Optional, Union

from shared.errors import InvalidRequestError


ID_SELECTOR = "id"
NATURAL_KEY_SELECTOR = "route_number"


def selector_key(namespace: str, selector: Dict[str, Any]) -> str:
    """Serialize a lookup predicate into a cache key.

    Fields are sorted and values stringified so that logically equal
    predicates (``{"id": 1}`` and ``{"id": "1"}``) map to one key.
    """
    if not selector:
        raise InvalidRequestError("Cache selector cannot be empty")
    normalized = {name: str(value) for name, value in selector.items()}
    return f"{namespace}:{json.dumps(normalized, sort_keys=True, separators=(',', ':'))}"


def build_key(
    namespace: str,
    id: Optional[Union[int, str]] = None,
    route_number: Optional[str] = None,
) -> str:
    """Cache key for a by-id or by-route-number lookup; id wins when both are set."""
    if id is not None and str(id) != "":
        return selector_key(namespace, {ID_SELECTOR: id})
    if route_number is not None and route_number != "":
        return selector_key(namespace, {NATURAL_KEY_SELECTOR: route_number})
    raise InvalidRequestError("Either Bus ID or Route Number is required")
