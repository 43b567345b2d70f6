"""
Delta payloads for Planner PATCH requests.

Planner merges map-valued fields (checklist, references, assignments,
appliedCategories) server-side: keys missing from a PATCH are left alone and
a key mapped to null is removed. Each kind of change is its own variant so
that "omit" and "null" never get confused, and no builder ever produces a
full replacement map.
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from planner_mcp.errors import ValidationError


CHECKLIST_ITEM_TYPE = "#microsoft.graph.plannerChecklistItem"
EXTERNAL_REFERENCE_TYPE = "#microsoft.graph.plannerExternalReference"
ASSIGNMENT_TYPE = "#microsoft.graph.plannerAssignment"

# Planner order hint meaning "place after everything else"
ORDER_HINT_LAST = " !"

CATEGORY_PATTERN = re.compile(r"^category([1-9]|1[0-9]|2[0-5])$")

REFERENCE_TYPES = ("PowerPoint", "Excel", "Word", "OneNote", "Project", "Visio", "Pdf", "Other")

# Characters Planner forbids in external reference keys, in encoding order
_REFERENCE_KEY_ESCAPES = (("%", "%25"), (".", "%2E"), (":", "%3A"), ("@", "%40"), ("#", "%23"))


@dataclass(frozen=True)
class FieldReplace:
    fields: Dict[str, Any]

    def to_payload(self) -> Dict[str, Any]:
        return dict(self.fields)


@dataclass(frozen=True)
class MapUpsert:
    map_name: str
    key: str
    value: Dict[str, Any]

    def to_payload(self) -> Dict[str, Any]:
        return {self.map_name: {self.key: dict(self.value)}}


@dataclass(frozen=True)
class BatchUpsert:
    map_name: str
    entries: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {self.map_name: {key: dict(value) for key, value in self.entries.items()}}


@dataclass(frozen=True)
class MapDelete:
    map_name: str
    key: str

    def to_payload(self) -> Dict[str, Any]:
        return {self.map_name: {self.key: None}}


def merge_deltas(*deltas) -> Dict[str, Any]:
    """
    Combine several deltas into one PATCH document.

    Raises:
        ValueError: If two deltas write the same top-level field
    """
    payload: Dict[str, Any] = {}
    for delta in deltas:
        for name, value in delta.to_payload().items():
            if name in payload:
                raise ValueError(f"Field {name!r} is set by more than one delta")
            payload[name] = value
    return payload


def field_replace(**fields: Any) -> FieldReplace:
    """Replace scalar fields; None means "not supplied" and is left out."""
    return FieldReplace({name: value for name, value in fields.items() if value is not None})


def percent_complete(value: Any) -> int:
    """
    Validate a progress value.

    Raises:
        ValidationError: Unless value is an integer in [0, 100]
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"percentComplete must be an integer between 0 and 100, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"percentComplete must be a whole number, got {value!r}")
        value = int(value)
    if not 0 <= value <= 100:
        raise ValidationError(f"percentComplete must be between 0 and 100, got {value}")
    return value


def _require_text(name: str, value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    return value


def new_item_id() -> str:
    return str(uuid.uuid4())


def checklist_item_upsert(
    title: str, is_checked: bool = False, item_id: Optional[str] = None
) -> Tuple[str, MapUpsert]:
    """
    Build a checklist entry for a new item.

    Returns:
        (item_id, delta) - the id is generated unless given and becomes the
        item's permanent identifier
    """
    _require_text("title", title)
    item_id = item_id or new_item_id()
    return item_id, MapUpsert(
        "checklist",
        item_id,
        {"@odata.type": CHECKLIST_ITEM_TYPE, "title": title, "isChecked": bool(is_checked)},
    )


def checklist_item_update(
    item_id: str, title: Optional[str] = None, is_checked: Optional[bool] = None
) -> MapUpsert:
    """Update only the supplied fields of an existing checklist item."""
    _require_text("itemId", item_id)
    if title is None and is_checked is None:
        raise ValidationError("Provide title and/or isChecked to update a checklist item")
    value: Dict[str, Any] = {"@odata.type": CHECKLIST_ITEM_TYPE}
    if title is not None:
        value["title"] = _require_text("title", title)
    if is_checked is not None:
        value["isChecked"] = bool(is_checked)
    return MapUpsert("checklist", item_id, value)


def checklist_batch_upsert(titles: List[str]) -> BatchUpsert:
    """One new unchecked item per title, each with its own generated id."""
    if not titles:
        raise ValidationError("items must contain at least one checklist title")
    entries: Dict[str, Dict[str, Any]] = {}
    for title in titles:
        _require_text("checklist item title", title)
        item_id = new_item_id()
        while item_id in entries:
            item_id = new_item_id()
        entries[item_id] = {"@odata.type": CHECKLIST_ITEM_TYPE, "title": title, "isChecked": False}
    return BatchUpsert("checklist", entries)


def checklist_item_delete(item_id: str) -> MapDelete:
    return MapDelete("checklist", _require_text("itemId", item_id))


def assignment_upsert(user_id: str) -> MapUpsert:
    return MapUpsert(
        "assignments",
        _require_text("assignUserId", user_id),
        {"@odata.type": ASSIGNMENT_TYPE, "orderHint": ORDER_HINT_LAST},
    )


def category_apply(category: str) -> FieldReplace:
    """
    Turn on one category slot.

    appliedCategories is itself merged server-side, so only the named slot
    is sent.
    """
    if not isinstance(category, str) or not CATEGORY_PATTERN.match(category):
        raise ValidationError(f"category must be one of category1..category25, got {category!r}")
    return FieldReplace({"appliedCategories": {category: True}})


def reference_key(url: str) -> str:
    """
    Encode a URL as a Planner external reference key.

    Only the characters Planner forbids in property names are escaped, so
    slashes and query delimiters stay readable:
    https://contoso.com/a -> https%3A//contoso%2Ecom/a
    """
    if not isinstance(url, str) or not re.match(r"^https?://[^/\s]+", url, re.IGNORECASE):
        raise ValidationError(f"url must be an absolute http(s) URL, got {url!r}")
    key = url
    for char, escaped in _REFERENCE_KEY_ESCAPES:
        key = key.replace(char, escaped)
    return key


def reference_upsert(url: str, alias: Optional[str] = None, ref_type: Optional[str] = None) -> MapUpsert:
    value: Dict[str, Any] = {"@odata.type": EXTERNAL_REFERENCE_TYPE}
    if alias is not None:
        value["alias"] = alias
    if ref_type is not None:
        if ref_type not in REFERENCE_TYPES:
            raise ValidationError(f"type must be one of {', '.join(REFERENCE_TYPES)}, got {ref_type!r}")
        value["type"] = ref_type
    return MapUpsert("references", reference_key(url), value)


def reference_delete(url: str) -> MapDelete:
    return MapDelete("references", reference_key(url))


def task_create(plan_id: str, bucket_id: str, title: str) -> Dict[str, Any]:
    return {
        "planId": _require_text("planId", plan_id),
        "bucketId": _require_text("bucketId", bucket_id),
        "title": _require_text("title", title),
    }


def bucket_create(plan_id: str, name: str, order_hint: str = ORDER_HINT_LAST) -> Dict[str, Any]:
    return {
        "planId": _require_text("planId", plan_id),
        "name": _require_text("name", name),
        "orderHint": order_hint,
    }
