"""
Field alias table for uploaded MES documents.

Different testers spell the same logical field differently ("Serial Number",
"SerialNumber", "serial", ...). Each logical field maps to an ordered tuple
of accessor functions; extraction evaluates them in order and the first
non-empty value wins.

Keeping the aliases as data makes the table easy to extend and to test on
its own: adding a spelling means adding one accessor to one tuple.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

# An accessor pulls one candidate value out of a document (or None)
Accessor = Callable[[Mapping[str, Any]], Any]


def key(name: str) -> Accessor:
    """Accessor reading a top-level key."""
    def accessor(document: Mapping[str, Any]) -> Any:
        return document.get(name)
    accessor.__name__ = f"key[{name!r}]"
    return accessor


FIELD_ALIASES: Dict[str, Tuple[Accessor, ...]] = {
    "serial_number": (
        key("Serial Number"),
        key("Serial"),
        key("serial"),
        key("SerialNumber"),
    ),
    "test_time": (
        key("Test Time"),
        key("Test_Time"),
        key("datetime"),
        key("TestTime"),
    ),
    "station": (
        key("Station"),
        key("station"),
    ),
    "model": (
        key("Model"),
        key("model"),
        key("Product Type"),
    ),
    "work_order": (
        key("Work Order"),
        key("WorkOrder"),
        key("工單"),
    ),
    "part_number": (
        key("Part Number"),
        key("PartNumber"),
        key("part_number"),
    ),
    "tester": (
        key("Tester"),
        key("tester"),
    ),
    "fixture_number": (
        key("FN:"),
        key("FN"),
        key("fn"),
    ),
}

# Only list values under these keys are treated as test items
ITEM_ACCESSORS: Tuple[Accessor, ...] = (key("Items"), key("items"))


def is_empty(value: Any) -> bool:
    """None, empty/blank strings, empty containers and False are empty."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict, tuple)):
        return len(value) == 0
    return False


def extract_field(document: Mapping[str, Any], field: str) -> str:
    """
    Extract a logical field using its alias accessors.

    Args:
        document: Parsed JSON object
        field: Logical field name (a key of FIELD_ALIASES)

    Returns:
        First non-empty value as a stripped string, or "" when none matched

    Raises:
        KeyError: If field is not a known logical field
    """
    for accessor in FIELD_ALIASES[field]:
        value = accessor(document)
        if not is_empty(value):
            return str(value).strip()
    return ""


def extract_fields(document: Mapping[str, Any]) -> Dict[str, str]:
    """Extract every logical field of FIELD_ALIASES."""
    return {field: extract_field(document, field) for field in FIELD_ALIASES}


def extract_raw_items(document: Mapping[str, Any]) -> List[Any]:
    """
    Return the first list-valued items field.

    Non-list values (a string, an object) are ignored rather than coerced.
    """
    for accessor in ITEM_ACCESSORS:
        value = accessor(document)
        if isinstance(value, list):
            return value
    return []


def result_entry_name(document: Mapping[str, Any]) -> Optional[str]:
    """
    Name of the first entry of a {"Result": [{"Name": ...}]} document.

    Some testers emit only this status shape; its name is the best
    available stand-in for a serial number.
    """
    entries = document.get("Result")
    if not isinstance(entries, list) or not entries:
        return None
    first = entries[0]
    if not isinstance(first, Mapping) or is_empty(first.get("Name")):
        return None
    return str(first["Name"]).strip()
