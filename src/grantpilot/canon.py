"""
Canonical JSON Serialization

Provides deterministic JSON serialization for hashing and comparison:
- Sorted keys (lexicographic)
- No whitespace
- Decimals as strings (scores keep their exact precision)
- UTF-8 encoding

Used to seal audit trail entries and to fingerprint rubric packs, so the
rubric a score was computed under can be identified later.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _default_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for non-standard types.

    Handles:
    - datetime/date: ISO 8601 format
    - UUID: string representation
    - Decimal: string (preserves precision)
    - Enum: value
    - dataclass: dict
    - set/frozenset: sorted list
    """
    if isinstance(obj, datetime):
        if obj.tzinfo is not None:
            return obj.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
        return obj.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_json(obj: Any) -> str:
    """
    Serialize object to canonical JSON string.

    Example:
        >>> canonical_json({"b": 1, "a": 2})
        '{"a":2,"b":1}'
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        default=_default_serializer,
        ensure_ascii=False,
    )


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize object to canonical JSON as UTF-8 bytes."""
    return canonical_json(obj).encode("utf-8")


def content_hash(obj: Any) -> str:
    """
    Compute SHA-256 hash of canonical JSON representation.

    Returns:
        Hex-encoded SHA-256 hash string (64 characters)
    """
    return hashlib.sha256(canonical_json_bytes(obj)).hexdigest()


def compute_rubric_pack_hash(rubric: Any) -> str:
    """
    Compute SHA-256 hash of a rubric in canonical JSON form.

    Only the score-bearing content is hashed (ids, max points, scope), so
    renaming a category label does not change the fingerprint but moving
    a point between criteria does.
    """
    rubric_dict = {
        "id": rubric.id,
        "version": rubric.version,
        "kind": rubric.kind.value,
        "scope": rubric.scope,
        "categories": [
            {
                "id": category.id,
                "criteria": sorted(
                    (
                        {"id": c.id, "max_points": c.max_points}
                        for c in category.criteria
                    ),
                    key=lambda c: c["id"],
                ),
            }
            for category in rubric.categories
        ],
    }
    return content_hash(rubric_dict)
