"""
Named-entity collections — generic CRUD over name-keyed mappings.

Resources, subpolicies and provider parameter blocks are all mappings from a
unique name to a value, where insertion order is display order. The four
operations here are the only way the editor changes such a mapping:

- add_entity: append under a new name
- delete_entity: remove by name (absent name is a no-op)
- rename_entity: substitute a key in place, keeping its position
- update_field: set one field of one entity, storing the raw value

Every operation is pure: the caller's mapping is never mutated. A rejected
operation returns the original mapping unchanged together with the reason,
so the editing session stays consistent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EditErrorCode(str, Enum):
    """Why an edit was rejected."""

    DUPLICATE_NAME = "duplicate_name"
    MISSING_NAME = "missing_name"
    EMPTY_NAME = "empty_name"
    UNKNOWN_FIELD = "unknown_field"


@dataclass
class EditResult(Generic[T]):
    """Outcome of a collection edit."""

    collection: dict[str, T]
    error_code: EditErrorCode | None = None
    error: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.error_code is None


def rejected(
    collection: Mapping[str, T],
    code: EditErrorCode,
    message: str,
) -> EditResult[T]:
    logger.info("Edit rejected (%s): %s", code.value, message)
    return EditResult(collection=dict(collection), error_code=code, error=message)


def add_entity(collection: Mapping[str, T], name: str, defaults: T) -> EditResult[T]:
    """Append ``defaults`` under ``name``. Rejects blank or taken names."""
    if not name.strip():
        return rejected(collection, EditErrorCode.EMPTY_NAME, "Name cannot be blank")
    if name in collection:
        return rejected(
            collection, EditErrorCode.DUPLICATE_NAME, f"'{name}' already exists"
        )
    updated = dict(collection)
    updated[name] = defaults
    return EditResult(collection=updated)


def delete_entity(collection: Mapping[str, T], name: str) -> EditResult[T]:
    """Remove ``name``. Deleting an absent name succeeds and changes nothing."""
    return EditResult(
        collection={key: value for key, value in collection.items() if key != name}
    )


def rename_entity(
    collection: Mapping[str, T],
    old_name: str,
    new_name: str,
) -> EditResult[T]:
    """
    Rename ``old_name`` to ``new_name`` without moving the entry.

    Renaming an entry to its own name is a successful no-op.
    """
    if old_name not in collection:
        return rejected(
            collection, EditErrorCode.MISSING_NAME, f"'{old_name}' does not exist"
        )
    if old_name == new_name:
        return EditResult(collection=dict(collection))
    if not new_name.strip():
        return rejected(collection, EditErrorCode.EMPTY_NAME, "Name cannot be blank")
    if new_name in collection:
        return rejected(
            collection, EditErrorCode.DUPLICATE_NAME, f"'{new_name}' already exists"
        )
    return EditResult(
        collection={
            (new_name if key == old_name else key): value
            for key, value in collection.items()
        }
    )


def update_field(
    collection: Mapping[str, T],
    name: str,
    field_key: str,
    raw_value: Any,
) -> EditResult[T]:
    """
    Set ``field_key`` of entity ``name`` to ``raw_value`` verbatim.

    Numeric fields keep whatever text was typed (``"1."`` included); they
    are coerced when the policy is serialized for the server.
    """
    entity = collection.get(name)
    if entity is None:
        return rejected(
            collection, EditErrorCode.MISSING_NAME, f"'{name}' does not exist"
        )
    if field_key not in getattr(entity, "editable_fields", ()):
        return rejected(
            collection,
            EditErrorCode.UNKNOWN_FIELD,
            f"'{field_key}' is not an editable field",
        )
    updated = dict(collection)
    updated[name] = entity.model_copy(update={field_key: raw_value})
    return EditResult(collection=updated)
