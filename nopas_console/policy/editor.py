"""
Policy Editor — the single owner of the policy being edited.

Holds the process-wide ``PolicyUIState`` for one editing session, plus the
predefined option list fetched alongside it. The state is created by a
refresh, replaced wholesale by the next refresh, and changed in between
only through the methods below. Each method runs one of the pure collection
operations and commits the result only when it succeeded.

Resource edits cascade into subpolicies: renaming a resource rewrites every
subpolicy reference to it, and deleting one detaches it everywhere.
"""

from __future__ import annotations

import logging
from typing import Any

from nopas_console.policy.collection_editor import (
    EditErrorCode,
    EditResult,
    add_entity,
    delete_entity,
    rejected,
    rename_entity,
    update_field,
)
from nopas_console.policy.schema import (
    PolicyUIState,
    Provider,
    ResourceFields,
    SubpolicyFields,
)

logger = logging.getLogger(__name__)


class PolicyEditor:
    """Single-writer container for the policy under edit."""

    def __init__(self, state: PolicyUIState | None = None) -> None:
        self.state = state or PolicyUIState()
        self.predefined: Any = []

    def snapshot(self) -> PolicyUIState:
        """The current state. Readers must not mutate it."""
        return self.state

    def replace_state(self, state: PolicyUIState) -> None:
        """Discard the current state (and any unsent edits) for ``state``."""
        self.state = state
        logger.info(
            "Policy state replaced: %d resources, %d subpolicies",
            len(state.resources_by_name),
            len(state.subpolicies_by_name),
        )

    def set_predefined(self, options: Any) -> None:
        self.predefined = options

    def _commit(self, **updates: Any) -> None:
        self.state = self.state.model_copy(update=updates)

    # ── Summary fields ─────────────────────────────────────────

    def update_checking_frequency(self, value: str) -> None:
        self._commit(checking_frequency=value)

    def update_ensembler(self, value: str) -> None:
        self._commit(ensembler=value)

    # ── Resources ──────────────────────────────────────────────

    def add_resource(
        self,
        name: str,
        defaults: ResourceFields | None = None,
    ) -> EditResult[ResourceFields]:
        result = add_entity(
            self.state.resources_by_name, name, defaults or ResourceFields.defaults()
        )
        if result.is_ok:
            self._commit(resources_by_name=result.collection)
            logger.info("Resource added: %s", name)
        return result

    def delete_resource(self, name: str) -> EditResult[ResourceFields]:
        """Delete a resource and detach it from every subpolicy."""
        existed = name in self.state.resources_by_name
        result = delete_entity(self.state.resources_by_name, name)
        self._commit(
            resources_by_name=result.collection,
            subpolicies_by_name=self._rewrite_references(name, None),
        )
        if existed:
            logger.info("Resource deleted: %s", name)
        return result

    def rename_resource(self, old_name: str, new_name: str) -> EditResult[ResourceFields]:
        """Rename a resource in place and follow the rename in subpolicies."""
        result = rename_entity(self.state.resources_by_name, old_name, new_name)
        if result.is_ok and old_name != new_name:
            self._commit(
                resources_by_name=result.collection,
                subpolicies_by_name=self._rewrite_references(old_name, new_name),
            )
            logger.info("Resource renamed: %s -> %s", old_name, new_name)
        return result

    def update_resource_field(
        self,
        name: str,
        field_key: str,
        raw_value: Any,
    ) -> EditResult[ResourceFields]:
        result = update_field(self.state.resources_by_name, name, field_key, raw_value)
        if result.is_ok:
            self._commit(resources_by_name=result.collection)
        return result

    def _rewrite_references(
        self,
        old_name: str,
        new_name: str | None,
    ) -> dict[str, SubpolicyFields]:
        """Replace ``old_name`` in managed resources, or drop it when new_name is None."""
        rewritten: dict[str, SubpolicyFields] = {}
        for sp_name, fields in self.state.subpolicies_by_name.items():
            if old_name in fields.managed_resources:
                managed: list[str] = []
                for ref in fields.managed_resources:
                    if ref == old_name:
                        ref = new_name
                    if ref is not None and ref not in managed:
                        managed.append(ref)
                fields = fields.model_copy(update={"managed_resources": managed})
            rewritten[sp_name] = fields
        return rewritten

    # ── Provider parameter blocks ──────────────────────────────

    def update_provider_parameter(
        self,
        resource: str,
        provider: Provider,
        key: str,
        raw_value: Any,
    ) -> EditResult[Any]:
        """Set one key of a resource's provider block, adding the key if new."""
        fields = self.state.resources_by_name.get(resource)
        if fields is None:
            return rejected({}, EditErrorCode.MISSING_NAME, f"'{resource}' does not exist")

        block = getattr(fields, provider.field_name)
        if key in block:
            updated = dict(block)
            updated[key] = raw_value
            result: EditResult[Any] = EditResult(collection=updated)
        else:
            result = add_entity(block, key, raw_value)

        if result.is_ok:
            self._store_block(resource, fields, provider, result.collection)
        return result

    def remove_provider_parameter(
        self,
        resource: str,
        provider: Provider,
        key: str,
    ) -> EditResult[Any]:
        fields = self.state.resources_by_name.get(resource)
        if fields is None:
            return rejected({}, EditErrorCode.MISSING_NAME, f"'{resource}' does not exist")

        result = delete_entity(getattr(fields, provider.field_name), key)
        self._store_block(resource, fields, provider, result.collection)
        return result

    def _store_block(
        self,
        resource: str,
        fields: ResourceFields,
        provider: Provider,
        block: dict[str, Any],
    ) -> None:
        resources = dict(self.state.resources_by_name)
        resources[resource] = fields.model_copy(update={provider.field_name: block})
        self._commit(resources_by_name=resources)

    # ── Subpolicies ────────────────────────────────────────────

    def add_subpolicy(
        self,
        name: str,
        defaults: SubpolicyFields | None = None,
    ) -> EditResult[SubpolicyFields]:
        result = add_entity(
            self.state.subpolicies_by_name, name, defaults or SubpolicyFields.defaults()
        )
        if result.is_ok:
            self._commit(subpolicies_by_name=result.collection)
            logger.info("Subpolicy added: %s", name)
        return result

    def delete_subpolicy(self, name: str) -> EditResult[SubpolicyFields]:
        existed = name in self.state.subpolicies_by_name
        result = delete_entity(self.state.subpolicies_by_name, name)
        self._commit(subpolicies_by_name=result.collection)
        if existed:
            logger.info("Subpolicy deleted: %s", name)
        return result

    def rename_subpolicy(self, old_name: str, new_name: str) -> EditResult[SubpolicyFields]:
        result = rename_entity(self.state.subpolicies_by_name, old_name, new_name)
        if result.is_ok:
            self._commit(subpolicies_by_name=result.collection)
        return result

    def update_subpolicy_field(
        self,
        name: str,
        field_key: str,
        raw_value: Any,
    ) -> EditResult[SubpolicyFields]:
        result = update_field(self.state.subpolicies_by_name, name, field_key, raw_value)
        if result.is_ok:
            self._commit(subpolicies_by_name=result.collection)
        return result

    def attach_resource(self, subpolicy: str, resource: str) -> EditResult[SubpolicyFields]:
        """Put ``resource`` under the management of ``subpolicy``."""
        subpolicies = self.state.subpolicies_by_name
        fields = subpolicies.get(subpolicy)
        if fields is None:
            return rejected(
                subpolicies, EditErrorCode.MISSING_NAME, f"'{subpolicy}' does not exist"
            )
        if resource not in self.state.resources_by_name:
            return rejected(
                subpolicies, EditErrorCode.MISSING_NAME, f"'{resource}' does not exist"
            )
        if resource in fields.managed_resources:
            return rejected(
                subpolicies,
                EditErrorCode.DUPLICATE_NAME,
                f"'{resource}' is already managed by '{subpolicy}'",
            )

        updated = dict(subpolicies)
        updated[subpolicy] = fields.model_copy(
            update={"managed_resources": [*fields.managed_resources, resource]}
        )
        self._commit(subpolicies_by_name=updated)
        return EditResult(collection=updated)

    def detach_resource(self, subpolicy: str, resource: str) -> EditResult[SubpolicyFields]:
        """Stop ``subpolicy`` managing ``resource``. Detaching twice is a no-op."""
        subpolicies = self.state.subpolicies_by_name
        fields = subpolicies.get(subpolicy)
        if fields is None:
            return rejected(
                subpolicies, EditErrorCode.MISSING_NAME, f"'{subpolicy}' does not exist"
            )

        updated = dict(subpolicies)
        updated[subpolicy] = fields.model_copy(
            update={
                "managed_resources": [r for r in fields.managed_resources if r != resource]
            }
        )
        self._commit(subpolicies_by_name=updated)
        return EditResult(collection=updated)
