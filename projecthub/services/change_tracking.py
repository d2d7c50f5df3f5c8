"""Editing sessions: which fields a user touched and which rows are new.

An ``EditSession`` holds the rows of one entity as ``RecordSlot`` objects, a
``ChangeSet`` of touched fields and a ``ProvisionalAllocator`` for rows added
in the editor.  ``build_bundle`` turns the session into the mutation payload
sent to the save endpoint; ``complete_save`` folds the save result back in.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from projecthub.services.field_catalog import FieldDescriptor
from projecthub.services.milestones import MilestoneDate
from projecthub.services.mutation_errors import SlotStateError
from projecthub.services.mutation_router import DispatchResult, MutationBundle
from projecthub.services.provisional_records import ProvisionalAllocator, RecordSlot
from projecthub.services.value_coercion import DataType, coerce_input, format_display

logger = logging.getLogger(__name__)

_MISSING = object()


class ChangeSet:
    """Touched fields per slot index; never persisted."""

    def __init__(self) -> None:
        self._changes: dict[int, dict[str, Any]] = {}

    def record_change(self, slot_index: int, field_key: str, value: Any) -> None:
        self._changes.setdefault(slot_index, {})[field_key] = value

    def get_effective_value(self, slot_index: int, field_key: str, original: Any) -> Any:
        """Return the edited value if the field was touched (even to ``None``)."""
        value = self._changes.get(slot_index, {}).get(field_key, _MISSING)
        return original if value is _MISSING else value

    def is_touched(self, slot_index: int, field_key: str) -> bool:
        return field_key in self._changes.get(slot_index, {})

    def changes_for(self, slot_index: int) -> dict[str, Any]:
        return dict(self._changes.get(slot_index, {}))

    def touched_slots(self) -> list[int]:
        return sorted(index for index, fields in self._changes.items() if fields)

    def clear_slot(self, slot_index: int) -> None:
        self._changes.pop(slot_index, None)

    def drop_slot(self, slot_index: int) -> None:
        """Forget a removed slot and shift the indices of the slots after it."""
        self._changes = {
            (index - 1 if index > slot_index else index): fields
            for index, fields in self._changes.items()
            if index != slot_index
        }

    def reset(self) -> None:
        self._changes.clear()

    def __bool__(self) -> bool:
        return any(self._changes.values())


class EditSession:
    def __init__(
        self,
        entity_name: str,
        fields: Sequence[FieldDescriptor],
        records: Iterable[Mapping[str, Any]] = (),
        *,
        currency_prefix: Optional[str] = None,
    ) -> None:
        self.entity_name = entity_name
        self.fields = list(fields)
        self.currency_prefix = currency_prefix
        self.changes = ChangeSet()
        self.allocator = ProvisionalAllocator()
        self.slots: list[RecordSlot] = []
        self._deleted: list[RecordSlot] = []
        self._types = {descriptor.field_key: descriptor.data_type for descriptor in self.fields}
        for record in records:
            original = dict(record)
            identity = original.pop("id", None)
            if identity is None:
                raise SlotStateError("Persisted records need an id")
            self.slots.append(RecordSlot(identity=identity, original=original))
        self._baseline = list(self.slots)

    def data_type(self, field_key: str) -> DataType:
        return self._types.get(field_key, DataType.TEXT)

    def _slot(self, slot_index: int) -> RecordSlot:
        try:
            return self.slots[slot_index]
        except IndexError:
            raise SlotStateError(f"No record slot at index {slot_index}") from None

    # ------------------------------------------------------------------
    # editing
    # ------------------------------------------------------------------

    def edit(self, slot_index: int, field_key: str, raw: Any, *, clamp: bool = True) -> Any:
        self._slot(slot_index)
        value = coerce_input(raw, self.data_type(field_key), clamp=clamp)
        self.changes.record_change(slot_index, field_key, value)
        return value

    def record_milestone(self, slot_index: int, field_key: str, milestone: MilestoneDate) -> None:
        self._slot(slot_index)
        for key, value in milestone.to_fields(field_key).items():
            self.changes.record_change(slot_index, key, value)

    def value(self, slot_index: int, field_key: str) -> Any:
        slot = self._slot(slot_index)
        return self.changes.get_effective_value(slot_index, field_key, slot.original.get(field_key))

    def display(self, slot_index: int, field_key: str) -> str:
        return format_display(
            self.value(slot_index, field_key),
            self.data_type(field_key),
            currency_prefix=self.currency_prefix,
        )

    def add_record(self, defaults: Optional[Mapping[str, Any]] = None) -> int:
        keys = [descriptor.field_key for descriptor in self.fields]
        self.allocator.allocate(self.slots, self.changes, keys, defaults)
        return len(self.slots) - 1

    def release_record(self, slot_index: int) -> RecordSlot:
        return self.allocator.release(self.slots, self.changes, slot_index)

    def delete_record(self, slot_index: int) -> RecordSlot:
        """Remove a row; persisted rows are remembered for the next save."""
        slot = self._slot(slot_index)
        if not slot.is_persisted:
            return self.release_record(slot_index)
        del self.slots[slot_index]
        self.changes.drop_slot(slot_index)
        self._deleted.append(slot)
        return slot

    def has_changes(self) -> bool:
        return bool(self.changes) or bool(self._deleted)

    # ------------------------------------------------------------------
    # saving
    # ------------------------------------------------------------------

    def build_bundle(self) -> MutationBundle:
        """Only touched fields of persisted rows, and every field of new rows."""
        bundle = MutationBundle(deleted_ids=[slot.identity for slot in self._deleted])
        for slot_index, slot in enumerate(self.slots):
            touched = self.changes.changes_for(slot_index)
            if slot.is_persisted:
                if touched:
                    bundle.updates.append({"id": slot.identity, **touched})
            else:
                bundle.creates.append({**touched, "provisional_id": str(slot.identity)})
        return bundle

    def complete_save(self, result: DispatchResult) -> None:
        """Fold a successful save back into the session.

        Saved rows take their edited values as the new originals, new rows
        take their persisted ids, and rows the server skipped keep their
        pending changes.
        """
        skipped = {record.provisional_id for record in result.skipped if record.provisional_id}
        for slot_index, slot in enumerate(self.slots):
            touched = self.changes.changes_for(slot_index)
            if slot.is_persisted:
                if touched:
                    slot.original.update(touched)
                    self.changes.clear_slot(slot_index)
                continue
            persisted_id = result.reconciled.get(str(slot.identity))
            if persisted_id is None:
                if slot.identity not in skipped:
                    logger.warning("No persisted id returned for %s in %s", slot.identity, self.entity_name)
                continue
            self.allocator.reconcile(slot.identity, persisted_id)
            slot.identity = persisted_id
            slot.original.update(touched)
            self.changes.clear_slot(slot_index)
        self._deleted.clear()
        self._baseline = list(self.slots)

    def cancel(self) -> None:
        """Discard every pending change, new row and deletion."""
        self.slots = list(self._baseline)
        self._deleted.clear()
        self.changes.reset()


__all__ = ["ChangeSet", "EditSession", "RecordSlot"]
