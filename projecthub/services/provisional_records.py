"""Client-side identities for records that have not been persisted yet."""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import TYPE_CHECKING, Any, Iterable, Mapping, MutableSequence, Optional, Union

from projecthub.services.mutation_errors import SlotStateError

if TYPE_CHECKING:  # pragma: no cover
    from projecthub.services.change_tracking import ChangeSet

TEMP_ID_PREFIX = "temp_"


class ProvisionalId(str):
    """Tagged string identity of a record created in the editor (``temp_<ns>_<seq>``)."""

    __slots__ = ()


Identity = Union[int, ProvisionalId]


def is_provisional_identifier(value: Any) -> bool:
    """Return True for any ``temp_`` tagged id, including ones minted by clients."""
    return isinstance(value, str) and value.startswith(TEMP_ID_PREFIX)


@dataclass
class RecordSlot:
    """One row in an editing session.

    ``original`` holds the values read from storage (all ``None`` for a
    provisional row) and is never mutated by edits.
    """

    identity: Identity
    original: dict[str, Any] = field(default_factory=dict)

    @property
    def is_persisted(self) -> bool:
        return not isinstance(self.identity, str)


class ProvisionalAllocator:
    """Mints provisional ids and tracks which of them have been persisted."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._sequence = itertools.count(1)
        self._minted: set[str] = set()
        self._reconciled: dict[str, int] = {}

    def mint(self) -> ProvisionalId:
        with self._lock:
            identity = ProvisionalId(f"{TEMP_ID_PREFIX}{time.monotonic_ns()}_{next(self._sequence)}")
            self._minted.add(identity)
        return identity

    def allocate(
        self,
        slots: MutableSequence[RecordSlot],
        changes: "ChangeSet",
        field_keys: Iterable[str],
        defaults: Optional[Mapping[str, Any]] = None,
        *,
        identity: Optional[str] = None,
    ) -> RecordSlot:
        """Append a blank provisional slot and seed the change set for every field.

        Seeding every field means the new row is part of the next save even
        when the user never types into it.
        """
        if identity is None:
            identity = self.mint()
        else:
            with self._lock:
                if identity in self._reconciled:
                    raise SlotStateError(f"Provisional id {identity} was already persisted")
                if not is_provisional_identifier(identity):
                    raise SlotStateError(f"{identity!r} is not a provisional id")
                if any(slot.identity == identity for slot in slots):
                    raise SlotStateError(f"Provisional id {identity} is already allocated")
                self._minted.add(identity)
            identity = ProvisionalId(identity)

        keys = list(field_keys)
        defaults = dict(defaults or {})
        slot = RecordSlot(identity=identity, original={key: None for key in keys})
        slots.append(slot)
        slot_index = len(slots) - 1
        for key in keys:
            changes.record_change(slot_index, key, defaults.get(key))
        for key, value in defaults.items():
            if key not in slot.original:
                changes.record_change(slot_index, key, value)
        return slot

    def is_provisional(self, identity: Any) -> bool:
        with self._lock:
            return identity in self._minted and identity not in self._reconciled

    def is_reconciled(self, identity: Any) -> bool:
        with self._lock:
            return identity in self._reconciled

    def release(self, slots: MutableSequence[RecordSlot], changes: "ChangeSet", slot_index: int) -> RecordSlot:
        """Remove an unsaved slot and its pending changes."""
        try:
            slot = slots[slot_index]
        except IndexError:
            raise SlotStateError(f"No record slot at index {slot_index}") from None
        if slot.is_persisted:
            raise SlotStateError(f"Record {slot.identity} is persisted and cannot be released")
        if self.is_reconciled(slot.identity):
            raise SlotStateError(f"Provisional id {slot.identity} was already persisted")

        del slots[slot_index]
        changes.drop_slot(slot_index)
        with self._lock:
            self._minted.discard(slot.identity)
        return slot

    def reconcile(self, provisional_id: str, persisted_id: int) -> int:
        with self._lock:
            if provisional_id in self._reconciled:
                raise SlotStateError(f"Provisional id {provisional_id} was already persisted")
            if provisional_id not in self._minted:
                raise SlotStateError(f"Provisional id {provisional_id} was not allocated here")
            self._reconciled[provisional_id] = persisted_id
        return persisted_id

    def persisted_id(self, provisional_id: str) -> Optional[int]:
        with self._lock:
            return self._reconciled.get(provisional_id)


__all__ = [
    "TEMP_ID_PREFIX",
    "Identity",
    "ProvisionalAllocator",
    "ProvisionalId",
    "RecordSlot",
    "is_provisional_identifier",
]
