# stackwise/services/yard_logic.py
"""
Yard occupancy model.

A block is a bays x rows x tiers grid of slots; each slot holds at most one
container. Placement fills the first free slot scanning bay, then row, then
tier (ascending). Stacking is strictly per (bay, row) column: a container is
blocked by every occupied slot above it in the same column.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from flask import current_app

from stackwise import signals
from stackwise.errors import NoCapacityError, NotFoundError, NotOccupiedError, SlotOccupiedError, ValidationError
from stackwise.models.container import Container
from stackwise.models.yard import BLOCK_TYPES, Block, Slot
from stackwise.services.history import record_history, slot_location
from stackwise.services.store import get_store, transaction

logger = logging.getLogger(__name__)


@dataclass
class Utilization:
    total_slots: int
    occupied_slots: int
    utilization_percentage: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_slots": self.total_slots,
            "occupied_slots": self.occupied_slots,
            "utilization_percentage": self.utilization_percentage,
        }


@dataclass
class AccessPath:
    target: Slot
    directly_accessible: bool
    # (slot, container) pairs, topmost first = physical removal order
    blocking: List[Tuple[Slot, Container]] = field(default_factory=list)

    @property
    def blocking_containers(self) -> List[Container]:
        return [container for _, container in self.blocking]


def utilization_percentage(occupied: int, total: int) -> int:
    """round(100 * occupied / total), halves rounded up; 0 for an empty block."""
    if total <= 0:
        return 0
    return (200 * occupied + total) // (2 * total)


def _as_int(value: Any) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_text(value: Any) -> Optional[str]:
    """Stripped string; "" when missing, None when the value is not text at all."""
    if value is None:
        return ""
    if not isinstance(value, str):
        return None
    return value.strip()


def validate_block_data(block_name: Any, bays: Any, rows: Any, tiers: Any, block_type: Any) -> List[str]:
    """Returns every violated rule, in form order. Empty list means valid."""
    errors = []
    max_len = current_app.config.get("BLOCK_NAME_MAX_LENGTH", 10)

    name = (block_name or "").strip() if isinstance(block_name, str) else ""
    if not name:
        errors.append("Block name is required")
    elif len(name) > max_len:
        errors.append(f"Block name must be {max_len} characters or less")

    bays_i = _as_int(bays)
    if bays_i is None or bays_i <= 0:
        errors.append("Number of bays must be greater than 0")

    rows_i = _as_int(rows)
    if rows_i is None or rows_i <= 0:
        errors.append("Number of rows must be greater than 0")

    if not block_type:
        errors.append("Block type is required")
    elif block_type not in BLOCK_TYPES:
        errors.append(f"Block type must be one of: {', '.join(BLOCK_TYPES)}")

    tiers_i = _as_int(tiers)
    if tiers_i is None or tiers_i <= 0:
        errors.append("Number of tiers must be greater than 0")

    return errors


def _first_free(slots: List[Slot]) -> Optional[Slot]:
    for slot in slots:
        if slot.container_id is None:
            return slot
    return None


# =========================
# Blocks
# =========================

def create_block(
    block_name: str,
    bays: int,
    rows: int,
    tiers: Optional[int] = None,
    block_type: str = "regular",
) -> Block:
    if tiers is None:
        tiers = current_app.config.get("DEFAULT_TIERS", 4)

    store = get_store()
    errors = validate_block_data(block_name, bays, rows, tiers, block_type)
    if isinstance(block_name, str) and block_name.strip() and store.find_block_by_name(block_name.strip()):
        errors.append("Block name already exists")
    if errors:
        raise ValidationError(errors)

    bays, rows, tiers = int(bays), int(rows), int(tiers)

    with transaction():
        block = store.insert_block(
            Block(
                block_name=block_name.strip(),
                bays=bays,
                rows=rows,
                tiers=tiers,
                type=block_type,
                capacity=bays * rows * tiers,
            )
        )
        store.insert_slots(
            Slot(block_id=block.id, bay=bay, row=row, tier=tier)
            for bay in range(1, bays + 1)
            for row in range(1, rows + 1)
            for tier in range(1, tiers + 1)
        )

    logger.info("Block %s created (%sx%sx%s, %s slots)", block.block_name, bays, rows, tiers, block.capacity)
    signals.block_changed.send(signals.SENDER, block_id=block.id, action="created")
    return block


def get_block(block_id: int) -> Block:
    return get_store().get_block(block_id)


def delete_block(block_id: int) -> None:
    """Deletes a block and its slots. Refused while any slot holds a container."""
    store = get_store()
    with transaction():
        block = store.lock_block(block_id)
        occupied = store.count_slots(block.id, occupied=True)
        if occupied:
            raise ValidationError([f"Block {block.block_name} still holds {occupied} container(s); remove them first"])
        name = block.block_name
        store.delete_block(block)

    logger.info("Block %s deleted", name)
    signals.block_changed.send(signals.SENDER, block_id=block_id, action="deleted")


def list_block_stats() -> List[Dict[str, Any]]:
    store = get_store()
    counts = store.occupancy_by_block()
    payload = []
    for block in store.list_blocks():
        total, occupied = counts.get(block.id, (0, 0))
        payload.append(
            {
                "block": block,
                "utilization": Utilization(total, occupied, utilization_percentage(occupied, total)),
            }
        )
    return payload


# =========================
# Slots
# =========================

def find_next_available_slot(block_id: int) -> Optional[Slot]:
    store = get_store()
    store.get_block(block_id)
    return _first_free(store.get_slots_for_block(block_id))


def place_container(block_id: int, attrs: Mapping[str, Any], performed_by: Optional[int] = None) -> Tuple[Container, Slot]:
    """
    Creates a container and binds it to the next available slot of the block.
    Both writes share one transaction: a failed bind leaves no container behind.
    """
    errors = []
    container_number = _as_text(attrs.get("container_number"))
    consignee_name = _as_text(attrs.get("consignee_name"))

    if container_number is None:
        errors.append("Container number must be text")
    elif not container_number:
        errors.append("Container number is required")
    if consignee_name is None:
        errors.append("Consignee name must be text")
    elif not consignee_name:
        errors.append("Consignee name is required")
    container_number = (container_number or "").upper()

    store = get_store()
    if container_number and store.get_container_by_number(container_number):
        errors.append(f"Container {container_number} already exists")
    if errors:
        raise ValidationError(errors)

    retries = max(1, int(current_app.config.get("PLACEMENT_RETRIES", 3)))

    with transaction():
        block = store.lock_block(block_id)

        candidate = _first_free(store.get_slots_for_block(block.id))
        if candidate is None:
            raise NoCapacityError()

        container = store.insert_container(
            Container(
                container_number=container_number,
                type=attrs.get("type") or "20GP",
                size=attrs.get("size"),
                consignee_name=consignee_name,
                status=attrs.get("status") or "empty",
                freight_indicator=attrs.get("freight_indicator"),
                holding_area="yard",
            )
        )

        slot = None
        for _ in range(retries):
            try:
                slot = store.update_slot(candidate.id, container.id)
                break
            except SlotOccupiedError:
                logger.warning("Slot %s of block %s taken concurrently, retrying", candidate.id, block.id)
                candidate = _first_free(store.get_slots_for_block(block.id))
                if candidate is None:
                    raise NoCapacityError()
        if slot is None:
            raise NoCapacityError()

        record_history(container.id, "created", performed_by=performed_by, new_status=container.status)
        record_history(
            container.id,
            "moved",
            performed_by=performed_by,
            new_location=slot_location(block.block_name, slot),
        )

    logger.info("Container %s placed at %s", container.container_number, slot_location(block.block_name, slot))
    signals.container_changed.send(signals.SENDER, container_id=container.id, action="created")
    signals.slot_changed.send(signals.SENDER, block_id=block.id, slot_id=slot.id, container_id=container.id)
    return container, slot


def assign_container_to_slot(slot_id: int, container_id: int, performed_by: Optional[int] = None) -> Slot:
    """Puts an existing, unplaced container into a chosen slot. Never overwrites."""
    store = get_store()
    with transaction():
        slot = store.get_slot(slot_id)
        container = store.get_container(container_id)

        current = store.find_slot_for_container(container.id)
        if current is not None:
            raise ValidationError(
                [f"Container {container.container_number} is already placed at {slot_location(current.block.block_name, current)}"]
            )

        block = store.lock_block(slot.block_id)
        slot = store.update_slot(slot.id, container.id)
        container.holding_area = "yard"

        record_history(
            container.id,
            "moved",
            performed_by=performed_by,
            new_location=slot_location(block.block_name, slot),
        )

    logger.info("Container %s assigned to %s", container.container_number, slot_location(block.block_name, slot))
    signals.slot_changed.send(signals.SENDER, block_id=block.id, slot_id=slot.id, container_id=container.id)
    return slot


def remove_container(slot_id: int, performed_by: Optional[int] = None) -> Container:
    """
    Clears the slot. The container survives, unplaced.
    Does not check reachability; run compute_access_path first if it matters.
    """
    store = get_store()
    with transaction():
        slot = store.get_slot(slot_id)
        if slot.container_id is None:
            raise NotOccupiedError(slot_id)

        container = store.get_container(slot.container_id)
        location = slot_location(slot.block.block_name, slot)

        store.update_slot(slot.id, None, expected_container_id=container.id)
        container.holding_area = "none"

        record_history(container.id, "removed", performed_by=performed_by, notes=f"Removed from {location}")

    logger.info("Container %s removed from %s", container.container_number, location)
    signals.slot_changed.send(signals.SENDER, block_id=slot.block_id, slot_id=slot.id, container_id=None)
    return container


def compute_utilization(block_id: int) -> Utilization:
    store = get_store()
    store.get_block(block_id)
    total = store.count_slots(block_id)
    occupied = store.count_slots(block_id, occupied=True)
    return Utilization(total, occupied, utilization_percentage(occupied, total))


def compute_access_path(block_id: int, slot_id: int) -> AccessPath:
    store = get_store()
    target = store.get_slot(slot_id)
    if target.block_id != block_id:
        raise NotFoundError(f"Slot {slot_id} not found in block {block_id}")
    if target.container_id is None:
        raise NotFoundError(f"Slot {target.label} is empty, nothing to extract")

    blocking = [
        (s, s.container)
        for s in store.get_column(block_id, target.bay, target.row)
        if s.tier > target.tier and s.container_id is not None
    ]
    return AccessPath(target=target, directly_accessible=not blocking, blocking=blocking)


def column_counts(block_id: int) -> Dict[str, int]:
    """Occupied slots per (bay, row) column, keyed B<bay>-R<row>; every column present."""
    store = get_store()
    block = store.get_block(block_id)
    counts = {f"B{b}-R{r}": 0 for b in range(1, block.bays + 1) for r in range(1, block.rows + 1)}
    for slot in store.get_slots_for_block(block.id):
        if slot.container_id is not None:
            key = f"B{slot.bay}-R{slot.row}"
            if key in counts:
                counts[key] += 1
    return counts


def search_slots(block_id: int, query: str = "") -> List[Slot]:
    store = get_store()
    store.get_block(block_id)
    slots = store.get_slots_for_block(block_id)

    q = (query or "").strip().lower()
    if not q:
        return slots

    def _matches(slot: Slot) -> bool:
        if q in slot.label.lower():
            return True
        c = slot.container
        if not c:
            return False
        fields = (c.container_number, c.consignee_name, c.type, c.status)
        return any(q in (f or "").lower() for f in fields)

    return [s for s in slots if _matches(s)]
