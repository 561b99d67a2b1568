import logging
from typing import Optional

from stackwise import signals
from stackwise.errors import NotFoundError, ValidationError
from stackwise.models.container import HOLDING_AREAS, Container
from stackwise.services.history import record_history, slot_location
from stackwise.services.store import get_store, transaction

logger = logging.getLogger(__name__)

# Areas a container can be sent to without a slot; "yard" is only reachable through placement
OFF_YARD_AREAS = tuple(a for a in HOLDING_AREAS if a != "yard")


def get_container_by_number(container_number: str) -> Container:
    container = get_store().get_container_by_number(container_number)
    if not container:
        raise NotFoundError(f"Container {container_number} not found")
    return container


def update_container_status(
    container_id: int,
    new_status: str,
    notes: Optional[str] = None,
    performed_by: Optional[int] = None,
) -> Container:
    new_status = new_status.strip().lower() if isinstance(new_status, str) else ""
    if not new_status:
        raise ValidationError(["Status is required"])

    store = get_store()
    with transaction():
        container = store.get_container(container_id)
        previous = container.status
        container.status = new_status
        record_history(
            container.id,
            "status_changed",
            performed_by=performed_by,
            previous_status=previous,
            new_status=new_status,
            notes=notes,
        )

    logger.info("Container %s status %s -> %s", container.container_number, previous, new_status)
    signals.container_changed.send(signals.SENDER, container_id=container.id, action="status_changed")
    return container


def move_to_area(container_id: int, area: str, performed_by: Optional[int] = None) -> Container:
    """Sends an unplaced container to the verification or stripping area (or back to none)."""
    area = area.strip().lower() if isinstance(area, str) else ""
    if area not in OFF_YARD_AREAS:
        raise ValidationError([f"Area must be one of: {', '.join(OFF_YARD_AREAS)}"])

    store = get_store()
    with transaction():
        container = store.get_container(container_id)
        slot = store.find_slot_for_container(container.id)
        if slot is not None:
            raise ValidationError(
                [f"Container {container.container_number} is in slot {slot_location(slot.block.block_name, slot)}; remove it first"]
            )
        previous = container.holding_area
        container.holding_area = area
        record_history(
            container.id,
            "area_changed",
            performed_by=performed_by,
            new_location=area,
            meta={"from": previous, "to": area},
        )

    logger.info("Container %s moved to area %s", container.container_number, area)
    signals.container_changed.send(signals.SENDER, container_id=container.id, action="area_changed")
    return container
