from typing import Optional, Dict, Any

from stackwise.extensions import db
from stackwise.models.history import ContainerHistory
from stackwise.models.yard import Slot


def slot_location(block_name: str, slot: Slot) -> str:
    return f"{block_name}-{slot.label}"


def record_history(
    container_id: int,
    action: str,
    performed_by: Optional[int] = None,
    new_location: Optional[str] = None,
    previous_status: Optional[str] = None,
    new_status: Optional[str] = None,
    notes: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> ContainerHistory:
    row = ContainerHistory(
        container_id=container_id,
        action=action,
        performed_by=performed_by,
        new_location=new_location,
        previous_status=previous_status,
        new_status=new_status,
        notes=notes,
        meta=meta or {},
    )
    db.session.add(row)
    return row
