# stackwise/utils/serializers.py
from stackwise.utils.timefmt import iso_local


def block_to_dict(block, utilization=None) -> dict:
    data = {
        "id": block.id,
        "block_name": block.block_name,
        "bays": block.bays,
        "rows": block.rows,
        "tiers": block.tiers,
        "type": block.type,
        "capacity": block.capacity,
        "created_at": iso_local(block.created_at),
    }
    if utilization is not None:
        data["stats"] = utilization.to_dict()
    return data


def container_to_dict(c, with_manifest: bool = False) -> dict:
    data = {
        "id": c.id,
        "container_number": c.container_number,
        "type": c.type,
        "size": c.size,
        "consignee_name": c.consignee_name,
        "status": c.status,
        "holding_area": c.holding_area,
        "freight_indicator": c.freight_indicator,
        "created_at": iso_local(c.created_at),
        "updated_at": iso_local(c.updated_at),
    }
    if with_manifest:
        for field in (
            "bl_number", "seal_one", "seal_two", "seal_three", "number_of_packages", "package_unit",
            "weight", "weight_unit", "reefer_plug", "minimum_temperature", "maximum_temperature",
        ):
            data[field] = getattr(c, field)
    return data


def slot_to_dict(slot, with_container: bool = True) -> dict:
    data = {
        "id": slot.id,
        "block_id": slot.block_id,
        "bay": slot.bay,
        "row": slot.row,
        "tier": slot.tier,
        "label": slot.label,
        "container_id": slot.container_id,
    }
    if with_container:
        data["container"] = container_to_dict(slot.container) if slot.container else None
    return data


def history_to_dict(h) -> dict:
    return {
        "id": h.id,
        "action": h.action,
        "previous_status": h.previous_status,
        "new_status": h.new_status,
        "new_location": h.new_location,
        "notes": h.notes,
        "performed_by": h.user.username if h.user else None,
        "created_at": iso_local(h.created_at),
    }


def user_to_dict(u) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "name": u.name,
        "role": u.role,
        "is_active": bool(u.is_active),
        "created_at": iso_local(u.created_at),
    }


def access_path_to_dict(path) -> dict:
    return {
        "target": slot_to_dict(path.target),
        "directly_accessible": path.directly_accessible,
        "blocking_containers": [
            {"order": i, "slot": slot_to_dict(slot, with_container=False), "container": container_to_dict(c)}
            for i, (slot, c) in enumerate(path.blocking, start=1)
        ],
    }
