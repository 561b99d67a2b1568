# stackwise/blueprints/yard/routes.py
from flask import request, jsonify
from flask_login import login_required

from stackwise.blueprints.yard import yard_bp
from stackwise.errors import ValidationError
from stackwise.services import yard_logic
from stackwise.utils.security import current_user_id
from stackwise.utils.serializers import (
    access_path_to_dict,
    block_to_dict,
    container_to_dict,
    slot_to_dict,
)


# =========================
# Blocks
# =========================

@yard_bp.get("/api/yard/blocks")
@login_required
def api_blocks():
    """
    Storage blocks overview: every block with its utilization snapshot.
    ?q= filters by block name or type.
    """
    q = (request.args.get("q") or "").strip().lower()

    payload = []
    for item in yard_logic.list_block_stats():
        block = item["block"]
        if q and q not in block.block_name.lower() and q not in block.type.lower():
            continue
        payload.append(block_to_dict(block, item["utilization"]))

    return jsonify({"blocks": payload})


@yard_bp.post("/api/yard/blocks")
@login_required
def api_create_block():
    data = request.get_json(silent=True) or {}

    block = yard_logic.create_block(
        data.get("block_name"),
        data.get("bays"),
        data.get("rows"),
        tiers=data.get("tiers"),
        block_type=data.get("type") or "regular",
    )
    return jsonify({"ok": True, "block": block_to_dict(block, yard_logic.compute_utilization(block.id))}), 201


@yard_bp.get("/api/yard/blocks/<int:block_id>")
@login_required
def api_block_detail(block_id: int):
    block = yard_logic.get_block(block_id)
    next_slot = yard_logic.find_next_available_slot(block.id)
    return jsonify(
        {
            "block": block_to_dict(block, yard_logic.compute_utilization(block.id)),
            "next_available_slot": next_slot.label if next_slot else None,
            "columns": yard_logic.column_counts(block.id),
        }
    )


@yard_bp.delete("/api/yard/blocks/<int:block_id>")
@login_required
def api_delete_block(block_id: int):
    yard_logic.delete_block(block_id)
    return jsonify({"ok": True})


@yard_bp.get("/api/yard/blocks/<int:block_id>/slots")
@login_required
def api_block_slots(block_id: int):
    """Slots ordered bay, row, tier. ?q= searches container fields and B1-R1-T1 labels."""
    slots = yard_logic.search_slots(block_id, request.args.get("q") or "")
    return jsonify({"block_id": block_id, "slots": [slot_to_dict(s) for s in slots]})


@yard_bp.get("/api/yard/blocks/<int:block_id>/utilization")
@login_required
def api_block_utilization(block_id: int):
    return jsonify(yard_logic.compute_utilization(block_id).to_dict())


@yard_bp.get("/api/yard/blocks/<int:block_id>/next-slot")
@login_required
def api_next_slot(block_id: int):
    slot = yard_logic.find_next_available_slot(block_id)
    if not slot:
        return jsonify({"ok": False, "error": "BLOCK_FULL"}), 409
    return jsonify({"ok": True, "slot": slot_to_dict(slot, with_container=False)})


@yard_bp.get("/api/yard/blocks/<int:block_id>/columns")
@login_required
def api_block_columns(block_id: int):
    block = yard_logic.get_block(block_id)
    return jsonify({"block_id": block.id, "max_tiers": block.tiers, "columns": yard_logic.column_counts(block.id)})


# =========================
# Placement
# =========================

@yard_bp.post("/api/yard/blocks/<int:block_id>/containers")
@login_required
def api_place_container(block_id: int):
    """
    Creates a container and drops it in the next available slot.
    Payload: { "container_number", "consignee_name", "type", "size", "status", "freight_indicator" }
    """
    data = request.get_json(silent=True) or {}
    container, slot = yard_logic.place_container(block_id, data, performed_by=current_user_id())
    return jsonify(
        {
            "ok": True,
            "container": container_to_dict(container),
            "slot": slot_to_dict(slot, with_container=False),
        }
    ), 201


@yard_bp.post("/api/yard/slots/<int:slot_id>/assign")
@login_required
def api_assign_slot(slot_id: int):
    data = request.get_json(silent=True) or {}
    container_id = data.get("container_id")
    if not isinstance(container_id, int) or isinstance(container_id, bool):
        raise ValidationError(["container_id is required"])

    slot = yard_logic.assign_container_to_slot(slot_id, container_id, performed_by=current_user_id())
    return jsonify({"ok": True, "slot": slot_to_dict(slot)})


@yard_bp.delete("/api/yard/slots/<int:slot_id>/container")
@login_required
def api_remove_container(slot_id: int):
    container = yard_logic.remove_container(slot_id, performed_by=current_user_id())
    return jsonify({"ok": True, "container": container_to_dict(container)})


@yard_bp.get("/api/yard/blocks/<int:block_id>/slots/<int:slot_id>/access-path")
@login_required
def api_access_path(block_id: int, slot_id: int):
    """Whether the container can be pulled directly, or which ones must move first (topmost first)."""
    path = yard_logic.compute_access_path(block_id, slot_id)
    return jsonify(access_path_to_dict(path))
