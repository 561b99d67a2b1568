# stackwise/blueprints/inventory/routes.py
from io import BytesIO

from flask import request, jsonify, send_file
from flask_login import login_required

import openpyxl
from openpyxl.utils import get_column_letter
from openpyxl.styles import Font, Alignment

from stackwise.blueprints.inventory import inventory_bp
from stackwise.errors import ValidationError
from stackwise.extensions import db
from stackwise.models.container import HOLDING_AREAS, Container
from stackwise.models.yard import Block, Slot
from stackwise.services import containers as container_service
from stackwise.services.manifest import import_manifest
from stackwise.utils.security import current_user_id
from stackwise.utils.serializers import container_to_dict, history_to_dict
from stackwise.utils.timefmt import fmt_local


def _position(slot, block):
    if not slot:
        return None
    return {
        "block_id": block.id if block else None,
        "block_name": block.block_name if block else None,
        "slot_id": slot.id,
        "bay": slot.bay,
        "row": slot.row,
        "tier": slot.tier,
        "label": slot.label,
    }


def _inventory_query(status: str, ctype: str, area: str, qtext: str):
    """
    Single source for listing and export (same query, same filters).
    """
    q = (
        db.session.query(Container, Slot, Block)
        .outerjoin(Slot, Slot.container_id == Container.id)
        .outerjoin(Block, Block.id == Slot.block_id)
    )

    if status:
        q = q.filter(Container.status == status)
    if ctype:
        q = q.filter(Container.type == ctype)
    if area:
        q = q.filter(Container.holding_area == area)

    if qtext:
        like = f"%{qtext.upper()}%"
        q = q.filter(
            db.or_(
                db.func.upper(Container.container_number).like(like),
                db.func.upper(Container.consignee_name).like(like),
            )
        )

    return q.order_by(Container.created_at.desc(), Container.id.desc())


def _filters():
    return (
        (request.args.get("status") or "").strip().lower(),
        (request.args.get("type") or "").strip().upper(),
        (request.args.get("area") or "").strip().lower(),
        (request.args.get("q") or "").strip(),
    )


@inventory_bp.get("/api/containers")
@login_required
def inventory_index():
    """
    Container list with filters:
      - status => exact condition label
      - type   => 20GP, 40HC ...
      - area   => none | yard | verification | stripping
      - q      => container number or consignee
    """
    status, ctype, area, qtext = _filters()
    if area and area not in HOLDING_AREAS:
        raise ValidationError([f"Area must be one of: {', '.join(HOLDING_AREAS)}"])

    rows = _inventory_query(status, ctype, area, qtext).all()

    items = []
    for c, slot, block in rows:
        item = container_to_dict(c)
        item["position"] = _position(slot, block)
        items.append(item)

    return jsonify({"containers": items})


@inventory_bp.get("/api/containers/export")
@login_required
def inventory_export():
    """Exports the filtered container list to Excel (xlsx)."""
    status, ctype, area, qtext = _filters()
    rows = _inventory_query(status, ctype, area, qtext).all()

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Inventory"

    headers = [
        "ID",
        "CONTAINER",
        "TYPE",
        "SIZE",
        "CONSIGNEE",
        "STATUS",
        "AREA",
        "BLOCK",
        "SLOT",
        "CREATED",
    ]
    ws.append(headers)

    for col_idx in range(1, len(headers) + 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center")

    for c, slot, block in rows:
        ws.append([
            c.id,
            c.container_number or "",
            c.type or "",
            c.size or "",
            c.consignee_name or "",
            c.status or "",
            c.holding_area or "",
            (block.block_name if (slot and block) else "") or "",
            (slot.label if slot else "") or "",
            fmt_local(c.created_at),
        ])

    # Auto width
    for col_idx in range(1, len(headers) + 1):
        col_letter = get_column_letter(col_idx)
        max_len = 0
        for cell in ws[col_letter]:
            v = "" if cell.value is None else str(cell.value)
            if len(v) > max_len:
                max_len = len(v)
        ws.column_dimensions[col_letter].width = min(max_len + 2, 45)

    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)

    tag = (area or status or "all").upper()
    fname = f"inventory_{tag}.xlsx"

    return send_file(
        bio,
        as_attachment=True,
        download_name=fname,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


@inventory_bp.get("/api/containers/<string:container_number>")
@login_required
def inventory_detail(container_number: str):
    """Container data, current position (if in a slot) and history, newest first."""
    c = container_service.get_container_by_number(container_number)

    slot = c.slot
    return jsonify(
        {
            "container": container_to_dict(c, with_manifest=True),
            "position": _position(slot, slot.block if slot else None),
            "history": [history_to_dict(h) for h in c.history],
        }
    )


@inventory_bp.post("/api/containers/<int:container_id>/status")
@login_required
def inventory_update_status(container_id: int):
    data = request.get_json(silent=True) or {}
    c = container_service.update_container_status(
        container_id,
        data.get("status"),
        notes=data.get("notes"),
        performed_by=current_user_id(),
    )
    return jsonify({"ok": True, "container": container_to_dict(c)})


@inventory_bp.post("/api/containers/<int:container_id>/area")
@login_required
def inventory_move_area(container_id: int):
    data = request.get_json(silent=True) or {}
    c = container_service.move_to_area(container_id, data.get("area"), performed_by=current_user_id())
    return jsonify({"ok": True, "container": container_to_dict(c)})


@inventory_bp.post("/api/containers/manifest")
@login_required
def inventory_manifest_upload():
    f = request.files.get("file")
    if not f or not f.filename:
        raise ValidationError(["A manifest file is required"])
    if not f.filename.lower().endswith(".xlsx"):
        raise ValidationError(["Manifest must be an .xlsx file"])

    results = import_manifest(BytesIO(f.read()), performed_by=current_user_id())
    return jsonify({"ok": True, **results})
