# stackwise/services/manifest.py
"""
Excel manifest import.

The shipping line manifest carries one sheet named ``Container (2)``; each row
is upserted by container number. A bad row is counted and reported, the rest
of the file is still imported.
"""
import logging
import zipfile
from typing import Any, Dict, List, Optional

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.exc import SQLAlchemyError

from stackwise import signals
from stackwise.errors import ValidationError, YardError
from stackwise.extensions import db
from stackwise.models.container import Container
from stackwise.services.history import record_history
from stackwise.services.store import get_store

logger = logging.getLogger(__name__)

REQUIRED_SHEET_NAME = "Container (2)"

HEADER_MAPPING = {
    "M B/L No": "bl_number",
    "Type": "type",
    "Container No / Chassis No": "container_number",
    "Container Size": "size",
    "Seal No#1": "seal_one",
    "Seal No#2": "seal_two",
    "Seal No#3": "seal_three",
    "Freight Indicator": "freight_indicator",
    "Number of Packages": "number_of_packages",
    "Package Unit": "package_unit",
    "Weight": "weight",
    "Weight Unit": "weight_unit",
    "Refer Plug Y/N": "reefer_plug",
    "Minimum Temperature": "minimum_temperature",
    "Maxmum Temperature": "maximum_temperature",  # sic, as printed on the manifest
}

NUMERIC_FIELDS = {"number_of_packages", "weight", "minimum_temperature", "maximum_temperature"}
UPPER_FIELDS = {"freight_indicator", "package_unit", "weight_unit"}


def _to_number(value: Any, field: str):
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a number (got {value!r})")
    if field == "number_of_packages":
        return int(num)
    return num


def map_row(raw: Dict[str, Any]) -> Dict[str, Any]:
    mapped: Dict[str, Any] = {}
    for header, value in raw.items():
        field = HEADER_MAPPING.get((header or "").strip()) if isinstance(header, str) else None
        if not field:
            continue

        if value is None or (isinstance(value, str) and not value.strip()):
            mapped[field] = None
        elif field in NUMERIC_FIELDS:
            mapped[field] = _to_number(value, field)
        elif field == "reefer_plug":
            mapped[field] = "Y" if str(value).strip().upper() == "Y" else "N"
        elif field in UPPER_FIELDS:
            mapped[field] = str(value).strip().upper()
        else:
            mapped[field] = str(value).strip()

    if mapped.get("container_number"):
        mapped["container_number"] = mapped["container_number"].upper()
    return mapped


def read_manifest_rows(fileobj) -> List[Dict[str, Any]]:
    try:
        wb = openpyxl.load_workbook(fileobj, read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException):
        raise ValidationError(["Manifest is not a valid .xlsx workbook"])

    try:
        if REQUIRED_SHEET_NAME not in wb.sheetnames:
            raise ValidationError(
                [f'Manifest must contain a sheet named "{REQUIRED_SHEET_NAME}". '
                 f'Available sheets are: {", ".join(wb.sheetnames)}']
            )

        ws = wb[REQUIRED_SHEET_NAME]
        rows = ws.iter_rows(values_only=True)
        headers = next(rows, None)
        if not headers:
            raise ValidationError(["No containers found in the manifest"])

        records = []
        for values in rows:
            if values is None or all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
                continue
            records.append(dict(zip(headers, values)))
    finally:
        wb.close()

    if not records:
        raise ValidationError(["No containers found in the manifest"])
    return records


def upsert_container(data: Dict[str, Any], performed_by: Optional[int] = None) -> Container:
    store = get_store()
    container = store.get_container_by_number(data["container_number"])
    created = container is None
    if created:
        container = Container(container_number=data["container_number"], holding_area="none", status="awaiting-arrival")

    for field, value in data.items():
        if field == "container_number":
            continue
        if field == "type" and not value:
            continue
        setattr(container, field, value)

    if created:
        store.insert_container(container)
        record_history(container.id, "created", performed_by=performed_by, new_status=container.status,
                       notes="Imported from manifest")
    return container


def import_manifest(fileobj, performed_by: Optional[int] = None) -> Dict[str, Any]:
    results: Dict[str, Any] = {"success": 0, "failed": 0, "errors": []}

    for raw in read_manifest_rows(fileobj):
        number = raw.get("Container No / Chassis No") or "Unknown"
        try:
            data = map_row(raw)
            if not data.get("container_number"):
                raise ValueError("Container number is required")
            container = upsert_container(data, performed_by=performed_by)
            db.session.commit()
        except (ValueError, YardError, SQLAlchemyError) as e:
            db.session.rollback()
            if isinstance(e, SQLAlchemyError):
                logger.exception("Manifest row %s failed", number)
            results["failed"] += 1
            results["errors"].append({"container_number": str(number), "error": str(e)})
            continue

        results["success"] += 1
        signals.container_changed.send(signals.SENDER, container_id=container.id, action="imported")

    logger.info("Manifest import: %s ok, %s failed", results["success"], results["failed"])
    return results
